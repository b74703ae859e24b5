"""
Deep-link target resolution.

Navigation intents arrive from three producers:

1. the launch marker, written by native launch handling before the shell
   starts (app cold-started from a notification),
2. the notification tap handler, while the app is already running,
3. external links (custom scheme / universal link) opened in the foreground.

Producers 1 and 2 only post markers into the store. The bootstrap reads them
at a single decision point through take(), where the launch marker always
wins. Producer 3 is applied by the controller directly and uses superseded()
to drop any older markers. Every marker read and write goes through one
lock, so a marker can't be read twice or lost between a read and its clear.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass

from .store import (
    DEEP_LINK_SERVER,
    DEEP_LINK_TARGET,
    PENDING_DEEP_LINK_PATH,
    PENDING_DEEP_LINK_URL,
    ConnectionStore,
)
from .urls import normalize_path, normalize_url

logger = logging.getLogger('nuxbe.shell.deeplink')

SOURCE_LAUNCH = 'launch'
SOURCE_NOTIFICATION = 'notification'


@dataclass(frozen=True)
class PendingDeepLink:
    server_url: str
    path: str
    source: str


class DeepLinkResolver:
    """Single consumer for the deep-link marker channel."""

    def __init__(self, store: ConnectionStore):
        self._store = store
        self._lock = asyncio.Lock()

    async def post_launch_marker(self, server: str, path: str) -> PendingDeepLink | None:
        return await self._post(
            SOURCE_LAUNCH, PENDING_DEEP_LINK_URL, PENDING_DEEP_LINK_PATH, server, path,
        )

    async def post_notification_tap(self, server: str, path: str) -> PendingDeepLink | None:
        return await self._post(
            SOURCE_NOTIFICATION, DEEP_LINK_SERVER, DEEP_LINK_TARGET, server, path,
        )

    async def peek(self) -> PendingDeepLink | None:
        """The marker take() would return, without consuming it."""
        async with self._lock:
            return await self._read()

    async def take(self) -> PendingDeepLink | None:
        """
        Consume the highest-precedence marker.

        Both markers are cleared whichever one wins (and unusable leftovers
        with them), so nothing is replayed on a later bootstrap.
        """
        async with self._lock:
            target = await self._read()
            await self._clear_all()
            if target is not None:
                logger.info(f"Resolved deep link ({target.source}): {target.server_url}{target.path}")
            return target

    async def clear(self):
        async with self._lock:
            await self._clear_all()

    @asynccontextmanager
    async def superseded(self):
        """
        Hold the marker channel while a foreground link takes over.

        Markers still pending when the block is entered are discarded: the
        foreground link is the newer intent.
        """
        async with self._lock:
            stale = await self._read()
            if stale is not None:
                logger.info(f"Dropping {stale.source} deep link superseded by external link")
            await self._clear_all()
            yield

    async def _post(
        self,
        source: str,
        server_key: str,
        path_key: str,
        server: str,
        path: str,
    ) -> PendingDeepLink | None:
        if not server or not path:
            logger.warning(f"Ignoring {source} deep link without server and path")
            return None
        try:
            server_url = normalize_url(server)
        except ValueError as e:
            logger.warning(f"Ignoring {source} deep link: {e}")
            return None

        target = PendingDeepLink(server_url, normalize_path(path), source)
        async with self._lock:
            await self._store.set(server_key, target.server_url)
            await self._store.set(path_key, target.path)
        logger.debug(f"Posted {source} deep link: {target.server_url}{target.path}")
        return target

    async def _read(self) -> PendingDeepLink | None:
        launch = await self._read_pair(SOURCE_LAUNCH, PENDING_DEEP_LINK_URL, PENDING_DEEP_LINK_PATH)
        if launch is not None:
            return launch
        return await self._read_pair(SOURCE_NOTIFICATION, DEEP_LINK_SERVER, DEEP_LINK_TARGET)

    async def _read_pair(self, source: str, server_key: str, path_key: str) -> PendingDeepLink | None:
        server = await self._store.get(server_key)
        path = await self._store.get(path_key)
        if not server or not path:
            return None
        try:
            server_url = normalize_url(server)
        except ValueError:
            logger.warning(f"Discarding {source} deep link with invalid server {server!r}")
            return None
        return PendingDeepLink(server_url, normalize_path(path), source)

    async def _clear_all(self):
        for key in (PENDING_DEEP_LINK_URL, PENDING_DEEP_LINK_PATH, DEEP_LINK_SERVER, DEEP_LINK_TARGET):
            await self._store.remove(key)
