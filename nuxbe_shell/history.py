"""
Server history: the most recently used servers, newest first.

Stored as a JSON list under the `server_history` key, unique by url and
bounded in length.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable

from .store import SERVER_HISTORY, ConnectionStore

logger = logging.getLogger('nuxbe.shell.history')

MAX_SERVER_HISTORY = 5

# Upper bound for the remote revocation call made while removing an entry
REVOKE_TIMEOUT = 5.0

Revoker = Callable[[str], Awaitable[object]]


@dataclass
class HistoryEntry:
    url: str
    display_name: str
    last_connected_at: str

    def to_dict(self) -> dict:
        return {
            'url': self.url,
            'appName': self.display_name,
            'lastConnected': self.last_connected_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'HistoryEntry':
        url = data['url']
        return cls(
            url=url,
            display_name=data.get('appName') or url,
            last_connected_at=data.get('lastConnected') or '',
        )


class ServerHistory:
    """Deduplicated, recency-ordered list of servers built on the store."""

    def __init__(
        self,
        store: ConnectionStore,
        max_entries: int = MAX_SERVER_HISTORY,
        revoker: Revoker | None = None,
    ):
        self._store = store
        self._max_entries = max_entries
        self._revoker = revoker

    def set_revoker(self, revoker: Revoker | None):
        self._revoker = revoker

    async def list(self) -> list[HistoryEntry]:
        raw = await self._store.get(SERVER_HISTORY)
        if not raw:
            return []

        try:
            items = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse server history: {e}")
            return []

        if not isinstance(items, list):
            logger.error("Server history is not a list, ignoring")
            return []

        entries = []
        for item in items:
            if isinstance(item, dict) and item.get('url'):
                entries.append(HistoryEntry.from_dict(item))
        return entries

    async def get(self, url: str) -> HistoryEntry | None:
        for entry in await self.list():
            if entry.url == url:
                return entry
        return None

    async def add(self, url: str, display_name: str | None = None) -> HistoryEntry:
        """Move (or insert) a server to the front of the history."""
        entry = HistoryEntry(
            url=url,
            display_name=display_name or url,
            last_connected_at=datetime.now(timezone.utc).isoformat(),
        )

        history = [e for e in await self.list() if e.url != url]
        history.insert(0, entry)
        history = history[:self._max_entries]

        await self._save(history)
        logger.debug(f"History updated: {url} ({len(history)} entries)")
        return entry

    async def remove(self, url: str):
        """
        Remove a server from the history.

        The device's push registration on that server is revoked first, best
        effort: failures are logged and the local entry is removed anyway.
        """
        if self._revoker is not None:
            try:
                await asyncio.wait_for(self._revoker(url), timeout=REVOKE_TIMEOUT)
            except Exception as e:
                logger.warning(f"Failed to revoke device token on {url}: {e}")

        history = [e for e in await self.list() if e.url != url]
        await self._save(history)
        logger.info(f"Removed {url} from server history")

    async def clear(self):
        await self._store.remove(SERVER_HISTORY)

    async def _save(self, history: list[HistoryEntry]):
        await self._store.set(
            SERVER_HISTORY,
            json.dumps([e.to_dict() for e in history]),
        )
