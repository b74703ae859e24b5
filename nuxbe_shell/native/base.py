"""
Platform capability interface.

The controller and the shell page reach native features only through a
PlatformBridge instance: web runs get a WebBridge, Android runs get an
AndroidBridge.
"""

import logging
import uuid
from dataclasses import dataclass

from .. import __version__
from ..store import DEVICE_ID, DEVICE_NAME, FCM_TOKEN, ConnectionStore
from ..urls import origin_of

logger = logging.getLogger('nuxbe.shell.native')


@dataclass
class DeviceInfo:
    platform: str
    model: str | None = None
    os_version: str | None = None
    manufacturer: str | None = None


class PlatformBridge:
    """Capabilities shared by every platform variant."""

    is_native = False
    platform = 'web'
    shell_base_url = '/'

    def __init__(self, store: ConnectionStore):
        self._store = store

    def is_shell_location(self, location: str | None, server_url: str | None = None) -> bool:
        """
        True unless the page is already on the remembered server.

        Pages on the shell's own origin (`shell_base_url`) always count as the
        shell. Anything else on another origin reruns the start-up pass.
        """
        if not location:
            return True
        try:
            if self._on_shell_origin(location):
                return True
            return not (server_url and origin_of(location) == origin_of(server_url))
        except ValueError:
            logger.warning(f"Unparseable page location {location!r}")
            return True

    def _on_shell_origin(self, location: str) -> bool:
        if '://' not in self.shell_base_url:
            # Served by the shell itself, so the page sees a relative location
            return '://' not in location
        return origin_of(location) == origin_of(self.shell_base_url)

    async def get_device_id(self) -> str:
        raise NotImplementedError

    async def get_device_info(self) -> DeviceInfo:
        raise NotImplementedError

    async def get_push_token(self) -> str | None:
        return await self._store.get(FCM_TOKEN)

    async def register_push_token(self, token: str):
        """Called when the platform delivers a push registration token."""
        await self._store.set(FCM_TOKEN, token)
        logger.info("Push token registered")

    async def get_device_name(self) -> str | None:
        return await self._store.get(DEVICE_NAME)

    async def take_launch_marker(self) -> tuple[str, str] | None:
        """Deep link (server, path) that launched this process, if any."""
        return None

    async def setup_native_features(self):
        """Expose native capabilities to the loaded page."""

    def bridge_origins(self, server_url: str | None) -> list[str]:
        """Origins the native bridge script may be injected into."""
        origins = ['https://localhost', 'http://localhost']
        if server_url:
            origins.append(origin_of(server_url))
        return origins

    def capabilities(self) -> dict:
        return {
            'is_native': self.is_native,
            'platform': self.platform,
            'version': __version__,
        }


class WebBridge(PlatformBridge):
    """Browser or desktop run without native capabilities."""

    def __init__(self, store: ConnectionStore, user_agent: str | None = None):
        super().__init__(store)
        self._user_agent = user_agent

    async def get_device_id(self) -> str:
        device_id = await self._store.get(DEVICE_ID)
        if not device_id:
            device_id = str(uuid.uuid4())
            await self._store.set(DEVICE_ID, device_id)
        return device_id

    async def get_device_info(self) -> DeviceInfo:
        return DeviceInfo(
            platform='web',
            model='Web Browser',
            os_version=self._user_agent,
        )
