"""
Reachability and identity probes against a candidate server.

Every call is bounded by a fixed timeout and fails soft: callers get a
boolean or None, never an exception.
"""

import asyncio
import logging
from dataclasses import dataclass, field

import aiohttp

from . import __version__

logger = logging.getLogger('nuxbe.shell.probe')

HEALTH_TIMEOUT = 10.0
CONFIG_TIMEOUT = 5.0
REVOKE_TIMEOUT = 5.0

HEALTH_PATH = '/api/health'
CONFIG_PATH = '/api/mobile/config'
REVOKE_PATH = '/api/mobile/device-token/delete'

USER_AGENT = f'Nuxbe-Mobile/{__version__}'


@dataclass
class ServerConfig:
    """What a server reports about itself at /api/mobile/config."""
    display_name: str | None = None
    raw: dict = field(default_factory=dict)

    @classmethod
    def from_json(cls, data: dict) -> 'ServerConfig':
        name = data.get('app_name')
        if not isinstance(name, str) or not name.strip():
            name = None
        return cls(display_name=name.strip() if name else None, raw=data)


class ServerProbe:
    """Health check, config fetch and token revocation over HTTP."""

    def __init__(
        self,
        health_timeout: float = HEALTH_TIMEOUT,
        config_timeout: float = CONFIG_TIMEOUT,
        revoke_timeout: float = REVOKE_TIMEOUT,
    ):
        self._health_timeout = health_timeout
        self._config_timeout = config_timeout
        self._revoke_timeout = revoke_timeout

    def _session(self, timeout: float) -> aiohttp.ClientSession:
        return aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=timeout),
            headers={'Accept': 'application/json', 'User-Agent': USER_AGENT},
        )

    async def check_health(self, url: str) -> bool:
        """True iff GET {url}/api/health answers 2xx with a JSON body."""
        health_url = f"{url}{HEALTH_PATH}"
        try:
            async with self._session(self._health_timeout) as session:
                async with session.get(health_url) as response:
                    await response.json(content_type=None)
                    ok = 200 <= response.status < 300
                    if not ok:
                        logger.warning(f"Health check {health_url}: status {response.status}")
                    return ok
        except asyncio.TimeoutError:
            logger.warning(f"Health check {health_url}: timeout after {self._health_timeout}s")
        except (aiohttp.ClientError, ValueError) as e:
            logger.warning(f"Health check {health_url} failed: {e}")
        return False

    async def fetch_config(self, url: str) -> ServerConfig | None:
        """Server config, or None if the server doesn't provide one."""
        config_url = f"{url}{CONFIG_PATH}"
        try:
            async with self._session(self._config_timeout) as session:
                async with session.get(config_url) as response:
                    if not 200 <= response.status < 300:
                        logger.debug(f"Config {config_url}: status {response.status}")
                        return None
                    data = await response.json(content_type=None)
        except asyncio.TimeoutError:
            logger.debug(f"Config {config_url}: timeout after {self._config_timeout}s")
            return None
        except (aiohttp.ClientError, ValueError) as e:
            logger.debug(f"Config {config_url} failed: {e}")
            return None

        if not isinstance(data, dict):
            return None
        return ServerConfig.from_json(data)

    async def revoke_device_token(self, url: str, device_id: str) -> bool:
        """Ask a server to forget this device's push registration."""
        revoke_url = f"{url}{REVOKE_PATH}"
        try:
            async with self._session(self._revoke_timeout) as session:
                async with session.post(revoke_url, json={'device_id': device_id}) as response:
                    ok = 200 <= response.status < 300
                    if not ok:
                        logger.warning(f"Token revocation {revoke_url}: status {response.status}")
                    return ok
        except asyncio.TimeoutError:
            logger.warning(f"Token revocation {revoke_url}: timeout after {self._revoke_timeout}s")
        except aiohttp.ClientError as e:
            logger.warning(f"Token revocation {revoke_url} failed: {e}")
        return False
