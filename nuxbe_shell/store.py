"""
Persisted connection store.

A flat string key/value namespace that survives app restarts. Keys are
independent: there are no transactions across keys, so callers order their
writes so that a crash between two of them leaves a usable state.
"""

import asyncio
import json
import logging
import os
from pathlib import Path

logger = logging.getLogger('nuxbe.shell.store')

# ─── Well-known keys ────────────────────────────────────────────────────────
# Shared with the native launcher code, which writes some of them directly.

SERVER_URL = 'server_url'
SERVER_HISTORY = 'server_history'
FCM_TOKEN = 'fcm_token'
DEVICE_NAME = 'device_name'
DEVICE_ID = 'nuxbe_device_id'

# Set by the native launcher when the process was started from a notification
PENDING_DEEP_LINK_URL = 'pending_deep_link_url'
PENDING_DEEP_LINK_PATH = 'pending_deep_link_path'

# Set by the in-process notification tap handler
DEEP_LINK_SERVER = 'deep_link_server'
DEEP_LINK_TARGET = 'deep_link_target'


class ConnectionStore:
    """Async get/set/remove over string keys."""

    async def get(self, key: str) -> str | None:
        raise NotImplementedError

    async def set(self, key: str, value: str):
        raise NotImplementedError

    async def remove(self, key: str):
        raise NotImplementedError


class MemoryStore(ConnectionStore):
    """Dict-backed store for web sessions and tests."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str):
        self._data[key] = value

    async def remove(self, key: str):
        self._data.pop(key, None)

    def snapshot(self) -> dict[str, str]:
        return dict(self._data)


class JsonFileStore(ConnectionStore):
    """
    Store persisted as a single JSON object on disk.

    The file is read once, on first access. Every write replaces the whole
    file through a temp file and os.replace, so readers never see a partial
    file. Blocking file I/O runs in the default executor.
    """

    def __init__(self, path: Path):
        self._path = Path(path)
        self._data: dict[str, str] | None = None
        # Covers the lazy load and every mutate-plus-flush, so files land in order
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    async def get(self, key: str) -> str | None:
        async with self._lock:
            data = await self._ensure_loaded()
            return data.get(key)

    async def set(self, key: str, value: str):
        async with self._lock:
            data = await self._ensure_loaded()
            data[key] = value
            await self._flush()

    async def remove(self, key: str):
        async with self._lock:
            data = await self._ensure_loaded()
            if key in data:
                del data[key]
                await self._flush()

    async def _ensure_loaded(self) -> dict[str, str]:
        if self._data is None:
            loop = asyncio.get_running_loop()
            self._data = await loop.run_in_executor(None, self._read)
        return self._data

    def _read(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            with open(self._path, 'r', encoding='utf-8') as f:
                raw = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.error(f"Could not read connection store {self._path}: {e}")
            return {}
        if not isinstance(raw, dict):
            logger.error(f"Connection store {self._path} is not a JSON object, ignoring")
            return {}
        return {str(k): str(v) for k, v in raw.items() if v is not None}

    async def _flush(self):
        snapshot = dict(self._data or {})
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._write, snapshot)

    def _write(self, data: dict[str, str]):
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + '.tmp')
        with open(tmp, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2)
        os.replace(tmp, self._path)
