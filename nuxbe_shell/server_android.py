"""
Lightweight WebSocket server for Android.

Uses the `websockets` library directly (no FastAPI/uvicorn) to avoid
C extension compilation issues on Android via Buildozer.

Speaks the same protocol as server.py, with the Android platform bridge.
"""

import asyncio
import logging

import websockets
from websockets.asyncio.server import serve

from . import __version__
from .config import ShellConfig, get_store_path
from .dispatch import ShellSession, handle_message
from .native.android import AndroidBridge
from .store import JsonFileStore

logger = logging.getLogger('nuxbe.shell')


def create_session(config: ShellConfig) -> ShellSession:
    store = JsonFileStore(get_store_path())
    return ShellSession(config, store=store, bridge=AndroidBridge(store))


async def handle_client(session: ShellSession, websocket):
    """Handle a single WebSocket client connection."""
    send = websocket.send
    session.connections.add(send)
    logger.info(f"Client connected (total: {len(session.connections)})")

    # Send initial status
    await send(session.status())

    try:
        async for raw in websocket:
            await handle_message(session, send, raw)
    except websockets.ConnectionClosed:
        pass
    except Exception as e:
        logger.error(f"WebSocket error: {e}")
    finally:
        session.connections.discard(send)
        logger.info(f"Client disconnected (total: {len(session.connections)})")


async def run_server(session: ShellSession, host: str = '127.0.0.1', port: int = 12322):
    """Start the WebSocket server."""
    logger.info(f"Nuxbe Shell v{__version__} (Android) on {host}:{port}")

    async def handler(websocket):
        await handle_client(session, websocket)

    async with serve(handler, host, port):
        await asyncio.Future()  # Run forever


def main():
    """Entry point for Android service."""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s [%(name)s] %(levelname)s: %(message)s',
        datefmt='%H:%M:%S',
    )

    config = ShellConfig()
    # Only the WebView on this device connects, so stay on loopback
    asyncio.run(run_server(create_session(config), config.host, config.port))


if __name__ == '__main__':
    main()
