"""
FastAPI WebSocket server for Nuxbe Shell.

The local shell page connects to ws://localhost:PORT/ws, asks the core
where to navigate and reports navigation progress back.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .config import ShellConfig
from .dispatch import ShellSession, handle_message

logger = logging.getLogger('nuxbe.shell')

# Built on startup
session: ShellSession | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown logic."""
    global session

    config = getattr(app.state, 'config', None) or ShellConfig()
    session = ShellSession(config)
    logger.info(f"Nuxbe Shell v{__version__} starting on {config.host}:{config.port}")

    yield

    session.supervisor.cancel()
    session = None
    logger.info("Nuxbe Shell shutting down")


app = FastAPI(
    title="Nuxbe Shell",
    version=__version__,
    lifespan=lifespan,
)

# The shell page is served from capacitor://localhost or http://localhost
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/status")
async def health_check():
    """Health check endpoint for the shell page."""
    return {
        "status": "ok",
        "version": __version__,
        "state": session.controller.state.value if session else None,
        "platform": session.bridge.platform if session else None,
    }


@app.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    """Main WebSocket endpoint for shell page <-> core communication."""
    await ws.accept()
    send = ws.send_text
    session.connections.add(send)
    logger.info(f"Client connected (total: {len(session.connections)})")

    # Send initial status
    await send(session.status())

    try:
        while True:
            raw = await ws.receive_text()
            await handle_message(session, send, raw)
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error(f"WebSocket error: {e}")
    finally:
        session.connections.discard(send)
        logger.info(f"Client disconnected (total: {len(session.connections)})")
