"""
Shell session wiring and action routing, shared by both servers.

The desktop server (FastAPI) and the Android server (websockets) only differ
in how they accept connections; every message goes through handle_message.
"""

import logging
from typing import Awaitable, Callable

from . import __version__
from .bootstrap import BootstrapController, BootstrapOutcome, BootstrapState
from .config import ShellConfig, get_store_path
from .history import ServerHistory
from .messages import t
from .native.base import PlatformBridge, WebBridge
from .probe import ServerProbe
from .protocol import (
    ACTIONS,
    error_event,
    history_event,
    loading_timeout_event,
    navigate_event,
    parse_message,
    reconnect_prompt_event,
    setup_required_event,
    status_event,
)
from .store import ConnectionStore, JsonFileStore
from .supervisor import LoadingSupervisor

logger = logging.getLogger('nuxbe.shell')

Send = Callable[[str], Awaitable[None]]


class ShellSession:
    """Everything one app process needs, built from the config."""

    def __init__(
        self,
        config: ShellConfig,
        store: ConnectionStore | None = None,
        bridge: PlatformBridge | None = None,
        probe: ServerProbe | None = None,
    ):
        self.config = config
        self.store = store or JsonFileStore(get_store_path())
        self.bridge = bridge or WebBridge(self.store)
        self.probe = probe or ServerProbe(
            health_timeout=config.health_timeout,
            config_timeout=config.config_timeout,
        )
        self.supervisor = LoadingSupervisor(
            timeout=config.loading_timeout,
            on_timeout=self._on_loading_timeout,
        )
        self.controller = BootstrapController(
            self.store,
            self.bridge,
            self.probe,
            history=ServerHistory(self.store, max_entries=config.max_history),
            supervisor=self.supervisor,
            confirm_resume=config.confirm_resume,
            language=config.language,
            link_scheme=config.link_scheme,
        )
        self.connections: set[Send] = set()

    async def broadcast(self, message: str):
        """Send a message to all connected clients."""
        disconnected = set()
        for send in self.connections:
            try:
                await send(message)
            except Exception:
                disconnected.add(send)
        self.connections.difference_update(disconnected)

    def status(self) -> str:
        server_url = self.controller.session.server_url
        capabilities = self.bridge.capabilities()
        capabilities['bridge_origins'] = self.bridge.bridge_origins(server_url)
        return status_event(
            version=__version__,
            capabilities=capabilities,
            state=self.controller.state.value,
            server_url=server_url,
        )

    def outcome_event(self, outcome: BootstrapOutcome) -> str:
        if outcome.command is not None:
            loading_text = t(
                'loading.openingServer', self.config.language,
                name=outcome.command.display_name,
            )
            return navigate_event(outcome.command.to_dict(), loading_text)

        if outcome.state == BootstrapState.RECONNECT_PROMPT:
            return reconnect_prompt_event(outcome.server_url, outcome.display_name)

        if outcome.state == BootstrapState.SETUP_REQUIRED:
            return setup_required_event(
                [e.to_dict() for e in outcome.history],
                outcome.error,
            )

        return self.status()

    async def _on_loading_timeout(self, command):
        lang = self.config.language
        await self.broadcast(loading_timeout_event(
            url=command.url,
            title=t('loading.connectionFailedTitle', lang),
            message=t('loading.connectionFailedMessage', lang),
            retry_label=t('loading.retry', lang),
            cancel_label=t('loading.backToServerSelection', lang),
        ))


async def handle_message(session: ShellSession, send: Send, raw: str):
    """Route an incoming message to the appropriate handler."""
    try:
        msg = parse_message(raw)
    except ValueError as e:
        await send(error_event(str(e), 'parse_error'))
        return

    action = msg.get('action')
    logger.debug(f"Action: {action}")

    if action not in ACTIONS:
        await send(error_event(f"Unknown action: {action}", 'unknown_action'))
        return

    try:
        await _dispatch(session, send, action, msg)
    except Exception as e:
        logger.error(f"Action {action} failed: {e}")
        await send(error_event(f"{action} failed: {e}", 'internal_error'))


async def _dispatch(session: ShellSession, send: Send, action, msg: dict):
    controller = session.controller

    if action == 'get_status':
        await send(session.status())

    elif action == 'bootstrap':
        outcome = await controller.bootstrap(
            reset=bool(msg.get('reset')),
            location=msg.get('location'),
        )
        await send(session.outcome_event(outcome))

    elif action == 'connect':
        outcome = await controller.connect(msg.get('url'))
        await send(session.outcome_event(outcome))

    elif action == 'reconnect':
        outcome = await controller.reconnect()
        await send(session.outcome_event(outcome))

    elif action == 'change_server':
        outcome = await controller.change_server()
        await send(session.outcome_event(outcome))

    elif action == 'reset':
        outcome = await controller.reset_connection()
        await send(session.outcome_event(outcome))

    elif action == 'get_history':
        history = await controller.history.list()
        await send(history_event([e.to_dict() for e in history]))

    elif action == 'remove_server':
        url = msg.get('url')
        if not url:
            await send(error_event('No url specified', 'missing_param'))
            return
        history = await controller.remove_history_entry(url)
        await send(history_event([e.to_dict() for e in history]))

    elif action == 'open_url':
        url = msg.get('url')
        if not url:
            await send(error_event('No url specified', 'missing_param'))
            return
        outcome = await controller.on_external_link(url)
        if outcome is not None:
            await send(session.outcome_event(outcome))

    elif action == 'notification_tap':
        url = msg.get('url')
        path = msg.get('path')
        if not url or not path:
            await send(error_event('Notification needs url and path', 'missing_param'))
            return
        outcome = await controller.on_notification_tap(url, path)
        if outcome is not None:
            await send(session.outcome_event(outcome))

    elif action == 'push_token':
        token = msg.get('token')
        if not token:
            await send(error_event('No token specified', 'missing_param'))
            return
        await session.bridge.register_push_token(token)

    elif action == 'navigation_completed':
        controller.navigation_completed()

    elif action == 'retry':
        command = controller.retry_navigation()
        if command is None:
            await send(error_event('No navigation to retry', 'nothing_to_retry'))
            return
        loading_text = t('loading.openingServer', session.config.language, name=command.display_name)
        await send(navigate_event(command.to_dict(), loading_text))

    elif action == 'cancel':
        outcome = await controller.cancel_navigation()
        await send(session.outcome_event(outcome))
