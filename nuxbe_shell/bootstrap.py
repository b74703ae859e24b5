"""
Bootstrap controller: decides which server to open and where to land.

One pass per app start (plus re-entry on connect, change-server, reset and
external links):

    init -> reset_check -> setup_required
                        -> resume_check -> setup_required
                                        -> reconnect_prompt
                                        -> direct_resume -> feature_init
                                                         -> navigation_committed

Every pass that navigates ends in exactly one NavigationCommand, watched by
the loading supervisor. All passes are serialized through one lock, so an
external link arriving mid-bootstrap is applied after it, never interleaved.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum

from .deeplink import DeepLinkResolver, PendingDeepLink
from .history import HistoryEntry, ServerHistory
from .messages import t
from .native.base import PlatformBridge
from .probe import ServerProbe
from .store import SERVER_URL, ConnectionStore
from .supervisor import LoadingSupervisor
from .urls import build_login_url, normalize_path, normalize_url, parse_app_link

logger = logging.getLogger('nuxbe.shell.bootstrap')

SOURCE_LINK = 'link'


class BootstrapState(str, Enum):
    INIT = 'init'
    RESET_CHECK = 'reset_check'
    SETUP_REQUIRED = 'setup_required'
    RESUME_CHECK = 'resume_check'
    DIRECT_RESUME = 'direct_resume'
    RECONNECT_PROMPT = 'reconnect_prompt'
    FEATURE_INIT = 'feature_init'
    NAVIGATION_COMMITTED = 'navigation_committed'


@dataclass
class Session:
    """In-memory state for the current process. Never persisted."""
    server_url: str | None = None
    display_name: str | None = None
    native_features_initialized: bool = False


@dataclass(frozen=True)
class NavigationCommand:
    url: str
    server_url: str
    display_name: str
    redirect: str | None = None

    def to_dict(self) -> dict:
        return {
            'url': self.url,
            'server_url': self.server_url,
            'display_name': self.display_name,
            'redirect': self.redirect,
        }


@dataclass
class BootstrapOutcome:
    state: BootstrapState
    command: NavigationCommand | None = None
    error: str | None = None
    history: list[HistoryEntry] = field(default_factory=list)
    server_url: str | None = None
    display_name: str | None = None

    def to_dict(self) -> dict:
        return {
            'state': self.state.value,
            'command': self.command.to_dict() if self.command else None,
            'error': self.error,
            'history': [e.to_dict() for e in self.history],
            'server_url': self.server_url,
            'display_name': self.display_name,
        }


class BootstrapController:
    """Top-level connection state machine."""

    def __init__(
        self,
        store: ConnectionStore,
        bridge: PlatformBridge,
        probe: ServerProbe,
        history: ServerHistory | None = None,
        resolver: DeepLinkResolver | None = None,
        supervisor: LoadingSupervisor | None = None,
        confirm_resume: bool = False,
        language: str = 'en',
        link_scheme: str = 'nuxbe',
    ):
        self._store = store
        self._bridge = bridge
        self._probe = probe
        self._history = history or ServerHistory(store)
        self._resolver = resolver or DeepLinkResolver(store)
        self._supervisor = supervisor or LoadingSupervisor()
        self._confirm_resume = confirm_resume
        self._language = language
        self._link_scheme = link_scheme
        self._lock = asyncio.Lock()

        self._history.set_revoker(self._revoke_device_token)

        self.state = BootstrapState.INIT
        self.session = Session()

    @property
    def history(self) -> ServerHistory:
        return self._history

    @property
    def resolver(self) -> DeepLinkResolver:
        return self._resolver

    @property
    def supervisor(self) -> LoadingSupervisor:
        return self._supervisor

    # ─── Entry points ────────────────────────────────────────────────────

    async def bootstrap(self, reset: bool = False, location: str | None = None) -> BootstrapOutcome:
        """
        Run the start-up decision pass.

        `location` is where the page currently is. A page already on the
        remembered server means the app came back to the foreground
        mid-session, which leaves the current navigation alone.
        """
        async with self._lock:
            if not reset:
                remembered = await self._remembered_server()
                if not self._bridge.is_shell_location(location, remembered):
                    return await self._resume_in_place()

            self._transition(BootstrapState.INIT)
            marker = await self._bridge.take_launch_marker()
            if marker is not None:
                await self._resolver.post_launch_marker(*marker)

            self._transition(BootstrapState.RESET_CHECK)
            if reset:
                logger.info("Reset requested, forgetting remembered server")
                self._supervisor.cancel()
                await self._forget_server()
                await self._resolver.clear()
                return await self._setup_required()

            self._transition(BootstrapState.RESUME_CHECK)
            server_url = await self._remembered_server()
            if server_url is None:
                # A deep link can name the server on its own (fresh state)
                pending = await self._resolver.peek()
                if pending is not None:
                    server_url = pending.server_url
            if server_url is None:
                return await self._setup_required()

            config = await self._probe.fetch_config(server_url)
            display_name = (config.display_name if config else None) or server_url
            self.session.server_url = server_url
            self.session.display_name = display_name

            if self._confirm_resume:
                self._transition(BootstrapState.RECONNECT_PROMPT)
                return BootstrapOutcome(
                    state=self.state,
                    history=await self._history.list(),
                    server_url=server_url,
                    display_name=display_name,
                )

            self._transition(BootstrapState.DIRECT_RESUME)
            await self._remember(server_url, display_name)
            return await self._proceed()

    async def connect(self, raw_url: str | None) -> BootstrapOutcome:
        """Connect to a server entered by hand, picked from history or scanned."""
        async with self._lock:
            raw = (raw_url or '').strip()
            if not raw:
                return await self._setup_required(t('setup.errors.emptyUrl', self._language))

            try:
                url = normalize_url(raw)
            except ValueError as e:
                logger.info(f"Rejected server URL: {e}")
                return await self._setup_required(t('setup.errors.invalidUrl', self._language))

            if not await self._probe.check_health(url):
                return await self._setup_required(t('setup.errors.serverNotReachable', self._language))

            config = await self._probe.fetch_config(url)
            display_name = (config.display_name if config else None) or url
            await self._remember(url, display_name)
            logger.info(f"Connected to {url} ({display_name})")
            return await self._proceed()

    async def reconnect(self) -> BootstrapOutcome:
        """Accept the reconnect prompt for the remembered server."""
        async with self._lock:
            if self.state != BootstrapState.RECONNECT_PROMPT or not self.session.server_url:
                return await self._setup_required()
            self._transition(BootstrapState.DIRECT_RESUME)
            await self._remember(self.session.server_url, self.session.display_name)
            return await self._proceed()

    async def change_server(self) -> BootstrapOutcome:
        """Forget the remembered server but keep the history."""
        async with self._lock:
            self._supervisor.cancel()
            await self._forget_server()
            return await self._setup_required()

    async def reset_connection(self) -> BootstrapOutcome:
        """Clear every stored identity: remembered server, markers, history."""
        async with self._lock:
            self._supervisor.cancel()
            await self._forget_server()
            await self._resolver.clear()
            await self._history.clear()
            logger.info("Connection state reset")
            return await self._setup_required()

    async def remove_history_entry(self, url: str) -> list[HistoryEntry]:
        try:
            url = normalize_url(url)
        except ValueError:
            pass  # Remove whatever is stored under the raw value
        await self._history.remove(url)
        return await self._history.list()

    async def on_external_link(self, url: str) -> BootstrapOutcome | None:
        """
        Apply a link opened while the app is running.

        Returns None when the link is ignored (no server and path).
        """
        try:
            link = parse_app_link(url, self._link_scheme)
        except ValueError as e:
            logger.warning(f"Ignoring external link: {e}")
            return None

        if link.change_server:
            return await self.change_server()

        if not link.is_navigable:
            logger.debug(f"Ignoring external link without server and path: {url}")
            return None

        try:
            server_url = normalize_url(link.server)
        except ValueError as e:
            logger.warning(f"Ignoring external link: {e}")
            return None

        target = PendingDeepLink(server_url, normalize_path(link.path), SOURCE_LINK)
        async with self._lock:
            async with self._resolver.superseded():
                self._supervisor.cancel()
                self._transition(BootstrapState.FEATURE_INIT)
                await self._initialize_native_features()
                command = await self._commit_navigation(target)
            return self._navigation_outcome(command)

    async def on_notification_tap(self, server: str, path: str) -> BootstrapOutcome | None:
        """Remember a tapped notification's target and start over from the shell."""
        posted = await self._resolver.post_notification_tap(server, path)
        if posted is None:
            return None
        return await self.bootstrap()

    def navigation_completed(self):
        self._supervisor.navigation_completed()

    def retry_navigation(self) -> NavigationCommand | None:
        return self._supervisor.retry()

    async def cancel_navigation(self) -> BootstrapOutcome:
        """Give up on the in-flight navigation; history stays as it is."""
        async with self._lock:
            self._supervisor.cancel()
            return await self._setup_required()

    # ─── Steps ───────────────────────────────────────────────────────────

    async def _resume_in_place(self) -> BootstrapOutcome:
        server_url = await self._remembered_server()
        if server_url is not None:
            self.session.server_url = server_url
            await self._initialize_native_features()
        logger.debug("Resumed mid-session, keeping current navigation")
        return BootstrapOutcome(
            state=self.state,
            server_url=self.session.server_url,
            display_name=self.session.display_name,
        )

    async def _proceed(self) -> BootstrapOutcome:
        self._transition(BootstrapState.FEATURE_INIT)
        await self._initialize_native_features()
        target = await self._resolver.take()
        command = await self._commit_navigation(target)
        return self._navigation_outcome(command)

    async def _initialize_native_features(self):
        if self.session.native_features_initialized:
            return
        try:
            await self._bridge.setup_native_features()
        except Exception as e:
            logger.error(f"Failed to initialize native features: {e}")
        self.session.native_features_initialized = True

    async def _commit_navigation(self, target: PendingDeepLink | None) -> NavigationCommand:
        redirect = None
        if target is not None:
            if target.server_url != self.session.server_url:
                # The deep link's server is authoritative
                entry = await self._history.get(target.server_url)
                display_name = entry.display_name if entry else target.server_url
                await self._remember(target.server_url, display_name)
            redirect = target.path

        params = await self._device_params()
        if redirect:
            params.append(('redirect', redirect))

        command = NavigationCommand(
            url=build_login_url(self.session.server_url, params),
            server_url=self.session.server_url,
            display_name=self.session.display_name or self.session.server_url,
            redirect=redirect,
        )
        self._transition(BootstrapState.NAVIGATION_COMMITTED)
        self._supervisor.arm(command)
        logger.info(f"Navigating to {command.server_url} (redirect: {redirect or '-'})")
        return command

    async def _device_params(self) -> list[tuple[str, str]]:
        """Push registration params, only for native runs with a token."""
        token = await self._bridge.get_push_token()
        if not token or not self._bridge.is_native:
            return []

        info = await self._bridge.get_device_info()
        device_id = await self._bridge.get_device_id()
        device_name = await self._bridge.get_device_name()

        params = [
            ('fcm_token', token),
            ('platform', info.platform),
            ('device_id', device_id),
            ('device_model', info.model),
            ('device_os_version', info.os_version),
            ('device_manufacturer', info.manufacturer),
            ('device_name', device_name),
        ]
        return [(key, value) for key, value in params if value]

    async def _setup_required(self, error: str | None = None) -> BootstrapOutcome:
        self._transition(BootstrapState.SETUP_REQUIRED)
        return BootstrapOutcome(
            state=self.state,
            error=error,
            history=await self._history.list(),
        )

    def _navigation_outcome(self, command: NavigationCommand) -> BootstrapOutcome:
        return BootstrapOutcome(
            state=self.state,
            command=command,
            server_url=command.server_url,
            display_name=command.display_name,
        )

    # ─── Store helpers ───────────────────────────────────────────────────

    async def _remembered_server(self) -> str | None:
        saved = await self._store.get(SERVER_URL)
        if not saved:
            return None
        try:
            return normalize_url(saved)
        except ValueError:
            logger.warning(f"Remembered server {saved!r} is not a valid URL, ignoring it")
            return None

    async def _remember(self, server_url: str, display_name: str | None):
        await self._store.set(SERVER_URL, server_url)
        entry = await self._history.add(server_url, display_name)
        self.session.server_url = server_url
        self.session.display_name = entry.display_name

    async def _forget_server(self):
        await self._store.remove(SERVER_URL)
        self.session.server_url = None
        self.session.display_name = None

    async def _revoke_device_token(self, url: str):
        device_id = await self._bridge.get_device_id()
        await self._probe.revoke_device_token(url, device_id)

    def _transition(self, state: BootstrapState):
        if state != self.state:
            logger.debug(f"{self.state.value} -> {state.value}")
        self.state = state
