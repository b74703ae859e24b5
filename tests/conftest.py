import asyncio

import pytest
import pytest_asyncio

from nuxbe_shell.bootstrap import BootstrapController
from nuxbe_shell.native.base import DeviceInfo, PlatformBridge, WebBridge
from nuxbe_shell.probe import ServerConfig
from nuxbe_shell.store import MemoryStore
from nuxbe_shell.supervisor import LoadingSupervisor


class FakeProbe:
    """Scripted probe: no network, records every call."""

    def __init__(self, healthy=True, names=None, config_status=None):
        self.healthy = healthy
        self.names = dict(names or {})
        self.config_status = dict(config_status or {})
        self.calls = []
        self.revoked = []
        self.revoke_error = None

    async def check_health(self, url):
        self.calls.append(('health', url))
        if isinstance(self.healthy, bool):
            return self.healthy
        return url in self.healthy

    async def fetch_config(self, url):
        self.calls.append(('config', url))
        if self.config_status.get(url, 200) != 200:
            return None
        if url not in self.names:
            return None
        return ServerConfig(display_name=self.names[url], raw={'app_name': self.names[url]})

    async def revoke_device_token(self, url, device_id):
        self.calls.append(('revoke', url))
        if self.revoke_error is not None:
            raise self.revoke_error
        self.revoked.append((url, device_id))
        return True


class FakeNativeBridge(PlatformBridge):
    is_native = True
    platform = 'ios'
    shell_base_url = 'capacitor://localhost'

    def __init__(self, store, launch_marker=None, manufacturer='Apple'):
        super().__init__(store)
        self.launch_marker = launch_marker
        self.manufacturer = manufacturer
        self.setup_calls = 0

    async def get_device_id(self):
        return 'device-123'

    async def get_device_info(self):
        return DeviceInfo(
            platform='ios',
            model='iPhone15,2',
            os_version='17.4',
            manufacturer=self.manufacturer,
        )

    async def take_launch_marker(self):
        marker, self.launch_marker = self.launch_marker, None
        return marker

    async def setup_native_features(self):
        self.setup_calls += 1


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def probe():
    return FakeProbe()


@pytest.fixture
def native_bridge(store):
    return FakeNativeBridge(store)


@pytest.fixture
def web_bridge(store):
    return WebBridge(store, user_agent='pytest')


@pytest_asyncio.fixture
async def make_controller(store, probe):
    """Factory for controllers sharing the test's store and probe."""
    created = []

    def factory(bridge, **kwargs):
        kwargs.setdefault('supervisor', LoadingSupervisor(timeout=60))
        controller = BootstrapController(store, bridge, probe, **kwargs)
        created.append(controller)
        return controller

    yield factory

    for controller in created:
        controller.supervisor.cancel()
    await asyncio.sleep(0)
