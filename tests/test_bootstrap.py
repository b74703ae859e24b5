"""Bootstrap controller scenarios: setup, resume, deep links, reset, timeouts."""

import asyncio
from urllib.parse import parse_qsl, urlsplit

import pytest

from nuxbe_shell.bootstrap import BootstrapState
from nuxbe_shell.store import (
    DEEP_LINK_SERVER,
    DEVICE_NAME,
    FCM_TOKEN,
    PENDING_DEEP_LINK_URL,
    SERVER_URL,
)
from nuxbe_shell.supervisor import LoadingSupervisor

from conftest import FakeNativeBridge

DEMO = 'https://demo.nuxbe.com'
OTHER = 'https://other.nuxbe.com'


def query(url):
    return parse_qsl(urlsplit(url).query)


@pytest.mark.asyncio
async def test_fresh_install_requires_setup(make_controller, web_bridge, probe):
    controller = make_controller(web_bridge)

    outcome = await controller.bootstrap()

    assert outcome.state == BootstrapState.SETUP_REQUIRED
    assert outcome.command is None
    assert outcome.history == []
    assert probe.calls == []


@pytest.mark.asyncio
async def test_remembered_server_resumes_directly(make_controller, web_bridge, store, probe):
    await store.set(SERVER_URL, DEMO)
    probe.names[DEMO] = 'Demo Co'
    controller = make_controller(web_bridge)

    outcome = await controller.bootstrap()

    assert outcome.state == BootstrapState.NAVIGATION_COMMITTED
    assert outcome.command.url == f'{DEMO}/login-mobile'
    assert outcome.command.redirect is None
    assert outcome.command.display_name == 'Demo Co'

    entries = await controller.history.list()
    assert [(e.url, e.display_name) for e in entries] == [(DEMO, 'Demo Co')]
    assert controller.supervisor.command == outcome.command


@pytest.mark.asyncio
async def test_config_failure_falls_back_to_url(make_controller, web_bridge, store, probe):
    await store.set(SERVER_URL, DEMO)
    probe.config_status[DEMO] = 500
    controller = make_controller(web_bridge)

    outcome = await controller.bootstrap()

    assert outcome.state == BootstrapState.NAVIGATION_COMMITTED
    assert outcome.command.display_name == DEMO
    assert (await controller.history.list())[0].display_name == DEMO


@pytest.mark.asyncio
async def test_invalid_remembered_server_requires_setup(make_controller, web_bridge, store):
    await store.set(SERVER_URL, 'ftp://nowhere')
    controller = make_controller(web_bridge)

    outcome = await controller.bootstrap()

    assert outcome.state == BootstrapState.SETUP_REQUIRED


@pytest.mark.asyncio
async def test_reset_forgets_server_and_markers_but_keeps_history(make_controller, web_bridge, store):
    controller = make_controller(web_bridge)
    await store.set(SERVER_URL, DEMO)
    await controller.history.add(DEMO, 'Demo Co')
    await controller.resolver.post_notification_tap(OTHER, '/y')

    outcome = await controller.bootstrap(reset=True)

    assert outcome.state == BootstrapState.SETUP_REQUIRED
    assert await store.get(SERVER_URL) is None
    assert await store.get(DEEP_LINK_SERVER) is None
    assert [e.url for e in outcome.history] == [DEMO]


@pytest.mark.asyncio
async def test_resume_mid_session_is_a_no_op(make_controller, native_bridge, store, probe):
    await store.set(SERVER_URL, DEMO)
    controller = make_controller(native_bridge)

    outcome = await controller.bootstrap(location=f'{DEMO}/dashboard')

    assert outcome.command is None
    assert outcome.state == BootstrapState.INIT
    assert probe.calls == []
    assert native_bridge.setup_calls == 1


@pytest.mark.asyncio
async def test_resume_on_local_dev_server_is_a_no_op(make_controller, native_bridge, store, probe):
    await store.set(SERVER_URL, 'http://localhost:8000')
    controller = make_controller(native_bridge)

    outcome = await controller.bootstrap(location='http://localhost:8000/dashboard')
    assert outcome.command is None
    assert probe.calls == []

    outcome = await controller.bootstrap(location='https://elsewhere.example.com/')
    assert outcome.state == BootstrapState.NAVIGATION_COMMITTED
    assert outcome.command.server_url == 'http://localhost:8000'


@pytest.mark.asyncio
async def test_native_push_params_in_order(make_controller, native_bridge, store):
    await store.set(SERVER_URL, DEMO)
    await store.set(FCM_TOKEN, 'tok-1')
    await store.set(DEVICE_NAME, "Anna's iPhone")
    controller = make_controller(native_bridge)

    outcome = await controller.bootstrap()

    assert query(outcome.command.url) == [
        ('fcm_token', 'tok-1'),
        ('platform', 'ios'),
        ('device_id', 'device-123'),
        ('device_model', 'iPhone15,2'),
        ('device_os_version', '17.4'),
        ('device_manufacturer', 'Apple'),
        ('device_name', "Anna's iPhone"),
    ]


@pytest.mark.asyncio
async def test_absent_device_data_is_omitted(make_controller, store):
    bridge = FakeNativeBridge(store, manufacturer=None)
    await store.set(SERVER_URL, DEMO)
    await store.set(FCM_TOKEN, 'tok-1')
    controller = make_controller(bridge)

    outcome = await controller.bootstrap()

    keys = [k for k, _ in query(outcome.command.url)]
    assert keys == ['fcm_token', 'platform', 'device_id', 'device_model', 'device_os_version']


@pytest.mark.asyncio
async def test_no_push_params_without_token_or_on_web(make_controller, native_bridge, web_bridge, store):
    await store.set(SERVER_URL, DEMO)
    outcome = await make_controller(native_bridge).bootstrap()
    assert outcome.command.url == f'{DEMO}/login-mobile'

    await store.set(FCM_TOKEN, 'tok-1')
    outcome = await make_controller(web_bridge).bootstrap()
    assert outcome.command.url == f'{DEMO}/login-mobile'


@pytest.mark.asyncio
async def test_launch_marker_beats_notification_marker(make_controller, store):
    bridge = FakeNativeBridge(store, launch_marker=(OTHER, '/x'))
    await store.set(SERVER_URL, DEMO)
    controller = make_controller(bridge)
    await controller.resolver.post_notification_tap('https://third.nuxbe.com', '/y')

    outcome = await controller.bootstrap()

    assert outcome.command.server_url == OTHER
    assert outcome.command.redirect == '/x'
    assert query(outcome.command.url) == [('redirect', '/x')]
    assert await store.get(SERVER_URL) == OTHER
    assert await store.get(DEEP_LINK_SERVER) is None
    assert await store.get(PENDING_DEEP_LINK_URL) is None
    assert (await controller.history.list())[0].url == OTHER


@pytest.mark.asyncio
async def test_deep_link_is_consumed_once(make_controller, web_bridge, store):
    await store.set(SERVER_URL, DEMO)
    controller = make_controller(web_bridge)
    await controller.resolver.post_notification_tap(DEMO, '/orders/1')

    first = await controller.bootstrap()
    second = await controller.bootstrap()

    assert first.command.redirect == '/orders/1'
    assert second.command.redirect is None


@pytest.mark.asyncio
async def test_deep_link_on_fresh_install_names_the_server(make_controller, store):
    bridge = FakeNativeBridge(store, launch_marker=(OTHER, '/x'))
    controller = make_controller(bridge)

    outcome = await controller.bootstrap()

    assert outcome.state == BootstrapState.NAVIGATION_COMMITTED
    assert outcome.command.server_url == OTHER
    assert await store.get(SERVER_URL) == OTHER


@pytest.mark.asyncio
async def test_native_features_initialized_once(make_controller, native_bridge, store):
    await store.set(SERVER_URL, DEMO)
    controller = make_controller(native_bridge)

    await controller.bootstrap()
    await controller.bootstrap()
    await controller.on_external_link(f'nuxbe://open?server={OTHER}&path=/x')

    assert native_bridge.setup_calls == 1
    assert controller.session.native_features_initialized


@pytest.mark.asyncio
async def test_connect_normalizes_before_network(make_controller, web_bridge, probe, store):
    controller = make_controller(web_bridge)

    outcome = await controller.connect('demo.nuxbe.com')

    assert probe.calls[0] == ('health', DEMO)
    assert outcome.state == BootstrapState.NAVIGATION_COMMITTED
    assert outcome.command.url == f'{DEMO}/login-mobile'
    assert await store.get(SERVER_URL) == DEMO


@pytest.mark.asyncio
async def test_connect_errors_are_user_facing(make_controller, web_bridge, probe, store):
    controller = make_controller(web_bridge)
    await controller.history.add(OTHER, 'Other')

    empty = await controller.connect('   ')
    assert empty.state == BootstrapState.SETUP_REQUIRED
    assert empty.error == 'Please enter a server URL'

    invalid = await controller.connect('ftp://demo.nuxbe.com')
    assert invalid.error.startswith('Please enter a valid URL')

    probe.healthy = False
    unreachable = await controller.connect('demo.nuxbe.com')
    assert unreachable.error.startswith('Server not reachable')
    assert [e.url for e in unreachable.history] == [OTHER]
    assert await store.get(SERVER_URL) is None


@pytest.mark.asyncio
async def test_connect_errors_localized(make_controller, web_bridge):
    controller = make_controller(web_bridge, language='de')
    outcome = await controller.connect('')
    assert outcome.error == 'Bitte gib eine Server-URL ein'


@pytest.mark.asyncio
async def test_reconnect_prompt_when_confirmation_enabled(make_controller, web_bridge, store, probe):
    await store.set(SERVER_URL, DEMO)
    probe.names[DEMO] = 'Demo Co'
    controller = make_controller(web_bridge, confirm_resume=True)

    prompt = await controller.bootstrap()
    assert prompt.state == BootstrapState.RECONNECT_PROMPT
    assert prompt.display_name == 'Demo Co'
    assert prompt.command is None

    outcome = await controller.reconnect()
    assert outcome.state == BootstrapState.NAVIGATION_COMMITTED
    assert outcome.command.server_url == DEMO


@pytest.mark.asyncio
async def test_reconnect_outside_prompt_requires_setup(make_controller, web_bridge):
    controller = make_controller(web_bridge)
    outcome = await controller.reconnect()
    assert outcome.state == BootstrapState.SETUP_REQUIRED


@pytest.mark.asyncio
async def test_external_link_overrides_navigation(make_controller, web_bridge, store):
    await store.set(SERVER_URL, DEMO)
    controller = make_controller(web_bridge)
    await controller.bootstrap()

    outcome = await controller.on_external_link(f'nuxbe://open?server={OTHER}&path=/tickets/7')

    assert outcome.command.server_url == OTHER
    assert outcome.command.redirect == '/tickets/7'
    assert await store.get(SERVER_URL) == OTHER
    assert controller.supervisor.command == outcome.command


@pytest.mark.asyncio
async def test_external_link_without_path_is_ignored(make_controller, web_bridge, store):
    await store.set(SERVER_URL, DEMO)
    controller = make_controller(web_bridge)
    first = await controller.bootstrap()

    assert await controller.on_external_link(f'nuxbe://open?server={OTHER}') is None
    assert await controller.on_external_link('garbage') is None
    assert controller.supervisor.command == first.command
    assert await store.get(SERVER_URL) == DEMO


@pytest.mark.asyncio
async def test_external_link_waits_for_running_bootstrap(make_controller, web_bridge, store, probe):
    await store.set(SERVER_URL, DEMO)
    controller = make_controller(web_bridge)
    release = asyncio.Event()
    fetch_config = probe.fetch_config

    async def slow_fetch_config(url):
        await release.wait()
        return await fetch_config(url)

    probe.fetch_config = slow_fetch_config

    boot = asyncio.ensure_future(controller.bootstrap())
    await asyncio.sleep(0)
    link = asyncio.ensure_future(controller.on_external_link(f'nuxbe://open?server={OTHER}&path=/x'))
    await asyncio.sleep(0)
    release.set()
    boot_outcome, link_outcome = await asyncio.gather(boot, link)

    assert boot_outcome.command.server_url == DEMO
    assert link_outcome.command.server_url == OTHER
    assert controller.supervisor.command.server_url == OTHER


@pytest.mark.asyncio
async def test_change_server_link_returns_to_setup(make_controller, web_bridge, store):
    await store.set(SERVER_URL, DEMO)
    controller = make_controller(web_bridge)
    await controller.bootstrap()

    outcome = await controller.on_external_link('nuxbe://change-server')

    assert outcome.state == BootstrapState.SETUP_REQUIRED
    assert await store.get(SERVER_URL) is None
    assert [e.url for e in outcome.history] == [DEMO]
    assert controller.supervisor.command is None


@pytest.mark.asyncio
async def test_notification_tap_restarts_bootstrap(make_controller, web_bridge, store):
    await store.set(SERVER_URL, DEMO)
    controller = make_controller(web_bridge)

    outcome = await controller.on_notification_tap(OTHER, '/orders/9')

    assert outcome.command.server_url == OTHER
    assert outcome.command.redirect == '/orders/9'
    assert await controller.on_notification_tap(OTHER, '') is None


@pytest.mark.asyncio
async def test_reset_connection_clears_history(make_controller, web_bridge, store):
    await store.set(SERVER_URL, DEMO)
    controller = make_controller(web_bridge)
    await controller.bootstrap()

    outcome = await controller.reset_connection()

    assert outcome.state == BootstrapState.SETUP_REQUIRED
    assert outcome.history == []
    assert await store.get(SERVER_URL) is None


@pytest.mark.asyncio
async def test_remove_history_entry_revokes_token(make_controller, native_bridge, probe):
    controller = make_controller(native_bridge)
    await controller.history.add(DEMO)
    await controller.history.add(OTHER)

    remaining = await controller.remove_history_entry('demo.nuxbe.com/')

    assert probe.revoked == [(DEMO, 'device-123')]
    assert [e.url for e in remaining] == [OTHER]


@pytest.mark.asyncio
async def test_remove_history_entry_when_server_offline(make_controller, native_bridge, probe):
    probe.revoke_error = ConnectionError('offline')
    controller = make_controller(native_bridge)
    await controller.history.add(DEMO)

    assert await controller.remove_history_entry(DEMO) == []


@pytest.mark.asyncio
async def test_loading_timeout_then_cancel_keeps_history(make_controller, web_bridge, store):
    timeouts = []
    supervisor = LoadingSupervisor(timeout=0.05, on_timeout=timeouts.append)
    await store.set(SERVER_URL, DEMO)
    controller = make_controller(web_bridge, supervisor=supervisor)

    outcome = await controller.bootstrap()
    await asyncio.sleep(0.15)
    assert timeouts == [outcome.command]

    assert controller.retry_navigation() == outcome.command
    await asyncio.sleep(0.15)
    assert timeouts == [outcome.command, outcome.command]

    cancelled = await controller.cancel_navigation()
    assert cancelled.state == BootstrapState.SETUP_REQUIRED
    assert [e.url for e in cancelled.history] == [DEMO]
    assert controller.supervisor.command is None


@pytest.mark.asyncio
async def test_navigation_completed_stops_timer(make_controller, web_bridge, store):
    timeouts = []
    supervisor = LoadingSupervisor(timeout=0.05, on_timeout=timeouts.append)
    await store.set(SERVER_URL, DEMO)
    controller = make_controller(web_bridge, supervisor=supervisor)

    await controller.bootstrap()
    controller.navigation_completed()
    await asyncio.sleep(0.15)

    assert timeouts == []
