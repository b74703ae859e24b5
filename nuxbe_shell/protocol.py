"""
WebSocket protocol definitions for shell page <-> core communication.

All messages are JSON objects with either an 'action' key (page -> core)
or an 'event' key (core -> page).
"""

import json


# ─── Page → Core (Actions) ──────────────────────────────────────────────────

ACTIONS = {
    'get_status',
    'bootstrap',
    'connect',
    'reconnect',
    'change_server',
    'reset',
    'get_history',
    'remove_server',
    'open_url',
    'notification_tap',
    'push_token',
    'navigation_completed',
    'retry',
    'cancel',
}


def make_command(action: str, **kwargs) -> str:
    """Create a JSON action string to send to the core."""
    msg = {'action': action, **kwargs}
    return json.dumps(msg)


# ─── Core → Page (Events) ───────────────────────────────────────────────────

def status_event(version: str, capabilities: dict, state: str, server_url: str | None = None) -> str:
    return json.dumps({
        'event': 'status',
        'version': version,
        'capabilities': capabilities,
        'state': state,
        'server_url': server_url,
    })


def navigate_event(command: dict, loading_text: str) -> str:
    return json.dumps({
        'event': 'navigate',
        'url': command['url'],
        'server_url': command['server_url'],
        'display_name': command['display_name'],
        'redirect': command['redirect'],
        'loading_text': loading_text,
    })


def setup_required_event(history: list[dict], error: str | None = None) -> str:
    return json.dumps({
        'event': 'setup_required',
        'history': history,
        'error': error,
    })


def reconnect_prompt_event(server_url: str, display_name: str | None) -> str:
    return json.dumps({
        'event': 'reconnect_prompt',
        'server_url': server_url,
        'display_name': display_name or server_url,
    })


def history_event(history: list[dict]) -> str:
    return json.dumps({
        'event': 'history',
        'history': history,
    })


def loading_timeout_event(
    url: str,
    title: str,
    message: str,
    retry_label: str,
    cancel_label: str,
) -> str:
    return json.dumps({
        'event': 'loading_timeout',
        'url': url,
        'title': title,
        'message': message,
        'retry_label': retry_label,
        'cancel_label': cancel_label,
    })


def error_event(message: str, code: str = 'unknown') -> str:
    return json.dumps({
        'event': 'error',
        'message': message,
        'code': code,
    })


# ─── Parsing ────────────────────────────────────────────────────────────────

def parse_message(raw: str) -> dict:
    """Parse an incoming JSON message. Returns dict or raises ValueError."""
    try:
        msg = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON: {e}")

    if not isinstance(msg, dict):
        raise ValueError("Message must be a JSON object")

    if 'action' not in msg and 'event' not in msg:
        raise ValueError("Message must have 'action' or 'event' key")

    return msg
