"""
Shell configuration management.

Config is stored in a JSON file in the user's app data directory, next to
the connection store.
"""

import json
import os
import platform
from pathlib import Path


# Local WebSocket port the shell page connects to
DEFAULT_PORT = 12322

# Config and store filenames
CONFIG_FILENAME = 'shell_config.json'
STORE_FILENAME = 'connection_store.json'


def get_config_dir() -> Path:
    """Get the platform-specific config directory for Nuxbe Shell."""
    system = platform.system()

    if system == 'Darwin':
        base = Path.home() / 'Library' / 'Application Support'
    elif system == 'Windows':
        base = Path(os.environ.get('APPDATA', Path.home() / 'AppData' / 'Roaming'))
    else:
        # Linux / Android / other
        base = Path(os.environ.get('XDG_CONFIG_HOME', Path.home() / '.config'))

    config_dir = base / 'NuxbeShell'
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def get_config_path() -> Path:
    """Get the full path to the config file."""
    return get_config_dir() / CONFIG_FILENAME


def get_store_path() -> Path:
    """Get the full path to the persisted connection store."""
    return get_config_dir() / STORE_FILENAME


# Default configuration
DEFAULT_CONFIG = {
    'port': DEFAULT_PORT,
    'host': '127.0.0.1',
    'log_level': 'info',
    'language': 'en',
    'health_timeout_s': 10.0,
    'config_timeout_s': 5.0,
    'loading_timeout_s': 30.0,
    'max_history': 5,
    'confirm_resume': False,  # Ask before resuming the remembered server
    'link_scheme': 'nuxbe',
}


class ShellConfig:
    """Shell configuration with file persistence."""

    def __init__(self, path: Path | None = None, overrides: dict | None = None):
        self._path = Path(path) if path else get_config_path()
        self._data = dict(DEFAULT_CONFIG)
        self.load()
        # Command-line values apply to this run only and are never saved
        self._data.update({k: v for k, v in (overrides or {}).items() if v is not None})

    @property
    def path(self) -> Path:
        return self._path

    def load(self):
        """Load config from file, creating defaults if not exists."""
        if self._path.exists():
            try:
                with open(self._path, 'r') as f:
                    saved = json.load(f)
                if isinstance(saved, dict):
                    self._data.update(saved)
            except (json.JSONDecodeError, OSError):
                pass  # Use defaults on error
        else:
            self.save()

    def save(self):
        """Persist config to file."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._path, 'w') as f:
            json.dump(self._data, f, indent=2)

    @property
    def port(self) -> int:
        return self._data.get('port', DEFAULT_PORT)

    @property
    def host(self) -> str:
        return self._data.get('host', '127.0.0.1')

    @property
    def log_level(self) -> str:
        return self._data.get('log_level', 'info')

    @property
    def language(self) -> str:
        return self._data.get('language', 'en')

    @property
    def health_timeout(self) -> float:
        return float(self._data.get('health_timeout_s', 10.0))

    @property
    def config_timeout(self) -> float:
        return float(self._data.get('config_timeout_s', 5.0))

    @property
    def loading_timeout(self) -> float:
        return float(self._data.get('loading_timeout_s', 30.0))

    @property
    def max_history(self) -> int:
        return int(self._data.get('max_history', 5))

    @property
    def confirm_resume(self) -> bool:
        return bool(self._data.get('confirm_resume', False))

    @property
    def link_scheme(self) -> str:
        return self._data.get('link_scheme', 'nuxbe')

    def __repr__(self):
        return f"ShellConfig({self._data})"
