"""
Entry point for Nuxbe Shell.

Usage:
    python -m nuxbe_shell
    python -m nuxbe_shell --config ./shell_config.json --language de
    nuxbe-shell --confirm-resume  (if installed via pip)

Flags override the config file for this run only.
"""

import argparse
import logging

import uvicorn

from . import __version__
from .config import ShellConfig
from .messages import TRANSLATIONS


def setup_logging(level: str = 'info'):
    """Configure logging for the shell."""
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=numeric_level,
        format='%(asctime)s [%(name)s] %(levelname)s: %(message)s',
        datefmt='%H:%M:%S',
    )

    # The shell page polls /status
    logging.getLogger('uvicorn.access').setLevel(logging.WARNING)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog='nuxbe-shell',
        description='Server connection and deep-link routing for the Nuxbe app',
    )
    parser.add_argument(
        '--config', '-c',
        default=None,
        help='Path to shell_config.json (default: per-user config dir)',
    )
    parser.add_argument('--port', '-p', type=int, default=None)
    parser.add_argument('--host', default=None)
    parser.add_argument(
        '--log-level',
        choices=['debug', 'info', 'warning', 'error'],
        default=None,
    )
    parser.add_argument(
        '--language',
        choices=sorted(TRANSLATIONS),
        default=None,
        help='Language of setup errors and loading messages',
    )
    parser.add_argument(
        '--confirm-resume',
        action=argparse.BooleanOptionalAction,
        default=None,
        help='Ask before reopening the remembered server',
    )
    parser.add_argument(
        '--version', '-v',
        action='version',
        version=f'nuxbe-shell {__version__}',
    )
    return parser.parse_args(argv)


def load_config(args: argparse.Namespace) -> ShellConfig:
    return ShellConfig(
        path=args.config,
        overrides={
            'port': args.port,
            'host': args.host,
            'log_level': args.log_level,
            'language': args.language,
            'confirm_resume': args.confirm_resume,
        },
    )


def main(argv=None):
    config = load_config(parse_args(argv))
    setup_logging(config.log_level)

    logger = logging.getLogger('nuxbe.shell')
    logger.info(f"Nuxbe Shell v{__version__} (config: {config.path})")

    from .server import app

    # The lifespan picks this up instead of loading the default config
    app.state.config = config
    uvicorn.run(
        app,
        host=config.host,
        port=config.port,
        log_level=config.log_level,
        ws='websockets',
    )


if __name__ == '__main__':
    main()
