"""
Android entry point for Nuxbe Shell.

Kivy/Buildozer requires a main.py at the app root.
This starts the shell's WebSocket server as an Android foreground service.
"""

import os
import sys

# Ensure the package is importable
sys.path.insert(0, os.path.dirname(__file__))


def start_service():
    """Start the shell core as an Android foreground service."""
    from nuxbe_shell.server_android import main
    main()


if __name__ == '__main__':
    # When running as a service, start directly
    start_service()
