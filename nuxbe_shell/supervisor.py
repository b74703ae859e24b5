"""
Loading supervisor: a single-shot timer around the final navigation.

If the page hasn't reported a completed navigation before the timer fires,
the on_timeout callback is told so the shell can offer retry or cancel.
"""

import asyncio
import inspect
import logging
from typing import Any, Callable

logger = logging.getLogger('nuxbe.shell.supervisor')

LOADING_TIMEOUT = 30.0


class LoadingSupervisor:
    """Owns at most one live navigation timer."""

    def __init__(
        self,
        timeout: float = LOADING_TIMEOUT,
        on_timeout: Callable[[Any], Any] | None = None,
    ):
        self._timeout = timeout
        self._on_timeout = on_timeout
        self._task: asyncio.Task | None = None
        self._command = None
        self._timed_out = False

    @property
    def command(self):
        """The navigation command in flight, if any."""
        return self._command

    @property
    def is_armed(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def timed_out(self) -> bool:
        return self._timed_out

    def arm(self, command):
        """Start (or restart) the timer for a navigation command."""
        self._cancel_timer()
        self._command = command
        self._timed_out = False
        self._task = asyncio.ensure_future(self._expire(command))

    def navigation_completed(self):
        """The page transition finished; stop watching it."""
        if self._command is not None:
            logger.debug("Navigation completed")
        self._cancel_timer()
        self._command = None
        self._timed_out = False

    def retry(self):
        """Re-arm the timer with the unchanged command and return it."""
        if self._command is None:
            return None
        logger.info("Retrying navigation")
        self.arm(self._command)
        return self._command

    def cancel(self):
        """Discard the in-flight command. Safe to call repeatedly."""
        command = self._command
        self._cancel_timer()
        self._command = None
        self._timed_out = False
        return command

    def _cancel_timer(self):
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()

    async def _expire(self, command):
        await asyncio.sleep(self._timeout)
        # Timer is done; retry() from the callback may arm a new one
        self._task = None
        self._timed_out = True
        logger.error(f"Loading took longer than {self._timeout}s, offering retry")

        if self._on_timeout is None:
            return
        try:
            result = self._on_timeout(command)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(f"Loading timeout handler failed: {e}")
