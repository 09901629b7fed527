"""
Uncaught error capture.

Hooks, in order:
- ``sys.excepthook`` for exceptions that reach the top of the main thread
- ``threading.excepthook`` for exceptions that end a worker thread
- the running loop's exception handler for unretrieved task exceptions
  (reported with source ``"unhandledrejection"``)

Every hook reports to the agent and then chains to the handler it
replaced, so the host's own reporting keeps working. Teardown restores a
handler only if it is still ours.
"""

from __future__ import annotations

import logging
import sys
import threading
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from watchlog_rum.collectors.base import Collector, Teardown
from watchlog_rum.utils.async_helpers import get_running_loop_or_none

if TYPE_CHECKING:
    from watchlog_rum.agent import RumAgent

logger = logging.getLogger(__name__)

UNHANDLED_REJECTION = "unhandledrejection"


def _traceback_filename(tb: Any) -> Optional[str]:
    """Filename of the innermost frame, like a browser error's ``filename``."""
    if tb is None:
        return None
    while tb.tb_next is not None:
        tb = tb.tb_next
    return tb.tb_frame.f_code.co_filename


class ErrorCollector(Collector):
    """Reports uncaught exceptions as ``error`` events."""

    name = "errors"

    def __init__(self) -> None:
        self.captured = 0

    def _report(self, agent: "RumAgent", error: Any, source: Optional[str]) -> None:
        try:
            self.captured += 1
            agent.track_error(error, source)
        except Exception as e:
            logger.debug(f"[Errors] Could not report uncaught error: {e}")

    def install(self, agent: "RumAgent") -> Teardown:
        undo: List[Teardown] = []

        # Main thread
        previous_excepthook = sys.excepthook

        def _excepthook(exc_type, exc, tb):
            if isinstance(exc, Exception):
                self._report(agent, exc, _traceback_filename(tb))
            previous_excepthook(exc_type, exc, tb)

        sys.excepthook = _excepthook

        def _restore_excepthook() -> None:
            if sys.excepthook is _excepthook:
                sys.excepthook = previous_excepthook

        undo.append(_restore_excepthook)

        # Worker threads
        previous_thread_hook = threading.excepthook

        def _thread_hook(args):
            if isinstance(args.exc_value, Exception):
                thread_name = args.thread.name if args.thread is not None else "unknown"
                self._report(agent, args.exc_value, f"thread:{thread_name}")
            previous_thread_hook(args)

        threading.excepthook = _thread_hook

        def _restore_thread_hook() -> None:
            if threading.excepthook is _thread_hook:
                threading.excepthook = previous_thread_hook

        undo.append(_restore_thread_hook)

        # Event loop
        loop = get_running_loop_or_none()
        if loop is not None:
            previous_loop_handler = loop.get_exception_handler()

            def _loop_handler(loop, context: Dict[str, Any]) -> None:
                exc = context.get("exception")
                if isinstance(exc, Exception):
                    self._report(agent, exc, UNHANDLED_REJECTION)
                elif exc is None:
                    message = context.get("message") or "Unhandled error in event loop"
                    self._report(agent, str(message), UNHANDLED_REJECTION)
                if previous_loop_handler is not None:
                    previous_loop_handler(loop, context)
                else:
                    loop.default_exception_handler(context)

            loop.set_exception_handler(_loop_handler)

            def _restore_loop_handler() -> None:
                if loop.is_closed():
                    return
                if loop.get_exception_handler() is _loop_handler:
                    loop.set_exception_handler(previous_loop_handler)

            undo.append(_restore_loop_handler)
        else:
            logger.debug("[Errors] No running loop, task errors not captured")

        def teardown() -> None:
            for fn in undo:
                try:
                    fn()
                except Exception as e:
                    logger.debug(f"[Errors] Teardown step failed: {e}")

        return teardown
