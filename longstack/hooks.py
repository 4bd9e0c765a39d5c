"""
Process integration for continuation traces.

Nothing here is applied on import. Each hook must be installed explicitly
and can be removed again:

    install_excepthook()       print stamped uncaught errors with their history
    install_loop_handler(loop) log stamped event-loop callback errors
    instrument_loop(loop)      wrap every timer callback scheduled on ``loop``
"""

from __future__ import annotations

import asyncio
import functools
import sys
from collections.abc import Callable
from types import TracebackType
from typing import Any

from loguru import logger as loguru_logger

from longstack.config import TraceShape
from longstack.trace import format_exception, get_trace
from longstack.wrapper import Tracer, get_default_tracer

logger = loguru_logger.bind(component="longstack.hooks")

_ORIGINAL_ATTR = "__longstack_original__"

_previous_excepthook: Callable[..., Any] | None = None
_excepthook_shape: TraceShape | None = None


def _excepthook(
    exc_type: type[BaseException],
    exc: BaseException,
    tb: TracebackType | None,
) -> None:
    if get_trace(exc) is None:
        previous = _previous_excepthook or sys.__excepthook__
        previous(exc_type, exc, tb)
        return
    sys.stderr.write(format_exception(exc, _excepthook_shape) + "\n")
    sys.stderr.flush()


def install_excepthook(shape: TraceShape | str | None = None) -> None:
    """Replace ``sys.excepthook`` so stamped errors print their continuation trace."""
    global _previous_excepthook, _excepthook_shape
    _excepthook_shape = TraceShape.coerce(shape) if shape is not None else None
    if sys.excepthook is _excepthook:
        return
    _previous_excepthook = sys.excepthook
    sys.excepthook = _excepthook
    logger.debug("continuation excepthook installed")


def uninstall_excepthook() -> None:
    global _previous_excepthook
    if sys.excepthook is not _excepthook:
        return
    sys.excepthook = _previous_excepthook or sys.__excepthook__
    _previous_excepthook = None
    logger.debug("continuation excepthook removed")


def exception_handler(loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
    """asyncio exception handler that reports continuation traces."""
    exc = context.get("exception")
    if exc is None or get_trace(exc) is None:
        loop.default_exception_handler(context)
        return
    message = context.get("message") or "Unhandled exception in event loop callback"
    logger.error("{}\n{}", message, format_exception(exc))


def install_loop_handler(loop: asyncio.AbstractEventLoop | None = None) -> None:
    target = loop if loop is not None else asyncio.get_running_loop()
    target.set_exception_handler(exception_handler)


def instrument_loop(
    loop: asyncio.AbstractEventLoop | None = None,
    tracer: Tracer | None = None,
) -> bool:
    """
    Wrap every callback scheduled through ``loop.call_at``.

    ``call_later`` schedules through ``call_at``, so patching ``call_at`` alone
    covers both without wrapping a callback twice.

    Returns:
        True when the loop is instrumented, False when it cannot be patched
    """
    target = loop if loop is not None else asyncio.get_running_loop()
    if hasattr(target.call_at, _ORIGINAL_ATTR):
        return True
    active = tracer if tracer is not None else get_default_tracer()
    original = target.call_at

    @functools.wraps(original)
    def call_at(when: float, callback: Callable[..., Any], *args: Any, context: Any = None) -> Any:
        return original(when, active.wrap(callback), *args, context=context)

    setattr(call_at, _ORIGINAL_ATTR, original)
    try:
        target.call_at = call_at  # type: ignore[method-assign]
    except (AttributeError, TypeError):
        logger.warning("event loop {} does not allow patching call_at", type(target).__name__)
        return False
    logger.debug("instrumented {}", type(target).__name__)
    return True


def uninstrument_loop(loop: asyncio.AbstractEventLoop | None = None) -> None:
    target = loop if loop is not None else asyncio.get_running_loop()
    if hasattr(target.call_at, _ORIGINAL_ATTR):
        del target.call_at


__all__ = [
    "exception_handler",
    "install_excepthook",
    "install_loop_handler",
    "instrument_loop",
    "uninstall_excepthook",
    "uninstrument_loop",
]
