"""
longstack - continuation traces for asynchronous callback chains.

When a callback scheduled on a timer or event loop raises, the Python stack
only shows the scheduler that ran it. longstack records the stack at the
point each callback was scheduled and stitches those records into the error's
trace, so the trace continues past every asynchronous boundary.

Example:
    >>> import asyncio
    >>> import longstack
    >>>
    >>> def fail():
    ...     raise ValueError("Oh noes!")
    >>>
    >>> def schedule(loop):
    ...     loop.call_later(0.1, longstack.wrap(fail))
    >>>
    >>> # errors raised by ``fail`` now render with the frames of ``schedule``:
    >>> # print(longstack.format_exception(error))
"""

from longstack.classify import DEFAULT_VIA, DEFAULT_VIA_TABLE, ViaClassifier, ViaRule
from longstack.config import TraceConfig, TraceShape
from longstack.errors import LongstackError, MisconfiguredWrapError
from longstack.frames import FrameDescriptor, capture_frames, frames_from_traceback
from longstack.hooks import (
    exception_handler,
    install_excepthook,
    install_loop_handler,
    instrument_loop,
    uninstall_excepthook,
    uninstrument_loop,
)
from longstack.node import ContinuationNode, activate, current_continuation
from longstack.renderer import render, render_forest
from longstack.trace import ContinuationTrace, Segment, format_exception, get_trace
from longstack.wrapper import (
    ContinuationCallback,
    Tracer,
    attach,
    configure,
    get_config,
    get_default_tracer,
    set_filter_hook,
    wrap,
)

__version__ = "0.1.0"

__all__ = [
    "DEFAULT_VIA",
    "DEFAULT_VIA_TABLE",
    "ContinuationCallback",
    "ContinuationNode",
    "ContinuationTrace",
    "FrameDescriptor",
    "LongstackError",
    "MisconfiguredWrapError",
    "Segment",
    "TraceConfig",
    "TraceShape",
    "Tracer",
    "ViaClassifier",
    "ViaRule",
    "activate",
    "attach",
    "capture_frames",
    "configure",
    "current_continuation",
    "exception_handler",
    "format_exception",
    "frames_from_traceback",
    "get_config",
    "get_default_tracer",
    "get_trace",
    "install_excepthook",
    "install_loop_handler",
    "instrument_loop",
    "render",
    "render_forest",
    "set_filter_hook",
    "uninstall_excepthook",
    "uninstrument_loop",
    "wrap",
]
