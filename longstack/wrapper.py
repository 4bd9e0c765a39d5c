"""
Callback wrapping.

``wrap()`` records where a callback was scheduled and returns a replacement
callable. Invoking the replacement makes the recorded ``ContinuationNode`` the
active continuation, so any callback scheduled from inside it links back to
it, and any exception escaping it is stamped with the stitched history.

Wrapping an already wrapped callback creates another node instead of reusing
the first one. Nothing guards against it: a callback wrapped again at each
hop of a chain is how traces cross several asynchronous layers, and a
boundary wrapped twice inside one chain shows up as a redundant via marker.
"""

from __future__ import annotations

import functools
import logging
import types
from collections.abc import Callable
from dataclasses import replace
from typing import Any, TypeVar

from longstack.config import FilterHook, TraceConfig
from longstack.errors import MisconfiguredWrapError
from longstack.frames import FrameDescriptor, capture_frames, frames_from_traceback
from longstack.node import ContinuationNode, activate, current_continuation
from longstack.trace import TRACE_ATTR, ContinuationTrace, get_trace

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

_SCALAR_TYPES = (bool, int, float, complex, str, bytes)
_MISSING: Any = object()


def _validate_wrap_args(
    callback: Any,
    context: Any,
    pre_removal_depth: int | None,
    post_removal_depth: int | None,
) -> None:
    if not callable(callback):
        raise MisconfiguredWrapError(
            f"wrap() expects a callable, got {type(callback).__name__}",
            value=callback,
        )
    if isinstance(context, _SCALAR_TYPES):
        raise MisconfiguredWrapError(
            f"wrap() context must be an object, got scalar {context!r}",
            hint="Pass depths as keywords: wrap(cb, pre_removal_depth=1)",
            value=context,
        )
    if post_removal_depth is not None and pre_removal_depth is None:
        raise MisconfiguredWrapError(
            "post_removal_depth requires pre_removal_depth",
            hint="Pass pre_removal_depth=0 to trim only invocation-time frames",
            value=post_removal_depth,
        )
    for name, depth in (
        ("pre_removal_depth", pre_removal_depth),
        ("post_removal_depth", post_removal_depth),
    ):
        if depth is None:
            continue
        if isinstance(depth, bool) or not isinstance(depth, int) or depth < 0:
            raise MisconfiguredWrapError(
                f"{name} must be a non-negative int, got {depth!r}",
                value=depth,
            )


def _same_frame(a: FrameDescriptor, b: FrameDescriptor) -> bool:
    return a.function == b.function and a.filename == b.filename


class ContinuationCallback:
    """
    Callable returned by ``Tracer.wrap``.

    Carries the wrapped callback's metadata (``__name__``, ``__doc__``,
    ``__wrapped__``) and binds like a function when stored on a class.
    """

    def __init__(
        self,
        callback: Callable[..., Any],
        node: ContinuationNode,
        tracer: Tracer,
        context: Any = _MISSING,
    ) -> None:
        functools.update_wrapper(self, callback)
        self.callback = callback
        self.node = node
        self.tracer = tracer
        self.context = context

    def __get__(self, instance: Any, owner: type | None = None) -> Any:
        if instance is None:
            return self
        return types.MethodType(self, instance)

    def _target(self) -> Callable[..., Any]:
        if self.context is _MISSING:
            return self.callback
        return types.MethodType(self.callback, self.context)

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        target = self._target()
        if not self.tracer.config.enabled:
            return target(*args, **kwargs)
        with activate(self.node):
            try:
                return target(*args, **kwargs)
            except Exception as exc:
                self.tracer._stamp(exc, self.node)
                raise

    def __repr__(self) -> str:
        name = getattr(self.callback, "__qualname__", repr(self.callback))
        return f"<ContinuationCallback {name} {self.node.via!r} node={self.node.node_id}>"


class Tracer:
    """
    Wraps callbacks and stamps exceptions using one ``TraceConfig``.

    The config is replaced, never mutated; wrapped callbacks read the current
    config on every call.
    """

    def __init__(self, config: TraceConfig | None = None) -> None:
        self.config = config if config is not None else TraceConfig()

    def configure(self, **changes: Any) -> TraceConfig:
        self.config = replace(self.config, **changes)
        return self.config

    def set_filter_hook(self, hook: FilterHook | None) -> None:
        """Register ``hook(entries)``; it must delete from ``entries`` in place."""
        self.configure(filter_hook=hook)

    def _classify(self, frame: FrameDescriptor | None) -> str:
        try:
            return self.config.classifier(frame)
        except Exception:
            logger.warning("via classifier failed for %r", frame, exc_info=True)
            return "via callback"

    def wrap(
        self,
        callback: F,
        context: Any = None,
        *,
        pre_removal_depth: int | None = None,
        post_removal_depth: int | None = None,
        via: str | None = None,
    ) -> F:
        """
        Record the current continuation and return a replacement callback.

        Args:
            callback: Callable to run later
            context: Object the callback is bound to when invoked
            pre_removal_depth: Innermost wrap-time frames to discard
            post_removal_depth: Outermost invocation-time frames to discard;
                only accepted together with ``pre_removal_depth``
            via: Label for the asynchronous boundary; inferred when omitted

        Coroutine functions are not awaited by the wrapper: the node is active
        only while the coroutine object is created, so errors raised once it
        runs are not stamped. Tasks started from a wrapped callback inherit
        its continuation; stamp their errors with ``attach()``.

        Raises:
            MisconfiguredWrapError: For arguments that cannot be honoured
        """
        _validate_wrap_args(callback, context, pre_removal_depth, post_removal_depth)
        if not self.config.enabled:
            return callback

        frames = capture_frames(pre_removal_depth or 0)
        label = via if via is not None else self._classify(frames[0] if frames else None)
        node = ContinuationNode(
            frames=frames,
            parent=current_continuation(),
            via=label,
            post_removal_depth=post_removal_depth or 0,
        )
        logger.debug("wrapped %r as %r", callback, node)
        bound = _MISSING if context is None else context
        return ContinuationCallback(callback, node, self, bound)  # type: ignore[return-value]

    def _stamp(
        self,
        exception: BaseException,
        node: ContinuationNode | None,
        *,
        catch_frame_on_stack: bool = False,
    ) -> ContinuationTrace | None:
        existing = get_trace(exception)
        if existing is not None:
            return existing
        try:
            raise_frames = frames_from_traceback(exception.__traceback__)
            caller_frames = capture_frames()
            if (
                catch_frame_on_stack
                and raise_frames
                and caller_frames
                and _same_frame(raise_frames[-1], caller_frames[0])
            ):
                caller_frames = caller_frames[1:]
            trace = ContinuationTrace.build(
                exception, raise_frames, caller_frames, node, self.config, tracer=self
            )
            setattr(exception, TRACE_ATTR, trace)
            return trace
        except Exception:
            logger.warning("failed to stamp continuation trace", exc_info=True)
            return None

    def attach(
        self,
        exception: BaseException,
        node: ContinuationNode | None = _MISSING,
    ) -> ContinuationTrace | None:
        """
        Stamp ``exception`` with the continuation active right now.

        For exceptions caught outside any wrapped callback, for example in an
        asyncio task that inherited a continuation. Call it from the
        ``except`` block that caught the exception. An exception is stamped at
        most once; later calls return the existing trace.
        """
        if not self.config.enabled:
            return get_trace(exception)
        if node is _MISSING:
            node = current_continuation()
        return self._stamp(exception, node, catch_frame_on_stack=True)


_default_tracer = Tracer(TraceConfig.from_env())


def get_default_tracer() -> Tracer:
    return _default_tracer


def get_config() -> TraceConfig:
    return _default_tracer.config


def configure(**changes: Any) -> TraceConfig:
    """Update the process-wide default tracer's configuration."""
    return _default_tracer.configure(**changes)


def set_filter_hook(hook: FilterHook | None) -> None:
    _default_tracer.set_filter_hook(hook)


def wrap(
    callback: F,
    context: Any = None,
    *,
    pre_removal_depth: int | None = None,
    post_removal_depth: int | None = None,
    via: str | None = None,
) -> F:
    """``Tracer.wrap`` on the process-wide default tracer."""
    return _default_tracer.wrap(
        callback,
        context,
        pre_removal_depth=pre_removal_depth,
        post_removal_depth=post_removal_depth,
        via=via,
    )


def attach(
    exception: BaseException,
    node: ContinuationNode | None = _MISSING,
) -> ContinuationTrace | None:
    """``Tracer.attach`` on the process-wide default tracer."""
    return _default_tracer.attach(exception, node)


__all__ = [
    "ContinuationCallback",
    "Tracer",
    "attach",
    "configure",
    "get_config",
    "get_default_tracer",
    "set_filter_hook",
    "wrap",
]
