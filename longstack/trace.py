"""
Continuation trace data attached to exceptions.

A trace is stitched from three sources:

1. ``raise_frames``: the exception's own traceback, raise site first
2. ``caller_frames``: the stack that invoked the wrapped callback
3. the ``ContinuationNode`` chain active when the exception was built

Segment 0 is the exception's native stack. Each further segment is the stack
captured at one ``wrap()`` call, labelled with how control crossed from it to
the segment before. Segments are ordered innermost (raise site) first; text
renderers print them root first, the way a Python traceback reads.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from longstack.config import TraceConfig, TraceShape
from longstack.frames import FrameDescriptor
from longstack.node import ContinuationNode

if TYPE_CHECKING:
    from longstack.renderer import Rendered
    from longstack.wrapper import Tracer

TRACE_ATTR = "_longstack_trace"


@dataclass(frozen=True)
class Segment:
    """Frames between two asynchronous boundaries, innermost first."""

    label: str | None
    frames: tuple[FrameDescriptor, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "label": self.label,
            "frames": [frame.to_dict() for frame in self.frames],
        }


def _drop_tail(frames: tuple[FrameDescriptor, ...], count: int) -> tuple[FrameDescriptor, ...]:
    if count <= 0:
        return frames
    return frames[: max(0, len(frames) - count)]


def _invoked_inline(
    node: ContinuationNode, caller_frames: tuple[FrameDescriptor, ...]
) -> bool:
    """True when the stack that wrapped ``node`` is still the one invoking it.

    A callback called synchronously right where it was wrapped crossed no
    asynchronous boundary, so its node contributes no segment of its own.
    """
    frames = node.frames
    if not frames or len(frames) > len(caller_frames):
        return False
    tail = caller_frames[len(caller_frames) - len(frames) :]
    return all(
        ours.function == theirs.function and ours.filename == theirs.filename
        for ours, theirs in zip(frames, tail)
    )


def node_segment(node: ContinuationNode) -> Segment:
    """Segment for the wrap-time frames of ``node``.

    Those frames were captured while ``node.parent`` was active, so the
    parent's post-removal depth trims the scheduler plumbing at their tail.
    """
    post = node.parent.post_removal_depth if node.parent is not None else 0
    return Segment(label=node.via, frames=_drop_tail(node.frames, post))


@dataclass(frozen=True)
class ContinuationTrace:
    """
    Stitched history of one exception.

    Only the exception's type and message are kept; the exception refers to
    its trace, never the other way round.

    Attributes:
        exception_type: Exception class name
        qualified_type: ``module.ClassName`` of the exception
        message: ``str(exception)``
        raise_frames: Traceback frames, raise site first
        caller_frames: Stack that invoked the wrapped callback, innermost first
        node: Continuation active when the exception was built
        config: Configuration of the tracer that stamped the exception
        segments: Stitched segments, own segment first
        truncated: Ancestor segments dropped because of ``config.max_depth``
        inline: ``node`` was invoked synchronously where it was wrapped and
            has no segment of its own
        tracer: Tracer whose current configuration drives rendering
    """

    exception_type: str
    qualified_type: str
    message: str
    raise_frames: tuple[FrameDescriptor, ...]
    caller_frames: tuple[FrameDescriptor, ...]
    node: ContinuationNode | None
    config: TraceConfig
    segments: tuple[Segment, ...] = ()
    truncated: int = 0
    inline: bool = False
    tracer: Tracer | None = field(default=None, repr=False, compare=False)
    _rendered: dict[TraceShape, tuple[Any, int, Rendered]] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )

    @classmethod
    def build(
        cls,
        exception: BaseException,
        raise_frames: tuple[FrameDescriptor, ...],
        caller_frames: tuple[FrameDescriptor, ...],
        node: ContinuationNode | None,
        config: TraceConfig,
        tracer: Tracer | None = None,
    ) -> ContinuationTrace:
        own_post = node.post_removal_depth if node is not None else 0
        segments = [Segment(label=None, frames=raise_frames + _drop_tail(caller_frames, own_post))]
        inline = node is not None and _invoked_inline(node, caller_frames)
        first = node.parent if inline and node is not None else node
        truncated = 0
        if first is not None:
            lineage = list(first.lineage(config.max_depth))
            segments.extend(node_segment(ancestor) for ancestor in lineage)
            truncated = first.depth + 1 - len(lineage)
        exc_type = type(exception)
        return cls(
            exception_type=exc_type.__name__,
            qualified_type=f"{exc_type.__module__}.{exc_type.__qualname__}",
            message=str(exception),
            raise_frames=raise_frames,
            caller_frames=caller_frames,
            node=node,
            config=config,
            segments=tuple(segments),
            truncated=truncated,
            inline=inline,
            tracer=tracer,
        )

    @property
    def own_frames(self) -> tuple[FrameDescriptor, ...]:
        return self.segments[0].frames if self.segments else ()

    @property
    def nodes(self) -> tuple[ContinuationNode, ...]:
        """Continuation nodes shown in this trace, innermost first."""
        first = self.node.parent if self.inline and self.node is not None else self.node
        if first is None:
            return ()
        return tuple(first.lineage(self.config.max_depth))

    def current_config(self) -> TraceConfig:
        """Configuration to render with: the owning tracer's, as of now."""
        if self.tracer is not None:
            return self.tracer.config
        return self.config

    def has_frames(self) -> bool:
        return any(segment.frames for segment in self.segments)

    def exception_line(self) -> str:
        if self.message:
            return f"{self.exception_type}: {self.message}"
        return self.exception_type

    def render(self, shape: TraceShape | str | None = None) -> Rendered:
        """Render with ``shape`` (defaults to the configured shape)."""
        from longstack.renderer import render

        return render(self, shape)

    def format(self) -> str:
        """Flat text rendering (``normal`` shape)."""
        from longstack.renderer import render

        return str(render(self, TraceShape.NORMAL))

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": "1.0",
            "segments": [segment.to_dict() for segment in self.segments],
            "truncated": self.truncated,
            "exception": {
                "type": self.exception_type,
                "qualified_type": self.qualified_type,
                "message": self.message,
            },
        }


def get_trace(exception: BaseException) -> ContinuationTrace | None:
    """Return the continuation trace stamped on ``exception``, if any."""
    trace = getattr(exception, TRACE_ATTR, None)
    return trace if isinstance(trace, ContinuationTrace) else None


def format_exception(
    exception: BaseException,
    shape: TraceShape | str | None = None,
) -> str:
    """
    Text rendering of ``exception`` including its continuation history.

    Falls back to the native ``traceback`` text for exceptions that were never
    stamped. ``continuable`` is a structured shape, so it is rendered as
    ``normal`` text here.
    """
    import traceback

    trace = get_trace(exception)
    if trace is None:
        return "".join(traceback.format_exception(exception)).rstrip("\n")

    from longstack.renderer import render

    resolved = TraceShape.coerce(shape if shape is not None else trace.current_config().shape)
    if resolved is TraceShape.CONTINUABLE:
        resolved = TraceShape.NORMAL
    return str(render(trace, resolved, exception=exception))


__all__ = [
    "TRACE_ATTR",
    "ContinuationTrace",
    "Segment",
    "format_exception",
    "get_trace",
    "node_segment",
]
