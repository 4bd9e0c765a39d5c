"""Rendering utilities for continuation traces."""

from __future__ import annotations

import logging
import traceback
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import TypeAlias

from longstack.config import FilterHook, TraceConfig, TraceShape
from longstack.frames import FrameDescriptor
from longstack.node import ContinuationNode
from longstack.trace import ContinuationTrace, Segment, node_segment

logger = logging.getLogger(__name__)

Rendered: TypeAlias = "str | tuple[Segment, ...]"

HEADER = "Traceback (most recent call last):"
MARKER = "  ---- {label} ----"
BRANCH = "  +-- {label}"
OMITTED = "  ... ({count} earlier continuation{plural} omitted) ..."


def _omitted_line(count: int) -> str:
    return OMITTED.format(count=count, plural="" if count == 1 else "s")


def _indent(text: str, pad: str) -> str:
    if not pad:
        return text
    return "\n".join(pad + line for line in text.split("\n"))


def _frame_entries(frames: tuple[FrameDescriptor, ...], pad: str = "") -> list[str]:
    # Segments are innermost first; text reads root first.
    return [_indent(frame.format(), pad) for frame in reversed(frames)]


def apply_filter_hook(entries: list[str], hook: FilterHook | None) -> None:
    """Run ``hook`` over ``entries``; the hook edits the list in place."""
    if hook is None:
        return
    try:
        result = hook(entries)
    except Exception:
        logger.warning("trace filter hook failed; keeping unfiltered entries", exc_info=True)
        return
    if result is not None:
        logger.warning(
            "trace filter hook returned %s; the return value is ignored, "
            "hooks must remove entries from the list in place",
            type(result).__name__,
        )


def _normal_entries(trace: ContinuationTrace) -> list[str]:
    entries: list[str] = []
    if trace.truncated:
        entries.append(_omitted_line(trace.truncated))
    for segment in reversed(trace.segments):
        entries.extend(_frame_entries(segment.frames))
        if segment.label is not None:
            entries.append(MARKER.format(label=segment.label))
    return entries


def _join(entries: list[str], footer: str) -> str:
    return "\n".join([HEADER, *entries, footer])


def render_normal(trace: ContinuationTrace, config: TraceConfig | None = None) -> str:
    """One flat native-style traceback extended across every continuation."""
    active = config if config is not None else trace.current_config()
    entries = _normal_entries(trace)
    apply_filter_hook(entries, active.filter_hook)
    return _join(entries, trace.exception_line())


# Tree lines are (text, filterable); exception lines never reach the hook.
_Line: TypeAlias = "tuple[str, bool]"


def _filtered(lines: list[_Line], hook: FilterHook | None) -> list[str]:
    entries = [text for text, filterable in lines if filterable]
    apply_filter_hook(entries, hook)
    kept = Counter(id(entry) for entry in entries)
    result: list[str] = []
    for text, filterable in lines:
        if filterable:
            if kept[id(text)] <= 0:
                continue
            kept[id(text)] -= 1
        result.append(text)
    return result


def _frame_lines(frames: tuple[FrameDescriptor, ...], pad: str = "") -> list[_Line]:
    return [(entry, True) for entry in _frame_entries(frames, pad)]


@dataclass
class _Branch:
    node: ContinuationNode
    children: dict[int, _Branch] = field(default_factory=dict)
    leaves: list[ContinuationTrace] = field(default_factory=list)
    truncated: int = 0


def _child(level: dict[int, _Branch], node: ContinuationNode) -> _Branch:
    branch = level.get(node.node_id)
    if branch is None:
        branch = level[node.node_id] = _Branch(node=node)
    return branch


@dataclass
class _Forest:
    roots: dict[int, _Branch] = field(default_factory=dict)
    leaves: list[ContinuationTrace] = field(default_factory=list)

    def add(self, trace: ContinuationTrace) -> None:
        path = list(reversed(trace.nodes))
        if not path:
            self.leaves.append(trace)
            return
        root = branch = _child(self.roots, path[0])
        for node in path[1:]:
            branch = _child(branch.children, node)
        branch.leaves.append(trace)
        root.truncated = max(root.truncated, trace.truncated)


def _leaf_lines(trace: ContinuationTrace, pad: str) -> list[_Line]:
    lines = _frame_lines(trace.own_frames, pad)
    lines.append((pad + trace.exception_line(), False))
    return lines


def _branch_lines(branch: _Branch, depth: int, indent: int) -> list[_Line]:
    pad = " " * (indent * depth)
    child_pad = " " * (indent * (depth + 1))
    lines: list[_Line] = []
    if branch.truncated:
        lines.append((pad + _omitted_line(branch.truncated), True))
    lines.extend(_frame_lines(node_segment(branch.node).frames, pad))
    lines.append((pad + BRANCH.format(label=branch.node.via), True))
    for child in sorted(branch.children.values(), key=lambda b: b.node.node_id):
        lines.extend(_branch_lines(child, depth + 1, indent))
    for leaf in branch.leaves:
        lines.extend(_leaf_lines(leaf, child_pad))
    return lines


def _forest_lines(forest: _Forest, indent: int) -> list[_Line]:
    lines: list[_Line] = []
    for root in sorted(forest.roots.values(), key=lambda b: b.node.node_id):
        lines.extend(_branch_lines(root, 0, indent))
    for leaf in forest.leaves:
        lines.extend(_leaf_lines(leaf, ""))
    return lines


def render_tree(trace: ContinuationTrace, config: TraceConfig | None = None) -> str:
    """Nested rendering of one trace, one indentation level per hop."""
    active = config if config is not None else trace.current_config()
    if not trace.nodes:
        entries = [_omitted_line(trace.truncated)] if trace.truncated else []
        entries.extend(_frame_entries(trace.own_frames))
        apply_filter_hook(entries, active.filter_hook)
        return _join(entries, trace.exception_line())

    forest = _Forest()
    forest.add(trace)
    lines = _filtered(_forest_lines(forest, active.indent), active.filter_hook)
    return "\n".join([HEADER, *lines])


def render_forest(
    traces: Iterable[ContinuationTrace],
    *,
    filter_hook: FilterHook | None = None,
    indent: int = 4,
) -> str:
    """
    Render several traces as one tree.

    Traces that share continuation nodes share the rendered ancestors: a node
    that fanned out into several callbacks appears once, with each branch
    nested under its via marker. Only frame entries and markers are passed to
    ``filter_hook``; exception lines are always kept.
    """
    forest = _Forest()
    for trace in traces:
        forest.add(trace)
    lines = _filtered(_forest_lines(forest, indent), filter_hook)
    return "\n".join([HEADER, *lines])


def _native_text(exception: BaseException | None, trace: ContinuationTrace) -> str:
    if exception is not None:
        return "".join(traceback.format_exception(exception)).rstrip("\n")
    return _join([], trace.exception_line())


def _fallback(trace: ContinuationTrace, exception: BaseException | None) -> str:
    try:
        return _join(_frame_entries(trace.own_frames), trace.exception_line())
    except Exception:
        logger.debug("partial continuation trace unavailable", exc_info=True)
    try:
        return _native_text(exception, trace)
    except Exception:
        return trace.exception_line()


def render(
    trace: ContinuationTrace,
    shape: TraceShape | str | None = None,
    *,
    exception: BaseException | None = None,
) -> Rendered:
    """
    Render ``trace`` in ``shape`` (the configured shape by default).

    ``normal`` and ``tree`` return text; ``continuable`` returns the segment
    tuple. The owning tracer's configuration is read on every call. Results
    are cached per shape and reused while the filter hook and indentation are
    unchanged. When no frames could be captured the native traceback of
    ``exception`` is returned instead. Internal failures are logged and
    produce the best partial text; they never propagate.
    """
    config = trace.current_config()
    resolved = TraceShape.coerce(shape if shape is not None else config.shape)
    if resolved is TraceShape.CONTINUABLE:
        return trace.segments

    if not trace.has_frames():
        return _native_text(exception, trace)

    cached = trace._rendered.get(resolved)
    if cached is not None:
        hook, indent, text = cached
        if hook is config.filter_hook and indent == config.indent:
            return text

    try:
        if resolved is TraceShape.TREE:
            text = render_tree(trace, config)
        else:
            text = render_normal(trace, config)
    except Exception:
        logger.warning("failed to render continuation trace", exc_info=True)
        text = _fallback(trace, exception)

    trace._rendered[resolved] = (config.filter_hook, config.indent, text)
    return text


__all__ = [
    "Rendered",
    "apply_filter_hook",
    "render",
    "render_forest",
    "render_normal",
    "render_tree",
]
