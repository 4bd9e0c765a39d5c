"""Continuation nodes and the per-logical-thread active continuation."""

from __future__ import annotations

import itertools
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field

from longstack.frames import FrameDescriptor

_node_ids = itertools.count(1)

# One value per OS thread and per asyncio task; set/reset tokens give the
# push/pop discipline for nested and reentrant invocations.
_active: ContextVar[ContinuationNode | None] = ContextVar(
    "longstack_active_continuation", default=None
)


@dataclass(frozen=True, eq=False)
class ContinuationNode:
    """
    Frames captured at one ``wrap()`` call.

    Attributes:
        frames: Wrap-time frames, innermost first, pre-removal already applied
        parent: Continuation active when the wrap happened, ``None`` at top level
        via: Label describing how control crossed the asynchronous boundary
        post_removal_depth: Trailing frames to drop from frames captured while
            this node is active (scheduler plumbing below the callback)
        node_id: Creation order; parents always have a smaller id
    """

    frames: tuple[FrameDescriptor, ...]
    parent: ContinuationNode | None
    via: str
    post_removal_depth: int = 0
    node_id: int = field(default_factory=lambda: next(_node_ids))

    @property
    def depth(self) -> int:
        """Number of ancestors between this node and the root."""
        count = 0
        node = self.parent
        while node is not None:
            count += 1
            node = node.parent
        return count

    def lineage(self, max_depth: int | None = None) -> Iterator[ContinuationNode]:
        """Yield this node and then each ancestor up to the root."""
        node: ContinuationNode | None = self
        hops = 0
        while node is not None:
            if max_depth is not None and hops >= max_depth:
                return
            yield node
            node = node.parent
            hops += 1

    def __repr__(self) -> str:
        parent_id = self.parent.node_id if self.parent is not None else None
        return (
            f"ContinuationNode(id={self.node_id}, via={self.via!r}, "
            f"frames={len(self.frames)}, parent={parent_id})"
        )


def current_continuation() -> ContinuationNode | None:
    """Return the continuation in effect for the running logical thread."""
    return _active.get()


@contextmanager
def activate(node: ContinuationNode) -> Iterator[ContinuationNode]:
    """Make ``node`` the active continuation for the duration of the block."""
    token = _active.set(node)
    try:
        yield node
    finally:
        _active.reset(token)


__all__ = ["ContinuationNode", "activate", "current_continuation"]
