"""Tests for continuation nodes and the active continuation."""

from __future__ import annotations

import pytest

from longstack import ContinuationNode, activate, current_continuation


def _node(parent: ContinuationNode | None = None, via: str = "via callback") -> ContinuationNode:
    return ContinuationNode(frames=(), parent=parent, via=via)


def test_lineage_walks_to_root() -> None:
    root = _node()
    middle = _node(root)
    leaf = _node(middle)

    assert list(leaf.lineage()) == [leaf, middle, root]
    assert list(leaf.lineage(max_depth=2)) == [leaf, middle]
    assert list(leaf.lineage(max_depth=0)) == []
    assert leaf.depth == 2
    assert root.depth == 0


def test_parents_are_created_first() -> None:
    root = _node()
    child = _node(root)

    assert root.node_id < child.node_id


def test_fan_out_shares_parent() -> None:
    root = _node()
    left = _node(root)
    right = _node(root)

    assert left.parent is right.parent is root
    assert left != right


def test_activate_restores_previous_node() -> None:
    outer = _node()
    inner = _node(outer)

    with activate(outer):
        with activate(inner):
            assert current_continuation() is inner
        assert current_continuation() is outer
    assert current_continuation() is None


def test_activate_restores_on_exception() -> None:
    node = _node()

    with pytest.raises(RuntimeError):
        with activate(node):
            raise RuntimeError("inside")

    assert current_continuation() is None


def test_repr_names_parent() -> None:
    root = _node()
    child = _node(root, via="via sleep")

    assert repr(child) == (
        f"ContinuationNode(id={child.node_id}, via='via sleep', frames=0, parent={root.node_id})"
    )
