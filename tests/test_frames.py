"""Tests for frame capture."""

from __future__ import annotations

import sys

import pytest

from longstack.frames import (
    FrameDescriptor,
    capture_frames,
    frames_from_traceback,
    is_internal_frame,
)
import longstack.wrapper


def _inner() -> tuple[FrameDescriptor, ...]:
    return capture_frames()


def _outer() -> tuple[FrameDescriptor, ...]:
    return _inner()


def _inner_trimmed(trim: int) -> tuple[FrameDescriptor, ...]:
    return capture_frames(trim)


def _outer_trimmed(trim: int) -> tuple[FrameDescriptor, ...]:
    return _inner_trimmed(trim)


def test_capture_is_innermost_first() -> None:
    frames = _outer()

    assert frames[0].function == "_inner"
    assert frames[1].function == "_outer"
    assert frames[2].function == "test_capture_is_innermost_first"
    assert frames[0].filename == __file__


def test_trim_removes_exactly_leading_entries() -> None:
    untrimmed = _outer_trimmed(0)
    trimmed = _outer_trimmed(2)

    assert trimmed[0].function == "test_trim_removes_exactly_leading_entries"
    assert len(untrimmed) - len(trimmed) == 2
    assert [f.function for f in trimmed[1:]] == [f.function for f in untrimmed[3:]]


def test_negative_trim_returns_empty() -> None:
    assert capture_frames(-1) == ()


def test_capture_unavailable_returns_empty(monkeypatch: pytest.MonkeyPatch) -> None:
    def unavailable(depth: int = 0) -> None:
        raise ValueError("no frames")

    monkeypatch.setattr(sys, "_getframe", unavailable)
    frames = capture_frames()
    monkeypatch.undo()

    assert frames == ()


def test_internal_frames_are_excluded() -> None:
    assert is_internal_frame(longstack.wrapper.__file__)
    assert not is_internal_frame(__file__)
    assert not is_internal_frame("<stdin>")

    wrapped = longstack.wrapper.Tracer().wrap(lambda: None)
    assert all(not is_internal_frame(frame.filename) for frame in wrapped.node.frames)
    assert wrapped.node.frames[0].function == "test_internal_frames_are_excluded"


def test_frames_from_traceback_puts_raise_site_first() -> None:
    def fail() -> None:
        raise ValueError("boom")

    try:
        fail()
    except ValueError as exc:
        frames = frames_from_traceback(exc.__traceback__)

    assert [frame.function for frame in frames] == [
        "fail",
        "test_frames_from_traceback_puts_raise_site_first",
    ]
    assert frames_from_traceback(None) == ()


def test_format_matches_native_traceback_layout() -> None:
    frame = _outer()[0]
    text = frame.format()

    assert text.startswith(f'  File "{__file__}", line {frame.lineno}, in _inner')
    assert text.splitlines()[1] == "    return capture_frames()"


def test_native_frame_has_no_source() -> None:
    frame = FrameDescriptor(function="<module>", filename="<string>", lineno=1, native=True)

    assert frame.source_line() is None
    assert frame.format() == '  File "<string>", line 1, in <module>'
    assert frame.to_dict()["code"] is None
