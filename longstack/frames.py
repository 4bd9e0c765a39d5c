"""
Frame capture for continuation traces.

Thin adapter over CPython's frame introspection. Frames are returned
innermost-first and never include longstack's own machinery. Source text is
not read here; ``FrameDescriptor.source_line`` resolves it lazily so the happy
path (every ``wrap()`` call) stays cheap.
"""

from __future__ import annotations

import linecache
import os
import sys
from dataclasses import dataclass
from types import FrameType, TracebackType
from typing import Any

_PACKAGE_DIR = os.path.dirname(os.path.abspath(__file__))


def is_internal_frame(filename: str) -> bool:
    """Check if a filename belongs to the longstack package."""
    if filename.startswith("<"):
        return False
    return os.path.dirname(os.path.abspath(filename)) == _PACKAGE_DIR


def _safe_getline(filename: str, lineno: int) -> str | None:
    try:
        if filename.startswith("<") or lineno <= 0:
            return None
        line = linecache.getline(filename, lineno)
        return line.strip() or None
    except Exception:
        return None


@dataclass(frozen=True)
class FrameDescriptor:
    """
    One entry of a captured call chain.

    Attributes:
        function: Code object name, ``None`` if unknown
        filename: Source file, or an opaque ``<...>`` marker
        lineno: Line being executed when captured
        colno: Column offset when the capture primitive reports one
        native: True when the frame has no attributable source
    """

    function: str | None
    filename: str
    lineno: int
    colno: int | None = None
    native: bool = False

    def source_line(self) -> str | None:
        if self.native:
            return None
        return _safe_getline(self.filename, self.lineno)

    def format(self) -> str:
        """Native traceback entry text (``File "...", line N, in f``)."""
        function = self.function or "<unknown>"
        text = f'  File "{self.filename}", line {self.lineno}, in {function}'
        code = self.source_line()
        if code is not None:
            text += f"\n    {code}"
        return text

    def to_dict(self) -> dict[str, Any]:
        return {
            "function": self.function,
            "filename": self.filename,
            "lineno": self.lineno,
            "colno": self.colno,
            "native": self.native,
            "code": self.source_line(),
        }


def _describe(frame: FrameType, lineno: int) -> FrameDescriptor:
    filename = frame.f_code.co_filename
    return FrameDescriptor(
        function=frame.f_code.co_name,
        filename=filename,
        lineno=lineno,
        native=filename.startswith("<"),
    )


def capture_frames(trim: int = 0) -> tuple[FrameDescriptor, ...]:
    """
    Capture the caller's stack, innermost frame first.

    Args:
        trim: Number of leading (innermost) entries to discard after
            longstack's own frames have been removed

    Returns:
        Captured frames, or ``()`` when introspection is unavailable
    """
    if trim < 0:
        return ()
    try:
        frame: FrameType | None = sys._getframe(1)
    except (AttributeError, ValueError):
        return ()

    frames: list[FrameDescriptor] = []
    try:
        while frame is not None:
            if not is_internal_frame(frame.f_code.co_filename):
                frames.append(_describe(frame, frame.f_lineno or 0))
            frame = frame.f_back
    except Exception:
        # Capture failure must not break the caller
        return ()
    return tuple(frames[trim:])


def frames_from_traceback(tb: TracebackType | None) -> tuple[FrameDescriptor, ...]:
    """
    Frames of an exception traceback, innermost (raise site) first.

    ``__traceback__`` chains run outermost to innermost, so the walk is
    reversed before returning.
    """
    frames: list[FrameDescriptor] = []
    try:
        while tb is not None:
            frame = tb.tb_frame
            if not is_internal_frame(frame.f_code.co_filename):
                frames.append(_describe(frame, tb.tb_lineno or 0))
            tb = tb.tb_next
    except Exception:
        return ()
    frames.reverse()
    return tuple(frames)


__all__ = [
    "FrameDescriptor",
    "capture_frames",
    "frames_from_traceback",
    "is_internal_frame",
]
