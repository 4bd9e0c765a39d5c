from __future__ import annotations

from typing import Any


class LongstackError(Exception):
    """Base class for errors raised by longstack itself."""


class MisconfiguredWrapError(LongstackError, TypeError):
    """Raised when ``wrap()`` is called with arguments it cannot honour."""

    def __init__(self, reason: str, *, hint: str | None = None, value: Any = None) -> None:
        self.reason = reason
        self.value = value
        message = reason
        if hint:
            message = f"{reason}\nHint: {hint}"
        super().__init__(message)


__all__ = ["LongstackError", "MisconfiguredWrapError"]
