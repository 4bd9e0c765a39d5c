"""Trace configuration held by a ``Tracer``."""

from __future__ import annotations

import enum
import logging
import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from longstack.classify import ViaClassifier
from longstack.frames import FrameDescriptor

logger = logging.getLogger(__name__)

FilterHook = Callable[[list[str]], None]
Classifier = Callable[[FrameDescriptor | None], str]

_TRUTHY = ("1", "true", "yes", "on")
_FALSY = ("0", "false", "no", "off")


class TraceShape(enum.Enum):
    NORMAL = "normal"
    TREE = "tree"
    CONTINUABLE = "continuable"

    @classmethod
    def coerce(cls, value: Any) -> TraceShape:
        """Resolve a shape name or member; unrecognized values mean ``NORMAL``."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        logger.debug("unrecognized trace shape %r, using normal", value)
        return cls.NORMAL


@dataclass(frozen=True)
class TraceConfig:
    """
    Settings consulted when wrapping callbacks and rendering traces.

    Attributes:
        enabled: When False, ``wrap()`` returns callbacks unchanged
        shape: Output shape used by ``format_exception`` and the hooks
        filter_hook: Called with the rendered frame-text list; must remove
            entries in place and return None
        classifier: Infers the via label from the frame that called ``wrap()``
        max_depth: Continuation hops walked before the trace is truncated
        indent: Spaces added per hop in tree output
    """

    enabled: bool = True
    shape: TraceShape = TraceShape.NORMAL
    filter_hook: FilterHook | None = None
    classifier: Classifier = field(default_factory=ViaClassifier)
    max_depth: int | None = None
    indent: int = 4

    def __post_init__(self) -> None:
        object.__setattr__(self, "shape", TraceShape.coerce(self.shape))
        if self.max_depth is not None and self.max_depth < 0:
            raise ValueError(f"max_depth must be non-negative, got {self.max_depth}")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides: Any) -> TraceConfig:
        """
        Build a config from ``LONGSTACK_*`` environment variables.

        Recognized variables:
            LONGSTACK_ENABLED: ``0``/``false``/``no``/``off`` disables tracing
            LONGSTACK_SHAPE: ``normal``, ``tree`` or ``continuable``
            LONGSTACK_MAX_DEPTH: integer hop limit
        """
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}

        enabled = env.get("LONGSTACK_ENABLED", "").strip().lower()
        if enabled in _FALSY:
            values["enabled"] = False
        elif enabled in _TRUTHY:
            values["enabled"] = True

        shape = env.get("LONGSTACK_SHAPE")
        if shape:
            values["shape"] = TraceShape.coerce(shape)

        max_depth = env.get("LONGSTACK_MAX_DEPTH", "").strip()
        if max_depth:
            try:
                values["max_depth"] = max(0, int(max_depth))
            except ValueError:
                logger.warning("ignoring LONGSTACK_MAX_DEPTH=%r (not an integer)", max_depth)

        values.update(overrides)
        return cls(**values)


__all__ = ["Classifier", "FilterHook", "TraceConfig", "TraceShape"]
