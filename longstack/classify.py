"""
Via-label inference for wrap call sites.

The label names how control crossed an asynchronous boundary ("via timer
event"). Inference is best effort: it looks at the frame that called
``wrap()`` and matches its function name, then its source text, against a
table of known scheduling primitives. Custom schedulers are expected to pass
an explicit ``via=`` or configure their own classifier.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from frozendict import frozendict

from longstack.frames import FrameDescriptor

DEFAULT_VIA = "via callback"

DEFAULT_VIA_TABLE: Mapping[str, tuple[str, ...]] = frozendict(
    {
        "via timer event": ("call_later", "call_at", "Timer"),
        "via sleep": ("sleep",),
        "via network event": (
            "add_reader",
            "add_writer",
            "sock_recv",
            "sock_sendall",
            "sock_connect",
            "sock_accept",
            "create_connection",
            "create_server",
            "start_server",
            "open_connection",
        ),
        "via future completion": ("add_done_callback",),
        "via event loop": ("call_soon", "call_soon_threadsafe"),
        "via executor": ("submit", "run_in_executor"),
    }
)


@dataclass(frozen=True)
class ViaRule:
    """Map a set of scheduling-primitive names to one label."""

    label: str
    functions: tuple[str, ...]

    def matches_function(self, name: str | None) -> bool:
        return name is not None and name in self.functions

    def matches_source(self, code: str | None) -> bool:
        if not code:
            return False
        return any(re.search(rf"\b{re.escape(name)}\s*\(", code) for name in self.functions)


def rules_from_table(table: Mapping[str, Iterable[str]]) -> tuple[ViaRule, ...]:
    return tuple(ViaRule(label, tuple(names)) for label, names in table.items())


class ViaClassifier:
    """Default ``classify(frame) -> label`` strategy."""

    def __init__(
        self,
        rules: Iterable[ViaRule] | None = None,
        default: str = DEFAULT_VIA,
    ) -> None:
        self.rules = tuple(rules) if rules is not None else rules_from_table(DEFAULT_VIA_TABLE)
        self.default = default

    def extend(self, *rules: ViaRule) -> ViaClassifier:
        """Return a classifier that tries ``rules`` before the current ones."""
        return ViaClassifier(rules + self.rules, default=self.default)

    def classify(self, frame: FrameDescriptor | None) -> str:
        if frame is None:
            return self.default
        for rule in self.rules:
            if rule.matches_function(frame.function):
                return rule.label
        code = frame.source_line()
        for rule in self.rules:
            if rule.matches_source(code):
                return rule.label
        return self.default

    __call__ = classify

    def __repr__(self) -> str:
        return f"ViaClassifier(rules={len(self.rules)}, default={self.default!r})"


__all__ = [
    "DEFAULT_VIA",
    "DEFAULT_VIA_TABLE",
    "ViaClassifier",
    "ViaRule",
    "rules_from_table",
]
