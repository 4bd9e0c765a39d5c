"""Regression tests ensuring wrapped callbacks play nicely with beartype."""

from __future__ import annotations

import pytest
from beartype import beartype
from beartype.roar import BeartypeCallHintParamViolation

from longstack import ContinuationCallback, Tracer, get_trace


def test_beartype_checks_survive_wrapping(tracer: Tracer) -> None:
    """Type violations raised inside a wrapped callback are stamped like any error."""

    @beartype
    def add(a: int, b: int) -> int:
        return a + b

    wrapped = tracer.wrap(add)

    assert wrapped(1, 2) == 3
    with pytest.raises(BeartypeCallHintParamViolation) as excinfo:
        wrapped("1", 2)
    assert get_trace(excinfo.value) is not None


def test_continuation_call_is_beartype_decoratable(tracer: Tracer) -> None:
    """Applying ``@beartype`` to ``ContinuationCallback.__call__`` should succeed."""

    decorated_call = beartype(ContinuationCallback.__call__)
    wrapped = tracer.wrap(lambda: 5)

    assert decorated_call(wrapped) == 5
