"""
Pytest configuration for longstack tests.

Every test gets a fresh ``Tracer`` and the process-wide default tracer is
restored afterwards, so configuration changes never leak between tests.
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from longstack import Tracer, TraceConfig, get_default_tracer


@pytest.fixture
def tracer() -> Tracer:
    return Tracer(TraceConfig())


@pytest.fixture(autouse=True)
def _restore_default_tracer() -> Iterator[None]:
    default = get_default_tracer()
    saved = default.config
    yield
    default.config = saved
