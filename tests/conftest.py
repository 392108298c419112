from __future__ import annotations

import pytest

from http_stub import SessionCounter, StubTransport


@pytest.fixture
def stub() -> StubTransport:
    return StubTransport()


@pytest.fixture
def session_factory(stub) -> SessionCounter:
    return SessionCounter(stub)
