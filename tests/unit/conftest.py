from __future__ import annotations

import pytest

from tests.unit.fakes import FakePool


@pytest.fixture
def fake_pool() -> FakePool:
    return FakePool()
