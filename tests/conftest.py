# tests/conftest.py

from __future__ import annotations

from datetime import datetime

import pytest

from daybands.core.clock import FixedClock
from daybands.schedule.order_keys import OrderKeyAllocator

from .fakes import FakeAliasRepo


@pytest.fixture()
def clock() -> FixedClock:
    """Monday 2025-09-22, 11:00 local (inside the 8:00-12:00 band)."""
    return FixedClock(datetime(2025, 9, 22, 11, 0))


@pytest.fixture()
def allocator() -> OrderKeyAllocator:
    return OrderKeyAllocator(step=100, renormalize_after=3)


@pytest.fixture()
def alias_repo() -> FakeAliasRepo:
    return FakeAliasRepo()
