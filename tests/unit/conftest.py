"""Fixtures wiring the in-memory stores from tests/unit/fakes.py."""

import itertools
from collections.abc import Callable
from datetime import timedelta
from typing import Any
from unittest.mock import AsyncMock

import pytest

from src.pm_order.domain.models import Order
from tests.unit.fakes import (
    T0,
    FakeAccountRepository,
    FakeMarketRepository,
    FakeOrderRepository,
    make_market,
)


@pytest.fixture
def db() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def accounts() -> FakeAccountRepository:
    return FakeAccountRepository()


@pytest.fixture
def markets() -> FakeMarketRepository:
    repo = FakeMarketRepository()
    repo.add(make_market())
    return repo


@pytest.fixture
def orders() -> FakeOrderRepository:
    return FakeOrderRepository()


@pytest.fixture
def new_order() -> Callable[..., Order]:
    """Factory for fresh Open orders with increasing ids and timestamps."""
    seq = itertools.count(1)

    def _make(
        user_id: str,
        side: str,
        price: int,
        quantity: int = 1,
        market_id: str = "MKT-1",
        **kwargs: Any,
    ) -> Order:
        n = next(seq)
        defaults: dict[str, Any] = {
            "id": f"{n:019d}",
            "market_id": market_id,
            "user_id": user_id,
            "side": side,
            "limit_price": price,
            "quantity": quantity,
            "created_at": T0 + timedelta(seconds=n),
            "updated_at": T0 + timedelta(seconds=n),
        }
        defaults.update(kwargs)
        return Order(**defaults)

    return _make
