"""
Pytest configuration and fixtures for grocery budget tests.
"""
from decimal import Decimal
from types import SimpleNamespace
from typing import Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from packages.common.schemas.receipt import ProcessedItem


def make_item(
    name: str,
    price: str = "1.00",
    category: Optional[str] = "basic_foods",
    confidence: Optional[float] = 0.95,
    quantity: str = "1",
    item_id: Optional[str] = None,
    method: Optional[str] = "rule",
) -> ProcessedItem:
    """Build a categorized receipt line."""
    return ProcessedItem(
        id=item_id,
        name=name,
        quantity=Decimal(quantity),
        price=Decimal(price),
        category=category,
        confidence=confidence,
        method=method,
    )


def anthropic_reply(text: str) -> SimpleNamespace:
    """Shape of an AsyncAnthropic messages.create() response."""
    return SimpleNamespace(
        content=[SimpleNamespace(text=text)],
        usage=SimpleNamespace(input_tokens=120, output_tokens=20),
    )


@pytest.fixture
def item_factory():
    return make_item


@pytest.fixture
def mock_anthropic_client():
    """AsyncAnthropic stand-in whose reply is set per test."""
    client = MagicMock()
    client.messages.create = AsyncMock(
        return_value=anthropic_reply('{"category_id": "snacks", "confidence": 0.9}')
    )
    return client


@pytest.fixture
def mock_db():
    """AsyncSession stand-in; repositories are mocked, so it is never queried."""
    return MagicMock(name="AsyncSession")


@pytest.fixture
def correction_repo():
    repo = MagicMock()
    repo.get_latest = AsyncMock(return_value=None)
    repo.get_latest_many = AsyncMock(return_value={})
    repo.save = AsyncMock()
    repo.stats_by_category = AsyncMock(return_value={})
    return repo


@pytest.fixture
def receipt_repo():
    repo = MagicMock()
    repo.get_receipt = AsyncMock(return_value={"id": "r-1", "user_id": "u-1", "status": "pending"})
    repo.save_items = AsyncMock(side_effect=lambda receipt_id, user_id, items, db, **kw: len(items))
    repo.delete_items_from = AsyncMock(return_value=0)
    repo.update_receipt_status = AsyncMock()
    repo.load_history_rows = AsyncMock(return_value=[])
    repo.get_user_preferences = AsyncMock(return_value=None)
    repo.get_processing_stats = AsyncMock(return_value=None)
    return repo


class FakeLedger:
    """In-memory budget ledger with the same claim semantics as the SQL one."""

    def __init__(self):
        self.claims = set()
        self.spent = {}

    async def apply_category_total(self, user_id, receipt_id, category, amount, month, db):
        if (receipt_id, category) in self.claims:
            return False
        self.claims.add((receipt_id, category))
        key = (user_id, category, month)
        self.spent[key] = self.spent.get(key, Decimal("0")) + amount
        return True


@pytest.fixture
def fake_ledger():
    return FakeLedger()
