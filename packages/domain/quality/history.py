"""
User purchase history for pattern checks

Built once per receipt from the last few months of the user's completed
receipts; the validator only ever reads the snapshot.
"""
import re
from collections import defaultdict
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional, Set

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from packages.common.config import get_settings
from packages.common.receipt_repository import ReceiptRepository, receipt_repository
from packages.domain.quality.schemas import UserHistory

logger = structlog.get_logger()

_STRIP = re.compile(r"[^a-zа-я0-9\s]")


def history_key(name: str) -> str:
    """First two words of the lowercased name, punctuation stripped"""
    words = _STRIP.sub("", name.lower()).split()
    return " ".join(words[:2])


def store_key(merchant_name: Optional[str]) -> str:
    return (merchant_name or "").strip().lower()


def build_user_history(rows: Iterable[Mapping]) -> UserHistory:
    """
    Aggregate item rows into a history snapshot.

    Args:
        rows: Mappings with merchant_name, name, category, price

    Returns:
        UserHistory
    """
    categories: Set[str] = set()
    stores: Set[str] = set()
    prices: Dict[str, List[Decimal]] = defaultdict(list)
    by_store: Dict[str, Set[str]] = defaultdict(set)

    for row in rows:
        store = store_key(row.get("merchant_name"))
        category = row.get("category")
        if store:
            stores.add(store)
        if category:
            categories.add(category)
            if store:
                by_store[store].add(category)

        name = row.get("name")
        price = row.get("price")
        if name and price is not None:
            key = history_key(name)
            if key:
                prices[key].append(Decimal(str(price)))

    average_prices = {
        key: sum(values, Decimal("0")) / len(values)
        for key, values in prices.items()
    }

    return UserHistory(
        common_categories=categories,
        common_stores=stores,
        average_price_by_key=average_prices,
        category_by_store=dict(by_store),
    )


class HistoryLoader:
    """One SQL read per receipt; failures degrade to an empty history"""

    def __init__(self, repository: Optional[ReceiptRepository] = None):
        self.settings = get_settings()
        self.repository = repository or receipt_repository

    async def load(self, user_id: str, db: AsyncSession) -> UserHistory:
        try:
            rows = await self.repository.load_history_rows(
                user_id, db, months=self.settings.history_window_months
            )
        except Exception as e:
            logger.warning("user_history_load_failed",
                          user_id=user_id,
                          error=str(e),
                          exc_info=True)
            return UserHistory.empty()

        history = build_user_history(rows)
        logger.debug("user_history_loaded",
                    user_id=user_id,
                    rows=len(rows),
                    categories=len(history.common_categories),
                    stores=len(history.common_stores))
        return history


# Singleton instance
history_loader = HistoryLoader()
