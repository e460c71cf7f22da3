"""
Budget Ledger - Monthly spend per category

Each receipt contributes its per-category totals to the month of purchase.
An application record keyed by (receipt_id, category) is claimed first; a
second attempt for the same pair finds the claim taken and skips the
increment, so a retried receipt never double-counts.
"""
from datetime import date
from decimal import Decimal
from typing import Optional

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from packages.common.errors import PersistenceError

logger = structlog.get_logger()


def month_start(day: Optional[date] = None) -> date:
    day = day or date.today()
    return day.replace(day=1)


class BudgetLedger:
    """Repository for budget_categories and budget_ledger_applications"""

    async def apply_category_total(
        self,
        user_id: str,
        receipt_id: str,
        category: str,
        amount: Decimal,
        month: date,
        db: AsyncSession,
    ) -> bool:
        """
        Add one category total to the month, at most once per receipt.

        Returns:
            True if applied now, False if this receipt already contributed

        Raises:
            PersistenceError: on any failed write
        """
        claim = text("""
            INSERT INTO budget_ledger_applications (receipt_id, category, user_id, month, amount, applied_at)
            VALUES (:receipt_id, :category, :user_id, :month, :amount, NOW())
            ON CONFLICT (receipt_id, category) DO NOTHING
            RETURNING receipt_id
        """)
        increment = text("""
            INSERT INTO budget_categories (user_id, category, month, spent, created_at, updated_at)
            VALUES (:user_id, :category, :month, :amount, NOW(), NOW())
            ON CONFLICT (user_id, category, month) DO UPDATE
                SET spent = budget_categories.spent + EXCLUDED.spent,
                    updated_at = NOW()
        """)
        params = {
            "user_id": user_id,
            "receipt_id": receipt_id,
            "category": category,
            "month": month,
            "amount": amount,
        }

        try:
            result = await db.execute(claim, params)
            if result.fetchone() is None:
                logger.info("ledger_application_skipped",
                           receipt_id=receipt_id,
                           category=category)
                return False
            await db.execute(increment, params)
        except Exception as e:
            logger.error("ledger_update_failed",
                        user_id=user_id,
                        receipt_id=receipt_id,
                        category=category,
                        error=str(e),
                        exc_info=True)
            raise PersistenceError("apply_category_total", e) from e

        logger.info("ledger_updated",
                   user_id=user_id,
                   category=category,
                   month=month.isoformat(),
                   amount=str(amount))
        return True


# Singleton instance
budget_ledger = BudgetLedger()
