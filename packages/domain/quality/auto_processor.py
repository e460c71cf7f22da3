"""
Auto-Processor - Decide which categorized items can skip the user

Flow:
1. Load preferences (defaults when the user never set any)
2. Partition items: confident (category + confidence >= threshold) vs uncertain
3. Persist by outcome:
   - all confident   → receipt completed, items auto-categorized, ledger updated
   - some confident  → receipt pending review, confident items still hit the ledger
   - none confident  → manual review, nothing auto-saved
4. Ledger updates are guarded per (receipt, category), so retries are no-ops
5. Items are stored under their receipt position, so reprocessing overwrites
   each line in place and drops lines past the new end

Preferences:
- always_review or auto_process_receipts=false sends everything to review
- confidence_threshold is clamped to [0.5, 0.95] by the schema
"""
from collections import OrderedDict
from datetime import date
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from packages.common.budget_ledger import BudgetLedger, budget_ledger, month_start
from packages.common.config import get_settings
from packages.common.metrics import receipts_processed_total
from packages.common.receipt_repository import ReceiptRepository, receipt_repository
from packages.common.schemas.receipt import ProcessedItem, ReceiptStatus
from packages.domain.quality.schemas import (
    CategoryTotal,
    LedgerDelta,
    ProcessingPreferences,
    ProcessingResult,
    ProcessingStats,
)

logger = structlog.get_logger()


def category_breakdown(items: Sequence[ProcessedItem]) -> List[CategoryTotal]:
    """Per-category totals, largest first"""
    totals: "OrderedDict[str, Tuple[Decimal, int]]" = OrderedDict()
    for item in items:
        if not item.category:
            continue
        total, count = totals.get(item.category, (Decimal("0"), 0))
        totals[item.category] = (total + item.line_total, count + 1)

    breakdown = [
        CategoryTotal(category=category, total=total, item_count=count)
        for category, (total, count) in totals.items()
    ]
    return sorted(breakdown, key=lambda c: c.total, reverse=True)


def number_lines(items: Sequence[ProcessedItem]) -> List[ProcessedItem]:
    """Items without a receipt position take their index in `items`"""
    return [
        item if item.line_number is not None else item.model_copy(update={"line_number": position})
        for position, item in enumerate(items)
    ]


def confidence_rate(items: Sequence[ProcessedItem]) -> float:
    scores = [item.confidence for item in items if item.confidence]
    if not scores:
        return 0.0
    return sum(scores) / len(scores)


def decide(items: Sequence[ProcessedItem], preferences: ProcessingPreferences) -> ProcessingResult:
    """
    Route items to auto-save or review. Pure; no I/O.

    Args:
        items: Categorized items
        preferences: User's auto-processing preferences

    Returns:
        ProcessingResult
    """
    items = list(items)
    total_amount = sum((item.line_total for item in items), Decimal("0"))

    if preferences.always_review or not preferences.auto_process_receipts:
        return ProcessingResult(
            auto_processed=False,
            requires_review=True,
            auto_saved_items=[],
            uncertain_items=items,
            category_breakdown=[],
            total_amount=total_amount,
            confidence_rate=0.0,
        )

    threshold = preferences.confidence_threshold
    auto_saved = [
        item for item in items
        if item.category and item.confidence is not None and item.confidence >= threshold
    ]
    auto_saved_ids = {id(item) for item in auto_saved}
    uncertain = [item for item in items if id(item) not in auto_saved_ids]

    fully_automatic = bool(auto_saved) and not uncertain

    return ProcessingResult(
        auto_processed=fully_automatic,
        requires_review=not fully_automatic,
        auto_saved_items=auto_saved,
        uncertain_items=uncertain,
        category_breakdown=category_breakdown(auto_saved),
        total_amount=total_amount,
        confidence_rate=confidence_rate(items),
    )


class AutoProcessor:
    """
    Usage:
        preferences = await auto_processor.get_preferences(user_id, db)
        result, deltas = await auto_processor.process(
            receipt_id, user_id, items, db, preferences=preferences
        )
        print(result.outcome, [d.amount_delta for d in deltas])
    """

    def __init__(
        self,
        receipts: Optional[ReceiptRepository] = None,
        ledger: Optional[BudgetLedger] = None,
    ):
        self.settings = get_settings()
        self.receipts = receipts or receipt_repository
        self.ledger = ledger or budget_ledger

    def default_preferences(self) -> ProcessingPreferences:
        return ProcessingPreferences(confidence_threshold=self.settings.default_confidence_threshold)

    async def get_preferences(self, user_id: str, db: AsyncSession) -> ProcessingPreferences:
        """User preferences, or defaults when absent or unreadable"""
        try:
            row = await self.receipts.get_user_preferences(user_id, db)
        except Exception as e:
            logger.warning("user_preferences_load_failed",
                          user_id=user_id,
                          error=str(e),
                          exc_info=True)
            return self.default_preferences()

        if not row:
            return self.default_preferences()
        defaults = self.default_preferences().model_dump()
        defaults.update({k: v for k, v in row.items() if v is not None})
        return ProcessingPreferences(**defaults)

    async def process(
        self,
        receipt_id: str,
        user_id: str,
        items: Sequence[ProcessedItem],
        db: AsyncSession,
        preferences: Optional[ProcessingPreferences] = None,
        purchase_date: Optional[date] = None,
        force_review: bool = False,
    ) -> Tuple[ProcessingResult, List[LedgerDelta]]:
        """
        Decide and persist.

        Args:
            receipt_id: Receipt id
            user_id: Owner
            items: Categorized items
            db: Database session (caller owns the transaction)
            preferences: Pre-loaded preferences (loaded here when None)
            purchase_date: Selects the ledger month (today when None)
            force_review: Send everything to review (failed validation)

        Returns:
            (ProcessingResult, ledger deltas that were considered)

        Raises:
            PersistenceError: any write failed
        """
        if preferences is None:
            preferences = await self.get_preferences(user_id, db)
        if force_review:
            preferences = preferences.model_copy(update={"always_review": True})

        items = number_lines(items)
        result = decide(items, preferences)
        auto_saved = result.auto_saved_items
        uncertain = result.uncertain_items

        await self.receipts.save_items(
            receipt_id, user_id, auto_saved, db,
            auto_categorized=True,
            requires_review=False,
        )
        await self.receipts.save_items(
            receipt_id, user_id, uncertain, db,
            auto_categorized=False,
            requires_review=True,
        )
        await self.receipts.delete_items_from(receipt_id, len(items), db)

        await self.receipts.update_receipt_status(
            receipt_id,
            db,
            status=ReceiptStatus.COMPLETED if result.auto_processed else ReceiptStatus.PENDING,
            auto_processed=result.auto_processed,
            requires_review=result.requires_review,
            auto_categorized_count=len(auto_saved),
            manual_review_count=len(uncertain),
        )

        deltas = await self._apply_ledger(receipt_id, user_id, result, purchase_date, db)

        receipts_processed_total.labels(outcome=result.outcome).inc()
        logger.info("receipt_auto_processed",
                   receipt_id=receipt_id,
                   outcome=result.outcome,
                   auto_saved=len(auto_saved),
                   uncertain=len(uncertain),
                   total_amount=str(result.total_amount),
                   confidence_rate=round(result.confidence_rate, 3))

        return result, deltas

    async def _apply_ledger(
        self,
        receipt_id: str,
        user_id: str,
        result: ProcessingResult,
        purchase_date: Optional[date],
        db: AsyncSession,
    ) -> List[LedgerDelta]:
        month = month_start(purchase_date)
        deltas = []
        for total in result.category_breakdown:
            applied = await self.ledger.apply_category_total(
                user_id=user_id,
                receipt_id=receipt_id,
                category=total.category,
                amount=total.total,
                month=month,
                db=db,
            )
            deltas.append(LedgerDelta(
                user_id=user_id,
                category=total.category,
                month=month,
                amount_delta=total.total,
                applied=applied,
            ))
        return deltas

    async def get_processing_stats(self, user_id: str, db: AsyncSession) -> ProcessingStats:
        row = await self.receipts.get_processing_stats(user_id, db)
        if not row:
            return ProcessingStats()

        auto_items = int(row["total_auto_categorized_items"])
        manual_items = int(row["total_manual_review_items"])
        total_items = auto_items + manual_items
        return ProcessingStats(
            total_receipts=int(row["total_receipts"]),
            auto_processed_count=int(row["auto_processed_count"]),
            total_auto_categorized_items=auto_items,
            total_manual_review_items=manual_items,
            auto_categorization_rate=round(auto_items / total_items, 4) if total_items else 0.0,
        )


# Singleton instance
auto_processor = AutoProcessor()
