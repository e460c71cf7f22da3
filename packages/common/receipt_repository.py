"""
Receipt Repository - Database operations for receipts and their items

Tables:
- receipts: one row per scanned receipt (status, review flags, counters)
- receipt_items: categorized line items, upserted per (receipt_id, line_number)
- user_preferences: auto-processing switches per user

Writes raise PersistenceError so the caller's session context rolls the
whole receipt back; a retry then starts from a clean slate.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from packages.common.errors import PersistenceError
from packages.common.schemas.receipt import ProcessedItem, ReceiptStatus

logger = structlog.get_logger()


class ReceiptRepository:
    """Repository for receipt database operations"""

    async def get_receipt(
        self,
        receipt_id: str,
        user_id: str,
        db: AsyncSession,
    ) -> Optional[Dict[str, Any]]:
        query = text("""
            SELECT
                id,
                user_id,
                merchant_name,
                total_amount,
                purchase_date,
                status,
                auto_processed,
                requires_review,
                auto_categorized_count,
                manual_review_count,
                reviewed_at,
                created_at
            FROM receipts
            WHERE id = :receipt_id AND user_id = :user_id
        """)

        result = await db.execute(query, {"receipt_id": receipt_id, "user_id": user_id})
        row = result.fetchone()
        return dict(row._mapping) if row else None

    async def save_items(
        self,
        receipt_id: str,
        user_id: str,
        items: Sequence[ProcessedItem],
        db: AsyncSession,
        auto_categorized: bool,
        requires_review: bool,
    ) -> int:
        """
        Upsert categorized items for a receipt, keyed by each item's receipt position.

        Args:
            receipt_id: Receipt id
            user_id: Owner
            items: Items to store
            db: Database session
            auto_categorized: Category was accepted without the user
            requires_review: Item waits for the user

        Returns:
            Number of rows written

        Raises:
            PersistenceError: on any failed insert
        """
        if not items:
            return 0

        query = text("""
            INSERT INTO receipt_items (
                receipt_id,
                user_id,
                line_number,
                name,
                quantity,
                price,
                category,
                confidence_score,
                categorization_method,
                normalized_name,
                master_product_id,
                auto_categorized,
                requires_review,
                created_at
            ) VALUES (
                :receipt_id,
                :user_id,
                :line_number,
                :name,
                :quantity,
                :price,
                :category,
                :confidence_score,
                :categorization_method,
                :normalized_name,
                :master_product_id,
                :auto_categorized,
                :requires_review,
                :created_at
            )
            ON CONFLICT (receipt_id, line_number) DO UPDATE SET
                user_id = EXCLUDED.user_id,
                name = EXCLUDED.name,
                quantity = EXCLUDED.quantity,
                price = EXCLUDED.price,
                category = EXCLUDED.category,
                confidence_score = EXCLUDED.confidence_score,
                categorization_method = EXCLUDED.categorization_method,
                normalized_name = EXCLUDED.normalized_name,
                master_product_id = EXCLUDED.master_product_id,
                auto_categorized = EXCLUDED.auto_categorized,
                requires_review = EXCLUDED.requires_review
        """)

        now = datetime.now(timezone.utc)
        written = 0
        for item in items:
            if item.line_number is None:
                raise ValueError(f"Item {item.name!r} has no line number")
            try:
                await db.execute(query, {
                    "receipt_id": receipt_id,
                    "user_id": user_id,
                    "line_number": item.line_number,
                    "name": item.name,
                    "quantity": item.quantity,
                    "price": item.price,
                    "category": item.category,
                    "confidence_score": item.confidence,
                    "categorization_method": item.method,
                    "normalized_name": item.normalized_name,
                    "master_product_id": item.master_product_id,
                    "auto_categorized": auto_categorized,
                    "requires_review": requires_review,
                    "created_at": now,
                })
                written += 1
            except Exception as e:
                logger.error("receipt_item_insert_failed",
                            receipt_id=receipt_id,
                            line_number=item.line_number,
                            error=str(e),
                            exc_info=True)
                raise PersistenceError("save_items", e) from e

        logger.info("receipt_items_saved",
                   receipt_id=receipt_id,
                   written=written,
                   auto_categorized=auto_categorized,
                   requires_review=requires_review)
        return written

    async def delete_items_from(
        self,
        receipt_id: str,
        line_count: int,
        db: AsyncSession,
    ) -> int:
        """Drop lines left over from an earlier, longer version of the receipt"""
        query = text("""
            DELETE FROM receipt_items
            WHERE receipt_id = :receipt_id AND line_number >= :line_count
        """)

        try:
            result = await db.execute(query, {"receipt_id": receipt_id, "line_count": line_count})
        except Exception as e:
            logger.error("receipt_item_delete_failed",
                        receipt_id=receipt_id,
                        line_count=line_count,
                        error=str(e),
                        exc_info=True)
            raise PersistenceError("delete_items_from", e) from e

        deleted = result.rowcount or 0
        if deleted:
            logger.info("stale_receipt_items_deleted",
                       receipt_id=receipt_id,
                       deleted=deleted)
        return deleted

    async def update_receipt_status(
        self,
        receipt_id: str,
        db: AsyncSession,
        status: ReceiptStatus,
        auto_processed: bool,
        requires_review: bool,
        auto_categorized_count: int,
        manual_review_count: int,
    ) -> None:
        """Set status, flags and counters; reviewed_at is stamped on completion"""
        query = text("""
            UPDATE receipts
            SET
                status = :status,
                auto_processed = :auto_processed,
                requires_review = :requires_review,
                auto_categorized_count = :auto_categorized_count,
                manual_review_count = :manual_review_count,
                reviewed_at = :reviewed_at,
                updated_at = NOW()
            WHERE id = :receipt_id
        """)

        try:
            await db.execute(query, {
                "receipt_id": receipt_id,
                "status": status.value,
                "auto_processed": auto_processed,
                "requires_review": requires_review,
                "auto_categorized_count": auto_categorized_count,
                "manual_review_count": manual_review_count,
                "reviewed_at": datetime.now(timezone.utc) if status == ReceiptStatus.COMPLETED else None,
            })
        except Exception as e:
            logger.error("receipt_status_update_failed",
                        receipt_id=receipt_id,
                        status=status.value,
                        error=str(e),
                        exc_info=True)
            raise PersistenceError("update_receipt_status", e) from e

        logger.info("receipt_status_updated",
                   receipt_id=receipt_id,
                   status=status.value,
                   auto_processed=auto_processed,
                   requires_review=requires_review)

    async def load_history_rows(
        self,
        user_id: str,
        db: AsyncSession,
        months: int = 3,
    ) -> List[Dict[str, Any]]:
        """Items of the user's completed receipts within the last `months` months"""
        query = text("""
            SELECT
                r.merchant_name,
                i.name,
                i.category,
                i.price
            FROM receipts r
            JOIN receipt_items i ON i.receipt_id = r.id
            WHERE r.user_id = :user_id
              AND r.status = 'completed'
              AND r.created_at >= NOW() - make_interval(months => :months)
        """)

        result = await db.execute(query, {"user_id": user_id, "months": months})
        return [dict(row._mapping) for row in result.fetchall()]

    async def get_user_preferences(self, user_id: str, db: AsyncSession) -> Optional[Dict[str, Any]]:
        query = text("""
            SELECT auto_process_receipts, confidence_threshold, always_review
            FROM user_preferences
            WHERE user_id = :user_id
        """)

        result = await db.execute(query, {"user_id": user_id})
        row = result.fetchone()
        return dict(row._mapping) if row else None

    async def get_processing_stats(self, user_id: str, db: AsyncSession) -> Optional[Dict[str, Any]]:
        """Lifetime auto-processing counters for one user"""
        query = text("""
            SELECT
                COUNT(*) AS total_receipts,
                COUNT(*) FILTER (WHERE auto_processed) AS auto_processed_count,
                COALESCE(SUM(auto_categorized_count), 0) AS total_auto_categorized_items,
                COALESCE(SUM(manual_review_count), 0) AS total_manual_review_items
            FROM receipts
            WHERE user_id = :user_id
        """)

        result = await db.execute(query, {"user_id": user_id})
        row = result.fetchone()
        if not row or not row.total_receipts:
            return None
        return dict(row._mapping)


# Singleton instance
receipt_repository = ReceiptRepository()
