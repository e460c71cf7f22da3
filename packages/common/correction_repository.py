"""
User Correction Repository - Per-user category overrides

When a user moves an item to a different category, the override is stored
against the categorizer lookup key. The next time the same product name
shows up for that user, the waterfall returns the override before any other
stage runs.

Rows are append-only; the most recent override for a key wins.
"""
from datetime import datetime, timezone
from typing import Dict, List, Optional

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from packages.common.errors import PersistenceError

logger = structlog.get_logger()


class CorrectionRepository:
    """Repository for categorization_corrections"""

    async def get_latest(
        self,
        user_id: str,
        normalized_name: str,
        db: AsyncSession,
    ) -> Optional[Dict]:
        """
        Most recent override for a user and lookup key.

        Args:
            user_id: Owner of the correction
            normalized_name: Categorizer lookup key
            db: Database session

        Returns:
            Row dict (category_id, created_at) or None
        """
        query = text("""
            SELECT category_id, created_at
            FROM categorization_corrections
            WHERE user_id = :user_id
              AND normalized_name = :normalized_name
            ORDER BY created_at DESC
            LIMIT 1
        """)

        result = await db.execute(query, {
            "user_id": user_id,
            "normalized_name": normalized_name,
        })
        row = result.fetchone()
        return dict(row._mapping) if row else None

    async def get_latest_many(
        self,
        user_id: str,
        normalized_names: List[str],
        db: AsyncSession,
    ) -> Dict[str, Dict]:
        """
        Most recent override per lookup key, one round trip for a whole receipt.

        Returns:
            Dict of normalized_name -> row dict (category_id, created_at)
        """
        if not normalized_names:
            return {}

        query = text("""
            SELECT DISTINCT ON (normalized_name)
                normalized_name, category_id, created_at
            FROM categorization_corrections
            WHERE user_id = :user_id
              AND normalized_name = ANY(:normalized_names)
            ORDER BY normalized_name, created_at DESC
        """)

        result = await db.execute(query, {
            "user_id": user_id,
            "normalized_names": list(set(normalized_names)),
        })
        return {row.normalized_name: dict(row._mapping) for row in result.fetchall()}

    async def save(
        self,
        user_id: str,
        raw_name: str,
        normalized_name: str,
        category_id: str,
        db: AsyncSession,
    ) -> datetime:
        """
        Append a correction.

        Returns:
            created_at timestamp of the stored row

        Raises:
            PersistenceError: if the insert fails
        """
        created_at = datetime.now(timezone.utc)
        query = text("""
            INSERT INTO categorization_corrections (
                user_id, product_name, normalized_name, category_id, created_at
            ) VALUES (
                :user_id, :product_name, :normalized_name, :category_id, :created_at
            )
        """)

        try:
            await db.execute(query, {
                "user_id": user_id,
                "product_name": raw_name,
                "normalized_name": normalized_name,
                "category_id": category_id,
                "created_at": created_at,
            })
        except Exception as e:
            logger.error("correction_save_failed",
                        user_id=user_id,
                        normalized_name=normalized_name,
                        error=str(e),
                        exc_info=True)
            raise PersistenceError("save_correction", e) from e

        logger.info("correction_saved",
                   user_id=user_id,
                   normalized_name=normalized_name,
                   category_id=category_id)
        return created_at

    async def stats_by_category(self, user_id: str, db: AsyncSession) -> Dict[str, int]:
        """Correction count per category for one user"""
        query = text("""
            SELECT category_id, COUNT(*) AS corrections
            FROM categorization_corrections
            WHERE user_id = :user_id
            GROUP BY category_id
        """)

        result = await db.execute(query, {"user_id": user_id})
        return {row.category_id: int(row.corrections) for row in result.fetchall()}


# Singleton instance
correction_repository = CorrectionRepository()
