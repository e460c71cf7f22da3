"""
Categorization Service - Waterfall categorization for receipt items

Flow (first stage with an answer wins):
1. User correction: the user's own earlier override (confidence 1.0)
2. Cache: static product dictionary (confidence 1.0)
3. Rule: ordered keyword rules (confidence 0.95)
4. Store pattern: retailer private-label brands (confidence 0.85)
5. AI: external classifier, memoized per lookup key (accepted at >= 0.6)
6. Default: "other" with confidence 0.0

Example:
- Input: "Кисело мляко Верея 2% 400г", store "Kaufland"
- Lookup key: "кисело мляко верея 2 400г"
- Stage 2 hits "кисело мляко" → basic_foods, method=cache

Cost:
- Stages 2-4 are in-process and free
- Stage 5 runs once per distinct lookup key per process; concurrent
  requests for the same key share one outbound call
"""
import asyncio
from typing import Dict, List, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from packages.common.config import get_settings
from packages.common.correction_repository import CorrectionRepository, correction_repository
from packages.common.metrics import categorization_total
from packages.domain.categorization.category_cache import CategoryCache, category_cache
from packages.domain.categorization.classifier import ExternalClassifier, external_classifier
from packages.domain.categorization.rule_matcher import RuleMatcher, rule_matcher
from packages.domain.categorization.schemas import (
    AIResult,
    BatchItem,
    BatchItemResult,
    CATEGORY_NAMES,
    CategorizationResult,
    CategorizationStats,
    CategoryId,
    ClassifierVerdict,
    CorrectionRecord,
    UserCorrectionResult,
    category_name,
    default_result,
    is_known_category,
)
from packages.domain.categorization.single_flight import SingleFlightCache
from packages.domain.categorization.store_patterns import match_store_pattern
from packages.domain.normalization import lookup_key

logger = structlog.get_logger()


class CategorizationService:
    """
    Orchestrates the categorization waterfall.

    Usage:
        result = await categorization_service.categorize(
            raw_name="Айрян Верея 500мл",
            store_name="BILLA",
            user_id="u-42",
            db=db_session,
        )
        print(result.method, result.category_id, result.confidence)
    """

    def __init__(
        self,
        cache: Optional[CategoryCache] = None,
        rules: Optional[RuleMatcher] = None,
        classifier: Optional[ExternalClassifier] = None,
        memo: Optional[SingleFlightCache] = None,
        corrections: Optional[CorrectionRepository] = None,
    ):
        """Collaborators are injectable; defaults are the module singletons"""
        self.settings = get_settings()
        self.cache = cache or category_cache
        self.rules = rules or rule_matcher
        self.classifier = classifier or external_classifier
        self.memo = memo or SingleFlightCache(max_entries=self.settings.classifier_cache_size)
        self.corrections = corrections or correction_repository

    async def categorize(
        self,
        raw_name: str,
        store_name: Optional[str] = None,
        user_id: Optional[str] = None,
        db: Optional[AsyncSession] = None,
    ) -> CategorizationResult:
        """
        Categorize a single product name.

        Args:
            raw_name: Product text as printed on the receipt
            store_name: Merchant name (enables store patterns)
            user_id: Owner (enables user corrections together with db)
            db: Database session for correction lookups

        Returns:
            CategorizationResult tagged with the winning method
        """
        key = lookup_key(raw_name)

        correction = None
        if user_id and db is not None:
            correction = await self._lookup_correction(user_id, key, db)

        return await self._run_waterfall(raw_name, key, store_name, correction)

    async def categorize_batch(
        self,
        items: List[BatchItem],
        store_name: Optional[str] = None,
        user_id: Optional[str] = None,
        db: Optional[AsyncSession] = None,
    ) -> List[BatchItemResult]:
        """
        Categorize many items concurrently, preserving input order.

        Corrections for the whole batch are read in one query up front, so
        the concurrent stages never share the session. Duplicate lookup
        keys collapse into one classifier call through the memo.

        Args:
            items: Batch rows (name, optional id)
            store_name: Merchant name
            user_id: Owner
            db: Database session

        Returns:
            One BatchItemResult per input item, same order
        """
        keys = [lookup_key(item.name) for item in items]

        corrections: Dict[str, Dict] = {}
        if user_id and db is not None and keys:
            corrections = await self._lookup_corrections(user_id, keys, db)

        results = await asyncio.gather(*[
            self._run_waterfall(item.name, key, store_name, corrections.get(key))
            for item, key in zip(items, keys)
        ])

        by_method: Dict[str, int] = {}
        for result in results:
            by_method[result.method.value] = by_method.get(result.method.value, 0) + 1

        logger.info("batch_categorization_complete",
                   store_name=store_name,
                   total_items=len(items),
                   distinct_keys=len(set(keys)),
                   by_method=by_method)

        return [
            BatchItemResult(product_id=item.id, name=item.name, result=result)
            for item, result in zip(items, results)
        ]

    async def _run_waterfall(
        self,
        raw_name: str,
        key: str,
        store_name: Optional[str],
        correction: Optional[Dict],
    ) -> CategorizationResult:
        result = self._from_correction(correction)

        if result is None:
            result = self.cache.lookup(key)
        if result is None:
            result = self.rules.match(key)
        if result is None:
            result = match_store_pattern(raw_name, store_name)
        if result is None:
            result = await self._classify(raw_name, key)
        if result is None:
            result = default_result()

        categorization_total.labels(method=result.method.value).inc()
        logger.debug("categorization_complete",
                    raw_name=raw_name,
                    key=key,
                    method=result.method.value,
                    category=result.category_id.value,
                    confidence=result.confidence)
        return result

    @staticmethod
    def _from_correction(correction: Optional[Dict]) -> Optional[UserCorrectionResult]:
        if not correction or not is_known_category(correction.get("category_id") or ""):
            return None
        category_id = CategoryId(correction["category_id"])
        return UserCorrectionResult(
            category_id=category_id,
            category_name=category_name(category_id),
            confidence=1.0,
            corrected_at=correction.get("created_at"),
        )

    async def _lookup_correction(
        self,
        user_id: str,
        key: str,
        db: AsyncSession,
    ) -> Optional[Dict]:
        """Read-path failure is treated as "no correction"; the waterfall continues"""
        try:
            return await asyncio.wait_for(
                self.corrections.get_latest(user_id, key, db),
                timeout=self.settings.correction_lookup_timeout_seconds,
            )
        except Exception as e:
            logger.warning("correction_lookup_failed",
                          user_id=user_id,
                          key=key,
                          error=str(e) or type(e).__name__,
                          exc_info=True)
            return None

    async def _lookup_corrections(
        self,
        user_id: str,
        keys: List[str],
        db: AsyncSession,
    ) -> Dict[str, Dict]:
        try:
            return await asyncio.wait_for(
                self.corrections.get_latest_many(user_id, keys, db),
                timeout=self.settings.correction_lookup_timeout_seconds,
            )
        except Exception as e:
            logger.warning("correction_lookup_failed",
                          user_id=user_id,
                          key_count=len(keys),
                          error=str(e) or type(e).__name__,
                          exc_info=True)
            return {}

    async def _classify(self, raw_name: str, key: str) -> Optional[AIResult]:
        if not key:
            return None

        try:
            verdict: Optional[ClassifierVerdict] = await self.memo.get_or_compute(
                key, lambda: self.classifier.classify(raw_name)
            )
        except Exception as e:
            logger.error("classifier_stage_failed",
                        key=key,
                        error=str(e),
                        exc_info=True)
            return None

        if verdict is None or verdict.confidence < self.settings.ai_min_confidence:
            return None

        return AIResult(
            category_id=verdict.category_id,
            category_name=category_name(verdict.category_id),
            confidence=verdict.confidence,
            raw_confidence=verdict.confidence,
            model=verdict.model,
        )

    async def save_correction(
        self,
        user_id: str,
        raw_name: str,
        category_id: str,
        db: AsyncSession,
    ) -> CorrectionRecord:
        """
        Store a user override.

        Raises:
            ValueError: unknown category id
            PersistenceError: write failed
        """
        if not is_known_category(category_id):
            raise ValueError(f"Unknown category id: {category_id}")

        key = lookup_key(raw_name)
        created_at = await self.corrections.save(user_id, raw_name, key, category_id, db)

        return CorrectionRecord(
            user_id=user_id,
            raw_name=raw_name,
            normalized_name=key,
            category_id=CategoryId(category_id),
            created_at=created_at,
        )

    async def correction_stats(self, user_id: str, db: AsyncSession) -> Dict[str, int]:
        return await self.corrections.stats_by_category(user_id, db)

    def get_stats(self) -> CategorizationStats:
        cache_stats = self.cache.get_cache_stats()
        return CategorizationStats(
            memo_size=self.memo.size,
            in_flight=self.memo.in_flight,
            static_cache_entries=cache_stats["total_entries"],
            static_cache_by_category=cache_stats["by_category"],
            categories=[
                {"id": category_id.value, "name": name}
                for category_id, name in CATEGORY_NAMES.items()
            ],
        )

    def clear_memo(self) -> None:
        self.memo.clear()


# Singleton instance
categorization_service = CategorizationService()
