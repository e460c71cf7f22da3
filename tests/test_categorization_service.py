"""
Categorization Service Tests

Waterfall precedence, correction handling, batch behaviour.
"""
import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from packages.domain.categorization import BatchItem, CategorizationService
from packages.domain.categorization.schemas import CategorizationMethod, CategoryId, ClassifierVerdict
from packages.domain.categorization.single_flight import SingleFlightCache


@pytest.fixture
def classifier():
    mock = MagicMock()
    mock.classify = AsyncMock(
        return_value=ClassifierVerdict(category_id=CategoryId.SNACKS, confidence=0.9, model="test-model")
    )
    return mock


@pytest.fixture
def service(classifier, correction_repo):
    return CategorizationService(
        classifier=classifier,
        memo=SingleFlightCache(max_entries=100),
        corrections=correction_repo,
    )


class TestWaterfall:
    async def test_cache_stage(self, service, classifier):
        result = await service.categorize("Прясно мляко Верея 1л")
        assert result.method == CategorizationMethod.CACHE
        assert result.category_id == CategoryId.BASIC_FOODS
        assert result.confidence == 1.0
        classifier.classify.assert_not_awaited()

    async def test_rule_stage(self, service):
        result = await service.categorize("Душ гел Nivea 250мл")
        assert result.method == CategorizationMethod.RULE
        assert result.category_id == CategoryId.PERSONAL_CARE
        assert result.confidence == 0.95

    async def test_store_pattern_stage(self, service, classifier):
        result = await service.categorize("PIRATO Tortilla Chips", store_name="LIDL")
        assert result.method == CategorizationMethod.STORE_PATTERN
        assert result.category_id == CategoryId.SNACKS
        assert result.confidence == 0.85
        classifier.classify.assert_not_awaited()

    async def test_ai_stage(self, service, classifier):
        result = await service.categorize("Kinder Bueno")
        assert result.method == CategorizationMethod.AI
        assert result.category_id == CategoryId.SNACKS
        assert result.confidence == 0.9
        assert result.model == "test-model"
        classifier.classify.assert_awaited_once_with("Kinder Bueno")

    async def test_low_ai_confidence_falls_to_default(self, service, classifier):
        classifier.classify.return_value = ClassifierVerdict(category_id=CategoryId.SNACKS, confidence=0.4)
        result = await service.categorize("Kinder Bueno")
        assert result.method == CategorizationMethod.RULE
        assert result.category_id == CategoryId.OTHER
        assert result.confidence == 0.0
        assert result.is_default

    async def test_classifier_unavailable_gives_default(self, service, classifier):
        classifier.classify.return_value = None
        result = await service.categorize("Kinder Bueno")
        assert result.category_id == CategoryId.OTHER

    async def test_classifier_exception_is_contained(self, service, classifier):
        classifier.classify.side_effect = RuntimeError("boom")
        result = await service.categorize("Kinder Bueno")
        assert result.category_id == CategoryId.OTHER

    async def test_ai_result_memoized_per_key(self, service, classifier):
        await service.categorize("Kinder Bueno")
        await service.categorize("KINDER  bueno")
        assert classifier.classify.await_count == 1


class TestUserCorrections:
    async def test_correction_beats_cache(self, service, correction_repo, mock_db):
        corrected_at = datetime(2025, 3, 1, tzinfo=timezone.utc)
        correction_repo.get_latest.return_value = {"category_id": "drinks", "created_at": corrected_at}

        result = await service.categorize("Айрян Верея 500мл", user_id="u-1", db=mock_db)

        assert result.method == CategorizationMethod.USER_CORRECTION
        assert result.category_id == CategoryId.DRINKS
        assert result.confidence == 1.0
        assert result.corrected_at == corrected_at
        correction_repo.get_latest.assert_awaited_once_with("u-1", "айрян верея 500мл", mock_db)

    async def test_no_lookup_without_user(self, service, correction_repo, mock_db):
        await service.categorize("Айрян", db=mock_db)
        correction_repo.get_latest.assert_not_awaited()

    async def test_lookup_failure_continues(self, service, correction_repo, mock_db):
        correction_repo.get_latest.side_effect = ConnectionError("db down")
        result = await service.categorize("Айрян", user_id="u-1", db=mock_db)
        assert result.method == CategorizationMethod.CACHE

    async def test_unknown_stored_category_ignored(self, service, correction_repo, mock_db):
        correction_repo.get_latest.return_value = {"category_id": "toys", "created_at": None}
        result = await service.categorize("Айрян", user_id="u-1", db=mock_db)
        assert result.method == CategorizationMethod.CACHE

    async def test_save_correction(self, service, correction_repo, mock_db):
        created_at = datetime(2025, 3, 14, 10, 22, tzinfo=timezone.utc)
        correction_repo.save.return_value = created_at

        record = await service.save_correction("u-1", "Айрян Верея 500мл", "drinks", mock_db)

        assert record.normalized_name == "айрян верея 500мл"
        assert record.category_id == CategoryId.DRINKS
        assert record.created_at == created_at
        correction_repo.save.assert_awaited_once_with(
            "u-1", "Айрян Верея 500мл", "айрян верея 500мл", "drinks", mock_db
        )

    async def test_save_correction_unknown_category(self, service, correction_repo, mock_db):
        with pytest.raises(ValueError):
            await service.save_correction("u-1", "Айрян", "toys", mock_db)
        correction_repo.save.assert_not_awaited()


class TestBatch:
    async def test_order_and_ids_preserved(self, service):
        items = [
            BatchItem(name="Kinder Bueno", id="a"),
            BatchItem(name="Прясно мляко", id="b"),
            BatchItem(name="Душ гел", id="c"),
        ]
        results = await service.categorize_batch(items)

        assert [r.product_id for r in results] == ["a", "b", "c"]
        assert [r.result.method for r in results] == [
            CategorizationMethod.AI,
            CategorizationMethod.CACHE,
            CategorizationMethod.RULE,
        ]

    async def test_duplicate_names_one_classifier_call(self, service, classifier):
        async def slow_classify(name):
            await asyncio.sleep(0.01)
            return ClassifierVerdict(category_id=CategoryId.SNACKS, confidence=0.9)

        classifier.classify.side_effect = slow_classify
        items = [BatchItem(name="Kinder Bueno") for _ in range(6)]

        results = await service.categorize_batch(items)

        assert classifier.classify.await_count == 1
        assert all(r.result.category_id == CategoryId.SNACKS for r in results)

    async def test_corrections_prefetched_once(self, service, correction_repo, mock_db):
        correction_repo.get_latest_many.return_value = {
            "kinder bueno": {"category_id": "basic_foods", "created_at": None},
        }
        items = [BatchItem(name="Kinder Bueno"), BatchItem(name="Айрян")]

        results = await service.categorize_batch(items, user_id="u-1", db=mock_db)

        correction_repo.get_latest_many.assert_awaited_once()
        correction_repo.get_latest.assert_not_awaited()
        assert results[0].result.method == CategorizationMethod.USER_CORRECTION
        assert results[1].result.method == CategorizationMethod.CACHE

    async def test_empty_batch(self, service, correction_repo, mock_db):
        assert await service.categorize_batch([], user_id="u-1", db=mock_db) == []
        correction_repo.get_latest_many.assert_not_awaited()


class TestStats:
    async def test_stats(self, service):
        await service.categorize("Kinder Bueno")
        stats = service.get_stats()
        assert stats.memo_size == 1
        assert stats.in_flight == 0
        assert stats.static_cache_entries > 0
        assert {c["id"] for c in stats.categories} == {c.value for c in CategoryId}

        service.clear_memo()
        assert service.get_stats().memo_size == 0
