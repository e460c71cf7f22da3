"""
Auto-Processor Tests

Partitioning by preference threshold, persistence calls and ledger idempotency.
"""
from datetime import date
from decimal import Decimal

import pytest

from packages.common.schemas.receipt import ReceiptStatus
from packages.domain.quality import AutoProcessor, ProcessingPreferences, decide
from tests.conftest import make_item


@pytest.fixture
def processor(receipt_repo, fake_ledger):
    return AutoProcessor(receipts=receipt_repo, ledger=fake_ledger)


def mixed_items():
    return [
        make_item("Мляко", "2.50", category="basic_foods", confidence=0.95, item_id="a"),
        make_item("Бира", "1.80", category="drinks", confidence=0.90, quantity="2", item_id="b"),
        make_item("Kinder Bueno", "1.20", category="snacks", confidence=0.60, item_id="c"),
        make_item("Неясно", "0.99", category=None, confidence=None, item_id="d"),
    ]


class TestDecide:
    def test_always_review_sends_everything(self):
        items = [make_item(f"Хляб {i}", confidence=0.99) for i in range(10)]
        result = decide(items, ProcessingPreferences(always_review=True))

        assert result.outcome == "manual_review"
        assert len(result.uncertain_items) == 10
        assert result.auto_saved_items == []
        assert result.category_breakdown == []
        assert result.total_amount == Decimal("10.00")

    def test_auto_processing_disabled_behaves_like_review(self):
        result = decide([make_item("Хляб", confidence=0.99)], ProcessingPreferences(auto_process_receipts=False))
        assert result.outcome == "manual_review"

    def test_all_confident(self):
        items = [make_item("Хляб", confidence=0.9), make_item("Айрян", confidence=0.7)]
        result = decide(items, ProcessingPreferences())
        assert result.auto_processed
        assert not result.requires_review
        assert result.outcome == "auto_processed"

    def test_partial(self):
        result = decide(mixed_items(), ProcessingPreferences())

        assert result.outcome == "partial"
        assert [i.id for i in result.auto_saved_items] == ["a", "b"]
        assert [i.id for i in result.uncertain_items] == ["c", "d"]
        assert [(c.category, c.total) for c in result.category_breakdown] == [
            ("drinks", Decimal("3.60")),
            ("basic_foods", Decimal("2.50")),
        ]
        assert result.total_amount == Decimal("8.29")

    def test_threshold_respected(self):
        result = decide(mixed_items(), ProcessingPreferences(confidence_threshold=0.92))
        assert [i.id for i in result.auto_saved_items] == ["a"]

    def test_empty_receipt_needs_review(self):
        result = decide([], ProcessingPreferences())
        assert result.outcome == "manual_review"
        assert result.requires_review

    @pytest.mark.parametrize("raw,expected", [(0.1, 0.5), (0.99, 0.95), (None, 0.70), (0.8, 0.8)])
    def test_threshold_clamped(self, raw, expected):
        assert ProcessingPreferences(confidence_threshold=raw).confidence_threshold == expected


class TestProcess:
    async def test_partial_persists_and_applies_ledger(self, processor, receipt_repo, fake_ledger, mock_db):
        result, deltas = await processor.process(
            "r-1", "u-1", mixed_items(), mock_db, purchase_date=date(2025, 3, 14)
        )

        assert result.outcome == "partial"
        first, second = receipt_repo.save_items.await_args_list
        assert [i.id for i in first.args[2]] == ["a", "b"]
        assert first.kwargs["auto_categorized"] is True
        assert [i.id for i in second.args[2]] == ["c", "d"]
        assert second.kwargs["requires_review"] is True
        assert [i.line_number for i in second.args[2]] == [2, 3]
        receipt_repo.delete_items_from.assert_awaited_once_with("r-1", 4, mock_db)

        status = receipt_repo.update_receipt_status.await_args.kwargs
        assert status["status"] == ReceiptStatus.PENDING
        assert status["auto_categorized_count"] == 2
        assert status["manual_review_count"] == 2

        assert all(d.applied for d in deltas)
        assert {d.month for d in deltas} == {date(2025, 3, 1)}
        assert fake_ledger.spent[("u-1", "drinks", date(2025, 3, 1))] == Decimal("3.60")

    async def test_ledger_is_idempotent(self, processor, fake_ledger, mock_db):
        items = mixed_items()
        await processor.process("r-1", "u-1", items, mock_db, purchase_date=date(2025, 3, 14))
        _, deltas = await processor.process("r-1", "u-1", items, mock_db, purchase_date=date(2025, 3, 14))

        assert not any(d.applied for d in deltas)
        assert fake_ledger.spent[("u-1", "basic_foods", date(2025, 3, 1))] == Decimal("2.50")

    async def test_completed_when_all_confident(self, processor, receipt_repo, mock_db):
        items = [make_item("Хляб", confidence=0.9)]
        result, _ = await processor.process("r-1", "u-1", items, mock_db)

        assert result.outcome == "auto_processed"
        status = receipt_repo.update_receipt_status.await_args.kwargs
        assert status["status"] == ReceiptStatus.COMPLETED
        assert status["auto_processed"] is True

    async def test_force_review(self, processor, fake_ledger, mock_db):
        items = [make_item("Хляб", confidence=0.99)]
        result, deltas = await processor.process("r-1", "u-1", items, mock_db, force_review=True)

        assert result.outcome == "manual_review"
        assert deltas == []
        assert fake_ledger.spent == {}

    async def test_reprocessing_keeps_lines_in_place(self, processor, receipt_repo, mock_db):
        stored = {}

        async def upsert(receipt_id, user_id, items, db, **kw):
            for item in items:
                stored[item.line_number] = (item.name, item.price, item.category, kw["auto_categorized"])
            return len(items)

        async def delete_from(receipt_id, line_count, db):
            for line in [n for n in stored if n >= line_count]:
                del stored[line]
            return 0

        receipt_repo.save_items.side_effect = upsert
        receipt_repo.delete_items_from.side_effect = delete_from
        items = [
            make_item("Kinder Bueno", "2.20", category="snacks", confidence=0.6),
            make_item("Бира", "1.80", category="drinks", confidence=0.9),
        ]

        await processor.process("r-1", "u-1", items, mock_db)
        first = dict(stored)
        await processor.process(
            "r-1", "u-1", items, mock_db, preferences=ProcessingPreferences(confidence_threshold=0.5)
        )

        assert {line: row[0] for line, row in first.items()} == {0: "Kinder Bueno", 1: "Бира"}
        assert {line: row[0] for line, row in stored.items()} == {0: "Kinder Bueno", 1: "Бира"}
        assert stored[0] == ("Kinder Bueno", Decimal("2.20"), "snacks", True)

        await processor.process("r-1", "u-1", items[:1], mock_db)
        assert list(stored) == [0]

    async def test_stored_preferences_used(self, processor, receipt_repo, mock_db):
        receipt_repo.get_user_preferences.return_value = {
            "auto_process_receipts": True, "confidence_threshold": 0.92, "always_review": None,
        }
        result, _ = await processor.process("r-1", "u-1", mixed_items(), mock_db)
        assert [i.id for i in result.auto_saved_items] == ["a"]


class TestPreferencesAndStats:
    async def test_defaults_when_missing(self, processor, mock_db):
        prefs = await processor.get_preferences("u-1", mock_db)
        assert prefs == ProcessingPreferences()

    async def test_defaults_when_read_fails(self, processor, receipt_repo, mock_db):
        receipt_repo.get_user_preferences.side_effect = ConnectionError("db down")
        prefs = await processor.get_preferences("u-1", mock_db)
        assert prefs.confidence_threshold == 0.70

    async def test_stats(self, processor, receipt_repo, mock_db):
        receipt_repo.get_processing_stats.return_value = {
            "total_receipts": 4,
            "auto_processed_count": 3,
            "total_auto_categorized_items": 30,
            "total_manual_review_items": 10,
        }
        stats = await processor.get_processing_stats("u-1", mock_db)
        assert stats.total_receipts == 4
        assert stats.auto_categorization_rate == 0.75

    async def test_empty_stats(self, processor, mock_db):
        stats = await processor.get_processing_stats("u-1", mock_db)
        assert stats.total_receipts == 0
        assert stats.auto_categorization_rate == 0.0
