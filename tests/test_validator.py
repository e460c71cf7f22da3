"""
Quality Validator and History Tests
"""
from decimal import Decimal

import pytest

from packages.domain.quality import (
    HistoryLoader,
    IssueType,
    Severity,
    UserHistory,
    ValidationIssue,
    ValidationResult,
    build_user_history,
    create_validation_summary,
    quality_validator,
)
from packages.domain.quality.history import history_key, store_key
from tests.conftest import make_item


def items_summing_to(total: str, count: int = 4):
    """`count` confident basic-food items whose prices add up to `total`."""
    total = Decimal(total)
    share = (total / count).quantize(Decimal("0.01"))
    prices = [share] * (count - 1) + [total - share * (count - 1)]
    return [make_item(f"Хляб {i}", str(price)) for i, price in enumerate(prices)]


@pytest.fixture
def known_history():
    return UserHistory(
        common_categories={"basic_foods", "drinks"},
        common_stores={"kaufland младост"},
        average_price_by_key={"хляб добруджа": Decimal("1.50")},
        category_by_store={"kaufland младост": {"basic_foods", "drinks"}},
    )


class TestTotalCheck:
    def test_within_tolerance(self):
        assert quality_validator.check_total(items_summing_to("19.80"), Decimal("20.00")) is None

    def test_exactly_at_tolerance(self):
        assert quality_validator.check_total(items_summing_to("98.00"), Decimal("100.00")) is None

    def test_just_past_tolerance(self):
        issue = quality_validator.check_total(items_summing_to("97.99"), Decimal("100.00"))
        assert issue is not None
        assert issue.severity == Severity.MEDIUM

    def test_twice_tolerance_still_medium(self):
        issue = quality_validator.check_total(items_summing_to("96.00"), Decimal("100.00"))
        assert issue.severity == Severity.MEDIUM

    def test_medium_mismatch(self):
        issue = quality_validator.check_total(items_summing_to("19.40"), Decimal("20.00"))
        assert issue.type == IssueType.TOTAL_MISMATCH
        assert issue.severity == Severity.MEDIUM

    def test_high_mismatch(self):
        issue = quality_validator.check_total(items_summing_to("19.80"), Decimal("25.00"))
        assert issue.severity == Severity.HIGH
        assert "19.80" in issue.message
        assert "25.00" in issue.message

    def test_uses_line_totals(self):
        items = [make_item("Мляко", "2.49", quantity="2")]
        assert quality_validator.check_total(items, Decimal("4.98")) is None


class TestUnusualItems:
    def test_new_item_middling_confidence(self):
        issues = quality_validator.check_unusual_items(
            [make_item("Kinder Bueno", confidence=0.8, item_id="l1")], UserHistory.empty()
        )
        assert len(issues) == 1
        assert issues[0].severity == Severity.MEDIUM
        assert issues[0].item_ref == "l1"
        assert "80%" in issues[0].message

    def test_new_item_high_confidence_ignored(self):
        assert quality_validator.check_unusual_items(
            [make_item("Kinder Bueno", confidence=0.9)], UserHistory.empty()
        ) == []

    def test_low_confidence_skipped(self):
        assert quality_validator.check_unusual_items(
            [make_item("Kinder Bueno", confidence=0.5), make_item("X", confidence=None)],
            UserHistory.empty(),
        ) == []

    def test_price_anomaly(self, known_history):
        issues = quality_validator.check_unusual_items(
            [make_item("Хляб Добруджа 500г", "4.80", confidence=0.95)], known_history
        )
        assert len(issues) == 1
        assert issues[0].severity == Severity.LOW
        assert "3.2x" in issues[0].message

    def test_normal_price(self, known_history):
        assert quality_validator.check_unusual_items(
            [make_item("Хляб Добруджа 500г", "1.60", confidence=0.8)], known_history
        ) == []


class TestPatternBreaks:
    def test_new_category_with_low_confidence(self, known_history):
        items = [
            make_item("Фолио", category="household", confidence=0.7),
            make_item("Гъба", category="household", confidence=0.7),
        ]
        issues = quality_validator.check_pattern_breaks(items, "Непознат магазин", known_history)
        assert len(issues) == 1
        assert issues[0].type == IssueType.PATTERN_BREAK
        assert issues[0].severity == Severity.MEDIUM
        assert "Домакински" in issues[0].message

    def test_single_item_new_category_ignored(self, known_history):
        items = [make_item("Фолио", category="household", confidence=0.5)]
        assert quality_validator.check_pattern_breaks(items, "Непознат магазин", known_history) == []

    def test_store_never_sold_category(self, known_history):
        items = [make_item("Шампоан", category="personal_care", confidence=0.75)]
        issues = quality_validator.check_pattern_breaks(items, "  Kaufland Младост ", known_history)
        assert len(issues) == 1
        assert issues[0].severity == Severity.LOW

    def test_unknown_store_no_store_check(self, known_history):
        items = [make_item("Шампоан", category="personal_care", confidence=0.75)]
        assert quality_validator.check_pattern_breaks(items, "Billa", known_history) == []


class TestStoreMismatch:
    def test_competitor_label(self):
        issues = quality_validator.check_store_mismatch(
            [make_item("K-Classic Сирене 400г")], "Lidl България"
        )
        assert len(issues) == 1
        assert issues[0].type == IssueType.OCR_ERROR
        assert issues[0].severity == Severity.HIGH

    def test_own_label(self):
        assert quality_validator.check_store_mismatch(
            [make_item("K-Classic Сирене 400г")], "Kaufland Младост"
        ) == []

    def test_unknown_chain(self):
        assert quality_validator.check_store_mismatch(
            [make_item("K-Classic Сирене 400г")], "Квартален магазин"
        ) == []


class TestValidate:
    def test_clean_receipt_passes(self, known_history):
        items = items_summing_to("19.80")
        result = quality_validator.validate("r-1", items, Decimal("20.00"), "Kaufland Младост", known_history)
        assert result.passed
        assert not result.requires_user_attention
        assert result.issues == []

    def test_unusual_medium_is_auto_resolved(self):
        items = [make_item("Kinder Bueno", "2.00", category="snacks", confidence=0.8)]
        result = quality_validator.validate("r-1", items, Decimal("2.00"), "", UserHistory.empty())
        assert result.passed
        assert [i.type for i in result.auto_resolved] == [IssueType.UNUSUAL_ITEM]

    def test_total_mismatch_fails(self, known_history):
        items = items_summing_to("19.80")
        result = quality_validator.validate("r-1", items, Decimal("25.00"), "Kaufland Младост", known_history)
        assert not result.passed
        assert result.requires_user_attention
        assert [i.type for i in result.issues] == [IssueType.TOTAL_MISMATCH]


class TestSummary:
    def test_passed(self):
        result = ValidationResult(passed=True, requires_user_attention=False)
        assert create_validation_summary(result) == "✓ Всичко изглежда наред"

    def test_high_issues(self):
        issue = ValidationIssue(type=IssueType.OCR_ERROR, severity=Severity.HIGH, message="x")
        result = ValidationResult(passed=False, issues=[issue, issue], requires_user_attention=True)
        assert create_validation_summary(result) == "Проверете 2 продукта"

    def test_medium_issue(self):
        issue = ValidationIssue(type=IssueType.PATTERN_BREAK, severity=Severity.MEDIUM, message="x")
        result = ValidationResult(passed=False, issues=[issue], requires_user_attention=True)
        assert create_validation_summary(result) == "1 продукт изисква внимание"


class TestHistory:
    def test_history_key(self):
        assert history_key("Хляб Добруджа 500г") == "хляб добруджа"
        assert history_key("Кока-Кола 2л") == "кокакола 2л"
        assert history_key("!!!") == ""

    def test_store_key(self):
        assert store_key("  Kaufland Младост ") == "kaufland младост"
        assert store_key(None) == ""

    def test_build(self):
        rows = [
            {"merchant_name": "Kaufland", "name": "Хляб Добруджа 500г", "category": "basic_foods", "price": Decimal("1.40")},
            {"merchant_name": "Kaufland", "name": "Хляб Добруджа 500г", "category": "basic_foods", "price": Decimal("1.60")},
            {"merchant_name": "LIDL ", "name": "Бира Каменица", "category": "drinks", "price": 1.99},
            {"merchant_name": None, "name": "Без категория", "category": None, "price": None},
        ]
        history = build_user_history(rows)
        assert history.common_categories == {"basic_foods", "drinks"}
        assert history.common_stores == {"kaufland", "lidl"}
        assert history.average_price_by_key["хляб добруджа"] == Decimal("1.50")
        assert history.average_price_by_key["бира каменица"] == Decimal("1.99")
        assert history.category_by_store == {"kaufland": {"basic_foods"}, "lidl": {"drinks"}}

    async def test_loader_failure_gives_empty_history(self, receipt_repo, mock_db):
        receipt_repo.load_history_rows.side_effect = ConnectionError("db down")
        history = await HistoryLoader(receipt_repo).load("u-1", mock_db)
        assert history == UserHistory.empty()

    async def test_loader_window(self, receipt_repo, mock_db):
        await HistoryLoader(receipt_repo).load("u-1", mock_db)
        assert receipt_repo.load_history_rows.await_args.kwargs["months"] == 3
