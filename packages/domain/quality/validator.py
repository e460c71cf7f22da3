"""
Quality Validator - Silent post-hoc checks over a categorized receipt

Trust by default: most receipts should pass without bothering the user.
Only critical issues surface; everything else is auto-resolved.

Checks:
1. Total mismatch: item sum vs printed total (2% tolerance, Decimal)
2. Unusual item: first-time product with middling confidence, or a price
   far above the user's average for it
3. Pattern break: category the user never buys, or one this store never
   sold before
4. OCR/store mismatch: item names carrying another chain's private label

Critical = high severity, or medium severity that is not an unusual item.

Example:
- Items sum 19.80, printed total 20.00 → diff 0.20 <= 0.40 → no issue
- Items sum 19.80, printed total 25.00 → diff 5.20 > 1.00 → high
"""
from decimal import Decimal
from typing import Dict, List, Optional, Sequence

import structlog

from packages.common.config import get_settings
from packages.common.schemas.receipt import ProcessedItem
from packages.domain.categorization.schemas import category_name, is_known_category
from packages.domain.quality.history import history_key, store_key
from packages.domain.quality.schemas import (
    IssueType,
    Severity,
    UserHistory,
    ValidationIssue,
    ValidationResult,
)

logger = structlog.get_logger()

# Chain → own private labels; a label from another chain hints at an OCR mix-up
STORE_BRANDS: Dict[str, List[str]] = {
    "Kaufland": ["kaufland", "k-classic", "k-take it", "k-bio"],
    "Lidl": ["lidl", "favorina", "freeway", "bellarom", "cien"],
    "Billa": ["billa", "clever", "ja! natürlich"],
    "Fantastico": ["fantastico"],
    "T-Market": ["t-market"],
}


def _display_category(category: str) -> str:
    return category_name(category) if is_known_category(category) else category


def _money(value: Decimal) -> str:
    return f"{value.quantize(Decimal('0.01'))}"


class QualityValidator:
    """
    Usage:
        history = await history_loader.load(user_id, db)
        result = quality_validator.validate(
            receipt_id, items, Decimal("20.00"), "Kaufland Младост", history
        )
        if result.requires_user_attention:
            print(create_validation_summary(result))
    """

    def __init__(self):
        settings = get_settings()
        self.tolerance_percent = Decimal(str(settings.total_tolerance_percent))
        self.price_anomaly_multiplier = Decimal(str(settings.price_anomaly_multiplier))
        self.new_item_confidence = settings.new_item_confidence_threshold
        self.unusual_item_min_confidence = settings.unusual_item_min_confidence
        self.new_category_confidence = settings.new_category_confidence_threshold
        self.store_category_confidence = settings.store_category_confidence_threshold

    def validate(
        self,
        receipt_id: str,
        items: Sequence[ProcessedItem],
        declared_total: Decimal,
        merchant_name: str,
        history: UserHistory,
    ) -> ValidationResult:
        """
        Run every check and split findings into critical and auto-resolved.

        Args:
            receipt_id: Receipt being validated (for logs)
            items: Categorized items
            declared_total: Total printed on the receipt
            merchant_name: Store name from the receipt header
            history: Preloaded user history

        Returns:
            ValidationResult
        """
        findings: List[ValidationIssue] = []

        total_issue = self.check_total(items, declared_total)
        if total_issue:
            findings.append(total_issue)
        findings.extend(self.check_unusual_items(items, history))
        findings.extend(self.check_pattern_breaks(items, merchant_name, history))
        findings.extend(self.check_store_mismatch(items, merchant_name))

        critical = [issue for issue in findings if issue.is_critical]
        auto_resolved = [issue for issue in findings if not issue.is_critical]

        logger.info("receipt_validated",
                   receipt_id=receipt_id,
                   critical=len(critical),
                   auto_resolved=len(auto_resolved),
                   issue_types=[issue.type.value for issue in findings])

        return ValidationResult(
            passed=not critical,
            issues=critical,
            requires_user_attention=bool(critical),
            auto_resolved=auto_resolved,
        )

    def check_total(
        self,
        items: Sequence[ProcessedItem],
        declared_total: Decimal,
    ) -> Optional[ValidationIssue]:
        declared = Decimal(str(declared_total))
        calculated = sum((item.line_total for item in items), Decimal("0"))
        difference = abs(declared - calculated)
        tolerance = declared * self.tolerance_percent / Decimal("100")

        if difference <= tolerance:
            return None

        return ValidationIssue(
            type=IssueType.TOTAL_MISMATCH,
            severity=Severity.HIGH if difference > tolerance * 2 else Severity.MEDIUM,
            message=(
                f"Сумата на продуктите ({_money(calculated)} лв) "
                f"не съвпада с общата сума ({_money(declared)} лв)"
            ),
            suggestion="Възможно е да има грешка при разпознаването. Моля проверете продуктите.",
        )

    def check_unusual_items(
        self,
        items: Sequence[ProcessedItem],
        history: UserHistory,
    ) -> List[ValidationIssue]:
        issues = []
        for item in items:
            # Low-confidence items already go to manual review
            if item.confidence is None or item.confidence < self.unusual_item_min_confidence:
                continue

            key = history_key(item.name)
            average = history.average_price_by_key.get(key) if key else None

            if average is None and item.confidence < self.new_item_confidence:
                issues.append(ValidationIssue(
                    type=IssueType.UNUSUAL_ITEM,
                    severity=Severity.MEDIUM,
                    item_ref=item.id,
                    item_name=item.name,
                    message=f'Нов продукт: "{item.name}" ({round(item.confidence * 100)}% сигурност)',
                    suggestion="Първи път виждаме този продукт. Моля потвърдете категорията.",
                ))
                continue

            if average and item.price > average * self.price_anomaly_multiplier:
                ratio = item.price / average
                issues.append(ValidationIssue(
                    type=IssueType.UNUSUAL_ITEM,
                    severity=Severity.LOW,
                    item_ref=item.id,
                    item_name=item.name,
                    message=f'Необичайна цена: "{item.name}" е {ratio:.1f}x по-скъп от обичайното',
                    suggestion="Проверете дали цената и количеството са правилни.",
                ))
        return issues

    def check_pattern_breaks(
        self,
        items: Sequence[ProcessedItem],
        merchant_name: str,
        history: UserHistory,
    ) -> List[ValidationIssue]:
        by_category: Dict[str, List[ProcessedItem]] = {}
        for item in items:
            if item.category:
                by_category.setdefault(item.category, []).append(item)

        issues = []
        for category, category_items in by_category.items():
            if category in history.common_categories or len(category_items) < 2:
                continue
            mean_confidence = sum(i.confidence or 0.0 for i in category_items) / len(category_items)
            if mean_confidence < self.new_category_confidence:
                label = _display_category(category)
                issues.append(ValidationIssue(
                    type=IssueType.PATTERN_BREAK,
                    severity=Severity.MEDIUM,
                    message=f'Нова категория: "{label}" ({len(category_items)} продукта)',
                    suggestion=(
                        f'Не сте купували от "{label}" преди. '
                        "Моля проверете дали категоризацията е правилна."
                    ),
                ))

        store_categories = history.category_by_store.get(store_key(merchant_name))
        if store_categories is None:
            return issues

        for category, category_items in by_category.items():
            if category in store_categories:
                continue
            doubtful = [
                i for i in category_items
                if i.confidence is not None and i.confidence < self.store_category_confidence
            ]
            if doubtful:
                issues.append(ValidationIssue(
                    type=IssueType.PATTERN_BREAK,
                    severity=Severity.LOW,
                    item_ref=doubtful[0].id,
                    item_name=doubtful[0].name,
                    message=f'{merchant_name} обикновено не продава "{_display_category(category)}"',
                    suggestion="Възможна грешка при категоризацията.",
                ))
        return issues

    def check_store_mismatch(
        self,
        items: Sequence[ProcessedItem],
        merchant_name: str,
    ) -> List[ValidationIssue]:
        merchant_lower = (merchant_name or "").lower()
        chain = next((store for store in STORE_BRANDS if store.lower() in merchant_lower), None)
        if chain is None:
            return []

        competitor_brands = [
            brand
            for store, brands in STORE_BRANDS.items() if store != chain
            for brand in brands
        ]

        issues = []
        for item in items:
            name_lower = item.name.lower()
            if any(brand in name_lower for brand in competitor_brands):
                issues.append(ValidationIssue(
                    type=IssueType.OCR_ERROR,
                    severity=Severity.HIGH,
                    item_ref=item.id,
                    item_name=item.name,
                    message=f'Продукт "{item.name}" изглежда не е от {merchant_name}',
                    suggestion="Възможна грешка при разпознаването. Проверете името на продукта.",
                ))
        return issues


def create_validation_summary(result: ValidationResult) -> str:
    """Short Bulgarian status line for the receipt list"""
    if result.passed:
        return "✓ Всичко изглежда наред"

    high = [i for i in result.issues if i.severity == Severity.HIGH]
    medium = [i for i in result.issues if i.severity == Severity.MEDIUM]

    if high:
        noun = "продукт" if len(high) == 1 else "продукта"
        return f"Проверете {len(high)} {noun}"
    if medium:
        phrase = "продукт изисква" if len(medium) == 1 else "продукта изискват"
        return f"{len(medium)} {phrase} внимание"
    return "✓ Всичко изглежда наред"


# Singleton instance
quality_validator = QualityValidator()
