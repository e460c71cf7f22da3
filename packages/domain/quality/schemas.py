"""
Data schemas for receipt quality validation and auto-processing
"""
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Set

from pydantic import BaseModel, Field, validator

from packages.common.schemas.receipt import ProcessedItem


class IssueType(str, Enum):
    TOTAL_MISMATCH = "total_mismatch"
    UNUSUAL_ITEM = "unusual_item"
    PATTERN_BREAK = "pattern_break"
    OCR_ERROR = "ocr_error"


class Severity(str, Enum):
    LOW = "low"        # Auto-resolved, never shown
    MEDIUM = "medium"  # Shown unless it is an unusual item
    HIGH = "high"      # Always shown


class ValidationIssue(BaseModel):
    """One heuristic finding; message and suggestion are user-facing Bulgarian text"""
    type: IssueType
    severity: Severity
    item_ref: Optional[str] = None
    item_name: Optional[str] = None
    message: str
    suggestion: Optional[str] = None

    @property
    def is_critical(self) -> bool:
        if self.severity == Severity.HIGH:
            return True
        return self.severity == Severity.MEDIUM and self.type != IssueType.UNUSUAL_ITEM


class ValidationResult(BaseModel):
    passed: bool
    issues: List[ValidationIssue] = Field(default_factory=list, description="Critical issues only")
    requires_user_attention: bool
    auto_resolved: List[ValidationIssue] = Field(default_factory=list)

    class Config:
        json_schema_extra = {
            "example": {
                "passed": False,
                "issues": [{
                    "type": "total_mismatch",
                    "severity": "high",
                    "message": "Сумата на продуктите (19.80 лв) не съвпада с общата сума (25.00 лв)",
                    "suggestion": "Възможно е да има грешка при разпознаването. Моля проверете продуктите.",
                }],
                "requires_user_attention": True,
                "auto_resolved": [],
            }
        }


class UserHistory(BaseModel):
    """
    Read-only snapshot of the user's recent completed receipts.

    Store names are keyed lowercased and stripped.
    """
    common_categories: Set[str] = Field(default_factory=set)
    common_stores: Set[str] = Field(default_factory=set)
    average_price_by_key: Dict[str, Decimal] = Field(default_factory=dict)
    category_by_store: Dict[str, Set[str]] = Field(default_factory=dict)

    class Config:
        frozen = True

    @classmethod
    def empty(cls) -> "UserHistory":
        return cls()


class ProcessingPreferences(BaseModel):
    auto_process_receipts: bool = True
    confidence_threshold: float = Field(0.70, ge=0.5, le=0.95)
    always_review: bool = False

    @validator("confidence_threshold", pre=True)
    def clamp_threshold(cls, v):
        if v is None:
            return 0.70
        return min(max(float(v), 0.5), 0.95)


class CategoryTotal(BaseModel):
    category: str
    total: Decimal
    item_count: int


class ProcessingResult(BaseModel):
    auto_processed: bool
    requires_review: bool
    auto_saved_items: List[ProcessedItem] = Field(default_factory=list)
    uncertain_items: List[ProcessedItem] = Field(default_factory=list)
    category_breakdown: List[CategoryTotal] = Field(default_factory=list)
    total_amount: Decimal = Decimal("0")
    confidence_rate: float = 0.0

    @property
    def outcome(self) -> str:
        if self.auto_processed:
            return "auto_processed"
        if self.auto_saved_items:
            return "partial"
        return "manual_review"


class LedgerDelta(BaseModel):
    """One category's contribution to a monthly budget, and whether it landed"""
    user_id: str
    category: str
    month: date
    amount_delta: Decimal
    applied: bool = Field(..., description="False when this receipt was already applied")


class ProcessingStats(BaseModel):
    total_receipts: int = 0
    auto_processed_count: int = 0
    total_auto_categorized_items: int = 0
    total_manual_review_items: int = 0
    auto_categorization_rate: float = 0.0
