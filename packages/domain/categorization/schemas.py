"""
Data schemas for categorization module
"""
from datetime import datetime
from enum import Enum
from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field


class CategoryId(str, Enum):
    """Budget category taxonomy"""
    BASIC_FOODS = "basic_foods"
    READY_MEALS = "ready_meals"
    SNACKS = "snacks"
    DRINKS = "drinks"
    HOUSEHOLD = "household"
    PERSONAL_CARE = "personal_care"
    OTHER = "other"


CATEGORY_NAMES: Dict[CategoryId, str] = {
    CategoryId.BASIC_FOODS: "Основни храни",
    CategoryId.READY_MEALS: "Готови храни",
    CategoryId.SNACKS: "Снакове",
    CategoryId.DRINKS: "Напитки",
    CategoryId.HOUSEHOLD: "Домакински",
    CategoryId.PERSONAL_CARE: "Лична хигиена",
    CategoryId.OTHER: "Други",
}


def category_name(category_id: CategoryId) -> str:
    return CATEGORY_NAMES[CategoryId(category_id)]


def is_known_category(value: str) -> bool:
    return value in CategoryId._value2member_map_


class CategorizationMethod(str, Enum):
    """Waterfall stage that produced a result"""
    CACHE = "cache"                      # Static product dictionary
    USER_CORRECTION = "user_correction"  # User's own earlier override
    RULE = "rule"                        # Keyword rules (also the "other" default)
    STORE_PATTERN = "store_pattern"      # Retailer private-label brand
    AI = "ai"                            # External classifier


class _ResultBase(BaseModel):
    category_id: CategoryId
    category_name: str
    confidence: float = Field(..., ge=0.0, le=1.0)

    class Config:
        frozen = True


class CacheResult(_ResultBase):
    method: Literal[CategorizationMethod.CACHE] = CategorizationMethod.CACHE
    matched_key: str = Field(..., description="Dictionary entry that matched")


class UserCorrectionResult(_ResultBase):
    method: Literal[CategorizationMethod.USER_CORRECTION] = CategorizationMethod.USER_CORRECTION
    corrected_at: Optional[datetime] = None


class RuleResult(_ResultBase):
    method: Literal[CategorizationMethod.RULE] = CategorizationMethod.RULE
    matched_keyword: Optional[str] = Field(None, description="None for the 'other' default")
    rule_group: Optional[str] = None

    @property
    def is_default(self) -> bool:
        return self.matched_keyword is None


class StorePatternResult(_ResultBase):
    method: Literal[CategorizationMethod.STORE_PATTERN] = CategorizationMethod.STORE_PATTERN
    store: str
    subcategory: Optional[str] = None


class AIResult(_ResultBase):
    method: Literal[CategorizationMethod.AI] = CategorizationMethod.AI
    raw_confidence: float = Field(..., ge=0.0, le=1.0, description="Confidence as reported by the classifier")
    model: Optional[str] = None


CategorizationResult = Annotated[
    Union[CacheResult, UserCorrectionResult, RuleResult, StorePatternResult, AIResult],
    Field(discriminator="method"),
]


def default_result() -> RuleResult:
    """Nothing matched: 'other' with zero confidence"""
    return RuleResult(
        category_id=CategoryId.OTHER,
        category_name=category_name(CategoryId.OTHER),
        confidence=0.0,
    )


class ClassifierVerdict(BaseModel):
    """Parsed reply of the external classifier"""
    category_id: CategoryId
    confidence: float = Field(..., ge=0.0, le=1.0)
    model: Optional[str] = None

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {"category_id": "drinks", "confidence": 0.92, "model": "claude-haiku-4-5"}
        }


class BatchItem(BaseModel):
    """Input row for batch categorization"""
    name: str = Field(..., min_length=1)
    id: Optional[str] = None


class BatchItemResult(BaseModel):
    product_id: Optional[str] = None
    name: str
    result: CategorizationResult


class CorrectionRecord(BaseModel):
    """User override write-back"""
    user_id: str
    raw_name: str
    normalized_name: str
    category_id: CategoryId
    created_at: datetime

    class Config:
        json_schema_extra = {
            "example": {
                "user_id": "u-42",
                "raw_name": "Айрян Верея 500мл",
                "normalized_name": "айрян верея 500мл",
                "category_id": "drinks",
                "created_at": "2025-03-14T10:22:00Z",
            }
        }


class CategorizationStats(BaseModel):
    memo_size: int
    in_flight: int
    static_cache_entries: int
    static_cache_by_category: Dict[str, int]
    categories: List[Dict[str, str]]
