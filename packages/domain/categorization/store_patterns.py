"""
Store Patterns - Retailer private-label brands

Applies only when the receipt's store name contains a known retailer key.
The retailer's regex table is tested against the raw product name (private
labels are printed upper-case on receipts, so no folding is needed).

Example:
- store "LIDL България", item "MILBONA Кисело мляко 400г"
- → basic_foods / dairy (confidence 0.85)
"""
import re
from typing import List, NamedTuple, Optional, Pattern

from packages.domain.categorization.schemas import CategoryId, StorePatternResult, category_name

STORE_PATTERN_CONFIDENCE = 0.85


class StorePattern(NamedTuple):
    pattern: Pattern[str]
    category: CategoryId
    subcategory: Optional[str] = None


class StoreProfile(NamedTuple):
    key: str
    brands: List[str]
    patterns: List[StorePattern]


STORE_PROFILES: List[StoreProfile] = [
    StoreProfile("LIDL", ["MILBONA", "FREEWAY", "COMBINO", "PIRATO", "SOLEVITA", "ALESTO"], [
        StorePattern(re.compile(r"MILBONA", re.IGNORECASE), CategoryId.BASIC_FOODS, "dairy"),
        StorePattern(re.compile(r"PIRATO", re.IGNORECASE), CategoryId.SNACKS),
        StorePattern(re.compile(r"SOLEVITA", re.IGNORECASE), CategoryId.DRINKS),
        StorePattern(re.compile(r"CIEN", re.IGNORECASE), CategoryId.PERSONAL_CARE),
        StorePattern(re.compile(r"W5", re.IGNORECASE), CategoryId.HOUSEHOLD),
    ]),
    StoreProfile("KAUFLAND", ["K-CLASSIC", "K-BIO", "K-TAKE IT VEGGIE", "K-FREE"], [
        StorePattern(re.compile(r"K-CLASSIC", re.IGNORECASE), CategoryId.BASIC_FOODS),
        StorePattern(re.compile(r"K-BIO", re.IGNORECASE), CategoryId.BASIC_FOODS),
        StorePattern(re.compile(r"K-TAKE IT", re.IGNORECASE), CategoryId.READY_MEALS),
    ]),
    StoreProfile("BILLA", ["CLEVER", "BILLA BIO", "SPAR"], [
        StorePattern(re.compile(r"CLEVER", re.IGNORECASE), CategoryId.BASIC_FOODS),
        StorePattern(re.compile(r"BILLA BIO", re.IGNORECASE), CategoryId.BASIC_FOODS),
    ]),
    StoreProfile("FANTASTICO", ["FANTASTICO", "ФАНТАСТИКО"], []),
    StoreProfile("METRO", ["METRO CHEF", "ARO", "FINE FOOD"], []),
]


def find_store_profile(store_name: Optional[str]) -> Optional[StoreProfile]:
    if not store_name:
        return None
    upper = store_name.upper()
    for profile in STORE_PROFILES:
        if profile.key in upper:
            return profile
    return None


def match_store_pattern(raw_name: str, store_name: Optional[str]) -> Optional[StorePatternResult]:
    """
    Match a raw product name against the retailer's private-label table.

    Args:
        raw_name: Product text as printed on the receipt
        store_name: Merchant name from the receipt header

    Returns:
        StorePatternResult with confidence 0.85, or None
    """
    profile = find_store_profile(store_name)
    if profile is None:
        return None

    for store_pattern in profile.patterns:
        if store_pattern.pattern.search(raw_name):
            return StorePatternResult(
                category_id=store_pattern.category,
                category_name=category_name(store_pattern.category),
                confidence=STORE_PATTERN_CONFIDENCE,
                store=profile.key,
                subcategory=store_pattern.subcategory,
            )
    return None
