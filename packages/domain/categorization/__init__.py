"""
Categorization Module - Budget categories for Bulgarian grocery items

Waterfall, first answer wins:
1. User correction (the user's own override)
2. Static product dictionary
3. Ordered keyword rules
4. Retailer private-label patterns
5. External AI classifier (single-flight memoized)
6. Default "other"

Example flow:
- "Прясно мляко Верея 1л" → cache "прясно мляко" → basic_foods (1.0)
- "Душ гел Nivea 250мл" → rule "душ гел" → personal_care (0.95)
- "PIRATO Tortilla Chips" at LIDL → store pattern → snacks (0.85)
- "Kinder Bueno" → AI → snacks (0.9)
"""

from packages.domain.categorization.categorization_service import (
    CategorizationService,
    categorization_service,
)
from packages.domain.categorization.schemas import (
    AIResult,
    BatchItem,
    BatchItemResult,
    CacheResult,
    CategorizationMethod,
    CategorizationResult,
    CategoryId,
    RuleResult,
    StorePatternResult,
    UserCorrectionResult,
)

__all__ = [
    'CategorizationService',
    'categorization_service',
    'AIResult',
    'BatchItem',
    'BatchItemResult',
    'CacheResult',
    'CategorizationMethod',
    'CategorizationResult',
    'CategoryId',
    'RuleResult',
    'StorePatternResult',
    'UserCorrectionResult',
]
