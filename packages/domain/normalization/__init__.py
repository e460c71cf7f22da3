"""
Normalization Module - Canonical names for Bulgarian grocery products

Raw receipt text is parsed into components (base product, brand, type,
size/unit, fat %, attributes, barcode) from ordered pattern tables, then
rendered into:
- normalized_name: exact-match key for the catalog
- display_name: human-readable label
- keywords: fuzzy-match vocabulary

Example flow:
- "Прясно мляко Верея 1л 3.6%" → "мляко прясно Верея 3.6% 1л"
- "Кисело мляко Верея 2% 400г" → "мляко кисело Верея 2% 400г"
"""

from packages.domain.normalization.normalizer import (
    ProductNormalizer,
    lookup_key,
    normalize,
    product_normalizer,
)
from packages.domain.normalization.schemas import NormalizedProduct, ProductComponents

__all__ = [
    'ProductNormalizer',
    'NormalizedProduct',
    'ProductComponents',
    'lookup_key',
    'normalize',
    'product_normalizer',
]
