"""
Catalog Module - Canonical master products across retailers

Raw receipt names are normalized, then matched to (or created as) master
products, linked per retailer through aliases, and priced over time.
"""

from packages.domain.catalog.catalog_service import CatalogService, catalog_service
from packages.domain.catalog.matcher import match_master_product, score_candidate
from packages.domain.catalog.schemas import (
    MasterProductCandidate,
    MatchResult,
    PriceObservation,
    ResolvedProduct,
)

__all__ = [
    'CatalogService',
    'catalog_service',
    'match_master_product',
    'score_candidate',
    'MasterProductCandidate',
    'MatchResult',
    'PriceObservation',
    'ResolvedProduct',
]
