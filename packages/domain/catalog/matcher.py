"""
Master-Product Matcher - Fuzzy matching of normalized products to the catalog

Same product, different receipts: "Прясно мляко Верея 1л 3.6%" at Lidl and
"ВЕРЕЯ МЛЯКО ПРЯСНО 3,6% 1Л" at Billa must land on one master product so
prices are comparable.

Scoring (weighted average over the signals that apply):
- Levenshtein name similarity   0.40  always
- Brand equality                0.25  both sides have a brand
- Size + unit equality          0.20  both sides have size and unit
- Keyword Jaccard               0.15  candidate has keywords

An exact (case-insensitive) normalized-name match short-circuits with 1.0.
The best candidate is accepted only if its score is strictly above the
threshold (0.6 by default).
"""
from typing import Iterable, Optional

import structlog

from packages.domain.catalog.schemas import MasterProductCandidate, MatchResult
from packages.domain.normalization import NormalizedProduct
from packages.domain.normalization.similarity import jaccard_similarity, name_similarity

logger = structlog.get_logger()

NAME_WEIGHT = 0.40
BRAND_WEIGHT = 0.25
SIZE_WEIGHT = 0.20
KEYWORD_WEIGHT = 0.15

DEFAULT_THRESHOLD = 0.6


def score_candidate(product: NormalizedProduct, candidate: MasterProductCandidate) -> float:
    components = product.components

    weighted = NAME_WEIGHT * name_similarity(product.normalized_name, candidate.normalized_name)
    total_weight = NAME_WEIGHT

    if components.brand and candidate.brand:
        same_brand = components.brand.lower() == candidate.brand.lower()
        weighted += BRAND_WEIGHT * (1.0 if same_brand else 0.0)
        total_weight += BRAND_WEIGHT

    if components.size and components.unit and candidate.size and candidate.unit:
        same_size = (
            abs(components.size - candidate.size) < 1e-9
            and components.unit.lower() == candidate.unit.lower()
        )
        weighted += SIZE_WEIGHT * (1.0 if same_size else 0.0)
        total_weight += SIZE_WEIGHT

    if candidate.keywords:
        weighted += KEYWORD_WEIGHT * jaccard_similarity(product.keywords, candidate.keywords)
        total_weight += KEYWORD_WEIGHT

    return weighted / total_weight


def match_master_product(
    product: NormalizedProduct,
    candidates: Iterable[MasterProductCandidate],
    threshold: float = DEFAULT_THRESHOLD,
) -> Optional[MatchResult]:
    """
    Pick the best catalog match for a normalized product.

    Args:
        product: Normalizer output for the raw name
        candidates: Catalog rows to consider
        threshold: Minimum score (exclusive)

    Returns:
        MatchResult(id, score) or None when nothing clears the threshold
    """
    candidates = list(candidates)
    target = product.normalized_name.lower()

    for candidate in candidates:
        if candidate.normalized_name.lower() == target:
            return MatchResult(id=candidate.id, score=1.0)

    best_candidate: Optional[MasterProductCandidate] = None
    best_score = 0.0
    for candidate in candidates:
        score = score_candidate(product, candidate)
        if best_candidate is None or score > best_score:
            best_candidate, best_score = candidate, score

    if best_candidate is None or best_score <= threshold:
        logger.debug("master_product_no_match",
                    normalized_name=product.normalized_name,
                    candidates=len(candidates),
                    best_score=round(best_score, 4))
        return None

    return MatchResult(id=best_candidate.id, score=min(best_score, 1.0))
