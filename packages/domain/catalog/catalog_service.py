"""
Catalog Service - Get-or-create master products for receipt items

Flow per raw name:
1. Alias: (retailer, raw name) seen before → instant
2. Exact: normalized_name already in the catalog
3. Fuzzy: best of up to 100 candidates (same category when known)
4. Create: new master product from the normalized components

Whenever a retailer is known, the raw name is (re)linked as an alias so the
next receipt from the same chain takes step 1.

Example:
- Lidl "Прясно мляко Верея 1л 3.6%" → creates "мляко прясно Верея 3.6% 1л"
- Billa "ВЕРЕЯ ПРЯСНО МЛЯКО 3,6% 1Л" → exact hit on the same master product
"""
from decimal import Decimal
from typing import List, Optional, Sequence

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from packages.common.catalog_repository import CatalogRepository, catalog_repository
from packages.common.config import get_settings
from packages.domain.catalog.matcher import match_master_product
from packages.domain.catalog.schemas import (
    MasterProductCandidate,
    PriceObservation,
    ResolvedProduct,
)
from packages.domain.normalization import NormalizedProduct, normalize

logger = structlog.get_logger()


class CatalogService:
    """
    Usage:
        resolved = await catalog_service.resolve(
            raw_name="Прясно мляко Верея 1л 3.6%",
            db=db,
            category_id="basic_foods",
            retailer_id=3,
        )
        print(resolved.master_product_id, resolved.match_source)
    """

    def __init__(self, repository: Optional[CatalogRepository] = None):
        self.settings = get_settings()
        self.repository = repository or catalog_repository

    async def resolve(
        self,
        raw_name: str,
        db: AsyncSession,
        category_id: Optional[str] = None,
        retailer_id: Optional[int] = None,
        product: Optional[NormalizedProduct] = None,
    ) -> ResolvedProduct:
        """
        Find or create the master product for a raw name.

        Args:
            raw_name: Product text as printed on the receipt
            db: Database session
            category_id: Budget category, narrows the fuzzy candidates
            retailer_id: Chain the receipt came from (enables aliases)
            product: Pre-computed normalizer output for raw_name

        Returns:
            ResolvedProduct

        Raises:
            PersistenceError: catalog write failed
        """
        product = product or normalize(raw_name)

        if retailer_id is not None:
            alias_id = await self.repository.find_alias(retailer_id, raw_name, db)
            if alias_id is not None:
                return ResolvedProduct(
                    master_product_id=alias_id,
                    normalized_name=product.normalized_name,
                    display_name=product.display_name,
                    created=False,
                    match_source="alias",
                    score=1.0,
                )

        resolved = await self._find_existing(product, db, category_id)
        if resolved is None:
            resolved = await self._create(product, db, category_id)

        if retailer_id is not None:
            await self.repository.upsert_alias(
                resolved.master_product_id,
                retailer_id,
                raw_name,
                db,
                barcode=product.components.barcode,
            )

        logger.info("master_product_resolved",
                   raw_name=raw_name,
                   master_product_id=resolved.master_product_id,
                   match_source=resolved.match_source,
                   score=resolved.score)
        return resolved

    async def _find_existing(
        self,
        product: NormalizedProduct,
        db: AsyncSession,
        category_id: Optional[str],
    ) -> Optional[ResolvedProduct]:
        exact = await self.repository.find_by_normalized_name(
            product.normalized_name, db, category_id=category_id
        )
        if exact:
            return ResolvedProduct(
                master_product_id=exact["id"],
                normalized_name=exact["normalized_name"],
                display_name=exact.get("display_name") or product.display_name,
                created=False,
                match_source="exact",
                score=1.0,
            )

        rows = await self.repository.list_candidates(
            db,
            limit=self.settings.master_candidate_limit,
            category_id=category_id,
        )
        candidates = [MasterProductCandidate(**self._candidate_fields(row)) for row in rows]
        match = match_master_product(product, candidates, self.settings.master_match_threshold)
        if match is None:
            return None

        winner = next(c for c in candidates if c.id == match.id)
        return ResolvedProduct(
            master_product_id=winner.id,
            normalized_name=winner.normalized_name,
            display_name=winner.display_name or product.display_name,
            created=False,
            match_source="fuzzy",
            score=round(match.score, 4),
        )

    @staticmethod
    def _candidate_fields(row: dict) -> dict:
        fields = dict(row)
        for numeric in ("size", "fat_content_pct"):
            if isinstance(fields.get(numeric), Decimal):
                fields[numeric] = float(fields[numeric])
        fields["keywords"] = list(fields.get("keywords") or [])
        return fields

    async def _create(
        self,
        product: NormalizedProduct,
        db: AsyncSession,
        category_id: Optional[str],
    ) -> ResolvedProduct:
        components = product.components
        master_product_id = await self.repository.create_master_product(
            normalized_name=product.normalized_name,
            display_name=product.display_name,
            db=db,
            category_id=category_id,
            brand=components.brand,
            size=components.size,
            unit=components.unit,
            fat_content_pct=components.fat_content_pct,
            product_type=components.type,
            barcode=components.barcode,
            keywords=product.keywords,
        )
        return ResolvedProduct(
            master_product_id=master_product_id,
            normalized_name=product.normalized_name,
            display_name=product.display_name,
            created=True,
            match_source="created",
        )

    async def resolve_many(
        self,
        raw_names: Sequence[str],
        db: AsyncSession,
        category_ids: Optional[Sequence[Optional[str]]] = None,
        retailer_id: Optional[int] = None,
    ) -> List[ResolvedProduct]:
        """
        Resolve a receipt's items in order.

        Runs sequentially; every step shares one session.
        """
        category_ids = category_ids or [None] * len(raw_names)
        results = []
        for raw_name, category_id in zip(raw_names, category_ids):
            results.append(await self.resolve(raw_name, db, category_id=category_id, retailer_id=retailer_id))

        created = sum(1 for r in results if r.created)
        logger.info("bulk_normalization_complete",
                   total_items=len(results),
                   created=created,
                   matched=len(results) - created)
        return results

    async def resolve_retailer(self, name: Optional[str], db: AsyncSession) -> Optional[int]:
        if not name:
            return None
        retailer = await self.repository.get_retailer_by_name(name, db)
        return retailer["id"] if retailer else None

    async def record_price(self, observation: PriceObservation, db: AsyncSession) -> None:
        await self.repository.record_price(
            master_product_id=observation.master_product_id,
            retailer_id=observation.retailer_id,
            unit_price=observation.unit_price,
            db=db,
            quantity=observation.quantity,
            total_price=observation.total_price,
            receipt_id=observation.receipt_id,
            location=observation.location,
        )


# Singleton instance
catalog_service = CatalogService()
