"""
Catalog Repository - Master products, retailer aliases and price history

Tables:
- retailers: chains the user shops at (Lidl, Kaufland, Billa, ...)
- master_products: one row per canonical product, never deleted automatically
- product_aliases: raw receipt name per retailer → master product
- price_history: every observed price, for cross-retailer comparison
"""
from decimal import Decimal
from typing import Dict, List, Optional

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from packages.common.errors import PersistenceError

logger = structlog.get_logger()

_MASTER_COLUMNS = """
    id, normalized_name, display_name, category_id, brand, size, unit,
    fat_content AS fat_content_pct, keywords
"""


class CatalogRepository:
    """Repository for the master-product catalog"""

    async def get_retailer_by_name(self, name: str, db: AsyncSession) -> Optional[Dict]:
        """Retailer whose name appears in the merchant header ("Kaufland Младост" → Kaufland)"""
        query = text("""
            SELECT id, name
            FROM retailers
            WHERE POSITION(LOWER(name) IN LOWER(:name)) > 0
            ORDER BY LENGTH(name) DESC
            LIMIT 1
        """)
        result = await db.execute(query, {"name": name.strip()})
        row = result.fetchone()
        return dict(row._mapping) if row else None

    async def find_alias(
        self,
        retailer_id: int,
        alias_name: str,
        db: AsyncSession,
    ) -> Optional[int]:
        """Master product id previously linked to this retailer's raw name"""
        query = text("""
            SELECT master_product_id
            FROM product_aliases
            WHERE retailer_id = :retailer_id AND alias_name = :alias_name
            LIMIT 1
        """)
        result = await db.execute(query, {"retailer_id": retailer_id, "alias_name": alias_name})
        row = result.fetchone()
        return row.master_product_id if row else None

    async def find_by_normalized_name(
        self,
        normalized_name: str,
        db: AsyncSession,
        category_id: Optional[str] = None,
    ) -> Optional[Dict]:
        category_filter = "AND category_id = :category_id" if category_id else ""
        query = text(f"""
            SELECT {_MASTER_COLUMNS}
            FROM master_products
            WHERE LOWER(normalized_name) = LOWER(:normalized_name)
            {category_filter}
            LIMIT 1
        """)
        params = {"normalized_name": normalized_name}
        if category_id:
            params["category_id"] = category_id
        result = await db.execute(query, params)
        row = result.fetchone()
        return dict(row._mapping) if row else None

    async def get_master_product(self, master_product_id: int, db: AsyncSession) -> Optional[Dict]:
        query = text(f"""
            SELECT {_MASTER_COLUMNS}
            FROM master_products
            WHERE id = :id
        """)
        result = await db.execute(query, {"id": master_product_id})
        row = result.fetchone()
        return dict(row._mapping) if row else None

    async def list_candidates(
        self,
        db: AsyncSession,
        limit: int = 100,
        category_id: Optional[str] = None,
    ) -> List[Dict]:
        """Most recently updated master products, optionally within one category"""
        category_filter = "WHERE category_id = :category_id" if category_id else ""
        query = text(f"""
            SELECT {_MASTER_COLUMNS}
            FROM master_products
            {category_filter}
            ORDER BY updated_at DESC
            LIMIT :limit
        """)
        params = {"limit": limit}
        if category_id:
            params["category_id"] = category_id
        result = await db.execute(query, params)
        return [dict(row._mapping) for row in result.fetchall()]

    async def create_master_product(
        self,
        normalized_name: str,
        display_name: str,
        db: AsyncSession,
        category_id: Optional[str] = None,
        brand: Optional[str] = None,
        size: Optional[float] = None,
        unit: Optional[str] = None,
        fat_content_pct: Optional[float] = None,
        product_type: Optional[str] = None,
        barcode: Optional[str] = None,
        keywords: Optional[List[str]] = None,
    ) -> int:
        """
        Insert a master product (or return the existing id on a name clash).

        Returns:
            master_products.id

        Raises:
            PersistenceError: if the insert fails
        """
        query = text("""
            INSERT INTO master_products (
                normalized_name, display_name, category_id, brand, size, unit,
                fat_content, product_type, barcode, keywords, created_at, updated_at
            ) VALUES (
                :normalized_name, :display_name, :category_id, :brand, :size, :unit,
                :fat_content, :product_type, :barcode, :keywords, NOW(), NOW()
            )
            ON CONFLICT (normalized_name) DO UPDATE
                SET updated_at = NOW()
            RETURNING id
        """)

        try:
            result = await db.execute(query, {
                "normalized_name": normalized_name,
                "display_name": display_name,
                "category_id": category_id,
                "brand": brand,
                "size": size,
                "unit": unit,
                "fat_content": fat_content_pct,
                "product_type": product_type,
                "barcode": barcode,
                "keywords": keywords or [],
            })
            master_product_id = result.scalar_one()
        except Exception as e:
            logger.error("master_product_create_failed",
                        normalized_name=normalized_name,
                        error=str(e),
                        exc_info=True)
            raise PersistenceError("create_master_product", e) from e

        logger.info("master_product_created",
                   master_product_id=master_product_id,
                   normalized_name=normalized_name,
                   category_id=category_id)
        return master_product_id

    async def upsert_alias(
        self,
        master_product_id: int,
        retailer_id: int,
        alias_name: str,
        db: AsyncSession,
        barcode: Optional[str] = None,
    ) -> None:
        query = text("""
            INSERT INTO product_aliases (master_product_id, retailer_id, alias_name, barcode, created_at)
            VALUES (:master_product_id, :retailer_id, :alias_name, :barcode, NOW())
            ON CONFLICT (retailer_id, alias_name) DO UPDATE
                SET master_product_id = EXCLUDED.master_product_id
        """)

        try:
            await db.execute(query, {
                "master_product_id": master_product_id,
                "retailer_id": retailer_id,
                "alias_name": alias_name,
                "barcode": barcode,
            })
        except Exception as e:
            logger.error("product_alias_upsert_failed",
                        master_product_id=master_product_id,
                        retailer_id=retailer_id,
                        error=str(e),
                        exc_info=True)
            raise PersistenceError("upsert_alias", e) from e

    async def record_price(
        self,
        master_product_id: int,
        retailer_id: int,
        unit_price: Decimal,
        db: AsyncSession,
        quantity: Decimal = Decimal("1"),
        total_price: Optional[Decimal] = None,
        receipt_id: Optional[str] = None,
        location: Optional[str] = None,
    ) -> None:
        query = text("""
            INSERT INTO price_history (
                master_product_id, retailer_id, unit_price, total_price, quantity,
                currency, seen_at, receipt_id, location
            ) VALUES (
                :master_product_id, :retailer_id, :unit_price, :total_price, :quantity,
                'BGN', NOW(), :receipt_id, :location
            )
        """)

        try:
            await db.execute(query, {
                "master_product_id": master_product_id,
                "retailer_id": retailer_id,
                "unit_price": unit_price,
                "total_price": total_price if total_price is not None else unit_price * quantity,
                "quantity": quantity,
                "receipt_id": receipt_id,
                "location": location,
            })
        except Exception as e:
            logger.error("price_record_failed",
                        master_product_id=master_product_id,
                        retailer_id=retailer_id,
                        error=str(e),
                        exc_info=True)
            raise PersistenceError("record_price", e) from e


# Singleton instance
catalog_repository = CatalogRepository()
