"""
Products API Router
Normalization preview and master-product resolution
"""
from typing import Optional

import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from apps.api.middleware.user_context import current_user_id
from packages.common.database import get_db_session
from packages.domain.catalog import ResolvedProduct, catalog_service
from packages.domain.normalization import NormalizedProduct, normalize

logger = structlog.get_logger()
router = APIRouter()


class NormalizeRequest(BaseModel):
    name: str = Field(..., min_length=1)


class ResolveRequest(BaseModel):
    name: str = Field(..., min_length=1)
    category_id: Optional[str] = None
    retailer: Optional[str] = Field(None, description="Retailer name; enables per-chain aliases")


@router.post("/normalize", response_model=NormalizedProduct)
async def normalize_product(
    request: NormalizeRequest,
    user_id: str = Depends(current_user_id),
):
    """Parse a raw product string into components and a canonical name"""
    return normalize(request.name)


@router.post("/resolve", response_model=ResolvedProduct)
async def resolve_product(
    request: ResolveRequest,
    user_id: str = Depends(current_user_id),
    db: AsyncSession = Depends(get_db_session),
):
    """Find or create the master product for a raw name"""
    retailer_id = await catalog_service.resolve_retailer(request.retailer, db)
    return await catalog_service.resolve(
        request.name,
        db,
        category_id=request.category_id,
        retailer_id=retailer_id,
    )
