"""
Categorization API Router
Single and batch categorization, user corrections, cache statistics
"""
from typing import Dict, List, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from apps.api.middleware.user_context import current_user_id
from packages.common.database import get_db_session
from packages.domain.categorization import BatchItem, BatchItemResult, categorization_service
from packages.domain.categorization.schemas import CategorizationStats, CorrectionRecord

logger = structlog.get_logger()
router = APIRouter()


class CategorizeRequest(BaseModel):
    name: str = Field(..., min_length=1, description="Product text as printed on the receipt")
    store_name: Optional[str] = None


class BatchCategorizeRequest(BaseModel):
    items: List[BatchItem] = Field(..., min_length=1, max_length=500)
    store_name: Optional[str] = None


class CorrectionRequest(BaseModel):
    name: str = Field(..., min_length=1)
    category_id: str


@router.post("/categorize")
async def categorize_product(
    request: CategorizeRequest,
    user_id: str = Depends(current_user_id),
    db: AsyncSession = Depends(get_db_session),
):
    """
    Categorize one product name.

    The response is tagged by `method` (user_correction, cache, rule,
    store_pattern, ai) and always carries a category; unmatched names come
    back as "other" with confidence 0.
    """
    return await categorization_service.categorize(
        raw_name=request.name,
        store_name=request.store_name,
        user_id=user_id,
        db=db,
    )


@router.post("/batch", response_model=List[BatchItemResult])
async def categorize_batch(
    request: BatchCategorizeRequest,
    user_id: str = Depends(current_user_id),
    db: AsyncSession = Depends(get_db_session),
):
    """Categorize a receipt's worth of items; results keep input order"""
    return await categorization_service.categorize_batch(
        request.items,
        store_name=request.store_name,
        user_id=user_id,
        db=db,
    )


@router.post("/corrections", response_model=CorrectionRecord, status_code=status.HTTP_201_CREATED)
async def save_correction(
    request: CorrectionRequest,
    user_id: str = Depends(current_user_id),
    db: AsyncSession = Depends(get_db_session),
):
    """Record the user's category for a product; wins over every other source next time"""
    try:
        record = await categorization_service.save_correction(
            user_id, request.name, request.category_id, db
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    logger.info("user_correction_saved",
               user_id=user_id,
               normalized_name=record.normalized_name,
               category_id=record.category_id.value)
    return record


@router.get("/corrections/stats", response_model=Dict[str, int])
async def correction_stats(
    user_id: str = Depends(current_user_id),
    db: AsyncSession = Depends(get_db_session),
):
    """Number of corrections per category for the current user"""
    return await categorization_service.correction_stats(user_id, db)


@router.get("/stats", response_model=CategorizationStats)
async def categorization_stats():
    """Static dictionary and classifier memo statistics"""
    return categorization_service.get_stats()
