"""
Receipts API Router
Validation preview, synchronous and queued processing, auto-processing stats
"""
import structlog
from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from apps.api.middleware.user_context import current_user_id
from apps.api.tasks import queue_receipt_processing
from packages.common.database import get_db_session
from packages.common.errors import ReceiptNotFoundError
from packages.common.receipt_repository import receipt_repository
from packages.common.schemas.receipt import ReceiptInput, ReceiptStatus
from packages.domain.quality import auto_processor
from packages.domain.quality.schemas import ProcessingPreferences, ProcessingStats
from packages.domain.receipt_processing import (
    ReceiptProcessingOutcome,
    ReceiptValidationPreview,
    receipt_processing_service,
)

logger = structlog.get_logger()
router = APIRouter()


class QueuedReceiptResponse(BaseModel):
    receipt_id: str
    status: ReceiptStatus
    task_id: str


@router.post("/validate", response_model=ReceiptValidationPreview)
async def validate_receipt(
    receipt: ReceiptInput,
    user_id: str = Depends(current_user_id),
    db: AsyncSession = Depends(get_db_session),
):
    """Categorize and validate a receipt without saving anything"""
    return await receipt_processing_service.preview(receipt, user_id, db)


@router.post("/process", response_model=ReceiptProcessingOutcome)
async def process_receipt(
    receipt: ReceiptInput,
    user_id: str = Depends(current_user_id),
    db: AsyncSession = Depends(get_db_session),
):
    """
    Run the full pipeline synchronously.

    Items, receipt status and budget updates are committed together; any
    storage failure rolls the receipt back and returns 503.
    """
    return await receipt_processing_service.process(receipt, user_id, db)


@router.post("/queue", response_model=QueuedReceiptResponse, status_code=status.HTTP_202_ACCEPTED)
async def queue_receipt(
    receipt: ReceiptInput,
    user_id: str = Depends(current_user_id),
):
    """Hand the receipt to the worker"""
    task_id = queue_receipt_processing(receipt.model_dump(mode="json"), user_id)

    logger.info("receipt_queued_for_processing",
                receipt_id=receipt.receipt_id,
                task_id=task_id)

    return QueuedReceiptResponse(
        receipt_id=receipt.receipt_id,
        status=ReceiptStatus.PROCESSING,
        task_id=task_id,
    )


@router.get("/stats", response_model=ProcessingStats)
async def processing_stats(
    user_id: str = Depends(current_user_id),
    db: AsyncSession = Depends(get_db_session),
):
    """Auto-processing counters for the current user"""
    return await auto_processor.get_processing_stats(user_id, db)


@router.get("/preferences", response_model=ProcessingPreferences)
async def processing_preferences(
    user_id: str = Depends(current_user_id),
    db: AsyncSession = Depends(get_db_session),
):
    """Effective auto-processing preferences (defaults when never set)"""
    return await auto_processor.get_preferences(user_id, db)


@router.get("/{receipt_id}")
async def get_receipt(
    receipt_id: str,
    user_id: str = Depends(current_user_id),
    db: AsyncSession = Depends(get_db_session),
):
    """Receipt status and review counters"""
    receipt = await receipt_repository.get_receipt(receipt_id, user_id, db)
    if receipt is None:
        raise ReceiptNotFoundError(receipt_id)
    return receipt
