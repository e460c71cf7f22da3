"""
Receipt Processing - Per-receipt pipeline from OCR lines to budget ledger

Flow:
1. Normalize every line (components, canonical name)
2. Categorize the batch concurrently (waterfall)
3. Resolve master products and record prices (optional)
4. Load the user's history once, validate the receipt
5. Auto-process with the user's preferences; a failed validation sends
   every item to review
6. Persist items, receipt status and ledger deltas (caller's transaction)

Example:
- Kaufland receipt, 12 items, all cache/rule hits, total matches
- → 12 auto-saved, receipt completed, 3 budget categories incremented
"""
from typing import List, Optional

import structlog
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from packages.common.errors import ReceiptNotFoundError
from packages.common.metrics import validation_issues_total
from packages.common.receipt_repository import ReceiptRepository, receipt_repository
from packages.common.schemas.receipt import ProcessedItem, ReceiptInput
from packages.domain.catalog import CatalogService, PriceObservation, catalog_service
from packages.domain.categorization import BatchItem, CategorizationService, categorization_service
from packages.domain.normalization import normalize
from packages.domain.quality import (
    AutoProcessor,
    HistoryLoader,
    ProcessingResult,
    QualityValidator,
    ValidationResult,
    auto_processor,
    create_validation_summary,
    history_loader,
    quality_validator,
)
from packages.domain.quality.schemas import LedgerDelta

logger = structlog.get_logger()


class ReceiptProcessingOutcome(BaseModel):
    receipt_id: str
    items: List[ProcessedItem]
    validation: ValidationResult
    processing: ProcessingResult
    ledger: List[LedgerDelta] = Field(default_factory=list)
    summary: str


class ReceiptValidationPreview(BaseModel):
    receipt_id: str
    items: List[ProcessedItem]
    validation: ValidationResult
    summary: str


class ReceiptProcessingService:
    """
    Usage:
        async with sessionmanager.session() as db:
            outcome = await receipt_processing_service.process(receipt, user_id, db)
        print(outcome.summary, outcome.processing.outcome)
    """

    def __init__(
        self,
        categorizer: Optional[CategorizationService] = None,
        catalog: Optional[CatalogService] = None,
        history: Optional[HistoryLoader] = None,
        validator: Optional[QualityValidator] = None,
        processor: Optional[AutoProcessor] = None,
        receipts: Optional[ReceiptRepository] = None,
    ):
        self.categorizer = categorizer or categorization_service
        self.catalog = catalog or catalog_service
        self.history = history or history_loader
        self.validator = validator or quality_validator
        self.processor = processor or auto_processor
        self.receipts = receipts or receipt_repository

    async def categorize_items(
        self,
        receipt: ReceiptInput,
        user_id: Optional[str],
        db: Optional[AsyncSession],
    ) -> List[ProcessedItem]:
        """Normalize and categorize every line; no writes"""
        normalized = [normalize(line.name) for line in receipt.items]
        results = await self.categorizer.categorize_batch(
            [BatchItem(name=line.name, id=line.id) for line in receipt.items],
            store_name=receipt.merchant_name,
            user_id=user_id,
            db=db,
        )

        return [
            ProcessedItem(
                id=line.id,
                line_number=position,
                name=line.name,
                quantity=line.quantity,
                price=line.unit_price,
                category=row.result.category_id.value,
                confidence=row.result.confidence,
                method=row.result.method.value,
                normalized_name=product.normalized_name,
            )
            for position, (line, product, row) in enumerate(zip(receipt.items, normalized, results))
        ]

    async def _attach_master_products(
        self,
        receipt: ReceiptInput,
        items: List[ProcessedItem],
        db: AsyncSession,
    ) -> List[ProcessedItem]:
        retailer_id = await self.catalog.resolve_retailer(receipt.merchant_name, db)
        linked = []
        for item in items:
            resolved = await self.catalog.resolve(
                item.name,
                db,
                category_id=item.category,
                retailer_id=retailer_id,
            )
            if retailer_id is not None:
                await self.catalog.record_price(
                    PriceObservation(
                        master_product_id=resolved.master_product_id,
                        retailer_id=retailer_id,
                        unit_price=item.price,
                        quantity=item.quantity,
                        total_price=item.line_total,
                        receipt_id=receipt.receipt_id,
                        location=receipt.merchant_name or None,
                    ),
                    db,
                )
            linked.append(item.model_copy(update={"master_product_id": resolved.master_product_id}))
        return linked

    async def preview(
        self,
        receipt: ReceiptInput,
        user_id: str,
        db: AsyncSession,
    ) -> ReceiptValidationPreview:
        """Categorize and validate without writing anything"""
        items = await self.categorize_items(receipt, user_id, db)
        history = await self.history.load(user_id, db)
        validation = self.validator.validate(
            receipt.receipt_id,
            items,
            receipt.declared_total,
            receipt.merchant_name,
            history,
        )
        return ReceiptValidationPreview(
            receipt_id=receipt.receipt_id,
            items=items,
            validation=validation,
            summary=create_validation_summary(validation),
        )

    async def process(
        self,
        receipt: ReceiptInput,
        user_id: str,
        db: AsyncSession,
        match_catalog: bool = True,
    ) -> ReceiptProcessingOutcome:
        """
        Run the full pipeline for one receipt.

        Args:
            receipt: OCR output
            user_id: Owner
            db: Database session; the caller commits or rolls back
            match_catalog: Resolve master products and record prices

        Returns:
            ReceiptProcessingOutcome

        Raises:
            ReceiptNotFoundError: no such receipt for this user
            PersistenceError: any write failed
        """
        if await self.receipts.get_receipt(receipt.receipt_id, user_id, db) is None:
            raise ReceiptNotFoundError(receipt.receipt_id)

        logger.info("receipt_processing_started",
                   receipt_id=receipt.receipt_id,
                   merchant=receipt.merchant_name,
                   item_count=len(receipt.items))

        items = await self.categorize_items(receipt, user_id, db)

        if match_catalog and items:
            items = await self._attach_master_products(receipt, items, db)

        history = await self.history.load(user_id, db)
        validation = self.validator.validate(
            receipt.receipt_id,
            items,
            receipt.declared_total,
            receipt.merchant_name,
            history,
        )
        for issue in validation.issues + validation.auto_resolved:
            validation_issues_total.labels(type=issue.type.value, severity=issue.severity.value).inc()

        processing, ledger = await self.processor.process(
            receipt.receipt_id,
            user_id,
            items,
            db,
            purchase_date=receipt.purchase_date,
            force_review=validation.requires_user_attention,
        )

        summary = create_validation_summary(validation)
        logger.info("receipt_processing_complete",
                   receipt_id=receipt.receipt_id,
                   outcome=processing.outcome,
                   validation_passed=validation.passed,
                   summary=summary)

        return ReceiptProcessingOutcome(
            receipt_id=receipt.receipt_id,
            items=items,
            validation=validation,
            processing=processing,
            ledger=ledger,
            summary=summary,
        )


# Singleton instance
receipt_processing_service = ReceiptProcessingService()
