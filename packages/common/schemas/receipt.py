"""
Receipt interchange schemas (Pydantic models)

RawLineItem/ReceiptInput come from the OCR collaborator and are never
mutated. ProcessedItem is a line after categorization, the shape the
validator, the auto-processor and the persistence layer all consume.
"""
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, validator


class ReceiptStatus(str, Enum):
    """Receipt processing status"""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class RawLineItem(BaseModel):
    """Single product line as extracted by OCR"""
    id: Optional[str] = Field(None, description="OCR line reference, if the extractor assigns one")
    name: str = Field(..., min_length=1, description="Product text as printed on the receipt")
    quantity: Decimal = Field(default=Decimal("1"), gt=0)
    unit_price: Decimal = Field(..., description="Price per unit in BGN")
    total_price: Optional[Decimal] = Field(None, description="Line total as printed")

    @property
    def line_total(self) -> Decimal:
        if self.total_price is not None:
            return self.total_price
        return self.unit_price * self.quantity

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "name": "Прясно мляко Верея 1л 3.6%",
                "quantity": 2,
                "unit_price": 2.49,
                "total_price": 4.98,
            }
        }


class ReceiptInput(BaseModel):
    """Receipt-level payload handed over by the extraction step"""
    receipt_id: str
    merchant_name: str = Field(default="", description="Store name as printed")
    declared_total: Decimal = Field(..., ge=0, description="Total printed on the receipt")
    purchase_date: Optional[date] = None
    items: List[RawLineItem] = Field(default_factory=list)

    @validator("merchant_name")
    def strip_merchant(cls, v):
        return (v or "").strip()

    class Config:
        json_schema_extra = {
            "example": {
                "receipt_id": "5c1b7d1e-0f2a-4f0e-9b7b-2f7d2c1a9e10",
                "merchant_name": "Kaufland Младост",
                "declared_total": 19.80,
                "purchase_date": "2025-03-14",
                "items": [
                    {"name": "Прясно мляко Верея 1л 3.6%", "quantity": 2, "unit_price": 2.49},
                    {"name": "Хляб Добруджа 500г", "quantity": 1, "unit_price": 1.59},
                ],
            }
        }


class ProcessedItem(BaseModel):
    """A line item carrying its final category decision"""
    id: Optional[str] = None
    line_number: Optional[int] = Field(None, ge=0, description="Position on the receipt")
    name: str
    quantity: Decimal = Decimal("1")
    price: Decimal = Field(..., description="Unit price")
    category: Optional[str] = None
    confidence: Optional[float] = Field(None, ge=0.0, le=1.0)
    method: Optional[str] = Field(None, description="Waterfall stage that produced the category")
    normalized_name: Optional[str] = None
    master_product_id: Optional[int] = None

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity
