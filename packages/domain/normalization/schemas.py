"""
Data schemas for product normalization
"""
from typing import List, Optional

from pydantic import BaseModel, Field


class ProductComponents(BaseModel):
    """Structured pieces extracted from a raw product string"""
    base_product: str = Field(..., description="Main product noun, e.g. 'мляко'")
    brand: Optional[str] = Field(None, description="Title-cased brand, e.g. 'Верея'")
    type: Optional[str] = Field(None, description="Product variant, e.g. 'прясно'")
    size: Optional[float] = Field(None, description="Package size in `unit`")
    unit: Optional[str] = Field(None, description="One of л, мл, кг, г, бр")
    fat_content_pct: Optional[float] = None
    attributes: List[str] = Field(default_factory=list)
    barcode: Optional[str] = None

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "base_product": "мляко",
                "brand": "Верея",
                "type": "прясно",
                "size": 1.0,
                "unit": "л",
                "fat_content_pct": 3.6,
                "attributes": [],
                "barcode": None,
            }
        }


class NormalizedProduct(BaseModel):
    """Normalizer output: canonical key, display form and match keywords"""
    normalized_name: str
    display_name: str
    components: ProductComponents
    keywords: List[str] = Field(default_factory=list, description="Unique, insertion-ordered")
    confidence: float = Field(..., ge=0.0, le=1.0)

    class Config:
        frozen = True
