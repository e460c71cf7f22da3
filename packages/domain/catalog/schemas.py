"""
Data schemas for master-product catalog
"""
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field


class MasterProductCandidate(BaseModel):
    """Catalog row considered by the fuzzy matcher"""
    id: int
    normalized_name: str
    display_name: Optional[str] = None
    category_id: Optional[str] = None
    brand: Optional[str] = None
    size: Optional[float] = None
    unit: Optional[str] = None
    fat_content_pct: Optional[float] = None
    keywords: List[str] = Field(default_factory=list)


class MatchResult(BaseModel):
    id: int
    score: float = Field(..., ge=0.0, le=1.0)

    class Config:
        frozen = True


class ResolvedProduct(BaseModel):
    """Outcome of get-or-create for one raw product name"""
    master_product_id: int
    normalized_name: str
    display_name: str
    created: bool = Field(..., description="True when a new master product was inserted")
    match_source: str = Field(..., description="alias, exact, fuzzy or created")
    score: Optional[float] = None

    class Config:
        json_schema_extra = {
            "example": {
                "master_product_id": 117,
                "normalized_name": "мляко прясно Верея 3.6% 1л",
                "display_name": "Мляко прясно Верея 3.6% 1 л",
                "created": False,
                "match_source": "fuzzy",
                "score": 0.82,
            }
        }


class PriceObservation(BaseModel):
    master_product_id: int
    retailer_id: int
    unit_price: Decimal = Field(..., ge=0)
    quantity: Decimal = Field(Decimal("1"), gt=0)
    total_price: Optional[Decimal] = None
    receipt_id: Optional[str] = None
    location: Optional[str] = None
