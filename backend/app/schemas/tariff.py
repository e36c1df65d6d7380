"""关税税率 Schema"""

from datetime import datetime
from decimal import Decimal
from typing import Any, List, Optional
from pydantic import BaseModel, Field


class TariffRateUpsert(BaseModel):
    """新增/修改税率，税率无法解析时取默认值"""
    tariff_key: str = Field(..., min_length=1)
    tariff_rate: Optional[Any] = None
    notes: Optional[str] = None


class TariffRateUpdate(BaseModel):
    tariff_rate: Any
    notes: Optional[str] = None


class TariffRateResponse(BaseModel):
    id: int
    product_class: str
    tariff_rate: Decimal
    source: str
    notes: Optional[str]
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class TariffResolveResponse(BaseModel):
    tariff_key: str
    origin_country: str
    rate: Decimal
    matched_key: Optional[str]


class TariffSyncResponse(BaseModel):
    synced: int
    data: List[TariffRateResponse]


class TariffRefreshRow(BaseModel):
    tariff_key: str
    old_rate: Optional[Decimal]
    new_rate: Decimal


class TariffRefreshResponse(BaseModel):
    updated: int
    refreshed_at: datetime
    rows: List[TariffRefreshRow]
