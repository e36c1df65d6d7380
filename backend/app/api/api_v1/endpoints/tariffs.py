"""关税税率API"""

from datetime import datetime
from typing import Any, List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.deps import get_db
from app.models.tariff_rate import TariffRate
from app.schemas.tariff import (
    TariffRateResponse, TariffRateUpdate, TariffRateUpsert, TariffRefreshResponse,
    TariffResolveResponse, TariffSyncResponse,
)
from app.services import tariff_service
from app.services.scheduler import get_scheduler_status
from app.services.tariffs import derive_tariff_key, infer_origin_country, normalize_tariff_key

router = APIRouter()


async def list_all_rates(db: AsyncSession) -> List[TariffRate]:
    result = await db.execute(select(TariffRate).order_by(TariffRate.product_class))
    return list(result.scalars().all())


@router.get("/", response_model=List[TariffRateResponse])
async def list_tariff_rates(
    *,
    db: AsyncSession = Depends(get_db),
) -> Any:
    """获取税率表"""
    return await list_all_rates(db)


@router.post("/", response_model=TariffRateResponse)
async def upsert_tariff_rate(
    *,
    db: AsyncSession = Depends(get_db),
    data: TariffRateUpsert,
) -> Any:
    """新增或修改税率（标记为人工维护）"""
    row = await tariff_service.upsert_tariff_rate(db, data.tariff_key, data.tariff_rate, data.notes)
    await db.commit()
    return row


@router.get("/resolve", response_model=TariffResolveResponse)
async def resolve_tariff(
    *,
    db: AsyncSession = Depends(get_db),
    tariff_key: Optional[str] = Query(None, description="分类键；不传则由品名/系列/面料推导"),
    description: Optional[str] = Query(None),
    collection: Optional[str] = Query(None),
    material: Optional[str] = Query(None),
    origin_country: Optional[str] = Query(None),
    supplier_name: Optional[str] = Query(None),
    supplier_address: Optional[str] = Query(None),
) -> Any:
    """解析税率（不写入税率表）"""
    base_key = normalize_tariff_key(tariff_key) if tariff_key else derive_tariff_key(description, collection, material)
    country = (origin_country or infer_origin_country(supplier_name, supplier_address)).upper()
    resolution = await tariff_service.resolve_tariff_rate_for(db, base_key, country)
    return TariffResolveResponse(
        tariff_key=base_key,
        origin_country=country,
        rate=resolution.rate,
        matched_key=resolution.matched_key,
    )


@router.post("/sync", response_model=TariffSyncResponse)
async def sync_tariff_rates(
    *,
    db: AsyncSession = Depends(get_db),
) -> Any:
    """按订单明细同步分类键"""
    synced = await tariff_service.sync_tariff_rates(db)
    await db.commit()
    return TariffSyncResponse(
        synced=synced,
        data=[TariffRateResponse.model_validate(row) for row in await list_all_rates(db)],
    )


@router.post("/refresh", response_model=TariffRefreshResponse)
async def refresh_tariff_rates(
    *,
    db: AsyncSession = Depends(get_db),
) -> Any:
    """按默认规则刷新自动登记的税率"""
    rows = await tariff_service.refresh_auto_tariff_rates(db)
    await db.commit()
    return TariffRefreshResponse(updated=len(rows), refreshed_at=datetime.utcnow(), rows=rows)


@router.get("/scheduler")
async def tariff_scheduler_status() -> Any:
    """定时刷新任务状态"""
    return get_scheduler_status()


@router.patch("/{tariff_id}", response_model=TariffRateResponse)
async def update_tariff_rate(
    *,
    db: AsyncSession = Depends(get_db),
    tariff_id: int,
    data: TariffRateUpdate,
) -> Any:
    """修改税率（标记为人工维护）"""
    row = await tariff_service.update_tariff_rate(db, tariff_id, data.tariff_rate, data.notes)
    await db.commit()
    return row
