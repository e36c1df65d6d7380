"""
关税税率表读写
- 解析税率、自动登记新分类键（source=auto）
- 人工维护（source=manual）
- 同步订单明细中出现过的分类键、刷新 auto 税率
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.constants import TariffSource
from app.core.exceptions import BusinessValidationError, NotFoundError
from app.models.order import Order
from app.models.order_item import OrderItem
from app.models.tariff_rate import TariffRate
from app.services.margin import clamp_non_negative, parse_decimal_input, round_rate
from app.services.tariffs import (
    TariffResolution, build_tariff_map, country_tariff_key, default_tariff_rate,
    derive_tariff_key, infer_origin_country, normalize_tariff_key, resolve_tariff_rate,
)

logger = logging.getLogger(__name__)


async def load_tariff_map(db: AsyncSession) -> Dict[str, Decimal]:
    result = await db.execute(select(TariffRate))
    return build_tariff_map(result.scalars().all())


async def get_tariff_by_key(db: AsyncSession, tariff_key: str) -> Optional[TariffRate]:
    result = await db.execute(
        select(TariffRate).where(TariffRate.product_class == normalize_tariff_key(tariff_key))
    )
    return result.scalar_one_or_none()


async def resolve_tariff_rate_for(
    db: AsyncSession,
    base_key: str,
    origin_country: Optional[str] = None,
    tariff_map: Optional[Dict[str, Decimal]] = None,
) -> TariffResolution:
    """查表解析税率，未命中时返回默认税率"""
    if tariff_map is None:
        tariff_map = await load_tariff_map(db)
    return resolve_tariff_rate(base_key, origin_country, tariff_map)


async def register_tariff_key(
    db: AsyncSession,
    tariff_key: str,
    tariff_map: Optional[Dict[str, Decimal]] = None,
    notes: Optional[str] = None,
) -> Optional[TariffRate]:
    """
    自动登记分类键（默认税率，source=auto）
    已存在的键不覆盖，返回 None
    """
    normalized = normalize_tariff_key(tariff_key)
    if not normalized:
        return None
    if tariff_map is not None and normalized in tariff_map:
        return None
    if tariff_map is None and await get_tariff_by_key(db, normalized):
        return None

    row = TariffRate(
        product_class=normalized,
        tariff_rate=default_tariff_rate(normalized),
        source=TariffSource.AUTO.value,
        notes=notes or "按品名/系列/面料自动登记",
    )
    db.add(row)
    await db.flush()
    if tariff_map is not None:
        tariff_map[normalized] = row.tariff_rate
    logger.info(f"🆕 登记关税分类: {normalized} → {row.tariff_rate}")
    return row


async def upsert_tariff_rate(
    db: AsyncSession,
    tariff_key: str,
    rate: Any = None,
    notes: Optional[str] = None,
) -> TariffRate:
    """人工新增/修改税率，无法解析的税率取默认值"""
    normalized = normalize_tariff_key(tariff_key)
    if not normalized:
        raise BusinessValidationError("tariff_key", "分类键不能为空")

    parsed = parse_decimal_input(rate, None)
    value = round_rate(clamp_non_negative(parsed)) if parsed is not None else default_tariff_rate(normalized)

    row = await get_tariff_by_key(db, normalized)
    if row:
        row.tariff_rate = value
        row.notes = notes
        row.source = TariffSource.MANUAL.value
        row.updated_at = datetime.utcnow()
    else:
        row = TariffRate(
            product_class=normalized,
            tariff_rate=value,
            source=TariffSource.MANUAL.value,
            notes=notes,
        )
        db.add(row)
    await db.flush()
    logger.info(f"✏️ 税率已保存: {normalized} → {value}")
    return row


async def update_tariff_rate(
    db: AsyncSession,
    tariff_id: int,
    rate: Any,
    notes: Optional[str] = None,
) -> TariffRate:
    row = await db.get(TariffRate, tariff_id)
    if not row:
        raise NotFoundError("税率记录不存在")

    parsed = parse_decimal_input(rate, None)
    if parsed is None:
        raise BusinessValidationError("tariff_rate", "税率必须是数字")

    row.tariff_rate = round_rate(clamp_non_negative(parsed))
    if notes is not None:
        row.notes = notes
    row.source = TariffSource.MANUAL.value
    row.updated_at = datetime.utcnow()
    await db.flush()
    return row


async def refresh_auto_tariff_rates(db: AsyncSession) -> List[dict]:
    """按最新默认规则重算 source=auto 的税率，人工税率不动"""
    result = await db.execute(
        select(TariffRate).where(TariffRate.source == TariffSource.AUTO.value)
    )
    changes = []
    for row in result.scalars().all():
        new_rate = default_tariff_rate(row.product_class)
        old_rate = row.tariff_rate
        if old_rate is None or Decimal(old_rate) != new_rate:
            row.tariff_rate = new_rate
            row.updated_at = datetime.utcnow()
        changes.append({"tariff_key": row.product_class, "old_rate": old_rate, "new_rate": new_rate})
    await db.flush()
    logger.info(f"🔄 刷新自动税率: {len(changes)} 条")
    return changes


async def sync_tariff_rates(db: AsyncSession) -> int:
    """为所有订单明细出现过的分类键登记税率，返回新增条数"""
    result = await db.execute(
        select(
            OrderItem.description, OrderItem.collection, OrderItem.material,
            Order.supplier_name, Order.supplier_address,
        ).join(Order, OrderItem.order_id == Order.id)
    )

    keys = set()
    for description, collection, material, supplier_name, supplier_address in result.all():
        base_key = derive_tariff_key(description, collection, material)
        origin = infer_origin_country(supplier_name, supplier_address)
        keys.add(country_tariff_key(base_key, origin))

    tariff_map = await load_tariff_map(db)
    created = 0
    for key in sorted(keys):
        if await register_tariff_key(db, key, tariff_map, notes="由订单明细同步"):
            created += 1

    await refresh_auto_tariff_rates(db)
    logger.info(f"🔄 关税分类同步完成: 新增 {created} 条")
    return created
