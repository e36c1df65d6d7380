"""
订单录入与维护

保存 PO 解析结果时：
1. 由供应商名称/地址推断原产国
2. 每行明细推导关税分类键，查税率表（未登记的键自动登记）
3. 计算每行关税、3PL费用、毛利，并汇总订单总额与毛利率
4. 登记供应商档案
"""

import logging
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.config import settings
from app.core.constants import PaymentTargetType, WorkflowStatus
from app.core.exceptions import ConflictError, NotFoundError
from app.models.container import ContainerAllocation
from app.models.finance_document import CommercialInvoice, LogisticsBill, VendorBill
from app.models.order import Order
from app.models.order_item import OrderItem
from app.models.payment import Payment
from app.models.shipping_document import ShippingDocument
from app.models.vendor import Vendor
from app.schemas.order import OrderCreate, OrderItemCreate, OrderUpdate
from app.services.margin import (
    calculate_estimated_margin, clamp_non_negative, round_money, round_rate, to_decimal,
)
from app.services.tariff_service import load_tariff_map, register_tariff_key
from app.services.tariffs import (
    country_tariff_key, derive_tariff_key, infer_origin_country, resolve_tariff_rate,
)

logger = logging.getLogger(__name__)

# 订单可直接修改的抬头字段
ORDER_HEADER_FIELDS = (
    "vpo_number", "so_reference", "customer_name", "customer_address",
    "supplier_name", "supplier_address", "ship_to", "ship_via", "shipment_terms",
    "payment_terms", "customer_notes", "order_date", "exp_ship_date", "cancel_date",
    "status", "customer_term_days", "vendor_term_days", "logistics_term_days",
)


async def get_order_with_items(db: AsyncSession, order_id: int) -> Order:
    result = await db.execute(
        select(Order)
        .where(Order.id == order_id)
        .options(selectinload(Order.items))
        .execution_options(populate_existing=True)
    )
    order = result.scalar_one_or_none()
    if not order:
        raise NotFoundError("订单不存在")
    return order


def build_order_item(
    data: OrderItemCreate,
    origin_country: str,
    tariff_map: Dict[str, Decimal],
) -> Tuple[OrderItem, str]:
    """构建明细并计算毛利，返回 (明细, 带国家前缀的分类键)"""
    base_key = derive_tariff_key(data.description, data.collection, data.material)
    if data.tariff_rate is not None:
        tariff_rate = round_rate(max(data.tariff_rate, Decimal("0")))
    else:
        tariff_rate = resolve_tariff_rate(base_key, origin_country, tariff_map).rate

    margin = calculate_estimated_margin(
        data.customer_unit_price, data.vendor_unit_price, data.quantity, tariff_rate
    )
    item = OrderItem(
        product_code=data.product_code,
        description=data.description,
        color=data.color,
        material=data.material,
        collection=data.collection,
        product_class=base_key,
        quantity=data.quantity,
        customer_unit_price=round_money(clamp_non_negative(data.customer_unit_price)),
        vendor_unit_price=round_money(clamp_non_negative(data.vendor_unit_price)),
        total=margin.customer_revenue,
        tariff_rate=tariff_rate,
        estimated_duty_cost=margin.duty_cost,
        estimated_3pl_cost=margin.estimated_3pl,
        estimated_margin=margin.estimated_margin,
    )
    item.size_breakdown = data.size_breakdown or {}
    return item, country_tariff_key(base_key, origin_country)


def apply_order_totals(order: Order, items: List[OrderItem]):
    """汇总订单总额、毛利、毛利率"""
    total_amount = sum((to_decimal(item.total) for item in items), Decimal("0"))
    total_margin = sum((to_decimal(item.estimated_margin) for item in items), Decimal("0"))
    order.total_amount = round_money(total_amount)
    order.estimated_margin = round_money(total_margin)
    order.estimated_margin_rate = round_rate(total_margin / total_amount) if total_amount > 0 else Decimal("0.0000")


async def build_items(
    db: AsyncSession, order: Order, items_data: List[OrderItemCreate]
) -> List[OrderItem]:
    origin_country = infer_origin_country(order.supplier_name, order.supplier_address)
    tariff_map = await load_tariff_map(db)

    items = []
    for item_data in items_data:
        item, tariff_key = build_order_item(item_data, origin_country, tariff_map)
        await register_tariff_key(db, tariff_key, tariff_map)
        items.append(item)
    return items


async def register_vendor(db: AsyncSession, name: Optional[str], address: Optional[str]) -> Optional[Vendor]:
    """按名称登记供应商，已存在则补充地址"""
    name = (name or "").strip()
    if not name:
        return None
    result = await db.execute(select(Vendor).where(Vendor.name == name))
    vendor = result.scalar_one_or_none()
    if vendor:
        if address and not vendor.address:
            vendor.address = address
        return vendor
    vendor = Vendor(name=name, address=address)
    db.add(vendor)
    await db.flush()
    logger.info(f"🏭 登记供应商: {name}")
    return vendor


async def create_order_from_extraction(db: AsyncSession, data: OrderCreate) -> Order:
    """保存 PO 解析结果为订单"""
    order = Order(
        vpo_number=data.vpo_number.strip(),
        status=data.status or "Confirmed",
        workflow_status=WorkflowStatus.PO_UPLOADED.value,
        customer_term_days=data.customer_term_days if data.customer_term_days is not None else settings.DEFAULT_CUSTOMER_TERM_DAYS,
        vendor_term_days=data.vendor_term_days if data.vendor_term_days is not None else settings.DEFAULT_VENDOR_TERM_DAYS,
        logistics_term_days=data.logistics_term_days if data.logistics_term_days is not None else settings.DEFAULT_LOGISTICS_TERM_DAYS,
    )
    for field in ORDER_HEADER_FIELDS:
        if field in ("vpo_number", "status") or field.endswith("_term_days"):
            continue
        setattr(order, field, getattr(data, field))

    items = await build_items(db, order, data.items)
    order.items = items
    apply_order_totals(order, items)

    db.add(order)
    await db.flush()
    await register_vendor(db, order.supplier_name, order.supplier_address)

    logger.info(
        f"📥 保存订单: {order.vpo_number}，{len(items)} 行，"
        f"总额 {order.total_amount}，预估毛利 {order.estimated_margin}"
    )
    return await get_order_with_items(db, order.id)


async def update_order(db: AsyncSession, order_id: int, data: OrderUpdate) -> Order:
    """更新订单；传入 items 时整体替换明细并重算金额"""
    order = await get_order_with_items(db, order_id)
    if order.workflow_status == WorkflowStatus.CLOSED.value:
        logger.warning(f"⛔ 拒绝修改已结清订单 {order.vpo_number}")
        raise ConflictError("订单已结清，请先回退流程再修改")
    update_data = data.model_dump(exclude_unset=True, exclude={"items"})

    for field, value in update_data.items():
        if value is None and (field in ("vpo_number", "status") or field.endswith("_term_days")):
            continue
        setattr(order, field, value.strip() if field == "vpo_number" else value)

    if data.items is not None:
        items = await build_items(db, order, data.items)
        order.items = items
        apply_order_totals(order, items)
        logger.info(f"✏️ 订单 {order.vpo_number} 明细已替换为 {len(items)} 行")

    if "supplier_name" in update_data or "supplier_address" in update_data:
        await register_vendor(db, order.supplier_name, order.supplier_address)

    await db.flush()
    return await get_order_with_items(db, order.id)


async def list_orders(
    db: AsyncSession,
    page: int = 1,
    limit: int = 20,
    workflow_status: Optional[str] = None,
    search: Optional[str] = None,
) -> Tuple[List[Order], int]:
    conditions = []
    if workflow_status:
        conditions.append(Order.workflow_status == workflow_status.strip().upper())
    if search:
        pattern = f"%{search.strip()}%"
        conditions.append(or_(
            Order.vpo_number.like(pattern),
            Order.customer_name.like(pattern),
            Order.supplier_name.like(pattern),
        ))

    count_query = select(func.count(Order.id))
    query = select(Order)
    if conditions:
        count_query = count_query.where(and_(*conditions))
        query = query.where(and_(*conditions))

    total_result = await db.execute(count_query)
    total = total_result.scalar() or 0

    query = query.order_by(Order.created_at.desc(), Order.id.desc()).offset((page - 1) * limit).limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all()), total


async def order_has_payments(db: AsyncSession, order_id: int) -> bool:
    for target_type, model in (
        (PaymentTargetType.CUSTOMER_INVOICE, CommercialInvoice),
        (PaymentTargetType.VENDOR_BILL, VendorBill),
        (PaymentTargetType.LOGISTICS_BILL, LogisticsBill),
    ):
        result = await db.execute(
            select(func.count(Payment.id)).where(and_(
                Payment.target_type == target_type.value,
                Payment.target_id.in_(select(model.id).where(model.order_id == order_id)),
            ))
        )
        if result.scalar():
            return True
    return False


async def delete_order(db: AsyncSession, order_id: int) -> None:
    """
    删除订单及其明细、装柜、出货单、发票、供应商账单
    物流账单保留，订单引用置空；任一财务单据有付款时拒绝删除
    """
    order = await get_order_with_items(db, order_id)

    if await order_has_payments(db, order.id):
        logger.warning(f"⛔ 拒绝删除订单 {order.vpo_number}: 财务单据存在付款")
        raise ConflictError("订单的财务单据已有付款，请先删除付款记录")

    await db.execute(
        update(LogisticsBill).where(LogisticsBill.order_id == order.id).values(order_id=None)
    )
    for model in (ContainerAllocation, ShippingDocument, CommercialInvoice, VendorBill):
        await db.execute(delete(model).where(model.order_id == order.id))

    await db.delete(order)
    await db.flush()
    logger.info(f"🗑️ 删除订单: {order.vpo_number}")


async def list_vendors(db: AsyncSession) -> List[Vendor]:
    result = await db.execute(select(Vendor).order_by(Vendor.name))
    return list(result.scalars().all())
