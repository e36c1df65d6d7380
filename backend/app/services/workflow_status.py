"""
订单流程状态推导

流程状态不单独维护，而是由订单关联单据的存在与状态推导出来：

    已送达（delivered_at 有值）:
        有财务单据且全部 PAID      → CLOSED（closed_at 保留原值，否则取当前时间）
        有任一财务单据              → AR_AP_OPEN
        有出货单或装柜              → IN_TRANSIT
        其他                        → PO_UPLOADED
    未送达:
        有任一财务单据              → IN_TRANSIT
        有出货单                    → SHIPPING_DOC_SENT
        有装柜                      → PARTIALLY_SHIPPED
        其他                        → PO_UPLOADED

任何单据、付款、货柜变更后都要调用 recompute_order_workflow_status
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.constants import FinanceStatus, WorkflowStatus
from app.models.container import ContainerAllocation
from app.models.finance_document import CommercialInvoice, LogisticsBill, VendorBill
from app.models.order import Order
from app.models.shipping_document import ShippingDocument

logger = logging.getLogger(__name__)


@dataclass
class OrderDocumentSnapshot:
    """推导流程状态所需的订单单据快照"""
    delivered_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    shipping_doc_count: int = 0
    allocation_count: int = 0
    invoice_statuses: List[str] = field(default_factory=list)
    vendor_bill_statuses: List[str] = field(default_factory=list)
    logistics_bill_statuses: List[str] = field(default_factory=list)

    @property
    def finance_statuses(self) -> List[str]:
        statuses = self.invoice_statuses + self.vendor_bill_statuses + self.logistics_bill_statuses
        return [normalize_status(status) for status in statuses]

    @property
    def has_finance_docs(self) -> bool:
        return len(self.finance_statuses) > 0

    @property
    def all_finance_paid(self) -> bool:
        statuses = self.finance_statuses
        return len(statuses) > 0 and all(status == FinanceStatus.PAID.value for status in statuses)


def normalize_status(value: Optional[str]) -> str:
    return (value or "").strip().upper()


def derive_workflow_status(
    snapshot: OrderDocumentSnapshot,
    now: Optional[datetime] = None,
) -> Tuple[WorkflowStatus, Optional[datetime]]:
    """根据快照推导 (流程状态, closed_at)，纯函数"""
    has_shipping_docs = snapshot.shipping_doc_count > 0
    has_allocations = snapshot.allocation_count > 0

    if snapshot.delivered_at:
        if snapshot.all_finance_paid:
            return WorkflowStatus.CLOSED, snapshot.closed_at or now or datetime.utcnow()
        if snapshot.has_finance_docs:
            return WorkflowStatus.AR_AP_OPEN, None
        if has_shipping_docs or has_allocations:
            return WorkflowStatus.IN_TRANSIT, None
        return WorkflowStatus.PO_UPLOADED, None

    if snapshot.has_finance_docs:
        return WorkflowStatus.IN_TRANSIT, None
    if has_shipping_docs:
        return WorkflowStatus.SHIPPING_DOC_SENT, None
    if has_allocations:
        return WorkflowStatus.PARTIALLY_SHIPPED, None
    return WorkflowStatus.PO_UPLOADED, None


async def load_order_snapshot(db: AsyncSession, order: Order) -> OrderDocumentSnapshot:
    async def count(model) -> int:
        result = await db.execute(select(func.count(model.id)).where(model.order_id == order.id))
        return result.scalar() or 0

    async def statuses(model) -> List[str]:
        result = await db.execute(select(model.status).where(model.order_id == order.id))
        return list(result.scalars().all())

    return OrderDocumentSnapshot(
        delivered_at=order.delivered_at,
        closed_at=order.closed_at,
        shipping_doc_count=await count(ShippingDocument),
        allocation_count=await count(ContainerAllocation),
        invoice_statuses=await statuses(CommercialInvoice),
        vendor_bill_statuses=await statuses(VendorBill),
        logistics_bill_statuses=await statuses(LogisticsBill),
    )


async def recompute_order_workflow_status(db: AsyncSession, order_id: Optional[int]) -> Optional[Order]:
    """
    重新读取订单及其单据，推导并写回流程状态

    订单不存在时返回 None（例如订单已在同一请求中被删除）
    订单带乐观锁版本号，并发写入时 flush 抛 StaleDataError
    """
    if order_id is None:
        return None

    # 先把本请求中未提交的单据变更写入，再读取最新状态
    await db.flush()

    result = await db.execute(
        select(Order).where(Order.id == order_id).execution_options(populate_existing=True)
    )
    order = result.scalar_one_or_none()
    if not order:
        logger.debug(f"订单 {order_id} 不存在，跳过流程状态重算")
        return None

    snapshot = await load_order_snapshot(db, order)
    next_status, next_closed_at = derive_workflow_status(snapshot)

    if order.workflow_status != next_status.value or order.closed_at != next_closed_at:
        logger.info(f"🔁 订单 {order.vpo_number} 流程状态: {order.workflow_status} → {next_status.value}")
        order.workflow_status = next_status.value
        order.closed_at = next_closed_at
        await db.flush()

    return order
