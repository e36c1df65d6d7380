"""
订单流程操作

触发（幂等，目标单据已存在则只返回 created=False）：
- GENERATE_SHIPPING_DOC: 确保存在出货单据
- START_TRANSIT: 确保出货单据、客户发票、供应商账单各一张；货柜标记离港
- MARK_DELIVERED: 记录送达时间；货柜标记到港/到仓（物流账单需手工创建）

回退（只清订单标记和货柜时间，不删除任何单据）：
- UNDO_MARK_DELIVERED / UNDO_START_TRANSIT / UNDO_SHIPPING_DOC

两者最后都重算流程状态，最终状态以单据实际情况为准
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.constants import (
    ContainerStatus, DocumentStatus, FinanceStatus, PaymentTargetType, RollbackAction, WorkflowAction,
)
from app.models.container import Container, ContainerAllocation
from app.models.finance_document import CommercialInvoice, LogisticsBill, VendorBill
from app.models.order import Order
from app.models.shipping_document import ShippingDocument
from app.services.finance_service import (
    calculate_vendor_amount, get_container_or_404, get_order_or_404, refresh_bill_status,
)
from app.services.margin import add_days, round_money, to_decimal
from app.services.numbering import (
    INVOICE_PREFIX, SHIPPING_DOC_PREFIX, VENDOR_BILL_PREFIX, generate_document_no,
)
from app.services.workflow_status import recompute_order_workflow_status

logger = logging.getLogger(__name__)


async def resolve_container(db: AsyncSession, order: Order, container_id: Optional[int]) -> Optional[Container]:
    """未指定货柜时取订单第一条装柜记录的货柜"""
    if container_id is not None:
        return await get_container_or_404(db, container_id)

    result = await db.execute(
        select(ContainerAllocation.container_id)
        .where(ContainerAllocation.order_id == order.id, ContainerAllocation.container_id.isnot(None))
        .order_by(ContainerAllocation.id)
        .limit(1)
    )
    resolved_id = result.scalar()
    return await db.get(Container, resolved_id) if resolved_id else None


async def ensure_shipping_doc(db: AsyncSession, order: Order, container: Optional[Container]):
    """返回 (出货单据, 是否新建)"""
    query = select(ShippingDocument).where(ShippingDocument.order_id == order.id)
    if container:
        query = query.where(ShippingDocument.container_id == container.id)
    result = await db.execute(query.order_by(ShippingDocument.id).limit(1))
    existing = result.scalar_one_or_none()
    if existing:
        return existing, False

    doc = ShippingDocument(
        order_id=order.id,
        container_id=container.id if container else None,
        doc_no=await generate_document_no(db, ShippingDocument.doc_no, SHIPPING_DOC_PREFIX),
        issue_date=datetime.utcnow(),
        status=DocumentStatus.ISSUED.value,
    )
    doc.payload = {
        "vpo_number": order.vpo_number,
        "ship_to": order.ship_to,
        "supplier_name": order.supplier_name,
    }
    db.add(doc)
    await db.flush()
    logger.info(f"📄 生成出货单据: {doc.doc_no}（订单 {order.vpo_number}）")
    return doc, True


async def ensure_commercial_invoice(db: AsyncSession, order: Order, container: Optional[Container]):
    result = await db.execute(
        select(CommercialInvoice).where(CommercialInvoice.order_id == order.id).order_by(CommercialInvoice.id).limit(1)
    )
    existing = result.scalar_one_or_none()
    if existing:
        return existing, False

    issue_date = datetime.utcnow()
    invoice = CommercialInvoice(
        order_id=order.id,
        container_id=container.id if container else None,
        invoice_no=await generate_document_no(db, CommercialInvoice.invoice_no, INVOICE_PREFIX),
        issue_date=issue_date,
        due_date=add_days(issue_date, order.customer_term_days),
        amount=round_money(to_decimal(order.total_amount)),
        currency=settings.DEFAULT_CURRENCY,
        status=FinanceStatus.OPEN.value,
    )
    db.add(invoice)
    await db.flush()
    await refresh_bill_status(db, PaymentTargetType.CUSTOMER_INVOICE, invoice.id)
    logger.info(f"🧾 生成客户发票: {invoice.invoice_no} 金额 {invoice.amount}")
    return invoice, True


async def ensure_vendor_bill(db: AsyncSession, order: Order):
    result = await db.execute(
        select(VendorBill).where(VendorBill.order_id == order.id).order_by(VendorBill.id).limit(1)
    )
    existing = result.scalar_one_or_none()
    if existing:
        return existing, False

    issue_date = datetime.utcnow()
    bill = VendorBill(
        order_id=order.id,
        bill_no=await generate_document_no(db, VendorBill.bill_no, VENDOR_BILL_PREFIX),
        issue_date=issue_date,
        due_date=add_days(issue_date, order.vendor_term_days),
        amount=await calculate_vendor_amount(db, order.id),
        currency=settings.DEFAULT_CURRENCY,
        status=FinanceStatus.OPEN.value,
    )
    db.add(bill)
    await db.flush()
    await refresh_bill_status(db, PaymentTargetType.VENDOR_BILL, bill.id)
    logger.info(f"🧾 生成供应商账单: {bill.bill_no} 金额 {bill.amount}")
    return bill, True


def document_brief(document) -> Dict[str, Any]:
    """响应中返回的单据摘要"""
    brief = {"id": document.id, "status": document.status}
    if isinstance(document, ShippingDocument):
        brief["doc_no"] = document.doc_no
    else:
        brief["document_no"] = document.document_no
        brief["amount"] = round_money(document.amount)
        brief["due_date"] = document.due_date
    return brief


async def trigger_workflow(
    db: AsyncSession,
    order_id: int,
    action: WorkflowAction,
    container_id: Optional[int] = None,
    delivered_at: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    执行流程操作

    Returns:
        {action, order_id, container_id, created, updated, documents}
    """
    action = WorkflowAction(action)
    order = await get_order_or_404(db, order_id)
    container = await resolve_container(db, order, container_id)

    created: Dict[str, bool] = {}
    updated: Dict[str, Any] = {}
    documents: Dict[str, Any] = {}

    if action == WorkflowAction.GENERATE_SHIPPING_DOC:
        doc, is_new = await ensure_shipping_doc(db, order, container)
        created["shipping_document"] = is_new
        documents["shipping_document"] = document_brief(doc)

    elif action == WorkflowAction.START_TRANSIT:
        doc, doc_new = await ensure_shipping_doc(db, order, container)
        invoice, invoice_new = await ensure_commercial_invoice(db, order, container)
        bill, bill_new = await ensure_vendor_bill(db, order)
        created.update({
            "shipping_document": doc_new,
            "commercial_invoice": invoice_new,
            "vendor_bill": bill_new,
        })
        documents.update({
            "shipping_document": document_brief(doc),
            "commercial_invoice": document_brief(invoice),
            "vendor_bill": document_brief(bill),
        })
        if container:
            container.status = ContainerStatus.IN_TRANSIT.value
            container.atd = datetime.utcnow()
            updated["container_status"] = container.status

    elif action == WorkflowAction.MARK_DELIVERED:
        stamp = delivered_at or datetime.utcnow()
        order.delivered_at = stamp
        updated["delivered_at"] = stamp
        created["logistics_bill"] = False
        if container:
            container.status = ContainerStatus.ARRIVED.value
            container.ata = stamp
            container.arrival_at_warehouse = stamp
            updated["container_status"] = container.status

    await db.flush()
    recomputed = await recompute_order_workflow_status(db, order.id)
    if recomputed:
        updated["workflow_status"] = recomputed.workflow_status
        updated["closed_at"] = recomputed.closed_at

    logger.info(f"▶️ 订单 {order.vpo_number} 执行 {action.value} → {updated.get('workflow_status')}")
    return {
        "action": action.value,
        "order_id": order.id,
        "container_id": container.id if container else None,
        "created": created,
        "updated": updated,
        "documents": documents,
    }


async def get_order_container_ids(db: AsyncSession, order_id: int) -> List[int]:
    container_ids = set()
    for model in (ShippingDocument, ContainerAllocation, LogisticsBill):
        result = await db.execute(
            select(model.container_id).where(model.order_id == order_id, model.container_id.isnot(None))
        )
        container_ids.update(result.scalars().all())
    return sorted(container_ids)


async def rollback_workflow(db: AsyncSession, order_id: int, action: RollbackAction) -> Dict[str, Any]:
    """
    回退流程：清除送达/结清标记，重置关联货柜，再重算状态
    已生成的出货单、发票、账单和付款全部保留
    """
    action = RollbackAction(action)
    order = await get_order_or_404(db, order_id)

    order.delivered_at = None
    order.closed_at = None

    container_ids = await get_order_container_ids(db, order.id)
    for container_id in container_ids:
        container = await db.get(Container, container_id)
        if action == RollbackAction.UNDO_MARK_DELIVERED:
            container.status = ContainerStatus.IN_TRANSIT.value
        else:
            container.status = ContainerStatus.PLANNED.value
            container.atd = None
        container.ata = None
        container.arrival_at_warehouse = None

    await db.flush()
    recomputed = await recompute_order_workflow_status(db, order.id)
    logger.info(f"⏪ 订单 {order.vpo_number} 执行 {action.value} → {recomputed.workflow_status if recomputed else None}")

    return {
        "action": action.value,
        "order_id": order.id,
        "reset_container_ids": container_ids,
        "workflow_status": recomputed.workflow_status if recomputed else None,
    }
