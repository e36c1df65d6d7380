"""订单时间线 - 汇总订单、物流、财务单据的关键时间点"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.constants import PaymentTargetType
from app.models.container import Container, ContainerAllocation
from app.models.finance_document import CommercialInvoice, LogisticsBill, VendorBill
from app.models.shipping_document import ShippingDocument
from app.services.finance_service import get_order_or_404, list_payments


def make_event(
    event_type: str,
    timestamp: Optional[datetime],
    title: str,
    reference_id: Optional[int] = None,
    reference_no: Optional[str] = None,
    amount=None,
) -> Optional[Dict[str, Any]]:
    if not timestamp:
        return None
    return {
        "type": event_type,
        "timestamp": timestamp,
        "title": title,
        "reference_id": reference_id,
        "reference_no": reference_no,
        "amount": amount,
    }


async def build_order_timeline(db: AsyncSession, order_id: int) -> List[Dict[str, Any]]:
    order = await get_order_or_404(db, order_id)
    events = [
        make_event("ORDER_CREATED", order.created_at, f"录入订单 {order.vpo_number}", order.id, order.vpo_number),
        make_event("ORDER_DELIVERED", order.delivered_at, "订单送达", order.id, order.vpo_number),
        make_event("ORDER_CLOSED", order.closed_at, "订单结清", order.id, order.vpo_number),
    ]

    result = await db.execute(select(ShippingDocument).where(ShippingDocument.order_id == order.id))
    for doc in result.scalars().all():
        events.append(make_event("SHIPPING_DOC_ISSUED", doc.issue_date, f"出货单据 {doc.doc_no}", doc.id, doc.doc_no))

    result = await db.execute(
        select(ContainerAllocation, Container)
        .outerjoin(Container, ContainerAllocation.container_id == Container.id)
        .where(ContainerAllocation.order_id == order.id)
    )
    seen_containers = set()
    for allocation, container in result.all():
        container_no = container.container_no if container else None
        events.append(make_event(
            "CONTAINER_ALLOCATED", allocation.created_at, f"装柜 {container_no or ''}".strip(),
            allocation.id, container_no, allocation.allocated_amount,
        ))
        if container and container.id not in seen_containers:
            seen_containers.add(container.id)
            events.append(make_event("CONTAINER_ATD", container.atd, f"货柜 {container_no} 离港", container.id, container_no))
            events.append(make_event("CONTAINER_ATA", container.ata, f"货柜 {container_no} 到港", container.id, container_no))
            events.append(make_event(
                "WAREHOUSE_ARRIVAL", container.arrival_at_warehouse, f"货柜 {container_no} 到仓", container.id, container_no,
            ))

    for event_type, model, label in (
        ("AR_OPENED", CommercialInvoice, "客户发票"),
        ("VENDOR_AP_OPENED", VendorBill, "供应商账单"),
        ("LOGISTICS_AP_OPENED", LogisticsBill, "物流账单"),
    ):
        result = await db.execute(select(model).where(model.order_id == order.id))
        for document in result.scalars().all():
            events.append(make_event(
                event_type, document.issue_date, f"{label} {document.document_no}",
                document.id, document.document_no, document.amount,
            ))

    for payment, target_no in await list_payments(db, order_id=order.id):
        label = "收款" if payment.target_type == PaymentTargetType.CUSTOMER_INVOICE.value else "付款"
        events.append(make_event(
            "PAYMENT_POSTED", payment.payment_date, f"{label} {payment.payment_no} → {target_no}",
            payment.id, payment.payment_no, payment.amount,
        ))

    events = [event for event in events if event]
    events.sort(key=lambda event: event["timestamp"])
    return events
