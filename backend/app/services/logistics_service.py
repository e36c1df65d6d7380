"""
物流单据 - 货柜、装柜分配、出货单据
货柜变更会影响所有关联订单的流程状态，修改/删除后逐个重算
"""

import logging
from datetime import datetime
from typing import List, Optional, Set

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import BusinessValidationError, ConflictError, NotFoundError
from app.models.container import Container, ContainerAllocation
from app.models.finance_document import CommercialInvoice, LogisticsBill
from app.models.order_item import OrderItem
from app.models.shipping_document import ShippingDocument
from app.schemas.logistics import (
    AllocationCreate, AllocationUpdate, ContainerCreate, ContainerUpdate,
    ShippingDocCreate, ShippingDocUpdate,
)
from app.services.finance_service import ensure_unique_no, get_container_or_404, get_order_or_404
from app.services.margin import round_money
from app.services.numbering import SHIPPING_DOC_PREFIX, generate_document_no
from app.services.workflow_status import recompute_order_workflow_status

logger = logging.getLogger(__name__)


async def get_linked_order_ids(db: AsyncSession, container_id: int) -> List[int]:
    """通过装柜、出货单、物流账单关联到货柜的全部订单"""
    order_ids: Set[int] = set()
    for model in (ContainerAllocation, ShippingDocument, LogisticsBill):
        result = await db.execute(
            select(model.order_id).where(model.container_id == container_id).distinct()
        )
        order_ids.update(order_id for order_id in result.scalars().all() if order_id is not None)
    return sorted(order_ids)


async def recompute_orders(db: AsyncSession, order_ids: List[int]) -> List[int]:
    recomputed = []
    for order_id in order_ids:
        if await recompute_order_workflow_status(db, order_id):
            recomputed.append(order_id)
    return recomputed


# ============ 货柜 ============

async def create_container(db: AsyncSession, data: ContainerCreate) -> Container:
    container_no = data.container_no.strip()
    await ensure_unique_no(db, Container.container_no, container_no)

    container = Container(**data.model_dump(exclude={"container_no", "status"}))
    container.container_no = container_no
    container.status = data.status.value
    db.add(container)
    await db.flush()
    logger.info(f"🚢 创建货柜: {container.container_no}")
    return container


async def list_containers(db: AsyncSession, status: Optional[str] = None) -> List[Container]:
    query = select(Container)
    if status:
        query = query.where(Container.status == status.strip().upper())
    result = await db.execute(query.order_by(Container.created_at.desc(), Container.id.desc()))
    return list(result.scalars().all())


async def update_container(db: AsyncSession, container_id: int, data: ContainerUpdate):
    """修改货柜，返回 (货柜, 已重算订单ID列表)"""
    container = await get_container_or_404(db, container_id)
    update_data = data.model_dump(exclude_unset=True)

    if update_data.get("container_no"):
        update_data["container_no"] = update_data["container_no"].strip()
        if update_data["container_no"] != container.container_no:
            await ensure_unique_no(db, Container.container_no, update_data["container_no"], container.id)
    if update_data.get("status") is not None:
        update_data["status"] = update_data["status"].value

    for field, value in update_data.items():
        if value is None and field in ("container_no", "status"):
            continue
        setattr(container, field, value)
    await db.flush()

    recomputed = await recompute_orders(db, await get_linked_order_ids(db, container.id))
    return container, recomputed


async def delete_container(db: AsyncSession, container_id: int) -> List[int]:
    """删除货柜：关联单据的货柜引用置空，然后重算关联订单"""
    container = await get_container_or_404(db, container_id)
    order_ids = await get_linked_order_ids(db, container.id)

    for model in (ContainerAllocation, ShippingDocument, CommercialInvoice, LogisticsBill):
        await db.execute(
            update(model).where(model.container_id == container.id).values(container_id=None)
        )
    await db.delete(container)
    await db.flush()
    logger.info(f"🗑️ 删除货柜: {container.container_no}，影响订单 {len(order_ids)} 个")

    return await recompute_orders(db, order_ids)


# ============ 装柜分配 ============

async def get_allocation_or_404(db: AsyncSession, allocation_id: int) -> ContainerAllocation:
    allocation = await db.get(ContainerAllocation, allocation_id)
    if not allocation:
        raise NotFoundError("装柜记录不存在")
    return allocation


async def check_order_item(db: AsyncSession, order_id: int, order_item_id: Optional[int]):
    if order_item_id is None:
        return
    item = await db.get(OrderItem, order_item_id)
    if not item:
        raise NotFoundError("订单明细不存在")
    if item.order_id != order_id:
        raise BusinessValidationError("order_item_id", "订单明细不属于该订单")


async def create_allocation(db: AsyncSession, data: AllocationCreate) -> ContainerAllocation:
    order = await get_order_or_404(db, data.order_id)
    if data.container_id is not None:
        await get_container_or_404(db, data.container_id)
    await check_order_item(db, order.id, data.order_item_id)

    allocation = ContainerAllocation(
        order_id=order.id,
        container_id=data.container_id,
        order_item_id=data.order_item_id,
        allocated_qty=data.allocated_qty,
        allocated_amount=round_money(data.allocated_amount) if data.allocated_amount is not None else None,
        notes=data.notes,
    )
    db.add(allocation)
    await db.flush()

    await recompute_order_workflow_status(db, order.id)
    return allocation


async def update_allocation(db: AsyncSession, allocation_id: int, data: AllocationUpdate) -> ContainerAllocation:
    allocation = await get_allocation_or_404(db, allocation_id)
    update_data = data.model_dump(exclude_unset=True)

    if update_data.get("container_id") is not None:
        await get_container_or_404(db, update_data["container_id"])
    if "order_item_id" in update_data:
        await check_order_item(db, allocation.order_id, update_data["order_item_id"])
    if update_data.get("allocated_amount") is not None:
        update_data["allocated_amount"] = round_money(update_data["allocated_amount"])

    for field, value in update_data.items():
        setattr(allocation, field, value)
    await db.flush()

    await recompute_order_workflow_status(db, allocation.order_id)
    return allocation


async def delete_allocation(db: AsyncSession, allocation_id: int) -> int:
    allocation = await get_allocation_or_404(db, allocation_id)
    order_id = allocation.order_id
    await db.delete(allocation)
    await db.flush()
    await recompute_order_workflow_status(db, order_id)
    return order_id


async def list_allocations(
    db: AsyncSession, order_id: Optional[int] = None, container_id: Optional[int] = None
) -> List[ContainerAllocation]:
    query = select(ContainerAllocation)
    if order_id is not None:
        query = query.where(ContainerAllocation.order_id == order_id)
    if container_id is not None:
        query = query.where(ContainerAllocation.container_id == container_id)
    result = await db.execute(query.order_by(ContainerAllocation.id))
    return list(result.scalars().all())


# ============ 出货单据 ============

async def get_shipping_doc_or_404(db: AsyncSession, doc_id: int) -> ShippingDocument:
    doc = await db.get(ShippingDocument, doc_id)
    if not doc:
        raise NotFoundError("出货单据不存在")
    return doc


async def create_shipping_doc(db: AsyncSession, data: ShippingDocCreate) -> ShippingDocument:
    order = await get_order_or_404(db, data.order_id)
    if data.container_id is not None:
        await get_container_or_404(db, data.container_id)

    if data.doc_no:
        await ensure_unique_no(db, ShippingDocument.doc_no, data.doc_no)
        doc_no = data.doc_no
    else:
        doc_no = await generate_document_no(db, ShippingDocument.doc_no, SHIPPING_DOC_PREFIX)

    doc = ShippingDocument(
        order_id=order.id,
        container_id=data.container_id,
        doc_no=doc_no,
        issue_date=data.issue_date or datetime.utcnow(),
        status=data.status.value,
    )
    doc.payload = data.payload or {
        "vpo_number": order.vpo_number,
        "ship_to": order.ship_to,
        "supplier_name": order.supplier_name,
    }
    db.add(doc)
    await db.flush()
    logger.info(f"📄 创建出货单据: {doc.doc_no}（订单 {order.vpo_number}）")

    await recompute_order_workflow_status(db, order.id)
    return doc


async def update_shipping_doc(db: AsyncSession, doc_id: int, data: ShippingDocUpdate) -> ShippingDocument:
    doc = await get_shipping_doc_or_404(db, doc_id)
    update_data = data.model_dump(exclude_unset=True)

    if update_data.get("container_id") is not None:
        await get_container_or_404(db, update_data["container_id"])
    if update_data.get("doc_no") and update_data["doc_no"] != doc.doc_no:
        await ensure_unique_no(db, ShippingDocument.doc_no, update_data["doc_no"], doc.id)
    if update_data.get("status") is not None:
        update_data["status"] = update_data["status"].value

    for field, value in update_data.items():
        if value is None and field in ("doc_no", "status"):
            continue
        setattr(doc, field, value)
    await db.flush()

    await recompute_order_workflow_status(db, doc.order_id)
    return doc


async def delete_shipping_doc(db: AsyncSession, doc_id: int) -> int:
    doc = await get_shipping_doc_or_404(db, doc_id)
    order_id = doc.order_id
    await db.delete(doc)
    await db.flush()
    await recompute_order_workflow_status(db, order_id)
    return order_id


async def list_shipping_docs(
    db: AsyncSession, order_id: Optional[int] = None, container_id: Optional[int] = None
) -> List[ShippingDocument]:
    query = select(ShippingDocument)
    if order_id is not None:
        query = query.where(ShippingDocument.order_id == order_id)
    if container_id is not None:
        query = query.where(ShippingDocument.container_id == container_id)
    result = await db.execute(query.order_by(ShippingDocument.issue_date.desc(), ShippingDocument.id.desc()))
    return list(result.scalars().all())
