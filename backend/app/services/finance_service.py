"""
财务单据与付款核销

- 单据状态只由付款合计推导，不接受外部直接修改
- 付款增删改后：刷新单据状态 → 重算订单流程状态
- 有付款的单据不允许删除
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple, Type, Union

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.config import settings
from app.core.constants import (
    DEFAULT_PAYMENT_DIRECTION, FinanceStatus, PaymentDirection, PaymentTargetType,
)
from app.core.exceptions import BusinessValidationError, ConflictError, NotFoundError
from app.models.container import Container
from app.models.finance_document import CommercialInvoice, LogisticsBill, VendorBill
from app.models.order import Order
from app.models.payment import Payment
from app.schemas.finance import (
    CommercialInvoiceCreate, CommercialInvoiceUpdate, LogisticsBillCreate, LogisticsBillUpdate,
    PaymentCreate, PaymentUpdate, VendorBillCreate, VendorBillUpdate,
)
from app.services.margin import add_days, round_money, sum_paid_amount, to_decimal
from app.services.numbering import (
    INVOICE_PREFIX, LOGISTICS_BILL_PREFIX, PAYOUT_PREFIX, RECEIPT_PREFIX, VENDOR_BILL_PREFIX,
    generate_document_no,
)
from app.services.workflow_status import recompute_order_workflow_status

logger = logging.getLogger(__name__)

FinanceDocument = Union[CommercialInvoice, VendorBill, LogisticsBill]

FINANCE_MODELS: Dict[PaymentTargetType, Type] = {
    PaymentTargetType.CUSTOMER_INVOICE: CommercialInvoice,
    PaymentTargetType.VENDOR_BILL: VendorBill,
    PaymentTargetType.LOGISTICS_BILL: LogisticsBill,
}

TARGET_LABELS = {
    PaymentTargetType.CUSTOMER_INVOICE: "客户发票",
    PaymentTargetType.VENDOR_BILL: "供应商账单",
    PaymentTargetType.LOGISTICS_BILL: "物流账单",
}


def derive_finance_status(amount, paid_amount) -> FinanceStatus:
    """已付 ≥ 金额 → PAID；已付 > 0 → PARTIAL；否则 OPEN"""
    due = to_decimal(amount)
    paid = to_decimal(paid_amount)
    if paid >= due:
        return FinanceStatus.PAID
    if paid > Decimal("0"):
        return FinanceStatus.PARTIAL
    return FinanceStatus.OPEN


# ============ 通用查询 ============

async def get_finance_document(
    db: AsyncSession, target_type: PaymentTargetType, target_id: int
) -> FinanceDocument:
    target_type = PaymentTargetType(target_type)
    document = await db.get(FINANCE_MODELS[target_type], target_id)
    if not document:
        raise NotFoundError(f"{TARGET_LABELS[target_type]}不存在")
    return document


async def get_paid_amount(db: AsyncSession, target_type: PaymentTargetType, target_id: int) -> Decimal:
    result = await db.execute(
        select(Payment.amount).where(and_(
            Payment.target_type == PaymentTargetType(target_type).value,
            Payment.target_id == target_id,
        ))
    )
    return round_money(sum_paid_amount(result.scalars().all()))


async def get_paid_amounts(
    db: AsyncSession, target_type: PaymentTargetType, target_ids: Iterable[int]
) -> Dict[int, Decimal]:
    """批量查询已付金额 {单据ID: 已付}"""
    ids = list(target_ids)
    if not ids:
        return {}
    result = await db.execute(
        select(Payment.target_id, func.coalesce(func.sum(Payment.amount), 0))
        .where(and_(
            Payment.target_type == PaymentTargetType(target_type).value,
            Payment.target_id.in_(ids),
        ))
        .group_by(Payment.target_id)
    )
    return {target_id: round_money(total) for target_id, total in result.all()}


async def count_payments(db: AsyncSession, target_type: PaymentTargetType, target_id: int) -> int:
    result = await db.execute(
        select(func.count(Payment.id)).where(and_(
            Payment.target_type == PaymentTargetType(target_type).value,
            Payment.target_id == target_id,
        ))
    )
    return result.scalar() or 0


async def get_order_or_404(db: AsyncSession, order_id: int) -> Order:
    order = await db.get(Order, order_id)
    if not order:
        raise NotFoundError("订单不存在")
    return order


async def get_container_or_404(db: AsyncSession, container_id: int) -> Container:
    container = await db.get(Container, container_id)
    if not container:
        raise NotFoundError("货柜不存在")
    return container


async def ensure_unique_no(db: AsyncSession, column, value: str, exclude_id: Optional[int] = None):
    query = select(column.class_.id).where(column == value)
    if exclude_id is not None:
        query = query.where(column.class_.id != exclude_id)
    result = await db.execute(query)
    if result.first():
        raise ConflictError(f"单号 {value} 已存在")


# ============ 核销 ============

async def refresh_bill_status(
    db: AsyncSession, target_type: PaymentTargetType, target_id: int
) -> Optional[int]:
    """
    按付款合计刷新单据状态

    Returns:
        单据所属订单ID；单据不存在或未关联订单时返回 None
    """
    target_type = PaymentTargetType(target_type)
    await db.flush()

    document = await db.get(FINANCE_MODELS[target_type], target_id)
    if not document:
        return None

    paid_amount = await get_paid_amount(db, target_type, target_id)
    status = derive_finance_status(document.amount, paid_amount)
    if document.status != status.value:
        logger.info(
            f"💰 {TARGET_LABELS[target_type]} {document.document_no} 状态: "
            f"{document.status} → {status.value}（已付 {paid_amount} / {document.amount}）"
        )
        document.status = status.value
    await db.flush()
    return document.order_id


async def reconcile_and_recompute(
    db: AsyncSession, target_type: PaymentTargetType, target_id: int
) -> Optional[Order]:
    order_id = await refresh_bill_status(db, target_type, target_id)
    return await recompute_order_workflow_status(db, order_id)


# ============ 客户发票 ============

async def create_commercial_invoice(db: AsyncSession, data: CommercialInvoiceCreate) -> CommercialInvoice:
    """
    创建客户发票
    金额默认取订单总额；到期日 = (送达日 或 开票日) + 客户账期
    """
    order = await get_order_or_404(db, data.order_id)
    if data.container_id is not None:
        await get_container_or_404(db, data.container_id)

    if data.invoice_no:
        await ensure_unique_no(db, CommercialInvoice.invoice_no, data.invoice_no)
        invoice_no = data.invoice_no
    else:
        invoice_no = await generate_document_no(db, CommercialInvoice.invoice_no, INVOICE_PREFIX)

    issue_date = data.issue_date or datetime.utcnow()
    amount = data.amount if data.amount is not None else to_decimal(order.total_amount)
    due_date = data.due_date or add_days(order.delivered_at or issue_date, order.customer_term_days)

    invoice = CommercialInvoice(
        order_id=order.id,
        container_id=data.container_id,
        invoice_no=invoice_no,
        issue_date=issue_date,
        due_date=due_date,
        amount=round_money(amount),
        currency=data.currency or settings.DEFAULT_CURRENCY,
        status=FinanceStatus.OPEN.value,
    )
    db.add(invoice)
    await db.flush()

    await reconcile_and_recompute(db, PaymentTargetType.CUSTOMER_INVOICE, invoice.id)
    logger.info(f"🧾 创建客户发票: {invoice.invoice_no} 金额 {invoice.amount}")
    return invoice


async def update_commercial_invoice(
    db: AsyncSession, invoice_id: int, data: CommercialInvoiceUpdate
) -> CommercialInvoice:
    invoice = await get_finance_document(db, PaymentTargetType.CUSTOMER_INVOICE, invoice_id)
    update_data = data.model_dump(exclude_unset=True)

    if update_data.get("container_id") is not None:
        await get_container_or_404(db, update_data["container_id"])
    if update_data.get("invoice_no") and update_data["invoice_no"] != invoice.invoice_no:
        await ensure_unique_no(db, CommercialInvoice.invoice_no, update_data["invoice_no"], invoice.id)
    if "amount" in update_data and update_data["amount"] is not None:
        update_data["amount"] = round_money(update_data["amount"])

    for field, value in update_data.items():
        if value is None and field in ("invoice_no", "amount", "currency"):
            continue
        setattr(invoice, field, value)

    await reconcile_and_recompute(db, PaymentTargetType.CUSTOMER_INVOICE, invoice.id)
    return invoice


# ============ 供应商账单 ============

async def calculate_vendor_amount(db: AsyncSession, order_id: int) -> Decimal:
    """Σ 数量 × 供应商单价"""
    result = await db.execute(
        select(Order).where(Order.id == order_id).options(selectinload(Order.items))
    )
    order = result.scalar_one()
    total = Decimal("0")
    for item in order.items:
        total += to_decimal(item.quantity) * to_decimal(item.vendor_unit_price)
    return round_money(total)


async def create_vendor_bill(db: AsyncSession, data: VendorBillCreate) -> VendorBill:
    """
    创建供应商账单
    金额缺省或 ≤0 时按明细计算；到期日 = 开具日 + 供应商账期
    """
    order = await get_order_or_404(db, data.order_id)

    if data.bill_no:
        await ensure_unique_no(db, VendorBill.bill_no, data.bill_no)
        bill_no = data.bill_no
    else:
        bill_no = await generate_document_no(db, VendorBill.bill_no, VENDOR_BILL_PREFIX)

    amount = data.amount
    if amount is None or amount <= 0:
        amount = await calculate_vendor_amount(db, order.id)

    issue_date = data.issue_date or datetime.utcnow()
    bill = VendorBill(
        order_id=order.id,
        bill_no=bill_no,
        issue_date=issue_date,
        due_date=data.due_date or add_days(issue_date, order.vendor_term_days),
        amount=round_money(amount),
        currency=data.currency or settings.DEFAULT_CURRENCY,
        status=FinanceStatus.OPEN.value,
    )
    db.add(bill)
    await db.flush()

    await reconcile_and_recompute(db, PaymentTargetType.VENDOR_BILL, bill.id)
    logger.info(f"🧾 创建供应商账单: {bill.bill_no} 金额 {bill.amount}")
    return bill


async def update_vendor_bill(db: AsyncSession, bill_id: int, data: VendorBillUpdate) -> VendorBill:
    bill = await get_finance_document(db, PaymentTargetType.VENDOR_BILL, bill_id)
    update_data = data.model_dump(exclude_unset=True)

    if update_data.get("bill_no") and update_data["bill_no"] != bill.bill_no:
        await ensure_unique_no(db, VendorBill.bill_no, update_data["bill_no"], bill.id)
    if update_data.get("amount") is not None:
        update_data["amount"] = round_money(update_data["amount"])

    for field, value in update_data.items():
        if value is None and field in ("bill_no", "amount", "currency"):
            continue
        setattr(bill, field, value)

    await reconcile_and_recompute(db, PaymentTargetType.VENDOR_BILL, bill.id)
    return bill


# ============ 3PL物流账单 ============

def logistics_due_anchor(container: Optional[Container], order: Optional[Order], issue_date: datetime) -> datetime:
    """到期日起算点：货柜到仓 → 订单送达 → 开具日"""
    if container and container.arrival_at_warehouse:
        return container.arrival_at_warehouse
    if order and order.delivered_at:
        return order.delivered_at
    return issue_date


async def create_logistics_bill(db: AsyncSession, data: LogisticsBillCreate) -> LogisticsBill:
    """创建物流账单，必须挂在货柜上，金额必须大于 0"""
    if data.amount is None or data.amount <= 0:
        raise BusinessValidationError("amount", "物流账单金额必须大于0")

    container = await get_container_or_404(db, data.container_id)
    order = await get_order_or_404(db, data.order_id) if data.order_id is not None else None

    if data.bill_no:
        await ensure_unique_no(db, LogisticsBill.bill_no, data.bill_no)
        bill_no = data.bill_no
    else:
        bill_no = await generate_document_no(db, LogisticsBill.bill_no, LOGISTICS_BILL_PREFIX)

    issue_date = data.issue_date or datetime.utcnow()
    term_days = order.logistics_term_days if order else settings.DEFAULT_LOGISTICS_TERM_DAYS
    due_date = data.due_date or add_days(logistics_due_anchor(container, order, issue_date), term_days)

    bill = LogisticsBill(
        container_id=container.id,
        order_id=order.id if order else None,
        provider=data.provider or settings.DEFAULT_LOGISTICS_PROVIDER,
        bill_no=bill_no,
        issue_date=issue_date,
        due_date=due_date,
        amount=round_money(data.amount),
        currency=data.currency or settings.DEFAULT_CURRENCY,
        status=FinanceStatus.OPEN.value,
    )
    db.add(bill)
    await db.flush()

    await reconcile_and_recompute(db, PaymentTargetType.LOGISTICS_BILL, bill.id)
    logger.info(f"🧾 创建物流账单: {bill.bill_no} 货柜 {container.container_no} 金额 {bill.amount}")
    return bill


async def update_logistics_bill(db: AsyncSession, bill_id: int, data: LogisticsBillUpdate) -> LogisticsBill:
    bill = await get_finance_document(db, PaymentTargetType.LOGISTICS_BILL, bill_id)
    update_data = data.model_dump(exclude_unset=True)
    previous_order_id = bill.order_id

    if "container_id" in update_data:
        if update_data["container_id"] is None:
            raise BusinessValidationError("container_id", "物流账单必须关联货柜")
        await get_container_or_404(db, update_data["container_id"])
    if update_data.get("order_id") is not None:
        await get_order_or_404(db, update_data["order_id"])
    if update_data.get("bill_no") and update_data["bill_no"] != bill.bill_no:
        await ensure_unique_no(db, LogisticsBill.bill_no, update_data["bill_no"], bill.id)
    if update_data.get("amount") is not None:
        update_data["amount"] = round_money(update_data["amount"])

    for field, value in update_data.items():
        if value is None and field in ("bill_no", "amount", "currency", "provider"):
            continue
        setattr(bill, field, value)

    await reconcile_and_recompute(db, PaymentTargetType.LOGISTICS_BILL, bill.id)
    if previous_order_id and previous_order_id != bill.order_id:
        await recompute_order_workflow_status(db, previous_order_id)
    return bill


# ============ 删除 ============

async def delete_finance_document(
    db: AsyncSession, target_type: PaymentTargetType, target_id: int
) -> Optional[int]:
    """删除财务单据，有付款时拒绝；返回所属订单ID"""
    target_type = PaymentTargetType(target_type)
    document = await get_finance_document(db, target_type, target_id)

    payment_count = await count_payments(db, target_type, target_id)
    if payment_count > 0:
        logger.warning(
            f"⛔ 拒绝删除{TARGET_LABELS[target_type]} {document.document_no}: 存在 {payment_count} 笔付款"
        )
        raise ConflictError(f"{TARGET_LABELS[target_type]}已有 {payment_count} 笔付款，请先删除付款记录")

    order_id = document.order_id
    await db.delete(document)
    await db.flush()
    await recompute_order_workflow_status(db, order_id)
    logger.info(f"🗑️ 删除{TARGET_LABELS[target_type]}: {document.document_no}")
    return order_id


async def list_finance_documents(
    db: AsyncSession,
    target_type: PaymentTargetType,
    order_id: Optional[int] = None,
    container_id: Optional[int] = None,
    status: Optional[str] = None,
) -> List[Tuple[FinanceDocument, Decimal]]:
    """返回 [(单据, 已付金额)]"""
    target_type = PaymentTargetType(target_type)
    model = FINANCE_MODELS[target_type]
    query = select(model)
    if order_id is not None:
        query = query.where(model.order_id == order_id)
    if container_id is not None and hasattr(model, "container_id"):
        query = query.where(model.container_id == container_id)
    if status:
        query = query.where(model.status == status.strip().upper())
    result = await db.execute(query.order_by(model.issue_date.desc(), model.id.desc()))
    documents = result.scalars().all()

    paid_map = await get_paid_amounts(db, target_type, [doc.id for doc in documents])
    return [(doc, paid_map.get(doc.id, Decimal("0.00"))) for doc in documents]


# ============ 收付款 ============

async def create_payment(db: AsyncSession, data: PaymentCreate) -> Payment:
    """登记付款并核销对应单据"""
    target_type = PaymentTargetType(data.target_type)
    if data.amount is None or data.amount <= 0:
        raise BusinessValidationError("amount", "付款金额必须大于0")

    document = await get_finance_document(db, target_type, data.target_id)

    expected = DEFAULT_PAYMENT_DIRECTION[target_type]
    direction = PaymentDirection(data.direction) if data.direction else expected
    if direction != expected:
        raise BusinessValidationError(
            "direction", f"{TARGET_LABELS[target_type]}的收付方向必须是 {expected.value}"
        )

    prefix = RECEIPT_PREFIX if direction == PaymentDirection.IN else PAYOUT_PREFIX
    payment = Payment(
        payment_no=await generate_document_no(db, Payment.payment_no, prefix),
        target_type=target_type.value,
        target_id=document.id,
        direction=direction.value,
        amount=round_money(data.amount),
        payment_date=data.payment_date or datetime.utcnow(),
        method=data.method,
        reference_no=data.reference_no,
        notes=data.notes,
    )
    db.add(payment)
    await db.flush()

    logger.info(f"💵 登记{payment.direction_display}: {payment.payment_no} → {document.document_no} 金额 {payment.amount}")
    await reconcile_and_recompute(db, target_type, document.id)
    return payment


async def get_payment_or_404(db: AsyncSession, payment_id: int) -> Payment:
    payment = await db.get(Payment, payment_id)
    if not payment:
        raise NotFoundError("付款记录不存在")
    return payment


async def update_payment(db: AsyncSession, payment_id: int, data: PaymentUpdate) -> Payment:
    payment = await get_payment_or_404(db, payment_id)
    update_data = data.model_dump(exclude_unset=True)

    if "amount" in update_data:
        if update_data["amount"] is None or update_data["amount"] <= 0:
            raise BusinessValidationError("amount", "付款金额必须大于0")
        update_data["amount"] = round_money(update_data["amount"])

    for field, value in update_data.items():
        setattr(payment, field, value)
    await db.flush()

    await reconcile_and_recompute(db, payment.target_type, payment.target_id)
    return payment


async def delete_payment(db: AsyncSession, payment_id: int) -> Optional[Order]:
    """删除付款，按剩余付款重新核销"""
    payment = await get_payment_or_404(db, payment_id)
    target_type, target_id = payment.target_type, payment.target_id

    await db.delete(payment)
    await db.flush()
    logger.info(f"🗑️ 删除付款: {payment.payment_no}")
    return await reconcile_and_recompute(db, target_type, target_id)


async def list_payments(
    db: AsyncSession,
    target_type: Optional[PaymentTargetType] = None,
    target_id: Optional[int] = None,
    order_id: Optional[int] = None,
) -> List[Tuple[Payment, str]]:
    """返回 [(付款, 单据号)]；按订单查询时合并三类单据的付款"""
    targets: Dict[str, Dict[int, str]] = {}
    for kind, model in FINANCE_MODELS.items():
        if target_type is not None and PaymentTargetType(target_type) != kind:
            continue
        query = select(model)
        if order_id is not None:
            query = query.where(model.order_id == order_id)
        if target_id is not None:
            query = query.where(model.id == target_id)
        result = await db.execute(query)
        targets[kind.value] = {doc.id: doc.document_no for doc in result.scalars().all()}

    rows: List[Tuple[Payment, str]] = []
    for kind, documents in targets.items():
        if not documents:
            continue
        result = await db.execute(
            select(Payment).where(and_(
                Payment.target_type == kind,
                Payment.target_id.in_(list(documents.keys())),
            ))
        )
        rows.extend((payment, documents.get(payment.target_id, "")) for payment in result.scalars().all())

    rows.sort(key=lambda row: (row[0].payment_date or datetime.min, row[0].id), reverse=True)
    return rows


# ============ 订单财务汇总 ============

async def get_order_finance_summary(db: AsyncSession, order_id: int) -> dict:
    """订单应收/应付明细与合计"""
    order = await get_order_or_404(db, order_id)

    def summarize(kind: PaymentTargetType, rows) -> List[dict]:
        documents = []
        for document, paid in rows:
            amount = round_money(document.amount)
            documents.append({
                "target_type": kind.value,
                "id": document.id,
                "document_no": document.document_no,
                "amount": amount,
                "paid_amount": paid,
                "outstanding_amount": max(amount - paid, Decimal("0.00")),
                "status": document.status,
                "due_date": document.due_date,
            })
        return documents

    receivables = summarize(
        PaymentTargetType.CUSTOMER_INVOICE,
        await list_finance_documents(db, PaymentTargetType.CUSTOMER_INVOICE, order_id=order_id),
    )
    payables = summarize(
        PaymentTargetType.VENDOR_BILL,
        await list_finance_documents(db, PaymentTargetType.VENDOR_BILL, order_id=order_id),
    ) + summarize(
        PaymentTargetType.LOGISTICS_BILL,
        await list_finance_documents(db, PaymentTargetType.LOGISTICS_BILL, order_id=order_id),
    )

    def total(documents: List[dict], key: str) -> Decimal:
        return round_money(sum((doc[key] for doc in documents), Decimal("0")))

    return {
        "order_id": order.id,
        "workflow_status": order.workflow_status,
        "receivables": receivables,
        "payables": payables,
        "receivable_total": total(receivables, "amount"),
        "receivable_paid": total(receivables, "paid_amount"),
        "receivable_outstanding": total(receivables, "outstanding_amount"),
        "payable_total": total(payables, "amount"),
        "payable_paid": total(payables, "paid_amount"),
        "payable_outstanding": total(payables, "outstanding_amount"),
        "estimated_margin": round_money(order.estimated_margin),
    }
