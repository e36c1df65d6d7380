"""应收应付API - 客户发票、供应商账单、物流账单、收付款"""

from decimal import Decimal
from typing import Any, List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.constants import PaymentTargetType
from app.core.deps import get_db
from app.models.finance_document import CommercialInvoice, LogisticsBill, VendorBill
from app.models.order import Order
from app.models.payment import Payment
from app.schemas.finance import (
    CommercialInvoiceCreate, CommercialInvoiceResponse, CommercialInvoiceUpdate,
    LogisticsBillCreate, LogisticsBillResponse, LogisticsBillUpdate, PaymentCreate,
    PaymentResponse, PaymentUpdate, RefreshStatusRequest, RefreshStatusResponse,
    VendorBillCreate, VendorBillResponse, VendorBillUpdate,
)
from app.services import finance_service
from app.services.margin import round_money

router = APIRouter()


def finance_fields(document, paid_amount: Decimal) -> dict:
    amount = round_money(document.amount)
    return dict(
        id=document.id,
        order_id=document.order_id,
        document_no=document.document_no,
        issue_date=document.issue_date,
        due_date=document.due_date,
        amount=amount,
        currency=document.currency,
        status=document.status,
        status_display=document.status_display,
        paid_amount=paid_amount,
        outstanding_amount=max(amount - paid_amount, Decimal("0.00")),
        created_at=document.created_at,
    )


def build_invoice_response(invoice: CommercialInvoice, paid_amount: Decimal) -> CommercialInvoiceResponse:
    return CommercialInvoiceResponse(
        **finance_fields(invoice, paid_amount),
        container_id=invoice.container_id,
        invoice_no=invoice.invoice_no,
    )


def build_vendor_bill_response(bill: VendorBill, paid_amount: Decimal) -> VendorBillResponse:
    return VendorBillResponse(**finance_fields(bill, paid_amount), bill_no=bill.bill_no)


def build_logistics_bill_response(bill: LogisticsBill, paid_amount: Decimal) -> LogisticsBillResponse:
    return LogisticsBillResponse(
        **finance_fields(bill, paid_amount),
        container_id=bill.container_id,
        provider=bill.provider,
        bill_no=bill.bill_no,
    )


def build_payment_response(
    payment: Payment,
    target_no: str = "",
    target_status: Optional[str] = None,
    order: Optional[Order] = None,
) -> PaymentResponse:
    return PaymentResponse(
        id=payment.id,
        payment_no=payment.payment_no,
        target_type=payment.target_type,
        target_id=payment.target_id,
        target_no=target_no,
        direction=payment.direction,
        direction_display=payment.direction_display,
        amount=round_money(payment.amount),
        payment_date=payment.payment_date,
        method=payment.method,
        reference_no=payment.reference_no,
        notes=payment.notes,
        target_status=target_status,
        order_workflow_status=order.workflow_status if order else None,
        created_at=payment.created_at,
    )


async def load_document_response(db: AsyncSession, target_type: PaymentTargetType, document):
    paid_amount = await finance_service.get_paid_amount(db, target_type, document.id)
    builder = {
        PaymentTargetType.CUSTOMER_INVOICE: build_invoice_response,
        PaymentTargetType.VENDOR_BILL: build_vendor_bill_response,
        PaymentTargetType.LOGISTICS_BILL: build_logistics_bill_response,
    }[target_type]
    return builder(document, paid_amount)


async def load_payment_response(db: AsyncSession, payment: Payment) -> PaymentResponse:
    document = await finance_service.get_finance_document(db, payment.target_type, payment.target_id)
    order = await db.get(Order, document.order_id) if document.order_id else None
    return build_payment_response(payment, document.document_no, document.status, order)


# ============ 客户发票 ============

@router.get("/commercial-invoices", response_model=List[CommercialInvoiceResponse])
async def list_commercial_invoices(
    *,
    db: AsyncSession = Depends(get_db),
    order_id: Optional[int] = Query(None),
    status: Optional[str] = Query(None),
) -> Any:
    """获取客户发票列表"""
    rows = await finance_service.list_finance_documents(
        db, PaymentTargetType.CUSTOMER_INVOICE, order_id=order_id, status=status
    )
    return [build_invoice_response(invoice, paid) for invoice, paid in rows]


@router.post("/commercial-invoices", response_model=CommercialInvoiceResponse)
async def create_commercial_invoice(
    *,
    db: AsyncSession = Depends(get_db),
    data: CommercialInvoiceCreate,
) -> Any:
    """创建客户发票"""
    invoice = await finance_service.create_commercial_invoice(db, data)
    response = await load_document_response(db, PaymentTargetType.CUSTOMER_INVOICE, invoice)
    await db.commit()
    return response


@router.patch("/commercial-invoices/{invoice_id}", response_model=CommercialInvoiceResponse)
async def update_commercial_invoice(
    *,
    db: AsyncSession = Depends(get_db),
    invoice_id: int,
    data: CommercialInvoiceUpdate,
) -> Any:
    """修改客户发票（状态由付款推导）"""
    invoice = await finance_service.update_commercial_invoice(db, invoice_id, data)
    response = await load_document_response(db, PaymentTargetType.CUSTOMER_INVOICE, invoice)
    await db.commit()
    return response


@router.delete("/commercial-invoices/{invoice_id}")
async def delete_commercial_invoice(
    *,
    db: AsyncSession = Depends(get_db),
    invoice_id: int,
) -> Any:
    """删除客户发票（有付款时拒绝）"""
    await finance_service.delete_finance_document(db, PaymentTargetType.CUSTOMER_INVOICE, invoice_id)
    await db.commit()
    return {"message": "删除成功"}


# ============ 供应商账单 ============

@router.get("/vendor-bills", response_model=List[VendorBillResponse])
async def list_vendor_bills(
    *,
    db: AsyncSession = Depends(get_db),
    order_id: Optional[int] = Query(None),
    status: Optional[str] = Query(None),
) -> Any:
    rows = await finance_service.list_finance_documents(
        db, PaymentTargetType.VENDOR_BILL, order_id=order_id, status=status
    )
    return [build_vendor_bill_response(bill, paid) for bill, paid in rows]


@router.post("/vendor-bills", response_model=VendorBillResponse)
async def create_vendor_bill(
    *,
    db: AsyncSession = Depends(get_db),
    data: VendorBillCreate,
) -> Any:
    """创建供应商账单"""
    bill = await finance_service.create_vendor_bill(db, data)
    response = await load_document_response(db, PaymentTargetType.VENDOR_BILL, bill)
    await db.commit()
    return response


@router.patch("/vendor-bills/{bill_id}", response_model=VendorBillResponse)
async def update_vendor_bill(
    *,
    db: AsyncSession = Depends(get_db),
    bill_id: int,
    data: VendorBillUpdate,
) -> Any:
    bill = await finance_service.update_vendor_bill(db, bill_id, data)
    response = await load_document_response(db, PaymentTargetType.VENDOR_BILL, bill)
    await db.commit()
    return response


@router.delete("/vendor-bills/{bill_id}")
async def delete_vendor_bill(
    *,
    db: AsyncSession = Depends(get_db),
    bill_id: int,
) -> Any:
    await finance_service.delete_finance_document(db, PaymentTargetType.VENDOR_BILL, bill_id)
    await db.commit()
    return {"message": "删除成功"}


# ============ 物流账单 ============

@router.get("/logistics-bills", response_model=List[LogisticsBillResponse])
async def list_logistics_bills(
    *,
    db: AsyncSession = Depends(get_db),
    order_id: Optional[int] = Query(None),
    container_id: Optional[int] = Query(None),
    status: Optional[str] = Query(None),
) -> Any:
    rows = await finance_service.list_finance_documents(
        db, PaymentTargetType.LOGISTICS_BILL, order_id=order_id, container_id=container_id, status=status
    )
    return [build_logistics_bill_response(bill, paid) for bill, paid in rows]


@router.post("/logistics-bills", response_model=LogisticsBillResponse)
async def create_logistics_bill(
    *,
    db: AsyncSession = Depends(get_db),
    data: LogisticsBillCreate,
) -> Any:
    """创建物流账单（挂在货柜上）"""
    bill = await finance_service.create_logistics_bill(db, data)
    response = await load_document_response(db, PaymentTargetType.LOGISTICS_BILL, bill)
    await db.commit()
    return response


@router.patch("/logistics-bills/{bill_id}", response_model=LogisticsBillResponse)
async def update_logistics_bill(
    *,
    db: AsyncSession = Depends(get_db),
    bill_id: int,
    data: LogisticsBillUpdate,
) -> Any:
    bill = await finance_service.update_logistics_bill(db, bill_id, data)
    response = await load_document_response(db, PaymentTargetType.LOGISTICS_BILL, bill)
    await db.commit()
    return response


@router.delete("/logistics-bills/{bill_id}")
async def delete_logistics_bill(
    *,
    db: AsyncSession = Depends(get_db),
    bill_id: int,
) -> Any:
    await finance_service.delete_finance_document(db, PaymentTargetType.LOGISTICS_BILL, bill_id)
    await db.commit()
    return {"message": "删除成功"}


# ============ 收付款 ============

@router.get("/payments", response_model=List[PaymentResponse])
async def list_payments(
    *,
    db: AsyncSession = Depends(get_db),
    target_type: Optional[PaymentTargetType] = Query(None),
    target_id: Optional[int] = Query(None),
    order_id: Optional[int] = Query(None),
) -> Any:
    """按单据或订单查询收付款"""
    rows = await finance_service.list_payments(
        db, target_type=target_type, target_id=target_id, order_id=order_id
    )
    return [build_payment_response(payment, target_no) for payment, target_no in rows]


@router.post("/payments", response_model=PaymentResponse)
async def create_payment(
    *,
    db: AsyncSession = Depends(get_db),
    data: PaymentCreate,
) -> Any:
    """登记收付款并核销单据"""
    payment = await finance_service.create_payment(db, data)
    response = await load_payment_response(db, payment)
    await db.commit()
    return response


@router.patch("/payments/{payment_id}", response_model=PaymentResponse)
async def update_payment(
    *,
    db: AsyncSession = Depends(get_db),
    payment_id: int,
    data: PaymentUpdate,
) -> Any:
    payment = await finance_service.update_payment(db, payment_id, data)
    response = await load_payment_response(db, payment)
    await db.commit()
    return response


@router.delete("/payments/{payment_id}")
async def delete_payment(
    *,
    db: AsyncSession = Depends(get_db),
    payment_id: int,
) -> Any:
    """删除收付款，按剩余付款重新核销"""
    order = await finance_service.delete_payment(db, payment_id)
    await db.commit()
    return {
        "message": "删除成功",
        "order_workflow_status": order.workflow_status if order else None,
    }


@router.post("/refresh-status", response_model=RefreshStatusResponse)
async def refresh_status(
    *,
    db: AsyncSession = Depends(get_db),
    data: RefreshStatusRequest,
) -> Any:
    """手动按付款重新核销单据状态"""
    document = await finance_service.get_finance_document(db, data.target_type, data.target_id)
    order = await finance_service.reconcile_and_recompute(db, data.target_type, document.id)
    paid_amount = await finance_service.get_paid_amount(db, data.target_type, document.id)
    await db.commit()
    return RefreshStatusResponse(
        target_type=data.target_type.value,
        target_id=document.id,
        status=document.status,
        paid_amount=paid_amount,
        order_id=document.order_id,
        order_workflow_status=order.workflow_status if order else None,
    )
