"""财务 Schema - 发票、供应商账单、3PL账单、收付款"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, Field

from app.core.constants import PaymentDirection, PaymentTargetType


class CommercialInvoiceCreate(BaseModel):
    order_id: int
    container_id: Optional[int] = None
    invoice_no: Optional[str] = Field(default=None, max_length=50)
    issue_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    # 不传则取订单总额
    amount: Optional[Decimal] = Field(default=None, ge=0)
    currency: Optional[str] = None


class CommercialInvoiceUpdate(BaseModel):
    container_id: Optional[int] = None
    invoice_no: Optional[str] = Field(default=None, min_length=1, max_length=50)
    issue_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    amount: Optional[Decimal] = Field(default=None, ge=0)
    currency: Optional[str] = None


class VendorBillCreate(BaseModel):
    order_id: int
    bill_no: Optional[str] = Field(default=None, max_length=50)
    issue_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    # 不传或 ≤0 时取 Σ 数量 × 供应商单价
    amount: Optional[Decimal] = None
    currency: Optional[str] = None


class VendorBillUpdate(BaseModel):
    bill_no: Optional[str] = Field(default=None, min_length=1, max_length=50)
    issue_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    amount: Optional[Decimal] = Field(default=None, ge=0)
    currency: Optional[str] = None


class LogisticsBillCreate(BaseModel):
    container_id: int
    order_id: Optional[int] = None
    provider: Optional[str] = None
    bill_no: Optional[str] = Field(default=None, max_length=50)
    issue_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    amount: Decimal = Field(..., gt=0)
    currency: Optional[str] = None


class LogisticsBillUpdate(BaseModel):
    container_id: Optional[int] = None
    order_id: Optional[int] = None
    provider: Optional[str] = None
    bill_no: Optional[str] = Field(default=None, min_length=1, max_length=50)
    issue_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    amount: Optional[Decimal] = Field(default=None, gt=0)
    currency: Optional[str] = None


class FinanceDocumentResponse(BaseModel):
    """三类财务单据共用的响应字段"""
    id: int
    order_id: Optional[int]
    document_no: str
    issue_date: Optional[datetime]
    due_date: Optional[datetime]
    amount: Decimal
    currency: str
    status: str
    status_display: str = ""
    paid_amount: Decimal = Decimal("0")
    outstanding_amount: Decimal = Decimal("0")
    created_at: Optional[datetime]


class CommercialInvoiceResponse(FinanceDocumentResponse):
    container_id: Optional[int]
    invoice_no: str


class VendorBillResponse(FinanceDocumentResponse):
    bill_no: str


class LogisticsBillResponse(FinanceDocumentResponse):
    container_id: Optional[int]
    provider: Optional[str]
    bill_no: str


class PaymentCreate(BaseModel):
    target_type: PaymentTargetType
    target_id: int
    # 不传则按单据类型取默认方向（发票 IN，账单 OUT）
    direction: Optional[PaymentDirection] = None
    amount: Decimal = Field(..., gt=0)
    payment_date: Optional[datetime] = None
    method: Optional[str] = None
    reference_no: Optional[str] = None
    notes: Optional[str] = None


class PaymentUpdate(BaseModel):
    amount: Optional[Decimal] = Field(default=None, gt=0)
    payment_date: Optional[datetime] = None
    method: Optional[str] = None
    reference_no: Optional[str] = None
    notes: Optional[str] = None


class PaymentResponse(BaseModel):
    id: int
    payment_no: str
    target_type: str
    target_id: int
    target_no: str = ""
    direction: str
    direction_display: str = ""
    amount: Decimal
    payment_date: Optional[datetime]
    method: Optional[str]
    reference_no: Optional[str]
    notes: Optional[str]
    # 核销后单据状态
    target_status: Optional[str] = None
    order_workflow_status: Optional[str] = None
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class RefreshStatusRequest(BaseModel):
    target_type: PaymentTargetType
    target_id: int


class RefreshStatusResponse(BaseModel):
    target_type: str
    target_id: int
    status: str
    paid_amount: Decimal
    order_id: Optional[int]
    order_workflow_status: Optional[str] = None


class FinanceSummaryDocument(BaseModel):
    target_type: str
    id: int
    document_no: str
    amount: Decimal
    paid_amount: Decimal
    outstanding_amount: Decimal
    status: str
    due_date: Optional[datetime]


class OrderFinanceSummary(BaseModel):
    """订单财务汇总（应收/应付）"""
    order_id: int
    workflow_status: str
    receivables: List[FinanceSummaryDocument]
    payables: List[FinanceSummaryDocument]
    receivable_total: Decimal
    receivable_paid: Decimal
    receivable_outstanding: Decimal
    payable_total: Decimal
    payable_paid: Decimal
    payable_outstanding: Decimal
    estimated_margin: Decimal
