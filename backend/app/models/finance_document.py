"""
应收/应付单据
- CommercialInvoice: 客户发票（应收）
- VendorBill: 供应商账单（应付）
- LogisticsBill: 3PL 物流账单（应付），挂在货柜上，订单删除后仍保留

状态由付款合计推导：已付 ≥ 金额 → PAID；0 < 已付 < 金额 → PARTIAL；否则 OPEN
"""

from datetime import datetime
from decimal import Decimal
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, DECIMAL
from app.db.base import Base
from app.core.constants import FINANCE_STATUS_DISPLAY, FinanceStatus


class FinanceDocumentMixin:
    """三类财务单据的公共字段"""

    issue_date = Column(DateTime, default=datetime.utcnow, comment="开具日期")
    due_date = Column(DateTime, comment="到期日")
    amount = Column(DECIMAL(12, 2), nullable=False, default=Decimal("0.00"), comment="金额")
    currency = Column(String(10), default="USD", nullable=False, comment="币种")
    status = Column(String(20), default=FinanceStatus.OPEN.value, nullable=False, index=True, comment="OPEN/PARTIAL/PAID")

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def status_display(self) -> str:
        try:
            return FINANCE_STATUS_DISPLAY[FinanceStatus(self.status)]
        except ValueError:
            return self.status


class CommercialInvoice(FinanceDocumentMixin, Base):
    __tablename__ = "commercial_invoices"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    container_id = Column(Integer, ForeignKey("containers.id", ondelete="SET NULL"), index=True)
    invoice_no = Column(String(50), unique=True, nullable=False, index=True, comment="发票号")

    def __repr__(self):
        return f"<CommercialInvoice {self.invoice_no}: {self.amount} {self.status}>"

    @property
    def document_no(self) -> str:
        return self.invoice_no


class VendorBill(FinanceDocumentMixin, Base):
    __tablename__ = "vendor_bills"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    bill_no = Column(String(50), unique=True, nullable=False, index=True, comment="账单号")

    def __repr__(self):
        return f"<VendorBill {self.bill_no}: {self.amount} {self.status}>"

    @property
    def document_no(self) -> str:
        return self.bill_no


class LogisticsBill(FinanceDocumentMixin, Base):
    __tablename__ = "logistics_bills"

    id = Column(Integer, primary_key=True, index=True)
    container_id = Column(Integer, ForeignKey("containers.id", ondelete="SET NULL"), index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="SET NULL"), index=True)
    provider = Column(String(100), default="3PL", comment="物流商")
    bill_no = Column(String(50), unique=True, nullable=False, index=True, comment="账单号")

    def __repr__(self):
        return f"<LogisticsBill {self.bill_no}: {self.amount} {self.status}>"

    @property
    def document_no(self) -> str:
        return self.bill_no
