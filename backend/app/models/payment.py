"""
收付款记录 - 通过 (target_type, target_id) 指向一张财务单据
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, DateTime, DECIMAL, Index
from app.db.base import Base


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)

    # 格式：REC20241203001（收款）、PAY20241203001（付款）
    payment_no = Column(String(50), unique=True, nullable=False, index=True, comment="收付款单号")

    # CUSTOMER_INVOICE / VENDOR_BILL / LOGISTICS_BILL
    target_type = Column(String(30), nullable=False, comment="付款对象类型")
    target_id = Column(Integer, nullable=False, comment="付款对象ID")

    # IN: 收款（应收）；OUT: 付款（应付）
    direction = Column(String(10), nullable=False, comment="收付方向")
    amount = Column(DECIMAL(12, 2), nullable=False, comment="金额")
    payment_date = Column(DateTime, default=datetime.utcnow, comment="付款日期")
    method = Column(String(50), comment="付款方式")
    reference_no = Column(String(100), comment="银行流水号")
    notes = Column(Text, comment="备注")

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_payments_target", "target_type", "target_id"),
    )

    def __repr__(self):
        return f"<Payment {self.payment_no}: {self.direction} {self.amount}>"

    @property
    def direction_display(self) -> str:
        direction_map = {
            "IN": "收款",
            "OUT": "付款",
        }
        return direction_map.get(self.direction, self.direction)
