"""
订单模型 - 由客户 VPO 录入产生
workflow_status / delivered_at / closed_at 只由流程引擎写入
"""

from datetime import datetime
from decimal import Decimal
from sqlalchemy import Column, Integer, String, Text, DateTime, DECIMAL
from sqlalchemy.orm import relationship
from app.db.base import Base
from app.core.constants import WORKFLOW_STATUS_DISPLAY, WorkflowStatus


class Order(Base):
    """订单（VPO）"""
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)

    # === PO 抬头信息 ===
    vpo_number = Column(String(100), nullable=False, index=True, comment="VPO号")
    so_reference = Column(String(100), comment="SO参考号")
    customer_name = Column(String(200), comment="客户名称")
    customer_address = Column(Text, comment="客户地址")
    supplier_name = Column(String(200), index=True, comment="供应商名称")
    supplier_address = Column(Text, comment="供应商地址")
    ship_to = Column(Text, comment="收货地址")
    ship_via = Column(String(100), comment="运输方式")
    shipment_terms = Column(String(100), comment="贸易条款")
    payment_terms = Column(String(100), comment="付款条款")
    customer_notes = Column(Text, comment="客户备注")

    order_date = Column(DateTime, comment="下单日期")
    exp_ship_date = Column(DateTime, comment="预计出货日期")
    cancel_date = Column(DateTime, comment="取消日期")

    # 人工维护的订单状态（与流程状态无关）
    status = Column(String(50), default="Confirmed", comment="订单状态")

    # === 金额与毛利 ===
    total_amount = Column(DECIMAL(12, 2), default=Decimal("0.00"), comment="订单总额（客户收入）")
    estimated_margin = Column(DECIMAL(12, 2), default=Decimal("0.00"), comment="预估毛利")
    estimated_margin_rate = Column(DECIMAL(8, 4), default=Decimal("0.0000"), comment="预估毛利率")

    # === 流程状态（派生字段） ===
    workflow_status = Column(String(30), default=WorkflowStatus.PO_UPLOADED.value, nullable=False, index=True, comment="流程状态")
    delivered_at = Column(DateTime, comment="送达时间")
    closed_at = Column(DateTime, comment="结清时间")

    # === 账期（天） ===
    customer_term_days = Column(Integer, default=30, nullable=False, comment="客户账期")
    vendor_term_days = Column(Integer, default=30, nullable=False, comment="供应商账期")
    logistics_term_days = Column(Integer, default=15, nullable=False, comment="3PL账期")

    # 乐观锁版本号
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    items = relationship(
        "OrderItem", back_populates="order",
        cascade="all, delete-orphan", order_by="OrderItem.id"
    )

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<Order {self.vpo_number}: {self.workflow_status}>"

    @property
    def workflow_status_display(self) -> str:
        try:
            return WORKFLOW_STATUS_DISPLAY[WorkflowStatus(self.workflow_status)]
        except ValueError:
            return self.workflow_status
