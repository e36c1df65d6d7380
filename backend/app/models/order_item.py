"""
订单明细 - 随订单创建，随订单删除
税率、关税、3PL成本与毛利在录入时计算并快照
"""

import json
from decimal import Decimal
from sqlalchemy import Column, Integer, String, Text, ForeignKey, DECIMAL
from sqlalchemy.orm import relationship
from app.db.base import Base


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)

    # === 商品信息 ===
    product_code = Column(String(100), comment="款号")
    description = Column(Text, comment="品名描述")
    color = Column(String(100), comment="颜色")
    material = Column(String(200), comment="面料成分")
    collection = Column(String(100), comment="系列")
    size_breakdown_json = Column(Text, comment="尺码配比（JSON）")

    # 关税分类键，如 "mens tee | cotton-rich"
    product_class = Column(String(200), index=True, comment="关税分类键")

    # === 数量与价格 ===
    quantity = Column(Integer, nullable=False, default=0, comment="数量")
    customer_unit_price = Column(DECIMAL(12, 2), default=Decimal("0.00"), comment="客户单价")
    vendor_unit_price = Column(DECIMAL(12, 2), default=Decimal("0.00"), comment="供应商单价（FOB）")
    total = Column(DECIMAL(12, 2), default=Decimal("0.00"), comment="客户收入小计")

    # === 成本与毛利（快照） ===
    tariff_rate = Column(DECIMAL(8, 4), default=Decimal("0.0000"), comment="关税税率")
    estimated_duty_cost = Column(DECIMAL(12, 2), default=Decimal("0.00"), comment="预估关税")
    estimated_3pl_cost = Column(DECIMAL(12, 2), default=Decimal("0.00"), comment="预估3PL费用")
    estimated_margin = Column(DECIMAL(12, 2), default=Decimal("0.00"), comment="预估毛利")

    order = relationship("Order", back_populates="items")

    def __repr__(self):
        return f"<OrderItem {self.product_code} x{self.quantity}>"

    @property
    def size_breakdown(self) -> dict:
        if not self.size_breakdown_json:
            return {}
        try:
            return json.loads(self.size_breakdown_json)
        except ValueError:
            return {}

    @size_breakdown.setter
    def size_breakdown(self, value: dict):
        self.size_breakdown_json = json.dumps(value, ensure_ascii=False) if value else None
