"""
货柜与装柜分配
货柜生命周期独立于订单，出货单、发票、3PL账单通过可空外键引用货柜
"""

from datetime import datetime
from decimal import Decimal
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, DECIMAL
from sqlalchemy.orm import relationship
from app.db.base import Base
from app.core.constants import ContainerStatus


class Container(Base):
    __tablename__ = "containers"

    id = Column(Integer, primary_key=True, index=True)
    container_no = Column(String(50), unique=True, nullable=False, index=True, comment="柜号")
    vessel_name = Column(String(100), comment="船名")

    # PLANNED / IN_TRANSIT / ARRIVED
    status = Column(String(20), default=ContainerStatus.PLANNED.value, nullable=False, index=True, comment="货柜状态")

    etd = Column(DateTime, comment="预计离港")
    atd = Column(DateTime, comment="实际离港")
    eta = Column(DateTime, comment="预计到港")
    ata = Column(DateTime, comment="实际到港")
    arrival_at_warehouse = Column(DateTime, comment="到仓时间")

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Container {self.container_no}: {self.status}>"


class ContainerAllocation(Base):
    """装柜分配 - 订单（或明细）装入某个货柜"""
    __tablename__ = "container_allocations"

    id = Column(Integer, primary_key=True, index=True)
    container_id = Column(Integer, ForeignKey("containers.id", ondelete="SET NULL"), index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    order_item_id = Column(Integer, ForeignKey("order_items.id", ondelete="SET NULL"), comment="订单明细")
    allocated_qty = Column(Integer, comment="装柜数量")
    allocated_amount = Column(DECIMAL(12, 2), default=Decimal("0.00"), comment="装柜金额")
    notes = Column(Text, comment="备注")

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    container = relationship("Container", foreign_keys=[container_id])

    def __repr__(self):
        return f"<ContainerAllocation order={self.order_id} container={self.container_id}>"
