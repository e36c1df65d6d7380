"""出货单据 - 属于订单，可关联一个货柜"""

import json
from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from app.db.base import Base
from app.core.constants import DocumentStatus


class ShippingDocument(Base):
    __tablename__ = "shipping_documents"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    container_id = Column(Integer, ForeignKey("containers.id", ondelete="SET NULL"), index=True)

    # 格式：SD20241203001
    doc_no = Column(String(50), unique=True, nullable=False, index=True, comment="单据号")
    issue_date = Column(DateTime, default=datetime.utcnow, comment="签发日期")
    status = Column(String(20), default=DocumentStatus.DRAFT.value, nullable=False, comment="DRAFT/ISSUED")
    payload_json = Column(Text, comment="单据内容（JSON）")

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    container = relationship("Container", foreign_keys=[container_id])

    def __repr__(self):
        return f"<ShippingDocument {self.doc_no}: {self.status}>"

    @property
    def payload(self) -> dict:
        if not self.payload_json:
            return {}
        try:
            return json.loads(self.payload_json)
        except ValueError:
            return {}

    @payload.setter
    def payload(self, value: dict):
        self.payload_json = json.dumps(value, ensure_ascii=False) if value else None
