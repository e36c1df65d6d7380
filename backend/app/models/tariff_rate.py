"""关税税率表 - 分类键 → 税率，可人工维护"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, DateTime, DECIMAL
from app.db.base import Base
from app.core.constants import TariffSource


class TariffRate(Base):
    __tablename__ = "tariff_rates"

    id = Column(Integer, primary_key=True, index=True)

    # 规范化后的分类键，如 "cn | mens tee | cotton-rich"
    product_class = Column(String(200), unique=True, nullable=False, index=True, comment="分类键")
    tariff_rate = Column(DECIMAL(8, 4), nullable=False, comment="税率")

    # manual: 人工维护；auto: 系统按默认规则登记，可被定时任务刷新
    source = Column(String(20), default=TariffSource.AUTO.value, nullable=False, comment="来源")
    notes = Column(Text, comment="备注")

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<TariffRate {self.product_class}: {self.tariff_rate}>"
