# models包初始化文件
# 导入全部模型，确保 Base.metadata 能建出所有表

from app.models.order import Order
from app.models.order_item import OrderItem
from app.models.vendor import Vendor
from app.models.container import Container, ContainerAllocation
from app.models.shipping_document import ShippingDocument
from app.models.finance_document import CommercialInvoice, VendorBill, LogisticsBill
from app.models.payment import Payment
from app.models.tariff_rate import TariffRate

__all__ = [
    "Order",
    "OrderItem",
    "Vendor",
    "Container",
    "ContainerAllocation",
    "ShippingDocument",
    "CommercialInvoice",
    "VendorBill",
    "LogisticsBill",
    "Payment",
    "TariffRate",
]
