"""
业务常量 - 单据状态、流程动作等枚举
"""

from enum import Enum


class WorkflowStatus(str, Enum):
    """订单流程状态"""
    PO_UPLOADED = "PO_UPLOADED"
    PARTIALLY_SHIPPED = "PARTIALLY_SHIPPED"
    SHIPPING_DOC_SENT = "SHIPPING_DOC_SENT"
    IN_TRANSIT = "IN_TRANSIT"
    AR_AP_OPEN = "AR_AP_OPEN"
    CLOSED = "CLOSED"


class ContainerStatus(str, Enum):
    PLANNED = "PLANNED"
    IN_TRANSIT = "IN_TRANSIT"
    ARRIVED = "ARRIVED"


class DocumentStatus(str, Enum):
    """出货单据状态"""
    DRAFT = "DRAFT"
    ISSUED = "ISSUED"


class FinanceStatus(str, Enum):
    """应收/应付单据状态"""
    OPEN = "OPEN"
    PARTIAL = "PARTIAL"
    PAID = "PAID"


class PaymentTargetType(str, Enum):
    CUSTOMER_INVOICE = "CUSTOMER_INVOICE"
    VENDOR_BILL = "VENDOR_BILL"
    LOGISTICS_BILL = "LOGISTICS_BILL"


class PaymentDirection(str, Enum):
    IN = "IN"  # 收款（应收）
    OUT = "OUT"  # 付款（应付）


class WorkflowAction(str, Enum):
    GENERATE_SHIPPING_DOC = "GENERATE_SHIPPING_DOC"
    START_TRANSIT = "START_TRANSIT"
    MARK_DELIVERED = "MARK_DELIVERED"


class RollbackAction(str, Enum):
    UNDO_MARK_DELIVERED = "UNDO_MARK_DELIVERED"
    UNDO_START_TRANSIT = "UNDO_START_TRANSIT"
    UNDO_SHIPPING_DOC = "UNDO_SHIPPING_DOC"


class TariffSource(str, Enum):
    MANUAL = "manual"
    AUTO = "auto"


WORKFLOW_STATUS_DISPLAY = {
    WorkflowStatus.PO_UPLOADED: "已录入PO",
    WorkflowStatus.PARTIALLY_SHIPPED: "部分装柜",
    WorkflowStatus.SHIPPING_DOC_SENT: "已出货单",
    WorkflowStatus.IN_TRANSIT: "运输中",
    WorkflowStatus.AR_AP_OPEN: "待结算",
    WorkflowStatus.CLOSED: "已结清",
}

FINANCE_STATUS_DISPLAY = {
    FinanceStatus.OPEN: "未付款",
    FinanceStatus.PARTIAL: "部分付款",
    FinanceStatus.PAID: "已结清",
}

# 付款对象 → 默认收付方向
DEFAULT_PAYMENT_DIRECTION = {
    PaymentTargetType.CUSTOMER_INVOICE: PaymentDirection.IN,
    PaymentTargetType.VENDOR_BILL: PaymentDirection.OUT,
    PaymentTargetType.LOGISTICS_BILL: PaymentDirection.OUT,
}
