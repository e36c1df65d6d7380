"""订单 Schema"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, validator

from app.services.margin import parse_decimal_input


class OrderItemCreate(BaseModel):
    """订单明细（来自 PO 解析结果，金额允许字符串）"""
    product_code: Optional[str] = None
    description: Optional[str] = None
    color: Optional[str] = None
    material: Optional[str] = None
    collection: Optional[str] = None
    size_breakdown: Optional[Dict[str, Any]] = None
    quantity: int = Field(default=0, ge=0)
    customer_unit_price: Decimal = Decimal("0")
    vendor_unit_price: Decimal = Decimal("0")
    # 不传则按分类键查税率表
    tariff_rate: Optional[Decimal] = None

    @validator("customer_unit_price", "vendor_unit_price", pre=True)
    def parse_money(cls, v):
        return parse_decimal_input(v, Decimal("0"))

    @validator("tariff_rate", pre=True)
    def parse_rate(cls, v):
        return parse_decimal_input(v, None)

    @validator("quantity", pre=True)
    def parse_quantity(cls, v):
        parsed = parse_decimal_input(v, Decimal("0"))
        return int(parsed)


class OrderBase(BaseModel):
    so_reference: Optional[str] = None
    customer_name: Optional[str] = None
    customer_address: Optional[str] = None
    supplier_name: Optional[str] = None
    supplier_address: Optional[str] = None
    ship_to: Optional[str] = None
    ship_via: Optional[str] = None
    shipment_terms: Optional[str] = None
    payment_terms: Optional[str] = None
    customer_notes: Optional[str] = None
    order_date: Optional[datetime] = None
    exp_ship_date: Optional[datetime] = None
    cancel_date: Optional[datetime] = None


class OrderCreate(OrderBase):
    """保存 PO 解析结果"""
    vpo_number: str = Field(..., min_length=1)
    status: Optional[str] = None
    customer_term_days: Optional[int] = Field(default=None, ge=0)
    vendor_term_days: Optional[int] = Field(default=None, ge=0)
    logistics_term_days: Optional[int] = Field(default=None, ge=0)
    items: List[OrderItemCreate] = []


class OrderUpdate(OrderBase):
    """更新订单抬头；传入 items 时整体替换明细并重算金额"""
    vpo_number: Optional[str] = Field(default=None, min_length=1)
    status: Optional[str] = None
    customer_term_days: Optional[int] = Field(default=None, ge=0)
    vendor_term_days: Optional[int] = Field(default=None, ge=0)
    logistics_term_days: Optional[int] = Field(default=None, ge=0)
    items: Optional[List[OrderItemCreate]] = None


class OrderItemResponse(BaseModel):
    id: int
    product_code: Optional[str]
    description: Optional[str]
    color: Optional[str]
    material: Optional[str]
    collection: Optional[str]
    size_breakdown: Dict[str, Any] = {}
    product_class: Optional[str]
    quantity: int
    customer_unit_price: Decimal
    vendor_unit_price: Decimal
    total: Decimal
    tariff_rate: Decimal
    estimated_duty_cost: Decimal
    estimated_3pl_cost: Decimal
    estimated_margin: Decimal

    class Config:
        from_attributes = True


class OrderResponse(OrderBase):
    id: int
    vpo_number: str
    status: Optional[str]
    total_amount: Decimal
    estimated_margin: Decimal
    estimated_margin_rate: Decimal
    workflow_status: str
    workflow_status_display: str = ""
    delivered_at: Optional[datetime]
    closed_at: Optional[datetime]
    customer_term_days: int
    vendor_term_days: int
    logistics_term_days: int
    version: int
    created_at: Optional[datetime]
    updated_at: Optional[datetime]
    items: List[OrderItemResponse] = []

    class Config:
        from_attributes = True


class OrderListItem(BaseModel):
    """订单列表（不含明细）"""
    id: int
    vpo_number: str
    customer_name: Optional[str]
    supplier_name: Optional[str]
    status: Optional[str]
    total_amount: Decimal
    estimated_margin: Decimal
    estimated_margin_rate: Decimal
    workflow_status: str
    workflow_status_display: str = ""
    delivered_at: Optional[datetime]
    closed_at: Optional[datetime]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class OrderListResponse(BaseModel):
    data: List[OrderListItem]
    total: int
    page: int
    limit: int


class TimelineEvent(BaseModel):
    """订单时间线事件"""
    type: str
    timestamp: datetime
    title: str
    reference_id: Optional[int] = None
    reference_no: Optional[str] = None
    amount: Optional[Decimal] = None


class OrderTimelineResponse(BaseModel):
    order_id: int
    events: List[TimelineEvent]
