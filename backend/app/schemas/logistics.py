"""物流 Schema - 货柜、装柜分配、出货单据"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from app.core.constants import ContainerStatus, DocumentStatus


class ContainerCreate(BaseModel):
    container_no: str = Field(..., min_length=1, max_length=50)
    vessel_name: Optional[str] = None
    status: ContainerStatus = ContainerStatus.PLANNED
    etd: Optional[datetime] = None
    atd: Optional[datetime] = None
    eta: Optional[datetime] = None
    ata: Optional[datetime] = None
    arrival_at_warehouse: Optional[datetime] = None


class ContainerUpdate(BaseModel):
    container_no: Optional[str] = Field(default=None, min_length=1, max_length=50)
    vessel_name: Optional[str] = None
    status: Optional[ContainerStatus] = None
    etd: Optional[datetime] = None
    atd: Optional[datetime] = None
    eta: Optional[datetime] = None
    ata: Optional[datetime] = None
    arrival_at_warehouse: Optional[datetime] = None


class ContainerResponse(BaseModel):
    id: int
    container_no: str
    vessel_name: Optional[str]
    status: str
    etd: Optional[datetime]
    atd: Optional[datetime]
    eta: Optional[datetime]
    ata: Optional[datetime]
    arrival_at_warehouse: Optional[datetime]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class ContainerMutationResponse(BaseModel):
    """货柜修改/删除结果，附带被重算的订单"""
    container: Optional[ContainerResponse] = None
    recomputed_order_ids: List[int] = []


class AllocationCreate(BaseModel):
    order_id: int
    container_id: Optional[int] = None
    order_item_id: Optional[int] = None
    allocated_qty: Optional[int] = Field(default=None, ge=0)
    allocated_amount: Optional[Decimal] = Field(default=None, ge=0)
    notes: Optional[str] = None


class AllocationUpdate(BaseModel):
    container_id: Optional[int] = None
    order_item_id: Optional[int] = None
    allocated_qty: Optional[int] = Field(default=None, ge=0)
    allocated_amount: Optional[Decimal] = Field(default=None, ge=0)
    notes: Optional[str] = None


class AllocationResponse(BaseModel):
    id: int
    order_id: int
    container_id: Optional[int]
    order_item_id: Optional[int]
    allocated_qty: Optional[int]
    allocated_amount: Optional[Decimal]
    notes: Optional[str]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class ShippingDocCreate(BaseModel):
    order_id: int
    container_id: Optional[int] = None
    doc_no: Optional[str] = Field(default=None, max_length=50)
    issue_date: Optional[datetime] = None
    status: DocumentStatus = DocumentStatus.DRAFT
    payload: Optional[Dict[str, Any]] = None


class ShippingDocUpdate(BaseModel):
    container_id: Optional[int] = None
    doc_no: Optional[str] = Field(default=None, min_length=1, max_length=50)
    issue_date: Optional[datetime] = None
    status: Optional[DocumentStatus] = None
    payload: Optional[Dict[str, Any]] = None


class ShippingDocResponse(BaseModel):
    id: int
    order_id: int
    container_id: Optional[int]
    doc_no: str
    issue_date: Optional[datetime]
    status: str
    payload: Dict[str, Any] = {}
    created_at: Optional[datetime]

    class Config:
        from_attributes = True
