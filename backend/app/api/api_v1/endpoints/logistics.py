"""物流管理API - 货柜、装柜分配、出货单据"""

from typing import Any, List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.deps import get_db
from app.schemas.logistics import (
    AllocationCreate, AllocationResponse, AllocationUpdate, ContainerCreate,
    ContainerMutationResponse, ContainerResponse, ContainerUpdate, ShippingDocCreate,
    ShippingDocResponse, ShippingDocUpdate,
)
from app.services import logistics_service
from app.services.finance_service import get_container_or_404

router = APIRouter()


# ============ 货柜 ============

@router.get("/containers", response_model=List[ContainerResponse])
async def list_containers(
    *,
    db: AsyncSession = Depends(get_db),
    status: Optional[str] = Query(None),
) -> Any:
    """获取货柜列表"""
    return await logistics_service.list_containers(db, status=status)


@router.post("/containers", response_model=ContainerResponse)
async def create_container(
    *,
    db: AsyncSession = Depends(get_db),
    data: ContainerCreate,
) -> Any:
    """创建货柜"""
    container = await logistics_service.create_container(db, data)
    await db.commit()
    return container


@router.get("/containers/{container_id}", response_model=ContainerResponse)
async def get_container(
    *,
    db: AsyncSession = Depends(get_db),
    container_id: int,
) -> Any:
    return await get_container_or_404(db, container_id)


@router.patch("/containers/{container_id}", response_model=ContainerMutationResponse)
async def update_container(
    *,
    db: AsyncSession = Depends(get_db),
    container_id: int,
    data: ContainerUpdate,
) -> Any:
    """修改货柜并重算关联订单"""
    container, recomputed = await logistics_service.update_container(db, container_id, data)
    await db.commit()
    return ContainerMutationResponse(
        container=ContainerResponse.model_validate(container),
        recomputed_order_ids=recomputed,
    )


@router.delete("/containers/{container_id}", response_model=ContainerMutationResponse)
async def delete_container(
    *,
    db: AsyncSession = Depends(get_db),
    container_id: int,
) -> Any:
    """删除货柜，关联单据的货柜引用置空"""
    recomputed = await logistics_service.delete_container(db, container_id)
    await db.commit()
    return ContainerMutationResponse(container=None, recomputed_order_ids=recomputed)


# ============ 装柜分配 ============

@router.get("/allocations", response_model=List[AllocationResponse])
async def list_allocations(
    *,
    db: AsyncSession = Depends(get_db),
    order_id: Optional[int] = Query(None),
    container_id: Optional[int] = Query(None),
) -> Any:
    return await logistics_service.list_allocations(db, order_id=order_id, container_id=container_id)


@router.post("/allocations", response_model=AllocationResponse)
async def create_allocation(
    *,
    db: AsyncSession = Depends(get_db),
    data: AllocationCreate,
) -> Any:
    """订单装柜"""
    allocation = await logistics_service.create_allocation(db, data)
    await db.commit()
    return allocation


@router.patch("/allocations/{allocation_id}", response_model=AllocationResponse)
async def update_allocation(
    *,
    db: AsyncSession = Depends(get_db),
    allocation_id: int,
    data: AllocationUpdate,
) -> Any:
    allocation = await logistics_service.update_allocation(db, allocation_id, data)
    await db.commit()
    return allocation


@router.delete("/allocations/{allocation_id}")
async def delete_allocation(
    *,
    db: AsyncSession = Depends(get_db),
    allocation_id: int,
) -> Any:
    await logistics_service.delete_allocation(db, allocation_id)
    await db.commit()
    return {"message": "删除成功"}


# ============ 出货单据 ============

@router.get("/shipping-docs", response_model=List[ShippingDocResponse])
async def list_shipping_docs(
    *,
    db: AsyncSession = Depends(get_db),
    order_id: Optional[int] = Query(None),
    container_id: Optional[int] = Query(None),
) -> Any:
    return await logistics_service.list_shipping_docs(db, order_id=order_id, container_id=container_id)


@router.post("/shipping-docs", response_model=ShippingDocResponse)
async def create_shipping_doc(
    *,
    db: AsyncSession = Depends(get_db),
    data: ShippingDocCreate,
) -> Any:
    """创建出货单据"""
    doc = await logistics_service.create_shipping_doc(db, data)
    await db.commit()
    return doc


@router.patch("/shipping-docs/{doc_id}", response_model=ShippingDocResponse)
async def update_shipping_doc(
    *,
    db: AsyncSession = Depends(get_db),
    doc_id: int,
    data: ShippingDocUpdate,
) -> Any:
    doc = await logistics_service.update_shipping_doc(db, doc_id, data)
    await db.commit()
    return doc


@router.delete("/shipping-docs/{doc_id}")
async def delete_shipping_doc(
    *,
    db: AsyncSession = Depends(get_db),
    doc_id: int,
) -> Any:
    await logistics_service.delete_shipping_doc(db, doc_id)
    await db.commit()
    return {"message": "删除成功"}
