"""订单管理API"""

from typing import Any, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.deps import get_db
from app.models.order import Order
from app.schemas.finance import OrderFinanceSummary
from app.schemas.order import (
    OrderCreate, OrderListItem, OrderListResponse, OrderResponse, OrderTimelineResponse,
    OrderUpdate,
)
from app.services import order_service
from app.services.finance_service import get_order_finance_summary
from app.services.timeline import build_order_timeline

router = APIRouter()


def build_order_response(order: Order) -> OrderResponse:
    """构建订单响应（需已加载明细）"""
    return OrderResponse.model_validate(order)


@router.get("/", response_model=OrderListResponse)
async def list_orders(
    *,
    db: AsyncSession = Depends(get_db),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    workflow_status: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
) -> Any:
    """获取订单列表"""
    orders, total = await order_service.list_orders(
        db, page=page, limit=limit, workflow_status=workflow_status, search=search
    )
    return OrderListResponse(
        data=[OrderListItem.model_validate(order) for order in orders],
        total=total,
        page=page,
        limit=limit,
    )


@router.post("/", response_model=OrderResponse)
async def create_order(
    *,
    db: AsyncSession = Depends(get_db),
    data: OrderCreate,
) -> Any:
    """保存 PO 解析结果"""
    order = await order_service.create_order_from_extraction(db, data)
    await db.commit()
    return build_order_response(order)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    *,
    db: AsyncSession = Depends(get_db),
    order_id: int,
) -> Any:
    """获取订单详情"""
    order = await order_service.get_order_with_items(db, order_id)
    return build_order_response(order)


@router.patch("/{order_id}", response_model=OrderResponse)
async def update_order(
    *,
    db: AsyncSession = Depends(get_db),
    order_id: int,
    data: OrderUpdate,
) -> Any:
    """更新订单（流程状态不可直接修改）"""
    order = await order_service.update_order(db, order_id, data)
    await db.commit()
    return build_order_response(order)


@router.delete("/{order_id}")
async def delete_order(
    *,
    db: AsyncSession = Depends(get_db),
    order_id: int,
) -> Any:
    """删除订单"""
    await order_service.delete_order(db, order_id)
    await db.commit()
    return {"message": "删除成功"}


@router.get("/{order_id}/timeline", response_model=OrderTimelineResponse)
async def get_order_timeline(
    *,
    db: AsyncSession = Depends(get_db),
    order_id: int,
) -> Any:
    """订单时间线"""
    events = await build_order_timeline(db, order_id)
    return OrderTimelineResponse(order_id=order_id, events=events)


@router.get("/{order_id}/finance-summary", response_model=OrderFinanceSummary)
async def get_finance_summary(
    *,
    db: AsyncSession = Depends(get_db),
    order_id: int,
) -> Any:
    """订单应收/应付汇总"""
    return OrderFinanceSummary(**await get_order_finance_summary(db, order_id))
