"""订单流程API - 触发、回退、重算"""

from typing import Any
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.deps import get_db
from app.core.exceptions import NotFoundError
from app.models.order import Order
from app.schemas.workflow import (
    WorkflowRollbackRequest, WorkflowRollbackResponse, WorkflowStatusResponse,
    WorkflowTriggerRequest, WorkflowTriggerResponse,
)
from app.services.workflow import rollback_workflow, trigger_workflow
from app.services.workflow_status import recompute_order_workflow_status

router = APIRouter()


def build_status_response(order: Order) -> WorkflowStatusResponse:
    return WorkflowStatusResponse(
        order_id=order.id,
        workflow_status=order.workflow_status,
        workflow_status_display=order.workflow_status_display,
        delivered_at=order.delivered_at,
        closed_at=order.closed_at,
        version=order.version,
    )


@router.post("/orders/{order_id}/trigger", response_model=WorkflowTriggerResponse)
async def trigger_order_workflow(
    *,
    db: AsyncSession = Depends(get_db),
    order_id: int,
    data: WorkflowTriggerRequest,
) -> Any:
    """执行流程操作（幂等）"""
    result = await trigger_workflow(
        db, order_id, data.action, container_id=data.container_id, delivered_at=data.delivered_at
    )
    await db.commit()
    return result


@router.post("/orders/{order_id}/rollback", response_model=WorkflowRollbackResponse)
async def rollback_order_workflow(
    *,
    db: AsyncSession = Depends(get_db),
    order_id: int,
    data: WorkflowRollbackRequest,
) -> Any:
    """回退流程（不删除单据）"""
    result = await rollback_workflow(db, order_id, data.action)
    await db.commit()
    return result


@router.post("/orders/{order_id}/recompute", response_model=WorkflowStatusResponse)
async def recompute_order_status(
    *,
    db: AsyncSession = Depends(get_db),
    order_id: int,
) -> Any:
    """按现有单据重算流程状态"""
    order = await recompute_order_workflow_status(db, order_id)
    if not order:
        raise NotFoundError("订单不存在")
    await db.commit()
    return build_status_response(order)


@router.get("/orders/{order_id}/status", response_model=WorkflowStatusResponse)
async def get_order_status(
    *,
    db: AsyncSession = Depends(get_db),
    order_id: int,
) -> Any:
    """获取流程状态"""
    order = await db.get(Order, order_id)
    if not order:
        raise NotFoundError("订单不存在")
    return build_status_response(order)
