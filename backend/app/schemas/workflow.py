"""订单流程 Schema"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel

from app.core.constants import RollbackAction, WorkflowAction


class WorkflowTriggerRequest(BaseModel):
    action: WorkflowAction
    container_id: Optional[int] = None
    delivered_at: Optional[datetime] = None


class WorkflowTriggerResponse(BaseModel):
    action: str
    order_id: int
    container_id: Optional[int]
    created: Dict[str, bool]
    updated: Dict[str, Any]
    documents: Dict[str, Any]


class WorkflowRollbackRequest(BaseModel):
    action: RollbackAction


class WorkflowRollbackResponse(BaseModel):
    action: str
    order_id: int
    reset_container_ids: List[int]
    workflow_status: Optional[str]


class WorkflowStatusResponse(BaseModel):
    order_id: int
    workflow_status: str
    workflow_status_display: str = ""
    delivered_at: Optional[datetime]
    closed_at: Optional[datetime]
    version: int

