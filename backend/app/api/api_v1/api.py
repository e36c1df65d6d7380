"""API v1 路由聚合"""
from fastapi import APIRouter

from app.api.api_v1.endpoints import finance, logistics, orders, tariffs, vendors, workflow

api_router = APIRouter()

# 订单与流程
api_router.include_router(orders.router, prefix="/orders", tags=["订单管理"])
api_router.include_router(workflow.router, prefix="/workflow", tags=["订单流程"])

# 物流
api_router.include_router(logistics.router, prefix="/logistics", tags=["物流管理"])

# 财务
api_router.include_router(finance.router, prefix="/finance", tags=["应收应付"])

# 基础资料
api_router.include_router(tariffs.router, prefix="/tariffs", tags=["关税税率"])
api_router.include_router(vendors.router, prefix="/vendors", tags=["供应商"])
