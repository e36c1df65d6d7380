"""供应商API"""

from typing import Any, List
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.deps import get_db
from app.schemas.vendor import VendorResponse
from app.services.order_service import list_vendors

router = APIRouter()


@router.get("/", response_model=List[VendorResponse])
async def get_vendors(
    *,
    db: AsyncSession = Depends(get_db),
) -> Any:
    """获取供应商列表（保存订单时自动登记）"""
    return await list_vendors(db)
