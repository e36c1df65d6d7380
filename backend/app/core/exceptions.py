"""
业务异常
- 校验错误 422（字段级明细）
- 不存在 404
- 冲突 409（有付款的单据不可删除、编号重复、订单版本冲突）
"""

from typing import List, Optional

from fastapi import HTTPException


class BusinessValidationError(HTTPException):
    """业务校验失败，detail 为字段错误列表"""

    def __init__(self, field: str, message: str, errors: Optional[List[dict]] = None):
        detail = errors or [{"loc": [field], "msg": message}]
        super().__init__(status_code=422, detail=detail)


class NotFoundError(HTTPException):
    def __init__(self, detail: str):
        super().__init__(status_code=404, detail=detail)


class ConflictError(HTTPException):
    def __init__(self, detail: str):
        super().__init__(status_code=409, detail=detail)
