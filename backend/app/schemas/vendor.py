"""供应商 Schema"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class VendorResponse(BaseModel):
    id: int
    name: str
    address: Optional[str]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True
