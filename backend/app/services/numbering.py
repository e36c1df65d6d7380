"""单据编号生成：前缀 + 日期 + 3位流水，如 CI20241203001"""

from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

SHIPPING_DOC_PREFIX = "SD"
INVOICE_PREFIX = "CI"
VENDOR_BILL_PREFIX = "VB"
LOGISTICS_BILL_PREFIX = "LB"
RECEIPT_PREFIX = "REC"
PAYOUT_PREFIX = "PAY"


async def generate_document_no(db: AsyncSession, column, prefix: str) -> str:
    """按当天最大流水号 +1 生成编号"""
    date_str = datetime.now().strftime("%Y%m%d")

    pattern = f"{prefix}{date_str}%"
    result = await db.execute(select(func.max(column)).where(column.like(pattern)))
    max_no = result.scalar()

    if max_no:
        try:
            seq = int(max_no[-3:]) + 1
        except ValueError:
            seq = 1
    else:
        seq = 1

    return f"{prefix}{date_str}{seq:03d}"
