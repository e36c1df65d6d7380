"""
毛利计算
金额统一使用 Decimal，仅在返回值上做四舍五入（金额 2 位，比率 4 位）

    客户收入   = 客户单价 × 数量
    供应商成本 = 供应商单价 × 数量
    关税       = 供应商成本 × 税率
    3PL费用    = 关税 × 0.5 + 0.10 × 数量   （3PL 账单包含一半关税）
    预估毛利   = 客户收入 − 供应商成本 − 3PL费用   （关税不再重复扣除）
    毛利率     = 预估毛利 / 客户收入（收入为 0 时取 0）
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable, Optional

MONEY_QUANT = Decimal("0.01")
RATE_QUANT = Decimal("0.0001")
ZERO = Decimal("0")

DUTY_SHARE_IN_3PL = Decimal("0.5")
PER_UNIT_3PL_FEE = Decimal("0.10")


@dataclass(frozen=True)
class MarginResult:
    customer_revenue: Decimal
    vendor_cost: Decimal
    duty_cost: Decimal
    estimated_3pl: Decimal
    estimated_margin: Decimal
    margin_rate: Decimal


def round_money(value: Any) -> Decimal:
    return to_decimal(value).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def round_rate(value: Any) -> Decimal:
    return to_decimal(value).quantize(RATE_QUANT, rounding=ROUND_HALF_UP)


def to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if value is None:
        return ZERO
    # float 先转字符串，避免二进制误差带进 Decimal
    return Decimal(str(value))


def parse_decimal_input(value: Any, fallback: Optional[Decimal] = ZERO) -> Optional[Decimal]:
    """
    接口边界的宽松解析：数字或数字字符串 → Decimal，其余一律返回 fallback

    例如 "1,200.50" → Decimal("1200.50")，"" / None / "abc" → fallback
    """
    if value is None or isinstance(value, bool):
        return fallback
    if isinstance(value, Decimal):
        return value if value.is_finite() else fallback
    if isinstance(value, (int, float)):
        parsed = Decimal(str(value))
        return parsed if parsed.is_finite() else fallback
    if isinstance(value, str):
        text = value.strip().replace(",", "").replace("$", "")
        if not text:
            return fallback
        try:
            parsed = Decimal(text)
        except InvalidOperation:
            return fallback
        return parsed if parsed.is_finite() else fallback
    return fallback


def clamp_non_negative(value: Any) -> Decimal:
    parsed = parse_decimal_input(value, ZERO)
    return parsed if parsed > ZERO else ZERO


def calculate_estimated_margin(
    customer_unit_price: Any,
    vendor_unit_price: Any,
    qty: Any,
    tariff_rate: Any,
) -> MarginResult:
    """计算单行预估毛利，负数输入按 0 处理"""
    customer_unit = clamp_non_negative(customer_unit_price)
    vendor_unit = clamp_non_negative(vendor_unit_price)
    quantity = clamp_non_negative(qty)
    rate = clamp_non_negative(tariff_rate)

    customer_revenue = customer_unit * quantity
    vendor_cost = vendor_unit * quantity
    duty_cost = vendor_cost * rate
    estimated_3pl = duty_cost * DUTY_SHARE_IN_3PL + PER_UNIT_3PL_FEE * quantity
    estimated_margin = customer_revenue - vendor_cost - estimated_3pl
    margin_rate = estimated_margin / customer_revenue if customer_revenue > ZERO else ZERO

    return MarginResult(
        customer_revenue=round_money(customer_revenue),
        vendor_cost=round_money(vendor_cost),
        duty_cost=round_money(duty_cost),
        estimated_3pl=round_money(estimated_3pl),
        estimated_margin=round_money(estimated_margin),
        margin_rate=round_rate(margin_rate),
    )


def add_days(base: datetime, days: int) -> datetime:
    return base + timedelta(days=int(days or 0))


def sum_paid_amount(payments: Iterable[Any]) -> Decimal:
    """付款合计，接受 Payment 对象或金额"""
    total = ZERO
    for payment in payments:
        amount = getattr(payment, "amount", payment)
        total += to_decimal(amount)
    return total
