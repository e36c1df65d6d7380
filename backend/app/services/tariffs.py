"""
关税分类与税率规则（纯函数，不访问数据库）

分类键格式："<人群> <品类> | <面料>"，例如 "mens tee | cotton-rich"
带原产国的键在前面加国家代码："cn | mens tee | cotton-rich"

税率解析顺序：
1. 税率表中精确匹配 "<国家> | <分类键>"
2. 税率表中精确匹配 "<分类键>"，再叠加原产国附加税
3. 内置默认税率（按品类/面料），再叠加原产国附加税
任何键都能解析出税率，不会抛异常
"""

import re
from decimal import Decimal
from typing import Dict, List, Mapping, NamedTuple, Optional, Tuple

from app.core.config import settings
from app.services.margin import parse_decimal_input, round_rate

KEY_DELIMITER = " | "

# 原产国附加税
ORIGIN_SURCHARGES = {
    "CN": Decimal("0.075"),
}

COUNTRY_KEYWORDS: List[Tuple[str, List[str]]] = [
    ("CN", [" china", " prc", "shanghai", "guangdong", "fujian", "zhejiang", "shenzhen"]),
    ("VN", [" vietnam", "ho chi minh", "hanoi"]),
    ("BD", [" bangladesh", "dhaka"]),
    ("IN", [" india", "mumbai", "delhi"]),
    ("PK", [" pakistan", "karachi"]),
    ("ID", [" indonesia", "jakarta"]),
    ("KH", [" cambodia", "phnom penh"]),
]

LIFECYCLE_PATTERNS = [
    ("junior", re.compile(r"\bjunior\b|\bjr\b")),
    ("kids", re.compile(r"\bkid\b|\byouth\b|\btoddler\b|\binfant\b|\bgirl\b|\bboy\b")),
    ("mens", re.compile(r"\bmen\b|\bmens\b|\bmale\b")),
    ("womens", re.compile(r"\bwomen\b|\bwomens\b|\blady\b|\bladies\b")),
]

PRODUCT_TYPE_PATTERNS = [
    ("tee", re.compile(r"\btee\b|t[\s-]?shirt|skimmer")),
    ("top", re.compile(r"\bhoodie\b|sweatshirt|sweater|fleece")),
    ("tank", re.compile(r"\btank\b")),
    ("dress", re.compile(r"\bdress\b")),
    ("leggings", re.compile(r"\blegging\b")),
    ("shorts", re.compile(r"\bshort\b")),
    ("pants", re.compile(r"\bpant\b|\btrouser\b")),
    ("jacket", re.compile(r"\bjacket\b|outerwear|coat")),
    ("accessory", re.compile(r"\bhat\b|\bbag\b|\bsock\b|\bcap\b")),
]

FABRIC_RATIO_PATTERN = re.compile(r"(\d+(?:\.\d+)?)\s*%?\s*(cotton|polyester|poly)")
COUNTRY_CODE_PATTERN = re.compile(r"^[a-z]{2}$")

COTTON_RICH = "cotton-rich"
POLY_RICH = "poly-rich"
MIXED = "mixed"


class TariffResolution(NamedTuple):
    rate: Decimal
    matched_key: Optional[str]


def normalize_tariff_key(text: Optional[str]) -> str:
    """小写、去首尾空白、合并连续空白"""
    return re.sub(r"\s+", " ", (text or "").lower()).strip()


def infer_origin_country(supplier_name: Optional[str] = None, supplier_address: Optional[str] = None) -> str:
    """根据供应商名称/地址推断原产国"""
    haystack = f" {supplier_name or ''} {supplier_address or ''}".lower()
    for country, keywords in COUNTRY_KEYWORDS:
        if any(keyword in haystack for keyword in keywords):
            return country
    return settings.DEFAULT_ORIGIN_COUNTRY.upper()


def get_lifecycle_group(description: str, collection: str) -> str:
    combined = f"{description} {collection}"
    for group, pattern in LIFECYCLE_PATTERNS:
        if pattern.search(combined):
            return group
    return "general"


def get_product_type(description: str) -> str:
    for product_type, pattern in PRODUCT_TYPE_PATTERNS:
        if pattern.search(description):
            return product_type
    return "apparel"


def detect_fabric_bucket(material: Optional[str]) -> str:
    """按面料成分判断：棉为主 / 涤为主 / 混纺"""
    text = (material or "").lower()
    if not text.strip():
        return MIXED

    cotton_ratio = Decimal("0")
    poly_ratio = Decimal("0")
    for ratio, fabric in FABRIC_RATIO_PATTERN.findall(text):
        if "cotton" in fabric:
            cotton_ratio += Decimal(ratio)
        if "poly" in fabric:
            poly_ratio += Decimal(ratio)

    if cotton_ratio > 0 or poly_ratio > 0:
        if cotton_ratio >= poly_ratio and cotton_ratio >= 50:
            return COTTON_RICH
        if poly_ratio > cotton_ratio and poly_ratio >= 50:
            return POLY_RICH
        if cotton_ratio > poly_ratio:
            return COTTON_RICH
        if poly_ratio > cotton_ratio:
            return POLY_RICH

    has_cotton = bool(re.search(r"\bcotton\b|cotton-rich", text))
    has_poly = bool(re.search(r"\bpoly\b|polyester|poly-rich", text))
    if has_cotton and not has_poly:
        return COTTON_RICH
    if has_poly and not has_cotton:
        return POLY_RICH
    return MIXED


def derive_tariff_key(
    description: Optional[str] = None,
    collection: Optional[str] = None,
    material: Optional[str] = None,
) -> str:
    """由品名/系列/面料推导分类键，结果确定且已规范化"""
    normalized_description = normalize_tariff_key(description)
    normalized_collection = normalize_tariff_key(collection)
    lifecycle = get_lifecycle_group(normalized_description, normalized_collection)
    product_type = get_product_type(normalized_description)
    fabric = detect_fabric_bucket(material)

    category = product_type if lifecycle == "general" else f"{lifecycle} {product_type}"
    return normalize_tariff_key(f"{category}{KEY_DELIMITER}{fabric}")


def country_tariff_key(base_key: str, origin_country: Optional[str] = None) -> str:
    country = (origin_country or settings.DEFAULT_ORIGIN_COUNTRY).lower()
    return normalize_tariff_key(f"{country}{KEY_DELIMITER}{base_key}")


def split_country_from_key(tariff_key: str) -> Tuple[Optional[str], str]:
    """拆出键前缀中的国家代码，没有前缀时国家为 None"""
    parts = [normalize_tariff_key(part) for part in normalize_tariff_key(tariff_key).split("|")]
    parts = [part for part in parts if part]
    if len(parts) >= 2 and COUNTRY_CODE_PATTERN.match(parts[0]):
        return parts[0].upper(), normalize_tariff_key(KEY_DELIMITER.join(parts[1:]))
    return None, normalize_tariff_key(tariff_key)


def clamp_rate(value: Decimal) -> Decimal:
    return max(Decimal("0"), min(Decimal("1"), value))


def get_default_base_rate(base_key: str) -> Decimal:
    """内置默认税率（未叠加原产国附加税）"""
    parts = [normalize_tariff_key(part) for part in base_key.split("|")]
    category = parts[0] if parts and parts[0] else "apparel"
    fabric = parts[1] if len(parts) > 1 and parts[1] else MIXED

    if "tee" in category or "tank" in category:
        return {COTTON_RICH: Decimal("0.25"), POLY_RICH: Decimal("0.22")}.get(fabric, Decimal("0.24"))
    if "top" in category or "hoodie" in category or "sweatshirt" in category:
        return {COTTON_RICH: Decimal("0.26"), POLY_RICH: Decimal("0.23")}.get(fabric, Decimal("0.25"))
    if "dress" in category or "jacket" in category:
        return Decimal("0.24") if fabric == POLY_RICH else Decimal("0.26")
    if "pants" in category or "shorts" in category or "leggings" in category:
        return Decimal("0.21") if fabric == POLY_RICH else Decimal("0.24")
    if "accessory" in category:
        return Decimal("0.15")
    return {COTTON_RICH: Decimal("0.24"), POLY_RICH: Decimal("0.22")}.get(fabric, Decimal("0.23"))


def apply_origin_surcharge(base_rate: Decimal, origin_country: Optional[str] = None) -> Decimal:
    country = (origin_country or settings.DEFAULT_ORIGIN_COUNTRY).upper()
    surcharge = ORIGIN_SURCHARGES.get(country, Decimal("0"))
    return round_rate(clamp_rate(base_rate + surcharge))


def default_tariff_rate(tariff_key: str, origin_country: Optional[str] = None) -> Decimal:
    """键可以带国家前缀；显式传入的原产国优先"""
    key_country, base_key = split_country_from_key(tariff_key)
    country = origin_country or key_country or settings.DEFAULT_ORIGIN_COUNTRY
    return apply_origin_surcharge(get_default_base_rate(base_key), country)


def resolve_tariff_rate(
    base_key: str,
    origin_country: Optional[str],
    tariff_map: Mapping[str, Decimal],
) -> TariffResolution:
    """
    按 国家键 → 基础键 → 默认规则 的顺序解析税率

    Args:
        base_key: 不含国家前缀的分类键
        origin_country: 原产国代码，为空时取默认原产国
        tariff_map: 规范化键 → 税率
    """
    normalized_base = normalize_tariff_key(base_key)
    country = (origin_country or settings.DEFAULT_ORIGIN_COUNTRY).upper()
    country_key = country_tariff_key(normalized_base, country)

    if country_key in tariff_map:
        rate = parse_decimal_input(tariff_map[country_key], Decimal("0"))
        return TariffResolution(round_rate(clamp_rate(rate)), country_key)

    if normalized_base in tariff_map:
        rate = parse_decimal_input(tariff_map[normalized_base], Decimal("0"))
        return TariffResolution(apply_origin_surcharge(rate, country), normalized_base)

    return TariffResolution(default_tariff_rate(normalized_base, country), None)


def build_tariff_map(rows) -> Dict[str, Decimal]:
    """TariffRate 行 → {规范化键: 税率}"""
    return {
        normalize_tariff_key(row.product_class): parse_decimal_input(row.tariff_rate, Decimal("0"))
        for row in rows
    }
