import asyncio
from decimal import Decimal

import pytest
from sqlalchemy import delete, select

from app.models.tariff_rate import TariffRate
from app.services.tariffs import (
    default_tariff_rate, derive_tariff_key, detect_fabric_bucket, infer_origin_country,
    normalize_tariff_key, resolve_tariff_rate, split_country_from_key,
)

API = "/api/v1"


def test_normalize_tariff_key():
    assert normalize_tariff_key("  Mens   TEE |  Cotton-Rich ") == "mens tee | cotton-rich"
    assert normalize_tariff_key(None) == ""


@pytest.mark.parametrize("description, collection, material, expected", [
    ("Mens Crew Neck Tee", "", "100% Cotton", "mens tee | cotton-rich"),
    ("Womens Pullover Hoodie", "Fall", "60% polyester 40% cotton", "womens top | poly-rich"),
    ("Girl Tank", "", "cotton/poly blend", "kids tank | mixed"),
    ("Junior Legging", "", "92% Poly 8% Spandex", "junior leggings | poly-rich"),
    ("Baseball Cap", "", "", "accessory | mixed"),
    ("Scarf", "", "cotton", "apparel | cotton-rich"),
])
def test_derive_tariff_key(description, collection, material, expected):
    assert derive_tariff_key(description, collection, material) == expected


def test_derive_tariff_key_is_deterministic():
    first = derive_tariff_key("Mens Tee", "Basics", "100% cotton")
    assert first == derive_tariff_key("  MENS   tee ", "basics", "100% Cotton")


def test_women_is_not_matched_as_men():
    assert derive_tariff_key("Women Dress", "", "").startswith("womens dress")


def test_fabric_bucket_by_ratio():
    assert detect_fabric_bucket("50% cotton 50% polyester") == "cotton-rich"
    assert detect_fabric_bucket("30% cotton 20% poly") == "cotton-rich"
    assert detect_fabric_bucket("") == "mixed"


@pytest.mark.parametrize("name, address, expected", [
    ("Saigon Apparel", "District 1, Ho Chi Minh City", "VN"),
    ("Dhaka Knit Ltd", "", "BD"),
    ("Zhejiang Textiles", "", "CN"),
    ("Unknown Supplier", "Somewhere", "CN"),
    (None, None, "CN"),
])
def test_infer_origin_country(name, address, expected):
    assert infer_origin_country(name, address) == expected


def test_default_rate_includes_china_surcharge():
    assert default_tariff_rate("mens tee | cotton-rich", "CN") == Decimal("0.3250")
    assert default_tariff_rate("mens tee | cotton-rich", "VN") == Decimal("0.2500")
    assert default_tariff_rate("cn | accessory | mixed") == Decimal("0.2250")


def test_split_country_from_key():
    assert split_country_from_key("VN | mens tee | cotton-rich") == ("VN", "mens tee | cotton-rich")
    assert split_country_from_key("mens tee | cotton-rich") == (None, "mens tee | cotton-rich")


def test_resolve_prefers_country_key_without_surcharge():
    tariff_map = {
        "cn | mens tee | cotton-rich": Decimal("0.3000"),
        "mens tee | cotton-rich": Decimal("0.2000"),
    }
    resolution = resolve_tariff_rate("mens tee | cotton-rich", "CN", tariff_map)
    assert resolution.rate == Decimal("0.3000")
    assert resolution.matched_key == "cn | mens tee | cotton-rich"


def test_resolve_base_key_adds_origin_surcharge():
    resolution = resolve_tariff_rate("mens tee | cotton-rich", "CN", {"mens tee | cotton-rich": Decimal("0.2")})
    assert resolution.rate == Decimal("0.2750")
    assert resolution.matched_key == "mens tee | cotton-rich"


def test_resolve_unmapped_key_falls_back_to_default():
    resolution = resolve_tariff_rate("something odd | ???", "KH", {})
    assert resolution.rate == Decimal("0.2300")
    assert resolution.matched_key is None


def test_resolve_clamps_rate():
    resolution = resolve_tariff_rate("mens tee | mixed", "CN", {"mens tee | mixed": Decimal("0.99")})
    assert resolution.rate == Decimal("1.0000")


# ============ 税率表接口 ============

def test_order_creation_auto_registers_tariff_key(client, create_order, item_payload):
    create_order(items=[item_payload(tariff_rate=None)])

    rows = client.get(f"{API}/tariffs/").json()
    assert [row["product_class"] for row in rows] == ["cn | mens tee | cotton-rich"]
    assert rows[0]["source"] == "auto"
    assert Decimal(rows[0]["tariff_rate"]) == Decimal("0.3250")


def test_manual_upsert_is_used_for_new_orders(client, create_order, item_payload):
    response = client.post(
        f"{API}/tariffs/",
        json={"tariff_key": "CN | Mens Tee | Cotton-Rich", "tariff_rate": "0.2", "notes": "HTS 6109"},
    )
    assert response.status_code == 200
    assert response.json()["source"] == "manual"

    order = create_order(items=[item_payload(tariff_rate=None)])
    assert Decimal(order["items"][0]["tariff_rate"]) == Decimal("0.2000")

    # 已存在的键不会被自动登记覆盖
    rows = client.get(f"{API}/tariffs/").json()
    assert len(rows) == 1
    assert rows[0]["source"] == "manual"


def test_upsert_with_unparsable_rate_uses_default(client):
    response = client.post(f"{API}/tariffs/", json={"tariff_key": "vn | accessory | mixed", "tariff_rate": "abc"})
    assert response.status_code == 200
    assert Decimal(response.json()["tariff_rate"]) == Decimal("0.1500")


def test_patch_marks_row_manual(client, create_order, item_payload):
    create_order(items=[item_payload(tariff_rate=None)])
    row = client.get(f"{API}/tariffs/").json()[0]

    response = client.patch(f"{API}/tariffs/{row['id']}", json={"tariff_rate": "0.18"})
    assert response.status_code == 200
    assert response.json()["source"] == "manual"
    assert Decimal(response.json()["tariff_rate"]) == Decimal("0.1800")

    assert client.patch(f"{API}/tariffs/{row['id']}", json={"tariff_rate": "x"}).status_code == 422
    assert client.patch(f"{API}/tariffs/9999", json={"tariff_rate": "0.1"}).status_code == 404


def test_refresh_only_touches_auto_rows(client, run_db):
    async def seed(db):
        db.add(TariffRate(product_class="cn | mens tee | cotton-rich", tariff_rate=Decimal("0.1"), source="auto"))
        db.add(TariffRate(product_class="vn | mens tee | cotton-rich", tariff_rate=Decimal("0.1"), source="manual"))

    run_db(seed)

    response = client.post(f"{API}/tariffs/refresh")
    assert response.status_code == 200
    assert response.json()["updated"] == 1

    rates = {row["product_class"]: Decimal(row["tariff_rate"]) for row in client.get(f"{API}/tariffs/").json()}
    assert rates["cn | mens tee | cotton-rich"] == Decimal("0.3250")
    assert rates["vn | mens tee | cotton-rich"] == Decimal("0.1000")


def test_sync_registers_keys_from_order_items(client, create_order, item_payload, run_db):
    create_order(items=[item_payload(), item_payload(description="Womens Dress", material="polyester")])

    async def clear(db):
        await db.execute(delete(TariffRate))

    run_db(clear)

    response = client.post(f"{API}/tariffs/sync")
    assert response.status_code == 200
    body = response.json()
    assert body["synced"] == 2
    assert {row["product_class"] for row in body["data"]} == {
        "cn | mens tee | cotton-rich",
        "cn | womens dress | poly-rich",
    }


def test_resolve_endpoint(client):
    response = client.get(
        f"{API}/tariffs/resolve",
        params={"description": "Mens Tee", "material": "100% cotton", "supplier_address": "Hanoi, Vietnam"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["tariff_key"] == "mens tee | cotton-rich"
    assert body["origin_country"] == "VN"
    assert Decimal(body["rate"]) == Decimal("0.2500")
    assert body["matched_key"] is None


def test_scheduler_disabled_by_default(client):
    status = client.get(f"{API}/tariffs/scheduler").json()
    assert status == {"enabled": False, "running": False, "jobs": []}


def test_refresh_job_commits_in_own_session(monkeypatch, session_factory, run_db):
    from app.db import session as db_session
    from app.services.scheduler import refresh_tariffs_job

    async def seed(db):
        db.add(TariffRate(product_class="cn | mens tee | cotton-rich", tariff_rate=Decimal("0.5"), source="auto"))

    run_db(seed)
    monkeypatch.setattr(db_session, "SessionLocal", session_factory)
    asyncio.run(refresh_tariffs_job())

    async def load(db):
        result = await db.execute(select(TariffRate.tariff_rate))
        return result.scalar_one()

    assert run_db(load) == Decimal("0.3250")
