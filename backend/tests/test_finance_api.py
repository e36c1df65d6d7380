from datetime import datetime
from decimal import Decimal

import pytest

from app.core.constants import FinanceStatus
from app.services.finance_service import derive_finance_status, logistics_due_anchor

API = "/api/v1"


@pytest.mark.parametrize(
    "amount,paid,expected",
    [
        ("100", "0", FinanceStatus.OPEN),
        ("100", "0.01", FinanceStatus.PARTIAL),
        ("100", "99.99", FinanceStatus.PARTIAL),
        ("100", "100", FinanceStatus.PAID),
        ("100", "120", FinanceStatus.PAID),
        ("0", "0", FinanceStatus.PAID),
    ],
)
def test_derive_finance_status(amount, paid, expected):
    assert derive_finance_status(Decimal(amount), Decimal(paid)) == expected


def test_logistics_due_anchor_precedence():
    class Stub:
        def __init__(self, **kwargs):
            self.__dict__.update(kwargs)

    issued = datetime(2024, 6, 1)
    arrived = datetime(2024, 5, 20)
    delivered = datetime(2024, 5, 25)

    assert logistics_due_anchor(Stub(arrival_at_warehouse=arrived), Stub(delivered_at=delivered), issued) == arrived
    assert logistics_due_anchor(Stub(arrival_at_warehouse=None), Stub(delivered_at=delivered), issued) == delivered
    assert logistics_due_anchor(None, None, issued) == issued


@pytest.fixture
def invoice(client, create_order):
    order = create_order()
    response = client.post(f"{API}/finance/commercial-invoices", json={"order_id": order["id"]})
    assert response.status_code == 200, response.text
    return response.json()


def test_invoice_defaults_to_order_total(invoice):
    assert invoice["invoice_no"].startswith("CI")
    assert invoice["document_no"] == invoice["invoice_no"]
    assert Decimal(invoice["amount"]) == Decimal("1000.00")
    assert invoice["status"] == "OPEN"
    assert invoice["currency"] == "USD"
    issue = datetime.fromisoformat(invoice["issue_date"])
    due = datetime.fromisoformat(invoice["due_date"])
    assert (due - issue).days == 30


def test_payments_drive_invoice_status(client, invoice, pay):
    first = pay("CUSTOMER_INVOICE", invoice["id"], "400")
    assert first["direction"] == "IN"
    assert first["payment_no"].startswith("REC")
    assert first["target_status"] == "PARTIAL"

    second = pay("CUSTOMER_INVOICE", invoice["id"], "600")
    assert second["target_status"] == "PAID"

    invoices = client.get(f"{API}/finance/commercial-invoices", params={"order_id": invoice["order_id"]}).json()
    assert Decimal(invoices[0]["paid_amount"]) == Decimal("1000.00")
    assert Decimal(invoices[0]["outstanding_amount"]) == Decimal("0.00")

    response = client.delete(f"{API}/finance/payments/{second['id']}")
    assert response.status_code == 200, response.text
    invoices = client.get(f"{API}/finance/commercial-invoices", params={"order_id": invoice["order_id"]}).json()
    assert invoices[0]["status"] == "PARTIAL"

    client.delete(f"{API}/finance/payments/{first['id']}")
    invoices = client.get(f"{API}/finance/commercial-invoices", params={"order_id": invoice["order_id"]}).json()
    assert invoices[0]["status"] == "OPEN"


def test_overpayment_is_accepted(invoice, pay):
    payment = pay("CUSTOMER_INVOICE", invoice["id"], "1500")
    assert payment["target_status"] == "PAID"


def test_update_payment_amount_rederives_status(client, invoice, pay):
    payment = pay("CUSTOMER_INVOICE", invoice["id"], "1000")
    assert payment["target_status"] == "PAID"

    response = client.patch(f"{API}/finance/payments/{payment['id']}", json={"amount": "250"})
    assert response.status_code == 200, response.text
    assert response.json()["target_status"] == "PARTIAL"
    assert Decimal(response.json()["amount"]) == Decimal("250.00")


def test_invoice_amount_update_rederives_status(client, invoice, pay):
    pay("CUSTOMER_INVOICE", invoice["id"], "800")
    response = client.patch(f"{API}/finance/commercial-invoices/{invoice['id']}", json={"amount": "800"})
    assert response.status_code == 200, response.text
    assert response.json()["status"] == "PAID"

    response = client.patch(f"{API}/finance/commercial-invoices/{invoice['id']}", json={"amount": "900"})
    assert response.json()["status"] == "PARTIAL"


def test_document_with_payments_cannot_be_deleted(client, invoice, pay):
    payment = pay("CUSTOMER_INVOICE", invoice["id"], "100")

    response = client.delete(f"{API}/finance/commercial-invoices/{invoice['id']}")
    assert response.status_code == 409

    invoices = client.get(f"{API}/finance/commercial-invoices", params={"order_id": invoice["order_id"]}).json()
    assert [i["id"] for i in invoices] == [invoice["id"]]
    assert invoices[0]["status"] == "PARTIAL"
    assert Decimal(invoices[0]["paid_amount"]) == Decimal("100.00")
    payments = client.get(
        f"{API}/finance/payments", params={"target_type": "CUSTOMER_INVOICE", "target_id": invoice["id"]}
    ).json()
    assert [p["id"] for p in payments] == [payment["id"]]
    assert Decimal(payments[0]["amount"]) == Decimal("100.00")

    client.delete(f"{API}/finance/payments/{payment['id']}")
    response = client.delete(f"{API}/finance/commercial-invoices/{invoice['id']}")
    assert response.status_code == 200, response.text
    assert client.get(f"{API}/finance/commercial-invoices").json() == []


def test_payment_direction_must_match_target(client, invoice):
    response = client.post(
        f"{API}/finance/payments",
        json={"target_type": "CUSTOMER_INVOICE", "target_id": invoice["id"], "amount": "10", "direction": "OUT"},
    )
    assert response.status_code == 422
    assert response.json()["detail"][0]["loc"] == ["direction"]


@pytest.mark.parametrize("amount", ["0", "-5"])
def test_payment_amount_must_be_positive(client, invoice, amount):
    response = client.post(
        f"{API}/finance/payments",
        json={"target_type": "CUSTOMER_INVOICE", "target_id": invoice["id"], "amount": amount},
    )
    assert response.status_code == 422


def test_payment_for_missing_target(client):
    response = client.post(
        f"{API}/finance/payments", json={"target_type": "VENDOR_BILL", "target_id": 9999, "amount": "10"}
    )
    assert response.status_code == 404


def test_duplicate_invoice_no_conflicts(client, create_order):
    order = create_order()
    payload = {"order_id": order["id"], "invoice_no": "CI-MANUAL-1"}
    assert client.post(f"{API}/finance/commercial-invoices", json=payload).status_code == 200
    assert client.post(f"{API}/finance/commercial-invoices", json=payload).status_code == 409


def test_vendor_bill_amount_defaults_from_items(client, create_order, item_payload, pay):
    order = create_order(items=[item_payload(), item_payload(quantity=50, vendor_unit_price="4.5")])
    response = client.post(f"{API}/finance/vendor-bills", json={"order_id": order["id"], "amount": "0"})
    assert response.status_code == 200, response.text
    bill = response.json()
    assert Decimal(bill["amount"]) == Decimal("825.00")
    assert bill["bill_no"].startswith("VB")

    payment = pay("VENDOR_BILL", bill["id"], "825")
    assert payment["direction"] == "OUT"
    assert payment["payment_no"].startswith("PAY")
    assert payment["target_status"] == "PAID"


def test_zero_amount_invoice_is_paid(client, create_order):
    order = create_order()
    response = client.post(f"{API}/finance/commercial-invoices", json={"order_id": order["id"], "amount": "0"})
    assert response.status_code == 200, response.text
    assert response.json()["status"] == "PAID"


def test_logistics_bill_rules(client, create_order, create_container, fetch_order):
    order = create_order()
    container = create_container(arrival_at_warehouse="2024-05-20T00:00:00")

    missing_amount = client.post(f"{API}/finance/logistics-bills", json={"container_id": container["id"]})
    assert missing_amount.status_code == 422
    zero_amount = client.post(
        f"{API}/finance/logistics-bills", json={"container_id": container["id"], "amount": "0"}
    )
    assert zero_amount.status_code == 422
    no_container = client.post(f"{API}/finance/logistics-bills", json={"order_id": order["id"], "amount": "50"})
    assert no_container.status_code == 422

    response = client.post(
        f"{API}/finance/logistics-bills",
        json={"container_id": container["id"], "order_id": order["id"], "amount": "350"},
    )
    assert response.status_code == 200, response.text
    bill = response.json()
    assert bill["bill_no"].startswith("LB")
    assert bill["provider"] == "3PL"
    # 到仓日 + 15 天
    assert bill["due_date"].startswith("2024-06-04")
    assert fetch_order(order["id"])["workflow_status"] == "IN_TRANSIT"

    detach = client.patch(f"{API}/finance/logistics-bills/{bill['id']}", json={"container_id": None})
    assert detach.status_code == 422


def test_logistics_bill_without_order(client, create_container):
    container = create_container()
    response = client.post(
        f"{API}/finance/logistics-bills", json={"container_id": container["id"], "amount": "120.456"}
    )
    assert response.status_code == 200, response.text
    bill = response.json()
    assert bill["order_id"] is None
    assert Decimal(bill["amount"]) == Decimal("120.46")


def test_refresh_status(client, invoice, pay):
    pay("CUSTOMER_INVOICE", invoice["id"], "1000")
    response = client.post(
        f"{API}/finance/refresh-status", json={"target_type": "CUSTOMER_INVOICE", "target_id": invoice["id"]}
    )
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["status"] == "PAID"
    assert Decimal(body["paid_amount"]) == Decimal("1000.00")
    assert body["order_id"] == invoice["order_id"]


def test_list_payments_by_order(client, create_order, trigger, pay):
    order = create_order()
    result = trigger(order["id"], "START_TRANSIT")
    pay("CUSTOMER_INVOICE", result["documents"]["commercial_invoice"]["id"], "100")
    pay("VENDOR_BILL", result["documents"]["vendor_bill"]["id"], "50")

    payments = client.get(f"{API}/finance/payments", params={"order_id": order["id"]}).json()
    assert {p["target_type"] for p in payments} == {"CUSTOMER_INVOICE", "VENDOR_BILL"}
    assert all(p["target_no"] for p in payments)

    only_bills = client.get(f"{API}/finance/payments", params={"target_type": "VENDOR_BILL"}).json()
    assert [Decimal(p["amount"]) for p in only_bills] == [Decimal("50.00")]


def test_order_finance_summary(client, create_order, create_container, trigger, pay):
    order = create_order()
    container = create_container()
    result = trigger(order["id"], "START_TRANSIT")
    client.post(
        f"{API}/finance/logistics-bills",
        json={"container_id": container["id"], "order_id": order["id"], "amount": "200"},
    )
    pay("CUSTOMER_INVOICE", result["documents"]["commercial_invoice"]["id"], "400")
    pay("VENDOR_BILL", result["documents"]["vendor_bill"]["id"], "600")

    response = client.get(f"{API}/orders/{order['id']}/finance-summary")
    assert response.status_code == 200, response.text
    summary = response.json()
    assert Decimal(summary["receivable_total"]) == Decimal("1000.00")
    assert Decimal(summary["receivable_outstanding"]) == Decimal("600.00")
    assert Decimal(summary["payable_total"]) == Decimal("800.00")
    assert Decimal(summary["payable_paid"]) == Decimal("600.00")
    assert Decimal(summary["payable_outstanding"]) == Decimal("200.00")
    assert len(summary["payables"]) == 2
