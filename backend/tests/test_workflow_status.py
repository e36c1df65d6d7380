import asyncio
import itertools
from datetime import datetime

import pytest
from sqlalchemy.orm.exc import StaleDataError

from app.core.constants import WorkflowStatus
from app.models.order import Order
from app.services.workflow_status import (
    OrderDocumentSnapshot, derive_workflow_status, recompute_order_workflow_status,
)

NOW = datetime(2024, 6, 1, 12, 0, 0)
DELIVERED = datetime(2024, 5, 30, 9, 0, 0)


def expected_status(has_ship, has_alloc, has_inv, has_vb, has_lb, delivered, all_paid):
    has_finance = has_inv or has_vb or has_lb
    if delivered:
        if has_finance and all_paid:
            return WorkflowStatus.CLOSED
        if has_finance:
            return WorkflowStatus.AR_AP_OPEN
        if has_ship or has_alloc:
            return WorkflowStatus.IN_TRANSIT
        return WorkflowStatus.PO_UPLOADED
    if has_finance:
        return WorkflowStatus.IN_TRANSIT
    if has_ship:
        return WorkflowStatus.SHIPPING_DOC_SENT
    if has_alloc:
        return WorkflowStatus.PARTIALLY_SHIPPED
    return WorkflowStatus.PO_UPLOADED


def build_snapshot(has_ship, has_alloc, has_inv, has_vb, has_lb, delivered, all_paid):
    def statuses(present, open_one):
        if not present:
            return []
        return ["OPEN" if open_one else "PAID"]

    # all_paid=False 时只让第一张存在的单据保持未付
    kinds = [has_inv, has_vb, has_lb]
    first_present = kinds.index(True) if any(kinds) else None
    return OrderDocumentSnapshot(
        delivered_at=DELIVERED if delivered else None,
        shipping_doc_count=1 if has_ship else 0,
        allocation_count=2 if has_alloc else 0,
        invoice_statuses=statuses(has_inv, not all_paid and first_present == 0),
        vendor_bill_statuses=statuses(has_vb, not all_paid and first_present == 1),
        logistics_bill_statuses=statuses(has_lb, not all_paid and first_present == 2),
    )


@pytest.mark.parametrize("flags", list(itertools.product([False, True], repeat=7)))
def test_derivation_table_exhaustive(flags):
    snapshot = build_snapshot(*flags)
    status, closed_at = derive_workflow_status(snapshot, NOW)

    assert status == expected_status(*flags)
    if status == WorkflowStatus.CLOSED:
        assert closed_at == NOW
    else:
        assert closed_at is None


def test_closed_at_is_preserved_once_set():
    first = datetime(2024, 5, 31)
    snapshot = OrderDocumentSnapshot(
        delivered_at=DELIVERED, closed_at=first, invoice_statuses=["PAID"], vendor_bill_statuses=["PAID"],
    )
    assert derive_workflow_status(snapshot, NOW) == (WorkflowStatus.CLOSED, first)


def test_closed_at_cleared_when_leaving_closed():
    snapshot = OrderDocumentSnapshot(
        delivered_at=DELIVERED, closed_at=datetime(2024, 5, 31),
        invoice_statuses=["PAID"], vendor_bill_statuses=["PARTIAL"],
    )
    assert derive_workflow_status(snapshot, NOW) == (WorkflowStatus.AR_AP_OPEN, None)


def test_status_values_are_normalized():
    snapshot = OrderDocumentSnapshot(delivered_at=DELIVERED, invoice_statuses=[" paid "], logistics_bill_statuses=["Paid"])
    status, _ = derive_workflow_status(snapshot, NOW)
    assert status == WorkflowStatus.CLOSED


def test_no_finance_documents_is_never_closed():
    snapshot = OrderDocumentSnapshot(delivered_at=DELIVERED)
    assert derive_workflow_status(snapshot, NOW)[0] == WorkflowStatus.PO_UPLOADED


def test_recompute_missing_order_returns_none(run_db):
    async def recompute(db):
        return await recompute_order_workflow_status(db, 424242)

    assert run_db(recompute) is None


def test_recompute_is_idempotent(create_order, trigger, pay, run_db):
    order = create_order()
    result = trigger(order["id"], "START_TRANSIT")
    pay("CUSTOMER_INVOICE", result["documents"]["commercial_invoice"]["id"], "1000")
    trigger(order["id"], "MARK_DELIVERED")
    pay("VENDOR_BILL", result["documents"]["vendor_bill"]["id"], "600")

    async def recompute(db):
        recomputed = await recompute_order_workflow_status(db, order["id"])
        return recomputed.workflow_status, recomputed.closed_at, recomputed.version

    first = run_db(recompute)
    second = run_db(recompute)
    assert first == second
    assert first[0] == "CLOSED"
    assert first[1] is not None


def test_concurrent_order_writes_raise_stale_data(create_order, session_factory):
    order = create_order()

    async def race():
        async with session_factory() as first, session_factory() as second:
            first_copy = await first.get(Order, order["id"])
            second_copy = await second.get(Order, order["id"])

            first_copy.customer_name = "First writer"
            await first.commit()

            second_copy.customer_name = "Second writer"
            with pytest.raises(StaleDataError):
                await second.commit()

    asyncio.run(race())


def test_stale_order_version_maps_to_409(client, create_order, monkeypatch):
    from app.api.api_v1.endpoints import workflow as workflow_endpoints

    async def stale_recompute(db, order_id):
        raise StaleDataError("UPDATE statement on table 'orders' expected to update 1 row(s); 0 were matched.")

    monkeypatch.setattr(workflow_endpoints, "recompute_order_workflow_status", stale_recompute)
    order = create_order()

    response = client.post(f"/api/v1/workflow/orders/{order['id']}/recompute")
    assert response.status_code == 409
    assert "detail" in response.json()
