from decimal import Decimal

API = "/api/v1"


def test_create_and_list_containers(client, create_container):
    container = create_container(" MSCU1234567 ")
    assert container["container_no"] == "MSCU1234567"
    assert container["status"] == "PLANNED"

    create_container("TGHU7654321", status="IN_TRANSIT")
    in_transit = client.get(f"{API}/logistics/containers", params={"status": "in_transit"}).json()
    assert [c["container_no"] for c in in_transit] == ["TGHU7654321"]


def test_duplicate_container_no_conflicts(client, create_container):
    create_container()
    response = client.post(f"{API}/logistics/containers", json={"container_no": "MSCU1234567"})
    assert response.status_code == 409


def test_allocation_marks_order_partially_shipped(client, create_order, create_container, fetch_order):
    order = create_order()
    container = create_container()
    item_id = order["items"][0]["id"]

    response = client.post(
        f"{API}/logistics/allocations",
        json={
            "order_id": order["id"],
            "container_id": container["id"],
            "order_item_id": item_id,
            "allocated_qty": 60,
            "allocated_amount": "600.005",
        },
    )
    assert response.status_code == 200, response.text
    allocation = response.json()
    assert Decimal(allocation["allocated_amount"]) == Decimal("600.01")
    assert fetch_order(order["id"])["workflow_status"] == "PARTIALLY_SHIPPED"

    listed = client.get(f"{API}/logistics/allocations", params={"container_id": container["id"]}).json()
    assert [a["id"] for a in listed] == [allocation["id"]]

    client.delete(f"{API}/logistics/allocations/{allocation['id']}")
    assert fetch_order(order["id"])["workflow_status"] == "PO_UPLOADED"


def test_allocation_item_must_belong_to_order(client, create_order):
    first = create_order()
    second = create_order(vpo_number="VPO-1002")

    response = client.post(
        f"{API}/logistics/allocations",
        json={"order_id": first["id"], "order_item_id": second["items"][0]["id"]},
    )
    assert response.status_code == 422
    assert response.json()["detail"][0]["loc"] == ["order_item_id"]


def test_shipping_doc_marks_order_sent(client, create_order, fetch_order):
    order = create_order()
    response = client.post(f"{API}/logistics/shipping-docs", json={"order_id": order["id"]})
    assert response.status_code == 200, response.text
    doc = response.json()
    assert doc["doc_no"].startswith("SD")
    assert doc["status"] == "DRAFT"
    assert doc["payload"] == {
        "vpo_number": "VPO-1001",
        "ship_to": "Acme DC, Los Angeles",
        "supplier_name": "Shanghai Garment Co",
    }
    assert fetch_order(order["id"])["workflow_status"] == "SHIPPING_DOC_SENT"

    updated = client.patch(f"{API}/logistics/shipping-docs/{doc['id']}", json={"status": "ISSUED"})
    assert updated.json()["status"] == "ISSUED"

    client.delete(f"{API}/logistics/shipping-docs/{doc['id']}")
    assert fetch_order(order["id"])["workflow_status"] == "PO_UPLOADED"


def test_container_update_recomputes_linked_orders(client, create_order, create_container):
    order = create_order()
    container = create_container()
    client.post(f"{API}/logistics/allocations", json={"order_id": order["id"], "container_id": container["id"]})

    response = client.patch(
        f"{API}/logistics/containers/{container['id']}", json={"vessel_name": "Ever Given", "status": "IN_TRANSIT"}
    )
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["container"]["vessel_name"] == "Ever Given"
    assert body["container"]["status"] == "IN_TRANSIT"
    assert body["recomputed_order_ids"] == [order["id"]]


def test_container_delete_clears_references(client, create_order, create_container, trigger, fetch_order):
    order = create_order()
    container = create_container()
    client.post(f"{API}/logistics/allocations", json={"order_id": order["id"], "container_id": container["id"]})
    result = trigger(order["id"], "START_TRANSIT")
    assert result["container_id"] == container["id"]

    response = client.delete(f"{API}/logistics/containers/{container['id']}")
    assert response.status_code == 200, response.text
    assert response.json()["recomputed_order_ids"] == [order["id"]]

    assert client.get(f"{API}/logistics/containers/{container['id']}").status_code == 404
    allocations = client.get(f"{API}/logistics/allocations", params={"order_id": order["id"]}).json()
    assert allocations[0]["container_id"] is None
    docs = client.get(f"{API}/logistics/shipping-docs", params={"order_id": order["id"]}).json()
    assert docs[0]["container_id"] is None
    invoices = client.get(f"{API}/finance/commercial-invoices", params={"order_id": order["id"]}).json()
    assert invoices[0]["container_id"] is None
    # 单据仍在，状态不变
    assert fetch_order(order["id"])["workflow_status"] == "IN_TRANSIT"


def test_container_delete_keeps_logistics_bill(client, create_container):
    container = create_container()
    bill = client.post(
        f"{API}/finance/logistics-bills", json={"container_id": container["id"], "amount": "99"}
    ).json()

    assert client.delete(f"{API}/logistics/containers/{container['id']}").status_code == 200
    bills = client.get(f"{API}/finance/logistics-bills").json()
    assert [b["id"] for b in bills] == [bill["id"]]
    assert bills[0]["container_id"] is None


def test_missing_container_returns_404(client):
    assert client.get(f"{API}/logistics/containers/9999").status_code == 404
    assert client.patch(f"{API}/logistics/containers/9999", json={"vessel_name": "X"}).status_code == 404
    assert client.delete(f"{API}/logistics/containers/9999").status_code == 404
