from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest
from fastapi import HTTPException

from inventory_api.services.backorder_service import (
    allocate, allocation_reason, deadline_bonus, fifo_score, score_item, smart_priority_score, summary_status,
)
from inventory_api.services.inventory_service import add_stock

NOW = datetime(2025, 6, 15, 12, 0, 0)


def _order(days_ago=0, level="normal", vip=False, priority="normal", due_in=None, source=None, number="202506-0001"):
    return SimpleNamespace(
        OrderNumber=number,
        CreatedAt=NOW - timedelta(days=days_ago),
        customer=SimpleNamespace(PriorityLevel=level, IsPriorityCustomer=vip),
        FulfillmentPriority=priority,
        ExpectedDeliveryDate=(NOW.date() + timedelta(days=due_in)) if due_in is not None else None,
        OrderSource=source,
    )


def _item(item_id, remaining, order, deadline=None):
    return SimpleNamespace(
        ItemID=item_id, OrderID=item_id, RemainingQuantity=remaining, order=order, PriorityDeadline=deadline,
    )


# ---- Skor ----
def test_smart_priority_components():
    assert smart_priority_score(_order(), NOW) == 0
    assert smart_priority_score(_order(level="vip", vip=True), NOW) == 130
    assert smart_priority_score(_order(priority="urgent", days_ago=5), NOW) == 90
    assert smart_priority_score(_order(source="vip_channel"), NOW) == 25


def test_deadline_points():
    assert smart_priority_score(_order(due_in=0), NOW) == 50
    assert smart_priority_score(_order(due_in=4), NOW) == 25
    assert smart_priority_score(_order(due_in=7), NOW) == 6
    assert smart_priority_score(_order(due_in=8), NOW) == 0
    assert smart_priority_score(_order(due_in=-1), NOW) == 0


def test_scores_never_negative():
    assert smart_priority_score(_order(level="low", priority="low"), NOW) == 0


def test_fifo_ranks_older_orders_higher():
    assert fifo_score(_order(days_ago=3), NOW) == 1003
    assert fifo_score(_order(), NOW) == 1000


# ---- Dağıtım ----
def test_allocate_prefers_high_score():
    normal = _item(1, 3, _order(days_ago=10, number="A"))
    vip = _item(2, 2, _order(level="vip", number="B"))

    result = allocate([normal, vip], 4, strategy="smart_priority", now=NOW)
    assert [(a["OrderItemID"], a["Allocated"]) for a in result["Allocations"]] == [(2, 2), (1, 2)]
    assert result["TotalAllocated"] == 4
    assert result["Remaining"] == 0
    assert result["Efficiency"] == 100.0


def test_allocate_fifo_prefers_oldest():
    new = _item(1, 2, _order(days_ago=1, level="vip"))
    old = _item(2, 2, _order(days_ago=9))

    result = allocate([new, old], 3, strategy="fifo", now=NOW)
    assert [(a["OrderItemID"], a["Allocated"]) for a in result["Allocations"]] == [(2, 2), (1, 1)]


def test_allocate_leftover_and_ties():
    first = _item(1, 1, _order(days_ago=2))
    second = _item(2, 1, _order(days_ago=2))

    result = allocate([second, first], 5, now=NOW)
    assert [a["OrderItemID"] for a in result["Allocations"]] == [1, 2]
    assert result["Remaining"] == 3
    assert result["Efficiency"] == 40.0


def test_allocate_rejects_unknown_strategy():
    with pytest.raises(HTTPException) as exc:
        allocate([], 1, strategy="random", now=NOW)
    assert exc.value.status_code == 422


def test_item_deadline_bonus_within_two_days():
    order = _order()
    assert deadline_bonus(_item(1, 1, order, NOW + timedelta(hours=47)), NOW) == 40
    assert deadline_bonus(_item(1, 1, order, NOW + timedelta(hours=49)), NOW) == 0
    assert deadline_bonus(_item(1, 1, order, NOW - timedelta(hours=1)), NOW) == 0
    assert deadline_bonus(_item(1, 1, order), NOW) == 0

    assert score_item(_item(1, 1, order, NOW + timedelta(hours=5)), now=NOW) == 40
    # fifo terminle değişmez
    assert score_item(_item(1, 1, order, NOW + timedelta(hours=5)), "fifo", NOW) == 1000


def test_allocation_reasons():
    assert allocation_reason(_item(1, 1, _order(level="vip", priority="urgent")), NOW) == "customer_priority"
    assert allocation_reason(_item(1, 1, _order(priority="urgent", due_in=1)), NOW) == "order_priority"
    assert allocation_reason(_item(1, 1, _order(due_in=3)), NOW) == "deadline"
    assert allocation_reason(_item(1, 1, _order(), NOW + timedelta(hours=10)), NOW) == "deadline"
    assert allocation_reason(_item(1, 1, _order(due_in=5)), NOW) == "fifo"


def test_allocate_reports_fulfillment_per_row():
    rush = _item(1, 2, _order(number="A"), NOW + timedelta(hours=12))
    plain = _item(2, 3, _order(days_ago=3, number="B"))
    late = _item(3, 4, _order(days_ago=1, number="C"))

    result = allocate([plain, late, rush], 4, now=NOW)
    rows = [(a["OrderItemID"], a["Allocated"], a["FulfillmentStatus"], a["AllocationReason"])
            for a in result["Allocations"]]
    assert rows == [
        (1, 2, "fully_fulfilled", "deadline"),
        (2, 2, "partially_fulfilled", "fifo"),
    ]
    assert (result["FullyFulfilledCount"], result["PartiallyFulfilledCount"]) == (1, 1)


def test_summary_status_of_order_lines():
    assert summary_status(["purchase_pending_purchase"]) == "pending_purchase"
    assert summary_status(["purchase_pending", "purchase_confirmed"]) == "purchase_in_progress"
    assert summary_status(["transfer_pending", "purchase_pending_purchase"]) == "transfer_in_progress"
    assert summary_status(["transfer_in_transit", "purchase_in_transit"]) == "mixed"


# ---- API ----
@pytest.fixture
def backorder(client, staff_headers, stores, make_variant, customer):
    sid = stores[0].StoreID
    v = make_variant("BO-1", cost="250")
    order = client.post("/orders", json={
        "CustomerID": customer.CustomerID, "StoreID": sid, "ForceCreateDespiteStock": True,
        "Items": [{"VariantID": v.VariantID, "Quantity": 4, "Price": 900}],
    }, headers=staff_headers).json()["data"]
    return order, v, sid


def test_list_stats_and_summary(client, viewer_headers, backorder):
    order, v, _ = backorder

    rows = client.get("/backorders", headers=viewer_headers).json()["data"]
    assert len(rows) == 1
    assert rows[0]["RemainingQuantity"] == 4
    assert rows[0]["CustomerName"] == "王小明"
    assert (rows[0]["PurchaseStatus"], rows[0]["TransferStatus"]) == ("pending_purchase", None)
    assert rows[0]["IntegratedStatus"] == "purchase_pending_purchase"

    grouped = client.get("/backorders", params={"group_by_variant": True}, headers=viewer_headers).json()["data"]
    assert grouped[0]["TotalRemaining"] == 4

    stats = client.get("/backorders/stats", headers=viewer_headers).json()["data"]
    assert stats["ItemCount"] == 1
    assert stats["TotalQuantity"] == 4
    assert stats["UnboundItemCount"] == 1

    summary = client.get("/backorders/summary", headers=viewer_headers).json()["data"]
    assert summary[0]["VariantID"] == v.VariantID
    assert summary[0]["OrderCount"] == 1
    assert summary[0]["SuggestedUnitCost"] == 250.0


def test_convert_creates_purchase_per_store(client, staff_headers, backorder):
    order, v, sid = backorder
    item_id = order["Items"][0]["ItemID"]

    r = client.post("/backorders/convert", json={"ItemIDs": [item_id]}, headers=staff_headers)
    assert r.status_code == 201, r.text
    purchases = r.json()["data"]
    assert len(purchases) == 1
    p = purchases[0]
    assert p["StoreID"] == sid
    assert p["Items"][0]["Quantity"] == 4
    assert p["Items"][0]["UnitPrice"] == 250.0

    # Bağlanmış kalem tekrar dönüştürülemez
    r = client.post("/backorders/convert", json={"ItemIDs": [item_id]}, headers=staff_headers)
    assert r.status_code == 409


def test_convert_rejects_unknown_items(client, staff_headers, backorder):
    r = client.post("/backorders/convert", json={"ItemIDs": [4242]}, headers=staff_headers)
    assert r.status_code == 422


def test_transfer_status_updates_item(client, staff_headers, backorder, db, stock_of):
    order, v, sid = backorder
    item_id = order["Items"][0]["ItemID"]

    r = client.post("/backorders/update-transfer-status",
                    json={"OrderItemID": item_id, "Status": "in_transit"}, headers=staff_headers)
    assert r.json()["data"]["Status"] == "processing"

    # Mağazada stok yokken karşılanamaz
    r = client.post("/backorders/update-transfer-status",
                    json={"OrderItemID": item_id, "Status": "completed", "Quantity": 1}, headers=staff_headers)
    assert r.status_code == 409

    add_stock(db, variant_id=v.VariantID, store_id=sid, quantity=5, notes="transfer girişi")
    db.commit()
    r = client.post("/backorders/update-transfer-status",
                    json={"OrderItemID": item_id, "Status": "completed", "Quantity": 1}, headers=staff_headers)
    data = r.json()["data"]
    assert data["FulfilledQuantity"] == 1
    assert data["IsFulfilled"] is False

    r = client.post("/backorders/update-transfer-status",
                    json={"OrderItemID": item_id, "Status": "completed"}, headers=staff_headers)
    data = r.json()["data"]
    assert data["IsFulfilled"] is True
    assert data["Status"] == "completed"
    assert stock_of(v.VariantID, sid) == 1
    assert client.get("/backorders", headers=staff_headers).json()["data"] == []


def test_allocation_preview_does_not_write(client, viewer_headers, backorder):
    order, v, _ = backorder
    r = client.post("/backorders/allocation-preview",
                    json={"VariantID": v.VariantID, "Quantity": 10, "Strategy": "fifo"}, headers=viewer_headers)
    data = r.json()["data"]
    assert data["TotalAllocated"] == 4
    assert data["Remaining"] == 6
    assert data["Allocations"][0]["OrderNumber"] == order["OrderNumber"]

    rows = client.get("/backorders", headers=viewer_headers).json()["data"]
    assert rows[0]["RemainingQuantity"] == 4


def test_rows_carry_purchase_and_transfer_status(client, staff_headers, stores, make_variant, customer, backorder):
    order, v, sid = backorder
    other = stores[1].StoreID
    w = make_variant("BO-2", stock={other: 3})
    moved = client.post("/orders", json={
        "CustomerID": customer.CustomerID, "StoreID": sid,
        "Items": [{"VariantID": w.VariantID, "Quantity": 2, "Price": 400, "StockDecision": "transfer"}],
    }, headers=staff_headers).json()["data"]

    item_id = order["Items"][0]["ItemID"]
    p = client.post("/backorders/convert", json={"ItemIDs": [item_id]}, headers=staff_headers).json()["data"][0]
    client.patch(f"/purchases/{p['PurchaseID']}/status", json={"Status": "confirmed"}, headers=staff_headers)

    rows = {r["OrderItemID"]: r for r in client.get("/backorders", headers=staff_headers).json()["data"]}
    bought = rows[item_id]
    assert (bought["PurchaseStatus"], bought["IntegratedStatus"]) == ("confirmed", "purchase_confirmed")
    assert bought["PurchaseOrderNumber"] == p["OrderNumber"]

    shipped = rows[moved["Items"][0]["ItemID"]]
    assert (shipped["TransferStatus"], shipped["IntegratedStatus"]) == ("pending", "transfer_pending")
    assert shipped["PurchaseStatus"] == "pending_purchase"


def test_group_by_order_summarises_lines(client, staff_headers, stores, make_variant, customer):
    a, b = stores[0].StoreID, stores[1].StoreID
    v = make_variant("BO-3", stock={b: 5})
    w = make_variant("BO-4")
    order = client.post("/orders", json={
        "CustomerID": customer.CustomerID, "StoreID": a, "ForceCreateDespiteStock": True,
        "Items": [
            {"VariantID": v.VariantID, "Quantity": 2, "Price": 400, "StockDecision": "transfer"},
            {"VariantID": w.VariantID, "Quantity": 1, "Price": 300},
        ],
    }, headers=staff_headers).json()["data"]

    groups = client.get("/backorders", params={"group_by": "order"}, headers=staff_headers).json()["data"]
    assert len(groups) == 1
    g = groups[0]
    assert (g["OrderID"], g["TotalItems"], g["TotalQuantity"], g["TotalRemaining"]) == (order["OrderID"], 2, 3, 3)
    assert g["CustomerName"] == "王小明"
    assert g["SummaryStatus"] == "transfer_in_progress"

    r = client.get("/backorders", params={"group_by": "store"}, headers=staff_headers)
    assert r.status_code == 422
