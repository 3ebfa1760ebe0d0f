from datetime import timedelta

from inventory_api.core.db import utcnow


def _order(client, headers, customer, store_id, variant, qty, price=100):
    r = client.post("/orders", json={
        "CustomerID": customer.CustomerID, "StoreID": store_id,
        "Items": [{"VariantID": variant.VariantID, "Quantity": qty, "Price": price}],
    }, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()["data"]


def test_dashboard_stats(client, staff_headers, viewer_headers, stores, make_variant, customer):
    sid = stores[0].StoreID
    v = make_variant("DB-1", stock={sid: 10})
    _order(client, staff_headers, customer, sid, v, 3)

    stats = client.get("/dashboard/stats", headers=viewer_headers).json()["data"]
    assert stats["MonthOrderCount"] == 1
    assert stats["MonthRevenue"] == 300.0
    assert stats["PendingOrders"] == 1
    assert stats["ProductCount"] == 1
    assert stats["CustomerCount"] == 1
    assert stats["InventoryValue"] == 700.0
    assert stats["PendingBackorders"] == 0

    other = client.get("/dashboard/stats", params={"store_id": stores[1].StoreID}, headers=viewer_headers)
    assert other.json()["data"]["MonthOrderCount"] == 0


def test_inventory_time_series(client, staff_headers, stores, make_variant, customer):
    sid = stores[0].StoreID
    v = make_variant("TS-1", stock={sid: 10})
    _order(client, staff_headers, customer, sid, v, 3)
    today = utcnow().date()

    r = client.get("/reports/inventory-time-series", params={
        "product_variant_id": v.VariantID,
        "start_date": (today - timedelta(days=2)).isoformat(),
        "end_date": today.isoformat(),
    }, headers=staff_headers)
    assert r.status_code == 200, r.text
    series = r.json()["data"]
    assert [(p["Quantity"], p["Change"]) for p in series] == [(0, 0), (0, 0), (7, 7)]
    assert series[-1]["Date"] == today.isoformat()
    assert r.json()["meta"]["VariantID"] == v.VariantID


def test_time_series_rejects_reversed_range(client, staff_headers, make_variant):
    v = make_variant("TS-2")
    r = client.get("/reports/inventory-time-series", params={
        "product_variant_id": v.VariantID, "start_date": "2025-02-01", "end_date": "2025-01-01",
    }, headers=staff_headers)
    assert r.status_code == 422

    r = client.get("/reports/inventory-time-series", params={
        "product_variant_id": 9999, "start_date": "2025-01-01", "end_date": "2025-01-02",
    }, headers=staff_headers)
    assert r.status_code == 404


def test_global_search(client, staff_headers, stores, make_variant, make_customer):
    sid = stores[0].StoreID
    v = make_variant("GS-SOFA", stock={sid: 2}, name="布沙發")
    buyer = make_customer("周杰", Phone="0922-000-111")
    order = _order(client, staff_headers, buyer, sid, v, 1)

    r = client.post("/search/global", json={"query": "gs-sofa"}, headers=staff_headers)
    found = r.json()["data"]
    assert [p["Skus"] for p in found["Products"]] == [["GS-SOFA"]]
    assert found["Orders"] == []

    found = client.post("/search/global", json={"query": "周杰"}, headers=staff_headers).json()["data"]
    assert [o["OrderNumber"] for o in found["Orders"]] == [order["OrderNumber"]]
    assert [c["CustomerID"] for c in found["Customers"]] == [buyer.CustomerID]

    r = client.post("/search/global", json={"query": ""}, headers=staff_headers)
    assert r.status_code == 422
