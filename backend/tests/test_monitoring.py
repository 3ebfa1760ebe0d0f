from inventory_api.services.monitoring_service import health_score, find_anomalies, trend_direction


def test_health_score_bands():
    full = health_score(10, 5, 10)
    assert (full["Score"], full["Status"]) == (95.0, "healthy")
    assert full["Recommendations"] == []

    assert health_score(5, 5, 5)["Status"] == "warning"

    low = health_score(2, 5, 3)
    assert low["Score"] == 42.0
    assert low["Status"] == "attention"
    assert low["Factors"]["StockLevel"] == 8.0

    empty = health_score(0, 5, 0)
    assert (empty["Score"], empty["Status"]) == (25.0, "critical")
    assert len(empty["Recommendations"]) == 3


def test_health_score_zero_threshold():
    assert health_score(3, 0, 10)["Factors"]["StockLevel"] == 40.0


def test_find_anomalies():
    changes = [(1, 1), (2, 1), (3, 1), (4, 1), (5, 1), (6, 50)]
    found = find_anomalies(changes)
    assert [a["TxnID"] for a in found] == [6]
    assert found[0]["QuantityChange"] == 50

    assert find_anomalies(changes[:4]) == []
    assert find_anomalies([(i, 2) for i in range(10)]) == []


def test_trend_direction():
    assert trend_direction([1, 1, 3, 3]) == "increasing"
    assert trend_direction([-5, -5, -1, -1]) == "decreasing"
    assert trend_direction([2, 2, 2, 2]) == "stable"
    assert trend_direction([7]) == "stable"


def _inventory_id(client, headers, sku):
    rows = client.get("/inventory", params={"product_name": sku}, headers=headers).json()["data"]
    return rows[0]["InventoryID"]


def test_health_trend_and_reorder_endpoints(client, staff_headers, stores, make_variant, customer):
    sid = stores[0].StoreID
    v = make_variant("MON-1", stock={sid: 20})
    for _ in range(2):
        client.post("/orders", json={
            "CustomerID": customer.CustomerID, "StoreID": sid,
            "Items": [{"VariantID": v.VariantID, "Quantity": 3, "Price": 100}],
        }, headers=staff_headers)
    inv_id = _inventory_id(client, staff_headers, "MON-1")

    health = client.get(f"/inventory/{inv_id}/health", headers=staff_headers).json()["data"]
    assert health["Quantity"] == 14
    assert health["Score"] == 74.0
    assert health["Status"] == "warning"

    trend = client.get(f"/inventory/{inv_id}/trend", headers=staff_headers).json()["data"]
    assert trend["TotalConsumption"] == 6
    assert trend["AverageDailyConsumption"] == 0.2
    assert trend["DaysUntilStockout"] == 70
    assert trend["TrendDirection"] == "stable"

    reorder = client.get(f"/inventory/{inv_id}/reorder", headers=staff_headers).json()["data"]
    assert reorder["SuggestedQuantity"] == 10
    assert reorder["ReorderPoint"] == 2
    assert reorder["SafetyStock"] == 1

    r = client.get(f"/inventory/{inv_id}/anomalies", headers=staff_headers)
    assert r.json()["data"] == []
    assert client.get("/inventory/9999/health", headers=staff_headers).status_code == 404


def test_idle_stock_has_no_stockout_date(client, staff_headers, stores, make_variant):
    sid = stores[0].StoreID
    make_variant("MON-2", stock={sid: 5})
    inv_id = _inventory_id(client, staff_headers, "MON-2")

    trend = client.get(f"/inventory/{inv_id}/trend", headers=staff_headers).json()["data"]
    assert trend["AverageDailyConsumption"] == 0
    assert trend["DaysUntilStockout"] is None
    assert trend["RecommendedReorderDate"] is None

    reorder = client.get(f"/inventory/{inv_id}/reorder", headers=staff_headers).json()["data"]
    assert reorder["SuggestedQuantity"] == 10


def test_low_stock_alerts_and_thresholds(client, staff_headers, stores, make_variant):
    a, b = stores[0].StoreID, stores[1].StoreID
    low = make_variant("AL-1", stock={a: 3, b: 10})
    empty = make_variant("AL-2", stock={a: 1})
    client.post("/inventory/adjust", json={"VariantID": empty.VariantID, "StoreID": a, "Action": "reduce", "Quantity": 1},
                headers=staff_headers)

    rows = client.get("/inventory/alerts/low-stock", headers=staff_headers).json()["data"]
    assert [(r["Sku"], r["StoreID"]) for r in rows] == [("AL-1", a)]

    summary = client.get("/inventory/alerts/summary", headers=staff_headers).json()["data"]
    assert (summary["TotalItems"], summary["LowStockCount"], summary["OutOfStockCount"]) == (3, 1, 1)
    assert summary["HealthyCount"] == 1
    assert summary["TotalInventoryValue"] == 1300.0

    r = client.post("/inventory/alerts/update-thresholds",
                    json={"Items": [{"VariantID": low.VariantID, "LowStockThreshold": 12}]}, headers=staff_headers)
    assert [x["LowStockThreshold"] for x in r.json()["data"]] == [12, 12]
    rows = client.get("/inventory/alerts/low-stock", headers=staff_headers).json()["data"]
    assert len(rows) == 2
