def _adjust(client, headers, variant_id, store_id, action, qty, **extra):
    payload = {"VariantID": variant_id, "StoreID": store_id, "Action": action, "Quantity": qty, **extra}
    return client.post("/inventory/adjust", json=payload, headers=headers)


def test_add_creates_row_and_transaction(client, staff_headers, stores, make_variant):
    v = make_variant("SOFA-1")
    r = _adjust(client, staff_headers, v.VariantID, stores[0].StoreID, "add", 5,
                Notes="初始庫存", Metadata={"source": "test"})
    assert r.status_code == 200, r.text
    data = r.json()["data"]
    assert data["Inventory"]["Quantity"] == 5
    tx = data["Transaction"]
    assert tx["TxnType"] == "addition"
    assert (tx["BeforeQuantity"], tx["AfterQuantity"], tx["Quantity"]) == (0, 5, 5)
    assert tx["Metadata"] == {"source": "test"}


def test_reduce_below_zero_is_rejected(client, staff_headers, stores, make_variant, stock_of):
    sid = stores[0].StoreID
    v = make_variant("SOFA-2", stock={sid: 3})

    r = _adjust(client, staff_headers, v.VariantID, sid, "reduce", 4)
    assert r.status_code == 409
    assert r.json()["ok"] is False
    assert stock_of(v.VariantID, sid) == 3

    r = _adjust(client, staff_headers, v.VariantID, sid, "reduce", 3)
    assert r.status_code == 200
    assert r.json()["data"]["Transaction"]["TxnType"] == "reduction"
    assert stock_of(v.VariantID, sid) == 0


def test_set_records_adjustment_even_without_change(client, staff_headers, stores, make_variant):
    sid = stores[0].StoreID
    v = make_variant("SOFA-3", stock={sid: 7})

    r = _adjust(client, staff_headers, v.VariantID, sid, "set", 7)
    tx = r.json()["data"]["Transaction"]
    assert tx["TxnType"] == "adjustment"
    assert tx["Quantity"] == 0

    r = _adjust(client, staff_headers, v.VariantID, sid, "set", 2)
    assert r.json()["data"]["Transaction"]["Quantity"] == -5


def test_add_requires_positive_quantity(client, staff_headers, stores, make_variant):
    v = make_variant("SOFA-4")
    r = _adjust(client, staff_headers, v.VariantID, stores[0].StoreID, "add", 0)
    assert r.status_code == 422


def test_unknown_variant_or_store_is_404(client, staff_headers, stores, make_variant):
    v = make_variant("SOFA-5")
    assert _adjust(client, staff_headers, 999, stores[0].StoreID, "add", 1).status_code == 404
    assert _adjust(client, staff_headers, v.VariantID, 999, "add", 1).status_code == 404


def test_viewer_cannot_adjust(client, viewer_headers, stores, make_variant):
    v = make_variant("SOFA-6")
    r = _adjust(client, viewer_headers, v.VariantID, stores[0].StoreID, "add", 1)
    assert r.status_code == 403


def test_list_filters_and_detail(client, viewer_headers, stores, make_variant):
    sid = stores[0].StoreID
    low = make_variant("LOW-1", stock={sid: 2}, name="Kanepe")
    make_variant("FULL-1", stock={sid: 50}, name="Masa")

    r = client.get("/inventory", params={"low_stock": True}, headers=viewer_headers)
    body = r.json()
    assert [row["Sku"] for row in body["data"]] == ["LOW-1"]
    assert body["data"][0]["IsLowStock"] is True
    assert body["meta"]["total"] == 1

    r = client.get("/inventory", params={"product_name": "masa"}, headers=viewer_headers)
    assert [row["Sku"] for row in r.json()["data"]] == ["FULL-1"]

    inv_id = client.get("/inventory", params={"product_name": "LOW-1"}, headers=viewer_headers).json()["data"][0]["InventoryID"]
    r = client.get(f"/inventory/{inv_id}", headers=viewer_headers)
    detail = r.json()["data"]
    assert detail["VariantID"] == low.VariantID
    assert detail["StoreName"] == "台北旗艦店"
    assert len(detail["RecentTransactions"]) == 1

    assert client.get("/inventory/9999", headers=viewer_headers).status_code == 404


def test_transactions_and_sku_history(client, staff_headers, stores, make_variant):
    sid = stores[0].StoreID
    v = make_variant("HIST-1", stock={sid: 10})
    _adjust(client, staff_headers, v.VariantID, sid, "reduce", 4)

    r = client.get("/inventory/transactions", params={"type": "reduction"}, headers=staff_headers)
    rows = r.json()["data"]
    assert len(rows) == 1 and rows[0]["Quantity"] == -4

    r = client.get("/inventory/sku/HIST-1/history", headers=staff_headers)
    assert [t["TxnType"] for t in r.json()["data"]] == ["reduction", "addition"]

    assert client.get("/inventory/sku/NOPE/history", headers=staff_headers).status_code == 404


def test_batch_check(client, viewer_headers, stores, make_variant):
    a, b = stores[0].StoreID, stores[1].StoreID
    v = make_variant("BC-1", stock={a: 4, b: 6})

    r = client.post("/inventory/batch-check", json={"VariantIDs": [v.VariantID, 777]}, headers=viewer_headers)
    rows = r.json()["data"]
    assert rows[0]["TotalQuantity"] == 10
    assert len(rows[0]["Stores"]) == 2
    assert rows[1] == {"VariantID": 777, "TotalQuantity": 0, "Stores": []}

    r = client.post("/inventory/batch-check", json={"VariantIDs": [v.VariantID], "StoreID": b}, headers=viewer_headers)
    assert r.json()["data"][0]["TotalQuantity"] == 6
