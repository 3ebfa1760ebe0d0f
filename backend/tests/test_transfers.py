def _transfer(client, headers, src, dst, variant_id, qty, **extra):
    payload = {"FromStoreID": src, "ToStoreID": dst, "VariantID": variant_id, "Quantity": qty, **extra}
    return client.post("/transfers", json=payload, headers=headers)


def test_completed_transfer_moves_stock(client, staff_headers, stores, make_variant, stock_of):
    a, b = stores[0].StoreID, stores[1].StoreID
    v = make_variant("TR-1", stock={a: 10})

    r = _transfer(client, staff_headers, a, b, v.VariantID, 4)
    assert r.status_code == 201, r.text
    assert r.json()["data"]["Status"] == "completed"
    assert stock_of(v.VariantID, a) == 6
    assert stock_of(v.VariantID, b) == 4

    r = client.get("/inventory/transactions", headers=staff_headers)
    types = sorted(t["TxnType"] for t in r.json()["data"])
    assert types == ["addition", "transfer_in", "transfer_out"]


def test_same_store_and_shortage_rejected(client, staff_headers, stores, make_variant):
    a, b = stores[0].StoreID, stores[1].StoreID
    v = make_variant("TR-2", stock={a: 2})

    assert _transfer(client, staff_headers, a, a, v.VariantID, 1).status_code == 422
    r = _transfer(client, staff_headers, a, b, v.VariantID, 3)
    assert r.status_code == 409
    assert r.json()["ok"] is False


def test_pending_then_in_transit_then_completed(client, staff_headers, stores, make_variant, stock_of):
    a, b = stores[0].StoreID, stores[1].StoreID
    v = make_variant("TR-3", stock={a: 5})

    tr = _transfer(client, staff_headers, a, b, v.VariantID, 5, Status="pending").json()["data"]
    assert stock_of(v.VariantID, a) == 5

    r = client.patch(f"/transfers/{tr['TransferID']}/status", json={"Status": "in_transit"}, headers=staff_headers)
    assert r.json()["data"]["Status"] == "in_transit"
    assert stock_of(v.VariantID, a) == 0
    assert stock_of(v.VariantID, b) == 0

    r = client.patch(f"/transfers/{tr['TransferID']}/status", json={"Status": "completed"}, headers=staff_headers)
    assert r.json()["data"]["Status"] == "completed"
    assert stock_of(v.VariantID, b) == 5

    # Tamamlanan transfer değişmez
    r = client.patch(f"/transfers/{tr['TransferID']}/cancel", json={"Reason": "yanlış"}, headers=staff_headers)
    assert r.status_code == 409


def test_cancel_in_transit_returns_stock_to_source(client, staff_headers, stores, make_variant, stock_of):
    a, b = stores[0].StoreID, stores[1].StoreID
    v = make_variant("TR-4", stock={a: 3})

    tr = _transfer(client, staff_headers, a, b, v.VariantID, 2, Status="in_transit").json()["data"]
    assert stock_of(v.VariantID, a) == 1

    r = client.patch(f"/transfers/{tr['TransferID']}/cancel", json={"Reason": "車輛故障"}, headers=staff_headers)
    data = r.json()["data"]
    assert data["Status"] == "cancelled"
    assert data["Notes"].startswith("已取消。原因：車輛故障")
    assert stock_of(v.VariantID, a) == 3
    assert stock_of(v.VariantID, b) == 0


def test_batch_is_all_or_nothing(client, staff_headers, stores, make_variant, stock_of):
    a, b = stores[0].StoreID, stores[1].StoreID
    ok_v = make_variant("TR-5", stock={a: 5})
    short_v = make_variant("TR-6", stock={a: 1})

    r = client.post("/transfers/batch", json={
        "Status": "completed",
        "Transfers": [
            {"FromStoreID": a, "ToStoreID": b, "VariantID": ok_v.VariantID, "Quantity": 2},
            {"FromStoreID": a, "ToStoreID": b, "VariantID": short_v.VariantID, "Quantity": 5},
        ],
    }, headers=staff_headers)
    assert r.status_code == 409
    assert stock_of(ok_v.VariantID, a) == 5
    assert client.get("/transfers", headers=staff_headers).json()["meta"]["total"] == 0

    r = client.post("/transfers/batch", json={
        "Transfers": [
            {"FromStoreID": a, "ToStoreID": b, "VariantID": ok_v.VariantID, "Quantity": 2},
            {"FromStoreID": a, "ToStoreID": b, "VariantID": short_v.VariantID, "Quantity": 1},
        ],
    }, headers=staff_headers)
    assert r.status_code == 201
    assert [t["Status"] for t in r.json()["data"]] == ["pending", "pending"]

    r = client.get("/transfers", params={"status": "pending"}, headers=staff_headers)
    assert r.json()["meta"]["total"] == 2
