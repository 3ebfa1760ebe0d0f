from inventory_api.models import Customer


def _order_payload(customer_id, store_id, items, **extra):
    return {"CustomerID": customer_id, "StoreID": store_id, "Items": items, **extra}


def _line(variant_id, qty=1, price=100, **extra):
    return {"VariantID": variant_id, "Quantity": qty, "Price": price, **extra}


def test_create_deducts_stock_and_computes_totals(client, staff_headers, stores, make_variant, customer, stock_of):
    sid = stores[0].StoreID
    v = make_variant("ORD-1", stock={sid: 5})

    payload = _order_payload(
        customer.CustomerID, sid,
        [_line(v.VariantID, qty=2, price="18900", DiscountAmount="100")],
        ShippingFee="500", Tax="50", DiscountAmount="200",
    )
    r = client.post("/orders", json=payload, headers=staff_headers)
    assert r.status_code == 201, r.text
    order = r.json()["data"]

    assert order["Subtotal"] == 37700.0
    assert order["GrandTotal"] == 37700.0 + 500 + 50 - 200
    assert order["PaymentStatus"] == "pending"
    assert order["ShippingAddress"] == "台北市大安區"
    item = order["Items"][0]
    assert item["Sku"] == "ORD-1"
    assert item["IsFulfilled"] is True
    assert {h["StatusType"] for h in order["Histories"]} == {"shipping", "payment"}
    assert stock_of(v.VariantID, sid) == 3


def test_order_number_format(client, staff_headers, stores, make_variant, customer):
    sid = stores[0].StoreID
    v = make_variant("ORD-2", stock={sid: 5})
    numbers = [
        client.post("/orders", json=_order_payload(customer.CustomerID, sid, [_line(v.VariantID)]),
                    headers=staff_headers).json()["data"]["OrderNumber"]
        for _ in range(2)
    ]
    first, second = numbers
    assert len(first) == 11 and first[6] == "-"
    assert int(second[-4:]) == int(first[-4:]) + 1


def test_shortage_returns_suggestions(client, staff_headers, stores, make_variant, customer, stock_of):
    a, b = stores[0].StoreID, stores[1].StoreID
    v = make_variant("ORD-3", stock={a: 1, b: 2})

    r = client.post("/orders", json=_order_payload(customer.CustomerID, a, [_line(v.VariantID, qty=5)]),
                    headers=staff_headers)
    assert r.status_code == 422
    body = r.json()
    assert body["error"] == "Stok yetersiz."
    shortage = body["meta"]["shortages"][0]
    assert shortage["Shortage"] == 4
    assert [s["type"] for s in shortage["Suggestions"]] == ["transfer", "purchase"]
    assert shortage["Suggestions"][0]["Quantity"] == 2
    assert shortage["Suggestions"][1]["Quantity"] == 2
    assert stock_of(v.VariantID, a) == 1


def test_force_create_turns_short_items_into_backorders(client, staff_headers, stores, make_variant, customer, stock_of):
    sid = stores[0].StoreID
    v = make_variant("ORD-4", stock={sid: 1})

    r = client.post("/orders", json=_order_payload(
        customer.CustomerID, sid, [_line(v.VariantID, qty=3)], ForceCreateDespiteStock=True,
    ), headers=staff_headers)
    assert r.status_code == 201
    item = r.json()["data"]["Items"][0]
    assert item["IsBackorder"] is True
    assert item["IsStockedSale"] is False
    assert item["FulfilledQuantity"] == 0
    assert stock_of(v.VariantID, sid) == 1


def test_transfer_decision_opens_pending_transfers(client, staff_headers, stores, make_variant, customer):
    a, b = stores[0].StoreID, stores[1].StoreID
    v = make_variant("ORD-5", stock={b: 4})

    r = client.post("/orders", json=_order_payload(
        customer.CustomerID, a, [_line(v.VariantID, qty=3, StockDecision="transfer")],
    ), headers=staff_headers)
    assert r.status_code == 201, r.text
    order_id = r.json()["data"]["OrderID"]

    transfers = client.get("/transfers", params={"order_id": order_id}, headers=staff_headers).json()["data"]
    assert len(transfers) == 1
    assert transfers[0]["Status"] == "pending"
    assert (transfers[0]["FromStoreID"], transfers[0]["ToStoreID"], transfers[0]["Quantity"]) == (b, a, 3)


def test_custom_item_is_not_stocked(client, staff_headers, stores, customer):
    r = client.post("/orders", json=_order_payload(customer.CustomerID, stores[0].StoreID, [
        {"ProductName": "訂製沙發", "Quantity": 1, "Price": 30000, "IsBackorder": True,
         "CustomSpecifications": {"寬": "220cm"}},
    ]), headers=staff_headers)
    assert r.status_code == 201
    item = r.json()["data"]["Items"][0]
    assert item["Sku"] == "CUSTOM"
    assert item["IsStockedSale"] is False
    assert item["CustomSpecifications"] == {"寬": "220cm"}


def test_update_items_adjusts_stock_by_delta(client, staff_headers, stores, make_variant, customer, stock_of):
    sid = stores[0].StoreID
    v = make_variant("ORD-6", stock={sid: 10})
    w = make_variant("ORD-7", stock={sid: 10})
    order = client.post("/orders", json=_order_payload(customer.CustomerID, sid, [_line(v.VariantID, qty=2)]),
                        headers=staff_headers).json()["data"]
    item_id = order["Items"][0]["ItemID"]

    r = client.put(f"/orders/{order['OrderID']}", json={"Items": [
        _line(v.VariantID, qty=5, ItemID=item_id),
        _line(w.VariantID, qty=1),
    ]}, headers=staff_headers)
    assert r.status_code == 200, r.text
    assert stock_of(v.VariantID, sid) == 5
    assert stock_of(w.VariantID, sid) == 9
    assert r.json()["data"]["Subtotal"] == 600.0

    # Listeden çıkan kalem stoğa döner
    r = client.put(f"/orders/{order['OrderID']}", json={"Items": [_line(v.VariantID, qty=1, ItemID=item_id)]},
                   headers=staff_headers)
    assert len(r.json()["data"]["Items"]) == 1
    assert stock_of(v.VariantID, sid) == 9
    assert stock_of(w.VariantID, sid) == 10


def test_payments_and_customer_totals(client, staff_headers, stores, make_variant, customer, db):
    sid = stores[0].StoreID
    v = make_variant("ORD-8", stock={sid: 5})
    order = client.post("/orders", json=_order_payload(customer.CustomerID, sid, [_line(v.VariantID, price=1000)]),
                        headers=staff_headers).json()["data"]
    oid = order["OrderID"]

    r = client.post(f"/orders/{oid}/add-payment", json={"Amount": 400, "PaymentMethod": "現金"}, headers=staff_headers)
    assert r.json()["data"]["PaymentStatus"] == "partial"
    assert r.json()["data"]["PaidAmount"] == 400.0

    r = client.post(f"/orders/{oid}/add-payment", json={"Amount": 700, "PaymentMethod": "現金"}, headers=staff_headers)
    assert r.status_code == 422

    db.expire_all()
    c = db.get(Customer, customer.CustomerID)
    assert c.TotalUnpaidAmountCents == 60000
    assert c.TotalCompletedAmountCents == 40000

    r = client.post(f"/orders/{oid}/confirm-payment", headers=staff_headers)
    data = r.json()["data"]
    assert data["PaymentStatus"] == "paid"
    assert data["PaidAmount"] == 1000.0
    assert [p["Amount"] for p in data["Payments"]] == [400.0, 600.0]

    assert client.post(f"/orders/{oid}/confirm-payment", headers=staff_headers).status_code == 409


def test_cancel_returns_stock_and_locks_order(client, staff_headers, stores, make_variant, customer, stock_of):
    sid = stores[0].StoreID
    v = make_variant("ORD-9", stock={sid: 5})
    oid = client.post("/orders", json=_order_payload(customer.CustomerID, sid, [_line(v.VariantID, qty=4)]),
                      headers=staff_headers).json()["data"]["OrderID"]
    assert stock_of(v.VariantID, sid) == 1

    r = client.post(f"/orders/{oid}/cancel", json={"Reason": "客戶取消"}, headers=staff_headers)
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["ShippingStatus"] == "cancelled"
    assert all(i["Status"] == "cancelled" for i in data["Items"])
    assert stock_of(v.VariantID, sid) == 5

    assert client.post(f"/orders/{oid}/cancel", json={}, headers=staff_headers).status_code == 409
    assert client.put(f"/orders/{oid}", json={"Notes": "x"}, headers=staff_headers).status_code == 409


def test_shipped_order_cannot_be_cancelled_or_deleted(client, staff_headers, stores, make_variant, customer):
    sid = stores[0].StoreID
    v = make_variant("ORD-10", stock={sid: 5})
    oid = client.post("/orders", json=_order_payload(customer.CustomerID, sid, [_line(v.VariantID)]),
                      headers=staff_headers).json()["data"]["OrderID"]

    r = client.post(f"/orders/{oid}/create-shipment", json={"TrackingNumber": "TW123", "Carrier": "黑貓"},
                    headers=staff_headers)
    assert r.json()["data"]["ShippingStatus"] == "shipped"
    assert r.json()["data"]["TrackingNumber"] == "TW123"

    assert client.post(f"/orders/{oid}/create-shipment", json={"TrackingNumber": "TW124"},
                       headers=staff_headers).status_code == 409
    assert client.post(f"/orders/{oid}/cancel", json={}, headers=staff_headers).status_code == 409
    assert client.delete(f"/orders/{oid}", headers=staff_headers).status_code == 409


def test_delete_and_batch_operations(client, staff_headers, stores, make_variant, customer, stock_of):
    sid = stores[0].StoreID
    v = make_variant("ORD-11", stock={sid: 10})
    ids = [
        client.post("/orders", json=_order_payload(customer.CustomerID, sid, [_line(v.VariantID, qty=2)]),
                    headers=staff_headers).json()["data"]["OrderID"]
        for _ in range(3)
    ]
    assert stock_of(v.VariantID, sid) == 4

    r = client.post("/orders/batch-status", json={"IDs": ids[:2], "StatusType": "payment", "StatusValue": "paid"},
                    headers=staff_headers)
    assert r.json()["data"]["updated"] == ids[:2]

    r = client.post("/orders/batch-status", json={"IDs": ids, "StatusType": "payment", "StatusValue": "shipped"},
                    headers=staff_headers)
    assert r.status_code == 422

    client.post(f"/orders/{ids[0]}/create-shipment", json={"TrackingNumber": "A1"}, headers=staff_headers)
    r = client.post("/orders/batch-delete", json={"IDs": ids + [999]}, headers=staff_headers)
    result = r.json()["data"]
    assert result["deleted"] == ids[1:]
    assert {s["OrderID"] for s in result["skipped"]} == {ids[0], 999}
    assert stock_of(v.VariantID, sid) == 8


def test_list_search_and_sort(client, viewer_headers, staff_headers, stores, make_variant, make_customer):
    sid = stores[0].StoreID
    v = make_variant("ORD-12", stock={sid: 10})
    alice = make_customer("Alice")
    bob = make_customer("Bob")
    for c, price in ((alice, 100), (bob, 900)):
        client.post("/orders", json=_order_payload(c.CustomerID, sid, [_line(v.VariantID, price=price)]),
                    headers=staff_headers)

    r = client.get("/orders", params={"search": "ali"}, headers=viewer_headers)
    assert [o["CustomerName"] for o in r.json()["data"]] == ["Alice"]

    r = client.get("/orders", params={"sort": "GrandTotal"}, headers=viewer_headers)
    assert [o["CustomerName"] for o in r.json()["data"]] == ["Alice", "Bob"]
    r = client.get("/orders", params={"sort": "-GrandTotal"}, headers=viewer_headers)
    assert [o["CustomerName"] for o in r.json()["data"]] == ["Bob", "Alice"]


def test_check_stock_availability(client, viewer_headers, stores, make_variant):
    a, b = stores[0].StoreID, stores[1].StoreID
    v = make_variant("ORD-13", stock={a: 2, b: 1})

    r = client.post("/orders/check-stock-availability", json={
        "StoreID": a, "Items": [{"VariantID": v.VariantID, "Quantity": 2}, {"VariantID": v.VariantID, "Quantity": 2}],
    }, headers=viewer_headers)
    data = r.json()["data"]
    assert data["AllSufficient"] is False
    row = data["Items"][0]
    assert (row["Requested"], row["Available"], row["Shortage"]) == (4, 2, 2)
    assert row["Suggestions"] == [
        {"type": "transfer", "StoreID": b, "StoreName": "台中門市", "Available": 1, "Quantity": 1},
        {"type": "purchase", "Quantity": 1},
    ]


def test_item_status_history(client, staff_headers, stores, make_variant, customer):
    sid = stores[0].StoreID
    v = make_variant("ORD-14", stock={sid: 1})
    order = client.post("/orders", json=_order_payload(customer.CustomerID, sid, [_line(v.VariantID)]),
                        headers=staff_headers).json()["data"]
    item_id = order["Items"][0]["ItemID"]

    r = client.patch(f"/order-items/{item_id}/status", json={"Status": "confirmed"}, headers=staff_headers)
    assert r.json()["data"]["Status"] == "confirmed"
    detail = client.get(f"/orders/{order['OrderID']}", headers=staff_headers).json()["data"]
    assert detail["Histories"][-1]["StatusType"] == "item"
    assert detail["Histories"][-1]["ToStatus"] == "confirmed"


def _transfers(client, headers, order_id):
    rows = client.get("/transfers", params={"order_id": order_id}, headers=headers).json()["data"]
    return [(t["FromStoreID"], t["ToStoreID"], t["Quantity"], t["Status"]) for t in rows]


# ---- Mağaza değişikliği ----
def test_store_change_moves_taken_stock(client, staff_headers, stores, make_variant, customer, stock_of):
    a, b = stores[0].StoreID, stores[1].StoreID
    v = make_variant("ORD-15", stock={a: 10, b: 5})
    order = client.post("/orders", json=_order_payload(customer.CustomerID, a, [_line(v.VariantID, qty=3)]),
                        headers=staff_headers).json()["data"]
    assert stock_of(v.VariantID, a) == 7

    r = client.put(f"/orders/{order['OrderID']}", json={"StoreID": b}, headers=staff_headers)
    assert r.status_code == 200, r.text
    assert r.json()["data"]["StoreID"] == b
    assert (stock_of(v.VariantID, a), stock_of(v.VariantID, b)) == (10, 2)

    # Kalem artışı yeni mağazadan düşer
    item_id = order["Items"][0]["ItemID"]
    client.put(f"/orders/{order['OrderID']}", json={"Items": [_line(v.VariantID, qty=4, ItemID=item_id)]},
               headers=staff_headers)
    assert (stock_of(v.VariantID, a), stock_of(v.VariantID, b)) == (10, 1)

    client.post(f"/orders/{order['OrderID']}/cancel", json={}, headers=staff_headers)
    assert (stock_of(v.VariantID, a), stock_of(v.VariantID, b)) == (10, 5)


def test_store_change_rejected_when_new_store_is_short(client, staff_headers, stores, make_variant, customer, stock_of):
    a, b = stores[0].StoreID, stores[1].StoreID
    v = make_variant("ORD-16", stock={a: 10})
    order = client.post("/orders", json=_order_payload(customer.CustomerID, a, [_line(v.VariantID, qty=3)]),
                        headers=staff_headers).json()["data"]

    r = client.put(f"/orders/{order['OrderID']}", json={"StoreID": b}, headers=staff_headers)
    assert r.status_code == 409
    assert client.get(f"/orders/{order['OrderID']}", headers=staff_headers).json()["data"]["StoreID"] == a
    assert (stock_of(v.VariantID, a), stock_of(v.VariantID, b)) == (7, 0)

    client.post(f"/orders/{order['OrderID']}/cancel", json={}, headers=staff_headers)
    assert (stock_of(v.VariantID, a), stock_of(v.VariantID, b)) == (10, 0)


# ---- Stok kararları ----
def test_stock_decision_ignored_when_local_stock_suffices(client, staff_headers, stores, make_variant, customer,
                                                           stock_of):
    a = stores[0].StoreID
    v = make_variant("ORD-17", stock={a: 5})
    r = client.post("/orders", json=_order_payload(
        customer.CustomerID, a, [_line(v.VariantID, qty=2, StockDecision="purchase")],
    ), headers=staff_headers)
    assert r.status_code == 201, r.text
    item = r.json()["data"]["Items"][0]
    assert (item["IsStockedSale"], item["IsBackorder"], item["IsFulfilled"]) == (True, False, True)
    assert stock_of(v.VariantID, a) == 3
    assert client.get("/backorders", headers=staff_headers).json()["data"] == []


def test_purchase_decision_takes_local_stock_first(client, staff_headers, stores, make_variant, customer, stock_of):
    a, b = stores[0].StoreID, stores[1].StoreID
    v = make_variant("ORD-18", stock={a: 2, b: 5})
    r = client.post("/orders", json=_order_payload(
        customer.CustomerID, a, [_line(v.VariantID, qty=5, StockDecision="purchase")],
    ), headers=staff_headers)
    assert r.status_code == 201, r.text
    order = r.json()["data"]
    item = order["Items"][0]
    assert item["IsBackorder"] is True
    assert (item["FulfilledQuantity"], item["RemainingQuantity"]) == (2, 3)
    assert (stock_of(v.VariantID, a), stock_of(v.VariantID, b)) == (0, 5)
    assert _transfers(client, staff_headers, order["OrderID"]) == []

    # İptalde düşülen yerel stok geri gelir
    client.post(f"/orders/{order['OrderID']}/cancel", json={}, headers=staff_headers)
    assert stock_of(v.VariantID, a) == 2


def test_transfer_decision_covers_only_the_shortfall(client, staff_headers, stores, make_variant, customer, stock_of):
    a, b = stores[0].StoreID, stores[1].StoreID
    v = make_variant("ORD-19", stock={a: 1, b: 4})
    r = client.post("/orders", json=_order_payload(
        customer.CustomerID, a, [_line(v.VariantID, qty=3, StockDecision="transfer")],
    ), headers=staff_headers)
    assert r.status_code == 201, r.text
    order = r.json()["data"]
    assert order["Items"][0]["FulfilledQuantity"] == 1
    assert _transfers(client, staff_headers, order["OrderID"]) == [(b, a, 2, "pending")]
    assert (stock_of(v.VariantID, a), stock_of(v.VariantID, b)) == (0, 4)

    # Diğer mağazalar eksiği kapatamıyorsa sipariş açılmaz
    w = make_variant("ORD-20", stock={a: 1, b: 2})
    r = client.post("/orders", json=_order_payload(
        customer.CustomerID, a, [_line(w.VariantID, qty=5, StockDecision="transfer")],
    ), headers=staff_headers)
    assert r.status_code == 422
    assert stock_of(w.VariantID, a) == 1


def test_mixed_decision_splits_transfer_and_purchase(client, staff_headers, stores, make_variant, customer, stock_of):
    a, b = stores[0].StoreID, stores[1].StoreID
    v = make_variant("ORD-21", stock={a: 1, b: 2})
    r = client.post("/orders", json=_order_payload(
        customer.CustomerID, a, [_line(v.VariantID, qty=5, StockDecision="mixed")],
    ), headers=staff_headers)
    assert r.status_code == 201, r.text
    order = r.json()["data"]
    item = order["Items"][0]
    assert (item["FulfilledQuantity"], item["RemainingQuantity"]) == (1, 4)
    assert _transfers(client, staff_headers, order["OrderID"]) == [(b, a, 2, "pending")]
    assert stock_of(v.VariantID, a) == 0

    # Elle seçilen kaynak ve satın alma adedi
    r = client.post("/orders", json=_order_payload(customer.CustomerID, a, [_line(
        v.VariantID, qty=3, StockDecision="mixed",
        Transfers=[{"FromStoreID": b, "Quantity": 1}], PurchaseQuantity=2,
    )]), headers=staff_headers)
    assert r.status_code == 201, r.text
    assert _transfers(client, staff_headers, r.json()["data"]["OrderID"]) == [(b, a, 1, "pending")]

    r = client.post("/orders", json=_order_payload(customer.CustomerID, a, [_line(
        v.VariantID, qty=3, StockDecision="mixed",
        Transfers=[{"FromStoreID": b, "Quantity": 1}], PurchaseQuantity=1,
    )]), headers=staff_headers)
    assert r.status_code == 422
