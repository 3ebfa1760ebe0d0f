from inventory_api.models import ProductVariant


def _create(client, headers, store_id, items, **extra):
    return client.post("/purchases", json={"StoreID": store_id, "Items": items, **extra}, headers=headers)


def _status(client, headers, pid, value):
    return client.patch(f"/purchases/{pid}/status", json={"Status": value}, headers=headers)


def test_create_allocates_shipping_by_value(client, staff_headers, stores, make_variant):
    sid = stores[0].StoreID
    a = make_variant("PO-A")
    b = make_variant("PO-B")

    r = _create(client, staff_headers, sid, [
        {"VariantID": a.VariantID, "Quantity": 2, "UnitPrice": 100},
        {"VariantID": b.VariantID, "Quantity": 1, "UnitPrice": 200},
    ], ShippingCost=40)
    assert r.status_code == 201, r.text
    p = r.json()["data"]
    assert p["OrderNumber"].startswith("PO-") and p["OrderNumber"].endswith("-0001")
    assert p["Status"] == "pending"
    assert p["TotalAmount"] == 440.0
    assert [i["AllocatedShippingCost"] for i in p["Items"]] == [20.0, 20.0]
    assert p["Items"][0]["TotalCostPrice"] == 220.0
    assert p["Items"][0]["PendingQuantity"] == 2

    r = client.patch(f"/purchases/{p['PurchaseID']}/shipping-cost", json={"ShippingCost": 0}, headers=staff_headers)
    assert r.json()["data"]["TotalAmount"] == 400.0

    r = client.patch(f"/purchases/{p['PurchaseID']}/notes", json={"Notes": "週五到貨"}, headers=staff_headers)
    assert r.json()["data"]["Notes"] == "週五到貨"


def test_status_flow_and_receive(client, staff_headers, stores, make_variant, stock_of, db):
    sid = stores[0].StoreID
    v = make_variant("PO-C", cost="60")
    p = _create(client, staff_headers, sid, [{"VariantID": v.VariantID, "Quantity": 2, "UnitPrice": 100}],
                ShippingCost=20).json()["data"]
    pid = p["PurchaseID"]

    assert _status(client, staff_headers, pid, "received").status_code == 422
    assert _status(client, staff_headers, pid, "confirmed").json()["data"]["Status"] == "confirmed"
    assert _status(client, staff_headers, pid, "in_transit").json()["data"]["Status"] == "in_transit"

    r = _status(client, staff_headers, pid, "received")
    data = r.json()["data"]
    assert data["Status"] == "received"
    assert data["ReceivedAt"] is not None
    assert data["Items"][0]["ReceiptStatus"] == "completed"
    assert stock_of(v.VariantID, sid) == 2

    # Birim maliyet kargo payıyla: (200 + 20) / 2
    assert db.get(ProductVariant, v.VariantID).AverageCostCents == 11000

    assert _status(client, staff_headers, pid, "received").status_code == 409
    assert _status(client, staff_headers, pid, "completed").json()["data"]["Status"] == "completed"
    assert stock_of(v.VariantID, sid) == 2

    r = client.get("/inventory/transactions", params={"type": "purchase"}, headers=staff_headers)
    assert r.json()["meta"]["total"] == 1


def test_partial_receipt_is_cumulative(client, staff_headers, stores, make_variant, stock_of):
    sid = stores[0].StoreID
    v = make_variant("PO-D")
    p = _create(client, staff_headers, sid, [{"VariantID": v.VariantID, "Quantity": 4, "UnitPrice": 50}]).json()["data"]
    pid, item_id = p["PurchaseID"], p["Items"][0]["PurchaseItemID"]

    def receipt(qty):
        return client.post(f"/purchases/{pid}/partial-receipt",
                           json={"Items": [{"PurchaseItemID": item_id, "ReceivedQuantity": qty}]},
                           headers=staff_headers)

    assert receipt(1).status_code == 422

    _status(client, staff_headers, pid, "confirmed")
    r = receipt(1)
    assert r.json()["data"]["Status"] == "partially_received"
    assert r.json()["data"]["Items"][0]["ReceiptStatus"] == "partial"
    assert stock_of(v.VariantID, sid) == 1

    assert receipt(0).status_code == 422
    assert receipt(5).status_code == 422

    r = receipt(4)
    assert r.json()["data"]["Status"] == "completed"
    assert stock_of(v.VariantID, sid) == 4


def test_only_pending_can_be_deleted(client, staff_headers, stores, make_variant):
    sid = stores[0].StoreID
    v = make_variant("PO-E")
    p1 = _create(client, staff_headers, sid, [{"VariantID": v.VariantID, "Quantity": 1, "UnitPrice": 10}]).json()["data"]
    p2 = _create(client, staff_headers, sid, [{"VariantID": v.VariantID, "Quantity": 1, "UnitPrice": 10}],
                 Status="confirmed").json()["data"]
    assert p2["OrderNumber"].endswith("-0002")

    assert client.delete(f"/purchases/{p2['PurchaseID']}", headers=staff_headers).status_code == 422
    assert client.delete(f"/purchases/{p1['PurchaseID']}", headers=staff_headers).status_code == 200
    assert client.get(f"/purchases/{p1['PurchaseID']}", headers=staff_headers).status_code == 404

    r = client.patch(f"/purchases/{p2['PurchaseID']}/cancel", headers=staff_headers)
    assert r.json()["data"]["Status"] == "cancelled"
    r = client.get("/purchases", params={"status": "cancelled"}, headers=staff_headers)
    assert r.json()["meta"]["total"] == 1


def test_bound_backorders_are_fulfilled_on_receive(client, staff_headers, stores, make_variant, customer, stock_of):
    sid = stores[0].StoreID
    v = make_variant("PO-F")
    order = client.post("/orders", json={
        "CustomerID": customer.CustomerID, "StoreID": sid, "ForceCreateDespiteStock": True,
        "Items": [{"VariantID": v.VariantID, "Quantity": 3, "Price": 500}],
    }, headers=staff_headers).json()["data"]
    item_id = order["Items"][0]["ItemID"]

    r = client.get("/purchases/bindable-orders", params={"variant_ids": [v.VariantID]}, headers=staff_headers)
    assert [row["ItemID"] for row in r.json()["data"]] == [item_id]
    assert r.json()["data"][0]["OrderNumber"] == order["OrderNumber"]

    p = _create(client, staff_headers, sid, [{"VariantID": v.VariantID, "Quantity": 5, "UnitPrice": 300}]).json()["data"]
    pid = p["PurchaseID"]
    r = client.post(f"/purchases/{pid}/bind-orders", json={"OrderItemIDs": [item_id]}, headers=staff_headers)
    assert r.status_code == 200
    assert client.get("/purchases/bindable-orders", headers=staff_headers).json()["data"] == []

    for s in ("confirmed", "in_transit", "received"):
        _status(client, staff_headers, pid, s)

    item = client.get(f"/orders/{order['OrderID']}", headers=staff_headers).json()["data"]["Items"][0]
    assert item["IsFulfilled"] is True
    assert item["PurchaseItemID"] == p["Items"][0]["PurchaseItemID"]
    # Bağlı kalemin 3 adedi gelen stoktan düşülür
    assert stock_of(v.VariantID, sid) == 2
    assert client.get("/backorders", headers=staff_headers).json()["data"] == []


def test_bind_rejects_non_backorder_items(client, staff_headers, stores, make_variant, customer):
    sid = stores[0].StoreID
    v = make_variant("PO-G", stock={sid: 5})
    order = client.post("/orders", json={
        "CustomerID": customer.CustomerID, "StoreID": sid,
        "Items": [{"VariantID": v.VariantID, "Quantity": 1, "Price": 500}],
    }, headers=staff_headers).json()["data"]
    p = _create(client, staff_headers, sid, [{"VariantID": v.VariantID, "Quantity": 1, "UnitPrice": 300}]).json()["data"]

    r = client.post(f"/purchases/{p['PurchaseID']}/bind-orders",
                    json={"OrderItemIDs": [order["Items"][0]["ItemID"]]}, headers=staff_headers)
    assert r.status_code == 422


def test_received_backorders_cannot_be_sold_twice(client, staff_headers, stores, make_variant, customer, stock_of):
    sid = stores[0].StoreID
    v = make_variant("PO-H")
    order = client.post("/orders", json={
        "CustomerID": customer.CustomerID, "StoreID": sid, "ForceCreateDespiteStock": True,
        "Items": [{"VariantID": v.VariantID, "Quantity": 3, "Price": 500}],
    }, headers=staff_headers).json()["data"]
    item_id = order["Items"][0]["ItemID"]

    p = _create(client, staff_headers, sid, [{"VariantID": v.VariantID, "Quantity": 3, "UnitPrice": 300}],
                OrderItemIDs=[item_id]).json()["data"]
    for s in ("confirmed", "in_transit", "received"):
        _status(client, staff_headers, p["PurchaseID"], s)
    assert stock_of(v.VariantID, sid) == 0

    r = client.post("/orders", json={
        "CustomerID": customer.CustomerID, "StoreID": sid,
        "Items": [{"VariantID": v.VariantID, "Quantity": 3, "Price": 500}],
    }, headers=staff_headers)
    assert r.status_code == 422

    # İade yalnızca gerçekten çıkan adedi geri koyar
    client.post(f"/orders/{order['OrderID']}/confirm-payment", headers=staff_headers)
    r = client.post(f"/orders/{order['OrderID']}/refunds", json={
        "Reason": "客戶退貨", "ShouldRestock": True, "Items": [{"OrderItemID": item_id, "Quantity": 3}],
    }, headers=staff_headers)
    assert r.status_code == 201, r.text
    assert stock_of(v.VariantID, sid) == 3


def test_refund_of_unfulfilled_backorder_adds_no_stock(client, staff_headers, stores, make_variant, customer, stock_of):
    sid = stores[0].StoreID
    v = make_variant("PO-I")
    order = client.post("/orders", json={
        "CustomerID": customer.CustomerID, "StoreID": sid, "ForceCreateDespiteStock": True, "PaymentStatus": "paid",
        "Items": [{"VariantID": v.VariantID, "Quantity": 2, "Price": 500}],
    }, headers=staff_headers).json()["data"]

    r = client.post(f"/orders/{order['OrderID']}/refunds", json={
        "Reason": "客戶取消", "ShouldRestock": True,
        "Items": [{"OrderItemID": order["Items"][0]["ItemID"], "Quantity": 2}],
    }, headers=staff_headers)
    assert r.json()["data"]["Items"][0]["Restocked"] is False
    assert stock_of(v.VariantID, sid) == 0


def test_unbound_backorders_take_received_stock_by_priority(client, staff_headers, stores, make_variant,
                                                             make_customer, stock_of):
    sid = stores[0].StoreID
    v = make_variant("PO-J")
    normal = make_customer("林先生")
    vip = make_customer("陳小姐", PriorityLevel="vip")
    orders = [
        client.post("/orders", json={
            "CustomerID": c.CustomerID, "StoreID": sid, "ForceCreateDespiteStock": True,
            "Items": [{"VariantID": v.VariantID, "Quantity": 2, "Price": 500}],
        }, headers=staff_headers).json()["data"]
        for c in (normal, vip)
    ]

    p = _create(client, staff_headers, sid, [{"VariantID": v.VariantID, "Quantity": 3, "UnitPrice": 300}]).json()["data"]
    for s in ("confirmed", "in_transit", "received"):
        _status(client, staff_headers, p["PurchaseID"], s)

    filled = [
        client.get(f"/orders/{o['OrderID']}", headers=staff_headers).json()["data"]["Items"][0]["FulfilledQuantity"]
        for o in orders
    ]
    assert filled == [1, 2]
    assert stock_of(v.VariantID, sid) == 0


def test_create_from_backorder_lines(client, staff_headers, stores, make_variant, customer):
    a, b = stores[0].StoreID, stores[1].StoreID
    v = make_variant("PO-K", cost="250")
    w = make_variant("PO-L", cost="80")
    order = client.post("/orders", json={
        "CustomerID": customer.CustomerID, "StoreID": a, "ForceCreateDespiteStock": True,
        "Items": [
            {"VariantID": v.VariantID, "Quantity": 2, "Price": 900},
            {"VariantID": w.VariantID, "Quantity": 1, "Price": 300},
        ],
    }, headers=staff_headers).json()["data"]
    first, second = (i["ItemID"] for i in order["Items"])

    r = client.post("/purchases", json={
        "StoreID": a, "ShippingCost": 0, "Items": [],
        "OrderItems": [
            {"OrderItemID": first, "PurchaseQuantity": 2},
            {"OrderItemID": second, "PurchaseQuantity": 1, "CostPrice": 95},
        ],
    }, headers=staff_headers)
    assert r.status_code == 201, r.text
    p = r.json()["data"]
    lines = {i["VariantID"]: i for i in p["Items"]}
    assert (lines[v.VariantID]["Quantity"], lines[v.VariantID]["CostPrice"]) == (2, 250.0)
    assert (lines[w.VariantID]["UnitPrice"], lines[w.VariantID]["CostPrice"]) == (95.0, 95.0)

    items = client.get(f"/orders/{order['OrderID']}", headers=staff_headers).json()["data"]["Items"]
    assert {i["ItemID"]: i["PurchaseItemID"] for i in items} == {
        first: lines[v.VariantID]["PurchaseItemID"], second: lines[w.VariantID]["PurchaseItemID"],
    }

    # Bağlı kalem tekrar kullanılamaz; başka mağaza ve boş istek reddedilir
    r = client.post("/purchases", json={"StoreID": a, "OrderItems": [{"OrderItemID": first, "PurchaseQuantity": 1}]},
                    headers=staff_headers)
    assert r.status_code == 409
    assert client.post("/purchases", json={"StoreID": a, "Items": [], "OrderItems": []},
                       headers=staff_headers).status_code == 422

    other = client.post("/orders", json={
        "CustomerID": customer.CustomerID, "StoreID": b, "ForceCreateDespiteStock": True,
        "Items": [{"VariantID": v.VariantID, "Quantity": 1, "Price": 900}],
    }, headers=staff_headers).json()["data"]
    r = client.post("/purchases", json={
        "StoreID": a, "OrderItems": [{"OrderItemID": other["Items"][0]["ItemID"], "PurchaseQuantity": 1}],
    }, headers=staff_headers)
    assert r.status_code == 422
