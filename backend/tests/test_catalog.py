def _category(client, headers, name, parent=None, sort=0):
    r = client.post("/categories", json={"Name": name, "ParentID": parent, "SortOrder": sort}, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()["data"]


def test_category_tree_and_cycles(client, admin_headers):
    room = _category(client, admin_headers, "客廳")
    sofa = _category(client, admin_headers, "沙發", parent=room["CategoryID"])
    leather = _category(client, admin_headers, "皮沙發", parent=sofa["CategoryID"])

    tree = client.get("/categories/tree", headers=admin_headers).json()["data"]
    assert len(tree) == 1
    assert tree[0]["Children"][0]["Children"][0]["CategoryID"] == leather["CategoryID"]

    r = client.put(f"/categories/{room['CategoryID']}", json={"ParentID": leather["CategoryID"]}, headers=admin_headers)
    assert r.status_code == 422
    r = client.put(f"/categories/{room['CategoryID']}", json={"ParentID": room["CategoryID"]}, headers=admin_headers)
    assert r.status_code == 422

    assert client.delete(f"/categories/{sofa['CategoryID']}", headers=admin_headers).status_code == 409
    assert client.delete(f"/categories/{leather['CategoryID']}", headers=admin_headers).status_code == 200


def test_batch_reorder(client, admin_headers):
    a = _category(client, admin_headers, "A", sort=0)
    b = _category(client, admin_headers, "B", sort=1)

    r = client.post("/categories/batch-reorder", json={"Items": [
        {"CategoryID": a["CategoryID"], "SortOrder": 5},
        {"CategoryID": b["CategoryID"], "SortOrder": 0},
    ]}, headers=admin_headers)
    assert [c["Name"] for c in r.json()["data"]] == ["B", "A"]

    # Aynı istekte karşılıklı bağlama döngü oluşturur
    r = client.post("/categories/batch-reorder", json={"Items": [
        {"CategoryID": a["CategoryID"], "ParentID": b["CategoryID"], "SortOrder": 0},
        {"CategoryID": b["CategoryID"], "ParentID": a["CategoryID"], "SortOrder": 0},
    ]}, headers=admin_headers)
    assert r.status_code == 422


def test_categories_require_admin(client, staff_headers):
    assert client.post("/categories", json={"Name": "X"}, headers=staff_headers).status_code == 403


def test_attributes_and_values(client, admin_headers):
    r = client.post("/attributes", json={"Name": "顏色"}, headers=admin_headers)
    attr = r.json()["data"]
    assert client.post("/attributes", json={"Name": "顏色"}, headers=admin_headers).status_code == 400

    gray = client.post(f"/attributes/{attr['AttributeID']}/values", json={"Value": "灰色"}, headers=admin_headers)
    assert gray.status_code == 201
    r = client.post(f"/attributes/{attr['AttributeID']}/values", json={"Value": "灰色"}, headers=admin_headers)
    assert r.status_code == 400

    value_id = gray.json()["data"]["ValueID"]
    client.put(f"/values/{value_id}", json={"Value": "深灰"}, headers=admin_headers)
    detail = client.get(f"/attributes/{attr['AttributeID']}", headers=admin_headers).json()["data"]
    assert [v["Value"] for v in detail["Values"]] == ["深灰"]

    assert client.delete(f"/values/{value_id}", headers=admin_headers).status_code == 200
    assert client.delete(f"/attributes/{attr['AttributeID']}", headers=admin_headers).status_code == 200


def test_create_product_with_inventory_rows(client, admin_headers, staff_headers, stores):
    attr = client.post("/attributes", json={"Name": "尺寸"}, headers=admin_headers).json()["data"]
    size = client.post(f"/attributes/{attr['AttributeID']}/values", json={"Value": "三人座"},
                       headers=admin_headers).json()["data"]

    r = client.post("/products", json={
        "Name": "北歐沙發", "AttributeIDs": [attr["AttributeID"]],
        "Variants": [
            {"Sku": "NS-3", "Price": "25900", "CostPrice": "14000", "AttributeValueIDs": [size["ValueID"]]},
            {"Sku": "NS-2", "Price": "19900"},
        ],
    }, headers=staff_headers)
    assert r.status_code == 201, r.text
    product = r.json()["data"]
    first = product["Variants"][0]
    assert first["AverageCost"] == 14000.0
    assert first["AttributeValues"][0]["Value"] == "三人座"

    r = client.get(f"/products/variants/{first['VariantID']}", headers=staff_headers)
    stocks = r.json()["data"]["Stocks"]
    assert [(s["StoreID"], s["Quantity"], s["LowStockThreshold"]) for s in stocks] == [
        (stores[0].StoreID, 0, 5), (stores[1].StoreID, 0, 5),
    ]

    r = client.post("/products", json={"Name": "重複", "Variants": [{"Sku": "NS-3", "Price": 1}]},
                    headers=staff_headers)
    assert r.status_code == 400
    r = client.post("/products", json={"Name": "重複", "Variants": [{"Sku": "X", "Price": 1}, {"Sku": "X", "Price": 2}]},
                    headers=staff_headers)
    assert r.status_code == 422

    r = client.get("/products", params={"search": "ns-2"}, headers=staff_headers)
    assert [p["ProductID"] for p in r.json()["data"]] == [product["ProductID"]]


def test_variant_with_stock_cannot_be_removed(client, staff_headers, stores, make_variant):
    v = make_variant("DEL-1", stock={stores[0].StoreID: 2})

    r = client.put(f"/products/{v.ProductID}", json={"Variants": [{"Sku": "DEL-2", "Price": 10}]}, headers=staff_headers)
    assert r.status_code == 409
    assert client.delete(f"/products/{v.ProductID}", headers=staff_headers).status_code == 409

    r = client.put(f"/products/{v.ProductID}", json={
        "Name": "新名稱",
        "Variants": [{"VariantID": v.VariantID, "Sku": "DEL-1", "Price": 120}],
    }, headers=staff_headers)
    data = r.json()["data"]
    assert data["Name"] == "新名稱"
    assert data["Variants"][0]["Price"] == 120.0


def test_unused_product_can_be_deleted(client, staff_headers, stores, make_variant):
    used = make_variant("BD-1")
    free = make_variant("BD-2")
    client.post("/purchases", json={
        "StoreID": stores[0].StoreID, "Items":[{"VariantID": used.VariantID, "Quantity": 1, "UnitPrice": 1}],
    }, headers=staff_headers)

    r = client.post("/products/batch-delete", json={"IDs": [used.ProductID, free.ProductID]}, headers=staff_headers)
    result = r.json()["data"]
    assert result["deleted"] == [free.ProductID]
    assert result["skipped"][0]["ProductID"] == used.ProductID
