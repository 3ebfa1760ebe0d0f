import pytest


@pytest.fixture
def order(client, staff_headers, stores, make_variant, make_customer):
    sid = stores[0].StoreID
    sofa = make_variant("IN-SOFA", stock={sid: 5}, name="L型沙發")
    desk = make_variant("IN-DESK", stock={sid: 5}, name="升降桌")
    c = make_customer("陳美玲", Phone="0912-345-678")
    r = client.post("/orders", json={
        "CustomerID": c.CustomerID, "StoreID": sid, "ShippingAddress": "台中市西屯區",
        "Items": [
            {"VariantID": sofa.VariantID, "Quantity": 1, "Price": 30000},
            {"VariantID": desk.VariantID, "Quantity": 2, "Price": 9000},
        ],
    }, headers=staff_headers)
    return r.json()["data"]


@pytest.fixture
def installer(make_user):
    return make_user("installer", "installer")


def test_from_order_copies_items_and_address(client, staff_headers, order):
    r = client.post("/installations/from-order", json={"OrderID": order["OrderID"]}, headers=staff_headers)
    assert r.status_code == 201, r.text
    inst = r.json()["data"]
    assert inst["InstallationNumber"].startswith("IN-")
    assert inst["Status"] == "pending"
    assert inst["CustomerName"] == "陳美玲"
    assert inst["CustomerPhone"] == "0912-345-678"
    assert inst["InstallationAddress"] == "台中市西屯區"
    assert inst["OrderNumber"] == order["OrderNumber"]
    assert [i["Sku"] for i in inst["Items"]] == ["IN-SOFA", "IN-DESK"]


def test_from_order_with_selected_items(client, staff_headers, order):
    first = order["Items"][0]["ItemID"]
    r = client.post("/installations/from-order", json={"OrderID": order["OrderID"], "OrderItemIDs": [first]},
                    headers=staff_headers)
    assert [i["OrderItemID"] for i in r.json()["data"]["Items"]] == [first]

    r = client.post("/installations/from-order", json={"OrderID": order["OrderID"], "OrderItemIDs": [9999]},
                    headers=staff_headers)
    assert r.status_code == 422


def test_assign_requires_installer_role(client, staff_headers, order, installer, make_user):
    inst = client.post("/installations/from-order", json={"OrderID": order["OrderID"]},
                       headers=staff_headers).json()["data"]
    viewer = make_user("bob", "viewer")

    r = client.post(f"/installations/{inst['InstallationID']}/assign",
                    json={"InstallerUserID": viewer.UserID}, headers=staff_headers)
    assert r.status_code == 422

    r = client.post(f"/installations/{inst['InstallationID']}/assign",
                    json={"InstallerUserID": installer.UserID, "ScheduledDate": "2025-07-01"}, headers=staff_headers)
    data = r.json()["data"]
    assert data["Status"] == "scheduled"
    assert data["InstallerName"] == "Installer"
    assert data["ScheduledDate"] == "2025-07-01"


def test_installer_sees_only_own_installations(client, staff_headers, headers_for, order, installer, make_user):
    other = make_user("other", "installer")
    mine = client.post("/installations", json={
        "CustomerName": "甲", "InstallationAddress": "台北市", "InstallerUserID": installer.UserID,
        "ScheduledDate": "2025-07-02",
    }, headers=staff_headers).json()["data"]
    theirs = client.post("/installations", json={
        "CustomerName": "乙", "InstallationAddress": "新北市", "InstallerUserID": other.UserID,
    }, headers=staff_headers).json()["data"]
    assert mine["Status"] == "scheduled"

    h = headers_for(installer)
    rows = client.get("/installations", headers=h).json()["data"]
    assert [x["InstallationID"] for x in rows] == [mine["InstallationID"]]
    assert client.get(f"/installations/{theirs['InstallationID']}", headers=h).status_code == 404

    r = client.get("/installations/schedule", params={"start_date": "2025-07-01", "end_date": "2025-07-31"},
                   headers=h)
    assert [x["InstallationID"] for x in r.json()["data"]] == [mine["InstallationID"]]

    # Kurulumcu durum güncelleyebilir ama düzenleyemez
    r = client.patch(f"/installations/{mine['InstallationID']}/status", json={"Status": "in_progress"}, headers=h)
    assert r.json()["data"]["ActualStartTime"] is not None
    assert client.put(f"/installations/{mine['InstallationID']}", json={"Notes": "x"}, headers=h).status_code == 403


def test_completing_all_items_completes_installation(client, staff_headers, headers_for, order, installer):
    inst = client.post("/installations/from-order",
                       json={"OrderID": order["OrderID"], "InstallerUserID": installer.UserID},
                       headers=staff_headers).json()["data"]
    h = headers_for(installer)
    first, second = (i["InstallationItemID"] for i in inst["Items"])

    client.patch(f"/installations/items/{first}/status", json={"Status": "completed"}, headers=h)
    detail = client.get(f"/installations/{inst['InstallationID']}", headers=h).json()["data"]
    assert detail["Status"] == "scheduled"

    client.patch(f"/installations/items/{second}/status", json={"Status": "completed"}, headers=h)
    detail = client.get(f"/installations/{inst['InstallationID']}", headers=h).json()["data"]
    assert detail["Status"] == "completed"
    assert detail["ActualEndTime"] is not None

    r = client.post(f"/installations/{inst['InstallationID']}/cancel", json={"Reason": "x"}, headers=staff_headers)
    assert r.status_code == 409


def test_cancel_appends_reason(client, staff_headers, order):
    inst = client.post("/installations/from-order", json={"OrderID": order["OrderID"], "Notes": "二樓"},
                       headers=staff_headers).json()["data"]

    r = client.post(f"/installations/{inst['InstallationID']}/cancel", json={"Reason": "客戶改期"},
                    headers=staff_headers)
    data = r.json()["data"]
    assert data["Status"] == "cancelled"
    assert data["Notes"] == "二樓\n取消原因：客戶改期"

    r = client.patch(f"/installations/{inst['InstallationID']}/status", json={"Status": "scheduled"},
                     headers=staff_headers)
    assert r.status_code == 409


def test_update_syncs_items(client, staff_headers):
    inst = client.post("/installations", json={
        "CustomerName": "丙", "InstallationAddress": "高雄市",
        "Items": [{"ProductName": "書櫃"}, {"ProductName": "衣櫃"}],
    }, headers=staff_headers).json()["data"]
    keep = inst["Items"][0]["InstallationItemID"]

    r = client.put(f"/installations/{inst['InstallationID']}", json={"Items": [
        {"InstallationItemID": keep, "ProductName": "書櫃", "Quantity": 2},
        {"ProductName": "鞋櫃"},
    ]}, headers=staff_headers)
    items = r.json()["data"]["Items"]
    assert [(i["ProductName"], i["Quantity"]) for i in items] == [("書櫃", 2), ("鞋櫃", 1)]

    assert client.delete(f"/installations/{inst['InstallationID']}", headers=staff_headers).status_code == 200
    assert client.get(f"/installations/{inst['InstallationID']}", headers=staff_headers).status_code == 404
