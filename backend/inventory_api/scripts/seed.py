"""
Geliştirme tohum verisi:  python -m inventory_api.scripts.seed

Tekrar çalıştırılabilir; var olan kayıtlar atlanır.
"""
from contextlib import contextmanager
from decimal import Decimal

from sqlalchemy import select

from inventory_api.core.db import Base, SessionLocal, engine
from inventory_api.core.money import to_cents
from inventory_api.core.security import hash_password
from inventory_api.models import (
    AppUser, Store, Category, Attribute, AttributeValue, Product, ProductVariant,
    Inventory, Customer, CustomerAddress, Order, Purchase, Installation,
)
from inventory_api.services.inventory_service import add_stock
from inventory_api.services import order_service, purchase_service, installation_service

# ---------- küçük yardımcılar ----------

@contextmanager
def session_scope():
    """Tek seferlik session aç/kapat (hata olursa rollback)."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()

def get_one(db, model, **by):
    """Tekil alanlara göre satır getir (yoksa None)."""
    return db.execute(select(model).filter_by(**by)).scalars().first()

def get_or_create(db, model, unique_by: dict, defaults: dict | None = None):
    """unique_by ile ara, yoksa oluştur (idempotent)."""
    inst = get_one(db, model, **unique_by)
    if inst:
        return inst, False
    inst = model(**{**unique_by, **(defaults or {})})
    db.add(inst)
    db.flush()
    return inst, True

# ---------- tohum veriler ----------

STORES = [
    {"Name": "台北旗艦店", "Address": "台北市信義區松高路 11 號", "Phone": "02-2345-6789"},
    {"Name": "台中門市",   "Address": "台中市西屯區台灣大道三段 99 號", "Phone": "04-2255-8888"},
]

USERS = [
    {"Username": "admin",     "FullName": "系統管理員", "Role": "admin",     "password": "admin123"},
    {"Username": "staff",     "FullName": "門市人員",   "Role": "staff",     "password": "staff123"},
    {"Username": "viewer",    "FullName": "查詢帳號",   "Role": "viewer",    "password": "viewer123"},
    {"Username": "installer", "FullName": "安裝師傅",   "Role": "installer", "password": "install123"},
]

CATEGORIES = [
    {"Name": "客廳家具", "SortOrder": 1, "children": ["沙發", "茶几"]},
    {"Name": "臥室家具", "SortOrder": 2, "children": ["床架"]},
]

ATTRIBUTES = {
    "顏色": ["米白", "深灰"],
    "尺寸": ["雙人", "三人"],
}

# (ürün, kategori, [(sku, fiyat, maliyet, [değerler], {mağaza: adet})])
PRODUCTS = [
    ("北歐布沙發", "沙發", [
        ("SOFA-NB-W2", "18900", "9800", ["米白", "雙人"], {"台北旗艦店": 6, "台中門市": 2}),
        ("SOFA-NB-G3", "24900", "12800", ["深灰", "三人"], {"台北旗艦店": 1}),
    ]),
    ("實木茶几", "茶几", [
        ("TBL-OAK-01", "6800", "3200", [], {"台北旗艦店": 10, "台中門市": 4}),
    ]),
]

CUSTOMERS = [
    {"Name": "王小明", "Phone": "0912-345-678", "ContactAddress": "台北市大安區復興南路 100 號",
     "addresses": ["台北市大安區復興南路 100 號"]},
    {"Name": "林氏室內設計有限公司", "Phone": "02-8765-4321", "IsCompany": True, "TaxID": "12345678",
     "PriorityLevel": "high", "IsPriorityCustomer": True, "addresses": ["新北市板橋區文化路 1 號"]},
]


def seed_base():
    with session_scope() as db:
        print(">> Seeding: Store / AppUser")
        stores = {s["Name"]: get_or_create(db, Store, {"Name": s["Name"]}, defaults=s)[0] for s in STORES}
        for u in USERS:
            data = {k: v for k, v in u.items() if k != "password"}
            user, created = get_or_create(
                db, AppUser, {"Username": u["Username"]},
                defaults={**data, "IsActive": True, "HashedPassword": hash_password(u["password"])},
            )
            if created and u["Role"] == "staff":
                user.stores = list(stores.values())

        print(">> Seeding: Category / Attribute")
        for c in CATEGORIES:
            parent, _ = get_or_create(db, Category, {"Name": c["Name"]}, defaults={"SortOrder": c["SortOrder"]})
            for i, child in enumerate(c["children"], start=1):
                get_or_create(db, Category, {"Name": child}, defaults={"ParentID": parent.CategoryID, "SortOrder": i})
        for name, values in ATTRIBUTES.items():
            attr, _ = get_or_create(db, Attribute, {"Name": name})
            for v in values:
                get_or_create(db, AttributeValue, {"AttributeID": attr.AttributeID, "Value": v})

    with session_scope() as db:
        print(">> Seeding: Product / ProductVariant / Inventory")
        stores = {s.Name: s for s in db.query(Store).all()}
        values = {v.Value: v for v in db.query(AttributeValue).all()}
        admin = get_one(db, AppUser, Username="admin")
        for name, category, variants in PRODUCTS:
            cat = get_one(db, Category, Name=category)
            product, _ = get_or_create(db, Product, {"Name": name}, defaults={"CategoryID": cat.CategoryID if cat else None})
            for sku, price, cost, vals, stock in variants:
                if get_one(db, ProductVariant, Sku=sku):
                    continue
                v = ProductVariant(
                    Sku=sku,
                    PriceCents=to_cents(Decimal(price)),
                    CostPriceCents=to_cents(Decimal(cost)),
                    AverageCostCents=to_cents(Decimal(cost)),
                    TotalPurchasedQuantity=0,
                )
                v.attribute_values = [values[x] for x in vals if x in values]
                product.variants.append(v)
                db.flush()
                for store in stores.values():
                    qty = stock.get(store.Name, 0)
                    if qty:
                        add_stock(db, variant_id=v.VariantID, store_id=store.StoreID, quantity=qty,
                                  user_id=admin.UserID, notes="初始庫存")
                    else:
                        db.add(Inventory(VariantID=v.VariantID, StoreID=store.StoreID, Quantity=0))

        print(">> Seeding: Customer / CustomerAddress")
        for c in CUSTOMERS:
            data = {k: v for k, v in c.items() if k != "addresses"}
            customer, created = get_or_create(db, Customer, {"Name": c["Name"]}, defaults=data)
            if created:
                for i, addr in enumerate(c["addresses"]):
                    customer.addresses.append(CustomerAddress(Address=addr, IsDefault=(i == 0)))


def seed_flows():
    """Servisler kendi commit'ini yaptığı için ayrı session."""
    db = SessionLocal()
    try:
        admin = get_one(db, AppUser, Username="admin")
        installer = get_one(db, AppUser, Username="installer")
        store = get_one(db, Store, Name="台北旗艦店")
        customer = get_one(db, Customer, Name="王小明")
        company = get_one(db, Customer, Name="林氏室內設計有限公司")
        sofa = get_one(db, ProductVariant, Sku="SOFA-NB-W2")
        sofa3 = get_one(db, ProductVariant, Sku="SOFA-NB-G3")
        table = get_one(db, ProductVariant, Sku="TBL-OAK-01")

        if not db.query(Order).first():
            print(">> Seeding: Order (stoklu + ön sipariş)")
            order = order_service.create_order(db, data={
                "CustomerID": customer.CustomerID,
                "StoreID": store.StoreID,
                "ShippingFee": Decimal("500"),
                "PaymentMethod": "信用卡",
                "ShippingAddress": customer.ContactAddress,
                "Items": [
                    {"VariantID": sofa.VariantID, "Price": Decimal("18900"), "Quantity": 1},
                    {"VariantID": table.VariantID, "Price": Decimal("6800"), "Quantity": 1},
                ],
            }, user_id=admin.UserID)
            order_service.create_order(db, data={
                "CustomerID": company.CustomerID,
                "StoreID": store.StoreID,
                "FulfillmentPriority": "high",
                "Items": [
                    {"VariantID": sofa3.VariantID, "Price": Decimal("24900"), "Quantity": 3,
                     "IsBackorder": True, "IsStockedSale": False},
                ],
            }, user_id=admin.UserID)

            if not db.query(Installation).first():
                print(">> Seeding: Installation")
                installation_service.create_from_order(db, data={
                    "OrderID": order.OrderID,
                    "InstallerUserID": installer.UserID if installer else None,
                    "Notes": "請先電話聯繫",
                }, user_id=admin.UserID)

        if not db.query(Purchase).first():
            print(">> Seeding: Purchase")
            purchase_service.create_purchase(db, data={
                "StoreID": store.StoreID,
                "ShippingCost": Decimal("1200"),
                "Status": "confirmed",
                "Notes": "季度補貨",
                "Items": [
                    {"VariantID": sofa3.VariantID, "Quantity": 4, "UnitPrice": Decimal("12800")},
                    {"VariantID": table.VariantID, "Quantity": 6, "UnitPrice": Decimal("3200")},
                ],
            }, user_id=admin.UserID)
    finally:
        db.close()


def run():
    Base.metadata.create_all(bind=engine)
    seed_base()
    seed_flows()
    print("Seed tamam.")


if __name__ == "__main__":
    run()
