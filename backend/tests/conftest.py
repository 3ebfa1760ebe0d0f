import os

# Uygulama importundan önce: bellek içi SQLite
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.pop("DEFAULT_STORE_ID", None)

import pytest
from fastapi.testclient import TestClient

from inventory_api.core.db import Base, engine, SessionLocal, get_db
from inventory_api.core.money import to_cents
from inventory_api.core.security import hash_password, create_access_token
from inventory_api.main import app
from inventory_api.models import AppUser, Store, Product, ProductVariant, Customer
from inventory_api.services.inventory_service import add_stock, available_quantity

PASSWORD = "secret123"
_HASH = {}


def _password_hash() -> str:
    # bcrypt yavaş; tek sefer
    if "value" not in _HASH:
        _HASH["value"] = hash_password(PASSWORD)
    return _HASH["value"]


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


# ---- Kullanıcılar ----
@pytest.fixture
def make_user(db):
    def _make(username: str, role: str = "viewer", is_active: bool = True) -> AppUser:
        user = AppUser(
            Username=username,
            FullName=username.title(),
            Role=role,
            IsActive=is_active,
            HashedPassword=_password_hash(),
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make


def bearer(user: AppUser) -> dict:
    return {"Authorization": f"Bearer {create_access_token(sub=user.Username, role=user.Role)}"}


@pytest.fixture
def admin(make_user):
    return make_user("admin", "admin")


@pytest.fixture
def admin_headers(admin):
    return bearer(admin)


@pytest.fixture
def staff_headers(make_user):
    return bearer(make_user("staff", "staff"))


@pytest.fixture
def viewer_headers(make_user):
    return bearer(make_user("viewer", "viewer"))


# ---- Ana veriler ----
@pytest.fixture
def stores(db):
    rows = [Store(Name="台北旗艦店"), Store(Name="台中門市")]
    db.add_all(rows)
    db.commit()
    for s in rows:
        db.refresh(s)
    return rows


@pytest.fixture
def make_variant(db):
    def _make(sku: str = "SKU-1", price="100", cost="60", stock=None, name=None) -> ProductVariant:
        product = Product(Name=name or f"Ürün {sku}")
        variant = ProductVariant(
            Sku=sku,
            PriceCents=to_cents(price),
            CostPriceCents=to_cents(cost),
            AverageCostCents=to_cents(cost),
            TotalPurchasedQuantity=0,
        )
        product.variants.append(variant)
        db.add(product)
        db.flush()
        for store_id, qty in (stock or {}).items():
            add_stock(db, variant_id=variant.VariantID, store_id=store_id, quantity=qty, notes="test")
        db.commit()
        db.refresh(variant)
        return variant
    return _make


@pytest.fixture
def make_customer(db):
    def _make(name: str = "王小明", **fields) -> Customer:
        c = Customer(Name=name, ContactAddress=fields.pop("ContactAddress", "台北市大安區"), **fields)
        db.add(c)
        db.commit()
        db.refresh(c)
        return c
    return _make


@pytest.fixture
def customer(make_customer):
    return make_customer()


@pytest.fixture
def stock_of(db):
    def _stock(variant_id: int, store_id: int) -> int:
        db.expire_all()
        return available_quantity(db, variant_id=variant_id, store_id=store_id)
    return _stock


@pytest.fixture
def headers_for():
    return bearer
