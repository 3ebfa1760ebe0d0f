# backend/inventory_api/services/catalog_service.py
from __future__ import annotations
from typing import Any, Dict, List, Optional, Tuple
import logging

from fastapi import HTTPException, status
from sqlalchemy import func, or_
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import Session

from ..core.money import to_cents
from ..models import (
    Attribute, AttributeValue, Category, Inventory, InventoryTransfer, OrderItem, Product, ProductVariant,
    PurchaseItem, Store,
)
from ..domain.constants import DEFAULT_LOW_STOCK_THRESHOLD
from .inventory_service import paginate

logger = logging.getLogger(__name__)


def _commit(db: Session, action: str, obj=None):
    try:
        db.commit()
        if obj is not None:
            db.refresh(obj)
        return obj
    except (IntegrityError, DBAPIError) as e:
        db.rollback()
        msg = str(getattr(e, "orig", e))
        raise HTTPException(status_code=400, detail=f"db_error: {msg}")
    except Exception as e:
        db.rollback()
        logger.exception("%s error", action)
        raise HTTPException(status_code=500, detail=f"{action} error: {type(e).__name__}: {e}")


# ---- Kategoriler ----
def get_category(db: Session, category_id: int) -> Category:
    c = db.get(Category, category_id)
    if not c:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Kategori bulunamadı.")
    return c


def _check_parent(db: Session, category_id: Optional[int], parent_id: Optional[int], pending=None) -> None:
    """Kategori kendi atası olamaz. pending: toplu sıralamada henüz yazılmamış ParentID'ler."""
    if parent_id is None:
        return
    pending = pending or {}
    seen = set()
    cur = parent_id
    while cur is not None:
        if category_id is not None and cur == category_id:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="Kategori kendi alt kategorisine bağlanamaz.",
            )
        if cur in seen:
            break
        seen.add(cur)
        node = db.get(Category, cur)
        if node is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Üst kategori bulunamadı: {cur}")
        cur = pending.get(cur, node.ParentID)


def list_categories(db: Session) -> List[Category]:
    return db.query(Category).order_by(Category.SortOrder.asc(), Category.CategoryID.asc()).all()


def category_tree(db: Session) -> List[Dict[str, Any]]:
    rows = list_categories(db)
    nodes = {
        c.CategoryID: {
            "CategoryID": c.CategoryID, "Name": c.Name, "Description": c.Description,
            "ParentID": c.ParentID, "SortOrder": c.SortOrder, "Children": [],
        }
        for c in rows
    }
    roots = []
    for c in rows:
        node = nodes[c.CategoryID]
        if c.ParentID in nodes:
            nodes[c.ParentID]["Children"].append(node)
        else:
            roots.append(node)
    return roots


def create_category(db: Session, *, data: Dict[str, Any]) -> Category:
    _check_parent(db, None, data.get("ParentID"))
    c = Category(**data)
    db.add(c)
    return _commit(db, "create_category", c)


def update_category(db: Session, *, category_id: int, data: Dict[str, Any]) -> Category:
    c = get_category(db, category_id)
    if "ParentID" in data:
        _check_parent(db, category_id, data["ParentID"])
    for k, v in data.items():
        setattr(c, k, v)
    db.add(c)
    return _commit(db, "update_category", c)


def delete_category(db: Session, *, category_id: int) -> None:
    c = get_category(db, category_id)
    if c.children:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Alt kategorisi olan kategori silinemez.")
    # Ürünler kategorisiz kalır
    for p in list(c.products):
        p.CategoryID = None
    db.delete(c)
    _commit(db, "delete_category")


def reorder_categories(db: Session, *, items: List[Dict[str, Any]]) -> List[Category]:
    pending = {it["CategoryID"]: it.get("ParentID") for it in items}
    for it in items:
        get_category(db, it["CategoryID"])
        _check_parent(db, it["CategoryID"], it.get("ParentID"), pending)
    for it in items:
        c = db.get(Category, it["CategoryID"])
        c.ParentID = it.get("ParentID")
        c.SortOrder = it["SortOrder"]
        db.add(c)
    _commit(db, "reorder_categories")
    return list_categories(db)


# ---- Özellikler ----
def get_attribute(db: Session, attribute_id: int) -> Attribute:
    a = db.get(Attribute, attribute_id)
    if not a:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Özellik bulunamadı.")
    return a


def get_value(db: Session, value_id: int) -> AttributeValue:
    v = db.get(AttributeValue, value_id)
    if not v:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Özellik değeri bulunamadı.")
    return v


def create_attribute(db: Session, *, name: str) -> Attribute:
    if db.query(Attribute).filter(Attribute.Name == name).first():
        raise HTTPException(status_code=400, detail="Özellik adı zaten mevcut.")
    a = Attribute(Name=name)
    db.add(a)
    return _commit(db, "create_attribute", a)


def update_attribute(db: Session, *, attribute_id: int, name: str) -> Attribute:
    a = get_attribute(db, attribute_id)
    a.Name = name
    db.add(a)
    return _commit(db, "update_attribute", a)


def delete_attribute(db: Session, *, attribute_id: int) -> None:
    a = get_attribute(db, attribute_id)
    db.delete(a)
    _commit(db, "delete_attribute")


def add_value(db: Session, *, attribute_id: int, value: str) -> AttributeValue:
    a = get_attribute(db, attribute_id)
    if any(v.Value == value for v in a.values):
        raise HTTPException(status_code=400, detail="Değer zaten mevcut.")
    v = AttributeValue(Value=value)
    a.values.append(v)
    return _commit(db, "add_value", v)


def update_value(db: Session, *, value_id: int, value: str) -> AttributeValue:
    v = get_value(db, value_id)
    v.Value = value
    db.add(v)
    return _commit(db, "update_value", v)


def delete_value(db: Session, *, value_id: int) -> None:
    v = get_value(db, value_id)
    db.delete(v)
    _commit(db, "delete_value")


# ---- Ürünler ----
def get_product(db: Session, product_id: int) -> Product:
    p = db.get(Product, product_id)
    if not p:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Ürün bulunamadı.")
    return p


def _attributes(db: Session, ids: List[int]) -> List[Attribute]:
    rows = db.query(Attribute).filter(Attribute.AttributeID.in_(ids)).all() if ids else []
    missing = set(ids) - {a.AttributeID for a in rows}
    if missing:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Özellik bulunamadı: {sorted(missing)}")
    return rows


def _values(db: Session, ids: List[int]) -> List[AttributeValue]:
    rows = db.query(AttributeValue).filter(AttributeValue.ValueID.in_(ids)).all() if ids else []
    missing = set(ids) - {v.ValueID for v in rows}
    if missing:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Özellik değeri bulunamadı: {sorted(missing)}",
        )
    return rows


def _check_skus(db: Session, variants: List[Dict[str, Any]], product_id: Optional[int] = None) -> None:
    skus = [v["Sku"].strip() for v in variants]
    if len(skus) != len(set(skus)):
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="SKU'lar benzersiz olmalı.")
    q = db.query(ProductVariant).filter(ProductVariant.Sku.in_(skus))
    if product_id is not None:
        q = q.filter(ProductVariant.ProductID != product_id)
    taken = [v.Sku for v in q.all()]
    if taken:
        raise HTTPException(status_code=400, detail=f"SKU zaten mevcut: {taken}")


def _apply_variant(db: Session, v: ProductVariant, data: Dict[str, Any]) -> None:
    v.Sku = data["Sku"].strip()
    v.PriceCents = to_cents(data.get("Price"))
    v.CostPriceCents = to_cents(data.get("CostPrice"))
    v.attribute_values = _values(db, data.get("AttributeValueIDs") or [])


def _zero_inventories(db: Session, variant: ProductVariant) -> None:
    for s in db.query(Store).filter(Store.IsActive == True).all():  # noqa: E712
        variant.inventories.append(Inventory(
            StoreID=s.StoreID, Quantity=0, LowStockThreshold=DEFAULT_LOW_STOCK_THRESHOLD,
        ))


def create_product(db: Session, *, data: Dict[str, Any]) -> Product:
    """Ürün + varyantlar tek işlemde; istenirse her mağaza için sıfır stok satırı."""
    if data.get("CategoryID"):
        get_category(db, data["CategoryID"])
    _check_skus(db, data["Variants"])

    p = Product(Name=data["Name"], Description=data.get("Description"), CategoryID=data.get("CategoryID"))
    p.attributes = _attributes(db, data.get("AttributeIDs") or [])
    db.add(p)
    for vd in data["Variants"]:
        v = ProductVariant(AverageCostCents=0, TotalPurchasedQuantity=0)
        _apply_variant(db, v, vd)
        v.AverageCostCents = v.CostPriceCents
        p.variants.append(v)
        if data.get("CreateInventory", True):
            _zero_inventories(db, v)
    p = _commit(db, "create_product", p)
    logger.info("product created %s variants=%s", p.ProductID, len(p.variants))
    return p


def _has_stock_or_usage(db: Session, v: ProductVariant) -> bool:
    if any(int(i.Quantity or 0) > 0 for i in v.inventories):
        return True
    for col in (OrderItem.VariantID, PurchaseItem.VariantID, InventoryTransfer.VariantID):
        if db.query(col).filter(col == v.VariantID).first() is not None:
            return True
    return False


def update_product(db: Session, *, product_id: int, data: Dict[str, Any]) -> Product:
    p = get_product(db, product_id)
    if data.get("CategoryID"):
        get_category(db, data["CategoryID"])
    for k in ("Name", "Description", "CategoryID"):
        if data.get(k) is not None:
            setattr(p, k, data[k])
    if data.get("AttributeIDs") is not None:
        p.attributes = _attributes(db, data["AttributeIDs"])

    if data.get("Variants") is not None:
        _check_skus(db, data["Variants"], product_id=product_id)
        keep = {vd.get("VariantID") for vd in data["Variants"]}
        for v in p.variants:
            if v.VariantID not in keep and _has_stock_or_usage(db, v):
                db.rollback()
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail=f"Stoğu ya da hareketi olan varyant silinemez: {v.Sku}",
                )
        existing = {v.VariantID: v for v in p.variants}
        for vd in data["Variants"]:
            vid = vd.get("VariantID")
            if vid is None:
                v = ProductVariant(AverageCostCents=0, TotalPurchasedQuantity=0)
                _apply_variant(db, v, vd)
                v.AverageCostCents = v.CostPriceCents
                p.variants.append(v)
                _zero_inventories(db, v)
                continue
            v = existing.pop(vid, None)
            if v is None:
                raise HTTPException(
                    status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                    detail=f"Varyant bu ürüne ait değil: {vid}",
                )
            _apply_variant(db, v, vd)
        for v in existing.values():
            p.variants.remove(v)
    db.add(p)
    return _commit(db, "update_product", p)


def delete_product(db: Session, *, product_id: int) -> None:
    p = get_product(db, product_id)
    for v in p.variants:
        if _has_stock_or_usage(db, v):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Stoğu ya da hareketi olan ürün silinemez ({v.Sku}).",
            )
    db.delete(p)
    _commit(db, "delete_product")


def batch_delete_products(db: Session, *, ids: List[int]) -> Dict[str, Any]:
    deleted, skipped = [], []
    for pid in ids:
        p = db.get(Product, pid)
        if not p:
            skipped.append({"ProductID": pid, "reason": "bulunamadı"})
            continue
        if any(_has_stock_or_usage(db, v) for v in p.variants):
            skipped.append({"ProductID": pid, "reason": "stok/hareket var"})
            continue
        db.delete(p)
        deleted.append(pid)
    _commit(db, "batch_delete_products")
    return {"deleted": deleted, "skipped": skipped}


def list_products(
    db: Session,
    *,
    search: Optional[str] = None,
    category_id: Optional[int] = None,
    skip: int = 0,
    limit: int = 100,
) -> Tuple[List[Product], int]:
    q = db.query(Product)
    if search:
        like = f"%{search.lower()}%"
        sku_match = (
            db.query(ProductVariant.ProductID)
            .filter(func.lower(ProductVariant.Sku).like(like))
        )
        q = q.filter(or_(func.lower(Product.Name).like(like), Product.ProductID.in_(sku_match)))
    if category_id:
        q = q.filter(Product.CategoryID == category_id)
    total = q.count()
    return paginate(q.order_by(Product.ProductID.desc()), skip, limit), total


# ---- Varyantlar ----
def get_variant(db: Session, variant_id: int) -> ProductVariant:
    v = db.get(ProductVariant, variant_id)
    if not v:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Ürün varyantı bulunamadı.")
    return v


def variant_stock(v: ProductVariant) -> List[Dict[str, Any]]:
    return [
        {
            "InventoryID": i.InventoryID,
            "StoreID": i.StoreID,
            "StoreName": i.StoreName,
            "Quantity": int(i.Quantity or 0),
            "LowStockThreshold": int(i.LowStockThreshold or 0),
        }
        for i in sorted(v.inventories, key=lambda i: i.StoreID)
    ]


def list_variants(
    db: Session,
    *,
    search: Optional[str] = None,
    product_id: Optional[int] = None,
    skip: int = 0,
    limit: int = 100,
) -> Tuple[List[ProductVariant], int]:
    q = db.query(ProductVariant).join(Product, Product.ProductID == ProductVariant.ProductID)
    if search:
        like = f"%{search.lower()}%"
        q = q.filter(or_(func.lower(ProductVariant.Sku).like(like), func.lower(Product.Name).like(like)))
    if product_id:
        q = q.filter(ProductVariant.ProductID == product_id)
    total = q.count()
    return paginate(q.order_by(ProductVariant.VariantID.asc()), skip, limit), total
