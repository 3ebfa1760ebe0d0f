# backend/inventory_api/services/inventory_service.py
from __future__ import annotations
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional, Tuple
import logging
import os

from fastapi import HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..core.db import lock_row
from ..models import Inventory, InventoryTransaction, ProductVariant, Product, Store
from ..domain.constants import (
    TXN_ADDITION, TXN_REDUCTION, TXN_ADJUSTMENT, TXN_DEDUCT, TXN_RETURN, DEFAULT_LOW_STOCK_THRESHOLD,
)

logger = logging.getLogger(__name__)


def paginate(q, skip: int, limit: int):
    return q.offset(max(0, skip)).limit(min(max(1, limit), 500)).all()


def day_bounds(start: Optional[date], end: Optional[date]) -> Tuple[Optional[datetime], Optional[datetime]]:
    # end dahil: ertesi günün başına kadar
    s = datetime.combine(start, time.min) if start else None
    e = datetime.combine(end + timedelta(days=1), time.min) if end else None
    return s, e


def default_store_id(db: Session) -> int:
    """Mağazası olmayan siparişlerin stok hareketleri için kullanılan mağaza."""
    env_val = (os.getenv("DEFAULT_STORE_ID") or "").strip()
    if env_val.isdigit() and db.get(Store, int(env_val)):
        return int(env_val)
    store = (
        db.query(Store)
        .filter(Store.IsActive == True)  # noqa: E712
        .order_by(Store.StoreID.asc())
        .first()
    )
    if not store:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Varsayılan mağaza bulunamadı.",
        )
    return store.StoreID


# ---- Satır bul / oluştur (commit yok) ----
def get_or_create_inventory(db: Session, *, variant_id: int, store_id: int, lock: bool = True) -> Inventory:
    inv = (
        db.query(Inventory)
        .filter(Inventory.VariantID == variant_id, Inventory.StoreID == store_id)
        .one_or_none()
    )
    if inv is not None:
        return lock_row(db, Inventory, inv.InventoryID) if lock else inv

    if not db.get(ProductVariant, variant_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Ürün varyantı bulunamadı.")
    if not db.get(Store, store_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Mağaza bulunamadı.")

    inv = Inventory(
        VariantID=variant_id,
        StoreID=store_id,
        Quantity=0,
        LowStockThreshold=DEFAULT_LOW_STOCK_THRESHOLD,
    )
    db.add(inv)
    db.flush()
    return inv


def available_quantity(db: Session, *, variant_id: int, store_id: int) -> int:
    qty = (
        db.query(Inventory.Quantity)
        .filter(Inventory.VariantID == variant_id, Inventory.StoreID == store_id)
        .scalar()
    )
    return int(qty or 0)


def _record(
    db: Session,
    inv: Inventory,
    *,
    txn_type: str,
    new_quantity: int,
    user_id: Optional[int],
    notes: Optional[str],
    meta: Optional[Dict[str, Any]],
) -> InventoryTransaction:
    before = int(inv.Quantity or 0)
    inv.Quantity = int(new_quantity)
    tx = InventoryTransaction(
        InventoryID=inv.InventoryID,
        UserID=user_id,
        TxnType=txn_type,
        Quantity=int(new_quantity) - before,
        BeforeQuantity=before,
        AfterQuantity=int(new_quantity),
        Notes=notes,
        Meta=meta or None,
        OrderItemID=(meta or {}).get("order_item_id"),
    )
    db.add(inv)
    db.add(tx)
    db.flush()
    logger.info(
        "stock %s inv=%s variant=%s store=%s %s -> %s",
        txn_type, inv.InventoryID, inv.VariantID, inv.StoreID, before, new_quantity,
    )
    return tx


def add_stock(
    db: Session,
    *,
    variant_id: int,
    store_id: int,
    quantity: int,
    txn_type: str = TXN_ADDITION,
    user_id: Optional[int] = None,
    notes: Optional[str] = None,
    meta: Optional[Dict[str, Any]] = None,
) -> InventoryTransaction:
    """Stok girişi (commit çağırana ait)."""
    if quantity is None or quantity <= 0:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Quantity > 0 olmalı.",
        )
    inv = get_or_create_inventory(db, variant_id=variant_id, store_id=store_id)
    return _record(
        db, inv,
        txn_type=txn_type,
        new_quantity=int(inv.Quantity or 0) + int(quantity),
        user_id=user_id, notes=notes, meta=meta,
    )


def reduce_stock(
    db: Session,
    *,
    variant_id: int,
    store_id: int,
    quantity: int,
    txn_type: str = TXN_REDUCTION,
    user_id: Optional[int] = None,
    notes: Optional[str] = None,
    meta: Optional[Dict[str, Any]] = None,
) -> InventoryTransaction:
    """Stok çıkışı; yetersiz stokta 409 (commit çağırana ait)."""
    if quantity is None or quantity <= 0:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Quantity > 0 olmalı.",
        )
    inv = get_or_create_inventory(db, variant_id=variant_id, store_id=store_id)
    cur = int(inv.Quantity or 0)
    if cur < quantity:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Stok yetersiz. Mevcut: {cur}, istenen: {quantity}",
        )
    return _record(
        db, inv,
        txn_type=txn_type,
        new_quantity=cur - int(quantity),
        user_id=user_id, notes=notes, meta=meta,
    )


def item_stock_out(db: Session, *, order_item_id: int, variant_id: int) -> Dict[int, int]:
    """Sipariş kalemi için mağaza bazında depodan net çıkan adet (deduct - return)."""
    rows = (
        db.query(Inventory.StoreID, func.coalesce(func.sum(InventoryTransaction.Quantity), 0))
        .join(InventoryTransaction, InventoryTransaction.InventoryID == Inventory.InventoryID)
        .filter(
            InventoryTransaction.OrderItemID == order_item_id,
            InventoryTransaction.TxnType.in_((TXN_DEDUCT, TXN_RETURN)),
            Inventory.VariantID == variant_id,
        )
        .group_by(Inventory.StoreID)
        .all()
    )
    return {int(sid): -int(q) for sid, q in rows if int(q) < 0}


def set_stock(
    db: Session,
    *,
    variant_id: int,
    store_id: int,
    quantity: int,
    user_id: Optional[int] = None,
    notes: Optional[str] = None,
    meta: Optional[Dict[str, Any]] = None,
) -> InventoryTransaction:
    """Sayım düzeltmesi; değişim olmasa da 'adjustment' kaydı düşülür."""
    if quantity is None or quantity < 0:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Quantity >= 0 olmalı.",
        )
    inv = get_or_create_inventory(db, variant_id=variant_id, store_id=store_id)
    return _record(
        db, inv,
        txn_type=TXN_ADJUSTMENT,
        new_quantity=int(quantity),
        user_id=user_id, notes=notes, meta=meta,
    )


_ACTIONS = {"add": add_stock, "reduce": reduce_stock, "set": set_stock}


def adjust_inventory(
    db: Session,
    *,
    variant_id: int,
    store_id: int,
    action: str,
    quantity: int,
    user_id: Optional[int] = None,
    notes: Optional[str] = None,
    meta: Optional[Dict[str, Any]] = None,
) -> Tuple[Inventory, InventoryTransaction]:
    fn = _ACTIONS.get(action)
    if fn is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Action 'add' | 'reduce' | 'set' olmalı.",
        )
    try:
        tx = fn(
            db,
            variant_id=variant_id,
            store_id=store_id,
            quantity=quantity,
            user_id=user_id,
            notes=notes,
            meta=meta,
        )
        db.commit()
        db.refresh(tx)
        inv = db.get(Inventory, tx.InventoryID)
        return inv, tx
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.exception("adjust_inventory error (variant=%s, store=%s)", variant_id, store_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"adjust_inventory error: {type(e).__name__}: {e}",
        )


# ---- Listeleme / sorgu ----
def _inventory_query(db: Session):
    return (
        db.query(Inventory)
        .join(ProductVariant, ProductVariant.VariantID == Inventory.VariantID)
        .join(Product, Product.ProductID == ProductVariant.ProductID)
    )


def list_inventory(
    db: Session,
    *,
    store_id: Optional[int] = None,
    low_stock: bool = False,
    out_of_stock: bool = False,
    product_name: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
) -> Tuple[List[Inventory], int]:
    q = _inventory_query(db)
    if store_id:
        q = q.filter(Inventory.StoreID == store_id)
    if low_stock:
        q = q.filter(Inventory.Quantity > 0, Inventory.Quantity <= Inventory.LowStockThreshold)
    if out_of_stock:
        q = q.filter(Inventory.Quantity == 0)
    if product_name:
        like = f"%{product_name.lower()}%"
        q = q.filter(
            (func.lower(Product.Name).like(like)) | (func.lower(ProductVariant.Sku).like(like))
        )
    total = q.count()
    rows = paginate(q.order_by(Inventory.InventoryID.asc()), skip, limit)
    return rows, total


def get_inventory(db: Session, inventory_id: int) -> Inventory:
    inv = db.get(Inventory, inventory_id)
    if not inv:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Stok kaydı bulunamadı.")
    return inv


def recent_transactions(db: Session, inventory_id: int, limit: int = 10) -> List[InventoryTransaction]:
    return (
        db.query(InventoryTransaction)
        .filter(InventoryTransaction.InventoryID == inventory_id)
        .order_by(InventoryTransaction.TxnID.desc())
        .limit(limit)
        .all()
    )


def _txn_filters(q, *, txn_type=None, start=None, end=None):
    if txn_type:
        q = q.filter(InventoryTransaction.TxnType == txn_type)
    s, e = day_bounds(start, end)
    if s:
        q = q.filter(InventoryTransaction.CreatedAt >= s)
    if e:
        q = q.filter(InventoryTransaction.CreatedAt < e)
    return q


def inventory_history(
    db: Session,
    inventory_id: int,
    *,
    txn_type: Optional[str] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
    skip: int = 0,
    limit: int = 100,
) -> Tuple[List[InventoryTransaction], int]:
    get_inventory(db, inventory_id)
    q = db.query(InventoryTransaction).filter(InventoryTransaction.InventoryID == inventory_id)
    q = _txn_filters(q, txn_type=txn_type, start=start, end=end)
    total = q.count()
    return paginate(q.order_by(InventoryTransaction.TxnID.desc()), skip, limit), total


def list_transactions(
    db: Session,
    *,
    store_id: Optional[int] = None,
    txn_type: Optional[str] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
    product_name: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
) -> Tuple[List[InventoryTransaction], int]:
    q = (
        db.query(InventoryTransaction)
        .join(Inventory, Inventory.InventoryID == InventoryTransaction.InventoryID)
        .join(ProductVariant, ProductVariant.VariantID == Inventory.VariantID)
        .join(Product, Product.ProductID == ProductVariant.ProductID)
    )
    if store_id:
        q = q.filter(Inventory.StoreID == store_id)
    if product_name:
        q = q.filter(func.lower(Product.Name).like(f"%{product_name.lower()}%"))
    q = _txn_filters(q, txn_type=txn_type, start=start, end=end)
    total = q.count()
    return paginate(q.order_by(InventoryTransaction.TxnID.desc()), skip, limit), total


def sku_history(
    db: Session,
    sku: str,
    *,
    store_id: Optional[int] = None,
    skip: int = 0,
    limit: int = 100,
) -> Tuple[List[InventoryTransaction], int]:
    variant = db.query(ProductVariant).filter(ProductVariant.Sku == sku).one_or_none()
    if not variant:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"SKU bulunamadı: {sku}")
    q = (
        db.query(InventoryTransaction)
        .join(Inventory, Inventory.InventoryID == InventoryTransaction.InventoryID)
        .filter(Inventory.VariantID == variant.VariantID)
    )
    if store_id:
        q = q.filter(Inventory.StoreID == store_id)
    total = q.count()
    return paginate(q.order_by(InventoryTransaction.TxnID.desc()), skip, limit), total


def batch_check(db: Session, *, variant_ids: List[int], store_id: Optional[int] = None) -> List[Dict[str, Any]]:
    """Varyant başına (mağaza filtresiyle) toplam ve mağaza bazlı stok."""
    q = db.query(Inventory).filter(Inventory.VariantID.in_(variant_ids))
    if store_id:
        q = q.filter(Inventory.StoreID == store_id)
    by_variant: Dict[int, List[Inventory]] = {}
    for inv in q.all():
        by_variant.setdefault(inv.VariantID, []).append(inv)

    result = []
    for vid in variant_ids:
        rows = by_variant.get(vid, [])
        result.append({
            "VariantID": vid,
            "TotalQuantity": sum(int(r.Quantity or 0) for r in rows),
            "Stores": [
                {"StoreID": r.StoreID, "Quantity": int(r.Quantity or 0), "IsLowStock": r.IsLowStock}
                for r in rows
            ],
        })
    return result
