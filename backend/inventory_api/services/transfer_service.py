# backend/inventory_api/services/transfer_service.py
from __future__ import annotations
from datetime import date
from typing import Any, Dict, List, Optional, Tuple
import logging

from fastapi import HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..core.db import lock_row
from ..models import InventoryTransfer, Order, Product, ProductVariant, Store
from ..domain.constants import (
    TXN_TRANSFER_IN, TXN_TRANSFER_OUT, TXN_TRANSFER_CANCEL, TRANSFER_CANCEL_NOTE,
)
from .inventory_service import add_stock, reduce_stock, available_quantity, day_bounds, paginate

logger = logging.getLogger(__name__)


def _meta(tr: InventoryTransfer) -> Dict[str, Any]:
    meta = {"transfer_id": tr.TransferID, "from_store_id": tr.FromStoreID, "to_store_id": tr.ToStoreID}
    if tr.OrderID:
        meta["order_id"] = tr.OrderID
    return meta


def _ship_out(db: Session, tr: InventoryTransfer, user_id: Optional[int]) -> None:
    to_name = tr.to_store.Name if tr.to_store else tr.ToStoreID
    reduce_stock(
        db,
        variant_id=tr.VariantID,
        store_id=tr.FromStoreID,
        quantity=tr.Quantity,
        txn_type=TXN_TRANSFER_OUT,
        user_id=user_id,
        notes=f"Transfer #{tr.TransferID} -> {to_name}",
        meta=_meta(tr),
    )


def _receive_in(db: Session, tr: InventoryTransfer, user_id: Optional[int]) -> None:
    from_name = tr.from_store.Name if tr.from_store else tr.FromStoreID
    add_stock(
        db,
        variant_id=tr.VariantID,
        store_id=tr.ToStoreID,
        quantity=tr.Quantity,
        txn_type=TXN_TRANSFER_IN,
        user_id=user_id,
        notes=f"Transfer #{tr.TransferID} <- {from_name}",
        meta=_meta(tr),
    )


def _validate(db: Session, *, from_store_id: int, to_store_id: int, variant_id: int, quantity: int) -> None:
    if from_store_id == to_store_id:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Kaynak ve hedef mağaza farklı olmalı.",
        )
    if quantity is None or quantity <= 0:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Quantity > 0 olmalı.",
        )
    for sid in (from_store_id, to_store_id):
        if not db.get(Store, sid):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Mağaza bulunamadı: {sid}")
    if not db.get(ProductVariant, variant_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Ürün varyantı bulunamadı.")

    cur = available_quantity(db, variant_id=variant_id, store_id=from_store_id)
    if cur < quantity:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Kaynak mağazada stok yetersiz. Mevcut: {cur}, istenen: {quantity}",
        )


def build_transfer(
    db: Session,
    *,
    from_store_id: int,
    to_store_id: int,
    variant_id: int,
    quantity: int,
    status_s: str = "completed",
    notes: Optional[str] = None,
    order_id: Optional[int] = None,
    user_id: Optional[int] = None,
) -> InventoryTransfer:
    """Transferi oluşturur ve durumuna göre stok hareketlerini yazar (commit yok)."""
    _validate(db, from_store_id=from_store_id, to_store_id=to_store_id, variant_id=variant_id, quantity=quantity)

    tr = InventoryTransfer(
        FromStoreID=from_store_id,
        ToStoreID=to_store_id,
        VariantID=variant_id,
        Quantity=int(quantity),
        Status=status_s,
        Notes=notes,
        OrderID=order_id,
        UserID=user_id,
    )
    db.add(tr)
    db.flush()
    db.refresh(tr)

    if status_s in ("in_transit", "completed"):
        _ship_out(db, tr, user_id)
    if status_s == "completed":
        _receive_in(db, tr, user_id)
    return tr


def create_transfer(db: Session, *, user_id: Optional[int] = None, **fields) -> InventoryTransfer:
    try:
        tr = build_transfer(db, user_id=user_id, **fields)
        db.commit()
        db.refresh(tr)
        return tr
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.exception("create_transfer error")
        raise HTTPException(status_code=500, detail=f"create_transfer error: {type(e).__name__}: {e}")


def create_batch_transfers(
    db: Session,
    *,
    transfers: List[Dict[str, Any]],
    order_id: Optional[int] = None,
    status_s: str = "pending",
    user_id: Optional[int] = None,
) -> List[InventoryTransfer]:
    """Tümü ya da hiçbiri: bir kalem hata verirse hiçbiri kaydedilmez."""
    if order_id is not None and not db.get(Order, order_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Sipariş bulunamadı.")
    try:
        created = [
            build_transfer(
                db,
                from_store_id=t["FromStoreID"],
                to_store_id=t["ToStoreID"],
                variant_id=t["VariantID"],
                quantity=t["Quantity"],
                notes=t.get("Notes"),
                status_s=status_s,
                order_id=order_id,
                user_id=user_id,
            )
            for t in transfers
        ]
        db.commit()
        for tr in created:
            db.refresh(tr)
        return created
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.exception("create_batch_transfers error (OrderID=%s)", order_id)
        raise HTTPException(status_code=500, detail=f"create_batch_transfers error: {type(e).__name__}: {e}")


def _get_locked(db: Session, transfer_id: int) -> InventoryTransfer:
    tr = lock_row(db, InventoryTransfer, transfer_id)
    if not tr:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Transfer bulunamadı.")
    return tr


def update_transfer_status(
    db: Session,
    *,
    transfer_id: int,
    new_status: str,
    notes: Optional[str] = None,
    user_id: Optional[int] = None,
) -> InventoryTransfer:
    """
    pending    -> in_transit : kaynaktan düş
    pending    -> completed  : kaynaktan düş + hedefe ekle
    in_transit -> completed  : hedefe ekle
    completed / cancelled değiştirilemez (409). Aynı durum idempotent.
    """
    tr = _get_locked(db, transfer_id)

    if tr.Status == new_status:
        return tr
    if tr.Status in ("completed", "cancelled"):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"'{tr.Status}' durumundaki transfer değiştirilemez.",
        )
    if (tr.Status, new_status) not in (
        ("pending", "in_transit"), ("pending", "completed"), ("in_transit", "completed"),
    ):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"'{tr.Status}' durumundan '{new_status}' yapılamaz.",
        )

    try:
        if tr.Status == "pending":
            _ship_out(db, tr, user_id)
        if new_status == "completed":
            _receive_in(db, tr, user_id)

        tr.Status = new_status
        if notes:
            tr.Notes = f"{tr.Notes}\n{notes}" if tr.Notes else notes
        db.add(tr)
        db.commit()
        db.refresh(tr)
        return tr
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.exception("update_transfer_status error (TransferID=%s)", transfer_id)
        raise HTTPException(status_code=500, detail=f"update_transfer_status error: {type(e).__name__}: {e}")


def cancel_transfer_in_session(
    db: Session, tr: InventoryTransfer, *, reason: str, user_id: Optional[int] = None
) -> InventoryTransfer:
    if tr.Status == "in_transit":
        # Yoldaki mal kaynağa geri döner
        add_stock(
            db,
            variant_id=tr.VariantID,
            store_id=tr.FromStoreID,
            quantity=tr.Quantity,
            txn_type=TXN_TRANSFER_CANCEL,
            user_id=user_id,
            notes=f"Transfer #{tr.TransferID} iptal",
            meta={**_meta(tr), "reason": reason},
        )
    note = TRANSFER_CANCEL_NOTE.format(reason)
    tr.Notes = f"{note}\n{tr.Notes}" if tr.Notes else note
    tr.Status = "cancelled"
    db.add(tr)
    return tr


def cancel_transfer(
    db: Session, *, transfer_id: int, reason: str, user_id: Optional[int] = None
) -> InventoryTransfer:
    if not reason or not reason.strip():
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="İptal nedeni gerekli.",
        )
    tr = _get_locked(db, transfer_id)
    if tr.Status in ("completed", "cancelled"):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"'{tr.Status}' durumundaki transfer iptal edilemez.",
        )
    try:
        cancel_transfer_in_session(db, tr, reason=reason.strip(), user_id=user_id)
        db.commit()
        db.refresh(tr)
        return tr
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.exception("cancel_transfer error (TransferID=%s)", transfer_id)
        raise HTTPException(status_code=500, detail=f"cancel_transfer error: {type(e).__name__}: {e}")


def get_transfer(db: Session, transfer_id: int) -> InventoryTransfer:
    tr = db.get(InventoryTransfer, transfer_id)
    if not tr:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Transfer bulunamadı.")
    return tr


def list_transfers(
    db: Session,
    *,
    from_store_id: Optional[int] = None,
    to_store_id: Optional[int] = None,
    status_s: Optional[str] = None,
    order_id: Optional[int] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
    product_name: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
) -> Tuple[List[InventoryTransfer], int]:
    q = db.query(InventoryTransfer)
    if from_store_id:
        q = q.filter(InventoryTransfer.FromStoreID == from_store_id)
    if to_store_id:
        q = q.filter(InventoryTransfer.ToStoreID == to_store_id)
    if status_s:
        q = q.filter(InventoryTransfer.Status == status_s)
    if order_id:
        q = q.filter(InventoryTransfer.OrderID == order_id)
    s, e = day_bounds(start, end)
    if s:
        q = q.filter(InventoryTransfer.CreatedAt >= s)
    if e:
        q = q.filter(InventoryTransfer.CreatedAt < e)
    if product_name:
        q = (
            q.join(ProductVariant, ProductVariant.VariantID == InventoryTransfer.VariantID)
             .join(Product, Product.ProductID == ProductVariant.ProductID)
             .filter(func.lower(Product.Name).like(f"%{product_name.lower()}%"))
        )
    total = q.count()
    return paginate(q.order_by(InventoryTransfer.TransferID.desc()), skip, limit), total
