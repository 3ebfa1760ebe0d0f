# backend/inventory_api/services/customer_service.py
from __future__ import annotations
from datetime import date
from typing import Any, Dict, List, Optional, Tuple
import logging

from fastapi import HTTPException, status
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ..models import Customer, CustomerAddress, Order
from .inventory_service import day_bounds, paginate

logger = logging.getLogger(__name__)

_FIELDS = (
    "Name", "Phone", "IsCompany", "TaxID", "IndustryType", "PaymentType",
    "ContactAddress", "PriorityLevel", "IsPriorityCustomer",
)


def get_customer(db: Session, customer_id: int) -> Customer:
    c = db.get(Customer, customer_id)
    if not c:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Müşteri bulunamadı.")
    return c


def _normalize_defaults(addresses: List[CustomerAddress]) -> None:
    """Adres varsa tam olarak bir varsayılan: hiç yoksa ilki, birden çoksa sonuncusu."""
    if not addresses:
        return
    defaults = [a for a in addresses if a.IsDefault]
    keep = defaults[-1] if defaults else addresses[0]
    for a in addresses:
        a.IsDefault = a is keep


def _sync_addresses(db: Session, customer: Customer, addresses: List[Dict[str, Any]]) -> None:
    existing = {a.AddressID: a for a in customer.addresses}
    kept: List[CustomerAddress] = []
    for data in addresses:
        aid = data.get("AddressID")
        if aid is not None:
            addr = existing.pop(aid, None)
            if addr is None:
                raise HTTPException(
                    status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                    detail=f"Adres bu müşteriye ait değil: {aid}",
                )
            addr.Address = data["Address"]
            addr.IsDefault = bool(data.get("IsDefault"))
        else:
            addr = CustomerAddress(Address=data["Address"], IsDefault=bool(data.get("IsDefault")))
            customer.addresses.append(addr)
        kept.append(addr)

    # Listede olmayanlar silinir
    for addr in existing.values():
        customer.addresses.remove(addr)
    _normalize_defaults(kept)


def create_customer(db: Session, *, data: Dict[str, Any]) -> Customer:
    c = Customer(**{k: data[k] for k in _FIELDS if k in data})
    try:
        db.add(c)
        _sync_addresses(db, c, data.get("Addresses") or [])
        db.commit()
        db.refresh(c)
        return c
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.exception("create_customer error (Name=%s)", data.get("Name"))
        raise HTTPException(status_code=500, detail=f"create_customer error: {type(e).__name__}: {e}")


def update_customer(db: Session, *, customer_id: int, data: Dict[str, Any]) -> Customer:
    c = get_customer(db, customer_id)
    try:
        for k in _FIELDS:
            if k in data and data[k] is not None:
                setattr(c, k, data[k])
        if data.get("Addresses") is not None:
            _sync_addresses(db, c, data["Addresses"])
        db.add(c)
        db.commit()
        db.refresh(c)
        return c
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.exception("update_customer error (CustomerID=%s)", customer_id)
        raise HTTPException(status_code=500, detail=f"update_customer error: {type(e).__name__}: {e}")


def _has_orders(db: Session, customer_id: int) -> bool:
    return db.query(Order.OrderID).filter(Order.CustomerID == customer_id).first() is not None


def delete_customer(db: Session, *, customer_id: int) -> None:
    c = get_customer(db, customer_id)
    if _has_orders(db, customer_id):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Siparişi olan müşteri silinemez.",
        )
    db.delete(c)
    db.commit()


def batch_delete_customers(db: Session, *, ids: List[int]) -> Dict[str, List[int]]:
    deleted, skipped = [], []
    for cid in ids:
        c = db.get(Customer, cid)
        if not c or _has_orders(db, cid):
            skipped.append(cid)
            continue
        db.delete(c)
        deleted.append(cid)
    db.commit()
    return {"deleted": deleted, "skipped": skipped}


def check_existence(db: Session, *, name: str) -> Dict[str, Any]:
    name = (name or "").strip()
    c = db.query(Customer).filter(Customer.Name == name).first() if name else None
    return {"exists": c is not None, "CustomerID": c.CustomerID if c else None}


def list_customers(
    db: Session,
    *,
    search: Optional[str] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
    skip: int = 0,
    limit: int = 100,
) -> Tuple[List[Customer], int]:
    q = db.query(Customer)
    if search:
        like = f"%{search.lower()}%"
        q = q.filter(or_(
            func.lower(Customer.Name).like(like),
            func.lower(func.coalesce(Customer.Phone, "")).like(like),
            func.lower(func.coalesce(Customer.TaxID, "")).like(like),
        ))
    s, e = day_bounds(start, end)
    if s:
        q = q.filter(Customer.CreatedAt >= s)
    if e:
        q = q.filter(Customer.CreatedAt < e)
    total = q.count()
    return paginate(q.order_by(Customer.CustomerID.desc()), skip, limit), total


def refresh_customer_totals(db: Session, customer_id: int) -> None:
    """Açık bakiye ve tahsil edilen toplamı siparişlerden yeniden hesapla (commit yok)."""
    c = db.get(Customer, customer_id)
    if not c:
        return
    db.flush()
    unpaid = 0
    completed = 0
    rows = (
        db.query(Order.GrandTotalCents, Order.PaidAmountCents)
        .filter(Order.CustomerID == customer_id, Order.ShippingStatus != "cancelled")
        .all()
    )
    for grand, paid in rows:
        unpaid += max(0, int(grand or 0) - int(paid or 0))
        completed += int(paid or 0)
    c.TotalUnpaidAmountCents = unpaid
    c.TotalCompletedAmountCents = completed
    db.add(c)
