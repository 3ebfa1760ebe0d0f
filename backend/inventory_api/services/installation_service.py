# backend/inventory_api/services/installation_service.py
from __future__ import annotations
from datetime import date
from typing import Any, Dict, List, Optional, Tuple
import logging

from fastapi import HTTPException, status
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ..core.db import utcnow
from ..core.sequence import SequenceGenerator
from ..models import AppUser, Installation, InstallationItem, Order, OrderItem
from ..domain.constants import INSTALLATION_CANCEL_NOTE
from .inventory_service import paginate

logger = logging.getLogger(__name__)

INSTALLATION_NUMBERS = SequenceGenerator(
    Installation.InstallationNumber, prefix="IN-", date_format="%Y%m%d", width=4
)

_CLOSED = ("completed", "cancelled")
_HEADER_FIELDS = (
    "InstallerUserID", "CustomerName", "CustomerPhone", "InstallationAddress", "ScheduledDate", "Notes",
)


def _visible_to(inst: Installation, user: Optional[AppUser]) -> bool:
    # Kurulumcu yalnızca kendisine atananları görür
    if user is None or user.Role != "installer":
        return True
    return inst.InstallerUserID == user.UserID


def get_installation(db: Session, installation_id: int, *, user: Optional[AppUser] = None) -> Installation:
    inst = db.get(Installation, installation_id)
    if not inst or not _visible_to(inst, user):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Kurulum bulunamadı.")
    return inst


def _check_installer(db: Session, user_id: Optional[int]) -> None:
    if user_id is None:
        return
    u = db.get(AppUser, user_id)
    if not u or not u.IsActive:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Kurulumcu bulunamadı.")
    if u.Role != "installer":
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Kullanıcı 'installer' rolünde değil.",
        )


def _item_from(data: Dict[str, Any]) -> InstallationItem:
    return InstallationItem(
        OrderItemID=data.get("OrderItemID"),
        VariantID=data.get("VariantID"),
        ProductName=data["ProductName"],
        Sku=data.get("Sku"),
        Quantity=int(data.get("Quantity") or 1),
        Specifications=data.get("Specifications"),
        Notes=data.get("Notes"),
    )


def _sync_items(inst: Installation, items_in: List[Dict[str, Any]]) -> None:
    existing = {i.InstallationItemID: i for i in inst.items}
    for data in items_in:
        iid = data.get("InstallationItemID")
        if iid is None:
            inst.items.append(_item_from(data))
            continue
        item = existing.pop(iid, None)
        if item is None:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"Kalem bu kuruluma ait değil: {iid}",
            )
        for k in ("OrderItemID", "VariantID", "ProductName", "Sku", "Quantity", "Specifications", "Notes"):
            if k in data:
                setattr(item, k, data[k])
    for item in existing.values():
        inst.items.remove(item)


def _save(db: Session, inst: Installation, action: str) -> Installation:
    try:
        db.add(inst)
        db.commit()
        db.refresh(inst)
        return inst
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.exception("%s error (InstallationID=%s)", action, inst.InstallationID)
        raise HTTPException(status_code=500, detail=f"{action} error: {type(e).__name__}: {e}")


def create_installation(db: Session, *, data: Dict[str, Any], user_id: Optional[int] = None) -> Installation:
    if data.get("OrderID") and not db.get(Order, data["OrderID"]):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Sipariş bulunamadı.")
    _check_installer(db, data.get("InstallerUserID"))

    inst = Installation(
        InstallationNumber=INSTALLATION_NUMBERS.generate_next(db),
        OrderID=data.get("OrderID"),
        CreatedBy=user_id,
        Status="scheduled" if data.get("InstallerUserID") else "pending",
        **{k: data.get(k) for k in _HEADER_FIELDS},
    )
    for it in data.get("Items") or []:
        inst.items.append(_item_from(it))
    inst = _save(db, inst, "create_installation")
    logger.info("installation created %s", inst.InstallationNumber)
    return inst


def create_from_order(db: Session, *, data: Dict[str, Any], user_id: Optional[int] = None) -> Installation:
    """Sipariş kalemlerini, müşteri bilgisini ve (verilmediyse) teslimat adresini kopyalar."""
    order = db.get(Order, data["OrderID"])
    if not order:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Sipariş bulunamadı.")
    if order.ShippingStatus == "cancelled":
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="İptal edilmiş sipariş.")

    wanted = data.get("OrderItemIDs")
    order_items = {i.ItemID: i for i in order.items}
    if wanted:
        missing = [i for i in wanted if i not in order_items]
        if missing:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"Kalemler bu siparişe ait değil: {missing}",
            )
        chosen: List[OrderItem] = [order_items[i] for i in wanted]
    else:
        chosen = list(order.items)

    customer = order.customer
    address = data.get("InstallationAddress") or order.ShippingAddress
    if not address and customer is not None:
        address = customer.DefaultAddress or customer.ContactAddress
    if not address:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Kurulum adresi belirlenemedi.",
        )

    return create_installation(
        db,
        data={
            "OrderID": order.OrderID,
            "InstallerUserID": data.get("InstallerUserID"),
            "CustomerName": customer.Name if customer else "-",
            "CustomerPhone": customer.Phone if customer else None,
            "InstallationAddress": address,
            "ScheduledDate": data.get("ScheduledDate"),
            "Notes": data.get("Notes"),
            "Items": [
                {
                    "OrderItemID": i.ItemID,
                    "VariantID": i.VariantID,
                    "ProductName": i.ProductName,
                    "Sku": i.Sku,
                    "Quantity": i.Quantity,
                    "Specifications": i.CustomSpecifications,
                }
                for i in chosen
            ],
        },
        user_id=user_id,
    )


def update_installation(db: Session, *, installation_id: int, data: Dict[str, Any]) -> Installation:
    inst = get_installation(db, installation_id)
    if inst.Status in _CLOSED:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"'{inst.Status}' durumundaki kurulum güncellenemez.",
        )
    if data.get("InstallerUserID") is not None:
        _check_installer(db, data["InstallerUserID"])
    for k in _HEADER_FIELDS:
        if data.get(k) is not None:
            setattr(inst, k, data[k])
    if data.get("Items") is not None:
        _sync_items(inst, data["Items"])
    return _save(db, inst, "update_installation")


def assign_installer(
    db: Session, *, installation_id: int, installer_user_id: int, scheduled_date: Optional[date] = None
) -> Installation:
    inst = get_installation(db, installation_id)
    if inst.Status in _CLOSED:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"'{inst.Status}' durumundaki kuruluma atama yapılamaz.",
        )
    _check_installer(db, installer_user_id)
    inst.InstallerUserID = installer_user_id
    if scheduled_date:
        inst.ScheduledDate = scheduled_date
    if inst.Status == "pending":
        inst.Status = "scheduled"
    return _save(db, inst, "assign_installer")


def _apply_status(inst: Installation, new_status: str) -> None:
    now = utcnow()
    if new_status == "in_progress" and not inst.ActualStartTime:
        inst.ActualStartTime = now
    if new_status == "completed":
        inst.ActualStartTime = inst.ActualStartTime or now
        inst.ActualEndTime = inst.ActualEndTime or now
    inst.Status = new_status


def update_status(
    db: Session, *, installation_id: int, new_status: str, user: Optional[AppUser] = None
) -> Installation:
    inst = get_installation(db, installation_id, user=user)
    if inst.Status == new_status:
        return inst
    if inst.Status in _CLOSED:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"'{inst.Status}' durumundaki kurulumun durumu değiştirilemez.",
        )
    _apply_status(inst, new_status)
    return _save(db, inst, "update_installation_status")


def cancel_installation(db: Session, *, installation_id: int, reason: str) -> Installation:
    inst = get_installation(db, installation_id)
    if inst.Status in _CLOSED:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"'{inst.Status}' durumundaki kurulum iptal edilemez.",
        )
    note = INSTALLATION_CANCEL_NOTE.format(reason.strip())
    inst.Notes = f"{inst.Notes}\n{note}" if inst.Notes else note
    inst.Status = "cancelled"
    return _save(db, inst, "cancel_installation")


def delete_installation(db: Session, *, installation_id: int) -> None:
    inst = get_installation(db, installation_id)
    db.delete(inst)
    db.commit()


def update_item_status(
    db: Session, *, item_id: int, new_status: str, user: Optional[AppUser] = None
) -> InstallationItem:
    item = db.get(InstallationItem, item_id)
    if not item or not _visible_to(item.installation, user):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Kurulum kalemi bulunamadı.")
    inst = item.installation
    if inst.Status == "cancelled":
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="İptal edilmiş kurulum.")

    item.Status = new_status
    if new_status == "completed" and all(i.Status == "completed" for i in inst.items) and inst.Status != "completed":
        _apply_status(inst, "completed")
        logger.info("installation %s completed (all items done)", inst.InstallationNumber)
    db.add(inst)
    db.commit()
    db.refresh(item)
    return item


def list_installations(
    db: Session,
    *,
    user: Optional[AppUser] = None,
    status_s: Optional[str] = None,
    installer_user_id: Optional[int] = None,
    order_id: Optional[int] = None,
    search: Optional[str] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
    skip: int = 0,
    limit: int = 100,
) -> Tuple[List[Installation], int]:
    q = db.query(Installation)
    if user is not None and user.Role == "installer":
        q = q.filter(Installation.InstallerUserID == user.UserID)
    if status_s:
        q = q.filter(Installation.Status == status_s)
    if installer_user_id:
        q = q.filter(Installation.InstallerUserID == installer_user_id)
    if order_id:
        q = q.filter(Installation.OrderID == order_id)
    if search:
        like = f"%{search.lower()}%"
        q = q.filter(or_(
            func.lower(Installation.InstallationNumber).like(like),
            func.lower(Installation.CustomerName).like(like),
            func.lower(Installation.InstallationAddress).like(like),
        ))
    if start:
        q = q.filter(Installation.ScheduledDate >= start)
    if end:
        q = q.filter(Installation.ScheduledDate <= end)
    total = q.count()
    return paginate(q.order_by(Installation.InstallationID.desc()), skip, limit), total


def installer_schedule(
    db: Session, *, installer_user_id: int, start: date, end: date
) -> List[Installation]:
    return (
        db.query(Installation)
        .filter(
            Installation.InstallerUserID == installer_user_id,
            Installation.ScheduledDate >= start,
            Installation.ScheduledDate <= end,
            Installation.Status != "cancelled",
        )
        .order_by(Installation.ScheduledDate.asc(), Installation.InstallationID.asc())
        .all()
    )
