from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.api import ok, dump, dump_list, page_meta
from ..core.db import get_db
from ..core.security import AdminOnly, AnyUser
from ..models import AppUser, Inventory, InventoryTransfer, Order, Purchase, Store
from ..schemas.store import StoreCreate, StoreUpdate, StoreRead

router = APIRouter(prefix="/stores", tags=["stores"])


def _get(db: Session, store_id: int) -> Store:
    s = db.get(Store, store_id)
    if not s:
        raise HTTPException(status_code=404, detail="Mağaza bulunamadı.")
    return s


def _save(db: Session, s: Store) -> Store:
    try:
        db.add(s)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail="mağaza adı zaten mevcut")
    db.refresh(s)
    return s


@router.get("")
def list_stores(
    active_only: bool = False,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    _: AppUser = Depends(AnyUser),
):
    q = db.query(Store)
    if active_only:
        q = q.filter(Store.IsActive == True)  # noqa: E712
    total = q.count()
    rows = q.order_by(Store.StoreID.asc()).offset(skip).limit(limit).all()
    return ok(dump_list(StoreRead, rows), page_meta(rows, total=total, skip=skip, limit=limit))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_store(payload: StoreCreate, db: Session = Depends(get_db), _: AppUser = Depends(AdminOnly)):
    s = _save(db, Store(**payload.model_dump()))
    return ok(dump(StoreRead, s), status_code=status.HTTP_201_CREATED)


@router.get("/{store_id}")
def get_store(store_id: int, db: Session = Depends(get_db), _: AppUser = Depends(AnyUser)):
    return ok(dump(StoreRead, _get(db, store_id)))


@router.put("/{store_id}")
def update_store(store_id: int, payload: StoreUpdate, db: Session = Depends(get_db), _: AppUser = Depends(AdminOnly)):
    s = _get(db, store_id)
    for k, v in payload.model_dump(exclude_unset=True).items():
        if v is not None:
            setattr(s, k, v)
    return ok(dump(StoreRead, _save(db, s)))


@router.delete("/{store_id}")
def delete_store(store_id: int, db: Session = Depends(get_db), _: AppUser = Depends(AdminOnly)):
    s = _get(db, store_id)
    if db.query(Inventory).filter(Inventory.StoreID == store_id).first():
        raise HTTPException(status_code=409, detail="Mağazada stok kaydı var, silinemez.")
    used = (
        db.query(Order.OrderID).filter(Order.StoreID == store_id).first()
        or db.query(Purchase.PurchaseID).filter(Purchase.StoreID == store_id).first()
        or db.query(InventoryTransfer.TransferID)
        .filter(or_(InventoryTransfer.FromStoreID == store_id, InventoryTransfer.ToStoreID == store_id))
        .first()
    )
    if used:
        raise HTTPException(status_code=409, detail="Mağaza sipariş, satın alma ya da transferde kullanılıyor.")
    db.delete(s)
    db.commit()
    return ok({"StoreID": store_id})
