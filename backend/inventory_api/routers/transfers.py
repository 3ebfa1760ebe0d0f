from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..core.api import ok, dump, dump_list, list_meta, page_meta
from ..core.db import get_db
from ..core.security import AnyUser, Writer
from ..models import AppUser
from ..schemas.inventory import (
    TransferCreate, TransferBatchIn, TransferStatusIn, TransferCancelIn, TransferRead,
)
from ..services import transfer_service as svc

router = APIRouter(prefix="/transfers", tags=["transfers"])


@router.get("")
def list_transfers(
    from_store_id: Optional[int] = None,
    to_store_id: Optional[int] = None,
    status_s: Optional[str] = Query(None, alias="status"),
    order_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    product_name: Optional[str] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
    _: AppUser = Depends(AnyUser),
):
    rows, total = svc.list_transfers(
        db, from_store_id=from_store_id, to_store_id=to_store_id, status_s=status_s, order_id=order_id,
        start=start_date, end=end_date, product_name=product_name, skip=skip, limit=limit,
    )
    return ok(dump_list(TransferRead, rows), page_meta(rows, total=total, skip=skip, limit=limit))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_transfer(payload: TransferCreate, db: Session = Depends(get_db), current: AppUser = Depends(Writer)):
    tr = svc.create_transfer(
        db,
        user_id=current.UserID,
        from_store_id=payload.FromStoreID,
        to_store_id=payload.ToStoreID,
        variant_id=payload.VariantID,
        quantity=payload.Quantity,
        status_s=payload.Status,
        notes=payload.Notes,
        order_id=payload.OrderID,
    )
    return ok(dump(TransferRead, tr), status_code=status.HTTP_201_CREATED)


@router.post("/batch", status_code=status.HTTP_201_CREATED)
def create_batch(payload: TransferBatchIn, db: Session = Depends(get_db), current: AppUser = Depends(Writer)):
    rows = svc.create_batch_transfers(
        db,
        transfers=[t.model_dump() for t in payload.Transfers],
        order_id=payload.OrderID,
        status_s=payload.Status,
        user_id=current.UserID,
    )
    return ok(dump_list(TransferRead, rows), list_meta(rows), status_code=status.HTTP_201_CREATED)


@router.get("/{transfer_id}")
def get_transfer(transfer_id: int, db: Session = Depends(get_db), _: AppUser = Depends(AnyUser)):
    return ok(dump(TransferRead, svc.get_transfer(db, transfer_id)))


@router.patch("/{transfer_id}/status")
def update_status(
    transfer_id: int, payload: TransferStatusIn, db: Session = Depends(get_db), current: AppUser = Depends(Writer)
):
    tr = svc.update_transfer_status(
        db, transfer_id=transfer_id, new_status=payload.Status, notes=payload.Notes, user_id=current.UserID
    )
    return ok(dump(TransferRead, tr))


@router.patch("/{transfer_id}/cancel")
def cancel(
    transfer_id: int, payload: TransferCancelIn, db: Session = Depends(get_db), current: AppUser = Depends(Writer)
):
    tr = svc.cancel_transfer(db, transfer_id=transfer_id, reason=payload.Reason, user_id=current.UserID)
    return ok(dump(TransferRead, tr))
