from datetime import date
from typing import Literal, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..core.api import ok, dump, dump_list, list_meta
from ..core.db import get_db
from ..core.security import AnyUser, Writer
from ..models import AppUser
from ..schemas.backorder import ConvertIn, TransferStatusIn, AllocationPreviewIn
from ..schemas.order import OrderItemRead
from ..schemas.purchase import PurchaseRead
from ..services import backorder_service as svc
from ..services import purchase_service

router = APIRouter(prefix="/backorders", tags=["backorders"])


@router.get("")
def list_backorders(
    store_id: Optional[int] = None,
    variant_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    group_by: Optional[Literal["variant", "order"]] = Query(None, description="variant | order"),
    group_by_variant: bool = Query(False, description="group_by=variant ile aynı"),
    db: Session = Depends(get_db),
    _: AppUser = Depends(AnyUser),
):
    rows = svc.list_backorders(
        db, store_id=store_id, variant_id=variant_id, start=start_date, end=end_date,
        group_by="variant" if group_by_variant and not group_by else group_by,
    )
    return ok(rows, list_meta(rows))


@router.get("/stats")
def stats(db: Session = Depends(get_db), _: AppUser = Depends(AnyUser)):
    return ok(svc.backorder_stats(db))


@router.get("/summary")
def summary(db: Session = Depends(get_db), _: AppUser = Depends(AnyUser)):
    rows = svc.backorder_summary(db)
    return ok(rows, list_meta(rows))


@router.post("/convert", status_code=status.HTTP_201_CREATED)
def convert(payload: ConvertIn, db: Session = Depends(get_db), current: AppUser = Depends(Writer)):
    rows = purchase_service.convert_backorders(
        db, item_ids=payload.ItemIDs, store_id=payload.StoreID, user_id=current.UserID
    )
    return ok(dump_list(PurchaseRead, rows), list_meta(rows), status_code=status.HTTP_201_CREATED)


@router.post("/update-transfer-status")
def update_transfer_status(
    payload: TransferStatusIn, db: Session = Depends(get_db), current: AppUser = Depends(Writer)
):
    item = svc.update_transfer_fulfillment(
        db,
        order_item_id=payload.OrderItemID,
        transfer_status=payload.Status,
        quantity=payload.Quantity,
        user_id=current.UserID,
    )
    return ok(dump(OrderItemRead, item))


# DB'ye yazmaz; gelen stoğun nasıl dağıtılacağını gösterir
@router.post("/allocation-preview")
def allocation_preview(payload: AllocationPreviewIn, db: Session = Depends(get_db), _: AppUser = Depends(AnyUser)):
    items = svc.pending_for_variant(db, payload.VariantID)
    return ok(svc.allocate(items, payload.Quantity, strategy=payload.Strategy))
