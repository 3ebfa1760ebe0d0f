from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..core.api import ok, dump, dump_list, list_meta, page_meta
from ..core.db import get_db
from ..core.security import AnyUser, Writer
from ..models import AppUser
from ..schemas.order import OrderItemRead
from ..schemas.purchase import (
    PurchaseCreate, PurchaseUpdate, PurchaseRead, PurchaseStatusIn, PartialReceiptIn,
    PurchaseNotesIn, ShippingCostIn, BindOrdersIn,
)
from ..services import purchase_service as svc

router = APIRouter(prefix="/purchases", tags=["purchases"])


@router.get("")
def list_purchases(
    order_number: Optional[str] = None,
    status_s: Optional[str] = Query(None, alias="status"),
    store_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    sort: str = Query(
        "-purchased_at",
        description="İzinli: order_number, purchased_at, total_amount, created_at (başında - ile azalan)",
    ),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
    _: AppUser = Depends(AnyUser),
):
    rows, total = svc.list_purchases(
        db, order_number=order_number, status_s=status_s, store_id=store_id,
        start=start_date, end=end_date, sort=sort, skip=skip, limit=limit,
    )
    return ok(dump_list(PurchaseRead, rows), page_meta(rows, total=total, skip=skip, limit=limit))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_purchase(payload: PurchaseCreate, db: Session = Depends(get_db), current: AppUser = Depends(Writer)):
    p = svc.create_purchase(db, data=payload.model_dump(), user_id=current.UserID)
    return ok(dump(PurchaseRead, p), status_code=status.HTTP_201_CREATED)


@router.get("/bindable-orders")
def bindable_orders(
    variant_ids: Optional[List[int]] = Query(None),
    store_id: Optional[int] = None,
    db: Session = Depends(get_db),
    _: AppUser = Depends(AnyUser),
):
    rows = svc.bindable_order_items(db, variant_ids=variant_ids, store_id=store_id)
    data = [
        {**dump(OrderItemRead, i), "OrderNumber": i.order.OrderNumber, "CustomerName": i.order.CustomerName}
        for i in rows
    ]
    return ok(data, list_meta(data))


@router.get("/{purchase_id}")
def get_purchase(purchase_id: int, db: Session = Depends(get_db), _: AppUser = Depends(AnyUser)):
    return ok(dump(PurchaseRead, svc.get_purchase(db, purchase_id)))


@router.put("/{purchase_id}")
def update_purchase(
    purchase_id: int, payload: PurchaseUpdate, db: Session = Depends(get_db), _: AppUser = Depends(Writer)
):
    p = svc.update_purchase(db, purchase_id=purchase_id, data=payload.model_dump(exclude_unset=True))
    return ok(dump(PurchaseRead, p))


@router.delete("/{purchase_id}")
def delete_purchase(purchase_id: int, db: Session = Depends(get_db), _: AppUser = Depends(Writer)):
    svc.delete_purchase(db, purchase_id=purchase_id)
    return ok({"PurchaseID": purchase_id})


@router.patch("/{purchase_id}/status")
def update_status(
    purchase_id: int, payload: PurchaseStatusIn, db: Session = Depends(get_db), current: AppUser = Depends(Writer)
):
    p = svc.update_status(db, purchase_id=purchase_id, new_status=payload.Status, user_id=current.UserID)
    return ok(dump(PurchaseRead, p))


@router.post("/{purchase_id}/partial-receipt")
def partial_receipt(
    purchase_id: int, payload: PartialReceiptIn, db: Session = Depends(get_db), current: AppUser = Depends(Writer)
):
    p = svc.partial_receipt(
        db,
        purchase_id=purchase_id,
        items=[i.model_dump() for i in payload.Items],
        notes=payload.Notes,
        user_id=current.UserID,
    )
    return ok(dump(PurchaseRead, p))


@router.patch("/{purchase_id}/cancel")
def cancel_purchase(purchase_id: int, db: Session = Depends(get_db), current: AppUser = Depends(Writer)):
    return ok(dump(PurchaseRead, svc.cancel_purchase(db, purchase_id=purchase_id, user_id=current.UserID)))


@router.patch("/{purchase_id}/notes")
def update_notes(
    purchase_id: int, payload: PurchaseNotesIn, db: Session = Depends(get_db), _: AppUser = Depends(Writer)
):
    return ok(dump(PurchaseRead, svc.update_notes(db, purchase_id=purchase_id, notes=payload.Notes)))


@router.patch("/{purchase_id}/shipping-cost")
def update_shipping_cost(
    purchase_id: int, payload: ShippingCostIn, db: Session = Depends(get_db), _: AppUser = Depends(Writer)
):
    p = svc.update_shipping_cost(db, purchase_id=purchase_id, shipping_cost=payload.ShippingCost)
    return ok(dump(PurchaseRead, p))


@router.post("/{purchase_id}/bind-orders")
def bind_orders(
    purchase_id: int, payload: BindOrdersIn, db: Session = Depends(get_db), _: AppUser = Depends(Writer)
):
    p = svc.bind_orders(db, purchase_id=purchase_id, order_item_ids=payload.OrderItemIDs)
    return ok(dump(PurchaseRead, p))
