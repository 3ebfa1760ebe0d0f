from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from ..core.api import ok, dump, dump_list, list_meta, page_meta
from ..core.db import get_db
from ..core.security import AnyUser, Writer
from ..models import AppUser
from ..schemas.common import IdsIn
from ..schemas.order import (
    OrderCreate, OrderUpdate, OrderRead, OrderDetailRead, OrderItemRead,
    StockCheckIn, PaymentIn, ShipmentIn, OrderCancelIn, BatchStatusIn, ItemStatusIn,
)
from ..schemas.refund import RefundCreate, RefundRead
from ..services import order_service as svc
from ..services import refund_service

router = APIRouter(prefix="/orders", tags=["orders"])
item_router = APIRouter(prefix="/order-items", tags=["orders"])


@router.get("")
def list_orders(
    search: Optional[str] = None,
    shipping_status: Optional[str] = None,
    payment_status: Optional[str] = None,
    customer_id: Optional[int] = None,
    store_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    sort: str = Query("-CreatedAt", description="İzinli: CreatedAt, GrandTotal, OrderNumber (başında - ile azalan)"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
    _: AppUser = Depends(AnyUser),
):
    rows, total = svc.list_orders(
        db, search=search, shipping_status=shipping_status, payment_status=payment_status,
        customer_id=customer_id, store_id=store_id, start=start_date, end=end_date,
        skip=skip, limit=limit, sort=sort,
    )
    return ok(dump_list(OrderRead, rows), page_meta(rows, total=total, skip=skip, limit=limit))


@router.post("/check-stock-availability")
def check_stock(payload: StockCheckIn, db: Session = Depends(get_db), _: AppUser = Depends(AnyUser)):
    return ok(svc.check_stock_availability(
        db, store_id=payload.StoreID, items=[i.model_dump() for i in payload.Items]
    ))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_order(payload: OrderCreate, db: Session = Depends(get_db), current: AppUser = Depends(Writer)):
    order = svc.create_order(db, data=payload.model_dump(), user_id=current.UserID)
    return ok(dump(OrderDetailRead, order), status_code=status.HTTP_201_CREATED)


@router.post("/batch-delete")
def batch_delete(payload: IdsIn, db: Session = Depends(get_db), current: AppUser = Depends(Writer)):
    return ok(svc.batch_delete_orders(db, ids=payload.IDs, user_id=current.UserID))


@router.post("/batch-status")
def batch_status(payload: BatchStatusIn, db: Session = Depends(get_db), current: AppUser = Depends(Writer)):
    return ok(svc.batch_update_status(
        db, ids=payload.IDs, status_type=payload.StatusType, status_value=payload.StatusValue,
        user_id=current.UserID,
    ))


@router.get("/{order_id}")
def get_order(order_id: int, db: Session = Depends(get_db), _: AppUser = Depends(AnyUser)):
    return ok(dump(OrderDetailRead, svc.get_order(db, order_id)))


@router.put("/{order_id}")
def update_order(
    order_id: int, payload: OrderUpdate, db: Session = Depends(get_db), current: AppUser = Depends(Writer)
):
    order = svc.update_order(
        db, order_id=order_id, data=payload.model_dump(exclude_unset=True), user_id=current.UserID
    )
    return ok(dump(OrderDetailRead, order))


@router.delete("/{order_id}")
def delete_order(order_id: int, db: Session = Depends(get_db), current: AppUser = Depends(Writer)):
    svc.delete_order(db, order_id=order_id, user_id=current.UserID)
    return ok({"OrderID": order_id})


# ---- Ödeme / kargo / iptal ----
@router.post("/{order_id}/confirm-payment")
def confirm_payment(order_id: int, db: Session = Depends(get_db), current: AppUser = Depends(Writer)):
    return ok(dump(OrderDetailRead, svc.confirm_payment(db, order_id=order_id, user_id=current.UserID)))


@router.post("/{order_id}/add-payment")
def add_payment(order_id: int, payload: PaymentIn, db: Session = Depends(get_db), current: AppUser = Depends(Writer)):
    order = svc.add_payment(
        db,
        order_id=order_id,
        amount=payload.Amount,
        payment_method=payload.PaymentMethod,
        payment_date=payload.PaymentDate,
        notes=payload.Notes,
        user_id=current.UserID,
    )
    return ok(dump(OrderDetailRead, order))


@router.post("/{order_id}/create-shipment")
def create_shipment(
    order_id: int, payload: ShipmentIn, db: Session = Depends(get_db), current: AppUser = Depends(Writer)
):
    order = svc.create_shipment(
        db,
        order_id=order_id,
        tracking_number=payload.TrackingNumber,
        carrier=payload.Carrier,
        shipped_at=payload.ShippedAt,
        estimated_delivery_date=payload.EstimatedDeliveryDate,
        notes=payload.Notes,
        user_id=current.UserID,
    )
    return ok(dump(OrderDetailRead, order))


@router.post("/{order_id}/cancel")
def cancel_order(
    order_id: int, payload: OrderCancelIn, db: Session = Depends(get_db), current: AppUser = Depends(Writer)
):
    order = svc.cancel_order(db, order_id=order_id, reason=payload.Reason, user_id=current.UserID)
    return ok(dump(OrderDetailRead, order))


# ---- İadeler ----
@router.post("/{order_id}/refunds", status_code=status.HTTP_201_CREATED)
def create_refund(
    order_id: int, payload: RefundCreate, db: Session = Depends(get_db), current: AppUser = Depends(Writer)
):
    refund = refund_service.create_refund(
        db,
        order_id=order_id,
        reason=payload.Reason,
        notes=payload.Notes,
        should_restock=payload.ShouldRestock,
        items=[i.model_dump() for i in payload.Items],
        user_id=current.UserID,
    )
    return ok(dump(RefundRead, refund), status_code=status.HTTP_201_CREATED)


@router.get("/{order_id}/refunds")
def list_refunds(order_id: int, db: Session = Depends(get_db), _: AppUser = Depends(AnyUser)):
    rows = refund_service.list_refunds(db, order_id=order_id)
    return ok(dump_list(RefundRead, rows), list_meta(rows))


@router.get("/{order_id}/refunds/{refund_id}/restock-status")
def restock_status(order_id: int, refund_id: int, db: Session = Depends(get_db), _: AppUser = Depends(AnyUser)):
    refund = refund_service.get_refund(db, refund_id)
    if refund.OrderID != order_id:
        raise HTTPException(status_code=404, detail="İade bu siparişe ait değil.")
    return ok(refund_service.restock_status(db, refund_id=refund_id))


# ---- Kalem durumu ----
@item_router.patch("/{item_id}/status")
def update_item_status(
    item_id: int, payload: ItemStatusIn, db: Session = Depends(get_db), current: AppUser = Depends(Writer)
):
    item = svc.update_item_status(
        db, item_id=item_id, new_status=payload.Status, notes=payload.Notes, user_id=current.UserID
    )
    return ok(dump(OrderItemRead, item))
