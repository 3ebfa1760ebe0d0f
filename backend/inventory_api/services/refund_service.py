# backend/inventory_api/services/refund_service.py
from __future__ import annotations
from decimal import Decimal
from typing import Any, Dict, List, Optional
import logging

from fastapi import HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..core.money import round_cents, from_cents
from ..models import Order, OrderItem, Refund, RefundItem, InventoryTransaction
from ..domain.constants import TXN_RETURN, REASON_REFUND_RESTOCK
from .order_service import get_order, add_history, return_item_stock
from .customer_service import refresh_customer_totals

logger = logging.getLogger(__name__)


def refunded_quantity(db: Session, order_item_id: int) -> int:
    qty = (
        db.query(func.coalesce(func.sum(RefundItem.Quantity), 0))
        .filter(RefundItem.OrderItemID == order_item_id)
        .scalar()
    )
    return int(qty or 0)


def refund_subtotal_cents(item: OrderItem, refund_qty: int) -> int:
    """((fiyat*adet - kalem indirimi) / adet) * iade adedi, kuruşa yuvarlanır."""
    qty = int(item.Quantity or 0)
    if qty <= 0:
        return 0
    line = Decimal(int(item.PriceCents or 0) * qty - int(item.DiscountAmountCents or 0))
    return round_cents(line / Decimal(qty) * Decimal(int(refund_qty)))


def _check_eligibility(order: Order) -> None:
    if order.PaymentStatus in ("pending", "unpaid"):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Ödenmemiş sipariş için iade yapılamaz.",
        )
    if order.ShippingStatus == "cancelled":
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="İptal edilmiş sipariş için iade yapılamaz.",
        )
    if int(order.PaidAmountCents or 0) <= 0:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Siparişte iade edilecek ödeme yok.",
        )


def create_refund(
    db: Session,
    *,
    order_id: int,
    reason: str,
    items: List[Dict[str, Any]],
    notes: Optional[str] = None,
    should_restock: bool = False,
    user_id: Optional[int] = None,
) -> Refund:
    order = get_order(db, order_id, lock=True)
    _check_eligibility(order)

    order_items = {i.ItemID: i for i in order.items}
    requested: Dict[int, int] = {}
    for it in items:
        requested[it["OrderItemID"]] = requested.get(it["OrderItemID"], 0) + int(it["Quantity"])

    for item_id, qty in requested.items():
        item = order_items.get(item_id)
        if item is None:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"Kalem bu siparişe ait değil: {item_id}",
            )
        refundable = int(item.Quantity) - refunded_quantity(db, item_id)
        if qty <= 0 or qty > refundable:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"İade adedi geçersiz (kalem #{item_id}): istenen {qty}, iade edilebilir {refundable}",
            )

    try:
        refund = Refund(
            OrderID=order.OrderID,
            UserID=user_id,
            Reason=reason,
            Notes=notes,
            ShouldRestock=bool(should_restock),
        )
        order.refunds.append(refund)
        db.flush()

        total = 0
        for item_id, qty in requested.items():
            item = order_items[item_id]
            cents = refund_subtotal_cents(item, qty)
            total += cents
            ri = RefundItem(OrderItemID=item_id, Quantity=qty, RefundCents=cents)
            refund.items.append(ri)

            if should_restock:
                # Yalnızca bu kalem için depodan gerçekten çıkmış adet geri döner
                restocked = return_item_stock(
                    db, order, item,
                    user_id=user_id,
                    notes=REASON_REFUND_RESTOCK.format(refund.RefundID, order.OrderNumber),
                    limit=qty,
                    meta={"refund_id": refund.RefundID},
                )
                ri.Restocked = restocked > 0
                if restocked < qty:
                    logger.info(
                        "refund %s: item %s restocked %s of %s (variant=%s)",
                        refund.RefundID, item_id, restocked, qty, item.VariantID,
                    )

        refund.TotalRefundCents = total

        # Ödenen tutar ve ödeme durumu
        paid_before = int(order.PaidAmountCents or 0)
        order.PaidAmountCents = max(0, paid_before - total)
        new_status = (
            "refunded" if order.PaidAmountCents <= 0
            else "partial" if order.PaidAmountCents < int(order.GrandTotalCents or 0)
            else "paid"
        )
        add_history(
            order,
            status_type="refund",
            from_status=order.PaymentStatus,
            to_status="refund_processed",
            user_id=user_id,
            notes=f"İade #{refund.RefundID}: {from_cents(total)} ({reason})",
        )
        order.PaymentStatus = new_status
        db.add(order)
        refresh_customer_totals(db, order.CustomerID)

        db.commit()
        db.refresh(refund)
        logger.info("refund %s for order %s total=%s", refund.RefundID, order.OrderNumber, total)
        return refund
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.exception("create_refund error (OrderID=%s)", order_id)
        raise HTTPException(status_code=500, detail=f"create_refund error: {type(e).__name__}: {e}")


def list_refunds(db: Session, *, order_id: int) -> List[Refund]:
    order = get_order(db, order_id)
    return list(order.refunds)


def get_refund(db: Session, refund_id: int) -> Refund:
    r = db.get(Refund, refund_id)
    if not r:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="İade bulunamadı.")
    return r


def restock_status(db: Session, *, refund_id: int) -> Dict[str, Any]:
    """İade kalemlerinin depoya dönüp dönmediği ve ilgili stok hareketleri."""
    refund = get_refund(db, refund_id)
    txns = [
        t for t in db.query(InventoryTransaction)
        .filter(InventoryTransaction.TxnType == TXN_RETURN)
        .order_by(InventoryTransaction.TxnID.asc())
        .all()
        if (t.Meta or {}).get("refund_id") == refund.RefundID
    ]
    by_item = {(t.Meta or {}).get("order_item_id"): t for t in txns}
    items = []
    for ri in refund.items:
        t = by_item.get(ri.OrderItemID)
        items.append({
            "RefundItemID": ri.RefundItemID,
            "OrderItemID": ri.OrderItemID,
            "Sku": ri.Sku,
            "Quantity": ri.Quantity,
            "Restocked": bool(ri.Restocked),
            "TxnID": t.TxnID if t else None,
            "AfterQuantity": t.AfterQuantity if t else None,
        })
    restocked = sum(1 for i in items if i["Restocked"])
    return {
        "RefundID": refund.RefundID,
        "ShouldRestock": bool(refund.ShouldRestock),
        "RestockedItems": restocked,
        "SkippedItems": len(items) - restocked,
        "Items": items,
    }
