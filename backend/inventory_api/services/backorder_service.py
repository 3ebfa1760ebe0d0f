# backend/inventory_api/services/backorder_service.py
"""
Bekleyen (backorder) sipariş kalemleri ve gelen stoğun önceliğe göre dağıtımı.

Skor (smart_priority):
  müşteri seviyesi  vip 100 / high 50 / normal 0 / low -20
  öncelikli müşteri +30
  sipariş önceliği  urgent 80 / high 40 / normal 0 / low -10
  bekleme           +2 / gün
  termin            0..7 gün kaldıysa 50 * (8 - gün) / 8
  vip_channel       +25
  kalem termini     48 saat içindeyse +40
fifo: 1000 + bekleme günü (eski sipariş önce). Skorlar 0'ın altına inmez.

Dağıtılan adet stoktan düşülür; karşılanan kalem depodan çıkmış sayılır.
"""
from __future__ import annotations
from datetime import date, datetime
from typing import Any, Dict, List, Optional
import logging

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from ..core.db import utcnow
from ..models import InventoryTransfer, Order, OrderItem, ProductVariant
from ..domain.constants import (
    CUSTOMER_LEVEL_WEIGHTS, ORDER_PRIORITY_WEIGHTS, PRIORITY_CUSTOMER_BONUS, VIP_CHANNEL_BONUS,
    WAITING_DAY_POINTS, DEADLINE_MAX_POINTS, DEADLINE_WINDOW_DAYS, FIFO_BASE_SCORE,
    PRIORITY_DEADLINE_BONUS, PRIORITY_DEADLINE_HOURS, REASON_DEADLINE_DAYS,
)
from .inventory_service import day_bounds
from .order_service import add_history, consume_for_backorder, stock_store_id

logger = logging.getLogger(__name__)

STRATEGIES = ("smart_priority", "fifo")


# ---- Skor ----
def _waiting_days(order: Order, now: datetime) -> int:
    created = order.CreatedAt or now
    return max(0, (now - created).days)


def smart_priority_score(order: Order, now: Optional[datetime] = None) -> int:
    now = now or utcnow()
    customer = order.customer
    score = 0.0
    if customer is not None:
        score += CUSTOMER_LEVEL_WEIGHTS.get(customer.PriorityLevel or "normal", 0)
        if customer.IsPriorityCustomer:
            score += PRIORITY_CUSTOMER_BONUS
    score += ORDER_PRIORITY_WEIGHTS.get(order.FulfillmentPriority or "normal", 0)
    score += WAITING_DAY_POINTS * _waiting_days(order, now)

    if order.ExpectedDeliveryDate:
        days_left = (order.ExpectedDeliveryDate - now.date()).days
        if 0 <= days_left <= DEADLINE_WINDOW_DAYS:
            score += DEADLINE_MAX_POINTS * (DEADLINE_WINDOW_DAYS + 1 - days_left) / (DEADLINE_WINDOW_DAYS + 1)

    if (order.OrderSource or "") == "vip_channel":
        score += VIP_CHANNEL_BONUS
    return max(0, int(score))


def deadline_bonus(item: OrderItem, now: datetime) -> int:
    deadline = item.PriorityDeadline
    if deadline is None or deadline <= now:
        return 0
    hours = (deadline - now).total_seconds() / 3600
    return PRIORITY_DEADLINE_BONUS if hours <= PRIORITY_DEADLINE_HOURS else 0


def fifo_score(order: Order, now: Optional[datetime] = None) -> int:
    now = now or utcnow()
    return FIFO_BASE_SCORE + _waiting_days(order, now)


def score_item(item: OrderItem, strategy: str = "smart_priority", now: Optional[datetime] = None) -> int:
    now = now or utcnow()
    if strategy == "fifo":
        return fifo_score(item.order, now)
    return smart_priority_score(item.order, now) + deadline_bonus(item, now)


def allocation_reason(item: OrderItem, now: datetime) -> str:
    order = item.order
    customer = order.customer
    if customer is not None and customer.PriorityLevel == "vip":
        return "customer_priority"
    if order.FulfillmentPriority == "urgent":
        return "order_priority"
    near_due = order.ExpectedDeliveryDate and (order.ExpectedDeliveryDate - now.date()).days <= REASON_DEADLINE_DAYS
    if near_due or deadline_bonus(item, now):
        return "deadline"
    return "fifo"


def allocate(
    items: List[OrderItem],
    quantity: int,
    *,
    strategy: str = "smart_priority",
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Miktarı skora göre (eşitlikte eski sipariş önce) kalemlere dağıt; DB'ye yazmaz."""
    if strategy not in STRATEGIES:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Geçersiz strateji: {strategy}. İzinli: {list(STRATEGIES)}",
        )
    now = now or utcnow()
    ranked = sorted(
        items,
        key=lambda i: (-score_item(i, strategy, now), i.order.CreatedAt or now, i.ItemID),
    )
    remaining = max(0, int(quantity))
    allocations = []
    for item in ranked:
        need = item.RemainingQuantity
        if remaining <= 0 or need <= 0:
            continue
        take = min(remaining, need)
        allocations.append({
            "OrderItemID": item.ItemID,
            "OrderID": item.OrderID,
            "OrderNumber": item.order.OrderNumber,
            "Score": score_item(item, strategy, now),
            "Needed": need,
            "Allocated": take,
            "FulfillmentStatus": "fully_fulfilled" if take >= need else "partially_fulfilled",
            "AllocationReason": allocation_reason(item, now),
        })
        remaining -= take

    allocated = int(quantity) - remaining if quantity else 0
    return {
        "Strategy": strategy,
        "Requested": int(quantity),
        "TotalAllocated": allocated,
        "Remaining": remaining,
        "Efficiency": round(allocated * 100.0 / quantity, 2) if quantity else 0.0,
        "FullyFulfilledCount": sum(1 for a in allocations if a["FulfillmentStatus"] == "fully_fulfilled"),
        "PartiallyFulfilledCount": sum(1 for a in allocations if a["FulfillmentStatus"] == "partially_fulfilled"),
        "Allocations": allocations,
    }


# ---- Sorgular ----
def pending_backorders_query(db: Session):
    return (
        db.query(OrderItem)
        .join(Order, Order.OrderID == OrderItem.OrderID)
        .filter(
            OrderItem.IsBackorder == True,   # noqa: E712
            OrderItem.IsFulfilled == False,  # noqa: E712
            Order.ShippingStatus.notin_(("cancelled", "delivered")),
        )
    )


def pending_for_variant(db: Session, variant_id: int, *, unbound_only: bool = False) -> List[OrderItem]:
    q = pending_backorders_query(db).filter(OrderItem.VariantID == variant_id)
    if unbound_only:
        q = q.filter(OrderItem.PurchaseItemID.is_(None))
    return q.order_by(OrderItem.ItemID.asc()).all()


def apply_allocation(
    db: Session,
    *,
    variant_id: int,
    quantity: int,
    store_id: int,
    strategy: str = "smart_priority",
    user_id: Optional[int] = None,
) -> Dict[str, Any]:
    """Gelen stoğu bağlanmamış bekleyen kalemlere dağıt; dağıtılan adet mağaza stoğundan düşülür (commit yok)."""
    items = pending_for_variant(db, variant_id, unbound_only=True)
    result = allocate(items, quantity, strategy=strategy)
    by_id = {i.ItemID: i for i in items}
    for a in result["Allocations"]:
        consume_for_backorder(db, by_id[a["OrderItemID"]], a["Allocated"], store_id=store_id, user_id=user_id)
    if result["TotalAllocated"]:
        logger.info(
            "backorder allocation variant=%s store=%s qty=%s allocated=%s strategy=%s",
            variant_id, store_id, quantity, result["TotalAllocated"], strategy,
        )
    return result


# ---- Durum ----
def purchase_status(item: OrderItem) -> str:
    if item.purchase_item is None or item.purchase_item.purchase is None:
        return "pending_purchase"
    return item.purchase_item.purchase.Status


def item_transfer(item: OrderItem) -> Optional[InventoryTransfer]:
    """Siparişin bu varyant için açtığı en son iptal edilmemiş transfer."""
    if item.VariantID is None:
        return None
    rows = [
        t for t in item.order.transfers
        if t.VariantID == item.VariantID and t.Status != "cancelled"
    ]
    return max(rows, key=lambda t: t.TransferID, default=None)


def integrated_status(item: OrderItem) -> str:
    """transfer_pending | transfer_in_transit | purchase_<satın alma durumu> | purchase_pending_purchase"""
    tr = item_transfer(item)
    if tr is not None and tr.Status in ("pending", "in_transit"):
        return f"transfer_{tr.Status}"
    return f"purchase_{purchase_status(item)}"


def summary_status(statuses: List[str]) -> str:
    kinds = set()
    for s in statuses:
        if s.startswith("transfer_"):
            kinds.add("transfer")
        elif s == "purchase_pending_purchase":
            kinds.add("pending")
        else:
            kinds.add("purchase")
    if kinds == {"pending"}:
        return "pending_purchase"
    if kinds == {"purchase"}:
        return "purchase_in_progress"
    if "transfer" in kinds and "purchase" not in kinds:
        return "transfer_in_progress"
    return "mixed"


def _row(item: OrderItem, now: datetime) -> Dict[str, Any]:
    order = item.order
    tr = item_transfer(item)
    pi = item.purchase_item
    return {
        "OrderItemID": item.ItemID,
        "OrderID": order.OrderID,
        "OrderNumber": order.OrderNumber,
        "CustomerName": order.CustomerName,
        "StoreID": order.StoreID,
        "VariantID": item.VariantID,
        "Sku": item.Sku,
        "ProductName": item.ProductName,
        "Quantity": item.Quantity,
        "FulfilledQuantity": item.FulfilledQuantity,
        "RemainingQuantity": item.RemainingQuantity,
        "PurchaseItemID": item.PurchaseItemID,
        "PurchaseOrderNumber": pi.purchase.OrderNumber if pi is not None and pi.purchase is not None else None,
        "PurchaseStatus": purchase_status(item),
        "TransferID": tr.TransferID if tr is not None else None,
        "TransferStatus": tr.Status if tr is not None else None,
        "IntegratedStatus": integrated_status(item),
        "OrderedAt": order.CreatedAt.isoformat() if order.CreatedAt else None,
        "DaysWaiting": _waiting_days(order, now),
        "PriorityScore": score_item(item, now=now),
    }


def _group_by_variant(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    groups: Dict[Any, Dict[str, Any]] = {}
    for r in rows:
        key = r["VariantID"] if r["VariantID"] is not None else f"custom:{r['ProductName']}"
        g = groups.setdefault(key, {
            "VariantID": r["VariantID"],
            "Sku": r["Sku"],
            "ProductName": r["ProductName"],
            "TotalRemaining": 0,
            "Items": [],
        })
        g["TotalRemaining"] += r["RemainingQuantity"]
        g["Items"].append(r)
    return list(groups.values())


def _group_by_order(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    groups: Dict[int, Dict[str, Any]] = {}
    for r in rows:
        g = groups.setdefault(r["OrderID"], {
            "OrderID": r["OrderID"],
            "OrderNumber": r["OrderNumber"],
            "CustomerName": r["CustomerName"],
            "StoreID": r["StoreID"],
            "OrderedAt": r["OrderedAt"],
            "DaysWaiting": r["DaysWaiting"],
            "TotalItems": 0,
            "TotalQuantity": 0,
            "TotalRemaining": 0,
            "Items": [],
        })
        g["TotalItems"] += 1
        g["TotalQuantity"] += r["Quantity"]
        g["TotalRemaining"] += r["RemainingQuantity"]
        g["Items"].append(r)
    for g in groups.values():
        g["SummaryStatus"] = summary_status([r["IntegratedStatus"] for r in g["Items"]])
    return list(groups.values())


def list_backorders(
    db: Session,
    *,
    store_id: Optional[int] = None,
    variant_id: Optional[int] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
    group_by: Optional[str] = None,
) -> List[Dict[str, Any]]:
    q = pending_backorders_query(db)
    if store_id:
        q = q.filter(Order.StoreID == store_id)
    if variant_id:
        q = q.filter(OrderItem.VariantID == variant_id)
    s, e = day_bounds(start, end)
    if s:
        q = q.filter(Order.CreatedAt >= s)
    if e:
        q = q.filter(Order.CreatedAt < e)
    now = utcnow()
    rows = [_row(i, now) for i in q.order_by(Order.CreatedAt.asc(), OrderItem.ItemID.asc()).all()]
    if group_by == "variant":
        return _group_by_variant(rows)
    if group_by == "order":
        return _group_by_order(rows)
    return rows


def backorder_stats(db: Session) -> Dict[str, Any]:
    now = utcnow()
    items = pending_backorders_query(db).all()
    oldest = max((_waiting_days(i.order, now) for i in items), default=0)
    return {
        "ItemCount": len(items),
        "TotalQuantity": sum(i.RemainingQuantity for i in items),
        "OrderCount": len({i.OrderID for i in items}),
        "VariantCount": len({i.VariantID for i in items if i.VariantID is not None}),
        "UnboundItemCount": sum(1 for i in items if i.PurchaseItemID is None),
        "OldestDaysWaiting": oldest,
    }


def backorder_summary(db: Session) -> List[Dict[str, Any]]:
    """Varyant bazında satın almaya hazır özet (bağlanmamış kalemler)."""
    items = (
        pending_backorders_query(db)
        .filter(OrderItem.VariantID.isnot(None), OrderItem.PurchaseItemID.is_(None))
        .all()
    )
    summary: Dict[int, Dict[str, Any]] = {}
    for i in items:
        s = summary.setdefault(i.VariantID, {
            "VariantID": i.VariantID,
            "Sku": i.Sku,
            "ProductName": i.ProductName,
            "TotalQuantity": 0,
            "ItemCount": 0,
            "OrderIDs": set(),
            "OrderItemIDs": [],
        })
        s["TotalQuantity"] += i.RemainingQuantity
        s["ItemCount"] += 1
        s["OrderIDs"].add(i.OrderID)
        s["OrderItemIDs"].append(i.ItemID)

    result = []
    for s in summary.values():
        variant = db.get(ProductVariant, s["VariantID"])
        s["OrderCount"] = len(s.pop("OrderIDs"))
        s["SuggestedUnitCost"] = float(variant.CostPrice) if variant else 0.0
        result.append(s)
    return sorted(result, key=lambda r: -r["TotalQuantity"])


def update_transfer_fulfillment(
    db: Session,
    *,
    order_item_id: int,
    transfer_status: str,
    quantity: Optional[int] = None,
    user_id: Optional[int] = None,
) -> OrderItem:
    """Transferle gelen stoğun bekleyen kaleme yansıtılması; completed siparişin mağazasından düşer."""
    item = db.get(OrderItem, order_item_id)
    if not item:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Sipariş kalemi bulunamadı.")
    if not item.IsBackorder:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Kalem bekleyen (backorder) değil.",
        )
    if item.order.ShippingStatus == "cancelled":
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="İptal edilmiş sipariş.")
    if transfer_status not in ("in_transit", "completed"):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Durum 'in_transit' | 'completed' olmalı.",
        )

    try:
        if transfer_status == "in_transit":
            item.Status = "processing"
            note = f"Kalem #{item.ItemID} transfer yolda"
        else:
            qty = quantity if quantity is not None else item.RemainingQuantity
            added = consume_for_backorder(db, item, qty, store_id=stock_store_id(db, item.order), user_id=user_id)
            if item.IsFulfilled:
                item.Status = "completed"
            note = f"Kalem #{item.ItemID} transferle karşılandı (+{added})"
        add_history(item.order, status_type="item", from_status=None, to_status=f"transfer_{transfer_status}",
                    user_id=user_id, notes=note)
        db.add(item)
        db.commit()
        db.refresh(item)
        return item
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.exception("update_transfer_fulfillment error (OrderItemID=%s)", order_item_id)
        raise HTTPException(status_code=500, detail=f"update_transfer_fulfillment error: {type(e).__name__}: {e}")
