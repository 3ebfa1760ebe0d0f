# backend/inventory_api/services/purchase_service.py
"""
Satın alma (tedarikçi siparişi) işlemleri.

Durum akışı:
  pending            -> confirmed | cancelled
  confirmed          -> in_transit | cancelled
  in_transit         -> received | partially_received
  received           -> completed | partially_received
  partially_received -> completed | received

received/completed'a geçişte henüz gelmemiş tüm miktar satın alma mağazasına
'purchase' hareketi olarak girer, ortalama maliyet güncellenir, bağlı bekleyen
kalemler karşılanır (adet stoktan düşülür), artan miktar öncelik sırasıyla diğer bekleyenlere dağıtılır.
"""
from __future__ import annotations
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple
import logging

from fastapi import HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..core.db import lock_row, utcnow
from ..core.money import allocate_cents, round_cents, to_cents
from ..core.sequence import SequenceGenerator
from ..models import Order, OrderItem, ProductVariant, Purchase, PurchaseItem, Store
from ..domain.constants import (
    PURCHASE_TRANSITIONS, PURCHASE_EDITABLE_STATUSES, TXN_PURCHASE, REASON_PO_RECEIVE,
)
from .inventory_service import add_stock, day_bounds, default_store_id, paginate
from .backorder_service import apply_allocation, pending_backorders_query
from .order_service import consume_for_backorder, stock_store_id

logger = logging.getLogger(__name__)

PURCHASE_NUMBERS = SequenceGenerator(Purchase.OrderNumber, prefix="PO-", date_format="%Y%m%d", width=4)


def get_purchase(db: Session, purchase_id: int, *, lock: bool = False) -> Purchase:
    p = lock_row(db, Purchase, purchase_id) if lock else db.get(Purchase, purchase_id)
    if not p:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Satın alma bulunamadı.")
    return p


# ---- Tutarlar ----
def recalculate(purchase: Purchase) -> None:
    """Kargo bedelini adet*birim fiyat ağırlığıyla kalemlere dağıt, toplamları yeniden hesapla."""
    items = list(purchase.items)
    weights = [int(i.Quantity) * int(i.UnitPriceCents or 0) for i in items]
    shipping = int(purchase.ShippingCostCents or 0)
    if items and sum(weights) <= 0:
        # Fiyatsız kalemlerde adede göre böl
        weights = [int(i.Quantity) for i in items]
    shares = allocate_cents(shipping, weights)
    for item, share in zip(items, shares):
        item.AllocatedShippingCostCents = share
        item.TotalCostPriceCents = int(item.CostPriceCents or 0) * int(item.Quantity) + share
    purchase.TotalAmountCents = sum(int(i.UnitPriceCents or 0) * int(i.Quantity) for i in items) + shipping


def _item_fields(db: Session, data: Dict[str, Any]) -> Dict[str, Any]:
    if not db.get(ProductVariant, data["VariantID"]):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Ürün varyantı bulunamadı: {data['VariantID']}",
        )
    unit = to_cents(data.get("UnitPrice"))
    cost = data.get("CostPrice")
    return {
        "VariantID": data["VariantID"],
        "Quantity": int(data["Quantity"]),
        "UnitPriceCents": unit,
        "CostPriceCents": unit if cost is None else to_cents(cost),
    }


def _unbind(item: PurchaseItem) -> None:
    for oi in list(item.order_items):
        oi.purchase_item = None


def _sync_items(db: Session, purchase: Purchase, items_in: List[Dict[str, Any]]) -> None:
    existing = {i.PurchaseItemID: i for i in purchase.items}
    for data in items_in:
        fields = _item_fields(db, data)
        pid = data.get("PurchaseItemID")
        if pid is None:
            purchase.items.append(PurchaseItem(**fields))
            continue
        item = existing.pop(pid, None)
        if item is None:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"Kalem bu satın almaya ait değil: {pid}",
            )
        if item.VariantID != fields["VariantID"]:
            _unbind(item)
        for k, v in fields.items():
            setattr(item, k, v)

    for item in existing.values():
        _unbind(item)
        purchase.items.remove(item)


def _bind(db: Session, purchase: Purchase, order_item_ids: List[int]) -> List[int]:
    """Bekleyen kalemleri aynı varyanttaki satın alma kalemine bağla (commit yok)."""
    by_variant = {i.VariantID: i for i in purchase.items}
    bound = []
    for oid in order_item_ids:
        oi = (
            pending_backorders_query(db)
            .filter(OrderItem.ItemID == oid)
            .one_or_none()
        )
        if oi is None:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"Kalem bekleyen (backorder) değil: {oid}",
            )
        if oi.PurchaseItemID is not None and oi.PurchaseItemID not in {i.PurchaseItemID for i in purchase.items}:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Kalem başka bir satın almaya bağlı: {oid}",
            )
        target = by_variant.get(oi.VariantID)
        if target is None:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"Satın almada bu varyant yok (kalem #{oid}).",
            )
        oi.purchase_item = target
        db.add(oi)
        bound.append(oid)
    return bound


def _lines_from_order_items(db: Session, purchase: Purchase, entries: List[Dict[str, Any]]) -> None:
    """Her bekleyen sipariş kalemi için ayrı satın alma satırı açar ve kalemi ona bağlar (commit yok)."""
    for e in entries:
        oid = e["OrderItemID"]
        oi = pending_backorders_query(db).filter(OrderItem.ItemID == oid).one_or_none()
        if oi is None:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"Kalem bekleyen (backorder) değil: {oid}",
            )
        if oi.VariantID is None:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"Özel ürün satın almaya dönüştürülemez: {oid}",
            )
        if oi.PurchaseItemID is not None:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Kalem zaten bir satın almaya bağlı: {oid}",
            )
        if stock_store_id(db, oi.order) != purchase.StoreID:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"Kalem başka mağazanın siparişine ait: {oid}",
            )
        if e.get("CostPrice") is not None:
            cost = to_cents(e["CostPrice"])
        else:
            cost = int(oi.variant.CostPriceCents or 0) or int(oi.CostCents or 0)
        line = PurchaseItem(
            VariantID=oi.VariantID,
            Quantity=int(e["PurchaseQuantity"]),
            UnitPriceCents=cost,
            CostPriceCents=cost,
        )
        purchase.items.append(line)
        oi.purchase_item = line
        db.add(oi)


# ---- Oluştur / güncelle ----
def create_purchase(db: Session, *, data: Dict[str, Any], user_id: Optional[int] = None) -> Purchase:
    if not db.get(Store, data["StoreID"]):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Mağaza bulunamadı.")
    try:
        p = build_purchase(db, data=data, user_id=user_id)
        db.commit()
        db.refresh(p)
        logger.info("purchase created %s total=%s", p.OrderNumber, p.TotalAmountCents)
        return p
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.exception("create_purchase error (StoreID=%s)", data.get("StoreID"))
        raise HTTPException(status_code=500, detail=f"create_purchase error: {type(e).__name__}: {e}")


def build_purchase(db: Session, *, data: Dict[str, Any], user_id: Optional[int] = None) -> Purchase:
    p = Purchase(
        OrderNumber=PURCHASE_NUMBERS.generate_next(db),
        StoreID=data["StoreID"],
        UserID=user_id,
        PurchasedAt=data.get("PurchasedAt") or utcnow(),
        ShippingCostCents=to_cents(data.get("ShippingCost")),
        Status=data.get("Status") or "pending",
        Notes=data.get("Notes"),
    )
    db.add(p)
    for it in data.get("Items") or []:
        p.items.append(PurchaseItem(**_item_fields(db, it)))
    if data.get("OrderItems"):
        _lines_from_order_items(db, p, data["OrderItems"])
    recalculate(p)
    db.flush()
    if data.get("OrderItemIDs"):
        _bind(db, p, data["OrderItemIDs"])
    return p


def update_purchase(db: Session, *, purchase_id: int, data: Dict[str, Any]) -> Purchase:
    p = get_purchase(db, purchase_id, lock=True)
    if p.Status not in PURCHASE_EDITABLE_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"'{p.Status}' durumundaki satın alma düzenlenemez.",
        )
    if data.get("StoreID") and not db.get(Store, data["StoreID"]):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Mağaza bulunamadı.")
    try:
        for k in ("StoreID", "PurchasedAt", "Notes"):
            if data.get(k) is not None:
                setattr(p, k, data[k])
        if data.get("ShippingCost") is not None:
            p.ShippingCostCents = to_cents(data["ShippingCost"])
        if data.get("Items") is not None:
            _sync_items(db, p, data["Items"])
        recalculate(p)
        db.add(p)
        db.commit()
        db.refresh(p)
        return p
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.exception("update_purchase error (PurchaseID=%s)", purchase_id)
        raise HTTPException(status_code=500, detail=f"update_purchase error: {type(e).__name__}: {e}")


# ---- Teslim alma ----
def _update_average_cost(variant: ProductVariant, item: PurchaseItem, qty: int) -> None:
    """avg = (avg*eski_adet + birim_maliyet*adet) / (eski_adet + adet); birim maliyete kargo payı dahil."""
    unit_cost = Decimal(int(item.TotalCostPriceCents or 0)) / Decimal(int(item.Quantity))
    old_qty = int(variant.TotalPurchasedQuantity or 0)
    old_avg = Decimal(int(variant.AverageCostCents or 0))
    new_qty = old_qty + qty
    variant.AverageCostCents = round_cents((old_avg * old_qty + unit_cost * qty) / new_qty)
    variant.TotalPurchasedQuantity = new_qty


def _fulfil_backorders(
    db: Session, purchase: Purchase, item: PurchaseItem, qty: int, user_id: Optional[int]
) -> Dict[str, Any]:
    """
    Önce bu kaleme bağlı bekleyenler, artan miktar öncelik sırasıyla diğerlerine.
    Karşılanan adet satın alma mağazasının stoğundan düşülür.
    """
    notes = f"{REASON_PO_RECEIVE.format(purchase.OrderNumber)} -> bekleyen sipariş"
    remaining = qty
    bound = []
    for oi in sorted(item.order_items, key=lambda o: o.ItemID):
        if remaining <= 0:
            break
        if oi.IsFulfilled or oi.order.ShippingStatus in ("cancelled", "delivered"):
            continue
        added = consume_for_backorder(db, oi, remaining, store_id=purchase.StoreID, user_id=user_id, notes=notes)
        if added:
            remaining -= added
            bound.append({"OrderItemID": oi.ItemID, "Allocated": added})

    allocation = None
    if remaining > 0:
        allocation = apply_allocation(
            db, variant_id=item.VariantID, quantity=remaining, store_id=purchase.StoreID, user_id=user_id,
        )
    return {"Bound": bound, "Allocation": allocation}


def _receive_item(db: Session, purchase: Purchase, item: PurchaseItem, qty: int, user_id: Optional[int]) -> None:
    if qty <= 0:
        return
    add_stock(
        db,
        variant_id=item.VariantID,
        store_id=purchase.StoreID,
        quantity=qty,
        txn_type=TXN_PURCHASE,
        user_id=user_id,
        notes=REASON_PO_RECEIVE.format(purchase.OrderNumber),
        meta={"purchase_id": purchase.PurchaseID, "purchase_item_id": item.PurchaseItemID},
    )
    _update_average_cost(item.variant, item, qty)
    item.ReceivedQuantity = int(item.ReceivedQuantity or 0) + qty
    item.ReceiptStatus = "completed" if item.PendingQuantity == 0 else "partial"
    _fulfil_backorders(db, purchase, item, qty, user_id)
    db.add(item)


def _receive_all(db: Session, purchase: Purchase, user_id: Optional[int]) -> int:
    total = 0
    for item in purchase.items:
        qty = item.PendingQuantity
        if qty > 0:
            _receive_item(db, purchase, item, qty, user_id)
            total += qty
    purchase.ReceivedAt = purchase.ReceivedAt or utcnow()
    return total


def update_status(db: Session, *, purchase_id: int, new_status: str, user_id: Optional[int] = None) -> Purchase:
    p = get_purchase(db, purchase_id, lock=True)
    if p.Status == new_status:
        if new_status in ("received", "completed"):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Satın alma zaten teslim alınmış.")
        return p
    allowed = PURCHASE_TRANSITIONS.get(p.Status, ())
    if new_status not in allowed:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"'{p.Status}' durumundan '{new_status}' yapılamaz. İzinli: {list(allowed)}",
        )
    try:
        if new_status in ("received", "completed"):
            received = _receive_all(db, p, user_id)
            logger.info("purchase %s -> %s received=%s", p.OrderNumber, new_status, received)
        elif new_status == "cancelled":
            for item in p.items:
                _unbind(item)
        p.Status = new_status
        db.add(p)
        db.commit()
        db.refresh(p)
        return p
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.exception("update_status error (PurchaseID=%s)", purchase_id)
        raise HTTPException(status_code=500, detail=f"update_status error: {type(e).__name__}: {e}")


def partial_receipt(
    db: Session,
    *,
    purchase_id: int,
    items: List[Dict[str, Any]],
    notes: Optional[str] = None,
    user_id: Optional[int] = None,
) -> Purchase:
    """ReceivedQuantity kümülatif toplamdır; yalnızca fark stoğa girer."""
    p = get_purchase(db, purchase_id, lock=True)
    if p.Status in ("received", "completed"):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Satın alma zaten teslim alınmış.")
    if p.Status in ("pending", "cancelled"):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"'{p.Status}' durumundaki satın alma teslim alınamaz.",
        )

    by_id = {i.PurchaseItemID: i for i in p.items}
    deltas: List[Tuple[PurchaseItem, int]] = []
    for it in items:
        item = by_id.get(it["PurchaseItemID"])
        if item is None:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"Kalem bu satın almaya ait değil: {it['PurchaseItemID']}",
            )
        new_total = int(it["ReceivedQuantity"])
        if new_total > int(item.Quantity) or new_total < int(item.ReceivedQuantity or 0):
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=(
                    f"Teslim adedi geçersiz (kalem #{item.PurchaseItemID}): {new_total}, "
                    f"alınan {item.ReceivedQuantity}, sipariş {item.Quantity}"
                ),
            )
        deltas.append((item, new_total - int(item.ReceivedQuantity or 0)))

    try:
        for item, delta in deltas:
            _receive_item(db, p, item, delta, user_id)
        p.ReceivedAt = p.ReceivedAt or utcnow()
        p.Status = "completed" if all(i.PendingQuantity == 0 for i in p.items) else "partially_received"
        if notes:
            p.Notes = f"{p.Notes}\n{notes}" if p.Notes else notes
        db.add(p)
        db.commit()
        db.refresh(p)
        return p
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.exception("partial_receipt error (PurchaseID=%s)", purchase_id)
        raise HTTPException(status_code=500, detail=f"partial_receipt error: {type(e).__name__}: {e}")


# ---- İptal / silme / küçük güncellemeler ----
def cancel_purchase(db: Session, *, purchase_id: int, user_id: Optional[int] = None) -> Purchase:
    p = get_purchase(db, purchase_id)
    if p.Status not in PURCHASE_EDITABLE_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"'{p.Status}' durumundaki satın alma iptal edilemez.",
        )
    return update_status(db, purchase_id=purchase_id, new_status="cancelled", user_id=user_id)


def delete_purchase(db: Session, *, purchase_id: int) -> None:
    p = get_purchase(db, purchase_id, lock=True)
    if p.Status != "pending":
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Yalnızca 'pending' durumundaki satın alma silinebilir.",
        )
    for item in p.items:
        _unbind(item)
    db.delete(p)
    db.commit()


def update_notes(db: Session, *, purchase_id: int, notes: Optional[str]) -> Purchase:
    p = get_purchase(db, purchase_id)
    p.Notes = notes
    db.add(p)
    db.commit()
    db.refresh(p)
    return p


def update_shipping_cost(db: Session, *, purchase_id: int, shipping_cost) -> Purchase:
    p = get_purchase(db, purchase_id, lock=True)
    if p.Status not in PURCHASE_EDITABLE_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"'{p.Status}' durumundaki satın almanın kargo bedeli değiştirilemez.",
        )
    p.ShippingCostCents = to_cents(shipping_cost)
    recalculate(p)
    db.add(p)
    db.commit()
    db.refresh(p)
    return p


# ---- Bekleyen sipariş bağlama ----
def bindable_order_items(
    db: Session,
    *,
    variant_ids: Optional[List[int]] = None,
    store_id: Optional[int] = None,
) -> List[OrderItem]:
    q = (
        pending_backorders_query(db)
        .filter(OrderItem.VariantID.isnot(None), OrderItem.PurchaseItemID.is_(None))
    )
    if variant_ids:
        q = q.filter(OrderItem.VariantID.in_(variant_ids))
    if store_id:
        q = q.filter(Order.StoreID == store_id)
    return q.order_by(Order.CreatedAt.asc(), OrderItem.ItemID.asc()).all()


def bind_orders(db: Session, *, purchase_id: int, order_item_ids: List[int]) -> Purchase:
    p = get_purchase(db, purchase_id, lock=True)
    if p.Status in ("completed", "cancelled"):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"'{p.Status}' durumundaki satın almaya kalem bağlanamaz.",
        )
    try:
        _bind(db, p, order_item_ids)
        db.commit()
        db.refresh(p)
        return p
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.exception("bind_orders error (PurchaseID=%s)", purchase_id)
        raise HTTPException(status_code=500, detail=f"bind_orders error: {type(e).__name__}: {e}")


def convert_backorders(
    db: Session,
    *,
    item_ids: List[int],
    store_id: Optional[int] = None,
    user_id: Optional[int] = None,
) -> List[Purchase]:
    """Seçilen bekleyen kalemlerden mağaza başına bir satın alma oluştur ve kalemleri bağla."""
    items = (
        pending_backorders_query(db)
        .filter(OrderItem.ItemID.in_(item_ids))
        .all()
    )
    found = {i.ItemID for i in items}
    missing = [i for i in item_ids if i not in found]
    if missing:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Bekleyen (backorder) olmayan kalemler: {missing}",
        )
    for i in items:
        if i.VariantID is None:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"Özel ürün satın almaya dönüştürülemez: {i.ItemID}",
            )
        if i.PurchaseItemID is not None:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Kalem zaten bir satın almaya bağlı: {i.ItemID}",
            )
    if store_id and not db.get(Store, store_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Mağaza bulunamadı.")

    groups: Dict[int, List[OrderItem]] = {}
    for i in items:
        sid = store_id or i.order.StoreID or default_store_id(db)
        groups.setdefault(sid, []).append(i)

    try:
        created = []
        for sid, group in groups.items():
            qty_by_variant: Dict[int, int] = {}
            for i in group:
                qty_by_variant[i.VariantID] = qty_by_variant.get(i.VariantID, 0) + i.RemainingQuantity
            lines = []
            for vid, qty in qty_by_variant.items():
                variant = db.get(ProductVariant, vid)
                lines.append({"VariantID": vid, "Quantity": qty, "UnitPrice": variant.CostPrice})
            p = build_purchase(
                db,
                data={
                    "StoreID": sid,
                    "Items": lines,
                    "OrderItemIDs": [i.ItemID for i in group],
                    "Notes": "Bekleyen siparişlerden oluşturuldu",
                },
                user_id=user_id,
            )
            created.append(p)
        db.commit()
        for p in created:
            db.refresh(p)
        logger.info("backorders converted items=%s purchases=%s", len(items), [p.OrderNumber for p in created])
        return created
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.exception("convert_backorders error")
        raise HTTPException(status_code=500, detail=f"convert_backorders error: {type(e).__name__}: {e}")


# ---- Listeleme ----
_SORTS = {
    "order_number": Purchase.OrderNumber,
    "purchased_at": Purchase.PurchasedAt,
    "total_amount": Purchase.TotalAmountCents,
    "created_at": Purchase.CreatedAt,
}


def list_purchases(
    db: Session,
    *,
    order_number: Optional[str] = None,
    status_s: Optional[str] = None,
    store_id: Optional[int] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
    sort: str = "-purchased_at",
    skip: int = 0,
    limit: int = 100,
) -> Tuple[List[Purchase], int]:
    q = db.query(Purchase)
    if order_number:
        q = q.filter(func.lower(Purchase.OrderNumber).like(f"%{order_number.lower()}%"))
    if status_s:
        q = q.filter(Purchase.Status == status_s)
    if store_id:
        q = q.filter(Purchase.StoreID == store_id)
    s, e = day_bounds(start, end)
    if s:
        q = q.filter(Purchase.PurchasedAt >= s)
    if e:
        q = q.filter(Purchase.PurchasedAt < e)

    desc = sort.startswith("-")
    col = _SORTS.get(sort.lstrip("-"), Purchase.PurchasedAt)
    total = q.count()
    q = q.order_by(col.desc() if desc else col.asc(), Purchase.PurchaseID.desc())
    return paginate(q, skip, limit), total
