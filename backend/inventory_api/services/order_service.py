# backend/inventory_api/services/order_service.py
from __future__ import annotations
from datetime import date
from typing import Any, Dict, List, Optional, Tuple
import logging

from fastapi import HTTPException, status
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ..core.db import lock_row, utcnow
from ..core.money import to_cents, from_cents
from ..core.sequence import SequenceGenerator
from ..models import (
    Customer, Inventory, Installation, InstallationItem, Order, OrderItem,
    OrderStatusHistory, PaymentRecord, ProductVariant, Store,
)
from ..domain.constants import (
    TXN_DEDUCT, TXN_RETURN, LOCKED_SHIPPING_STATUSES,
    REASON_ORDER_DEDUCT, REASON_ORDER_RETURN, REASON_ORDER_CANCEL, REASON_ORDER_STORE_MOVE,
    REASON_BACKORDER_FULFIL,
)
from .inventory_service import (
    add_stock, reduce_stock, available_quantity, default_store_id, day_bounds, paginate, item_stock_out,
)
from .transfer_service import build_transfer, cancel_transfer_in_session
from .customer_service import refresh_customer_totals

logger = logging.getLogger(__name__)

# Sipariş numarası: YYYYMM-NNNN (aylık sıra)
ORDER_NUMBERS = SequenceGenerator(Order.OrderNumber, prefix="", date_format="%Y%m", width=4)

CUSTOM_SKU = "CUSTOM"


# ---- Ortak yardımcılar ----
def get_order(db: Session, order_id: int, *, lock: bool = False) -> Order:
    order = lock_row(db, Order, order_id) if lock else db.get(Order, order_id)
    if not order:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Sipariş bulunamadı.")
    return order


def add_history(
    order: Order,
    *,
    status_type: str,
    from_status: Optional[str],
    to_status: str,
    user_id: Optional[int] = None,
    notes: Optional[str] = None,
) -> OrderStatusHistory:
    h = OrderStatusHistory(
        StatusType=status_type,
        FromStatus=from_status,
        ToStatus=to_status,
        UserID=user_id,
        Notes=notes,
    )
    order.histories.append(h)
    return h


def stock_store_id(db: Session, order: Order) -> int:
    return order.StoreID or default_store_id(db)


def recalculate_totals(order: Order) -> None:
    """subtotal = Σ(fiyat*adet - kalem indirimi); toplam = subtotal + kargo + vergi - indirim."""
    subtotal = sum(i.LineTotalCents for i in order.items)
    order.SubtotalCents = subtotal
    order.GrandTotalCents = (
        subtotal
        + int(order.ShippingFeeCents or 0)
        + int(order.TaxCents or 0)
        - int(order.DiscountAmountCents or 0)
    )


def _payment_status_for(order: Order) -> str:
    paid = int(order.PaidAmountCents or 0)
    if paid <= 0:
        return "pending"
    if paid < int(order.GrandTotalCents or 0):
        return "partial"
    return "paid"


def _item_fields(db: Session, data: Dict[str, Any]) -> Dict[str, Any]:
    """Girdi kalemini OrderItem kolonlarına çevir; varyanttan ad/SKU tamamla."""
    vid = data.get("VariantID")
    name = data.get("ProductName")
    sku = data.get("Sku")
    if vid is not None:
        variant = db.get(ProductVariant, vid)
        if not variant:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Ürün varyantı bulunamadı: {vid}")
        name = name or variant.ProductName
        sku = sku or variant.Sku
    is_stocked = bool(data.get("IsStockedSale", True)) and vid is not None
    is_backorder = bool(data.get("IsBackorder", False)) and not is_stocked
    fields = {
        "VariantID": vid,
        "ProductName": name,
        "Sku": sku or CUSTOM_SKU,
        "PriceCents": to_cents(data.get("Price")),
        "CostCents": to_cents(data.get("Cost")),
        "DiscountAmountCents": to_cents(data.get("DiscountAmount")),
        "TaxRate": data.get("TaxRate") or 0,
        "Quantity": int(data["Quantity"]),
        "IsStockedSale": is_stocked,
        "IsBackorder": is_backorder,
        "CustomSpecifications": data.get("CustomSpecifications"),
        "PriorityDeadline": data.get("PriorityDeadline"),
    }
    if data.get("Status"):
        fields["Status"] = data["Status"]
    return fields


def _deduct(
    db: Session,
    order: Order,
    item: OrderItem,
    qty: int,
    user_id: Optional[int],
    *,
    store_id: Optional[int] = None,
    notes: Optional[str] = None,
) -> None:
    reduce_stock(
        db,
        variant_id=item.VariantID,
        store_id=store_id or stock_store_id(db, order),
        quantity=qty,
        txn_type=TXN_DEDUCT,
        user_id=user_id,
        notes=notes or REASON_ORDER_DEDUCT.format(order.OrderNumber),
        meta={"order_id": order.OrderID, "order_item_id": item.ItemID},
    )


def return_item_stock(
    db: Session,
    order: Order,
    item: OrderItem,
    *,
    user_id: Optional[int],
    notes: str,
    limit: Optional[int] = None,
    meta: Optional[Dict[str, Any]] = None,
) -> int:
    """
    Kalem için depodan çıkmış stoğu çıktığı mağazalara geri koyar (commit yok).
    Önce siparişin mağazası, sonra diğerleri; limit yoksa tamamı. İade edilen adedi döndürür.
    """
    if item.VariantID is None or item.ItemID is None:
        return 0
    out = item_stock_out(db, order_item_id=item.ItemID, variant_id=item.VariantID)
    total = sum(out.values())
    left = total if limit is None else min(int(limit), total)
    home = stock_store_id(db, order)
    returned = 0
    for sid in sorted(out, key=lambda s: (s != home, s)):
        take = min(out[sid], left - returned)
        if take <= 0:
            break
        add_stock(
            db,
            variant_id=item.VariantID,
            store_id=sid,
            quantity=take,
            txn_type=TXN_RETURN,
            user_id=user_id,
            notes=notes,
            meta={"order_id": order.OrderID, "order_item_id": item.ItemID, **(meta or {})},
        )
        returned += take
    return returned


def consume_for_backorder(
    db: Session,
    item: OrderItem,
    qty: int,
    *,
    store_id: int,
    user_id: Optional[int] = None,
    notes: Optional[str] = None,
) -> int:
    """Bekleyen kalemi verilen mağazanın stoğundan karşıla; stoktan düşülen adedi döndürür."""
    take = min(int(qty), item.RemainingQuantity)
    if take <= 0 or item.VariantID is None:
        return 0
    order = item.order
    _deduct(db, order, item, take, user_id, store_id=store_id,
            notes=notes or REASON_BACKORDER_FULFIL.format(order.OrderNumber))
    item.add_fulfilled_quantity(take)
    db.add(item)
    return take


def _return_all_stock(db: Session, order: Order, user_id: Optional[int], reason: str) -> None:
    """Kalemlerin depodan çıkan stoğunu geri al, karşılamalarını sıfırla."""
    for item in order.items:
        return_item_stock(db, order, item, user_id=user_id, notes=reason.format(order.OrderNumber))
        if (item.IsStockedSale and item.VariantID is not None) or item.IsBackorder:
            item.reset_fulfillment()


def _move_stock_to_store(db: Session, order: Order, store_id: int, user_id: Optional[int]) -> None:
    """Sipariş mağazası değişince kalemlerin başka mağazadan çıkmış stoğu oraya döner, yeni mağazadan düşülür."""
    notes = REASON_ORDER_STORE_MOVE.format(order.OrderNumber)
    for item in order.items:
        if item.VariantID is None:
            continue
        out = item_stock_out(db, order_item_id=item.ItemID, variant_id=item.VariantID)
        moved = 0
        for sid, qty in out.items():
            if sid == store_id:
                continue
            add_stock(
                db,
                variant_id=item.VariantID,
                store_id=sid,
                quantity=qty,
                txn_type=TXN_RETURN,
                user_id=user_id,
                notes=notes,
                meta={"order_id": order.OrderID, "order_item_id": item.ItemID},
            )
            moved += qty
        if moved:
            _deduct(db, order, item, moved, user_id, store_id=store_id, notes=notes)


def _cancel_open_transfers(db: Session, order: Order, user_id: Optional[int], reason: str) -> None:
    for tr in order.transfers:
        if tr.Status in ("pending", "in_transit"):
            cancel_transfer_in_session(db, tr, reason=reason, user_id=user_id)


# ---- Stok uygunluk kontrolü ----
def _transfer_sources(db: Session, *, variant_id: int, exclude_store_id: int) -> List[Dict[str, Any]]:
    rows = (
        db.query(Inventory, Store)
        .join(Store, Store.StoreID == Inventory.StoreID)
        .filter(
            Inventory.VariantID == variant_id,
            Inventory.StoreID != exclude_store_id,
            Inventory.Quantity > 0,
            Store.IsActive == True,  # noqa: E712
        )
        .order_by(Inventory.Quantity.desc(), Inventory.StoreID.asc())
        .all()
    )
    return [{"StoreID": s.StoreID, "StoreName": s.Name, "Available": int(inv.Quantity)} for inv, s in rows]


def check_stock_availability(db: Session, *, store_id: Optional[int], items: List[Dict[str, Any]]) -> Dict[str, Any]:
    store_id = store_id or default_store_id(db)
    if not db.get(Store, store_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Mağaza bulunamadı.")

    # Aynı varyant birden çok satırda olabilir
    requested: Dict[int, int] = {}
    for it in items:
        requested[it["VariantID"]] = requested.get(it["VariantID"], 0) + int(it["Quantity"])

    results = []
    for vid, qty in requested.items():
        variant = db.get(ProductVariant, vid)
        if not variant:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Ürün varyantı bulunamadı: {vid}")
        available = available_quantity(db, variant_id=vid, store_id=store_id)
        shortage = max(0, qty - available)
        suggestions: List[Dict[str, Any]] = []
        if shortage:
            remaining = shortage
            for src in _transfer_sources(db, variant_id=vid, exclude_store_id=store_id):
                if remaining <= 0:
                    break
                take = min(remaining, src["Available"])
                suggestions.append({"type": "transfer", **src, "Quantity": take})
                remaining -= take
            if remaining > 0:
                suggestions.append({"type": "purchase", "Quantity": remaining})
        results.append({
            "VariantID": vid,
            "Sku": variant.Sku,
            "ProductName": variant.ProductName,
            "Requested": qty,
            "Available": available,
            "Sufficient": shortage == 0,
            "Shortage": shortage,
            "Suggestions": suggestions,
        })
    return {
        "StoreID": store_id,
        "AllSufficient": all(r["Sufficient"] for r in results),
        "Items": results,
    }


# ---- Oluştur ----
def create_order(db: Session, *, data: Dict[str, Any], user_id: Optional[int] = None) -> Order:
    if not db.get(Customer, data["CustomerID"]):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Müşteri bulunamadı.")
    if data.get("StoreID") and not db.get(Store, data["StoreID"]):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Mağaza bulunamadı.")
    if data.get("ShippingStatus") == "cancelled":
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Sipariş iptal durumunda oluşturulamaz.",
        )

    store_id = data.get("StoreID") or default_store_id(db)
    items_in = data["Items"]

    # Stoktan satılacak kalemler için eksik kontrolü (varyant bazında toplanır)
    need: Dict[int, int] = {}
    for it in items_in:
        if it.get("VariantID") is not None and it.get("IsStockedSale", True) and not it.get("StockDecision"):
            need[it["VariantID"]] = need.get(it["VariantID"], 0) + int(it["Quantity"])
    short_variants = {
        vid for vid, qty in need.items()
        if available_quantity(db, variant_id=vid, store_id=store_id) < qty
    }
    if short_variants and not data.get("ForceCreateDespiteStock"):
        check = check_stock_availability(
            db, store_id=store_id,
            items=[{"VariantID": v, "Quantity": need[v]} for v in short_variants],
        )
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": "Stok yetersiz.", "shortages": check["Items"]},
        )

    try:
        order = Order(
            OrderNumber=ORDER_NUMBERS.generate_next(db),
            CustomerID=data["CustomerID"],
            StoreID=data.get("StoreID"),
            CreatorUserID=user_id,
            ShippingStatus=data.get("ShippingStatus") or "pending",
            PaymentStatus=data.get("PaymentStatus") or "pending",
            ShippingFeeCents=to_cents(data.get("ShippingFee")),
            TaxCents=to_cents(data.get("Tax")),
            DiscountAmountCents=to_cents(data.get("DiscountAmount")),
            PaymentMethod=data.get("PaymentMethod"),
            OrderSource=data.get("OrderSource"),
            ShippingAddress=data.get("ShippingAddress"),
            Notes=data.get("Notes"),
            FulfillmentPriority=data.get("FulfillmentPriority") or "normal",
            ExpectedDeliveryDate=data.get("ExpectedDeliveryDate"),
        )
        if not order.ShippingAddress:
            customer = db.get(Customer, data["CustomerID"])
            order.ShippingAddress = customer.DefaultAddress or customer.ContactAddress
        db.add(order)
        db.flush()

        for it in items_in:
            fields = _item_fields(db, it)
            decision = it.get("StockDecision") if fields["IsStockedSale"] else None
            local = 0
            if decision:
                # Karar yalnızca eksik kısım için; yerel stok yetiyorsa normal satış
                local = available_quantity(db, variant_id=fields["VariantID"], store_id=store_id)
                if local >= fields["Quantity"]:
                    decision = None
            short = fields["VariantID"] in short_variants
            if fields["IsStockedSale"] and (decision or short):
                # Eksik kalem bekleyen (backorder) olarak açılır
                fields["IsStockedSale"] = False
                fields["IsBackorder"] = True
            item = OrderItem(**fields)
            order.items.append(item)
            db.flush()

            if item.IsStockedSale:
                _deduct(db, order, item, item.Quantity, user_id)
                item.mark_fulfilled()
            elif decision:
                if local > 0:
                    consume_for_backorder(db, item, local, store_id=store_id, user_id=user_id,
                                          notes=REASON_ORDER_DEDUCT.format(order.OrderNumber))
                if decision in ("transfer", "mixed"):
                    _plan_transfers(
                        db, order, item, store_id, user_id,
                        decision=decision,
                        plan=it.get("Transfers"),
                        purchase_quantity=it.get("PurchaseQuantity"),
                    )

        recalculate_totals(order)
        if order.PaymentStatus == "paid":
            order.PaidAmountCents = order.GrandTotalCents
            order.PaidAt = utcnow()
        if order.ShippingStatus in LOCKED_SHIPPING_STATUSES:
            order.ShippedAt = utcnow()

        add_history(order, status_type="shipping", from_status=None, to_status=order.ShippingStatus,
                    user_id=user_id, notes="Sipariş oluşturuldu")
        add_history(order, status_type="payment", from_status=None, to_status=order.PaymentStatus,
                    user_id=user_id, notes="Sipariş oluşturuldu")
        refresh_customer_totals(db, order.CustomerID)

        db.commit()
        db.refresh(order)
        logger.info("order created %s (items=%s)", order.OrderNumber, len(order.items))
        return order
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.exception("create_order error (CustomerID=%s)", data.get("CustomerID"))
        raise HTTPException(status_code=500, detail=f"create_order error: {type(e).__name__}: {e}")


def _plan_transfers(
    db: Session,
    order: Order,
    item: OrderItem,
    store_id: int,
    user_id: Optional[int],
    *,
    decision: str,
    plan: Optional[List[Dict[str, Any]]] = None,
    purchase_quantity: Optional[int] = None,
) -> int:
    """
    Kalemin karşılanmamış kısmı için diğer mağazalardan bekleyen transferler açar.
    transfer: eksiğin tamamı transferle kapanmalı. mixed: kalan adet satın almaya bırakılır.
    Satın almaya kalan adedi döndürür.
    """
    shortfall = item.RemainingQuantity
    if plan:
        legs = [(int(p["FromStoreID"]), int(p["Quantity"])) for p in plan]
    else:
        target = shortfall
        if decision == "mixed" and purchase_quantity is not None:
            target = max(0, shortfall - int(purchase_quantity))
        legs = []
        for src in _transfer_sources(db, variant_id=item.VariantID, exclude_store_id=store_id):
            if target <= 0:
                break
            take = min(target, src["Available"])
            legs.append((src["StoreID"], take))
            target -= take

    planned = sum(q for _, q in legs)
    if planned > shortfall:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Transfer adedi eksikten fazla ({item.Sku}): {planned} > {shortfall}",
        )
    if decision == "transfer" and planned < shortfall:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Diğer mağazalarda yeterli stok yok ({item.Sku}). Eksik: {shortfall}, bulunan: {planned}",
        )
    if decision == "mixed" and purchase_quantity is not None and planned + int(purchase_quantity) != shortfall:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Transfer + satın alma eksiğe eşit olmalı ({item.Sku}): {planned} + {purchase_quantity} != {shortfall}",
        )

    for from_store_id, qty in legs:
        build_transfer(
            db,
            from_store_id=from_store_id,
            to_store_id=store_id,
            variant_id=item.VariantID,
            quantity=qty,
            status_s="pending",
            notes=f"Sipariş #{order.OrderNumber} için",
            order_id=order.OrderID,
            user_id=user_id,
        )
    return shortfall - planned


# ---- Güncelle ----
_HEADER_FIELDS = (
    "CustomerID", "StoreID", "PaymentMethod", "OrderSource", "ShippingAddress",
    "Notes", "FulfillmentPriority", "ExpectedDeliveryDate",
)


def _sync_items(db: Session, order: Order, items_in: List[Dict[str, Any]], user_id: Optional[int]) -> None:
    existing = {i.ItemID: i for i in order.items}

    for data in items_in:
        fields = _item_fields(db, data)
        item_id = data.get("ItemID")
        if item_id is None:
            item = OrderItem(**fields)
            order.items.append(item)
            db.flush()
            if item.IsStockedSale:
                _deduct(db, order, item, item.Quantity, user_id)
                item.mark_fulfilled()
            continue

        item = existing.pop(item_id, None)
        if item is None:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"Kalem bu siparişe ait değil: {item_id}",
            )

        old_stocked = bool(item.IsStockedSale) and item.VariantID is not None
        new_stocked = fields["IsStockedSale"]
        new_qty = fields["Quantity"]
        same_line = (
            item.VariantID == fields["VariantID"]
            and old_stocked == new_stocked
            and bool(item.IsBackorder) == fields["IsBackorder"]
        )
        notes = REASON_ORDER_RETURN.format(order.OrderNumber)

        if same_line and new_stocked:
            delta = new_qty - int(item.Quantity)
            if delta > 0:
                _deduct(db, order, item, delta, user_id)
            elif delta < 0:
                return_item_stock(db, order, item, user_id=user_id, notes=notes, limit=-delta)
        elif same_line:
            # Bekleyen kalemde adet karşılanandan aşağı inerse fazlası depoya döner
            excess = int(item.FulfilledQuantity or 0) - new_qty
            if excess > 0:
                return_item_stock(db, order, item, user_id=user_id, notes=notes, limit=excess)
        else:
            return_item_stock(db, order, item, user_id=user_id, notes=notes)
            if new_stocked:
                item.VariantID = fields["VariantID"]
                _deduct(db, order, item, new_qty, user_id)

        for k, v in fields.items():
            setattr(item, k, v)
        if new_stocked:
            item.mark_fulfilled(at=item.FulfilledAt)
        elif not same_line:
            item.reset_fulfillment()
        elif item.FulfilledQuantity > item.Quantity:
            item.FulfilledQuantity = item.Quantity

    # Listede olmayan kalemler silinir, stok iade edilir
    for item in existing.values():
        return_item_stock(db, order, item, user_id=user_id, notes=REASON_ORDER_RETURN.format(order.OrderNumber))
        order.items.remove(item)


def update_order(db: Session, *, order_id: int, data: Dict[str, Any], user_id: Optional[int] = None) -> Order:
    order = get_order(db, order_id, lock=True)
    if order.ShippingStatus == "cancelled":
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="İptal edilmiş sipariş güncellenemez.")
    if data.get("ShippingStatus") == "cancelled":
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="İptal için /orders/{id}/cancel kullanın.",
        )
    if data.get("Items") is not None and order.ShippingStatus in LOCKED_SHIPPING_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Kargolanmış siparişin kalemleri değiştirilemez.",
        )
    if data.get("CustomerID") and not db.get(Customer, data["CustomerID"]):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Müşteri bulunamadı.")
    if data.get("StoreID") and not db.get(Store, data["StoreID"]):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Mağaza bulunamadı.")

    old_customer = order.CustomerID
    old_store = stock_store_id(db, order)
    try:
        for k in _HEADER_FIELDS:
            if data.get(k) is not None:
                setattr(order, k, data[k])
        if data.get("StoreID") and data["StoreID"] != old_store:
            _move_stock_to_store(db, order, data["StoreID"], user_id)
            add_history(order, status_type="store", from_status=str(old_store), to_status=str(data["StoreID"]),
                        user_id=user_id, notes=REASON_ORDER_STORE_MOVE.format(order.OrderNumber))
        if data.get("Items") is not None:
            _sync_items(db, order, data["Items"], user_id)

        for k in ("ShippingFee", "Tax", "DiscountAmount"):
            if data.get(k) is not None:
                setattr(order, f"{k}Cents", to_cents(data[k]))
        recalculate_totals(order)

        new_ship = data.get("ShippingStatus")
        if new_ship and new_ship != order.ShippingStatus:
            add_history(order, status_type="shipping", from_status=order.ShippingStatus,
                        to_status=new_ship, user_id=user_id)
            order.ShippingStatus = new_ship
            if new_ship in LOCKED_SHIPPING_STATUSES and not order.ShippedAt:
                order.ShippedAt = utcnow()

        new_pay = data.get("PaymentStatus")
        if new_pay and new_pay != order.PaymentStatus:
            add_history(order, status_type="payment", from_status=order.PaymentStatus,
                        to_status=new_pay, user_id=user_id)
            order.PaymentStatus = new_pay
            if new_pay == "paid":
                order.PaidAmountCents = order.GrandTotalCents
                order.PaidAt = order.PaidAt or utcnow()

        db.add(order)
        refresh_customer_totals(db, order.CustomerID)
        if old_customer != order.CustomerID:
            refresh_customer_totals(db, old_customer)
        db.commit()
        db.refresh(order)
        return order
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.exception("update_order error (OrderID=%s)", order_id)
        raise HTTPException(status_code=500, detail=f"update_order error: {type(e).__name__}: {e}")


# ---- Ödeme ----
def confirm_payment(db: Session, *, order_id: int, user_id: Optional[int] = None) -> Order:
    order = get_order(db, order_id, lock=True)
    if order.ShippingStatus == "cancelled":
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="İptal edilmiş sipariş.")
    if order.PaymentStatus == "paid":
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Sipariş zaten ödenmiş.")

    remaining = order.RemainingAmountCents
    if remaining > 0:
        order.payments.append(PaymentRecord(
            AmountCents=remaining,
            PaymentMethod=order.PaymentMethod or "manual",
            UserID=user_id,
            Notes="Ödeme onaylandı",
        ))
    add_history(order, status_type="payment", from_status=order.PaymentStatus, to_status="paid",
                user_id=user_id, notes="Ödeme onaylandı")
    order.PaidAmountCents = order.GrandTotalCents
    order.PaymentStatus = "paid"
    order.PaidAt = utcnow()
    db.add(order)
    refresh_customer_totals(db, order.CustomerID)
    db.commit()
    db.refresh(order)
    return order


def add_payment(
    db: Session,
    *,
    order_id: int,
    amount,
    payment_method: str,
    payment_date=None,
    notes: Optional[str] = None,
    user_id: Optional[int] = None,
) -> Order:
    order = get_order(db, order_id, lock=True)
    if order.ShippingStatus == "cancelled":
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="İptal edilmiş sipariş.")
    if order.PaymentStatus == "paid":
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Sipariş zaten ödenmiş.")

    cents = to_cents(amount)
    if cents <= 0:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Tutar pozitif olmalı.")
    remaining = order.RemainingAmountCents
    if cents > remaining:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Ödeme kalan tutarı aşıyor. Kalan: {from_cents(remaining)}",
        )

    order.payments.append(PaymentRecord(
        AmountCents=cents,
        PaymentMethod=payment_method,
        PaymentDate=payment_date or utcnow(),
        Notes=notes,
        UserID=user_id,
    ))
    order.PaidAmountCents = int(order.PaidAmountCents or 0) + cents
    new_status = _payment_status_for(order)
    if new_status != order.PaymentStatus:
        add_history(order, status_type="payment", from_status=order.PaymentStatus, to_status=new_status,
                    user_id=user_id, notes=f"Ödeme: {from_cents(cents)} ({payment_method})")
        order.PaymentStatus = new_status
    if new_status == "paid":
        order.PaidAt = utcnow()
    db.add(order)
    refresh_customer_totals(db, order.CustomerID)
    db.commit()
    db.refresh(order)
    return order


# ---- Kargo ----
def create_shipment(
    db: Session,
    *,
    order_id: int,
    tracking_number: str,
    carrier: Optional[str] = None,
    shipped_at=None,
    estimated_delivery_date: Optional[date] = None,
    notes: Optional[str] = None,
    user_id: Optional[int] = None,
) -> Order:
    order = get_order(db, order_id, lock=True)
    if order.ShippingStatus == "cancelled":
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="İptal edilmiş sipariş kargolanamaz.")
    if order.ShippingStatus in LOCKED_SHIPPING_STATUSES:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Sipariş zaten kargolanmış.")

    add_history(order, status_type="shipping", from_status=order.ShippingStatus, to_status="shipped",
                user_id=user_id, notes=notes or f"Takip no: {tracking_number}")
    order.ShippingStatus = "shipped"
    order.TrackingNumber = tracking_number
    order.Carrier = carrier
    order.ShippedAt = shipped_at or utcnow()
    order.EstimatedDeliveryDate = estimated_delivery_date
    db.add(order)
    db.commit()
    db.refresh(order)
    return order


# ---- İptal / silme ----
def _cancel_in_session(db: Session, order: Order, *, reason: Optional[str], user_id: Optional[int]) -> None:
    _return_all_stock(db, order, user_id, REASON_ORDER_CANCEL)
    _cancel_open_transfers(db, order, user_id, reason or f"Sipariş #{order.OrderNumber} iptal")
    for item in order.items:
        item.Status = "cancelled"
    add_history(order, status_type="shipping", from_status=order.ShippingStatus, to_status="cancelled",
                user_id=user_id, notes=reason)
    order.ShippingStatus = "cancelled"
    order.CancelledAt = utcnow()
    order.CancellationReason = reason
    db.add(order)
    refresh_customer_totals(db, order.CustomerID)


def cancel_order(db: Session, *, order_id: int, reason: Optional[str] = None, user_id: Optional[int] = None) -> Order:
    order = get_order(db, order_id, lock=True)
    if order.ShippingStatus == "cancelled":
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Sipariş zaten iptal edilmiş.")
    if order.ShippingStatus in LOCKED_SHIPPING_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"'{order.ShippingStatus}' durumundaki sipariş iptal edilemez.",
        )
    try:
        _cancel_in_session(db, order, reason=reason, user_id=user_id)
        db.commit()
        db.refresh(order)
        logger.info("order cancelled %s", order.OrderNumber)
        return order
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.exception("cancel_order error (OrderID=%s)", order_id)
        raise HTTPException(status_code=500, detail=f"cancel_order error: {type(e).__name__}: {e}")


def _delete_in_session(db: Session, order: Order, user_id: Optional[int]) -> None:
    if order.ShippingStatus != "cancelled":
        _return_all_stock(db, order, user_id, REASON_ORDER_RETURN)
        _cancel_open_transfers(db, order, user_id, f"Sipariş #{order.OrderNumber} silindi")
    for tr in order.transfers:
        tr.OrderID = None
    db.query(Installation).filter(Installation.OrderID == order.OrderID).update(
        {Installation.OrderID: None}, synchronize_session="fetch"
    )
    item_ids = [i.ItemID for i in order.items]
    if item_ids:
        db.query(InstallationItem).filter(InstallationItem.OrderItemID.in_(item_ids)).update(
            {InstallationItem.OrderItemID: None}, synchronize_session="fetch"
        )
    customer_id = order.CustomerID
    db.delete(order)
    db.flush()
    refresh_customer_totals(db, customer_id)


def delete_order(db: Session, *, order_id: int, user_id: Optional[int] = None) -> None:
    order = get_order(db, order_id, lock=True)
    if order.ShippingStatus in LOCKED_SHIPPING_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"'{order.ShippingStatus}' durumundaki sipariş silinemez.",
        )
    try:
        _delete_in_session(db, order, user_id)
        db.commit()
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.exception("delete_order error (OrderID=%s)", order_id)
        raise HTTPException(status_code=500, detail=f"delete_order error: {type(e).__name__}: {e}")


def batch_delete_orders(db: Session, *, ids: List[int], user_id: Optional[int] = None) -> Dict[str, Any]:
    deleted: List[int] = []
    skipped: List[Dict[str, Any]] = []
    try:
        for oid in ids:
            order = db.get(Order, oid)
            if not order:
                skipped.append({"OrderID": oid, "reason": "bulunamadı"})
                continue
            if order.ShippingStatus in LOCKED_SHIPPING_STATUSES:
                skipped.append({"OrderID": oid, "reason": f"durum: {order.ShippingStatus}"})
                continue
            _delete_in_session(db, order, user_id)
            deleted.append(oid)
        db.commit()
        return {"deleted": deleted, "skipped": skipped}
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.exception("batch_delete_orders error")
        raise HTTPException(status_code=500, detail=f"batch_delete_orders error: {type(e).__name__}: {e}")


def batch_update_status(
    db: Session,
    *,
    ids: List[int],
    status_type: str,
    status_value: str,
    user_id: Optional[int] = None,
) -> Dict[str, Any]:
    updated: List[int] = []
    skipped: List[Dict[str, Any]] = []
    try:
        for oid in ids:
            order = db.get(Order, oid)
            if not order:
                skipped.append({"OrderID": oid, "reason": "bulunamadı"})
                continue
            if order.ShippingStatus == "cancelled":
                skipped.append({"OrderID": oid, "reason": "iptal edilmiş"})
                continue
            if status_type == "shipping":
                if order.ShippingStatus == status_value:
                    continue
                if status_value == "cancelled":
                    if order.ShippingStatus in LOCKED_SHIPPING_STATUSES:
                        skipped.append({"OrderID": oid, "reason": f"durum: {order.ShippingStatus}"})
                        continue
                    _cancel_in_session(db, order, reason="Toplu durum güncelleme", user_id=user_id)
                else:
                    add_history(order, status_type="shipping", from_status=order.ShippingStatus,
                                to_status=status_value, user_id=user_id, notes="Toplu durum güncelleme")
                    order.ShippingStatus = status_value
                    if status_value in LOCKED_SHIPPING_STATUSES and not order.ShippedAt:
                        order.ShippedAt = utcnow()
            else:
                if order.PaymentStatus == status_value:
                    continue
                add_history(order, status_type="payment", from_status=order.PaymentStatus,
                            to_status=status_value, user_id=user_id, notes="Toplu durum güncelleme")
                order.PaymentStatus = status_value
                if status_value == "paid":
                    order.PaidAmountCents = order.GrandTotalCents
                    order.PaidAt = order.PaidAt or utcnow()
                refresh_customer_totals(db, order.CustomerID)
            db.add(order)
            updated.append(oid)
        db.commit()
        return {"updated": updated, "skipped": skipped}
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.exception("batch_update_status error")
        raise HTTPException(status_code=500, detail=f"batch_update_status error: {type(e).__name__}: {e}")


def update_item_status(
    db: Session, *, item_id: int, new_status: str, notes: Optional[str] = None, user_id: Optional[int] = None
) -> OrderItem:
    item = db.get(OrderItem, item_id)
    if not item:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Sipariş kalemi bulunamadı.")
    if item.Status != new_status:
        add_history(
            item.order, status_type="item", from_status=item.Status, to_status=new_status,
            user_id=user_id, notes=notes or f"Kalem #{item.ItemID} ({item.Sku})",
        )
        item.Status = new_status
        db.add(item)
        db.commit()
        db.refresh(item)
    return item


# ---- Listeleme ----
def list_orders(
    db: Session,
    *,
    search: Optional[str] = None,
    shipping_status: Optional[str] = None,
    payment_status: Optional[str] = None,
    customer_id: Optional[int] = None,
    store_id: Optional[int] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
    skip: int = 0,
    limit: int = 100,
    sort: str = "-CreatedAt",
) -> Tuple[List[Order], int]:
    q = db.query(Order).join(Customer, Customer.CustomerID == Order.CustomerID)
    if search:
        like = f"%{search.lower()}%"
        q = q.filter(or_(
            func.lower(Order.OrderNumber).like(like),
            func.lower(Customer.Name).like(like),
        ))
    if shipping_status:
        q = q.filter(Order.ShippingStatus == shipping_status)
    if payment_status:
        q = q.filter(Order.PaymentStatus == payment_status)
    if customer_id:
        q = q.filter(Order.CustomerID == customer_id)
    if store_id:
        q = q.filter(Order.StoreID == store_id)
    s, e = day_bounds(start, end)
    if s:
        q = q.filter(Order.CreatedAt >= s)
    if e:
        q = q.filter(Order.CreatedAt < e)

    order_fields = {
        "OrderID": Order.OrderID,
        "OrderNumber": Order.OrderNumber,
        "CreatedAt": Order.CreatedAt,
        "GrandTotal": Order.GrandTotalCents,
    }
    desc = sort.startswith("-")
    key = sort[1:] if desc else sort
    col = order_fields.get(key, Order.CreatedAt)
    q = q.order_by(col.desc() if desc else col.asc(), Order.OrderID.desc())

    total = q.count()
    return paginate(q, skip, limit), total
