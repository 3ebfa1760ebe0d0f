# backend/inventory_api/services/report_service.py
from __future__ import annotations
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional

from fastapi import HTTPException, status
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ..core.db import utcnow
from ..core.money import money_out
from ..models import (
    Customer, Installation, Inventory, InventoryTransaction, Order, Product, ProductVariant,
)
from .backorder_service import pending_backorders_query

SEARCH_LIMIT = 5


def dashboard_stats(db: Session, *, store_id: Optional[int] = None) -> Dict[str, Any]:
    now = utcnow()
    month_start = datetime(now.year, now.month, 1)

    orders = db.query(Order).filter(Order.ShippingStatus != "cancelled")
    if store_id:
        orders = orders.filter(Order.StoreID == store_id)
    month_orders = orders.filter(Order.CreatedAt >= month_start)
    revenue = month_orders.with_entities(func.coalesce(func.sum(Order.GrandTotalCents), 0)).scalar()

    inv = db.query(Inventory).join(ProductVariant, ProductVariant.VariantID == Inventory.VariantID)
    if store_id:
        inv = inv.filter(Inventory.StoreID == store_id)
    inv_rows = inv.all()

    return {
        "MonthOrderCount": month_orders.count(),
        "MonthRevenue": money_out(revenue),
        "PendingOrders": orders.filter(Order.ShippingStatus.in_(("pending", "processing"))).count(),
        "ProductCount": db.query(func.count(Product.ProductID)).scalar() or 0,
        "VariantCount": db.query(func.count(ProductVariant.VariantID)).scalar() or 0,
        "CustomerCount": db.query(func.count(Customer.CustomerID)).scalar() or 0,
        "LowStockCount": sum(1 for i in inv_rows if i.IsLowStock),
        "OutOfStockCount": sum(1 for i in inv_rows if i.IsOutOfStock),
        "InventoryValue": money_out(sum(int(i.Quantity or 0) * int(i.variant.PriceCents or 0) for i in inv_rows)),
        "PendingBackorders": pending_backorders_query(db).count(),
        "PendingInstallations": (
            db.query(Installation)
            .filter(Installation.Status.in_(("pending", "scheduled", "in_progress")))
            .count()
        ),
    }


def inventory_time_series(
    db: Session,
    *,
    variant_id: int,
    start: date,
    end: date,
    store_id: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """Günlük kapanış miktarı: güncel stoktan geriye doğru hareketler çıkarılarak bulunur."""
    if end < start:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="end_date, start_date'ten önce olamaz.",
        )
    if not db.get(ProductVariant, variant_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Ürün varyantı bulunamadı.")

    inv_q = db.query(Inventory).filter(Inventory.VariantID == variant_id)
    if store_id:
        inv_q = inv_q.filter(Inventory.StoreID == store_id)
    inventories = inv_q.all()
    current = sum(int(i.Quantity or 0) for i in inventories)
    inv_ids = [i.InventoryID for i in inventories]

    since = datetime.combine(start, time.min)
    txns = (
        db.query(InventoryTransaction.CreatedAt, InventoryTransaction.Quantity)
        .filter(InventoryTransaction.InventoryID.in_(inv_ids), InventoryTransaction.CreatedAt >= since)
        .all()
        if inv_ids else []
    )
    delta_by_day: Dict[date, int] = {}
    for created, qty in txns:
        d = created.date()
        delta_by_day[d] = delta_by_day.get(d, 0) + int(qty)

    # end'den sonraki hareketleri geri al
    closing = current - sum(v for d, v in delta_by_day.items() if d > end)
    series = []
    d = end
    while d >= start:
        series.append({"Date": d.isoformat(), "Quantity": closing, "Change": delta_by_day.get(d, 0)})
        closing -= delta_by_day.get(d, 0)
        d -= timedelta(days=1)
    series.reverse()
    return series


def global_search(db: Session, *, query: str) -> Dict[str, Any]:
    text = (query or "").strip().lower()
    if not text:
        return {"Products": [], "Orders": [], "Customers": []}
    like = f"%{text}%"

    sku_match = db.query(ProductVariant.ProductID).filter(func.lower(ProductVariant.Sku).like(like))
    products = (
        db.query(Product)
        .filter(or_(func.lower(Product.Name).like(like), Product.ProductID.in_(sku_match)))
        .order_by(Product.ProductID.desc())
        .limit(SEARCH_LIMIT)
        .all()
    )
    orders = (
        db.query(Order)
        .join(Customer, Customer.CustomerID == Order.CustomerID)
        .filter(or_(func.lower(Order.OrderNumber).like(like), func.lower(Customer.Name).like(like)))
        .order_by(Order.OrderID.desc())
        .limit(SEARCH_LIMIT)
        .all()
    )
    customers = (
        db.query(Customer)
        .filter(or_(
            func.lower(Customer.Name).like(like),
            func.lower(func.coalesce(Customer.Phone, "")).like(like),
        ))
        .order_by(Customer.CustomerID.desc())
        .limit(SEARCH_LIMIT)
        .all()
    )
    return {
        "Products": [
            {"ProductID": p.ProductID, "Name": p.Name, "Skus": [v.Sku for v in p.variants]}
            for p in products
        ],
        "Orders": [
            {
                "OrderID": o.OrderID, "OrderNumber": o.OrderNumber, "CustomerName": o.CustomerName,
                "GrandTotal": money_out(o.GrandTotalCents), "ShippingStatus": o.ShippingStatus,
            }
            for o in orders
        ],
        "Customers": [
            {"CustomerID": c.CustomerID, "Name": c.Name, "Phone": c.Phone}
            for c in customers
        ],
    }
