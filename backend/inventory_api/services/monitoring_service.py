# backend/inventory_api/services/monitoring_service.py
"""
Stok uyarıları ve izleme.

Sağlık skoru (0-100):
  stok seviyesi  40  (boş 0, eşik altı 20*q/eşik, üstü 40)
  hareketlilik   30  (min(30, 3 * son 30 gün hareket sayısı))
  tahmin         25  (sabit)
  >= 80 healthy, >= 60 warning, >= 40 attention, altı critical
"""
from __future__ import annotations
from datetime import datetime, timedelta
from math import sqrt
from typing import Any, Dict, List, Optional, Sequence, Tuple
import logging

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from ..core.db import utcnow
from ..core.money import money_out
from ..models import Inventory, InventoryTransaction, ProductVariant
from ..domain.constants import (
    TXN_DEDUCT, REORDER_LEAD_TIME_DAYS, SAFETY_STOCK_DAYS, MIN_REORDER_QTY,
)
from .inventory_service import get_inventory, get_or_create_inventory, paginate

logger = logging.getLogger(__name__)

STOCK_POINTS = 40
FLOW_POINTS = 30
PREDICTION_POINTS = 25
ANOMALY_MIN_SAMPLES = 5


# ---- Uyarılar ----
def low_stock_alerts(
    db: Session, *, store_id: Optional[int] = None, skip: int = 0, limit: int = 100
) -> Tuple[List[Inventory], int]:
    q = db.query(Inventory).filter(Inventory.Quantity > 0, Inventory.Quantity <= Inventory.LowStockThreshold)
    if store_id:
        q = q.filter(Inventory.StoreID == store_id)
    total = q.count()
    rows = paginate(q.order_by((Inventory.Quantity - Inventory.LowStockThreshold).asc(), Inventory.InventoryID), skip, limit)
    return rows, total


def alert_summary(db: Session, *, store_id: Optional[int] = None) -> Dict[str, Any]:
    q = db.query(Inventory).join(ProductVariant, ProductVariant.VariantID == Inventory.VariantID)
    if store_id:
        q = q.filter(Inventory.StoreID == store_id)
    rows = q.all()
    low = sum(1 for i in rows if i.IsLowStock)
    out = sum(1 for i in rows if i.IsOutOfStock)
    value_cents = sum(int(i.Quantity or 0) * int(i.variant.PriceCents or 0) for i in rows)
    return {
        "StoreID": store_id,
        "TotalItems": len(rows),
        "LowStockCount": low,
        "OutOfStockCount": out,
        "HealthyCount": len(rows) - low - out,
        "TotalInventoryValue": money_out(value_cents),
    }


def update_thresholds(db: Session, *, items: List[Dict[str, Any]]) -> List[Inventory]:
    """InventoryID ile tek satır; VariantID (+StoreID yoksa tüm mağazalar) ile çoklu satır."""
    updated: List[Inventory] = []
    try:
        for it in items:
            if it.get("InventoryID"):
                targets = [get_inventory(db, it["InventoryID"])]
            elif it.get("StoreID"):
                targets = [get_or_create_inventory(db, variant_id=it["VariantID"], store_id=it["StoreID"], lock=False)]
            else:
                targets = db.query(Inventory).filter(Inventory.VariantID == it["VariantID"]).all()
                if not targets:
                    raise HTTPException(
                        status_code=status.HTTP_404_NOT_FOUND,
                        detail=f"Varyant için stok kaydı yok: {it['VariantID']}",
                    )
            for inv in targets:
                inv.LowStockThreshold = int(it["LowStockThreshold"])
                db.add(inv)
                updated.append(inv)
        db.commit()
        for inv in updated:
            db.refresh(inv)
        return updated
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.exception("update_thresholds error")
        raise HTTPException(status_code=500, detail=f"update_thresholds error: {type(e).__name__}: {e}")


# ---- Skor / analiz (saf fonksiyonlar) ----
def health_score(quantity: int, threshold: int, recent_txn_count: int) -> Dict[str, Any]:
    quantity = int(quantity or 0)
    threshold = int(threshold or 0)
    if quantity <= 0:
        stock = 0.0
    elif quantity <= threshold:
        stock = 20.0 * quantity / threshold
    else:
        stock = float(STOCK_POINTS)
    flow = float(min(FLOW_POINTS, 3 * int(recent_txn_count or 0)))
    score = round(stock + flow + PREDICTION_POINTS, 2)

    if score >= 80:
        state = "healthy"
    elif score >= 60:
        state = "warning"
    elif score >= 40:
        state = "attention"
    else:
        state = "critical"

    tips = []
    if stock < 20:
        tips.append("庫存水平過低，建議立即補貨")
    if flow < 15:
        tips.append("商品流動性差，考慮促銷或調整定價")
    if state == "critical":
        tips.append("庫存狀況危急，需要立即採取行動")
    return {
        "Score": score,
        "Status": state,
        "Factors": {"StockLevel": round(stock, 2), "FlowRate": flow, "PredictionAccuracy": PREDICTION_POINTS},
        "Recommendations": tips,
    }


def find_anomalies(changes: Sequence[Tuple[int, int]]) -> List[Dict[str, Any]]:
    """changes: (TxnID, değişim). Ortalamadan 2 standart sapmadan fazla sapanlar."""
    if len(changes) < ANOMALY_MIN_SAMPLES:
        return []
    values = [c for _, c in changes]
    mean = sum(values) / len(values)
    std = sqrt(sum((v - mean) ** 2 for v in values) / len(values))
    if std <= 0:
        return []
    out = []
    for txn_id, change in changes:
        deviation = abs(change - mean)
        if deviation > 2 * std:
            out.append({
                "TxnID": txn_id,
                "QuantityChange": change,
                "AverageChange": round(mean, 2),
                "StandardDeviation": round(std, 2),
                "Deviation": round(deviation, 2),
            })
    return out


def trend_direction(quantities: Sequence[int]) -> str:
    """İkinci yarının ortalaması ilk yarıya göre +-%20."""
    if len(quantities) < 2:
        return "stable"
    mid = len(quantities) // 2
    first = abs(sum(quantities[:mid]) / mid)
    second = abs(sum(quantities[mid:]) / (len(quantities) - mid))
    if second > first * 1.2:
        return "increasing"
    if second < first * 0.8:
        return "decreasing"
    return "stable"


# ---- DB tabanlı analizler ----
def _since(days: int) -> datetime:
    return utcnow() - timedelta(days=days)


def _window(db: Session, inventory_id: int, days: int, txn_type: Optional[str] = None) -> List[InventoryTransaction]:
    q = db.query(InventoryTransaction).filter(
        InventoryTransaction.InventoryID == inventory_id,
        InventoryTransaction.CreatedAt >= _since(days),
    )
    if txn_type:
        q = q.filter(InventoryTransaction.TxnType == txn_type)
    return q.order_by(InventoryTransaction.CreatedAt.asc(), InventoryTransaction.TxnID.asc()).all()


def inventory_health(db: Session, *, inventory_id: int) -> Dict[str, Any]:
    inv = get_inventory(db, inventory_id)
    recent = len(_window(db, inventory_id, 30))
    return {"InventoryID": inv.InventoryID, "Quantity": inv.Quantity, **health_score(inv.Quantity, inv.LowStockThreshold, recent)}


def detect_anomalies(db: Session, *, inventory_id: int, days: int = 30) -> List[Dict[str, Any]]:
    get_inventory(db, inventory_id)
    txns = _window(db, inventory_id, days)
    found = find_anomalies([(t.TxnID, int(t.Quantity)) for t in txns])
    if found:
        logger.warning("inventory %s: %s anomalies in %s days", inventory_id, len(found), days)
    return found


def analyze_trend(db: Session, *, inventory_id: int, days: int = 30) -> Dict[str, Any]:
    inv = get_inventory(db, inventory_id)
    days = max(1, int(days))
    txns = _window(db, inventory_id, days, TXN_DEDUCT)
    consumed = abs(sum(int(t.Quantity) for t in txns))
    avg_daily = consumed / days
    qty = int(inv.Quantity or 0)
    if qty > 0 and avg_daily > 0:
        until_stockout = int(round(qty / avg_daily))
    else:
        until_stockout = None if qty > 0 else 0
    today = utcnow().date()
    if until_stockout is not None and until_stockout > REORDER_LEAD_TIME_DAYS:
        reorder_date = today + timedelta(days=until_stockout - REORDER_LEAD_TIME_DAYS)
    elif until_stockout is None:
        reorder_date = None
    else:
        reorder_date = today
    return {
        "InventoryID": inv.InventoryID,
        "AverageDailyConsumption": round(avg_daily, 2),
        "TotalConsumption": consumed,
        "CurrentStock": qty,
        "DaysUntilStockout": until_stockout,
        "RecommendedReorderDate": reorder_date.isoformat() if reorder_date else None,
        "TrendDirection": trend_direction([int(t.Quantity) for t in txns]),
    }


def reorder_suggestion(db: Session, *, inventory_id: int) -> Dict[str, Any]:
    trend = analyze_trend(db, inventory_id=inventory_id)
    avg = trend["AverageDailyConsumption"]
    return {
        "InventoryID": inventory_id,
        "CurrentStock": trend["CurrentStock"],
        "SuggestedQuantity": max(int(round(avg * 30)), MIN_REORDER_QTY),
        "ReorderPoint": int(round(avg * (REORDER_LEAD_TIME_DAYS + SAFETY_STOCK_DAYS))),
        "LeadTimeDays": REORDER_LEAD_TIME_DAYS,
        "SafetyStock": int(round(avg * SAFETY_STOCK_DAYS)),
        "AverageDailyConsumption": avg,
    }
