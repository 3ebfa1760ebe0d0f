from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..core.api import ok, dump, dump_list, list_meta, page_meta
from ..core.db import get_db
from ..core.security import AnyUser, Writer
from ..models import AppUser
from ..schemas.inventory import (
    InventoryAdjustIn, InventoryRead, TransactionRead, BatchCheckIn, ThresholdUpdateIn,
)
from ..services import inventory_service as inv_svc
from ..services import monitoring_service as mon

router = APIRouter(prefix="/inventory", tags=["inventory"])


@router.post("/adjust")
def adjust(payload: InventoryAdjustIn, db: Session = Depends(get_db), current: AppUser = Depends(Writer)):
    inv, tx = inv_svc.adjust_inventory(
        db,
        variant_id=payload.VariantID,
        store_id=payload.StoreID,
        action=payload.Action,
        quantity=payload.Quantity,
        user_id=current.UserID,
        notes=payload.Notes,
        meta=payload.Metadata,
    )
    return ok({"Inventory": dump(InventoryRead, inv), "Transaction": dump(TransactionRead, tx)})


@router.get("")
def list_inventory(
    store_id: Optional[int] = None,
    low_stock: bool = False,
    out_of_stock: bool = False,
    product_name: Optional[str] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
    _: AppUser = Depends(AnyUser),
):
    rows, total = inv_svc.list_inventory(
        db, store_id=store_id, low_stock=low_stock, out_of_stock=out_of_stock,
        product_name=product_name, skip=skip, limit=limit,
    )
    return ok(dump_list(InventoryRead, rows), page_meta(rows, total=total, skip=skip, limit=limit))


@router.get("/transactions")
def list_transactions(
    store_id: Optional[int] = None,
    type: Optional[str] = Query(None, description="TxnType"),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    product_name: Optional[str] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
    _: AppUser = Depends(AnyUser),
):
    rows, total = inv_svc.list_transactions(
        db, store_id=store_id, txn_type=type, start=start_date, end=end_date,
        product_name=product_name, skip=skip, limit=limit,
    )
    return ok(dump_list(TransactionRead, rows), page_meta(rows, total=total, skip=skip, limit=limit))


@router.get("/sku/{sku}/history")
def sku_history(
    sku: str,
    store_id: Optional[int] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
    _: AppUser = Depends(AnyUser),
):
    rows, total = inv_svc.sku_history(db, sku, store_id=store_id, skip=skip, limit=limit)
    return ok(dump_list(TransactionRead, rows), page_meta(rows, total=total, skip=skip, limit=limit))


@router.post("/batch-check")
def batch_check(payload: BatchCheckIn, db: Session = Depends(get_db), _: AppUser = Depends(AnyUser)):
    rows = inv_svc.batch_check(db, variant_ids=payload.VariantIDs, store_id=payload.StoreID)
    return ok(rows, list_meta(rows))


# ---- Uyarılar ----
@router.get("/alerts/low-stock")
def low_stock(
    store_id: Optional[int] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
    _: AppUser = Depends(AnyUser),
):
    rows, total = mon.low_stock_alerts(db, store_id=store_id, skip=skip, limit=limit)
    return ok(dump_list(InventoryRead, rows), page_meta(rows, total=total, skip=skip, limit=limit))


@router.get("/alerts/summary")
def alert_summary(store_id: Optional[int] = None, db: Session = Depends(get_db), _: AppUser = Depends(AnyUser)):
    return ok(mon.alert_summary(db, store_id=store_id))


@router.post("/alerts/update-thresholds")
def update_thresholds(payload: ThresholdUpdateIn, db: Session = Depends(get_db), _: AppUser = Depends(Writer)):
    rows = mon.update_thresholds(db, items=[i.model_dump() for i in payload.Items])
    return ok(dump_list(InventoryRead, rows), list_meta(rows))


# ---- Tekil kayıt ----
@router.get("/{inventory_id}")
def get_inventory(inventory_id: int, db: Session = Depends(get_db), _: AppUser = Depends(AnyUser)):
    inv = inv_svc.get_inventory(db, inventory_id)
    recent = inv_svc.recent_transactions(db, inventory_id, limit=10)
    return ok({**dump(InventoryRead, inv), "RecentTransactions": dump_list(TransactionRead, recent)})


@router.get("/{inventory_id}/history")
def history(
    inventory_id: int,
    type: Optional[str] = Query(None, description="TxnType"),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
    _: AppUser = Depends(AnyUser),
):
    rows, total = inv_svc.inventory_history(
        db, inventory_id, txn_type=type, start=start_date, end=end_date, skip=skip, limit=limit
    )
    return ok(dump_list(TransactionRead, rows), page_meta(rows, total=total, skip=skip, limit=limit))


# ---- İzleme ----
@router.get("/{inventory_id}/health")
def health(inventory_id: int, db: Session = Depends(get_db), _: AppUser = Depends(AnyUser)):
    return ok(mon.inventory_health(db, inventory_id=inventory_id))


@router.get("/{inventory_id}/anomalies")
def anomalies(
    inventory_id: int,
    days: int = Query(30, ge=1, le=365),
    db: Session = Depends(get_db),
    _: AppUser = Depends(AnyUser),
):
    rows = mon.detect_anomalies(db, inventory_id=inventory_id, days=days)
    return ok(rows, list_meta(rows))


@router.get("/{inventory_id}/trend")
def trend(
    inventory_id: int,
    days: int = Query(30, ge=1, le=365),
    db: Session = Depends(get_db),
    _: AppUser = Depends(AnyUser),
):
    return ok(mon.analyze_trend(db, inventory_id=inventory_id, days=days))


@router.get("/{inventory_id}/reorder")
def reorder(inventory_id: int, db: Session = Depends(get_db), _: AppUser = Depends(AnyUser)):
    return ok(mon.reorder_suggestion(db, inventory_id=inventory_id))
