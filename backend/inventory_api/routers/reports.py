# Panel, raporlar ve genel arama
from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..core.api import ok, list_meta
from ..core.db import get_db
from ..core.security import AnyUser
from ..models import AppUser
from ..schemas.common import SearchIn
from ..services import report_service as svc

router = APIRouter(tags=["reports"])


@router.get("/dashboard/stats")
def dashboard_stats(store_id: Optional[int] = None, db: Session = Depends(get_db), _: AppUser = Depends(AnyUser)):
    return ok(svc.dashboard_stats(db, store_id=store_id))


@router.get("/reports/inventory-time-series")
def inventory_time_series(
    product_variant_id: int = Query(..., ge=1),
    start_date: date = Query(...),
    end_date: date = Query(...),
    store_id: Optional[int] = None,
    db: Session = Depends(get_db),
    _: AppUser = Depends(AnyUser),
):
    rows = svc.inventory_time_series(
        db, variant_id=product_variant_id, start=start_date, end=end_date, store_id=store_id
    )
    return ok(rows, list_meta(rows, {"VariantID": product_variant_id, "StoreID": store_id}))


@router.post("/search/global")
def global_search(payload: SearchIn, db: Session = Depends(get_db), _: AppUser = Depends(AnyUser)):
    return ok(svc.global_search(db, query=payload.query))
