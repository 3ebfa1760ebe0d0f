from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..core.api import ok, dump, dump_list, page_meta
from ..core.db import get_db
from ..core.security import AnyUser, Writer
from ..models import AppUser
from ..schemas.catalog import ProductCreate, ProductUpdate, ProductRead, VariantRead
from ..schemas.common import IdsIn
from ..services import catalog_service as svc

router = APIRouter(prefix="/products", tags=["catalog"])


@router.get("")
def list_products(
    search: Optional[str] = None,
    category_id: Optional[int] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
    _: AppUser = Depends(AnyUser),
):
    rows, total = svc.list_products(db, search=search, category_id=category_id, skip=skip, limit=limit)
    return ok(dump_list(ProductRead, rows), page_meta(rows, total=total, skip=skip, limit=limit))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_product(payload: ProductCreate, db: Session = Depends(get_db), _: AppUser = Depends(Writer)):
    p = svc.create_product(db, data=payload.model_dump())
    return ok(dump(ProductRead, p), status_code=status.HTTP_201_CREATED)


@router.post("/batch-delete")
def batch_delete(payload: IdsIn, db: Session = Depends(get_db), _: AppUser = Depends(Writer)):
    return ok(svc.batch_delete_products(db, ids=payload.IDs))


# /{product_id}'den önce tanımlı olmalı
@router.get("/variants")
def list_variants(
    search: Optional[str] = None,
    product_id: Optional[int] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
    _: AppUser = Depends(AnyUser),
):
    rows, total = svc.list_variants(db, search=search, product_id=product_id, skip=skip, limit=limit)
    return ok(dump_list(VariantRead, rows), page_meta(rows, total=total, skip=skip, limit=limit))


@router.get("/variants/{variant_id}")
def get_variant(variant_id: int, db: Session = Depends(get_db), _: AppUser = Depends(AnyUser)):
    v = svc.get_variant(db, variant_id)
    return ok({**dump(VariantRead, v), "Stocks": svc.variant_stock(v)})


@router.get("/{product_id}")
def get_product(product_id: int, db: Session = Depends(get_db), _: AppUser = Depends(AnyUser)):
    return ok(dump(ProductRead, svc.get_product(db, product_id)))


@router.put("/{product_id}")
def update_product(
    product_id: int, payload: ProductUpdate, db: Session = Depends(get_db), _: AppUser = Depends(Writer)
):
    p = svc.update_product(db, product_id=product_id, data=payload.model_dump(exclude_unset=True))
    return ok(dump(ProductRead, p))


@router.delete("/{product_id}")
def delete_product(product_id: int, db: Session = Depends(get_db), _: AppUser = Depends(Writer)):
    svc.delete_product(db, product_id=product_id)
    return ok({"ProductID": product_id})
