from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..core.api import ok, dump, dump_list, list_meta
from ..core.db import get_db
from ..core.security import AdminOnly, AnyUser
from ..models import AppUser
from ..schemas.catalog import CategoryCreate, CategoryUpdate, CategoryRead, CategoryReorderIn
from ..services import catalog_service as svc

router = APIRouter(prefix="/categories", tags=["catalog"])


@router.get("")
def list_categories(db: Session = Depends(get_db), _: AppUser = Depends(AnyUser)):
    rows = svc.list_categories(db)
    return ok(dump_list(CategoryRead, rows), list_meta(rows))


@router.get("/tree")
def category_tree(db: Session = Depends(get_db), _: AppUser = Depends(AnyUser)):
    return ok(svc.category_tree(db))


@router.post("/batch-reorder")
def batch_reorder(payload: CategoryReorderIn, db: Session = Depends(get_db), _: AppUser = Depends(AdminOnly)):
    rows = svc.reorder_categories(db, items=[i.model_dump() for i in payload.Items])
    return ok(dump_list(CategoryRead, rows), list_meta(rows))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_category(payload: CategoryCreate, db: Session = Depends(get_db), _: AppUser = Depends(AdminOnly)):
    c = svc.create_category(db, data=payload.model_dump())
    return ok(dump(CategoryRead, c), status_code=status.HTTP_201_CREATED)


@router.get("/{category_id}")
def get_category(category_id: int, db: Session = Depends(get_db), _: AppUser = Depends(AnyUser)):
    return ok(dump(CategoryRead, svc.get_category(db, category_id)))


@router.put("/{category_id}")
def update_category(
    category_id: int, payload: CategoryUpdate, db: Session = Depends(get_db), _: AppUser = Depends(AdminOnly)
):
    c = svc.update_category(db, category_id=category_id, data=payload.model_dump(exclude_unset=True))
    return ok(dump(CategoryRead, c))


@router.delete("/{category_id}")
def delete_category(category_id: int, db: Session = Depends(get_db), _: AppUser = Depends(AdminOnly)):
    svc.delete_category(db, category_id=category_id)
    return ok({"CategoryID": category_id})
