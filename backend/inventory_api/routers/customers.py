from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..core.api import ok, dump, dump_list, page_meta
from ..core.db import get_db
from ..core.security import AnyUser, Writer
from ..models import AppUser
from ..schemas.common import IdsIn
from ..schemas.customer import CustomerCreate, CustomerUpdate, CustomerRead
from ..services import customer_service as svc

router = APIRouter(prefix="/customers", tags=["customers"])


@router.get("")
def list_customers(
    search: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
    _: AppUser = Depends(AnyUser),
):
    rows, total = svc.list_customers(db, search=search, start=start_date, end=end_date, skip=skip, limit=limit)
    return ok(dump_list(CustomerRead, rows), page_meta(rows, total=total, skip=skip, limit=limit))


@router.get("/check-existence")
def check_existence(name: str = Query(..., min_length=1), db: Session = Depends(get_db), _: AppUser = Depends(AnyUser)):
    return ok(svc.check_existence(db, name=name))


@router.post("/batch-delete")
def batch_delete(payload: IdsIn, db: Session = Depends(get_db), _: AppUser = Depends(Writer)):
    return ok(svc.batch_delete_customers(db, ids=payload.IDs))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_customer(payload: CustomerCreate, db: Session = Depends(get_db), _: AppUser = Depends(Writer)):
    c = svc.create_customer(db, data=payload.model_dump())
    return ok(dump(CustomerRead, c), status_code=status.HTTP_201_CREATED)


@router.get("/{customer_id}")
def get_customer(customer_id: int, db: Session = Depends(get_db), _: AppUser = Depends(AnyUser)):
    return ok(dump(CustomerRead, svc.get_customer(db, customer_id)))


@router.put("/{customer_id}")
def update_customer(
    customer_id: int, payload: CustomerUpdate, db: Session = Depends(get_db), _: AppUser = Depends(Writer)
):
    c = svc.update_customer(db, customer_id=customer_id, data=payload.model_dump(exclude_unset=True))
    return ok(dump(CustomerRead, c))


@router.delete("/{customer_id}")
def delete_customer(customer_id: int, db: Session = Depends(get_db), _: AppUser = Depends(Writer)):
    svc.delete_customer(db, customer_id=customer_id)
    return ok({"CustomerID": customer_id})
