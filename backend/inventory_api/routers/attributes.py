# Özellikler (renk, beden...) ve değerleri
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..core.api import ok, dump, dump_list, list_meta
from ..core.db import get_db
from ..core.security import AdminOnly, AnyUser
from ..models import AppUser, Attribute
from ..schemas.catalog import AttributeCreate, AttributeRead, AttributeValueCreate, AttributeValueRead
from ..services import catalog_service as svc

router = APIRouter(tags=["catalog"])


@router.get("/attributes")
def list_attributes(db: Session = Depends(get_db), _: AppUser = Depends(AnyUser)):
    rows = db.query(Attribute).order_by(Attribute.AttributeID.asc()).all()
    return ok(dump_list(AttributeRead, rows), list_meta(rows))


@router.post("/attributes", status_code=status.HTTP_201_CREATED)
def create_attribute(payload: AttributeCreate, db: Session = Depends(get_db), _: AppUser = Depends(AdminOnly)):
    a = svc.create_attribute(db, name=payload.Name.strip())
    return ok(dump(AttributeRead, a), status_code=status.HTTP_201_CREATED)


@router.get("/attributes/{attribute_id}")
def get_attribute(attribute_id: int, db: Session = Depends(get_db), _: AppUser = Depends(AnyUser)):
    return ok(dump(AttributeRead, svc.get_attribute(db, attribute_id)))


@router.put("/attributes/{attribute_id}")
def update_attribute(
    attribute_id: int, payload: AttributeCreate, db: Session = Depends(get_db), _: AppUser = Depends(AdminOnly)
):
    a = svc.update_attribute(db, attribute_id=attribute_id, name=payload.Name.strip())
    return ok(dump(AttributeRead, a))


@router.delete("/attributes/{attribute_id}")
def delete_attribute(attribute_id: int, db: Session = Depends(get_db), _: AppUser = Depends(AdminOnly)):
    svc.delete_attribute(db, attribute_id=attribute_id)
    return ok({"AttributeID": attribute_id})


@router.post("/attributes/{attribute_id}/values", status_code=status.HTTP_201_CREATED)
def add_value(
    attribute_id: int, payload: AttributeValueCreate, db: Session = Depends(get_db), _: AppUser = Depends(AdminOnly)
):
    v = svc.add_value(db, attribute_id=attribute_id, value=payload.Value.strip())
    return ok(dump(AttributeValueRead, v), status_code=status.HTTP_201_CREATED)


@router.put("/values/{value_id}")
def update_value(
    value_id: int, payload: AttributeValueCreate, db: Session = Depends(get_db), _: AppUser = Depends(AdminOnly)
):
    v = svc.update_value(db, value_id=value_id, value=payload.Value.strip())
    return ok(dump(AttributeValueRead, v))


@router.delete("/values/{value_id}")
def delete_value(value_id: int, db: Session = Depends(get_db), _: AppUser = Depends(AdminOnly)):
    svc.delete_value(db, value_id=value_id)
    return ok({"ValueID": value_id})
