from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from ..core.api import ok, dump, dump_list, list_meta, page_meta
from ..core.db import get_db
from ..core.security import AnyUser, Writer, require_roles
from ..models import AppUser
from ..schemas.installation import (
    InstallationCreate, InstallationFromOrderIn, InstallationUpdate, InstallationRead, InstallationItemRead,
    AssignInstallerIn, InstallationStatusIn, InstallationCancelIn, InstallationItemStatusIn,
)
from ..services import installation_service as svc

router = APIRouter(prefix="/installations", tags=["installations"])

# Durum güncellemesini kurulumcu da yapabilir
FieldWorker = require_roles("admin", "staff", "installer")


@router.get("")
def list_installations(
    status_s: Optional[str] = Query(None, alias="status"),
    installer_user_id: Optional[int] = None,
    order_id: Optional[int] = None,
    search: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
    current: AppUser = Depends(AnyUser),
):
    rows, total = svc.list_installations(
        db, user=current, status_s=status_s, installer_user_id=installer_user_id, order_id=order_id,
        search=search, start=start_date, end=end_date, skip=skip, limit=limit,
    )
    return ok(dump_list(InstallationRead, rows), page_meta(rows, total=total, skip=skip, limit=limit))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_installation(
    payload: InstallationCreate, db: Session = Depends(get_db), current: AppUser = Depends(Writer)
):
    inst = svc.create_installation(db, data=payload.model_dump(), user_id=current.UserID)
    return ok(dump(InstallationRead, inst), status_code=status.HTTP_201_CREATED)


@router.post("/from-order", status_code=status.HTTP_201_CREATED)
def create_from_order(
    payload: InstallationFromOrderIn, db: Session = Depends(get_db), current: AppUser = Depends(Writer)
):
    inst = svc.create_from_order(db, data=payload.model_dump(), user_id=current.UserID)
    return ok(dump(InstallationRead, inst), status_code=status.HTTP_201_CREATED)


@router.get("/schedule")
def schedule(
    start_date: date,
    end_date: date,
    installer_user_id: Optional[int] = None,
    db: Session = Depends(get_db),
    current: AppUser = Depends(AnyUser),
):
    if current.Role == "installer":
        installer_user_id = current.UserID
    if not installer_user_id:
        raise HTTPException(status_code=422, detail="installer_user_id gerekli.")
    if end_date < start_date:
        raise HTTPException(status_code=422, detail="end_date, start_date'ten önce olamaz.")
    rows = svc.installer_schedule(db, installer_user_id=installer_user_id, start=start_date, end=end_date)
    return ok(dump_list(InstallationRead, rows), list_meta(rows))


@router.patch("/items/{item_id}/status")
def update_item_status(
    item_id: int,
    payload: InstallationItemStatusIn,
    db: Session = Depends(get_db),
    current: AppUser = Depends(FieldWorker),
):
    item = svc.update_item_status(db, item_id=item_id, new_status=payload.Status, user=current)
    return ok(dump(InstallationItemRead, item))


@router.get("/{installation_id}")
def get_installation(installation_id: int, db: Session = Depends(get_db), current: AppUser = Depends(AnyUser)):
    return ok(dump(InstallationRead, svc.get_installation(db, installation_id, user=current)))


@router.put("/{installation_id}")
def update_installation(
    installation_id: int, payload: InstallationUpdate, db: Session = Depends(get_db), _: AppUser = Depends(Writer)
):
    inst = svc.update_installation(
        db, installation_id=installation_id, data=payload.model_dump(exclude_unset=True)
    )
    return ok(dump(InstallationRead, inst))


@router.delete("/{installation_id}")
def delete_installation(installation_id: int, db: Session = Depends(get_db), _: AppUser = Depends(Writer)):
    svc.delete_installation(db, installation_id=installation_id)
    return ok({"InstallationID": installation_id})


@router.post("/{installation_id}/assign")
def assign(
    installation_id: int, payload: AssignInstallerIn, db: Session = Depends(get_db), _: AppUser = Depends(Writer)
):
    inst = svc.assign_installer(
        db,
        installation_id=installation_id,
        installer_user_id=payload.InstallerUserID,
        scheduled_date=payload.ScheduledDate,
    )
    return ok(dump(InstallationRead, inst))


@router.patch("/{installation_id}/status")
def update_status(
    installation_id: int,
    payload: InstallationStatusIn,
    db: Session = Depends(get_db),
    current: AppUser = Depends(FieldWorker),
):
    inst = svc.update_status(db, installation_id=installation_id, new_status=payload.Status, user=current)
    return ok(dump(InstallationRead, inst))


@router.post("/{installation_id}/cancel")
def cancel(
    installation_id: int, payload: InstallationCancelIn, db: Session = Depends(get_db), _: AppUser = Depends(Writer)
):
    inst = svc.cancel_installation(db, installation_id=installation_id, reason=payload.Reason)
    return ok(dump(InstallationRead, inst))
