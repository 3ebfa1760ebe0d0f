# /users (admin) ve /user/* (oturumdaki kullanıcı)
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ..core.api import ok, dump, dump_list, page_meta
from ..core.db import get_db
from ..core.security import AdminOnly, AnyUser, hash_password, verify_password
from ..models import AppUser, Store
from ..schemas.user import (
    UserCreate, UserUpdate, UserRead, ProfileUpdate, PasswordChange, UserStoresIn,
)
from ..schemas.store import StoreRead

router = APIRouter(tags=["users"])


def _get_user(db: Session, user_id: int) -> AppUser:
    u = db.get(AppUser, user_id)
    if not u:
        raise HTTPException(status_code=404, detail="Kullanıcı bulunamadı.")
    return u


def _stores(db: Session, ids: List[int]) -> List[Store]:
    ids = list(dict.fromkeys(ids))
    rows = db.query(Store).filter(Store.StoreID.in_(ids)).all() if ids else []
    missing = sorted(set(ids) - {s.StoreID for s in rows})
    if missing:
        raise HTTPException(status_code=404, detail=f"Mağaza bulunamadı: {missing}")
    return rows


def _check_email(db: Session, email: Optional[str], exclude_id: Optional[int] = None) -> Optional[str]:
    if not email:
        return None
    email = email.strip().lower()
    q = db.query(AppUser).filter(AppUser.Email == email)
    if exclude_id:
        q = q.filter(AppUser.UserID != exclude_id)
    if q.first():
        raise HTTPException(status_code=400, detail="email zaten mevcut")
    return email


# ---- Admin: kullanıcı yönetimi ----
@router.get("/users")
def list_users(
    search: Optional[str] = None,
    role: Optional[str] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
    _: AppUser = Depends(AdminOnly),
):
    q = db.query(AppUser)
    if search:
        like = f"%{search.lower()}%"
        q = q.filter(or_(
            func.lower(AppUser.Username).like(like),
            func.lower(func.coalesce(AppUser.FullName, "")).like(like),
            func.lower(func.coalesce(AppUser.Email, "")).like(like),
        ))
    if role:
        q = q.filter(AppUser.Role == role)
    total = q.count()
    rows = q.order_by(AppUser.UserID.asc()).offset(skip).limit(limit).all()
    return ok(dump_list(UserRead, rows), page_meta(rows, total=total, skip=skip, limit=limit))


@router.post("/users", status_code=status.HTTP_201_CREATED)
def create_user(payload: UserCreate, db: Session = Depends(get_db), _: AppUser = Depends(AdminOnly)):
    username = payload.username.strip()
    if db.query(AppUser).filter(AppUser.Username == username).first():
        raise HTTPException(status_code=400, detail="kullanıcı adı zaten mevcut")
    user = AppUser(
        Username=username,
        FullName=payload.full_name.strip() if payload.full_name else None,
        Email=_check_email(db, payload.email),
        Role=payload.role or "viewer",
        IsActive=True,
        HashedPassword=hash_password(payload.password),
    )
    user.stores = _stores(db, payload.store_ids)
    db.add(user)
    db.commit()
    db.refresh(user)
    return ok(dump(UserRead, user), status_code=status.HTTP_201_CREATED)


@router.get("/users/{user_id}")
def get_user(user_id: int, db: Session = Depends(get_db), _: AppUser = Depends(AdminOnly)):
    return ok(dump(UserRead, _get_user(db, user_id)))


@router.put("/users/{user_id}")
def update_user(
    user_id: int, payload: UserUpdate, db: Session = Depends(get_db), current: AppUser = Depends(AdminOnly)
):
    user = _get_user(db, user_id)
    if user.UserID == current.UserID and (payload.is_active is False or (payload.role and payload.role != "admin")):
        raise HTTPException(status_code=422, detail="Kendi yetkini düşüremez ya da hesabını pasifleyemezsin.")
    if payload.full_name is not None:
        user.FullName = payload.full_name.strip() or None
    if payload.email is not None:
        user.Email = _check_email(db, payload.email, exclude_id=user.UserID)
    if payload.password:
        user.HashedPassword = hash_password(payload.password)
    if payload.role:
        user.Role = payload.role
    if payload.is_active is not None:
        user.IsActive = payload.is_active
    db.add(user)
    db.commit()
    db.refresh(user)
    return ok(dump(UserRead, user))


@router.delete("/users/{user_id}")
def delete_user(user_id: int, db: Session = Depends(get_db), current: AppUser = Depends(AdminOnly)):
    user = _get_user(db, user_id)
    if user.UserID == current.UserID:
        raise HTTPException(status_code=422, detail="Kendi hesabını silemezsin.")
    db.delete(user)
    db.commit()
    return ok({"UserID": user_id})


@router.get("/users/{user_id}/stores")
def user_stores(user_id: int, db: Session = Depends(get_db), _: AppUser = Depends(AdminOnly)):
    user = _get_user(db, user_id)
    return ok(dump_list(StoreRead, user.stores))


@router.post("/users/{user_id}/stores")
def assign_stores(
    user_id: int, payload: UserStoresIn, db: Session = Depends(get_db), _: AppUser = Depends(AdminOnly)
):
    # Atama listesi tamamen yenilenir
    user = _get_user(db, user_id)
    user.stores = _stores(db, payload.store_ids)
    db.add(user)
    db.commit()
    db.refresh(user)
    return ok(dump_list(StoreRead, user.stores))


# ---- Oturumdaki kullanıcı ----
@router.get("/user/profile")
def get_profile(current: AppUser = Depends(AnyUser)):
    return ok(dump(UserRead, current))


@router.put("/user/profile")
def update_profile(payload: ProfileUpdate, db: Session = Depends(get_db), current: AppUser = Depends(AnyUser)):
    if payload.full_name is not None:
        current.FullName = payload.full_name.strip() or None
    if payload.email is not None:
        current.Email = _check_email(db, payload.email, exclude_id=current.UserID)
    db.add(current)
    db.commit()
    db.refresh(current)
    return ok(dump(UserRead, current))


@router.post("/user/change-password")
def change_password(payload: PasswordChange, db: Session = Depends(get_db), current: AppUser = Depends(AnyUser)):
    if not verify_password(payload.current_password, current.HashedPassword):
        raise HTTPException(status_code=422, detail="Mevcut şifre hatalı.")
    current.HashedPassword = hash_password(payload.new_password)
    db.add(current)
    db.commit()
    return ok({"UserID": current.UserID})
