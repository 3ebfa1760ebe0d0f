from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from ..core.api import ok, dump
from ..core.db import get_db
from ..core.security import verify_password, create_access_token, get_current_user
from ..models.user import AppUser
from ..schemas.user import UserRead, Token

router = APIRouter(prefix="/auth", tags=["auth"])


# OAuth2 istemcileri düz {access_token, token_type} bekler; zarf kullanılmaz
@router.post("/login", response_model=Token)
def login(form: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
    username = form.username.strip()
    user = db.query(AppUser).filter(AppUser.Username == username).first()

    if (not user) or (not user.HashedPassword) or (not verify_password(form.password, user.HashedPassword)):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="kullanıcı adı/şifre hatalı",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not user.IsActive:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="kullanıcı pasif")

    token = create_access_token(sub=user.Username, role=user.Role)
    return {"access_token": token, "token_type": "bearer"}


@router.get("/me")
def me(current: AppUser = Depends(get_current_user)):
    return ok(dump(UserRead, current))


# Token durumsuz; istemci kendi kopyasını siler
@router.post("/logout")
def logout(current: AppUser = Depends(get_current_user)):
    return ok({"Username": current.Username})
