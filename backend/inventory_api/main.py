# backend/inventory_api/main.py
import os, json
import logging
from fastapi import FastAPI, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi import HTTPException as FastAPIHTTPException
from fastapi.encoders import jsonable_encoder
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy.orm import Session
from sqlalchemy import text

# .env yükle
from dotenv import load_dotenv, find_dotenv
load_dotenv(find_dotenv())

from .core.db import Base, get_db, engine
from . import models  # noqa: F401  (tablolar metadata'ya kaydolsun)

# --- Router importları ---
from .routers.auth import router as auth_router
from .routers.users import router as users_router
from .routers.stores import router as stores_router
from .routers.categories import router as categories_router
from .routers.attributes import router as attributes_router
from .routers.products import router as products_router
from .routers.inventory import router as inventory_router
from .routers.transfers import router as transfers_router
from .routers.customers import router as customers_router
from .routers.orders import router as orders_router, item_router as order_items_router
from .routers.purchases import router as purchases_router
from .routers.backorders import router as backorders_router
from .routers.installations import router as installations_router
from .routers.reports import router as reports_router

# --- API zarfları ---
from .core.api import ok, fail, UTF8JSONResponse

# --- CORS ---
from fastapi.middleware.cors import CORSMiddleware

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("inventory_api")

app = FastAPI(title="Inventory API", default_response_class=UTF8JSONResponse)


# JSON Content-Type charset düzeltmesi
@app.middleware("http")
async def _force_json_charset(request, call_next):
    resp = await call_next(request)
    ct = resp.headers.get("content-type", "")
    if ct.lower().startswith("application/json") and "charset=" not in ct.lower():
        resp.headers["content-type"] = "application/json; charset=utf-8"
    return resp


# -----------------------------
# Global hata zarfı
# -----------------------------
def _detail_to_envelope(exc: StarletteHTTPException):
    # dict detail: {"message": ..., ek alanlar meta'ya}
    detail = exc.detail
    if isinstance(detail, dict):
        rest = {k: v for k, v in detail.items() if k != "message"}
        return fail(str(detail.get("message") or exc.__class__.__name__), status_code=exc.status_code,
                    meta=jsonable_encoder(rest) or None)
    return fail(str(detail) if detail else exc.__class__.__name__, status_code=exc.status_code)

@app.exception_handler(StarletteHTTPException)
async def http_exception_to_envelope(request: Request, exc: StarletteHTTPException):
    resp = _detail_to_envelope(exc)
    if getattr(exc, "headers", None):
        resp.headers.update(exc.headers)
    return resp

@app.exception_handler(FastAPIHTTPException)
async def fastapi_http_exception_to_envelope(request: Request, exc: FastAPIHTTPException):
    resp = _detail_to_envelope(exc)
    if exc.headers:
        resp.headers.update(exc.headers)
    return resp

@app.exception_handler(RequestValidationError)
async def validation_exception_to_envelope(request: Request, exc: RequestValidationError):
    return fail("Validation error", status_code=422, meta={"errors": jsonable_encoder(exc.errors())})


# -----------------------------
# CORS yapılandırması (.env)
# -----------------------------
def _parse_origins(env_val: str | None):
    if not env_val or env_val.strip() == "*":
        return ["*"]
    try:
        parsed = json.loads(env_val)
        if isinstance(parsed, list):
            return [str(x) for x in parsed]
    except ValueError:
        pass
    return [s.strip() for s in env_val.split(",") if s.strip()]

ALLOWED_ORIGINS = _parse_origins(os.getenv("CORS_ALLOW_ORIGINS", "*"))
logger.info("CORS allow_origins = %s", ALLOWED_ORIGINS)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---- startup: istenirse tabloları oluştur (geliştirme) ----
@app.on_event("startup")
def _auto_create_tables():
    if os.getenv("AUTO_CREATE_TABLES", "0").strip().lower() in ("1", "true", "yes"):
        Base.metadata.create_all(bind=engine)
        logger.info("tables ensured (AUTO_CREATE_TABLES)")


# ---- Sağlık uçları ----
@app.get("/health")
def health():
    return ok({"service": "Inventory API"})

@app.get("/db-ping")
def db_ping(db: Session = Depends(get_db)):
    val = db.execute(text("SELECT 1")).scalar()
    return ok({"db": "ok", "select1": val})


# =========================
# Router kayıtları
# =========================
for r in (
    auth_router,
    users_router,
    stores_router,
    categories_router,
    attributes_router,
    products_router,
    inventory_router,
    transfers_router,
    customers_router,
    orders_router,
    order_items_router,   # /order-items
    purchases_router,
    backorders_router,
    installations_router,
    reports_router,       # /dashboard, /reports, /search
):
    app.include_router(r)
