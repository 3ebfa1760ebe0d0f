# backend/inventory_api/core/db.py
import os
from datetime import datetime, timezone

from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker, declarative_base, Session
from sqlalchemy.engine import make_url
from sqlalchemy.pool import StaticPool
from dotenv import dotenv_values, load_dotenv, find_dotenv

# Proje kökü ve .env yolu
BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
DEFAULT_DOTENV = os.path.join(BASE_DIR, ".env")

def _norm_key(k: str) -> str:
    return k.replace("\ufeff", "").strip() if isinstance(k, str) else k

# .env yolunu bul ve ortamı yükle (CI'daki env'i ezmeden)
dotenv_path = DEFAULT_DOTENV if os.path.exists(DEFAULT_DOTENV) else find_dotenv(filename=".env", usecwd=True)
if dotenv_path:
    cfg = dotenv_values(dotenv_path, encoding="utf-8-sig")
    for k, v in cfg.items():
        nk = _norm_key(k)
        if v is not None and (nk not in os.environ or not os.environ[nk].strip()):
            os.environ[nk] = v
    load_dotenv(dotenv_path, override=False)

DSN = os.environ.get("DATABASE_URL") or os.environ.get("MSSQL_DSN")
if not DSN or not DSN.strip():
    raise RuntimeError(f"DATABASE_URL / MSSQL_DSN tanımlı değil. .env: {dotenv_path or '(bulunamadı)'}")

url = make_url(DSN)
engine_kwargs = dict(pool_pre_ping=True)

# Dialect'e göre güvenli ayarlar
backend = url.get_backend_name()  # örn: 'sqlite', 'mssql'
if backend.startswith("sqlite"):
    engine_kwargs["connect_args"] = {"check_same_thread": False}
    # Bellek içi SQLite: tüm bağlantılar aynı DB'yi görsün
    if not url.database or url.database == ":memory:":
        engine_kwargs["poolclass"] = StaticPool
elif backend.startswith("mssql"):
    engine_kwargs.update(pool_size=5, max_overflow=10, fast_executemany=True)

engine = create_engine(DSN, **engine_kwargs)

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
Base = declarative_base()

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def utcnow() -> datetime:
    # DB'de naive UTC tutuyoruz (SQLite tz saklamıyor)
    return datetime.now(timezone.utc).replace(tzinfo=None)


def dialect_name(db: Session) -> str:
    try:
        return db.bind.dialect.name
    except Exception:
        return "unknown"


def lock_row(db: Session, model, pk: int):
    """
    Satırı güncelleme için kilitle ve taze oku.
    MSSQL'de UPDLOCK+ROWLOCK; diğerlerinde SELECT ... FOR UPDATE (SQLite'ta etkisiz).
    """
    pk_col = model.__table__.primary_key.columns.values()[0]
    if dialect_name(db) == "mssql":
        db.execute(
            text(
                f"SELECT [{pk_col.name}] FROM [{model.__tablename__}] WITH (UPDLOCK, ROWLOCK) "
                f"WHERE [{pk_col.name}] = :pk"
            ),
            {"pk": pk},
        )
        obj = db.get(model, pk)
        if obj is not None:
            db.refresh(obj)
        return obj
    return db.query(model).filter(pk_col == pk).with_for_update().one_or_none()
