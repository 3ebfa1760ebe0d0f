# backend/alembic/env.py
from logging.config import fileConfig
import logging
import os, sys
from alembic import context

# --- backend/ dizinini PYTHONPATH'e ekle (inventory_api paketi için) ---
BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if BASE_DIR not in sys.path:
    sys.path.insert(0, BASE_DIR)

# DSN ve engine uygulamadan gelir (.env yüklemesi core.db içinde)
from inventory_api.core.db import engine as app_engine, Base
from inventory_api import models  # noqa: F401

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)
logger = logging.getLogger("alembic.env")

target_metadata = Base.metadata

# SQLite ALTER kısıtları için batch modu
IS_SQLITE = app_engine.dialect.name == "sqlite"


def _configure(**kw):
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        compare_server_default=False,
        render_as_batch=IS_SQLITE,
        **kw,
    )


def run_migrations_offline():
    """SQL çıktısı üret (DB'ye bağlanmadan)."""
    _configure(url=str(app_engine.url), literal_binds=True)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    logger.info("migrating %s", app_engine.url.render_as_string(hide_password=True))
    with app_engine.connect() as connection:
        _configure(connection=connection)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
