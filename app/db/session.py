# app/db/session.py
import logging

from sqlalchemy import create_engine, text
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from .base import Base
from ..core.config import settings

log = logging.getLogger("db")

DB_URL = settings.DB_URL


def _make_engine(url_str: str):
    url = make_url(url_str)
    kwargs = {"future": True}
    connect_args = {}
    backend = url.get_backend_name()
    if backend.startswith("sqlite"):
        connect_args["check_same_thread"] = False
        # in-memory DB must stay on a single connection
        if url.database in (None, "", ":memory:"):
            kwargs["poolclass"] = StaticPool
    else:
        kwargs["pool_pre_ping"] = True
        kwargs["pool_recycle"] = 3600
        if backend.startswith("mysql"):
            connect_args["charset"] = "utf8mb4"

    return create_engine(url_str, connect_args=connect_args, **kwargs)


engine = _make_engine(DB_URL)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


def init_db():
    """Create every table registered on Base."""
    # models must be imported so their tables are registered
    import app.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    log.info("DB init OK with %s", engine.url.render_as_string(hide_password=True))


def ping_db() -> bool:
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return True


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
