# app/db/session.py
# Database session management
#
# Two connection modes:
#   Postgres (dev + prod) → pooled engine from DATABASE_URL
#   SQLite (tests, quick local runs) → single shared connection, no pool tuning
#
# FastAPI endpoints get a session via: Depends(get_db)

from typing import Generator

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import settings


def build_engine(database_url: str) -> Engine:
    """
    Create the SQLAlchemy engine for a URL.

    pool_pre_ping=True  → test connection before each use (handles idle disconnects)
    pool_size / max_overflow → keep per-instance pool small; the API scales horizontally
    """
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
        pool_recycle=1800,  # Recycle connections every 30 min
        echo=settings.debug,
    )


# ── Engine ────────────────────────────────────────────────────────────────────
engine = build_engine(settings.database_url)

# ── Session Factory ───────────────────────────────────────────────────────────
SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,  # Prevents lazy load errors after commit
)


# ── FastAPI Dependency ────────────────────────────────────────────────────────
def get_db() -> Generator[Session, None, None]:
    """
    Dependency injected into every FastAPI endpoint that needs DB access.

    Usage:
        @router.get("/example")
        def example(db: Session = Depends(get_db)):
            ...

    Guarantees the session is always closed, even on exceptions.
    """
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


# ── Conditional Update ────────────────────────────────────────────────────────
def compare_and_swap(db: Session, model, entity_id, expected: dict, values: dict) -> bool:
    """
    UPDATE model SET values WHERE id = entity_id AND <expected>.

    expected maps column name → required current value (None means IS NULL,
    a tuple/list means IN). Returns True only if this call changed the row;
    False means someone else got there first.
    """
    query = db.query(model).filter(model.id == entity_id)
    for name, value in expected.items():
        column = getattr(model, name)
        if value is None:
            query = query.filter(column.is_(None))
        elif isinstance(value, (tuple, list)):
            query = query.filter(column.in_(value))
        else:
            query = query.filter(column == value)

    updated = query.update(values, synchronize_session=False)
    if updated:
        # A copy already loaded in this session must not keep the old values
        loaded = db.identity_map.get(Session.identity_key(model, entity_id))
        if loaded is not None:
            db.expire(loaded)
    return updated > 0


# ── Health Check Helper ───────────────────────────────────────────────────────
def check_db_connection() -> bool:
    """
    Used by /health endpoint to verify DB connectivity.
    Returns True if connected, False otherwise.
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False
