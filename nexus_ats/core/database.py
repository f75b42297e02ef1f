from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from nexus_ats.core.config import settings


def build_engine(database_url: str) -> Engine:
    """Create the engine; SQLite (local development and tests) gets no pool sizing."""
    if database_url.startswith("sqlite"):
        return create_engine(database_url, connect_args={"check_same_thread": False})

    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
    )


engine = build_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    """Yield a request-scoped session (``Depends(get_db)``)."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """
    Register the models on Base.metadata.

    The schema itself is owned by Alembic ("alembic upgrade head").
    """
    from nexus_ats.models import candidate  # noqa: F401
