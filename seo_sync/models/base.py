"""
Base database model and session management
"""
import os
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool
from sqlalchemy.orm import declarative_base, sessionmaker
from seo_sync.config import get_settings

settings = get_settings()


def build_engine(database_url: str) -> Engine:
    """Create an engine, resolving relative SQLite paths so cwd changes can't break it"""
    if database_url.startswith("sqlite:///") and not database_url.startswith("sqlite:////"):
        rel_path = database_url[len("sqlite:///"):]
        if rel_path and rel_path != ":memory:":
            database_url = "sqlite:///" + os.path.abspath(rel_path)

    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False, "timeout": 60},
            poolclass=NullPool,
            pool_pre_ping=True
        )

    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
        pool_recycle=300,
    )


# Create database engine
engine = build_engine(settings.database_url)

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for all models
Base = declarative_base()


def init_db(bind: Engine = None):
    """Create any missing tables."""
    # Import models so they register on Base.metadata
    import seo_sync.models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)


def dialect_insert(db, model):
    """INSERT construct supporting ON CONFLICT for the session's dialect"""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise NotImplementedError(f"Upsert not supported on {dialect}")
    return insert(model)
