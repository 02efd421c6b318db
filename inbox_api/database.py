from sqlalchemy import create_engine
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import make_url
from sqlalchemy.orm import declarative_base, sessionmaker

from inbox_api.config import settings

UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def build_engine_kwargs(database_url: str) -> dict:
    """Pool settings per backend. SQLite gets no pool sizing."""
    if make_url(database_url).get_backend_name() == "sqlite":
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_pre_ping": True,
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        # Bounded wait for a pooled connection; raises sqlalchemy.exc.TimeoutError
        "pool_timeout": settings.db_pool_timeout_seconds,
    }


engine = create_engine(settings.database_url, **build_engine_kwargs(settings.database_url))
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    import inbox_api.models  # noqa: F401

    Base.metadata.create_all(bind=engine)


def upsert_insert(db):
    """The dialect insert() that supports ON CONFLICT, or None for other backends."""
    return UPSERT_DIALECTS.get(db.get_bind().dialect.name)
