# discount_service/db/session.py
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from discount_service.core.config import settings


def create_db_engine(url: str, **kwargs):
    """Create an engine; SQLite gets foreign keys and cross-thread access."""
    if url.startswith("sqlite"):
        connect_args = kwargs.pop("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        db_engine = create_engine(url, connect_args=connect_args, **kwargs)

        @event.listens_for(db_engine, "connect")
        def enable_sqlite_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return db_engine
    return create_engine(url, pool_pre_ping=True, **kwargs)


engine = create_db_engine(settings.DATABASE_URL)

# One session per request; the Usage Recorder relies on the session's
# transaction to keep the ledger and the counters together.
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
