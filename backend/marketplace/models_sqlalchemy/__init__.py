from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from marketplace.config import settings

# Use DATABASE_URL exactly as provided by settings so Alembic and the
# application talk to the same database.
DATABASE_URL = settings.DATABASE_URL

engine_kwargs = {"echo": False, "pool_pre_ping": True}

# Configure connection args based on database type
if DATABASE_URL.startswith("sqlite"):
    engine_kwargs["connect_args"] = {"check_same_thread": False}
else:
    # PostgreSQL connection settings
    engine_kwargs.update(
        connect_args={
            "connect_timeout": 10,
            "keepalives": 1,
            "keepalives_idle": 30,
            "keepalives_interval": 10,
            "keepalives_count": 5,
        },
        pool_size=5,
        max_overflow=10,
        pool_recycle=3600,
        pool_timeout=30,
    )

engine = create_engine(DATABASE_URL, **engine_kwargs)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """Unit of work around a block of writes.

    Commits when the block exits normally and rolls back on any exception,
    which is then re-raised. Every write that must be all-or-nothing (order
    creation, payment reconciliation, status changes touching stock) runs
    inside one of these.
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
