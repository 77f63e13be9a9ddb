from contextlib import contextmanager
from functools import lru_cache
from typing import Generator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from gymbooking.configuration.config import Config

Base = declarative_base()


def build_engine(url: Optional[str] = None, echo: Optional[bool] = None) -> Engine:
    """
    Create a SQLAlchemy engine for the booking store.

    SQLite connections open every transaction with BEGIN IMMEDIATE so writers
    serialize on the database lock, the closest SQLite gets to the row locks
    taken with SELECT ... FOR UPDATE on PostgreSQL.
    """
    url = url or Config.DATABASE_URL
    echo = Config.DATABASE_ECHO if echo is None else echo

    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            echo=echo,
            connect_args={
                "check_same_thread": False,
                "timeout": Config.DATABASE_LOCK_TIMEOUT_SECONDS,
            },
        )

        @event.listens_for(engine, "connect")
        def _disable_pysqlite_transactions(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine, "begin")
        def _begin_immediate(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

        return engine

    return create_engine(url, echo=echo, pool_pre_ping=True)


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return build_engine()


@lru_cache(maxsize=1)
def get_session_factory() -> sessionmaker:
    return sessionmaker(bind=get_engine(), autocommit=False, autoflush=False, expire_on_commit=False)


def create_schema(engine: Optional[Engine] = None) -> None:
    """Create all booking tables (used by tests and local setups)."""
    # Import models so they register on Base.metadata
    from gymbooking.models import mod_booking, mod_catalog, mod_membership, mod_waitlist  # noqa: F401

    Base.metadata.create_all(engine or get_engine())


@contextmanager
def atomic(session: Session) -> Generator[Session, None, None]:
    """Run the enclosed block as one transaction: commit on success, roll back on any error."""
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise


def get_session() -> Generator[Session, None, None]:
    """Dependency injection function for FastAPI endpoints: one session per request."""
    session = get_session_factory()()
    try:
        yield session
    finally:
        session.close()
