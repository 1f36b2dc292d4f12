import logging

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base

from .config import DATABASE_URL, STORE_TIMEOUT_SECONDS
from .errors import StorageFailure

logger = logging.getLogger(__name__)

Base = declarative_base()


def normalize_database_url(url: str) -> str:
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql+psycopg2://", 1)

    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+psycopg2://", 1)

    return url


def make_engine(url: str = DATABASE_URL, timeout: float = STORE_TIMEOUT_SECONDS) -> Engine:
    """
    Builds the engine with every store call bounded by `timeout` seconds.

    SQLite: every transaction starts with BEGIN IMMEDIATE, so the first
    statement already holds the write lock and concurrent writers queue on the
    busy timeout instead of interleaving check-then-insert sequences.
    PostgreSQL: statement_timeout bounds each statement; the row lock taken by
    INSERT .. ON CONFLICT DO UPDATE serialises writers of the same counter row.
    """
    url = normalize_database_url(url)

    if url.startswith("postgresql+psycopg2://"):
        return create_engine(
            url,
            pool_pre_ping=True,
            connect_args={
                "sslmode": "require",
                "connect_timeout": max(1, int(timeout)),
                "options": f"-c statement_timeout={int(timeout * 1000)}",
            },
        )

    engine = create_engine(
        url,
        connect_args={"check_same_thread": False, "timeout": timeout},
    )

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


engine = make_engine()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind: Engine = engine) -> None:
    """Creates the tables and runs a first cleanup sweep."""
    from . import models  # noqa: F401
    from .jobs import cleanup_database

    Base.metadata.create_all(bind=bind)

    db = sessionmaker(autocommit=False, autoflush=False, bind=bind)()
    try:
        removed = cleanup_database(db)
        logger.info("[INIT] Cleanup on startup: %s", removed)
    except StorageFailure as e:
        # A missed sweep only leaves stale rows for the next one
        logger.warning("[INIT] Cleanup on startup skipped: %s", e)
    finally:
        db.close()
