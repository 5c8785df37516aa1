"""
Database connection, session management, and table creation.
Uses SQLAlchemy with PostgreSQL in production; SQLite works for local runs and tests.
All models are auto-imported here so create_tables() creates every table in one call.
"""

from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker
from app.config import settings


def build_engine(url: str):
    """
    Create an engine for `url`.

    SQLite gets two connection hooks: foreign keys are switched on, and every
    transaction opens with BEGIN IMMEDIATE so writers serialize before they read.
    That gives the overlap-check-then-insert sequence the same guarantee that
    row locks give on PostgreSQL.
    """
    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            connect_args={"check_same_thread": False, "timeout": settings.DB_LOCK_TIMEOUT_SECONDS},
            echo=False,
        )

        @event.listens_for(engine, "connect")
        def _on_connect(dbapi_connection, connection_record):
            # Let SQLAlchemy emit BEGIN itself
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        @event.listens_for(engine, "begin")
        def _on_begin(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

        return engine

    return create_engine(
        url,
        pool_pre_ping=True,          # Auto-reconnect if DB connection drops
        pool_size=10,
        max_overflow=20,
        echo=False,                  # Set True to log all SQL queries (debug only)
    )


engine = build_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """FastAPI dependency — yields a DB session and closes it after request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_factory():
    """FastAPI dependency for long-lived responses that open a short session per poll."""
    return SessionLocal


@contextmanager
def atomic(db):
    """Commit everything done inside the block, or roll all of it back."""
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise


def create_tables(bind=None):
    """
    Creates all DB tables on startup. Safe to call multiple times.
    Import all models here so SQLAlchemy knows about them.
    """
    from app.models.charging_station import ChargingStation   # noqa
    from app.models.charging_port import ChargingPort         # noqa
    from app.models.charging_slot import ChargingSlot         # noqa
    from app.models.vehicle import Vehicle                    # noqa
    from app.models.reservation import Reservation, ReservationItem   # noqa
    from app.models.charging_session import ChargingSession   # noqa

    Base.metadata.create_all(bind=bind or engine)
