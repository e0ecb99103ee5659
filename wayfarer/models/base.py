"""
SQLAlchemy base configuration and session management.

Uses SQLAlchemy 2.0 style with type hints and declarative base.
Portable between SQLite (dev, tests) and PostgreSQL (prod).
"""

from contextlib import contextmanager
from typing import Callable, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

from wayfarer.config import DatabaseConfig, config


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def build_engine(url: str, echo: bool = False) -> Engine:
    """
    Create an engine with settings appropriate for the database type.

    In-memory SQLite gets a StaticPool so every session shares the one
    connection (and therefore the one database).
    """
    kwargs = {'echo': echo}
    db = DatabaseConfig(url=url)

    if db.is_sqlite:
        kwargs['connect_args'] = {'check_same_thread': False}
    if db.is_memory:
        kwargs['poolclass'] = StaticPool

    new_engine = create_engine(url, **kwargs)

    if db.is_sqlite:
        @event.listens_for(new_engine, 'connect')
        def set_sqlite_pragma(dbapi_connection, connection_record):
            """
            WAL lets the sweeper delete while request threads read.
            """
            cursor = dbapi_connection.cursor()
            cursor.execute('PRAGMA journal_mode=WAL')
            cursor.execute('PRAGMA synchronous=NORMAL')
            cursor.execute('PRAGMA foreign_keys=ON')
            cursor.close()

    return new_engine


def build_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(
        bind=bind,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,  # Rows are read after the session closes
    )


engine = build_engine(config.database.url, echo=config.debug)

# Session factory
SessionLocal = build_session_factory(engine)


@contextmanager
def session_scope(factory: Callable[[], Session]) -> Generator[Session, None, None]:
    """Commit on success, roll back on error, always close."""
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(bind: Engine = None) -> None:
    """
    Initialize database schema.

    Creates all tables if they don't exist. For production,
    use Alembic migrations instead.
    """
    # Import models so they register on Base.metadata
    from wayfarer.models import map_data_cache  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
