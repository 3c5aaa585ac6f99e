"""Database configuration and session management for location groups."""

import collections.abc
import pathlib
import sqlite3
from typing import Any

import sqlalchemy
import sqlalchemy.event
import sqlmodel

import common.settings

SessionFactory = collections.abc.Callable[[], sqlmodel.Session]


def enable_sqlite_foreign_keys(dbapi_connection: Any, _record: Any) -> None:
    """Turn on foreign key enforcement so ON DELETE CASCADE applies."""
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute('PRAGMA foreign_keys=ON')
        cursor.close()


def make_engine(url: str, **kwargs: Any) -> sqlalchemy.Engine:
    """Create an engine with SQLite foreign keys enabled on every connection."""
    engine = sqlmodel.create_engine(
        url,
        connect_args={'check_same_thread': False},
        echo=False,
        **kwargs,
    )
    sqlalchemy.event.listen(engine, 'connect', enable_sqlite_foreign_keys)
    return engine


engine = make_engine(common.settings.DATABASE_URL)


def create_db_and_tables(target: sqlalchemy.Engine | None = None) -> None:
    """Create database tables if they don't exist."""
    # Import models to ensure they're registered with SQLModel
    from . import models  # noqa: F401 # pyright: ignore[reportUnusedImport]

    target = target or engine
    database = target.url.database
    if target.url.get_backend_name() == 'sqlite' and database:
        pathlib.Path(database).parent.mkdir(parents=True, exist_ok=True)
    sqlmodel.SQLModel.metadata.create_all(target)


def get_session() -> collections.abc.Generator[sqlmodel.Session, None, None]:
    """Get a database session."""
    with sqlmodel.Session(engine) as session:
        yield session


def get_session_factory() -> SessionFactory:
    """Get a callable that opens new sessions, for work outliving the request."""
    return lambda: sqlmodel.Session(engine)
