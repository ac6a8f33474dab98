"""Engine, session and schema helpers."""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ordering.config import Settings
from ordering.persistence.tables import Base


def create_engine_for(settings: Settings) -> Engine:
    """Build the process-wide engine.

    An in-memory SQLite database only lives as long as its connection, so it
    gets a single shared connection (``StaticPool``). Every session then runs
    on that one connection: transactions from different threads are not
    isolated from each other, and the version check never sees a truly
    concurrent writer. Use a file-backed SQLite database or a server database
    wherever concurrent writers matter.
    """
    uri = settings.database_uri
    if uri.startswith("sqlite") and ":memory:" in uri:
        return create_engine(uri, connect_args={"check_same_thread": False}, poolclass=StaticPool)
    return create_engine(uri, pool_pre_ping=True)


def session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, expire_on_commit=False)


def setup_db(engine: Engine) -> None:
    """Setup database schema"""
    Base.metadata.create_all(engine)


def drop_db(engine: Engine) -> None:
    """Drop database schema"""
    Base.metadata.drop_all(engine)
