from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

import settings


def build_engine(url: str = settings.DATABASE_URL, echo: bool = settings.DATABASE_ECHO):
    """Create an engine for `url`. In-memory SQLite shares a single connection."""
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, echo=echo, **kwargs)
    return create_engine(url, echo=echo)


def create_db_and_tables(engine) -> None:
    """Create all tables in the database if they don't exist."""
    # table classes must be registered on SQLModel.metadata first
    import models  # noqa: F401

    SQLModel.metadata.create_all(engine)


def open_session(engine) -> Session:
    """Session whose objects stay readable after commit and close."""
    return Session(engine, expire_on_commit=False)
