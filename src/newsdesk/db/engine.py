"""Engine singleton for the article mirror and the FastAPI session dependency."""
from typing import Any, Dict, Generator

from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from newsdesk.config import get_settings

_engine = None


def _engine_kwargs(url: str) -> Dict[str, Any]:
    kwargs: Dict[str, Any] = {"connect_args": {"check_same_thread": False}}
    if url in ("sqlite://", "sqlite:///:memory:"):
        # One shared connection, otherwise each thread sees an empty database
        kwargs["poolclass"] = StaticPool
    return kwargs


def get_engine():
    """Return the mirror engine, creating tables and the search index on first call."""
    global _engine
    if _engine is None:
        url = get_settings().database_url
        _engine = create_engine(url, **_engine_kwargs(url))
        from newsdesk.models.article import Article  # noqa
        from newsdesk.models.sync import SyncMetadata, SyncRun  # noqa
        SQLModel.metadata.create_all(_engine)
        from newsdesk.db.migrations import run_migrations
        run_migrations(_engine)
    return _engine


def get_session() -> Generator[Session, None, None]:
    with Session(get_engine()) as session:
        yield session
