"""Shared test fixtures."""
import os

# Keep tests off the on-disk default DB; must be set before Settings loads.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("RUN_SCHEDULER", "false")

from typing import Any, Dict, Generator, List, Optional

import pytest
from sqlalchemy import text
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

# Import all models so SQLModel.metadata knows about them
from newsdesk.models.article import Article  # noqa: F401
from newsdesk.models.sync import SyncMetadata, SyncRun  # noqa: F401
from newsdesk.db.migrations import run_migrations
from newsdesk.cache import get_cache


@pytest.fixture(name="engine")
def engine_fixture():
    """In-memory SQLite engine with the full schema, FTS index included."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    run_migrations(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="test_session")
def test_session_fixture(engine) -> Generator[Session, None, None]:
    """Provides a DB session connected to in-memory SQLite."""
    with Session(engine) as session:
        yield session


@pytest.fixture
def reject_insert(engine):
    """Make SQLite abort any INSERT of the given article id, like a full disk would."""
    def install(article_id: str, message: str = "database or disk is full"):
        with engine.begin() as conn:
            conn.execute(text(
                f"CREATE TRIGGER reject_{article_id} BEFORE INSERT ON articles "
                f"WHEN NEW.id = '{article_id}' BEGIN SELECT RAISE(ABORT, '{message}'); END"
            ))
    return install


@pytest.fixture(autouse=True)
def clear_response_cache():
    """The response cache is a process-wide singleton; start every test empty."""
    get_cache().invalidate()
    yield
    get_cache().invalidate()


def _rich_text(text: str) -> List[Dict[str, Any]]:
    return [{"type": "text", "plain_text": text, "annotations": {}, "href": None}]


def build_notion_page(
    page_id: str,
    *,
    title: str = "",
    slug: Optional[str] = None,
    status: str = "Published",
    publish_date: str = "2025-01-15",
    topics: Optional[List[str]] = None,
    authors: Optional[List[str]] = None,
    excerpt: str = "",
    why_it_matters: str = "",
    last_edited_time: str = "2025-01-15T08:00:00.000Z",
) -> Dict[str, Any]:
    """A Notion database page object shaped like the query endpoint returns."""
    return {
        "object": "page",
        "id": page_id,
        "last_edited_time": last_edited_time,
        "cover": None,
        "properties": {
            "Title": {"id": "title", "type": "title", "title": _rich_text(title or page_id)},
            "Slug": {"id": "s1", "type": "rich_text", "rich_text": _rich_text(slug or page_id)},
            "Excerpt": {"id": "e1", "type": "rich_text", "rich_text": _rich_text(excerpt)},
            "Publish Date": {"id": "d1", "type": "date", "date": {"start": publish_date, "end": None}},
            "Author": {
                "id": "a1",
                "type": "people",
                "people": [{"object": "user", "id": f"u-{n}", "name": n} for n in (authors or [])],
            },
            "Topic": {
                "id": "t1",
                "type": "multi_select",
                "multi_select": [{"id": f"o-{t}", "name": t, "color": "blue"} for t in (topics or [])],
            },
            "Why It Matters": {"id": "w1", "type": "rich_text", "rich_text": _rich_text(why_it_matters)},
            "Status": {"id": "st", "type": "status", "status": {"id": "p", "name": status, "color": "green"}},
        },
    }


def build_paragraph(block_id: str, text: str) -> Dict[str, Any]:
    return {
        "object": "block",
        "id": block_id,
        "type": "paragraph",
        "paragraph": {"rich_text": _rich_text(text), "color": "default"},
    }


@pytest.fixture
def notion_page():
    """Factory fixture: notion_page("id", title=..., topics=[...])."""
    return build_notion_page


@pytest.fixture
def paragraph_block():
    return build_paragraph
