"""Article data models: the mirrored `articles` table and its API shapes."""
import json
from typing import Any, Dict, List, Optional

from sqlmodel import Field, SQLModel

from newsdesk.notion.blocks import parse_blocks

PUBLISHED = "Published"

# Columns rewritten on every update. Bookkeeping timestamps are handled separately.
MUTABLE_COLUMNS = (
    "title",
    "slug",
    "excerpt",
    "content",
    "publish_date",
    "last_edited_time",
    "author",
    "topics",
    "why_it_matters",
    "status",
    "cover_image",
)


class Article(SQLModel, table=True):
    """One row per published Notion page. `id` is the Notion page id."""

    __tablename__ = "articles"

    id: str = Field(primary_key=True)
    title: str = ""
    slug: str = Field(default="", unique=True, index=True)
    excerpt: str = ""
    publish_date: str = Field(default="", index=True)  # ISO date, list ordering
    last_edited_time: Optional[str] = None  # ISO datetime from Notion
    author: str = "[]"  # JSON list of names
    topics: str = "[]"  # JSON list; queried with LIKE '%"Topic"%'
    why_it_matters: str = ""
    status: str = PUBLISHED
    cover_image: Optional[str] = None

    # JSON-serialized list of raw Notion block objects
    content: Optional[str] = None

    # Local epoch milliseconds
    created_at: int = 0
    updated_at: int = 0
    synced_at: int = 0

    @property
    def author_list(self) -> List[str]:
        return json.loads(self.author) if self.author else []

    @property
    def topic_list(self) -> List[str]:
        return json.loads(self.topics) if self.topics else []

    @property
    def content_blocks(self) -> Optional[List[Dict[str, Any]]]:
        return json.loads(self.content) if self.content else None


def article_columns(record: Dict[str, Any]) -> Dict[str, Any]:
    """
    Convert a synced article record into column values for `Article`.

    Args:
        record: Projection dict plus a `content` list of raw blocks.

    Returns:
        Dict keyed by MUTABLE_COLUMNS with list fields JSON-encoded.
    """
    content = record.get("content")
    return {
        "title": record.get("title", ""),
        "slug": record.get("slug", ""),
        "excerpt": record.get("excerpt", ""),
        "content": json.dumps(content, ensure_ascii=False) if content is not None else None,
        "publish_date": record.get("publish_date", ""),
        "last_edited_time": record.get("last_edited_time"),
        "author": json.dumps(record.get("author") or [], ensure_ascii=False),
        "topics": json.dumps(record.get("topics") or [], ensure_ascii=False),
        "why_it_matters": record.get("why_it_matters", ""),
        "status": record.get("status", ""),
        "cover_image": record.get("cover_image") or None,
    }


class ArticleSummary(SQLModel):
    """List/search item: everything except the block content."""

    id: str
    title: str
    slug: str
    excerpt: str
    publish_date: str
    author: List[str]
    topics: List[str]
    why_it_matters: str
    status: str
    cover_image: Optional[str] = None

    @classmethod
    def from_row(cls, row: Article) -> "ArticleSummary":
        return cls(
            id=row.id,
            title=row.title,
            slug=row.slug,
            excerpt=row.excerpt or "",
            publish_date=row.publish_date or "",
            author=row.author_list,
            topics=row.topic_list,
            why_it_matters=row.why_it_matters or "",
            status=row.status or PUBLISHED,
            cover_image=row.cover_image or None,
        )


class ArticleDetail(ArticleSummary):
    """Single article with raw content and its typed block view."""

    content: Optional[List[Dict[str, Any]]] = None
    blocks: List[Dict[str, Any]] = []

    @classmethod
    def from_row(cls, row: Article) -> "ArticleDetail":
        content = row.content_blocks
        summary = ArticleSummary.from_row(row)
        return cls(
            **summary.model_dump(),
            content=content,
            blocks=[b.to_dict() for b in parse_blocks(content or [])],
        )
