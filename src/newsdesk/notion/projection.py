"""
Notion page → article field dict.

Each Notion property is a tagged union ({"type": "rich_text", "rich_text": [...]},
{"type": "date", "date": {...}}, ...). There is one extractor per tag; an
extractor returns its empty default when the property is missing, carries a
different tag, or has a null payload. Nothing in this module raises on bad
input, so one malformed page never fails a sync.

No DB access here; the sync service handles persistence.
"""
import logging
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

# Property names in the Notion articles database
TITLE = "Title"
SLUG = "Slug"
EXCERPT = "Excerpt"
PUBLISH_DATE = "Publish Date"
AUTHOR = "Author"
TOPIC = "Topic"
WHY_IT_MATTERS = "Why It Matters"
STATUS = "Status"
COVER_IMAGE = "Cover Image"


def _property(properties: Dict[str, Any], name: str, tag: str) -> Optional[Any]:
    """Return the payload of `name` if it carries type tag `tag`, else None."""
    prop = properties.get(name)
    if not isinstance(prop, dict) or prop.get("type") != tag:
        logger.debug("Property %r missing or not of type %r; using default", name, tag)
        return None
    return prop.get(tag)


def _join_plain_text(spans: Any) -> str:
    if not isinstance(spans, list):
        return ""
    return "".join(s.get("plain_text", "") for s in spans if isinstance(s, dict))


def extract_title(properties: Dict[str, Any], name: str = TITLE) -> str:
    return _join_plain_text(_property(properties, name, "title"))


def extract_rich_text(properties: Dict[str, Any], name: str) -> str:
    return _join_plain_text(_property(properties, name, "rich_text"))


def extract_date(properties: Dict[str, Any], name: str) -> str:
    """Start of a date property ("2025-01-15" or full ISO datetime)."""
    date = _property(properties, name, "date")
    if not isinstance(date, dict):
        return ""
    return date.get("start") or ""


def extract_people(properties: Dict[str, Any], name: str) -> List[str]:
    people = _property(properties, name, "people")
    if not isinstance(people, list):
        return []
    # Guests and bots can come back without a name
    return [p.get("name") or "Unknown" for p in people if isinstance(p, dict)]


def extract_multi_select(properties: Dict[str, Any], name: str) -> List[str]:
    options = _property(properties, name, "multi_select")
    if not isinstance(options, list):
        return []
    return [o["name"] for o in options if isinstance(o, dict) and o.get("name")]


def extract_status(properties: Dict[str, Any], name: str = STATUS) -> str:
    status = _property(properties, name, "status")
    if not isinstance(status, dict):
        return ""
    return status.get("name") or ""


def _file_object_url(file_obj: Any) -> Optional[str]:
    """URL of a Notion file object: external link first, then hosted file."""
    if not isinstance(file_obj, dict):
        return None
    kind = file_obj.get("type")
    if kind == "external":
        return (file_obj.get("external") or {}).get("url")
    if kind == "file":
        return (file_obj.get("file") or {}).get("url")
    return None


def extract_cover_image(page: Dict[str, Any]) -> Optional[str]:
    """
    Resolve the article's cover image URL.

    Order:
      1. First file in the "Cover Image" files property.
      2. The page-level cover.
    Returns None when neither yields a URL.
    """
    properties = page.get("properties") or {}
    files = _property(properties, COVER_IMAGE, "files")
    if isinstance(files, list) and files:
        url = _file_object_url(files[0])
        if url:
            return url
    return _file_object_url(page.get("cover"))


def project_page(page: Dict[str, Any]) -> Dict[str, Any]:
    """
    Normalize a Notion database page into an article field dict.

    Args:
        page: A page object from the database query endpoint.

    Returns:
        Dict with keys id, title, slug, excerpt, publish_date,
        last_edited_time, author, topics, why_it_matters, status and
        cover_image. Block content is fetched separately.
    """
    properties = page.get("properties") or {}
    return {
        "id": page.get("id", ""),
        "title": extract_title(properties),
        "slug": extract_rich_text(properties, SLUG),
        "excerpt": extract_rich_text(properties, EXCERPT),
        "publish_date": extract_date(properties, PUBLISH_DATE),
        "last_edited_time": page.get("last_edited_time"),
        "author": extract_people(properties, AUTHOR),
        "topics": extract_multi_select(properties, TOPIC),
        "why_it_matters": extract_rich_text(properties, WHY_IT_MATTERS),
        "status": extract_status(properties),
        "cover_image": extract_cover_image(page),
    }
