"""Article read routes. List and detail responses go through the response cache."""
import json
import re
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy import or_, text
from sqlmodel import Session, col, select

from newsdesk.cache import article_key, articles_key, get_cache
from newsdesk.db.engine import get_session
from newsdesk.models.article import PUBLISHED, Article, ArticleDetail, ArticleSummary

router = APIRouter()


class ArticleListResponse(BaseModel):
    articles: List[ArticleSummary]
    has_more: bool
    next_cursor: Optional[str]


class SearchResponse(BaseModel):
    articles: List[ArticleSummary]
    has_more: bool
    total: int


def _topic_pattern(topic: str) -> str:
    # Same encoding as the stored JSON array; the quotes keep "Sport" from matching "Sports"
    return f"%{json.dumps(topic, ensure_ascii=False)}%"


def _published():
    return select(Article).where(Article.status == PUBLISHED)


@router.get("/", response_model=ArticleListResponse)
def list_articles(
    topic: Optional[str] = None,
    page_size: int = Query(12, ge=1, le=100),
    cursor: Optional[str] = None,
    session: Session = Depends(get_session),
):
    """List published articles, newest first. `cursor` is an opaque offset."""
    try:
        offset = max(int(cursor), 0) if cursor else 0
    except ValueError:
        offset = 0

    cache = get_cache()
    key = articles_key(topic, offset)
    cached = cache.get(key)
    if cached is not None:
        return cached

    stmt = _published()
    if topic:
        stmt = stmt.where(col(Article.topics).like(_topic_pattern(topic)))
    # One extra row tells us whether another page exists
    rows = session.exec(
        stmt.order_by(col(Article.publish_date).desc()).offset(offset).limit(page_size + 1)
    ).all()

    has_more = len(rows) > page_size
    result = ArticleListResponse(
        articles=[ArticleSummary.from_row(r) for r in rows[:page_size]],
        has_more=has_more,
        next_cursor=str(offset + page_size) if has_more else None,
    )
    cache.set(key, result)
    return result


@router.get("/topics", response_model=List[str])
def list_topics(session: Session = Depends(get_session)):
    """All distinct topics across published articles, sorted."""
    topics = set()
    for row in session.exec(_published()).all():
        topics.update(row.topic_list)
    return sorted(topics)


@router.get("/topics/counts", response_model=Dict[str, int])
def topic_counts(session: Session = Depends(get_session)):
    """Number of published articles per topic."""
    counts: Dict[str, int] = {}
    for row in session.exec(_published()).all():
        for topic in row.topic_list:
            counts[topic] = counts.get(topic, 0) + 1
    return counts


@router.get("/search", response_model=SearchResponse)
def search_articles(
    q: str,
    page_size: int = Query(12, ge=1, le=100),
    offset: int = Query(0, ge=0),
    session: Session = Depends(get_session),
):
    """Full-text search over title, excerpt and why-it-matters."""
    # Punctuation is stripped and each word quoted, so AND/OR/NOT are plain terms
    words = re.sub(r"[^\w\s]", "", q).split()
    if not words:
        return SearchResponse(articles=[], has_more=False, total=0)
    query = " ".join(f'"{w}"' for w in words)

    match = """
        FROM articles_fts
        JOIN articles a ON articles_fts.rowid = a.rowid
        WHERE articles_fts MATCH :query AND a.status = :status
    """
    params = {"query": query, "status": PUBLISHED}
    ids = session.execute(
        text(f"SELECT a.id {match} ORDER BY rank LIMIT :limit OFFSET :offset"),
        {**params, "limit": page_size + 1, "offset": offset},
    ).scalars().all()
    total = session.execute(text(f"SELECT COUNT(*) {match}"), params).scalar_one()

    rows = [session.get(Article, article_id) for article_id in ids[:page_size]]
    return SearchResponse(
        articles=[ArticleSummary.from_row(r) for r in rows if r is not None],
        has_more=len(ids) > page_size,
        total=total,
    )


@router.post("/cache/invalidate")
def invalidate_cache():
    """Flush the response cache so the next request reads fresh rows."""
    get_cache().invalidate()
    return {"success": True, "message": "Cache cleared"}


def _get_published_by_slug(session: Session, slug: str) -> Optional[Article]:
    return session.exec(_published().where(Article.slug == slug)).first()


@router.get("/{slug}", response_model=ArticleDetail)
def get_article(slug: str, session: Session = Depends(get_session)):
    """Fetch one published article with its block content."""
    cache = get_cache()
    key = article_key(slug)
    cached = cache.get(key)
    if cached is not None:
        return cached

    article = _get_published_by_slug(session, slug)
    if not article:
        raise HTTPException(status_code=404, detail="Article not found")
    detail = ArticleDetail.from_row(article)
    cache.set(key, detail)
    return detail


@router.get("/{slug}/related", response_model=List[ArticleSummary])
def related_articles(
    slug: str,
    limit: int = Query(3, ge=1, le=20),
    session: Session = Depends(get_session),
):
    """Published articles sharing at least one topic with `slug`, newest first."""
    article = _get_published_by_slug(session, slug)
    if not article or not article.topic_list:
        return []

    rows = session.exec(
        _published()
        .where(Article.slug != slug)
        .where(or_(*(col(Article.topics).like(_topic_pattern(t)) for t in article.topic_list)))
        .order_by(col(Article.publish_date).desc())
        .limit(limit)
    ).all()
    return [ArticleSummary.from_row(r) for r in rows]
