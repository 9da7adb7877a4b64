"""
Reconcile fetched articles against the `articles` table.

With delete_missing=True (full sync) every existing id absent from the
fetched set is DELETEd first, so the slugs those rows held are free again.
Then for each fetched article: UPDATE if its id already exists, else INSERT.
The table's ids end up equal to the fetched ids, less any skipped records.
Incremental runs pass delete_missing=False: their fetched set only holds
pages edited since the watermark, so absence means "unchanged", not "gone".

Slugs are unique. A write whose slug is held by another row takes it over,
and the other row is parked on its own id until its next write. Within one
batch the first record wins a slug; later records with the same slug are
skipped and logged.

Writes are sequential, one commit per article. A failed write raises
StorageWriteFailed and stops the reconciliation; rows written before it
stay written.
"""
import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from newsdesk.models.article import MUTABLE_COLUMNS, Article, article_columns
from newsdesk.sync.metadata import now_ms

logger = logging.getLogger(__name__)


class StorageWriteFailed(RuntimeError):
    """Raised when an insert, update or delete against `articles` fails."""

    def __init__(self, article_id: str, operation: str, cause: Exception):
        self.article_id = article_id
        self.operation = operation
        super().__init__(f"Failed to {operation} article {article_id}: {cause}")


@dataclass
class ReconcileStats:
    inserted: int = 0
    updated: int = 0
    unchanged: int = 0  # rewritten with fresh timestamps, content identical
    deleted: int = 0
    skipped: int = 0  # slug already taken by an earlier record in the batch

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


def existing_ids(engine) -> List[str]:
    with Session(engine) as s:
        return list(s.exec(select(Article.id)).all())


def reconcile(
    articles: List[Dict[str, Any]],
    engine,
    *,
    delete_missing: bool,
    now: Optional[int] = None,
) -> ReconcileStats:
    """
    Apply deletes (optionally), inserts and updates.

    Args:
        articles: Article records (projection dict plus `content` blocks).
        engine: SQLAlchemy engine.
        delete_missing: Delete existing rows whose id is not in `articles`.
            Only correct when `articles` is the complete published set.
        now: Epoch ms stamped on written rows; defaults to the current time.

    Returns:
        ReconcileStats with per-kind counts.

    Raises:
        StorageWriteFailed: on the first failed write.
    """
    now = now if now is not None else now_ms()
    stats = ReconcileStats()
    current = set(existing_ids(engine))
    remote_ids = {a["id"] for a in articles}

    if delete_missing:
        for article_id in sorted(current - remote_ids):
            _delete(engine, article_id)
            stats.deleted += 1
        current &= remote_ids

    slug_owners: Dict[str, str] = {}
    for record in articles:
        article_id = record["id"]
        columns = article_columns(record)
        owner = slug_owners.setdefault(columns["slug"], article_id)
        if owner != article_id:
            logger.warning(
                "Skipping article %s: slug %r already used by %s in this batch",
                article_id, columns["slug"], owner,
            )
            stats.skipped += 1
            continue

        if article_id in current:
            changed = _update(engine, article_id, columns, now)
            if changed:
                stats.updated += 1
            else:
                stats.unchanged += 1
        else:
            _insert(engine, article_id, columns, now)
            current.add(article_id)
            stats.inserted += 1

    logger.info(
        "Reconciled %d articles: %d inserted, %d updated, %d unchanged, %d deleted, %d skipped",
        len(articles), stats.inserted, stats.updated, stats.unchanged,
        stats.deleted, stats.skipped,
    )
    return stats


def _release_slug(s: Session, article_id: str, slug: str) -> None:
    """Park any other row holding `slug` on its own id so `article_id` can take it."""
    holder = s.exec(
        select(Article).where(Article.slug == slug, Article.id != article_id)
    ).first()
    if holder is None:
        return
    logger.warning("Slug %r moves from article %s to %s", slug, holder.id, article_id)
    holder.slug = holder.id
    s.add(holder)
    s.flush()


def _insert(engine, article_id: str, columns: Dict[str, Any], now: int) -> None:
    try:
        with Session(engine) as s:
            _release_slug(s, article_id, columns["slug"])
            s.add(Article(
                id=article_id, created_at=now, updated_at=now, synced_at=now, **columns
            ))
            s.commit()
    except SQLAlchemyError as exc:
        raise StorageWriteFailed(article_id, "insert", exc) from exc


def _update(engine, article_id: str, columns: Dict[str, Any], now: int) -> bool:
    """Rewrite all mutable columns. Returns True if any of them changed."""
    try:
        with Session(engine) as s:
            row = s.get(Article, article_id)
            if row is None:
                # Deleted between the id scan and now; write it back.
                row = Article(id=article_id, created_at=now)
            changed = any(getattr(row, col) != columns[col] for col in MUTABLE_COLUMNS)
            if row.slug != columns["slug"]:
                _release_slug(s, article_id, columns["slug"])
            for col in MUTABLE_COLUMNS:
                setattr(row, col, columns[col])
            row.updated_at = now
            row.synced_at = now
            s.add(row)
            s.commit()
            return changed
    except SQLAlchemyError as exc:
        raise StorageWriteFailed(article_id, "update", exc) from exc


def _delete(engine, article_id: str) -> None:
    try:
        with Session(engine) as s:
            row = s.get(Article, article_id)
            if row is not None:
                s.delete(row)
                s.commit()
    except SQLAlchemyError as exc:
        raise StorageWriteFailed(article_id, "delete", exc) from exc
