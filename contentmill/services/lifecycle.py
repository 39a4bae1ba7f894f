# contentmill/services/lifecycle.py
"""
Article status transitions.

Every status change is a single conditional UPDATE scoped to the article's
own row: it only applies if the row is still in one of the expected source
statuses. No in-process locking is needed, and an item that has moved on
(published, marked duplicate, deleted) cannot be dragged back by a stale
writer.

Handles:
- Pipeline transitions (raw/failed/filtered -> published/failed/filtered/duplicate)
- Manual transitions (published <-> unpublished, -> deleted)
"""

import logging
from collections.abc import Iterable

from sqlalchemy.orm import Session

from contentmill import models
from contentmill.models import ArticleStatus, utcnow

logger = logging.getLogger(__name__)


class InvalidTransition(ValueError):
    """Requested status change is not part of the lifecycle."""


def is_allowed(from_status: ArticleStatus, to_status: ArticleStatus, manual: bool = False) -> bool:
    table = models.MANUAL_TRANSITIONS if manual else models.PIPELINE_TRANSITIONS
    return to_status in table.get(from_status, frozenset())


def transition(
    db: Session,
    article_id,
    to_status: ArticleStatus,
    from_statuses: Iterable[ArticleStatus] = models.REWRITABLE_STATUSES,
    manual: bool = False,
    **values,
) -> bool:
    """
    Move an article to ``to_status`` if it is currently in ``from_statuses``.

    Extra keyword arguments are written in the same UPDATE. Does not commit.

    Returns:
        True if the row changed, False if it was no longer in an expected status

    Raises:
        InvalidTransition: some from-status cannot reach ``to_status``
    """
    from_statuses = tuple(from_statuses)
    for status in from_statuses:
        if not is_allowed(status, to_status, manual=manual):
            raise InvalidTransition(f"{status.value} -> {to_status.value} is not allowed")

    values["status"] = to_status.value
    values["updated_at"] = utcnow()

    updated = (
        db.query(models.Article)
        .filter(
            models.Article.id == article_id,
            models.Article.status.in_([s.value for s in from_statuses]),
        )
        .update(values, synchronize_session="fetch")
    )

    if updated != 1:
        logger.warning(
            f"Article {article_id} not moved to {to_status.value}: "
            f"no longer in {[s.value for s in from_statuses]}"
        )
    return updated == 1


def set_article_status(db: Session, article_id, to_status: ArticleStatus) -> models.Article:
    """
    Apply an explicit external action (publish, unpublish, delete).

    Raises:
        LookupError: article does not exist
        InvalidTransition: action not allowed from the current status
    """
    article = db.get(models.Article, article_id)
    if article is None:
        raise LookupError(f"Article {article_id} not found")

    current = ArticleStatus(article.status)
    if not is_allowed(current, to_status, manual=True):
        raise InvalidTransition(f"{current.value} -> {to_status.value} is not allowed")

    values = {}
    if to_status == ArticleStatus.PUBLISHED and article.published_at is None:
        values["published_at"] = utcnow()

    if not transition(db, article_id, to_status, from_statuses=(current,), manual=True, **values):
        db.rollback()
        raise InvalidTransition(f"Article {article_id} changed status concurrently")

    db.commit()
    db.refresh(article)
    logger.info(f"Article {article_id}: {current.value} -> {to_status.value}")
    return article
