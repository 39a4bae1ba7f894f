# contentmill/services/category_resolver.py
"""
Map a suggested category name to a per-site category, creating it on first use.

Category assignment is best-effort: any failure while creating a category
degrades to "Uncategorized" (no category id) instead of failing the item.
"""

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from contentmill import models
from contentmill.constants import UNCATEGORIZED
from contentmill.utils.html import slugify

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 255


@dataclass
class CategoryResolution:
    category_id: uuid.UUID | None
    name: str
    created: bool = False

    @property
    def is_uncategorized(self) -> bool:
        return self.category_id is None


def _uncategorized() -> CategoryResolution:
    return CategoryResolution(category_id=None, name=UNCATEGORIZED)


class CategoryResolver:
    """Resolve category names within a site."""

    def _find(self, db: Session, site_id, name: str) -> models.Category | None:
        return (
            db.query(models.Category)
            .filter(models.Category.site_id == site_id, models.Category.name == name)
            .first()
        )

    def resolve(self, db: Session, site_id, suggested_name: str | None) -> CategoryResolution:
        """
        Return the category for ``suggested_name``, creating it if needed.

        Lookup is by exact name. A new category gets a slug derived from the
        name and a zero article count. Creation is committed immediately so
        the category is visible to later items in the same batch.
        """
        name = " ".join((suggested_name or "").split())[:MAX_NAME_LENGTH]
        if not name or name.lower() == UNCATEGORIZED.lower():
            return _uncategorized()

        try:
            existing = self._find(db, site_id, name)
            if existing:
                return CategoryResolution(category_id=existing.id, name=existing.name)

            category = models.Category(
                site_id=site_id,
                name=name,
                slug=slugify(name) or uuid.uuid4().hex[:8],
                article_count=0,
            )
            db.add(category)
            db.commit()
            logger.info(f"Created category '{name}' for site {site_id}")
            return CategoryResolution(category_id=category.id, name=name, created=True)

        except IntegrityError:
            # Created concurrently; the row is there now
            db.rollback()
            try:
                existing = self._find(db, site_id, name)
            except SQLAlchemyError as e:
                logger.warning(f"Category lookup failed after conflict for '{name}': {e}")
                return _uncategorized()
            if existing:
                return CategoryResolution(category_id=existing.id, name=existing.name)
            return _uncategorized()

        except SQLAlchemyError as e:
            db.rollback()
            logger.warning(f"Category resolution failed for '{name}', using {UNCATEGORIZED}: {e}")
            return _uncategorized()
