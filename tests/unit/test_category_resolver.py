"""
Unit tests for lazy per-site category resolution.
"""

from unittest.mock import patch

from sqlalchemy.exc import OperationalError

from contentmill import models
from contentmill.services.category_resolver import CategoryResolver


class TestCategoryResolver:

    def setup_method(self):
        self.resolver = CategoryResolver()

    def test_creates_novel_category(self, db, site):
        result = self.resolver.resolve(db, site.id, "Hand Tools")

        assert result.created
        category = db.get(models.Category, result.category_id)
        assert category.name == "Hand Tools"
        assert category.slug == "hand-tools"
        assert category.article_count == 0

    def test_reuses_existing_by_exact_name(self, db, site):
        first = self.resolver.resolve(db, site.id, "Hand Tools")
        second = self.resolver.resolve(db, site.id, "Hand Tools")

        assert second.category_id == first.category_id
        assert not second.created
        assert db.query(models.Category).count() == 1

    def test_categories_are_per_site(self, db, site, organization):
        other = models.Site(organization_id=organization.id, name="Other", slug="other-site")
        db.add(other)
        db.commit()

        a = self.resolver.resolve(db, site.id, "Finishing")
        b = self.resolver.resolve(db, other.id, "Finishing")
        assert a.category_id != b.category_id

    def test_empty_and_uncategorized_map_to_sentinel(self, db, site):
        for name in (None, "", "   ", "Uncategorized", "uncategorized"):
            result = self.resolver.resolve(db, site.id, name)
            assert result.is_uncategorized
            assert result.name == "Uncategorized"
        assert db.query(models.Category).count() == 0

    def test_creation_failure_degrades(self, db, site):
        with patch.object(db, "commit", side_effect=OperationalError("INSERT", {}, Exception("disk full"))):
            result = self.resolver.resolve(db, site.id, "Power Tools")
        assert result.is_uncategorized
        assert db.query(models.Category).count() == 0
