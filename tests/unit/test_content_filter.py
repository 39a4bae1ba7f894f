"""
Unit tests for the promotional-content filter.
"""

import json
from unittest.mock import MagicMock

from contentmill.services.content_filter import ContentFilter, SalesClassifier
from contentmill.services.resilience import LLMServiceError


def _provider(is_sales: bool, confidence: float) -> MagicMock:
    provider = MagicMock()
    provider.complete.return_value = json.dumps({"isSales": is_sales, "confidence": confidence})
    return provider


class TestHeuristics:
    """Deterministic checks never call the classifier."""

    def setup_method(self):
        self.provider = MagicMock()
        self.filter = ContentFilter(classifier=SalesClassifier(self.provider))

    def test_keyword_offer_is_promotional_without_model_call(self):
        decision = self.filter.evaluate(
            "Limited time offer, buy now, 50% off",
            "<p>Limited time offer, buy now, 50% off everything in store.</p>",
        )
        assert decision.is_promotional
        assert decision.reason.startswith("keyword:")
        assert not decision.used_classifier
        self.provider.complete.assert_not_called()

    def test_keyword_matching_is_case_insensitive(self):
        assert self.filter.matched_keyword("SHOP NOW for spring") == "shop now"

    def test_keyword_prefix_matches_word_forms(self):
        assert self.filter.matched_keyword("Buy our discounted widgets") == "discount"

    def test_keyword_inside_word_does_not_match(self):
        assert self.filter.matched_keyword("The wholesale market opened") is None

    def test_shouting_is_promotional(self):
        decision = self.filter.evaluate("HUGE NEWS TODAY", "<p>EVERYTHING MUST GO right away friends</p>")
        assert decision.is_promotional
        assert decision.reason.startswith("uppercase_ratio:")
        self.provider.complete.assert_not_called()

    def test_single_letter_capitals_not_counted(self):
        assert ContentFilter.shouted_ratio("I read a book") == 0.0

    def test_shouted_ratio(self):
        assert ContentFilter.shouted_ratio("NASA and ESA agree today") == 0.4

    def test_too_many_links_is_promotional(self):
        links = "".join(f'<a href="https://example.com/{i}">link {i}</a>' for i in range(11))
        decision = self.filter.evaluate("Resources", f"<p>{links}</p>")
        assert decision.is_promotional
        assert decision.reason == "link_count:11"

    def test_ten_links_allowed(self):
        links = "".join(f'<a href="https://example.com/{i}">link {i}</a>' for i in range(10))
        assert self.filter.heuristic_decision("Resources", f"<p>{links}</p>") is None


class TestClassifierEscalation:
    """Items passing the heuristics go to the sales classifier."""

    def test_default_threshold_strictly_greater(self):
        content_filter = ContentFilter(classifier=SalesClassifier(_provider(True, 0.75)))
        decision = content_filter.evaluate("Garden tools", "<p>A look at garden tools.</p>")
        assert not decision.is_promotional
        assert decision.used_classifier

    def test_default_threshold_exceeded(self):
        content_filter = ContentFilter(classifier=SalesClassifier(_provider(True, 0.8)))
        decision = content_filter.evaluate("Garden tools", "<p>A look at garden tools.</p>")
        assert decision.is_promotional
        assert decision.used_classifier

    def test_currency_lowers_threshold(self):
        content_filter = ContentFilter(classifier=SalesClassifier(_provider(True, 0.65)))
        with_price = content_filter.evaluate("Garden tools", "<p>The spade costs $29.99 at most shops.</p>")
        without_price = content_filter.evaluate("Garden tools", "<p>The spade is sturdy.</p>")
        assert with_price.is_promotional
        assert not without_price.is_promotional

    def test_not_sales_verdict_passes(self):
        content_filter = ContentFilter(classifier=SalesClassifier(_provider(False, 0.99)))
        assert not content_filter.evaluate("Garden tools", "<p>Costs 20 dollars.</p>").is_promotional

    def test_classifier_failure_fails_open(self):
        provider = MagicMock()
        provider.complete.side_effect = LLMServiceError("upstream down")
        content_filter = ContentFilter(classifier=SalesClassifier(provider))
        decision = content_filter.evaluate("Garden tools", "<p>A look at garden tools.</p>")
        assert not decision.is_promotional

    def test_unparseable_verdict_fails_open(self):
        provider = MagicMock()
        provider.complete.return_value = "definitely not json"
        result = SalesClassifier(provider).classify("Title", "Body")
        assert result.is_sales is False
        assert result.confidence == 0.0

    def test_classifier_call_type(self):
        provider = _provider(False, 0.1)
        SalesClassifier(provider).classify("Title", "Body")
        args, kwargs = provider.complete.call_args
        assert kwargs["call_type"] == "sales_filter"

    def test_no_classifier_means_benign(self):
        assert not ContentFilter().evaluate("Garden tools", "<p>Plain text.</p>").is_promotional
