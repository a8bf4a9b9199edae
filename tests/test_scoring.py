"""Unit tests for heuristic scoring."""
import pytest
from src.cleaning.scoring import (
    calculate_urgency_score,
    calculate_value_score,
    calculate_engagement_score,
    weighted_engagement,
)


class TestUrgencyScore:
    """Test calculate_urgency_score."""

    @pytest.mark.parametrize("urgency,expected", [
        ("Critical", 10), ("High", 8), ("Medium", 5), ("Low", 3), ("Unknown", 5), (None, 5),
    ])
    def test_base_scores(self, urgency, expected):
        """Test base score per urgency with no keyword boosts."""
        assert calculate_urgency_score(urgency, "hello there", "Free") == expected

    def test_keyword_boosts_accumulate(self):
        """Test each keyword group boosts once."""
        # Low 3 + urgent 2 + blocking 1 = 6
        assert calculate_urgency_score("Low", "urgent and blocking", "Free") == 6

    def test_each_group_counts_once(self):
        """Test two words from the same group do not double the boost."""
        assert calculate_urgency_score("Low", "urgent critical", "Free") == 5

    def test_enterprise_boost(self):
        """Test enterprise customers get +1."""
        assert calculate_urgency_score("Medium", "hello", "Enterprise") == 6

    def test_score_is_clamped(self):
        """Test the score never exceeds 10."""
        text = "URGENT production outage with data loss, blocking us"
        assert calculate_urgency_score("Critical", text, "Enterprise") == 10

    def test_empty_text(self):
        """Test empty or missing text is handled."""
        assert calculate_urgency_score("High", "", None) == 8
        assert calculate_urgency_score("High", None, None) == 8


class TestValueScore:
    """Test calculate_value_score."""

    @pytest.mark.parametrize("tier,expected", [
        ("Enterprise", 9), ("Pro", 7), ("Free", 4), (None, 5),
    ])
    def test_base_scores(self, tier, expected):
        """Test base score per tier."""
        assert calculate_value_score(tier, "hello") == expected

    def test_engagement_thresholds(self):
        """Test weighted engagement above 20 and 50 adds 1 and 2."""
        assert calculate_value_score("Free", "hello", {"likes": 21}) == 5
        assert calculate_value_score("Free", "hello", {"likes": 20}) == 4
        assert calculate_value_score("Free", "hello", {"upvotes": 26}) == 6

    def test_keyword_boosts(self):
        """Test revenue/customer and compliance/security boosts."""
        assert calculate_value_score("Free", "customer security review") == 6

    def test_score_is_clamped(self):
        """Test the score never exceeds 10."""
        assert calculate_value_score("Enterprise", "revenue security", {"likes": 100}) == 10

    def test_bad_metrics_are_ignored(self):
        """Test non-numeric metric values count as zero."""
        assert calculate_value_score("Pro", "hello", {"likes": "many", "upvotes": None}) == 7


class TestEngagementScore:
    """Test calculate_engagement_score and weighted_engagement."""

    def test_weighted_sum(self):
        """Test the documented weights."""
        metrics = {"likes": 10, "retweets": 5, "upvotes": 2, "comments": 1, "replies": 2, "views": 150}
        # 10 + 10 + 4 + 3 + 6 + 1.5
        assert calculate_engagement_score(metrics) == 34.5

    def test_rounded_to_two_decimals(self):
        """Test rounding of fractional view weights."""
        assert calculate_engagement_score({"views": 333}) == 3.33

    def test_not_clamped(self):
        """Test engagement can exceed 10."""
        assert calculate_engagement_score({"likes": 1000}) == 1000

    def test_empty_metrics(self):
        """Test missing metrics yield zero."""
        assert calculate_engagement_score(None) == 0
        assert calculate_engagement_score({}) == 0

    def test_weighted_engagement(self):
        """Test value-scoring engagement ignores retweets and views."""
        assert weighted_engagement({"likes": 3, "upvotes": 4, "comments": 5, "retweets": 100, "views": 1000}) == 16
