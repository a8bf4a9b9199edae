"""Unit tests for result summarization."""
import pytest
from unittest.mock import Mock
from src.agents.llm_agent import ChatAgent, CompletionResult
from src.search.summarizer import (
    ResultSummarizer,
    NO_RESULTS_MESSAGE,
    create_fallback_response,
    create_results_digest,
    top_themes,
)


@pytest.fixture
def sample_results():
    """Rows shaped like the search query output."""
    return [
        {"urgency": "Critical", "product_name": "D1 Database", "customer_tier": "Enterprise",
         "ai_summary": "Writes lost", "themes": "Data Loss,Performance Issues"},
        {"urgency": "High", "product_name": "Workers", "customer_tier": "Pro",
         "ai_summary": None, "feedback_text": "Deploys fail on large bundles", "themes": "Build/Deploy Issues"},
        {"urgency": "Critical", "product_name": "D1 Database", "customer_tier": "Free",
         "ai_summary": "Query timeouts", "themes": "Performance Issues"},
        {"urgency": "Low", "product_name": "Pages", "customer_tier": "Free",
         "ai_summary": "Wants dark mode", "themes": None},
    ]


class TestFallbackResponse:
    """Test the deterministic response template."""

    def test_fallback_response(self, sample_results):
        """Test counts, severity lines and top themes."""
        response = create_fallback_response(sample_results)

        assert response == (
            "Found 4 feedback items matching your query.\n\n"
            "⚠️ 2 Critical issues require immediate attention.\n"
            "1 High priority items.\n"
            "\nTop themes: Performance Issues (2), Data Loss (1), Build/Deploy Issues (1)"
        )

    def test_fallback_without_severity_or_themes(self):
        """Test lines are omitted when there is nothing to report."""
        response = create_fallback_response([{"urgency": "Low", "themes": ""}])
        assert response == "Found 1 feedback items matching your query.\n\n"

    def test_top_themes_ties_keep_first_seen_order(self):
        """Test ties are broken by first appearance."""
        rows = [{"themes": "B,A"}, {"themes": "C"}, {"themes": "A"}, {"themes": "B"}]
        assert top_themes(rows) == [("B", 2), ("A", 2), ("C", 1)]

    def test_results_digest(self, sample_results):
        """Test digest lines fall back to raw text when there is no summary."""
        digest = create_results_digest(sample_results).split("\n")

        assert digest[0] == "1. [Critical] D1 Database: Writes lost (Enterprise)"
        assert digest[1] == "2. [High] Workers: Deploys fail on large bundles (Pro)"

    def test_results_digest_is_capped(self):
        """Test only the first ten rows are described."""
        rows = [{"urgency": "Low", "ai_summary": f"item {i}"} for i in range(15)]
        assert len(create_results_digest(rows).split("\n")) == 10


class TestResultSummarizer:
    """Test ResultSummarizer."""

    def test_no_results_message(self):
        """Test zero rows yield the fixed message without calling the model."""
        agent = Mock(spec=ChatAgent)
        summarizer = ResultSummarizer(agent)

        assert summarizer.summarize("anything", []) == NO_RESULTS_MESSAGE
        assert NO_RESULTS_MESSAGE == "No feedback items match your query. Try broadening your search criteria."
        agent.complete.assert_not_called()

    def test_ai_summary(self, sample_results):
        """Test the model answer is returned stripped."""
        agent = Mock(spec=ChatAgent)
        agent.complete.return_value = CompletionResult(text="  Two critical D1 issues need attention.  ")

        response = ResultSummarizer(agent).summarize("critical d1 issues", sample_results)

        assert response == "Two critical D1 issues need attention."
        prompt = agent.complete.call_args.args[1]
        assert 'The user asked: "critical d1 issues"' in prompt
        assert "We found 4 matching feedback items" in prompt

    def test_ai_failure_uses_template(self, sample_results):
        """Test a failed completion falls back to the template."""
        agent = Mock(spec=ChatAgent)
        agent.complete.return_value = CompletionResult(error="Empty completion")

        response = ResultSummarizer(agent).summarize("q", sample_results)

        assert response.startswith("Found 4 feedback items")

    def test_without_agent_uses_template(self, sample_results):
        """Test the template is used when no model is configured."""
        assert ResultSummarizer().summarize("q", sample_results) == create_fallback_response(sample_results)
