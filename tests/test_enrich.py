"""Unit tests for the EnrichmentPipeline class."""
import argparse
import pytest
from unittest.mock import Mock, patch
from src.agents.analysis_agent import FeedbackAnalysisAgent
from src.config.settings import Settings
from src.data_access.sql_client import FeedbackStore
from src.models.errors import QueryExecutionError
from src.models.schemas import AnalysisResult
from src.pipelines.enrich import EnrichmentPipeline, positive_int


@pytest.fixture
def mock_config():
    """Create a mock configuration."""
    config = Mock(spec=Settings)
    config.openai_api_key = "test-api-key"
    config.openai_llm_model = "gpt-4o-mini"
    return config


@pytest.fixture
def pending_rows():
    return [
        {"feedback_id": 1, "feedback_text": "D1 is slow", "customer_tier": "Pro", "source": "Discord"},
        {"feedback_id": 2, "feedback_text": "Love Pages", "customer_tier": "Free", "source": "Twitter"},
    ]


@pytest.fixture
def analyses():
    return [
        AnalysisResult(themes=["Performance Issues"], sentiment="Negative", urgency="High",
                       summary="D1 slow", value_score=7, confidence=0.85),
        AnalysisResult(themes=["Positive Feedback"], sentiment="Positive", urgency="Low",
                       summary="Love Pages...", value_score=5, confidence=0.5),
    ]


class TestEnrichmentPipeline:
    """Test EnrichmentPipeline class."""

    @patch('src.pipelines.enrich.FeedbackAnalysisAgent')
    @patch('src.pipelines.enrich.FeedbackStore')
    def test_pipeline_initialization(self, mock_store_cls, mock_agent_cls, mock_config):
        """Test collaborators are built from the config."""
        pipeline = EnrichmentPipeline(mock_config)

        mock_store_cls.assert_called_once_with(mock_config)
        mock_agent_cls.assert_called_once_with(mock_config)
        assert pipeline.config == mock_config

    def test_run(self, mock_config, pending_rows, analyses):
        """Test pending rows are analyzed and stored with the model name."""
        store = Mock(spec=FeedbackStore)
        store.get_pending_feedback.return_value = pending_rows
        agent = Mock(spec=FeedbackAnalysisAgent)
        agent.batch_analyze.return_value = analyses

        stats = EnrichmentPipeline(mock_config, store=store, analysis_agent=agent).run(limit=10, chunk_size=3)

        assert stats == {"total_records": 2, "analyzed": 2, "fallbacks": 1, "errors": 0}
        store.get_pending_feedback.assert_called_once_with(limit=10)
        agent.batch_analyze.assert_called_once_with(pending_rows, chunk_size=3)
        store.insert_analysis.assert_any_call(1, analyses[0], model_used="gpt-4o-mini")
        store.insert_analysis.assert_any_call(2, analyses[1], model_used="gpt-4o-mini")
        store.close.assert_called_once()

    def test_run_nothing_pending(self, mock_config):
        """Test an empty backlog skips analysis."""
        store = Mock(spec=FeedbackStore)
        store.get_pending_feedback.return_value = []
        agent = Mock(spec=FeedbackAnalysisAgent)

        stats = EnrichmentPipeline(mock_config, store=store, analysis_agent=agent).run()

        assert stats["total_records"] == 0
        agent.batch_analyze.assert_not_called()
        store.close.assert_called_once()

    def test_run_counts_store_errors(self, mock_config, pending_rows, analyses):
        """Test a failed insert is counted and the rest are stored."""
        store = Mock(spec=FeedbackStore)
        store.get_pending_feedback.return_value = pending_rows
        store.insert_analysis.side_effect = [QueryExecutionError(), None]
        agent = Mock(spec=FeedbackAnalysisAgent)
        agent.batch_analyze.return_value = analyses

        stats = EnrichmentPipeline(mock_config, store=store, analysis_agent=agent).run()

        assert stats["analyzed"] == 1
        assert stats["errors"] == 1


class TestPositiveInt:
    """Test the positive_int CLI argument type."""

    def test_accepts_positive(self):
        assert positive_int("3") == 3

    @pytest.mark.parametrize("value", ["0", "-2"])
    def test_rejects_below_one(self, value):
        with pytest.raises(argparse.ArgumentTypeError):
            positive_int(value)
