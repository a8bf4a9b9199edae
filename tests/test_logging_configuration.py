"""
Tests for logging configuration to ensure httpx/httpcore verbosity is properly suppressed.
"""
import logging
import io
from unittest.mock import Mock
from src.config.settings import Settings
from src.data_access.sql_client import FeedbackStore
from src.agents.analysis_agent import FeedbackAnalysisAgent
from src.pipelines.ingest import IngestionPipeline
from src.pipelines.enrich import EnrichmentPipeline


def _reset_http_loggers():
    logging.getLogger("httpx").setLevel(logging.NOTSET)
    logging.getLogger("httpcore").setLevel(logging.NOTSET)


class TestLoggingConfiguration:
    """Test that pipelines suppress verbose HTTP logging."""

    def test_ingestion_pipeline_quiets_http_loggers(self):
        """Test running ingestion lowers httpx/httpcore to WARNING."""
        _reset_http_loggers()
        config = Mock(spec=Settings)
        config.batch_size = 100

        IngestionPipeline(config, store=Mock(spec=FeedbackStore)).run("Support", [])

        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("httpcore").level == logging.WARNING

    def test_enrichment_pipeline_quiets_http_loggers(self):
        """Test running enrichment lowers httpx/httpcore to WARNING."""
        _reset_http_loggers()
        store = Mock(spec=FeedbackStore)
        store.get_pending_feedback.return_value = []

        EnrichmentPipeline(Mock(spec=Settings), store=store,
                           analysis_agent=Mock(spec=FeedbackAnalysisAgent)).run()

        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("httpcore").level == logging.WARNING

    def test_pipeline_logging_configuration(self):
        """Test application logs pass while HTTP INFO logs are dropped."""
        log_capture = io.StringIO()
        handler = logging.StreamHandler(log_capture)
        handler.setLevel(logging.INFO)
        handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))

        app_logger = logging.getLogger("src.pipelines.ingest")
        app_logger.setLevel(logging.INFO)
        app_logger.addHandler(handler)

        httpx_logger = logging.getLogger("httpx")
        httpx_logger.addHandler(handler)

        try:
            config = Mock(spec=Settings)
            config.batch_size = 100
            IngestionPipeline(config, store=Mock(spec=FeedbackStore)).run("Support", [])

            httpx_logger.info("HTTP Request: POST https://api.openai.com/v1/chat/completions")
            httpx_logger.warning("HTTP Warning message")
        finally:
            app_logger.removeHandler(handler)
            httpx_logger.removeHandler(handler)

        output = log_capture.getvalue()
        assert "Starting ingestion of 0 Support rows" in output
        assert "src.pipelines.ingest - INFO" in output
        assert "HTTP Request" not in output
        assert "HTTP Warning message" in output
