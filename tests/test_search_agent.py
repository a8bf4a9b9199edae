"""Unit tests for the SearchAgent class."""
import pytest
import psycopg2
from unittest.mock import Mock, patch
from src.agents.llm_agent import ChatAgent, CompletionResult
from src.config.settings import Settings
from src.data_access.sql_client import FeedbackStore
from src.models.errors import InvalidInputError, QueryExecutionError
from src.search.search_agent import SearchAgent, QUERY_TEMPLATES, ERROR_RESPONSE
from src.search.summarizer import NO_RESULTS_MESSAGE


@pytest.fixture
def mock_config():
    """Create a mock configuration."""
    config = Mock(spec=Settings)
    config.openai_api_key = "test-api-key"
    config.openai_llm_model = "gpt-4o-mini"
    config.intent_strategy = "keyword"
    config.postgres_host = "localhost"
    config.postgres_port = 5432
    config.postgres_database = "feedback"
    config.postgres_username = "user"
    config.postgres_password = "secret"
    config.postgres_sslmode = "disable"
    return config


@pytest.fixture
def mock_store():
    """Create a mock FeedbackStore."""
    return Mock(spec=FeedbackStore)


@pytest.fixture
def mock_chat_agent():
    """Create a mock ChatAgent that always answers."""
    agent = Mock(spec=ChatAgent)
    agent.complete.return_value = CompletionResult(text="One critical Workers issue.")
    return agent


@pytest.fixture
def sample_rows():
    return [{"feedback_id": 1, "urgency": "Critical", "product_name": "Workers",
             "customer_tier": "Enterprise", "ai_summary": "Outage", "themes": "Performance Issues"}]


class TestSearchAgent:
    """Test SearchAgent class."""

    @patch('src.search.search_agent.ChatAgent')
    @patch('src.search.search_agent.FeedbackStore')
    def test_initialization(self, mock_store_cls, mock_chat_cls, mock_config):
        """Test collaborators are built from the config when not given."""
        agent = SearchAgent(mock_config)

        mock_store_cls.assert_called_once_with(mock_config)
        mock_chat_cls.assert_called_once_with(mock_config)
        assert agent.intent_parser.strategy == "keyword"

    def test_process_query(self, mock_config, mock_store, mock_chat_agent, sample_rows):
        """Test the full query flow."""
        mock_store.execute_query.return_value = sample_rows
        agent = SearchAgent(mock_config, store=mock_store, chat_agent=mock_chat_agent)

        result = agent.process_query("critical issues from enterprise customers")

        assert result.success
        assert result.count == 1
        assert result.results == sample_rows
        assert result.response == "One critical Workers issue."
        assert result.intent.urgency == ["Critical"]
        assert result.intent.customer_tier == "Enterprise"

        sql, params = mock_store.execute_query.call_args.args
        assert params == ["Critical", "Enterprise"]
        assert "LIMIT 20" in sql

    def test_process_query_no_results(self, mock_config, mock_store, mock_chat_agent):
        """Test zero rows yield the no-results message."""
        mock_store.execute_query.return_value = []
        agent = SearchAgent(mock_config, store=mock_store, chat_agent=mock_chat_agent)

        result = agent.process_query("list feedback")

        assert result.success
        assert result.count == 0
        assert result.response == NO_RESULTS_MESSAGE

    def test_process_query_store_failure(self, mock_config, mock_store, mock_chat_agent):
        """Test store faults return a generic failure response."""
        mock_store.execute_query.side_effect = QueryExecutionError()
        agent = SearchAgent(mock_config, store=mock_store, chat_agent=mock_chat_agent)

        result = agent.process_query("critical issues")

        assert not result.success
        assert result.error == "Database query failed"
        assert result.response == ERROR_RESPONSE
        assert result.results == []
        mock_chat_agent.complete.assert_not_called()

    @patch('src.data_access.sql_client.psycopg2.connect')
    def test_process_query_store_unreachable(self, mock_connect, mock_config, mock_chat_agent):
        """Test an unreachable database gives a generic failure, not the driver error."""
        mock_connect.side_effect = psycopg2.OperationalError('could not connect to server "db" password=secret-pw')
        agent = SearchAgent(mock_config, store=FeedbackStore(mock_config), chat_agent=mock_chat_agent)

        result = agent.process_query("critical issues")

        assert not result.success
        assert result.error == "Database query failed"
        assert "secret-pw" not in result.response
        mock_chat_agent.complete.assert_not_called()

    @pytest.mark.parametrize("query", ["", "   ", None])
    def test_process_query_rejects_empty(self, query, mock_config, mock_store, mock_chat_agent):
        """Test empty queries raise."""
        agent = SearchAgent(mock_config, store=mock_store, chat_agent=mock_chat_agent)
        with pytest.raises(InvalidInputError):
            agent.process_query(query)
        mock_store.execute_query.assert_not_called()

    def test_run_template(self, mock_config, mock_store, mock_chat_agent, sample_rows):
        """Test a predefined template runs its intent."""
        mock_store.execute_query.return_value = sample_rows
        agent = SearchAgent(mock_config, store=mock_store, chat_agent=mock_chat_agent)

        result = agent.run_template("enterprise_feedback")

        assert result.query == "Enterprise Customer Feedback"
        assert result.intent.sort_by == "created_date"
        sql, params = mock_store.execute_query.call_args.args
        assert params == ["Enterprise"]
        assert "ORDER BY fm.created_date DESC" in sql

    def test_run_template_by_product(self, mock_config, mock_store, mock_chat_agent):
        """Test the product template needs and uses a product name."""
        mock_store.execute_query.return_value = []
        agent = SearchAgent(mock_config, store=mock_store, chat_agent=mock_chat_agent)

        result = agent.run_template("by_product", product="R2 Storage")

        assert result.query == "R2 Storage Feedback"
        assert mock_store.execute_query.call_args.args[1] == ["R2 Storage"]

        with pytest.raises(InvalidInputError):
            agent.run_template("by_product")

    def test_run_template_unknown(self, mock_config, mock_store, mock_chat_agent):
        """Test unknown templates are rejected."""
        agent = SearchAgent(mock_config, store=mock_store, chat_agent=mock_chat_agent)
        with pytest.raises(InvalidInputError):
            agent.run_template("nope")

    def test_templates(self):
        """Test the template catalog."""
        assert set(QUERY_TEMPLATES) == {
            "high_priority", "enterprise_feedback", "negative_sentiment", "recent", "by_product"
        }
        assert QUERY_TEMPLATES["high_priority"]["intent"].urgency == ["Critical", "High"]
        assert QUERY_TEMPLATES["negative_sentiment"]["intent"].sentiment == ["Negative", "Frustrated"]
