"""
Natural-language search over stored feedback.

A query flows through intent parsing, SQL generation, execution against the
feedback store and summarization of the rows into a short answer.
"""

from typing import Any, Callable, Dict, Optional, Union
import argparse
import logging

from src.agents.llm_agent import ChatAgent
from src.config.settings import Settings
from src.data_access.sql_client import FeedbackStore
from src.models.errors import InvalidInputError, QueryExecutionError
from src.models.schemas import QueryIntent, SearchResponse
from src.search.intent_parser import IntentParser
from src.search.sql_builder import build_search_query
from src.search.summarizer import ResultSummarizer


logger = logging.getLogger(__name__)

ERROR_RESPONSE = "I encountered an error processing your query. Please try rephrasing."


def _by_product(product_name: str) -> Dict[str, Any]:
    return {
        "name": f"{product_name} Feedback",
        "intent": QueryIntent(product=product_name, sort_by="urgency_score", limit=20),
    }


QUERY_TEMPLATES: Dict[str, Union[Dict[str, Any], Callable[[str], Dict[str, Any]]]] = {
    "high_priority": {
        "name": "High Priority Issues",
        "intent": QueryIntent(urgency=["Critical", "High"], sort_by="urgency_score", limit=20),
    },
    "enterprise_feedback": {
        "name": "Enterprise Customer Feedback",
        "intent": QueryIntent(customer_tier="Enterprise", sort_by="created_date", limit=20),
    },
    "negative_sentiment": {
        "name": "Negative Feedback",
        "intent": QueryIntent(sentiment=["Negative", "Frustrated"], sort_by="urgency_score", limit=20),
    },
    "recent": {
        "name": "Recent Feedback",
        "intent": QueryIntent(sort_by="created_date", limit=20),
    },
    "by_product": _by_product,
}


class SearchAgent:
    """Answers free-text questions about customer feedback."""

    def __init__(self, config: Settings, store: Optional[FeedbackStore] = None,
                 chat_agent: Optional[ChatAgent] = None):
        self.config = config
        self.store = store or FeedbackStore(config)
        self.agent = chat_agent or ChatAgent(config)
        self.intent_parser = IntentParser(
            strategy=getattr(config, "intent_strategy", "keyword"),
            chat_agent=self.agent,
        )
        self.summarizer = ResultSummarizer(self.agent)

    def process_query(self, user_query: str) -> SearchResponse:
        """
        Answer a natural-language question.

        Args:
            user_query: Free-text question, e.g. "critical issues from enterprise customers"

        Returns:
            SearchResponse; store failures yield success=False with a generic message

        Raises:
            InvalidInputError: If the query is empty
        """
        if not user_query or not user_query.strip():
            raise InvalidInputError("query is required")

        logger.info(f"Processing query: {user_query}")
        intent = self.intent_parser.parse(user_query)
        logger.info(f"Parsed intent: {intent.model_dump(exclude_none=True)}")

        return self._search(user_query, intent)

    def run_template(self, name: str, product: Optional[str] = None) -> SearchResponse:
        """
        Run one of the predefined QUERY_TEMPLATES.

        Raises:
            InvalidInputError: On an unknown template, or by_product without a product
        """
        template = QUERY_TEMPLATES.get(name)
        if template is None:
            raise InvalidInputError(f"Unknown query template: {name}")

        if callable(template):
            if not product:
                raise InvalidInputError(f"Template '{name}' requires a product")
            template = template(product)

        return self._search(template["name"], template["intent"])

    def _search(self, query: str, intent: QueryIntent) -> SearchResponse:
        sql, params = build_search_query(intent)
        logger.debug(f"Generated SQL: {sql} with params: {params}")

        try:
            results = self.store.execute_query(sql, params)
        except QueryExecutionError as e:
            logger.error(f"Query processing error: {e}")
            return SearchResponse(
                success=False,
                query=query,
                intent=intent,
                response=ERROR_RESPONSE,
                error=str(e),
            )

        logger.info(f"Query returned {len(results)} results")
        response = self.summarizer.summarize(query, results, intent)

        return SearchResponse(
            success=True,
            query=query,
            intent=intent,
            results=results,
            response=response,
            count=len(results),
        )


def main():
    """Main entry point for querying feedback from the command line."""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    parser = argparse.ArgumentParser(
        description='Ask a natural-language question about customer feedback.'
    )
    parser.add_argument(
        'query',
        nargs='?',
        help='Question to answer, e.g. "critical issues from enterprise customers"'
    )
    parser.add_argument(
        '--template',
        choices=sorted(QUERY_TEMPLATES),
        help='Run a predefined query instead of a free-text question'
    )
    parser.add_argument(
        '--product',
        type=str,
        help='Product name for the by_product template'
    )

    args = parser.parse_args()

    if not args.query and not args.template:
        parser.error("Provide a query or --template")
    if args.template == 'by_product' and not args.product:
        parser.error("--template by_product requires --product")

    config = Settings()
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    store = FeedbackStore(config)
    agent = SearchAgent(config, store=store)
    try:
        if args.template:
            result = agent.run_template(args.template, product=args.product)
        else:
            result = agent.process_query(args.query)
    finally:
        store.close()

    print("\n" + "="*60)
    print(f"QUERY: {result.query}")
    print("="*60)
    print(result.response)
    print("-"*60)
    for row in result.results:
        print(f"[{row.get('urgency')}] {row.get('product_name')} ({row.get('customer_tier')}): "
              f"{(row.get('ai_summary') or row.get('feedback_text') or '')[:100]}")
    print(f"\nResults: {result.count}")
    print("="*60)


if __name__ == "__main__":
    main()
