"""Natural-language summaries of search results."""

from typing import Any, Dict, List, Optional
import logging

from src.agents.llm_agent import ChatAgent
from src.models.schemas import QueryIntent


logger = logging.getLogger(__name__)

NO_RESULTS_MESSAGE = "No feedback items match your query. Try broadening your search criteria."
DIGEST_SIZE = 10
TOP_THEME_COUNT = 3


def _split_themes(themes: Any) -> List[str]:
    if not themes:
        return []
    if isinstance(themes, str):
        themes = themes.split(",")
    return [theme.strip() for theme in themes if theme and theme.strip()]


def create_results_digest(results: List[Dict[str, Any]]) -> str:
    """One line per top-10 result, used as LLM context."""
    lines = []
    for i, row in enumerate(results[:DIGEST_SIZE]):
        text = row.get("ai_summary") or (row.get("feedback_text") or "")[:80]
        lines.append(
            f"{i + 1}. [{row.get('urgency')}] {row.get('product_name')}: {text} ({row.get('customer_tier')})"
        )
    return "\n".join(lines)


def top_themes(results: List[Dict[str, Any]], count: int = TOP_THEME_COUNT) -> List[tuple]:
    """Most frequent themes; ties keep first-seen order."""
    theme_counts: Dict[str, int] = {}
    for row in results:
        for theme in _split_themes(row.get("themes")):
            theme_counts[theme] = theme_counts.get(theme, 0) + 1

    # sorted() is stable and dicts keep insertion order
    return sorted(theme_counts.items(), key=lambda item: item[1], reverse=True)[:count]


def create_fallback_response(results: List[Dict[str, Any]]) -> str:
    """Deterministic summary: counts, critical/high tallies and top themes."""
    critical_count = sum(1 for row in results if row.get("urgency") == "Critical")
    high_count = sum(1 for row in results if row.get("urgency") == "High")

    response = f"Found {len(results)} feedback items matching your query.\n\n"

    if critical_count > 0:
        response += f"⚠️ {critical_count} Critical issues require immediate attention.\n"
    if high_count > 0:
        response += f"{high_count} High priority items.\n"

    themes = ", ".join(f"{theme} ({theme_count})" for theme, theme_count in top_themes(results))
    if themes:
        response += f"\nTop themes: {themes}"

    return response


class ResultSummarizer:
    """Summarize a result set with the LLM, falling back to a template."""

    SYSTEM_PROMPT = "You are a helpful product management assistant."

    def __init__(self, chat_agent: Optional[ChatAgent] = None):
        self.agent = chat_agent

    def summarize(self, user_query: str, results: List[Dict[str, Any]],
                  intent: Optional[QueryIntent] = None) -> str:
        """
        Turn a result set into a short answer.

        Args:
            user_query: Original question
            results: Rows returned by the search query
            intent: Parsed intent (unused by the template, kept for context)

        Returns:
            A non-empty response string
        """
        if not results:
            return NO_RESULTS_MESSAGE

        if self.agent is None:
            return create_fallback_response(results)

        prompt = f"""The user asked: "{user_query}"

We found {len(results)} matching feedback items:

{create_results_digest(results)}

Create a concise, helpful response that:
1. Directly answers their question
2. Highlights key findings (top themes, urgency levels)
3. Mentions any critical issues
4. Suggests next actions if appropriate

Keep it under 150 words."""

        result = self.agent.complete(self.SYSTEM_PROMPT, prompt, temperature=0.5, max_tokens=300)
        if not result.ok:
            logger.warning(f"Response formatting failed, using template: {result.error}")
            return create_fallback_response(results)
        return result.text.strip()
