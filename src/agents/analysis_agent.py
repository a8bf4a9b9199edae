"""
AI enrichment of feedback: themes, sentiment, urgency, value and summary.

Every LLM call goes through ChatAgent.complete, which never raises. When a
call fails or its answer is unusable, the keyword inference engine fills in
the missing fields so analysis is always total.
"""

from typing import Any, Dict, List, Optional
from concurrent.futures import ThreadPoolExecutor
import logging
import time

from src.agents.keyword_inference import (
    infer_theme,
    infer_sentiment,
    infer_urgency,
    fallback_analysis,
    FALLBACK_CONFIDENCE,
    FALLBACK_VALUE_SCORE,
)
from src.agents.llm_agent import ChatAgent, parse_ai_response
from src.config.settings import Settings
from src.models.errors import InvalidInputError
from src.models.reference import THEME_NAMES, GENERAL_FEEDBACK
from src.models.schemas import AnalysisResult, Sentiment, Urgency


logger = logging.getLogger(__name__)

DEFAULT_AI_CONFIDENCE = 0.7
MAX_THEMES = 3
EXECUTIVE_SUMMARY_UNAVAILABLE = "Unable to generate summary at this time."

SENTIMENT_VALUES = {sentiment.value for sentiment in Sentiment}
URGENCY_VALUES = {urgency.value for urgency in Urgency}


def _coerce_confidence(value: Any, default: float) -> float:
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return default
    if confidence <= 0:
        return default
    return min(1.0, confidence)


def _coerce_value_score(value: Any) -> int:
    try:
        score = int(round(float(value)))
    except (TypeError, ValueError):
        return FALLBACK_VALUE_SCORE
    return min(10, max(1, score))


def _coerce_label(value: Any, allowed: set) -> Optional[str]:
    if not isinstance(value, str):
        return None
    for label in allowed:
        if label.lower() == value.strip().lower():
            return label
    return None


def _coerce_themes(value: Any) -> List[str]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return []

    themes = []
    for item in value:
        label = _coerce_label(item, set(THEME_NAMES))
        if label and label not in themes:
            themes.append(label)
    return themes[:MAX_THEMES]


class FeedbackAnalysisAgent:
    """Analyze customer feedback with the LLM, falling back to keyword rules."""

    THEME_SYSTEM_PROMPT = "You are a product feedback analysis expert. Always respond with valid JSON only."
    SENTIMENT_SYSTEM_PROMPT = "You are a product manager analyzing customer feedback. Always respond with valid JSON only."
    EXECUTIVE_SYSTEM_PROMPT = "You are a product manager creating executive briefings."

    def __init__(self, config: Settings, chat_agent: Optional[ChatAgent] = None):
        """
        Initialize the analysis agent.

        Args:
            config: Settings object with OpenAI configuration
            chat_agent: Optional pre-built ChatAgent (a new one is created if None)
        """
        self.config = config
        self.agent = chat_agent or ChatAgent(config)
        self.chunk_size = getattr(config, "enrichment_chunk_size", 5)
        self.chunk_delay = getattr(config, "enrichment_chunk_delay", 0.1)
        self.max_workers = getattr(config, "max_workers", 5)

    def analyze(self, feedback_text: str, metadata: Optional[Dict[str, Any]] = None) -> AnalysisResult:
        """
        Analyze one piece of feedback.

        Theme extraction and sentiment/urgency analysis run concurrently; each
        falls back independently. Confidence is the mean of the two.

        Args:
            feedback_text: Feedback text to analyze
            metadata: Optional dict with customerTier and source

        Returns:
            AnalysisResult (never None)

        Raises:
            InvalidInputError: If feedback_text is empty
        """
        if not feedback_text or not feedback_text.strip():
            raise InvalidInputError("feedback_text is required")
        metadata = metadata or {}

        with ThreadPoolExecutor(max_workers=2) as executor:
            themes_future = executor.submit(self.extract_themes, feedback_text)
            sentiment_future = executor.submit(self.analyze_sentiment_and_urgency, feedback_text, metadata)
            themes = themes_future.result()
            sentiment = sentiment_future.result()

        return AnalysisResult(
            themes=themes["themes"],
            sentiment=sentiment["sentiment"],
            urgency=sentiment["urgency"],
            summary=sentiment["summary"],
            value_score=sentiment["value_score"],
            confidence=(themes["confidence"] + sentiment["confidence"]) / 2,
        )

    def extract_themes(self, feedback_text: str) -> Dict[str, Any]:
        """Extract 1-3 themes from the controlled vocabulary."""
        theme_list = "\n".join(f"- {name}" for name in THEME_NAMES if name != GENERAL_FEEDBACK)
        prompt = f"""Analyze this customer feedback and extract the main themes/topics.

Feedback: "{feedback_text}"

Identify 1-3 primary themes from this list:
{theme_list}

Respond ONLY with a JSON object in this format:
{{
  "themes": ["Theme1", "Theme2"],
  "confidence": 0.85
}}"""

        result = self.agent.complete(self.THEME_SYSTEM_PROMPT, prompt, temperature=0.3, max_tokens=200)
        if not result.ok:
            logger.warning(f"Theme extraction failed, using keyword fallback: {result.error}")
            return {"themes": [infer_theme(feedback_text)], "confidence": FALLBACK_CONFIDENCE}

        parsed = parse_ai_response(result.text)
        themes = _coerce_themes(parsed.get("themes"))
        return {
            "themes": themes or [infer_theme(feedback_text)],
            "confidence": _coerce_confidence(parsed.get("confidence"), DEFAULT_AI_CONFIDENCE),
        }

    def analyze_sentiment_and_urgency(self, feedback_text: str,
                                      metadata: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Classify sentiment and urgency and score business value."""
        metadata = metadata or {}
        context_lines = []
        if metadata.get("customerTier"):
            context_lines.append(f"Customer Tier: {metadata['customerTier']}")
        if metadata.get("source"):
            context_lines.append(f"Source: {metadata['source']}")
        context = "\n".join(context_lines)

        prompt = f"""Analyze this customer feedback for sentiment and urgency.

Feedback: "{feedback_text}"
{context}

Provide analysis in JSON format:
{{
  "sentiment": "Positive|Neutral|Negative|Frustrated",
  "urgency": "Critical|High|Medium|Low",
  "summary": "Brief 1-sentence summary",
  "valueScore": 1-10,
  "confidence": 0.0-1.0
}}

Urgency guidelines:
- Critical: Production outage, data loss, security issue, blocking enterprise customer
- High: Bug affecting multiple users, blocking development, performance degradation
- Medium: Feature requests, minor bugs, documentation issues
- Low: Nice-to-have features, positive feedback, questions

Value score (1-10):
- Consider business impact, customer tier, number of affected users
- Enterprise issues: 8-10
- Pro tier issues: 6-8
- Community requests: 3-6"""

        result = self.agent.complete(self.SENTIMENT_SYSTEM_PROMPT, prompt, temperature=0.2, max_tokens=300)
        if not result.ok:
            logger.warning(f"Sentiment analysis failed, using keyword fallback: {result.error}")
            return self._fallback_sentiment_analysis(feedback_text)

        parsed = parse_ai_response(result.text)
        summary = parsed.get("summary")
        return {
            "sentiment": _coerce_label(parsed.get("sentiment"), SENTIMENT_VALUES) or infer_sentiment(feedback_text),
            "urgency": _coerce_label(parsed.get("urgency"), URGENCY_VALUES) or infer_urgency(feedback_text),
            "summary": summary.strip() if isinstance(summary, str) and summary.strip()
            else feedback_text[:100] + "...",
            "value_score": _coerce_value_score(parsed.get("valueScore", FALLBACK_VALUE_SCORE)),
            "confidence": _coerce_confidence(parsed.get("confidence"), DEFAULT_AI_CONFIDENCE),
        }

    def _fallback_sentiment_analysis(self, feedback_text: str) -> Dict[str, Any]:
        fallback = fallback_analysis(feedback_text)
        return {
            "sentiment": fallback.sentiment,
            "urgency": fallback.urgency,
            "summary": fallback.summary,
            "value_score": fallback.value_score,
            "confidence": fallback.confidence,
        }

    def batch_analyze(self, feedback_items: List[Dict[str, Any]],
                      chunk_size: Optional[int] = None) -> List[AnalysisResult]:
        """
        Analyze many feedback items while respecting the LLM rate limit.

        Items are split into fixed-size chunks processed one after another,
        with a short pause between chunks; items inside a chunk run concurrently.

        Args:
            feedback_items: Dicts with feedback_text and optional customer_tier/source
            chunk_size: Items per chunk (defaults to config.enrichment_chunk_size)

        Returns:
            AnalysisResults in input order

        Raises:
            InvalidInputError: If chunk_size is below 1
        """
        if chunk_size is None:
            chunk_size = self.chunk_size
        if chunk_size < 1:
            raise InvalidInputError(f"chunk_size must be at least 1, got {chunk_size}")
        results: List[AnalysisResult] = []

        for i in range(0, len(feedback_items), chunk_size):
            chunk = feedback_items[i:i + chunk_size]

            with ThreadPoolExecutor(max_workers=min(len(chunk), self.max_workers)) as executor:
                futures = [
                    executor.submit(
                        self.analyze,
                        item["feedback_text"],
                        {"customerTier": item.get("customer_tier"), "source": item.get("source")},
                    )
                    for item in chunk
                ]
                results.extend(future.result() for future in futures)

            if i + chunk_size < len(feedback_items):
                time.sleep(self.chunk_delay)

        return results

    def generate_executive_summary(self, feedback_items: List[Dict[str, Any]]) -> str:
        """Summarize top feedback rows for leadership."""
        summaries = "\n".join(
            f"- {item.get('product_name')}: {item.get('ai_summary')} "
            f"({item.get('urgency')}, {item.get('customer_tier')})"
            for item in feedback_items
        )
        prompt = f"""Summarize these top customer feedback items for executive leadership.

Feedback Items:
{summaries}

Provide:
1. Top 3 critical themes requiring immediate attention
2. Customer sentiment overview
3. Recommended actions

Keep it concise (3-4 sentences)."""

        result = self.agent.complete(self.EXECUTIVE_SYSTEM_PROMPT, prompt, temperature=0.4, max_tokens=400)
        if not result.ok:
            logger.warning(f"Executive summary failed: {result.error}")
            return EXECUTIVE_SUMMARY_UNAVAILABLE
        return result.text.strip()
