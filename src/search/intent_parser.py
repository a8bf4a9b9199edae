"""
Free-text query -> QueryIntent.

The keyword parser is the production path: deterministic and free of external
calls. An LLM-based strategy is available behind IntentParser(strategy="ai")
and falls back to the keyword parser whenever its answer is unusable.
"""

from typing import Any, Dict, Optional, Tuple
import logging
import re

from pydantic import ValidationError

from src.agents.llm_agent import ChatAgent, parse_ai_response
from src.models.reference import PRODUCT_SYNONYMS
from src.models.schemas import QueryIntent, MIN_LIMIT, MAX_LIMIT, DEFAULT_LIMIT


logger = logging.getLogger(__name__)

LISTING_KEYWORDS = ("review", "show me", "list")
LISTING_BLOCKERS = ("urgent", "critical", "negative", "positive")
LISTING_LIMIT = 50

# (regex, tier) checked in order
TIER_RULES: Tuple[Tuple[re.Pattern, str], ...] = (
    (re.compile(r"\benterprise"), "Enterprise"),
    (re.compile(r"\bpro\b"), "Pro"),
    (re.compile(r"\bfree\b"), "Free"),
)

# (substring, product) checked in order; "workers ai" must precede "workers"
PRODUCT_RULES: Tuple[Tuple[str, str], ...] = (
    ("workers ai", "Workers AI"),
    ("workers", "Workers"),
    ("d1", "D1 Database"),
    ("workflow", "Workflows"),
    ("r2", "R2 Storage"),
    ("kv", "KV Storage"),
)

NUMBER_PATTERN = re.compile(r"(\d+)")

# Pseudo-themes an LLM tends to echo back from analytical questions
ANALYTICAL_PHRASES = (
    "root cause", "root causes", "understand", "review", "analyze",
    "investigation", "analysis", "summary", "overview", "insights",
)


def is_simple_listing_query(lower_query: str) -> bool:
    """A browse request ("show me", "list", "review") without severity/sentiment words."""
    return (
        any(keyword in lower_query for keyword in LISTING_KEYWORDS)
        and not any(blocker in lower_query for blocker in LISTING_BLOCKERS)
    )


def resolve_limit(lower_query: str) -> int:
    """An explicit number in [1, 100] wins; listing queries widen to 50; else 20."""
    match = NUMBER_PATTERN.search(lower_query)
    if match:
        number = int(match.group(1))
        if MIN_LIMIT <= number <= MAX_LIMIT:
            return number

    if any(keyword in lower_query for keyword in LISTING_KEYWORDS):
        return LISTING_LIMIT
    return DEFAULT_LIMIT


def parse_intent_with_keywords(user_query: str) -> QueryIntent:
    """
    Parse a free-text query with keyword rules.

    Simple listing queries keep tier and product filters but drop urgency and
    sentiment filters so vague browse requests are not over-filtered.
    """
    lower_query = (user_query or "").lower()
    intent: Dict[str, Any] = {}

    if not is_simple_listing_query(lower_query):
        if "critical" in lower_query or "urgent" in lower_query:
            intent["urgency"] = ["Critical"]
        elif "high priority" in lower_query or "high" in lower_query or "important" in lower_query:
            intent["urgency"] = ["Critical", "High"]

        if "negative" in lower_query or "complaints" in lower_query or "complaining" in lower_query:
            intent["sentiment"] = ["Negative", "Frustrated"]
        elif "positive" in lower_query or "happy" in lower_query:
            intent["sentiment"] = ["Positive"]

    for pattern, tier in TIER_RULES:
        if pattern.search(lower_query):
            intent["customer_tier"] = tier
            break

    for keyword, product in PRODUCT_RULES:
        if keyword in lower_query:
            intent["product"] = product
            break

    intent["limit"] = resolve_limit(lower_query)
    return QueryIntent(**intent)


def is_analytical_theme(theme: Optional[str]) -> bool:
    if not theme:
        return False
    theme_lower = theme.lower()
    return any(phrase in theme_lower for phrase in ANALYTICAL_PHRASES)


class IntentParser:
    """Selects the intent parsing strategy."""

    SYSTEM_PROMPT = "You convert product feedback questions into search filters. Always respond with valid JSON only."

    def __init__(self, strategy: str = "keyword", chat_agent: Optional[ChatAgent] = None):
        if strategy not in ("keyword", "ai"):
            raise ValueError(f"Unsupported intent strategy '{strategy}'. Supported: ['keyword', 'ai']")
        if strategy == "ai" and chat_agent is None:
            raise ValueError("The 'ai' intent strategy needs a ChatAgent")
        self.strategy = strategy
        self.agent = chat_agent

    def parse(self, user_query: str) -> QueryIntent:
        if self.strategy == "ai":
            return self.parse_with_ai(user_query)
        logger.debug("Using keyword-based intent parsing")
        return parse_intent_with_keywords(user_query)

    def parse_with_ai(self, user_query: str) -> QueryIntent:
        """Ask the LLM for an intent; any unusable answer falls back to keywords."""
        prompt = f"""Convert this question about customer feedback into search filters.

Question: "{user_query}"

Respond ONLY with a JSON object in this format (use null for filters that do not apply):
{{
  "urgency": ["Critical", "High", "Medium", "Low"] or null,
  "sentiment": ["Positive", "Neutral", "Negative", "Frustrated"] or null,
  "product": one of {sorted(set(PRODUCT_SYNONYMS.values()))} or null,
  "customer_tier": "Enterprise" | "Pro" | "Free" | null,
  "theme": "short topic keyword" or null,
  "sort_by": "urgency_score" | "value_score" | "created_date" | "engagement_score",
  "limit": 1-100
}}"""

        result = self.agent.complete(self.SYSTEM_PROMPT, prompt, temperature=0.1, max_tokens=200)
        if not result.ok:
            logger.warning(f"AI intent parsing failed, using keywords: {result.error}")
            return parse_intent_with_keywords(user_query)

        parsed = parse_ai_response(result.text)
        if not parsed:
            return parse_intent_with_keywords(user_query)

        if is_analytical_theme(parsed.get("theme")):
            logger.info(f"Ignoring analytical theme: {parsed['theme']}")
            parsed["theme"] = None

        fields = {key: value for key, value in parsed.items()
                  if key in QueryIntent.model_fields and value is not None}
        try:
            return QueryIntent(**fields)
        except ValidationError as e:
            logger.warning(f"AI intent failed validation, using keywords: {e}")
            return parse_intent_with_keywords(user_query)
