"""
Keyword-based inference of theme, sentiment and urgency.

Used whenever an AI answer is missing, malformed or unavailable. Every function
is total and returns a documented default when no rule matches.
"""

from typing import Tuple

from src.models.reference import GENERAL_FEEDBACK
from src.models.schemas import AnalysisResult


# Ordered (keywords, theme) rules. First match wins, so specific rules
# (rate limits) come before generic ones (request/feature).
THEME_RULES: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("rate limit", "429"), "API Rate Limits"),
    (("documentation", "docs", "unclear"), "Documentation Quality"),
    (("slow", "latency", "performance"), "Performance Issues"),
    (("billing", "cost", "price"), "Billing Concerns"),
    (("websocket", "ws"), "WebSocket Support"),
    (("cold start",), "Cold Start Latency"),
    (("typescript", "types"), "TypeScript Support"),
    (("mobile", "ios", "android"), "Mobile SDK"),
    (("security", "compliance", "soc2"), "Security/Compliance"),
    (("love", "great", "amazing"), "Positive Feedback"),
    (("request", "feature", "please add"), "Feature Request"),
)

NEGATIVE_WORDS = ("hate", "terrible", "broken", "frustrated", "angry", "awful", "worst", "unacceptable")
POSITIVE_WORDS = ("love", "great", "amazing", "excellent", "fantastic", "perfect", "wonderful")
FRUSTRATED_WORDS = ("frustrated", "annoying", "confusing", "difficult", "struggling")

CRITICAL_WORDS = ("urgent", "critical", "production", "outage", "down", "broken", "data loss")
HIGH_WORDS = ("blocking", "cant", "failing", "error", "bug")
LOW_WORDS = ("nice to have", "suggestion", "would love", "future")

FALLBACK_CONFIDENCE = 0.5
FALLBACK_VALUE_SCORE = 5
SUMMARY_LENGTH = 150


def infer_theme(text: str) -> str:
    """Return the first theme whose keywords appear in the text."""
    lower_text = (text or "").lower()
    for keywords, theme in THEME_RULES:
        if any(keyword in lower_text for keyword in keywords):
            return theme
    return GENERAL_FEEDBACK


def infer_sentiment(text: str) -> str:
    """Infer sentiment from keyword counts."""
    lower_text = (text or "").lower()

    negative_count = sum(1 for word in NEGATIVE_WORDS if word in lower_text)
    positive_count = sum(1 for word in POSITIVE_WORDS if word in lower_text)
    frustrated_count = sum(1 for word in FRUSTRATED_WORDS if word in lower_text)

    if frustrated_count > 0 or (negative_count > 0 and "but" in lower_text):
        return "Frustrated"
    if negative_count > positive_count:
        return "Negative"
    if positive_count > negative_count:
        return "Positive"
    return "Neutral"


def infer_urgency(text: str) -> str:
    """Infer urgency; critical is checked before high, high before low."""
    lower_text = (text or "").lower()

    if any(word in lower_text for word in CRITICAL_WORDS) or "!!!" in lower_text:
        return "Critical"
    if any(word in lower_text for word in HIGH_WORDS):
        return "High"
    if any(word in lower_text for word in LOW_WORDS):
        return "Low"
    return "Medium"


def fallback_summary(text: str) -> str:
    return (text or "")[:SUMMARY_LENGTH] + "..."


def fallback_analysis(text: str) -> AnalysisResult:
    """Combined keyword analysis used when no AI answer is usable."""
    return AnalysisResult(
        themes=[infer_theme(text)],
        sentiment=infer_sentiment(text),
        urgency=infer_urgency(text),
        summary=fallback_summary(text),
        value_score=FALLBACK_VALUE_SCORE,
        confidence=FALLBACK_CONFIDENCE,
    )
