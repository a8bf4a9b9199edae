"""
Heuristic scoring for feedback records.

All functions are pure and deterministic. Urgency and value scores are always
clamped to [1, 10]; engagement is an open-ended weighted sum.
"""

from typing import Dict, Optional, Tuple


URGENCY_BASE_SCORES = {
    "Critical": 10,
    "High": 8,
    "Medium": 5,
    "Low": 3,
}

TIER_BASE_SCORES = {
    "Enterprise": 9,
    "Pro": 7,
    "Free": 4,
}

DEFAULT_BASE_SCORE = 5

# (keywords, boost) pairs; each pair contributes at most once.
URGENCY_KEYWORD_BOOSTS: Tuple[Tuple[Tuple[str, ...], int], ...] = (
    (("urgent", "critical"), 2),
    (("blocking", "can't"), 1),
    (("production", "outage"), 2),
    (("data loss", "security"), 2),
)

VALUE_KEYWORD_BOOSTS: Tuple[Tuple[Tuple[str, ...], int], ...] = (
    (("revenue", "customer"), 1),
    (("compliance", "security"), 1),
)

ENGAGEMENT_WEIGHTS = {
    "likes": 1,
    "retweets": 2,
    "upvotes": 2,
    "comments": 3,
    "replies": 3,
    "views": 0.01,
}


def _clamp(score: int, low: int = 1, high: int = 10) -> int:
    return min(high, max(low, score))


def _keyword_boost(text: str, boosts) -> int:
    lower_text = (text or "").lower()
    return sum(
        boost for keywords, boost in boosts
        if any(keyword in lower_text for keyword in keywords)
    )


def _metric(metrics: Optional[Dict[str, float]], key: str) -> float:
    if not metrics:
        return 0
    value = metrics.get(key) or 0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0


def calculate_urgency_score(urgency: Optional[str], feedback_text: str, customer_tier: Optional[str]) -> int:
    """
    Calculate urgency score (1-10).

    Args:
        urgency: Urgency category (Critical/High/Medium/Low)
        feedback_text: Cleaned feedback text
        customer_tier: Customer tier (Enterprise/Pro/Free)

    Returns:
        Integer score clamped to [1, 10]
    """
    score = URGENCY_BASE_SCORES.get(urgency, DEFAULT_BASE_SCORE)
    score += _keyword_boost(feedback_text, URGENCY_KEYWORD_BOOSTS)

    if customer_tier == "Enterprise":
        score += 1

    return _clamp(score)


def weighted_engagement(metrics: Optional[Dict[str, float]]) -> float:
    """Engagement used by value scoring: likes + 2 * upvotes + comments."""
    return _metric(metrics, "likes") + _metric(metrics, "upvotes") * 2 + _metric(metrics, "comments")


def calculate_value_score(customer_tier: Optional[str], feedback_text: str,
                          engagement_metrics: Optional[Dict[str, float]] = None) -> int:
    """
    Calculate value score (1-10) based on business impact.

    Args:
        customer_tier: Customer tier (Enterprise/Pro/Free)
        feedback_text: Cleaned feedback text
        engagement_metrics: Optional source metrics (likes, upvotes, comments, ...)

    Returns:
        Integer score clamped to [1, 10]
    """
    score = TIER_BASE_SCORES.get(customer_tier, DEFAULT_BASE_SCORE)

    total_engagement = weighted_engagement(engagement_metrics)
    if total_engagement > 50:
        score += 2
    elif total_engagement > 20:
        score += 1

    score += _keyword_boost(feedback_text, VALUE_KEYWORD_BOOSTS)

    return _clamp(score)


def calculate_engagement_score(metrics: Optional[Dict[str, float]]) -> float:
    """Weighted engagement score rounded to 2 decimals. Not clamped."""
    score = sum(_metric(metrics, key) * weight for key, weight in ENGAGEMENT_WEIGHTS.items())
    return round(score, 2)
