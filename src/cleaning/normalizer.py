"""
Field normalization for raw feedback rows.

Each source export (support desk, Discord, GitHub, email, Twitter, forum) has
its own column names and data quality quirks. The processors here map one raw
row onto the canonical FeedbackRecord fields; `normalize_feedback` dispatches on
the source tag and attaches heuristic scores.
"""

from typing import Any, Callable, Dict, List, Optional, Tuple
from datetime import datetime, timedelta, timezone
import logging
import re

import pandas as pd

from src.cleaning.scoring import (
    calculate_urgency_score,
    calculate_value_score,
    calculate_engagement_score,
)
from src.models.errors import InvalidInputError
from src.models.reference import PRODUCT_SYNONYMS
from src.models.schemas import FeedbackRecord, Source, MAX_TEXT_LENGTH


logger = logging.getLogger(__name__)


ISO_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}")
SLASH_DATE_PATTERN = re.compile(r"^\d{1,2}/\d{1,2}/\d{4}")
TEXTUAL_DATE_PATTERN = re.compile(r"\d{1,2}-[A-Za-z]{3}-\d{4}")
NUMERIC_PATTERN = re.compile(r"^\d+(\.\d+)?$")
EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
LEADING_INT_PATTERN = re.compile(r"^\s*(-?\d+)")
REACTION_COUNT_PATTERN = re.compile(r":(\d+)")

# Spreadsheet serial dates count days from 1899-12-30.
SPREADSHEET_EPOCH = datetime(1899, 12, 30, tzinfo=timezone.utc)
NULL_DATE_STRINGS = {"null", "undefined", "none", "nan", "nat"}

# Single-keyword product rules checked after the compound "worker" + "ai" rule.
PRODUCT_KEYWORD_RULES: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("worker",), "Workers"),
    (("d1",), "D1 Database"),
    (("workflow",), "Workflows"),
    (("r2",), "R2 Storage"),
    (("kv",), "KV Storage"),
    (("pages",), "Pages"),
    (("billing", "cost"), "Billing"),
    (("document", "docs"), "Documentation"),
    (("api",), "API"),
)

ENTERPRISE_DOMAIN_HINTS = ("enterprise", "bigco", "corp", "finance", "techcorp")
PRO_DOMAIN_HINTS = ("startup", "io", "tech", "dev")

FORUM_CATEGORY_URGENCY = {
    "Bug Reports": "High",
    "Help & Support": "Medium",
    "Feature Requests": "Low",
}


# ---------------------------------------------------------------------------
# Generic field helpers
# ---------------------------------------------------------------------------

def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _parse_time(time_str: str, meridiem: Optional[str] = None) -> Tuple[int, int, int]:
    pieces = [int(piece) for piece in time_str.split(":")]
    pieces += [0] * (3 - len(pieces))
    hour, minute, second = pieces[:3]
    if meridiem == "PM" and hour < 12:
        hour += 12
    elif meridiem == "AM" and hour == 12:
        hour = 0
    return hour, minute, second


def _parse_slash_date(text: str) -> datetime:
    parts = re.split(r"[\s/]+", text)
    first, second, year = int(parts[0]), int(parts[1]), int(parts[2])
    time_part = parts[3] if len(parts) > 3 else "00:00:00"
    meridiem = parts[4].upper() if len(parts) > 4 else None

    if first > 12:
        day, month = first, second
    elif second > 12:
        month, day = first, second
    else:
        # Ambiguous: the exports are day-first
        day, month = first, second

    hour, minute, sec = _parse_time(time_part, meridiem)
    return datetime(year, month, day, hour, minute, sec, tzinfo=timezone.utc)


def _parse_with_pandas(text: str) -> Optional[datetime]:
    timestamp = pd.to_datetime(text, utc=True)
    if pd.isna(timestamp):
        return None
    return timestamp.to_pydatetime()


def _parse_iso(text: str) -> Optional[datetime]:
    try:
        return _as_utc(datetime.fromisoformat(text.replace("Z", "+00:00")))
    except ValueError:
        return _parse_with_pandas(text)


def standardize_date(date_value: Any) -> Optional[datetime]:
    """
    Parse a date from any of the export formats into a UTC datetime.

    Accepted, in priority order: ISO-8601, D/M/YYYY[ H:M:S] (day-first unless
    the numbers say otherwise), DD-Mon-YYYY, spreadsheet serial numbers shorter
    than 6 characters. Anything else goes through pandas' parser.

    Returns:
        A timezone-aware datetime, or None when the value is empty or unparseable.
    """
    if date_value is None:
        return None
    if isinstance(date_value, datetime):
        return _as_utc(date_value)

    text = str(date_value).strip()
    if not text or text.lower() in NULL_DATE_STRINGS:
        return None

    try:
        if ISO_DATE_PATTERN.match(text):
            return _parse_iso(text)

        if SLASH_DATE_PATTERN.match(text):
            return _parse_slash_date(text)

        match = TEXTUAL_DATE_PATTERN.search(text)
        if match:
            return datetime.strptime(match.group(0), "%d-%b-%Y").replace(tzinfo=timezone.utc)

        if NUMERIC_PATTERN.match(text):
            if len(text) < 6:
                return SPREADSHEET_EPOCH + timedelta(days=float(text))
            return None

        return _parse_with_pandas(text)
    except (ValueError, TypeError, OverflowError, IndexError) as e:
        logger.warning(f"Date parsing error for {date_value!r}: {e}")
        return None


def clean_text(text: Optional[str]) -> str:
    """Trim, collapse whitespace and cap the length of free text."""
    if not text:
        return ""

    cleaned = str(text).strip()
    cleaned = re.sub(r"\s+", " ", cleaned)
    cleaned = re.sub(r"\n{3,}", "\n\n", cleaned)
    return cleaned[:MAX_TEXT_LENGTH]


def _text_or_placeholder(text: Optional[str], placeholder: str) -> str:
    return clean_text(text) or placeholder


def lookup_product_name(product_str: Optional[str]) -> Optional[str]:
    """Return the canonical product name for a known synonym, else None."""
    if not product_str:
        return None
    return PRODUCT_SYNONYMS.get(str(product_str).lower().strip())


def standardize_product_name(product_str: Optional[str]) -> Optional[str]:
    """Map a product synonym to its canonical name; unknown names are kept trimmed."""
    if not product_str or not str(product_str).strip():
        return None
    return lookup_product_name(product_str) or str(product_str).strip()


def standardize_urgency(urgency_str: Optional[str]) -> str:
    if not urgency_str:
        return "Medium"

    normalized = str(urgency_str).lower().strip()

    if "critical" in normalized or "urgent" in normalized:
        return "Critical"
    if normalized == "high" or "blocking" in normalized:
        return "High"
    if normalized == "low":
        return "Low"
    return "Medium"


def standardize_tier(tier_str: Optional[str]) -> str:
    if not tier_str:
        return "Free"

    normalized = str(tier_str).lower().strip()
    if normalized == "enterprise":
        return "Enterprise"
    if normalized == "pro":
        return "Pro"
    return "Free"


def extract_email(text: Optional[str]) -> Optional[str]:
    """Return the first email address found in text."""
    match = EMAIL_PATTERN.search(text or "")
    return match.group(0) if match else None


def parse_delimited_string(value: Optional[str], delimiter: str = ",") -> List[str]:
    if not value:
        return []
    return [part.strip() for part in str(value).split(delimiter) if part.strip()]


def _to_int(value: Any) -> int:
    if value is None:
        return 0
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return 0 if pd.isna(value) else int(value)
    match = LEADING_INT_PATTERN.match(str(value))
    return int(match.group(1)) if match else 0


def _is_true(value: Any) -> bool:
    return str(value).strip().upper() == "TRUE"


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


# ---------------------------------------------------------------------------
# Inference helpers
# ---------------------------------------------------------------------------

def infer_product_from_text(text: Optional[str]) -> Optional[str]:
    """First matching product keyword wins; compound terms are checked first."""
    lower_text = (text or "").lower()

    if "worker" in lower_text and "ai" in lower_text:
        return "Workers AI"
    for keywords, product in PRODUCT_KEYWORD_RULES:
        if any(keyword in lower_text for keyword in keywords):
            return product
    return None


def infer_product_from_labels(labels: List[str]) -> Optional[str]:
    for label in labels:
        product = lookup_product_name(label)
        if product:
            return product
    return None


def infer_urgency_from_text(text: Optional[str]) -> str:
    lower_text = (text or "").lower()

    if ("urgent" in lower_text or "critical" in lower_text or "!!!" in lower_text
            or "outage" in lower_text or "production down" in lower_text):
        return "Critical"
    if ("blocking" in lower_text or "can't" in lower_text
            or "broken" in lower_text or "failing" in lower_text):
        return "High"
    if "nice to have" in lower_text or "suggestion" in lower_text:
        return "Low"
    return "Medium"


def infer_urgency_from_labels(labels: List[str]) -> str:
    lower_labels = {label.lower() for label in labels}

    if lower_labels & {"critical", "urgent"}:
        return "Critical"
    if lower_labels & {"high", "bug"}:
        return "High"
    if lower_labels & {"enhancement", "feature-request"}:
        return "Low"
    return "Medium"


def infer_urgency_from_category(category: Optional[str]) -> str:
    return FORUM_CATEGORY_URGENCY.get(_optional_str(category), "Medium")


def infer_tier_from_email(email: Optional[str]) -> str:
    if not email or "@" not in email:
        return "Free"

    domain = email.split("@", 1)[1].lower()
    if any(hint in domain for hint in ENTERPRISE_DOMAIN_HINTS):
        return "Enterprise"
    if any(hint in domain for hint in PRO_DOMAIN_HINTS):
        return "Pro"
    return "Free"


def infer_tier_from_author(author: Optional[str]) -> str:
    if not author:
        return "Free"

    lower_author = author.lower()
    if "enterprise" in lower_author or "corp" in lower_author:
        return "Enterprise"
    if "pro" in lower_author or "team" in lower_author:
        return "Pro"
    return "Free"


def count_reactions(reactions: Optional[str]) -> int:
    """Sum reaction counts from strings like '👍:3;😢:1'."""
    total = 0
    for reaction in (reactions or "").split(";"):
        match = REACTION_COUNT_PATTERN.search(reaction)
        if match:
            total += int(match.group(1))
    return total


# ---------------------------------------------------------------------------
# Per-source processors
# ---------------------------------------------------------------------------

def process_support_ticket(row: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "original_id": _optional_str(row.get("Ticket ID")),
        "feedback_text": _text_or_placeholder(row.get("Issue Description"), "No description"),
        "email": _optional_str(row.get("Customer Email")),
        "username": _optional_str(row.get("customer_name")),
        "product_area": standardize_product_name(row.get("Product Area")),
        "source": "Support",
        "created_date": standardize_date(row.get("Created Date")),
        "resolved_date": standardize_date(row.get("resolved_date")),
        "customer_tier": standardize_tier(row.get("Customer Tier")),
        "urgency": standardize_urgency(row.get("Priority")),
        "metadata": {
            "agent_name": _optional_str(row.get("Agent Name")),
            "status": _optional_str(row.get("Status")),
            "rating": _optional_str(row.get("rating")),
        },
    }


def process_discord_message(row: Dict[str, Any]) -> Dict[str, Any]:
    content = row.get("message_content") or ""
    return {
        "original_id": _optional_str(row.get("message_id")),
        "feedback_text": _text_or_placeholder(content, "No content"),
        "email": None,
        "username": _optional_str(row.get("username")) or _optional_str(row.get("user_id")) or "anonymous",
        "product_area": infer_product_from_text(content),
        "source": "Discord",
        "created_date": standardize_date(row.get("timestamp")),
        # Discord users are assumed to be on the free tier
        "customer_tier": "Free",
        "urgency": infer_urgency_from_text(content),
        "metadata": {
            "channel": _optional_str(row.get("channel_name")),
            "reactions": count_reactions(row.get("reactions")),
            "thread_id": _optional_str(row.get("thread_id")),
            "edited": _is_true(row.get("edited")),
        },
    }


def process_github_issue(row: Dict[str, Any]) -> Dict[str, Any]:
    issue_number = (_optional_str(row.get("Issue Number")) or "").replace("#", "")
    labels = parse_delimited_string(row.get("Labels"))
    title = row.get("Title") or ""
    state = _optional_str(row.get("State"))
    return {
        "original_id": f"#{issue_number}" if issue_number else None,
        "feedback_text": _text_or_placeholder(
            (title or "No title") + "\n\n" + (row.get("Description") or "No description"),
            "No description",
        ),
        "email": None,
        "username": _optional_str(row.get("Author")) or "anonymous",
        "product_area": infer_product_from_labels(labels) or infer_product_from_text(title),
        "source": "GitHub",
        "created_date": standardize_date(row.get("Created")),
        "resolved_date": standardize_date(row.get("Closed")),
        "customer_tier": infer_tier_from_author(_optional_str(row.get("Author"))),
        "urgency": infer_urgency_from_labels(labels),
        "metadata": {
            "repository": _optional_str(row.get("Repository")),
            "state": state.lower() if state else None,
            "labels": labels,
            "comments": _to_int(row.get("Comments")),
            "assignee": _optional_str(row.get("Assignee")),
        },
    }


def process_email(row: Dict[str, Any]) -> Dict[str, Any]:
    subject = row.get("Subject") or ""
    body = row.get("Body") or ""
    sender = _optional_str(row.get("From"))
    category = _optional_str(row.get("Category"))
    return {
        "original_id": _optional_str(row.get("Email ID")),
        "feedback_text": _text_or_placeholder(
            (subject or "No subject") + "\n\n" + (body or "No body"), "No body"
        ),
        "email": sender,
        "username": None,
        "product_area": infer_product_from_text(f"{subject} {body}"),
        "source": "Email",
        "created_date": standardize_date(row.get("Date Received")),
        "customer_tier": infer_tier_from_email(sender),
        "urgency": standardize_urgency(category) if category else infer_urgency_from_text(subject),
        "metadata": {
            "subject": _optional_str(subject),
            "to": _optional_str(row.get("To")),
            "category": category,
            "has_attachment": bool(_optional_str(row.get("Attachments"))),
        },
    }


def process_tweet(row: Dict[str, Any]) -> Dict[str, Any]:
    content = row.get("Tweet Text") or ""
    engagement = {
        "likes": _to_int(row.get("Likes")),
        "retweets": _to_int(row.get("Retweets")),
        "replies": _to_int(row.get("Replies")),
    }
    verified = _is_true(row.get("Verified"))
    return {
        "original_id": _optional_str(row.get("Tweet ID")),
        "feedback_text": _text_or_placeholder(content, "No content"),
        "email": None,
        "username": _optional_str(row.get("Handle")) or _optional_str(row.get("Username")) or "anonymous",
        "product_area": infer_product_from_text(content),
        "source": "Twitter",
        "created_date": standardize_date(row.get("Timestamp")),
        "customer_tier": "Pro" if verified else "Free",
        "urgency": infer_urgency_from_text(content),
        "engagement_metrics": engagement,
        "metadata": {
            "verified": verified,
            "hashtags": parse_delimited_string(row.get("Hashtags"), " "),
            "mentions": _optional_str(row.get("Mentions")),
            "is_reply": bool(_optional_str(row.get("Is Reply To"))),
            **engagement,
        },
    }


def process_forum_post(row: Dict[str, Any]) -> Dict[str, Any]:
    engagement = {
        "views": _to_int(row.get("Views")),
        "upvotes": _to_int(row.get("Upvotes")),
        "replies": _to_int(row.get("Replies")),
    }
    tags = parse_delimited_string(row.get("Tags"), ";")
    category = _optional_str(row.get("Forum Category"))
    return {
        "original_id": _optional_str(row.get("Post ID")),
        "feedback_text": _text_or_placeholder(
            (row.get("Thread Title") or "No title") + "\n\n" + (row.get("Post Content") or "No content"),
            "No content",
        ),
        "email": None,
        "username": _optional_str(row.get("Author")) or "anonymous",
        "product_area": infer_product_from_labels(tags),
        "source": "Forum",
        "created_date": standardize_date(row.get("Posted Date")),
        "customer_tier": "Free",
        "urgency": infer_urgency_from_category(category),
        "engagement_metrics": engagement,
        "metadata": {
            "category": category,
            "tags": tags,
            "status": _optional_str(row.get("Status")),
            **engagement,
        },
    }


SOURCE_PROCESSORS: Dict[str, Callable[[Dict[str, Any]], Dict[str, Any]]] = {
    Source.SUPPORT.value: process_support_ticket,
    Source.DISCORD.value: process_discord_message,
    Source.GITHUB.value: process_github_issue,
    Source.EMAIL.value: process_email,
    Source.TWITTER.value: process_tweet,
    Source.FORUM.value: process_forum_post,
}


def normalize_feedback(source: str, row: Dict[str, Any]) -> FeedbackRecord:
    """
    Normalize one raw row from a source export and attach heuristic scores.

    Args:
        source: Source tag (Support, Discord, GitHub, Email, Twitter, Forum)
        row: Raw row keyed by the export's column names

    Returns:
        Fully populated FeedbackRecord

    Raises:
        InvalidInputError: If the source tag is unknown or the row is not a mapping
    """
    source_name = source.value if isinstance(source, Source) else source
    processor = SOURCE_PROCESSORS.get(source_name)
    if processor is None:
        raise InvalidInputError(f"Invalid source: {source}")
    if not isinstance(row, dict):
        raise InvalidInputError(f"Invalid {source_name} row: expected a mapping")

    fields = processor(row)
    engagement_metrics = fields.pop("engagement_metrics", None)

    if fields["created_date"] is None:
        logger.debug(f"Missing created date for {source_name} row {fields['original_id']}, using current time")
        fields["created_date"] = datetime.now(timezone.utc)

    fields["urgency_score"] = calculate_urgency_score(
        fields["urgency"], fields["feedback_text"], fields["customer_tier"]
    )
    fields["value_score"] = calculate_value_score(
        fields["customer_tier"], fields["feedback_text"], engagement_metrics
    )
    if engagement_metrics is not None:
        fields["engagement_score"] = calculate_engagement_score(engagement_metrics)

    return FeedbackRecord(**fields)
