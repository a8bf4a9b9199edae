from pydantic import BaseModel, Field, ConfigDict, field_validator
from datetime import datetime
from typing import Optional, List, Dict, Any, Literal
from enum import Enum

from src.models.reference import GENERAL_FEEDBACK


MAX_TEXT_LENGTH = 5000
MIN_LIMIT = 1
MAX_LIMIT = 100
DEFAULT_LIMIT = 20


class Source(str, Enum):
    SUPPORT = "Support"
    DISCORD = "Discord"
    GITHUB = "GitHub"
    EMAIL = "Email"
    TWITTER = "Twitter"
    FORUM = "Forum"


class CustomerTier(str, Enum):
    ENTERPRISE = "Enterprise"
    PRO = "Pro"
    FREE = "Free"


class Urgency(str, Enum):
    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class Sentiment(str, Enum):
    POSITIVE = "Positive"
    NEUTRAL = "Neutral"
    NEGATIVE = "Negative"
    FRUSTRATED = "Frustrated"


SortKey = Literal["urgency_score", "value_score", "created_date", "engagement_score"]


class FeedbackRecord(BaseModel):
    """Normalized, scored feedback record from any source."""
    model_config = ConfigDict(use_enum_values=True, frozen=True)

    original_id: Optional[str] = None
    source: Source
    email: Optional[str] = None
    username: Optional[str] = None
    feedback_text: str = Field(..., min_length=1, max_length=MAX_TEXT_LENGTH)
    product_area: Optional[str] = None
    created_date: datetime
    resolved_date: Optional[datetime] = None
    customer_tier: CustomerTier = CustomerTier.FREE
    urgency: Urgency = Urgency.MEDIUM
    urgency_score: int = Field(..., ge=1, le=10)
    value_score: int = Field(..., ge=1, le=10)
    engagement_score: Optional[float] = Field(default=None, ge=0.0)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class AnalysisResult(BaseModel):
    """Sentiment, urgency and theme labels attached to a feedback record."""
    model_config = ConfigDict(use_enum_values=True)

    themes: List[str] = Field(default_factory=lambda: [GENERAL_FEEDBACK], min_length=1, max_length=3)
    sentiment: Sentiment = Sentiment.NEUTRAL
    urgency: Urgency = Urgency.MEDIUM
    summary: str = ""
    value_score: int = Field(default=5, ge=1, le=10)
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)


class QueryIntent(BaseModel):
    """Structured filter/sort/limit form of a free-text query."""
    model_config = ConfigDict(use_enum_values=True)

    urgency: Optional[List[Urgency]] = None
    sentiment: Optional[List[Sentiment]] = None
    product: Optional[str] = None
    customer_tier: Optional[CustomerTier] = None
    theme: Optional[str] = None
    sort_by: SortKey = "urgency_score"
    limit: int = DEFAULT_LIMIT

    @field_validator("limit")
    @classmethod
    def clamp_limit(cls, value: int) -> int:
        return max(MIN_LIMIT, min(MAX_LIMIT, value))


class SearchResponse(BaseModel):
    """Result of a natural-language search."""
    success: bool
    query: str
    intent: Optional[QueryIntent] = None
    results: List[Dict[str, Any]] = Field(default_factory=list)
    response: str
    count: int = 0
    error: Optional[str] = None
