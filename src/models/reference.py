"""
Static reference data: sources, product areas and the theme vocabulary.

Loaded once at import time and never mutated. Ordering is significant wherever
the tuples are used as rule lists.
"""

from typing import Tuple, NamedTuple


class SourceInfo(NamedTuple):
    name: str
    source_type: str
    requires_response: bool


class ProductArea(NamedTuple):
    name: str
    category: str
    team_owner: str


class Theme(NamedTuple):
    name: str
    category: str
    keywords: Tuple[str, ...]


SOURCES: Tuple[SourceInfo, ...] = (
    SourceInfo("Support", "Internal", True),
    SourceInfo("Discord", "External", False),
    SourceInfo("GitHub", "External", True),
    SourceInfo("Email", "Internal", True),
    SourceInfo("Twitter", "External", False),
    SourceInfo("Forum", "External", False),
)

PRODUCT_AREAS: Tuple[ProductArea, ...] = (
    ProductArea("Workers", "Compute", "Platform Team"),
    ProductArea("Workers AI", "AI/ML", "AI Team"),
    ProductArea("D1 Database", "Database", "Storage Team"),
    ProductArea("Workflows", "Automation", "Platform Team"),
    ProductArea("R2 Storage", "Storage", "Storage Team"),
    ProductArea("KV Storage", "Storage", "Storage Team"),
    ProductArea("Pages", "Deployment", "Developer Experience"),
    ProductArea("Billing", "Business", "Finance"),
    ProductArea("Documentation", "DevRel", "Developer Experience"),
    ProductArea("API", "Platform", "Platform Team"),
)

# Synonym -> canonical product name. Keys are lower-case and trimmed.
PRODUCT_SYNONYMS = {
    "workers": "Workers",
    "workers ai": "Workers AI",
    "workers-ai": "Workers AI",
    "workersai": "Workers AI",
    "d1": "D1 Database",
    "d1 database": "D1 Database",
    "d1-database": "D1 Database",
    "workflows": "Workflows",
    "workflow": "Workflows",
    "r2": "R2 Storage",
    "r2 storage": "R2 Storage",
    "kv": "KV Storage",
    "kv storage": "KV Storage",
    "pages": "Pages",
    "cloudflare pages": "Pages",
    "billing": "Billing",
    "api": "API",
    "documentation": "Documentation",
    "docs": "Documentation",
}

GENERAL_FEEDBACK = "General Feedback"

THEME_VOCABULARY: Tuple[Theme, ...] = (
    Theme("API Rate Limits", "Technical", ("rate limit", "429", "too restrictive", "quota")),
    Theme("Documentation Quality", "Developer Experience",
          ("docs", "documentation", "unclear", "confusing", "tutorial")),
    Theme("Performance Issues", "Technical", ("slow", "latency", "performance", "degraded", "timeout")),
    Theme("Billing Concerns", "Business", ("billing", "cost", "pricing", "expensive", "surprise")),
    Theme("Feature Request", "Product", ("request", "need", "please add", "would love", "suggestion")),
    Theme("WebSocket Support", "Feature Request", ("websocket", "ws", "real-time", "socket")),
    Theme("Regional Issues", "Infrastructure", ("region", "apac", "eu", "latency", "geographic")),
    Theme("Cold Start Latency", "Performance", ("cold start", "initialization", "slow start")),
    Theme("TypeScript Support", "Developer Experience", ("typescript", "types", "type definitions")),
    Theme("Mobile SDK", "Developer Experience", ("mobile", "ios", "android", "sdk")),
    Theme("Security/Compliance", "Enterprise", ("soc2", "hipaa", "compliance", "security", "ip allowlist")),
    Theme("Data Loss", "Critical", ("data loss", "disappearing", "missing", "lost")),
    Theme("Build/Deploy Issues", "CI/CD", ("build", "deploy", "deployment", "stuck", "failed")),
    Theme("Positive Feedback", "Sentiment", ("love", "great", "amazing", "excellent", "thank you")),
    Theme(GENERAL_FEEDBACK, "General", ()),
)

THEME_NAMES: Tuple[str, ...] = tuple(theme.name for theme in THEME_VOCABULARY)
