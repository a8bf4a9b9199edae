"""Compile a QueryIntent into a parameterized PostgreSQL query."""

from typing import Any, List, Tuple

from src.models.errors import InvalidInputError
from src.models.schemas import QueryIntent, MIN_LIMIT, MAX_LIMIT


# Closed set of sortable columns; nothing else is ever interpolated as ORDER BY.
SORT_COLUMNS = {
    "urgency_score": "fm.urgency_score",
    "value_score": "fm.value_score",
    "created_date": "fm.created_date",
    "engagement_score": "fm.engagement_score",
}

SEARCH_SELECT = """
    SELECT
        fm.feedback_id,
        fm.original_id,
        fm.feedback_text,
        fm.created_date,
        fm.urgency_score,
        fm.value_score,
        fm.engagement_score,
        u.email,
        u.username,
        u.customer_tier,
        pa.product_name,
        s.source_name,
        sa.sentiment,
        sa.urgency,
        sa.ai_summary,
        STRING_AGG(t.theme_name, ',' ORDER BY t.theme_name) AS themes
    FROM feedback_master fm
    LEFT JOIN users u ON fm.user_id = u.user_id
    LEFT JOIN product_areas pa ON fm.product_area_id = pa.product_area_id
    LEFT JOIN sources s ON fm.source_id = s.source_id
    LEFT JOIN LATERAL (
        SELECT latest.sentiment, latest.urgency, latest.ai_summary
        FROM sentiment_analysis latest
        WHERE latest.feedback_id = fm.feedback_id
        ORDER BY latest.analyzed_at DESC, latest.analysis_id DESC
        LIMIT 1
    ) sa ON TRUE
    LEFT JOIN feedback_themes ft ON fm.feedback_id = ft.feedback_id
    LEFT JOIN themes t ON ft.theme_id = t.theme_id
    WHERE 1=1
"""

# One output row per feedback item; the theme join fans out otherwise.
SEARCH_GROUP_BY = (
    " GROUP BY fm.feedback_id, u.user_id, pa.product_area_id, s.source_id,"
    " sa.sentiment, sa.urgency, sa.ai_summary"
)


def _in_clause(column: str, values: List[Any], params: List[Any]) -> str:
    placeholders = ", ".join(["%s"] * len(values))
    params.extend(values)
    return f"{column} IN ({placeholders})"


def build_search_query(intent: QueryIntent) -> Tuple[str, List[Any]]:
    """
    Build the search SQL for an intent.

    Filter values only ever travel as bound parameters. The sort column comes
    from SORT_COLUMNS and the limit is an integer re-clamped to [1, 100].

    Returns:
        (sql, params) ready for cursor.execute

    Raises:
        InvalidInputError: If the sort key is not one of SORT_COLUMNS
    """
    sort_column = SORT_COLUMNS.get(intent.sort_by)
    if sort_column is None:
        raise InvalidInputError(f"Unsupported sort key: {intent.sort_by}")

    conditions: List[str] = []
    params: List[Any] = []

    if intent.urgency:
        conditions.append(_in_clause("sa.urgency", list(intent.urgency), params))

    if intent.sentiment:
        conditions.append(_in_clause("sa.sentiment", list(intent.sentiment), params))

    if intent.product:
        conditions.append("pa.product_name = %s")
        params.append(intent.product)

    if intent.customer_tier:
        conditions.append("u.customer_tier = %s")
        params.append(intent.customer_tier)

    if intent.theme:
        # Any matching theme link selects the feedback item
        conditions.append(
            "EXISTS (SELECT 1 FROM feedback_themes ft2 JOIN themes t2 ON ft2.theme_id = t2.theme_id"
            " WHERE ft2.feedback_id = fm.feedback_id AND t2.theme_name ILIKE %s)"
        )
        params.append(f"%{intent.theme}%")

    sql = SEARCH_SELECT
    if conditions:
        sql += " AND " + " AND ".join(conditions)

    sql += SEARCH_GROUP_BY

    sql += f" ORDER BY {sort_column} DESC NULLS LAST, fm.created_date DESC"

    limit = max(MIN_LIMIT, min(MAX_LIMIT, int(intent.limit)))
    sql += f" LIMIT {limit}"

    return sql, params
