# src/data_access/sql_client.py
"""
PostgreSQL client for feedback records, analyses and theme links.
"""

import psycopg2
from psycopg2.extras import RealDictCursor, execute_values, Json
from typing import Any, Dict, List, Optional
import logging

from src.config.settings import Settings
from src.models.errors import InvalidInputError, QueryExecutionError
from src.models.reference import SOURCES, PRODUCT_AREAS, THEME_VOCABULARY
from src.models.schemas import AnalysisResult, FeedbackRecord, MIN_LIMIT, MAX_LIMIT, DEFAULT_LIMIT


logger = logging.getLogger(__name__)

PENDING_MODEL = "pending"
PENDING_SUMMARY = "Bulk upload - AI analysis pending"


def pending_analysis(record: FeedbackRecord) -> AnalysisResult:
    """Placeholder analysis a record carries until enrichment replaces it."""
    return AnalysisResult(
        themes=["General Feedback"],
        sentiment="Neutral",
        urgency=record.urgency,
        summary=PENDING_SUMMARY,
        value_score=record.value_score,
        confidence=0.5,
    )

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS users (
    user_id SERIAL PRIMARY KEY,
    email TEXT UNIQUE,
    username TEXT,
    customer_tier TEXT CHECK (customer_tier IN ('Enterprise', 'Pro', 'Free')),
    is_verified BOOLEAN DEFAULT FALSE,
    first_seen_date TIMESTAMPTZ DEFAULT NOW(),
    created_at TIMESTAMPTZ DEFAULT NOW()
);
CREATE INDEX IF NOT EXISTS idx_users_tier ON users(customer_tier);

CREATE TABLE IF NOT EXISTS product_areas (
    product_area_id SERIAL PRIMARY KEY,
    product_name TEXT NOT NULL UNIQUE,
    category TEXT,
    team_owner TEXT,
    created_at TIMESTAMPTZ DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS sources (
    source_id SERIAL PRIMARY KEY,
    source_name TEXT NOT NULL UNIQUE
        CHECK (source_name IN ('Support', 'Discord', 'GitHub', 'Email', 'Twitter', 'Forum')),
    source_type TEXT CHECK (source_type IN ('Internal', 'External')),
    requires_response BOOLEAN DEFAULT TRUE,
    created_at TIMESTAMPTZ DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS themes (
    theme_id SERIAL PRIMARY KEY,
    theme_name TEXT NOT NULL UNIQUE,
    category TEXT,
    keywords TEXT,
    created_at TIMESTAMPTZ DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS feedback_master (
    feedback_id SERIAL PRIMARY KEY,
    user_id INTEGER REFERENCES users(user_id),
    product_area_id INTEGER REFERENCES product_areas(product_area_id),
    source_id INTEGER NOT NULL REFERENCES sources(source_id),
    feedback_text TEXT NOT NULL,
    original_id TEXT,
    created_date TIMESTAMPTZ NOT NULL,
    resolved_date TIMESTAMPTZ,
    urgency_score INTEGER CHECK (urgency_score BETWEEN 1 AND 10),
    value_score INTEGER CHECK (value_score BETWEEN 1 AND 10),
    engagement_score REAL DEFAULT 0,
    metadata JSONB,
    inserted_at TIMESTAMPTZ DEFAULT NOW(),
    updated_at TIMESTAMPTZ DEFAULT NOW()
);
CREATE INDEX IF NOT EXISTS idx_feedback_source ON feedback_master(source_id);
CREATE INDEX IF NOT EXISTS idx_feedback_product ON feedback_master(product_area_id);
CREATE INDEX IF NOT EXISTS idx_feedback_created ON feedback_master(created_date);
CREATE INDEX IF NOT EXISTS idx_feedback_urgency ON feedback_master(urgency_score);
CREATE INDEX IF NOT EXISTS idx_feedback_original_id ON feedback_master(original_id);

CREATE TABLE IF NOT EXISTS sentiment_analysis (
    analysis_id SERIAL PRIMARY KEY,
    feedback_id INTEGER NOT NULL REFERENCES feedback_master(feedback_id),
    sentiment TEXT CHECK (sentiment IN ('Positive', 'Neutral', 'Negative', 'Frustrated')),
    urgency TEXT CHECK (urgency IN ('Critical', 'High', 'Medium', 'Low')),
    value_score INTEGER CHECK (value_score BETWEEN 1 AND 10),
    ai_summary TEXT,
    extracted_themes JSONB,
    model_used TEXT,
    confidence_score REAL,
    analyzed_at TIMESTAMPTZ DEFAULT NOW()
);
CREATE INDEX IF NOT EXISTS idx_sentiment_feedback ON sentiment_analysis(feedback_id);
CREATE INDEX IF NOT EXISTS idx_sentiment_urgency ON sentiment_analysis(urgency);

CREATE TABLE IF NOT EXISTS feedback_themes (
    feedback_id INTEGER NOT NULL REFERENCES feedback_master(feedback_id),
    theme_id INTEGER NOT NULL REFERENCES themes(theme_id),
    confidence_score REAL CHECK (confidence_score BETWEEN 0 AND 1),
    extracted_at TIMESTAMPTZ DEFAULT NOW(),
    PRIMARY KEY (feedback_id, theme_id)
);
CREATE INDEX IF NOT EXISTS idx_ft_theme ON feedback_themes(theme_id);

CREATE OR REPLACE VIEW v_latest_analysis AS
SELECT DISTINCT ON (feedback_id) *
FROM sentiment_analysis
ORDER BY feedback_id, analyzed_at DESC, analysis_id DESC;

CREATE OR REPLACE VIEW v_feedback_full AS
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
    pa.category AS product_category,
    s.source_name,
    la.sentiment,
    la.urgency,
    la.ai_summary
FROM feedback_master fm
LEFT JOIN users u ON fm.user_id = u.user_id
LEFT JOIN product_areas pa ON fm.product_area_id = pa.product_area_id
LEFT JOIN sources s ON fm.source_id = s.source_id
LEFT JOIN v_latest_analysis la ON fm.feedback_id = la.feedback_id;

CREATE OR REPLACE VIEW v_theme_summary AS
SELECT
    t.theme_name,
    t.category,
    COUNT(DISTINCT ft.feedback_id) AS feedback_count,
    AVG(fm.urgency_score) AS avg_urgency,
    AVG(fm.value_score) AS avg_value,
    STRING_AGG(DISTINCT s.source_name, ',') AS sources
FROM themes t
LEFT JOIN feedback_themes ft ON t.theme_id = ft.theme_id
LEFT JOIN feedback_master fm ON ft.feedback_id = fm.feedback_id
LEFT JOIN sources s ON fm.source_id = s.source_id
GROUP BY t.theme_id, t.theme_name, t.category;

CREATE OR REPLACE VIEW v_kpi_dashboard AS
SELECT
    COUNT(DISTINCT fm.feedback_id) AS total_feedback,
    COUNT(DISTINCT CASE WHEN la.urgency = 'Critical' THEN fm.feedback_id END) AS critical_count,
    COUNT(DISTINCT CASE WHEN la.urgency = 'High' THEN fm.feedback_id END) AS high_count,
    COUNT(DISTINCT CASE WHEN la.sentiment = 'Negative' THEN fm.feedback_id END) AS negative_count,
    COUNT(DISTINCT CASE WHEN la.sentiment = 'Positive' THEN fm.feedback_id END) AS positive_count,
    COUNT(DISTINCT CASE WHEN u.customer_tier = 'Enterprise' THEN fm.feedback_id END) AS enterprise_feedback,
    COUNT(DISTINCT u.user_id) AS unique_users,
    AVG(fm.urgency_score) AS avg_urgency_score,
    AVG(fm.value_score) AS avg_value_score
FROM feedback_master fm
LEFT JOIN users u ON fm.user_id = u.user_id
LEFT JOIN v_latest_analysis la ON fm.feedback_id = la.feedback_id;
"""

LIST_FEEDBACK_FILTERS = {
    "source": "source_name",
    "urgency": "urgency",
    "sentiment": "sentiment",
    "product": "product_name",
    "tier": "customer_tier",
}


class FeedbackStore:
    """PostgreSQL store for normalized feedback and its analyses."""

    def __init__(self, config: Settings):
        self.config = config
        self.conn = None

    def connect(self) -> None:
        """
        Establish database connection.

        Raises:
            QueryExecutionError: If the server cannot be reached (message is generic)
        """
        try:
            self.conn = psycopg2.connect(
                host=self.config.postgres_host,
                port=self.config.postgres_port,
                database=self.config.postgres_database,
                user=self.config.postgres_username,
                password=self.config.postgres_password,
                sslmode=self.config.postgres_sslmode
            )
        except psycopg2.Error as e:
            raise self._fail("connecting to the database", e) from e

    def close(self) -> None:
        """Close database connection."""
        if self.conn:
            self.conn.close()
            self.conn = None

    def _fail(self, action: str, error: Exception) -> QueryExecutionError:
        logger.error(f"Error while {action}: {error}")
        if self.conn:
            self.conn.rollback()
        return QueryExecutionError()

    def initialize_schema(self) -> None:
        """Create tables, indexes and views, and seed the reference catalogs."""
        if not self.conn:
            self.connect()

        try:
            with self.conn.cursor() as cursor:
                cursor.execute(SCHEMA_SQL)
                execute_values(
                    cursor,
                    "INSERT INTO sources (source_name, source_type, requires_response) VALUES %s "
                    "ON CONFLICT (source_name) DO NOTHING",
                    [tuple(source) for source in SOURCES],
                )
                execute_values(
                    cursor,
                    "INSERT INTO product_areas (product_name, category, team_owner) VALUES %s "
                    "ON CONFLICT (product_name) DO NOTHING",
                    [tuple(product) for product in PRODUCT_AREAS],
                )
                execute_values(
                    cursor,
                    "INSERT INTO themes (theme_name, category, keywords) VALUES %s "
                    "ON CONFLICT (theme_name) DO NOTHING",
                    [(theme.name, theme.category, ",".join(theme.keywords)) for theme in THEME_VOCABULARY],
                )
            self.conn.commit()
        except psycopg2.Error as e:
            raise self._fail("initializing schema", e) from e

    def execute_query(self, sql: str, params: Optional[List[Any]] = None) -> List[Dict[str, Any]]:
        """
        Run a parameterized read query.

        Returns:
            Rows as dicts keyed by column name

        Raises:
            QueryExecutionError: On any database error (message is generic)
        """
        if not self.conn:
            self.connect()

        try:
            with self.conn.cursor(cursor_factory=RealDictCursor) as cursor:
                cursor.execute(sql, params or [])
                rows = cursor.fetchall()
            self.conn.commit()
        except psycopg2.Error as e:
            logger.debug(f"Failed SQL: {sql} with params: {params}")
            raise self._fail("executing query", e) from e

        return [dict(row) for row in rows]

    def insert_feedback(self, record: FeedbackRecord, pending: bool = True) -> int:
        """
        Insert a feedback record, upserting its author.

        With pending=True the placeholder analysis is written in the same
        transaction, so a stored row always has an analysis.

        Returns:
            Generated feedback_id

        Raises:
            InvalidInputError: If the record's source is not in the sources table
            QueryExecutionError: On database errors
        """
        if not self.conn:
            self.connect()

        try:
            with self.conn.cursor(cursor_factory=RealDictCursor) as cursor:
                user_id = None
                if record.email or record.username:
                    cursor.execute(
                        """
                        INSERT INTO users (email, username, customer_tier)
                        VALUES (%s, %s, %s)
                        ON CONFLICT (email) DO UPDATE SET customer_tier = EXCLUDED.customer_tier
                        RETURNING user_id
                        """,
                        (record.email, record.username, record.customer_tier)
                    )
                    user_id = cursor.fetchone()["user_id"]

                product_area_id = None
                if record.product_area:
                    cursor.execute(
                        "SELECT product_area_id FROM product_areas WHERE product_name = %s",
                        (record.product_area,)
                    )
                    row = cursor.fetchone()
                    product_area_id = row["product_area_id"] if row else None

                cursor.execute("SELECT source_id FROM sources WHERE source_name = %s", (record.source,))
                row = cursor.fetchone()
                if not row:
                    raise InvalidInputError(f"Invalid source: {record.source}")

                cursor.execute(
                    """
                    INSERT INTO feedback_master (
                        user_id, product_area_id, source_id, feedback_text, original_id,
                        created_date, resolved_date, urgency_score, value_score, engagement_score, metadata
                    ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                    RETURNING feedback_id
                    """,
                    (
                        user_id,
                        product_area_id,
                        row["source_id"],
                        record.feedback_text,
                        record.original_id,
                        record.created_date,
                        record.resolved_date,
                        record.urgency_score,
                        record.value_score,
                        record.engagement_score or 0,
                        Json(record.metadata),
                    )
                )
                feedback_id = cursor.fetchone()["feedback_id"]

                if pending:
                    self._write_analysis(cursor, feedback_id, pending_analysis(record),
                                         PENDING_MODEL, link_themes=False)
            self.conn.commit()
        except InvalidInputError:
            self.conn.rollback()
            raise
        except psycopg2.Error as e:
            raise self._fail("inserting feedback", e) from e

        return feedback_id

    def insert_pending_analysis(self, feedback_id: int, record: FeedbackRecord) -> None:
        """Put an already stored feedback item back in the enrichment queue."""
        self.insert_analysis(feedback_id, pending_analysis(record), model_used=PENDING_MODEL,
                             link_themes=False)

    def insert_analysis(self, feedback_id: int, analysis: AnalysisResult, model_used: str,
                        link_themes: bool = True) -> None:
        """
        Append an analysis for a feedback item and refresh its theme links.

        Earlier analyses are kept; the newest one is what searches read.
        """
        if not self.conn:
            self.connect()

        try:
            with self.conn.cursor() as cursor:
                self._write_analysis(cursor, feedback_id, analysis, model_used, link_themes)
            self.conn.commit()
        except psycopg2.Error as e:
            raise self._fail("inserting analysis", e) from e

    def _write_analysis(self, cursor, feedback_id: int, analysis: AnalysisResult, model_used: str,
                        link_themes: bool) -> None:
        cursor.execute(
            """
            INSERT INTO sentiment_analysis (
                feedback_id, sentiment, urgency, value_score,
                ai_summary, extracted_themes, model_used, confidence_score
            ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
            """,
            (
                feedback_id,
                analysis.sentiment,
                analysis.urgency,
                analysis.value_score,
                analysis.summary,
                Json(analysis.themes if link_themes else []),
                model_used,
                analysis.confidence,
            )
        )
        if link_themes:
            cursor.execute("DELETE FROM feedback_themes WHERE feedback_id = %s", (feedback_id,))
            cursor.execute(
                """
                INSERT INTO feedback_themes (feedback_id, theme_id, confidence_score)
                SELECT %s, theme_id, %s FROM themes WHERE theme_name = ANY(%s)
                ON CONFLICT (feedback_id, theme_id) DO NOTHING
                """,
                (feedback_id, analysis.confidence, list(analysis.themes))
            )

    def get_pending_feedback(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Feedback whose most recent analysis is still the ingestion placeholder."""
        query = """
            SELECT fm.feedback_id, fm.feedback_text, u.customer_tier, s.source_name AS source
            FROM feedback_master fm
            LEFT JOIN users u ON fm.user_id = u.user_id
            LEFT JOIN sources s ON fm.source_id = s.source_id
            LEFT JOIN v_latest_analysis la ON fm.feedback_id = la.feedback_id
            WHERE la.analysis_id IS NULL OR la.model_used = %s
            ORDER BY fm.urgency_score DESC, fm.created_date DESC
        """
        params: List[Any] = [PENDING_MODEL]
        if limit:
            query += " LIMIT %s"
            params.append(limit)
        return self.execute_query(query, params)

    def get_kpis(self) -> Dict[str, Any]:
        rows = self.execute_query("SELECT * FROM v_kpi_dashboard")
        return rows[0] if rows else {}

    def get_theme_summary(self) -> List[Dict[str, Any]]:
        return self.execute_query("SELECT * FROM v_theme_summary ORDER BY feedback_count DESC")

    def list_feedback(self, limit: int = DEFAULT_LIMIT, **filters: Optional[str]) -> List[Dict[str, Any]]:
        """
        Filtered feedback listing.

        Args:
            limit: Max rows, clamped to [1, 100]
            **filters: Any of source, urgency, sentiment, product, tier

        Raises:
            InvalidInputError: On an unknown filter name
        """
        query = "SELECT * FROM v_feedback_full WHERE 1=1"
        params: List[Any] = []

        for name, value in filters.items():
            column = LIST_FEEDBACK_FILTERS.get(name)
            if column is None:
                raise InvalidInputError(f"Unknown feedback filter: {name}")
            if value:
                query += f" AND {column} = %s"
                params.append(value)

        query += " ORDER BY urgency_score DESC, created_date DESC LIMIT %s"
        params.append(max(MIN_LIMIT, min(MAX_LIMIT, int(limit))))
        return self.execute_query(query, params)
