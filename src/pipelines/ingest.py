"""
Ingestion pipeline for raw feedback exports.

Reads a CSV or Excel export from one source, normalizes and scores each row,
and stores it with a pending placeholder analysis. AI enrichment runs later
through the enrichment pipeline.
"""

from typing import Any, Dict, List, Optional
from pathlib import Path
import logging
import argparse

import pandas as pd
from pydantic import ValidationError

from src.cleaning.normalizer import normalize_feedback
from src.config.settings import Settings
from src.data_access.sql_client import FeedbackStore
from src.models.errors import InvalidInputError, QueryExecutionError
from src.models.schemas import Source


logger = logging.getLogger(__name__)

EXCEL_SUFFIXES = (".xlsx", ".xls")


def load_rows(path: str) -> List[Dict[str, Any]]:
    """
    Load an export file as a list of raw rows.

    Every cell is read as a string and blank cells become empty strings, so the
    normalizer sees the same values a spreadsheet user would.
    """
    file_path = Path(path)
    if file_path.suffix.lower() in EXCEL_SUFFIXES:
        df = pd.read_excel(file_path, dtype=str, keep_default_na=False)
    else:
        df = pd.read_csv(file_path, dtype=str, keep_default_na=False)

    logger.info(f"Loaded {len(df)} rows from {file_path.name}")
    return df.to_dict(orient="records")


class IngestionPipeline:
    """Pipeline for normalizing and storing feedback rows from one source."""

    def __init__(self, config: Settings, store: Optional[FeedbackStore] = None):
        """
        Initialize the ingestion pipeline.

        Args:
            config: Application settings
            store: Optional pre-built FeedbackStore (a new one is created if None)
        """
        self.config = config
        self.store = store or FeedbackStore(config)

    def run(self, source: str, rows: List[Dict[str, Any]], limit: Optional[int] = None) -> dict:
        """
        Execute the ingestion pipeline.

        Args:
            source: Source tag shared by every row
            rows: Raw rows keyed by the export's column names
            limit: Maximum number of rows to process (None = all)

        Returns:
            Dictionary with processing statistics
        """
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)

        if limit is not None:
            rows = rows[:limit]
        total_records = len(rows)
        logger.info(f"Starting ingestion of {total_records} {source} rows")

        if total_records == 0:
            logger.info("No records to process")
            return {"source": source, "total_records": 0, "inserted": 0, "errors": 0}

        inserted = 0
        errors = 0

        try:
            self.store.connect()

            for index, row in enumerate(rows, start=1):
                try:
                    record = normalize_feedback(source, row)
                    self.store.insert_feedback(record, pending=True)
                    inserted += 1
                except (InvalidInputError, ValidationError, QueryExecutionError) as e:
                    logger.error(f"Error processing {source} row {index}: {str(e)}")
                    errors += 1

                if index % self.config.batch_size == 0:
                    logger.info(f"Processed {index}/{total_records} rows")

            logger.info(f"Ingestion complete: {inserted} inserted, {errors} errors")

            return {
                "source": source,
                "total_records": total_records,
                "inserted": inserted,
                "errors": errors,
            }

        finally:
            self.store.close()


def main():
    """Main entry point for running the ingestion pipeline with CLI arguments."""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    parser = argparse.ArgumentParser(
        description='Load a feedback export (CSV or Excel) into the feedback store.'
    )
    parser.add_argument(
        '--source',
        required=True,
        choices=[source.value for source in Source],
        help='Source the export came from'
    )
    parser.add_argument(
        '--file',
        required=True,
        help='Path to the CSV or Excel export'
    )
    parser.add_argument(
        '--limit',
        type=int,
        help='Maximum number of rows to ingest'
    )
    parser.add_argument(
        '--init-schema',
        action='store_true',
        help='Create tables, views and reference data before ingesting'
    )

    args = parser.parse_args()

    config = Settings()
    rows = load_rows(args.file)

    if args.init_schema:
        schema_store = FeedbackStore(config)
        try:
            schema_store.initialize_schema()
        finally:
            schema_store.close()

    pipeline = IngestionPipeline(config)
    stats = pipeline.run(args.source, rows, limit=args.limit)

    print("\n" + "="*60)
    print("INGESTION PIPELINE RESULTS")
    print("="*60)
    print(f"Source: {stats['source']}")
    print(f"Total rows processed: {stats['total_records']}")
    print(f"Records inserted: {stats['inserted']}")
    print(f"Errors: {stats['errors']}")
    print("="*60)


if __name__ == "__main__":
    main()
