"""
Enrichment pipeline: replace pending placeholder analyses with AI analyses.
"""

from typing import Optional
import logging
import argparse

from src.agents.analysis_agent import FeedbackAnalysisAgent
from src.config.settings import Settings
from src.data_access.sql_client import FeedbackStore
from src.models.errors import QueryExecutionError


logger = logging.getLogger(__name__)


class EnrichmentPipeline:
    """Pipeline for analyzing stored feedback that is still awaiting AI analysis."""

    def __init__(self, config: Settings, store: Optional[FeedbackStore] = None,
                 analysis_agent: Optional[FeedbackAnalysisAgent] = None):
        self.config = config
        self.store = store or FeedbackStore(config)
        self.analysis_agent = analysis_agent or FeedbackAnalysisAgent(config)

    def run(self, limit: Optional[int] = None, chunk_size: Optional[int] = None) -> dict:
        """
        Execute the enrichment pipeline.

        Args:
            limit: Maximum number of pending items to analyze (None = all)
            chunk_size: Items analyzed concurrently per chunk (default from config)

        Returns:
            Dictionary with processing statistics
        """
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)

        logger.info("Starting enrichment pipeline")

        try:
            self.store.connect()

            pending = self.store.get_pending_feedback(limit=limit)
            total_records = len(pending)
            logger.info(f"Found {total_records} feedback items awaiting analysis")

            if total_records == 0:
                logger.info("No records to process")
                return {"total_records": 0, "analyzed": 0, "fallbacks": 0, "errors": 0}

            analyses = self.analysis_agent.batch_analyze(pending, chunk_size=chunk_size)

            analyzed = 0
            fallbacks = 0
            errors = 0
            model = self.config.openai_llm_model

            for item, analysis in zip(pending, analyses):
                try:
                    self.store.insert_analysis(item["feedback_id"], analysis, model_used=model)
                    analyzed += 1
                    if analysis.confidence <= 0.5:
                        fallbacks += 1
                except QueryExecutionError as e:
                    logger.error(f"Error storing analysis for feedback {item['feedback_id']}: {str(e)}")
                    errors += 1

            logger.info(
                f"Enrichment complete: {analyzed} analyzed "
                f"({fallbacks} low-confidence), {errors} errors"
            )

            return {
                "total_records": total_records,
                "analyzed": analyzed,
                "fallbacks": fallbacks,
                "errors": errors,
            }

        finally:
            self.store.close()


def positive_int(value: str) -> int:
    """argparse type for options that must be at least 1."""
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {value}")
    return number


def main():
    """Main entry point for running the enrichment pipeline with CLI arguments."""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    parser = argparse.ArgumentParser(
        description='Run AI analysis over feedback still awaiting enrichment.'
    )
    parser.add_argument(
        '--limit',
        type=positive_int,
        help='Maximum number of feedback items to analyze'
    )
    parser.add_argument(
        '--chunk-size',
        type=positive_int,
        help='Number of items analyzed concurrently per chunk'
    )

    args = parser.parse_args()

    config = Settings()

    pipeline = EnrichmentPipeline(config)
    stats = pipeline.run(limit=args.limit, chunk_size=args.chunk_size)

    print("\n" + "="*60)
    print("ENRICHMENT PIPELINE RESULTS")
    print("="*60)
    print(f"Total records processed: {stats['total_records']}")
    print(f"Analyses stored: {stats['analyzed']}")
    print(f"Low-confidence analyses: {stats['fallbacks']}")
    print(f"Errors: {stats['errors']}")
    print("="*60)


if __name__ == "__main__":
    main()
