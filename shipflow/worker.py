"""
Command-line worker that runs the pipeline once, continuously, or a single step.
"""

import sys
import json
import time
import logging
import argparse

from shipflow.config import PipelineConfig, load_config
from shipflow.errors import ShipflowError
from shipflow.extraction.pdf_extractor import LocalTempStorage, PdfTextExtractor
from shipflow.ingestion.imap_source import IMAPMessageSource
from shipflow.monitoring.health import HealthChecker
from shipflow.monitoring.logger_config import PipelineLogger
from shipflow.pipeline import Pipeline
from shipflow.reporting.smtp_delivery import SMTPDeliveryChannel
from shipflow.storage.factory import build_store

logger = logging.getLogger(__name__)

STEPS = ('all', 'ingest', 'clean', 'report')


def build_pipeline(config: PipelineConfig, step: str = 'all') -> Pipeline:
    """Wire concrete collaborators for the requested step."""
    store = build_store(config)

    source = None
    extractor = None
    if step in ('all', 'ingest'):
        source = IMAPMessageSource(config.source)
        if config.pdf.enabled:
            extractor = PdfTextExtractor(LocalTempStorage(config.pdf.temp_dir), config.pdf.ocr_language)

    delivery = None
    if step in ('all', 'report'):
        delivery = SMTPDeliveryChannel(config.email)

    return Pipeline(config, store, source=source, delivery=delivery, extractor=extractor)


def run_step(pipeline: Pipeline, step: str) -> bool:
    """Run one step (or the full pipeline); returns True on success."""
    if step == 'all':
        result = pipeline.run()
        if not result.success:
            logger.error(f"Pipeline failed at {result.failed_stage}: {result.error}")
        return result.success

    if step == 'ingest':
        result = pipeline.run_ingestion()
    elif step == 'clean':
        result = pipeline.run_cleaning()
    else:
        result = pipeline.run_reporting()

    logger.info(f"{step} result: {result.model_dump()}")
    return True


def run_continuous(config: PipelineConfig) -> None:
    """Run the full pipeline forever with polling."""
    logger.info(f"Starting continuous pipeline worker (interval: {config.polling_interval_seconds}s)")
    pipeline = build_pipeline(config)

    try:
        while True:
            try:
                run_step(pipeline, 'all')
            except ShipflowError as e:
                logger.error(f"Pipeline cycle failed: {e}")

            logger.info(f"Waiting {config.polling_interval_seconds} seconds for next cycle")
            time.sleep(config.polling_interval_seconds)

    except KeyboardInterrupt:
        logger.info("Pipeline worker stopped by user")
    finally:
        pipeline.store.close()


def main(argv=None) -> int:
    """Main entry point for the pipeline worker."""
    parser = argparse.ArgumentParser(description='Run the shipflow ingestion pipeline')
    parser.add_argument('--env-file', help='Path to a .env file')
    parser.add_argument('--once', action='store_true', help='Run once and exit')
    parser.add_argument('--step', choices=STEPS, default='all', help='Pipeline step to run with --once')
    parser.add_argument('--health-check', action='store_true', help='Perform health check')
    parser.add_argument('--remove-duplicates', metavar='TABLE', nargs='?', const='',
                        help='Remove duplicate rows from a table (raw data by default)')
    parser.add_argument('--metadata-width', type=int, default=None,
                        help='Leading columns ignored by --remove-duplicates')
    parser.add_argument('--cleanup-labels', action='store_true', help='Remove the processed label from messages')
    parser.add_argument('--max-messages', type=int, default=None, help='Limit for --cleanup-labels')

    args = parser.parse_args(argv)

    PipelineLogger.setup_logging()

    store = None
    try:
        config = load_config(args.env_file)

        if args.health_check:
            store = build_store(config)
            source = IMAPMessageSource(config.source) if config.source.server else None
            checker = HealthChecker(store, config.sheets.all_names(), source)
            report = checker.check_all()
            print(json.dumps(report, indent=2, default=str))
            return 0 if report['status'] == 'healthy' else 1

        if args.remove_duplicates is not None:
            store = build_store(config)
            pipeline = Pipeline(config, store)
            kwargs = {}
            if args.metadata_width is not None:
                kwargs['metadata_width'] = args.metadata_width
            result = pipeline.remove_duplicates(args.remove_duplicates or None, **kwargs)
            print(f"Removed {result.rows_removed} duplicate rows, kept {result.rows_kept}")
            return 0

        if args.cleanup_labels:
            store = build_store(config)
            pipeline = Pipeline(config, store, source=IMAPMessageSource(config.source))
            count = pipeline.cleanup_labels(args.max_messages)
            print(f"Removed processed label from {count} messages")
            return 0

        if args.once:
            pipeline = build_pipeline(config, args.step)
            store = pipeline.store
            success = run_step(pipeline, args.step)
            print("Pipeline run completed successfully" if success else "Pipeline run failed")
            return 0 if success else 1

        run_continuous(config)
        return 0

    except ShipflowError as e:
        logger.error(f"Pipeline worker failed: {e}")
        print(f"Pipeline worker failed: {e}")
        return 1

    finally:
        if store is not None:
            store.close()


if __name__ == "__main__":
    sys.exit(main())
