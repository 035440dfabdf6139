"""
Product Reconciler Service - Main Entry Point

USAGE:
    python -m src.reconciler.main [--log-level LEVEL] [--log-format json|text] [--log-file PATH]

ENVIRONMENT VARIABLES:
    See src/reconciler/config.py for the full list:
    - KAFKA_BOOTSTRAP_SERVERS, KAFKA_TOPIC_PRODUCTS, CONSUMER_GROUP_ID
    - DATABASE_URL or POSTGRES_HOST / POSTGRES_PORT / POSTGRES_DB / POSTGRES_USER / POSTGRES_PASSWORD
    - LOG_LEVEL, LOG_FORMAT, LOG_FILE

STARTUP:
initialize() builds every collaborator explicitly (database manager, topic
check, Kafka consumer, store, engine) and returns a StartupResult. Any failure
there aborts the process with exit code 1, since no useful work is possible.

GRACEFUL SHUTDOWN:
SIGINT and SIGTERM call ProductConsumer.stop(). The envelope being applied is
finished, the loop exits at the next poll boundary, and connections are closed.
"""

import argparse
import logging
import signal
import sys
from dataclasses import dataclass
from typing import Callable, Optional

from confluent_kafka import Consumer

from src.reconciler.config import ReconcilerConfig, load_config
from src.reconciler.consumer import ProductConsumer, create_kafka_consumer
from src.reconciler.database import init_database
from src.reconciler.engine import ReconciliationEngine
from src.reconciler.store import SqlDocumentStore
from src.reconciler.topics import ensure_topic
from src.shared.logger import setup_logger

SERVICE_NAME = "product-reconciler"


@dataclass
class StartupResult:
    """Outcome of initialize(): a ready consumer, or the reason there is none."""

    consumer: Optional[ProductConsumer] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.consumer is not None


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Product Reconciler Service",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Start with default settings
  python -m src.reconciler.main

  # Plain text logs, also written to consumer.log
  python -m src.reconciler.main --log-format text --log-file consumer.log

Signals:
  SIGINT (Ctrl+C)            Graceful shutdown
  SIGTERM (Docker stop)      Graceful shutdown
        """,
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (overrides LOG_LEVEL env var)",
    )
    parser.add_argument(
        "--log-format",
        choices=["json", "text"],
        help="Log output format (overrides LOG_FORMAT env var)",
    )
    parser.add_argument(
        "--log-file",
        help="Also write logs to this file (overrides LOG_FILE env var)",
    )

    return parser.parse_args(argv)


def apply_overrides(config: ReconcilerConfig, args: argparse.Namespace) -> ReconcilerConfig:
    """Return a copy of config with CLI overrides applied."""
    overrides = {
        key: value
        for key, value in (
            ("log_level", args.log_level),
            ("log_format", args.log_format),
            ("log_file", args.log_file),
        )
        if value is not None
    }
    return config.model_copy(update=overrides) if overrides else config


def initialize(
    config: ReconcilerConfig,
    consumer_factory: Callable[[ReconcilerConfig], Consumer] = create_kafka_consumer,
    topic_check: Callable[[ReconcilerConfig], bool] = ensure_topic,
) -> StartupResult:
    """
    Construct all collaborators for the delivery loop.

    Args:
        config: Reconciler configuration
        consumer_factory: Builds the subscribed Kafka consumer
        topic_check: Verifies (or creates) the products topic

    Returns:
        StartupResult with a ready ProductConsumer, or an error message
    """
    logger = logging.getLogger(__name__)

    try:
        db_manager = init_database(config)
    except Exception as e:
        logger.error("Failed to initialize database", exc_info=True)
        return StartupResult(error=f"database: {e}")

    try:
        if not topic_check(config):
            db_manager.close()
            return StartupResult(error=f"topic '{config.kafka_topic_products}' does not exist")
    except Exception as e:
        logger.error("Failed to reach Kafka", exc_info=True)
        db_manager.close()
        return StartupResult(error=f"kafka: {e}")

    try:
        kafka_consumer = consumer_factory(config)
    except Exception as e:
        logger.error("Failed to create Kafka consumer", exc_info=True)
        db_manager.close()
        return StartupResult(error=f"kafka consumer: {e}")

    engine = ReconciliationEngine(SqlDocumentStore(db_manager))
    consumer = ProductConsumer(config, kafka_consumer, engine, db_manager=db_manager)
    return StartupResult(consumer=consumer)


def install_signal_handlers(consumer: ProductConsumer) -> None:
    """Route SIGINT and SIGTERM to consumer.stop()."""

    def handle_signal(signum: int, frame) -> None:
        logging.getLogger(__name__).info(
            f"Received {signal.Signals(signum).name}, initiating graceful shutdown..."
        )
        consumer.stop()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)


def main(argv=None) -> int:
    """
    Main entry point for the reconciler service.

    Returns:
        Exit code (0 = clean shutdown, 1 = startup or fatal error)
    """
    args = parse_args(argv)

    try:
        config = apply_overrides(load_config(), args)
    except Exception as e:
        print(f"ERROR: Failed to load configuration: {e}", file=sys.stderr)
        return 1

    logger = setup_logger(
        name="src",
        service_name=SERVICE_NAME,
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.log_file,
    )

    logger.info(
        "Starting Product Reconciler Service",
        extra={
            "kafka_bootstrap_servers": config.kafka_bootstrap_servers,
            "kafka_topic": config.kafka_topic_products,
            "consumer_group": config.consumer_group_id,
            "log_level": config.log_level,
            "log_format": config.log_format,
        },
    )

    startup = initialize(config)
    if not startup.ok:
        logger.critical("Startup failed, aborting", extra={"error": startup.error})
        return 1

    install_signal_handlers(startup.consumer)

    try:
        startup.consumer.run()
    except Exception:
        logger.error("Fatal error in consumer", exc_info=True)
        return 1

    logger.info("Consumer stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
