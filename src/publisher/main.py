"""
Envelope Publisher - Main Entry Point

USAGE:
    python -m src.publisher.main create --name milk --expired 2024-01-01 --brand X
    python -m src.publisher.main update --name milk --expired 2024-02-01 --brand X
    python -m src.publisher.main delete --name milk
    python -m src.publisher.main simulate --count 100 --seed 42 --rate 10

Connection settings come from environment variables (see src/publisher/config.py).
"""

import argparse
import signal
import sys
import time

from src.publisher.config import PublisherConfig, load_config
from src.publisher.mock_data import RANDOM_SEED, MockProductGenerator
from src.publisher.publisher import EnvelopePublisher
from src.reconciler.codec import OperationKind, Product
from src.shared.logger import setup_logger

SERVICE_NAME = "product-publisher"


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Publish product operation envelopes to Kafka")
    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    parser.add_argument("--log-format", choices=["json", "text"])

    subparsers = parser.add_subparsers(dest="command", required=True)

    for command in ("create", "update"):
        sub = subparsers.add_parser(command, help=f"Publish a {command.upper()} envelope")
        sub.add_argument("--name", required=True, help="Product name (natural key)")
        sub.add_argument("--expired", help="Expiry date")
        sub.add_argument("--brand", help="Brand")

    delete = subparsers.add_parser("delete", help="Publish a DELETE envelope")
    delete.add_argument("--name", required=True, help="Product name (natural key)")

    simulate = subparsers.add_parser("simulate", help="Publish generated sample traffic")
    simulate.add_argument("--count", type=int, default=100, help="Number of envelopes")
    simulate.add_argument("--seed", type=int, default=RANDOM_SEED, help="Random seed")
    simulate.add_argument("--rate", type=float, default=10.0, help="Envelopes per second (0 = no limit)")

    return parser.parse_args(argv)


def build_product(args: argparse.Namespace) -> Product:
    """Product payload from CLI flags; omitted flags are left out of the payload."""
    fields = {"name": args.name}
    for attribute in ("expired", "brand"):
        value = getattr(args, attribute, None)
        if value is not None:
            fields[attribute] = value
    return Product(**fields)


def run_simulation(publisher: EnvelopePublisher, count: int, seed: int, rate: float) -> int:
    """Publish ``count`` generated envelopes; returns how many were handed to Kafka."""
    stop_requested = False

    def handle_signal(signum, frame):
        nonlocal stop_requested
        stop_requested = True

    previous = {sig: signal.signal(sig, handle_signal) for sig in (signal.SIGINT, signal.SIGTERM)}

    generator = MockProductGenerator(seed=seed)
    interval = 1.0 / rate if rate > 0 else 0.0
    published = 0

    try:
        for operation, product in generator.generate(count):
            if stop_requested:
                publisher.logger.info("Shutdown requested, stopping simulation")
                break
            publisher.publish(operation, product)
            published += 1
            if interval:
                time.sleep(interval)
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)

    return published


def main(argv=None) -> int:
    args = parse_args(argv)

    try:
        config: PublisherConfig = load_config()
    except Exception as e:
        print(f"ERROR: Failed to load configuration: {e}", file=sys.stderr)
        return 1

    overrides = {k: v for k, v in (("log_level", args.log_level), ("log_format", args.log_format)) if v}
    if overrides:
        config = config.model_copy(update=overrides)

    logger = setup_logger(
        name="src",
        service_name=SERVICE_NAME,
        log_level=config.log_level,
        log_format=config.log_format,
    )

    try:
        publisher = EnvelopePublisher(config)
    except Exception:
        logger.error("Failed to initialize Kafka producer", exc_info=True)
        return 1

    try:
        if args.command == "simulate":
            published = run_simulation(publisher, args.count, args.seed, args.rate)
            logger.info("Simulation finished", extra={"published": published})
        elif args.command == "delete":
            publisher.delete(args.name)
        else:
            publisher.publish(OperationKind[args.command.upper()].value, build_product(args))
    except Exception:
        logger.error("Error sending data to Kafka", exc_info=True)
        publisher.close()
        return 1

    remaining = publisher.close()
    return 0 if remaining == 0 and publisher.messages_failed == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
