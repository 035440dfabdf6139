"""
Kafka Product Consumer (Delivery Loop)

Reads operation envelopes from the 'products' topic, applies them through the
reconciliation engine and commits each offset only after the store write.

CONSUMER LIFECYCLE:
┌─────────────────────────────────────────────────────────────────────────┐
│  1. Subscribe to topic → join consumer group                            │
│  2. Poll one message (bounded by poll_timeout_seconds)                  │
│  3. Decode envelope            ── DecodeError ──▶ log, NO commit        │
│  4. Apply via engine                                                    │
│       Applied / Skipped        ──────────────▶ commit this offset       │
│       Failed (store error)     ──────────────▶ log, NO commit           │
│  5. Check stop flag, repeat                                             │
│  6. Close consumer and database connections                             │
└─────────────────────────────────────────────────────────────────────────┘

AT-LEAST-ONCE DELIVERY:
- Apply before commit: a crash in between replays the envelope on restart
- UPDATE and DELETE are harmless on replay; CREATE may leave a duplicate
- Unknown operations are committed so they cannot block a partition forever

Messages are handled strictly one at a time, so per-key ordering within a
partition is the order the log delivered it.
"""

import enum
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from confluent_kafka import Consumer, KafkaError, KafkaException, Message

from src.reconciler.codec import DecodeError, decode
from src.reconciler.config import ReconcilerConfig
from src.reconciler.database import DatabaseManager
from src.reconciler.engine import Applied, Failed, ReconciliationEngine

FATAL_KAFKA_ERRORS = (
    KafkaError._ALL_BROKERS_DOWN,
    KafkaError._AUTHENTICATION,
    KafkaError.TOPIC_AUTHORIZATION_FAILED,
)


class MessageOutcome(str, enum.Enum):
    APPLIED = "applied"
    SKIPPED = "skipped"
    FAILED = "failed"
    DECODE_FAILED = "decode_failed"


@dataclass
class DeliveryStats:
    """Per-outcome counters, logged on shutdown."""

    applied: int = 0
    skipped: int = 0
    failed: int = 0
    decode_failures: int = 0
    commit_failures: int = 0
    effects: Dict[str, int] = field(default_factory=dict)

    def record_effect(self, effect: str) -> None:
        self.effects[effect] = self.effects.get(effect, 0) + 1

    def as_dict(self) -> Dict[str, Any]:
        return {
            "messages_applied": self.applied,
            "messages_skipped": self.skipped,
            "messages_failed": self.failed,
            "decode_failures": self.decode_failures,
            "commit_failures": self.commit_failures,
            "effects": dict(self.effects),
        }


def create_kafka_consumer(config: ReconcilerConfig) -> Consumer:
    """
    Create and subscribe a confluent-kafka consumer.

    Auto-commit is off: offsets are committed by ProductConsumer after each
    successful apply.
    """
    consumer = Consumer(config.get_kafka_config())
    consumer.subscribe([config.kafka_topic_products])
    return consumer


class ProductConsumer:
    """
    Delivery loop for product operation envelopes.

    Attributes:
        config: Reconciler configuration
        consumer: Subscribed confluent-kafka Consumer
        engine: Reconciliation engine applying envelopes to the store
        db_manager: Closed on shutdown when provided
        running: Cleared by stop(); checked between messages
        stats: Outcome counters
    """

    def __init__(
        self,
        config: ReconcilerConfig,
        consumer: Consumer,
        engine: ReconciliationEngine,
        db_manager: Optional[DatabaseManager] = None,
    ):
        self.config = config
        self.consumer = consumer
        self.engine = engine
        self.db_manager = db_manager
        self.logger = logging.getLogger(__name__)

        self.stats = DeliveryStats()
        self.running = True

        self.logger.info(
            "Product consumer initialized",
            extra={
                "topic": config.kafka_topic_products,
                "group_id": config.consumer_group_id,
                "bootstrap_servers": config.kafka_bootstrap_servers,
            },
        )

    def run(self) -> None:
        """
        Consume until stop() is called or a fatal Kafka error occurs, then close.
        """
        self.logger.info("Starting consumer loop...")

        try:
            self.process_messages()
        except KeyboardInterrupt:
            self.logger.info("Received keyboard interrupt, shutting down...")
        except Exception:
            self.logger.error("Fatal error in consumer loop", exc_info=True)
            raise
        finally:
            self.close()

    def process_messages(
        self, max_messages: Optional[int] = None, timeout: Optional[float] = None
    ) -> int:
        """
        Poll and handle messages one at a time.

        Args:
            max_messages: Stop after handling this many messages (None = no limit)
            timeout: Stop after this many seconds (None = no limit)

        Returns:
            Number of messages handled (any outcome)
        """
        handled = 0
        deadline = time.monotonic() + timeout if timeout is not None else None

        while self.running:
            if max_messages is not None and handled >= max_messages:
                break
            if deadline is not None and time.monotonic() >= deadline:
                break

            msg = self.consumer.poll(timeout=self.config.poll_timeout_seconds)

            if msg is None:
                continue

            if msg.error():
                self._handle_kafka_error(msg.error())
                continue

            self.handle_message(msg)
            handled += 1

        return handled

    def handle_message(self, msg: Message) -> MessageOutcome:
        """
        Decode, apply and (when appropriate) commit one message.

        Args:
            msg: Kafka message

        Returns:
            The outcome recorded for this message
        """
        position = {
            "topic": msg.topic(),
            "partition": msg.partition(),
            "offset": msg.offset(),
        }

        try:
            envelope = decode(msg.value())
        except DecodeError as e:
            self.stats.decode_failures += 1
            self.logger.error(
                "Error decoding envelope",
                extra={**position, "error": str(e), "decode_failures": self.stats.decode_failures},
            )
            return MessageOutcome.DECODE_FAILED

        self.logger.debug(
            "Parsed message",
            extra={**position, "correlation_id": envelope.key, "operation": envelope.operation},
        )

        result = self.engine.apply(envelope)
        outcome_fields = {**position, "correlation_id": envelope.key, "operation": envelope.operation}

        if isinstance(result, Failed):
            self.stats.failed += 1
            self.logger.error(
                "Envelope failed, offset not committed",
                extra={**outcome_fields, "cause": str(result.cause)},
            )
            return MessageOutcome.FAILED

        if isinstance(result, Applied):
            self.stats.applied += 1
            self.stats.record_effect(result.effect.value)
            outcome = MessageOutcome.APPLIED
            self.logger.info(
                "Envelope applied",
                extra={**outcome_fields, "effect": result.effect.value},
            )
        else:  # Skipped
            self.stats.skipped += 1
            outcome = MessageOutcome.SKIPPED
            self.logger.warning(
                "Envelope skipped",
                extra={**outcome_fields, "reason": result.reason.value},
            )

        self._commit(msg, outcome_fields)
        return outcome

    def _commit(self, msg: Message, log_fields: Dict[str, Any]) -> None:
        """Synchronously commit the offset following msg."""
        try:
            self.consumer.commit(message=msg, asynchronous=False)
        except KafkaException as e:
            self.stats.commit_failures += 1
            self.logger.error(
                "Error committing message",
                extra={**log_fields, "error": str(e), "commit_failures": self.stats.commit_failures},
            )

    def _handle_kafka_error(self, error: KafkaError) -> None:
        """
        Handle errors reported by poll().

        _PARTITION_EOF is informational. Broker-down, authentication and topic
        authorization errors stop the loop; anything else is logged.
        """
        if error.code() == KafkaError._PARTITION_EOF:
            self.logger.debug("Reached end of partition")
            return

        self.logger.error(
            f"Error reading message from Kafka: {error.str()}",
            extra={"error_code": error.code(), "error_name": error.name()},
        )

        if error.code() in FATAL_KAFKA_ERRORS:
            self.logger.critical("Fatal Kafka error, shutting down")
            self.stop()

    def stop(self) -> None:
        """
        Ask the loop to exit.

        The message currently being applied is finished first; the flag is only
        checked between messages.
        """
        self.logger.info("Stopping consumer...")
        self.running = False

    def close(self) -> None:
        """Close the Kafka consumer and database connections, log final stats."""
        self.logger.info("Consumer shutting down", extra=self.stats.as_dict())

        try:
            self.consumer.close()
            self.logger.info("Kafka consumer closed")
        except Exception:
            self.logger.error("Error closing Kafka consumer", exc_info=True)

        if self.db_manager is not None:
            try:
                self.db_manager.close()
            except Exception:
                self.logger.error("Error closing database", exc_info=True)

        self.logger.info("Consumer shutdown complete")
