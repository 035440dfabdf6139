"""
Kafka Envelope Publisher

Publishes product operation envelopes to the 'products' topic in the wire
format the reconciler decodes:

    {"operation": "CREATE", "data": {"name": "milk", "expired": "2024-01-01", "brand": "X"}}

PARTITION KEY:
Messages are keyed by the product name, so every operation on one product
lands on one partition and the reconciler sees them in publish order.

DELIVERY:
- produce() is asynchronous; delivery reports arrive via poll()/flush()
- enable.idempotence + acks=all: producer retries never duplicate a message
"""

import logging
from typing import Callable, Optional

from confluent_kafka import KafkaError, KafkaException, Message, Producer

from src.publisher.config import PublisherConfig
from src.reconciler.codec import OperationKind, Product, encode


class EnvelopePublisher:
    """
    Kafka producer for product operation envelopes.

    Attributes:
        config: Publisher configuration
        producer: confluent_kafka.Producer instance
        messages_sent: Envelopes handed to the producer
        messages_delivered: Delivery reports without error
        messages_failed: Delivery reports with error
    """

    def __init__(
        self,
        config: PublisherConfig,
        producer: Optional[Producer] = None,
        delivery_callback: Optional[Callable] = None,
    ):
        self.config = config
        self.topic = config.kafka_topic_products
        self.logger = logging.getLogger(__name__)

        self.messages_sent = 0
        self.messages_delivered = 0
        self.messages_failed = 0

        self.delivery_callback = delivery_callback or self._default_delivery_callback

        try:
            self.producer = producer if producer is not None else Producer(config.get_kafka_config())
        except KafkaException:
            self.logger.error("Failed to initialize Kafka producer", exc_info=True)
            raise

        self.logger.info(
            "Envelope publisher initialized",
            extra={
                "bootstrap_servers": config.kafka_bootstrap_servers,
                "topic": self.topic,
                "client_id": config.publisher_client_id,
            },
        )

    def _default_delivery_callback(self, err: Optional[KafkaError], msg: Message) -> None:
        """Count and log each delivery report."""
        key = msg.key().decode("utf-8") if msg is not None and msg.key() else None

        if err is not None:
            self.messages_failed += 1
            self.logger.error(
                "Message delivery failed",
                extra={"correlation_id": key, "error": err.str(), "error_code": err.code()},
            )
            return

        self.messages_delivered += 1
        self.logger.info(
            "Message delivered",
            extra={
                "correlation_id": key,
                "topic": msg.topic(),
                "partition": msg.partition(),
                "offset": msg.offset(),
            },
        )

    def publish(self, operation: str, product: Product) -> None:
        """
        Publish one envelope.

        Args:
            operation: Operation label; normally CREATE, UPDATE or DELETE
            product: Product payload (name is the partition key)

        Raises:
            BufferError: Local producer queue is full
            KafkaException: Kafka client error
        """
        if OperationKind.parse(operation) is OperationKind.UNRECOGNIZED:
            self.logger.warning(
                "Publishing unrecognized operation; the reconciler will skip it",
                extra={"correlation_id": product.name, "operation": operation},
            )

        try:
            self.producer.produce(
                topic=self.topic,
                key=product.name.encode("utf-8"),
                value=encode(operation, product),
                on_delivery=self.delivery_callback,
            )
        except (BufferError, KafkaException):
            self.logger.error(
                "Error writing message to Kafka",
                exc_info=True,
                extra={"correlation_id": product.name, "operation": operation},
            )
            raise

        self.messages_sent += 1
        self.producer.poll(0)

        self.logger.debug(
            "Envelope published",
            extra={"correlation_id": product.name, "operation": operation, "topic": self.topic},
        )

    def create(self, product: Product) -> None:
        self.publish(OperationKind.CREATE.value, product)

    def update(self, product: Product) -> None:
        self.publish(OperationKind.UPDATE.value, product)

    def delete(self, name: str) -> None:
        self.publish(OperationKind.DELETE.value, Product(name=name))

    def flush(self, timeout: Optional[float] = None) -> int:
        """
        Wait for outstanding delivery reports.

        Returns:
            Number of messages still undelivered (0 = all delivered)
        """
        timeout = self.config.flush_timeout_seconds if timeout is None else timeout
        remaining = self.producer.flush(timeout)

        if remaining > 0:
            self.logger.warning(
                "Producer flush timeout",
                extra={"remaining_messages": remaining, "timeout": timeout},
            )
        return remaining

    def close(self) -> int:
        """Flush pending messages and log final counts."""
        remaining = self.flush()
        self.logger.info(
            "Publisher shutdown complete",
            extra={
                "messages_sent": self.messages_sent,
                "messages_delivered": self.messages_delivered,
                "messages_failed": self.messages_failed,
                "remaining_messages": remaining,
            },
        )
        return remaining
