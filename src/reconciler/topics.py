"""
Topic bootstrap

Startup check that the brokers are reachable and the products topic exists,
optionally creating it for local development.
"""

import logging
from typing import Optional

from confluent_kafka import KafkaError, KafkaException
from confluent_kafka.admin import AdminClient, NewTopic

from src.reconciler.config import ReconcilerConfig


def topic_exists(admin_client: AdminClient, topic: str, timeout: float = 10.0) -> bool:
    """Return True if the cluster metadata lists ``topic``."""
    metadata = admin_client.list_topics(timeout=timeout)
    return topic in metadata.topics


def ensure_topic(config: ReconcilerConfig, admin_client: Optional[AdminClient] = None) -> bool:
    """
    Verify broker connectivity and the products topic.

    Args:
        config: Reconciler configuration
        admin_client: Injected admin client (built from config when omitted)

    Returns:
        True if the topic exists (or was created), False if it is missing and
        creation is disabled

    Raises:
        KafkaException: If the brokers cannot be reached or creation fails
    """
    logger = logging.getLogger(__name__)
    topic = config.kafka_topic_products

    if admin_client is None:
        admin_client = AdminClient({"bootstrap.servers": config.kafka_bootstrap_servers})

    if topic_exists(admin_client, topic):
        logger.info("Topic found", extra={"topic": topic})
        return True

    if not config.create_topic_if_missing:
        logger.error("Topic does not exist", extra={"topic": topic})
        return False

    new_topic = NewTopic(
        topic,
        num_partitions=config.topic_partitions,
        replication_factor=config.topic_replication_factor,
    )
    futures = admin_client.create_topics([new_topic])

    try:
        futures[topic].result()
    except KafkaException as e:
        # Another instance may have created it concurrently
        if e.args and e.args[0].code() == KafkaError.TOPIC_ALREADY_EXISTS:
            logger.info("Topic already exists", extra={"topic": topic})
            return True
        raise

    logger.info(
        "Topic created",
        extra={"topic": topic, "partitions": config.topic_partitions},
    )
    return True
