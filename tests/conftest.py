"""
Pytest Configuration and Shared Fixtures

Unit tests run the reconciler against an in-memory SQLite document store and a
mocked confluent-kafka Consumer. Integration tests use testcontainers to spin
up real Kafka and PostgreSQL instances.

TESTCONTAINERS PATTERN:
- Spin up real services (Kafka, PostgreSQL) in Docker containers
- Run tests against real infrastructure (not mocks)
- Automatically clean up containers after tests

FIXTURE SCOPES:
- session: Created once for entire test session (containers)
- function: Created for each test function (stores, consumers)
"""

import json
import os
from typing import Any, Dict, Generator, Optional
from unittest.mock import MagicMock

import pytest

from src.reconciler.config import ReconcilerConfig
from src.reconciler.database import DatabaseManager
from src.reconciler.engine import ReconciliationEngine
from src.reconciler.store import SqlDocumentStore

# ==============================================================================
# FAKE KAFKA MESSAGES
# ==============================================================================


class FakeMessage:
    """Stand-in for confluent_kafka.Message (which cannot be constructed directly)."""

    def __init__(
        self,
        value: Optional[bytes],
        key: Optional[bytes] = None,
        topic: str = "products",
        partition: int = 0,
        offset: int = 0,
        error: Any = None,
    ):
        self._value = value
        self._key = key
        self._topic = topic
        self._partition = partition
        self._offset = offset
        self._error = error

    def value(self):
        return self._value

    def key(self):
        return self._key

    def topic(self):
        return self._topic

    def partition(self):
        return self._partition

    def offset(self):
        return self._offset

    def error(self):
        return self._error


def envelope_bytes(operation: Any, data: Dict[str, Any]) -> bytes:
    """Wire-format envelope."""
    return json.dumps({"operation": operation, "data": data}).encode("utf-8")


@pytest.fixture
def make_message():
    """
    Factory for FakeMessage instances with increasing offsets.

    Usage:
        def test_x(make_message):
            msg = make_message("CREATE", {"name": "milk"})
    """
    offsets = iter(range(1_000_000))

    def _make(operation: Any, data: Dict[str, Any], partition: int = 0) -> FakeMessage:
        name = data.get("name") if isinstance(data, dict) else None
        return FakeMessage(
            value=envelope_bytes(operation, data),
            key=name.encode("utf-8") if isinstance(name, str) else None,
            partition=partition,
            offset=next(offsets),
        )

    return _make


@pytest.fixture
def raw_message():
    """Factory for FakeMessage instances with arbitrary value or error."""
    return FakeMessage


# ==============================================================================
# IN-MEMORY STORE FIXTURES
# ==============================================================================


@pytest.fixture
def sqlite_config() -> ReconcilerConfig:
    """ReconcilerConfig pointing at an in-memory SQLite database."""
    return ReconcilerConfig(
        database_url="sqlite://",
        kafka_bootstrap_servers="localhost:9092",
        kafka_topic_products="products",
        poll_timeout_seconds=0.01,
    )


@pytest.fixture
def db_manager(sqlite_config) -> Generator[DatabaseManager, None, None]:
    """DatabaseManager with the document schema created; disposed after the test."""
    manager = DatabaseManager(sqlite_config)
    manager.create_schema()
    try:
        yield manager
    finally:
        manager.close()


@pytest.fixture
def store(db_manager) -> SqlDocumentStore:
    return SqlDocumentStore(db_manager)


@pytest.fixture
def engine(store) -> ReconciliationEngine:
    return ReconciliationEngine(store)


@pytest.fixture
def mock_kafka_consumer() -> MagicMock:
    """Mocked confluent_kafka.Consumer; poll() returns None unless configured."""
    consumer = MagicMock()
    consumer.poll.return_value = None
    return consumer


# ==============================================================================
# SAMPLE DATA FIXTURES
# ==============================================================================


@pytest.fixture
def sample_product() -> Dict[str, Any]:
    return {"name": "milk", "expired": "2024-01-01", "brand": "X"}


# ==============================================================================
# CONTAINER FIXTURES (integration only)
# ==============================================================================


@pytest.fixture(scope="session")
def postgres_container():
    """
    Provides PostgreSQL testcontainer for the entire test session.

    Yields:
        PostgresContainer instance with running PostgreSQL
    """
    from testcontainers.postgres import PostgresContainer

    with PostgresContainer("postgres:15") as postgres:
        postgres.get_connection_url()
        yield postgres


@pytest.fixture(scope="session")
def kafka_container():
    """
    Provides Kafka testcontainer for the entire test session.

    Yields:
        KafkaContainer instance with running Kafka broker
    """
    from testcontainers.kafka import KafkaContainer

    with KafkaContainer() as kafka:
        kafka.get_bootstrap_server()
        yield kafka


@pytest.fixture
def container_config(postgres_container, kafka_container, request) -> ReconcilerConfig:
    """
    ReconcilerConfig pointing to the test containers.

    Each test gets its own topic and consumer group so offsets never leak
    between tests.
    """
    suffix = request.node.name.replace("[", "-").replace("]", "")
    return ReconcilerConfig(
        kafka_bootstrap_servers=kafka_container.get_bootstrap_server(),
        kafka_topic_products=f"products-{suffix}",
        consumer_group_id=f"group-{suffix}",
        create_topic_if_missing=True,
        topic_partitions=1,
        poll_timeout_seconds=0.5,
        postgres_host=postgres_container.get_container_host_ip(),
        postgres_port=int(postgres_container.get_exposed_port(5432)),
        postgres_user=postgres_container.username,
        postgres_password=postgres_container.password,
        postgres_db=postgres_container.dbname,
    )


# ==============================================================================
# TEST ENVIRONMENT CONFIGURATION
# ==============================================================================


def pytest_configure(config):
    """
    Pytest hook called during test configuration.

    Sets up test environment variables and markers.
    """
    os.environ["ENVIRONMENT"] = "test"
    os.environ["LOG_LEVEL"] = "DEBUG"

    config.addinivalue_line(
        "markers", "integration: mark test as integration test (requires containers)"
    )
    config.addinivalue_line("markers", "slow: mark test as slow (takes more than 5 seconds)")
    config.addinivalue_line("markers", "unit: mark test as unit test (no external dependencies)")
