"""
End-to-End Pipeline Tests

Tests the complete pipeline: Publisher → Kafka → Reconciler → PostgreSQL

TEST STRATEGY:
- Real Kafka and PostgreSQL via testcontainers
- Verify document state after each operation sequence
- Verify committed offsets (restart does not reprocess committed envelopes)

DEPENDENCIES:
- Docker (testcontainers)
"""

import pytest
from confluent_kafka import TopicPartition

from src.publisher.config import PublisherConfig
from src.publisher.mock_data import MockProductGenerator
from src.publisher.publisher import EnvelopePublisher
from src.reconciler.codec import Product
from src.reconciler.main import initialize
from src.reconciler.models import Base
from src.reconciler.store import SqlDocumentStore


@pytest.fixture
def publisher(container_config):
    publisher = EnvelopePublisher(
        PublisherConfig(
            kafka_bootstrap_servers=container_config.kafka_bootstrap_servers,
            kafka_topic_products=container_config.kafka_topic_products,
        )
    )
    yield publisher
    publisher.close()


@pytest.fixture
def reconciler(container_config):
    startup = initialize(container_config)
    assert startup.ok, startup.error
    consumer = startup.consumer
    yield consumer
    Base.metadata.drop_all(consumer.db_manager.engine)
    consumer.close()


def store_for(reconciler):
    return SqlDocumentStore(reconciler.db_manager)


# ==============================================================================
# END-TO-END TESTS
# ==============================================================================


@pytest.mark.integration
@pytest.mark.slow
def test_create_update_delete_flow(reconciler, publisher):
    publisher.create(Product(name="milk", expired="2024-01-01", brand="X"))
    publisher.update(Product(name="milk", expired="2024-02-01", brand="X"))
    publisher.update(Product(name="bread", brand="Y"))
    publisher.create(Product(name="eggs"))
    publisher.delete("eggs")
    assert publisher.flush() == 0

    handled = reconciler.process_messages(max_messages=5, timeout=30)

    assert handled == 5
    store = store_for(reconciler)
    milk = store.find_by_key("milk")
    assert milk.operation == "UPDATE"
    assert milk.data == {"name": "milk", "expired": "2024-02-01", "brand": "X"}
    bread = store.find_by_key("bread")
    assert bread.operation == "UPDATE"
    assert bread.data == {"name": "bread", "brand": "Y"}
    assert store.find_by_key("eggs") is None
    assert reconciler.stats.effects == {
        "created": 2,
        "updated": 1,
        "created_from_missing_update": 1,
        "deleted": 1,
    }


@pytest.mark.integration
@pytest.mark.slow
def test_malformed_and_unknown_envelopes(reconciler, publisher, container_config):
    publisher.producer.produce(container_config.kafka_topic_products, key=b"x", value=b"{broken")
    publisher.publish("PATCH", Product(name="milk"))
    publisher.create(Product(name="milk"))
    assert publisher.flush() == 0

    handled = reconciler.process_messages(max_messages=3, timeout=30)

    assert handled == 3
    assert reconciler.stats.decode_failures == 1
    assert reconciler.stats.skipped == 1
    assert store_for(reconciler).count("milk") == 1

    # The last envelope's commit covers the malformed one before it
    committed = reconciler.consumer.committed(
        [TopicPartition(container_config.kafka_topic_products, 0)], timeout=10
    )
    assert committed[0].offset == 3


@pytest.mark.integration
@pytest.mark.slow
def test_simulated_traffic_converges(reconciler, publisher):
    generator = MockProductGenerator(seed=11, num_products=5)
    expected = {}
    operations = list(generator.generate(60))

    for operation, product in operations:
        publisher.publish(operation, product)
        if operation == "DELETE":
            expected.pop(product.name, None)
        else:
            expected[product.name] = product.to_document_data()
    assert publisher.flush() == 0

    handled = reconciler.process_messages(max_messages=len(operations), timeout=60)

    assert handled == len(operations)
    store = store_for(reconciler)
    for name in generator.names:
        document = store.find_by_key(name)
        if name in expected:
            assert document.data == expected[name]
        else:
            assert document is None
