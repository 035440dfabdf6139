"""
Reconciler Configuration Module

Settings for the Kafka consumer side and the document store. Values are read
from environment variables (and a local .env file) with Pydantic validation.
"""

from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file if present (local development)
load_dotenv()


class ReconcilerConfig(BaseSettings):
    """
    Reconciler service configuration with validation.

    Covers the Kafka consumer group subscription, the document store connection
    and logging. Instances are frozen; use ``model_copy(update=...)`` to derive
    an overridden copy (as the CLI does).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # === KAFKA CONSUMER SETTINGS ===
    kafka_bootstrap_servers: str = Field(
        default="localhost:9092",
        description="Kafka broker addresses",
    )

    kafka_topic_products: str = Field(
        default="products",
        description="Kafka topic carrying product operation envelopes",
    )

    consumer_group_id: str = Field(
        default="cons1",
        description="Consumer group ID; partitions are shared across group members",
    )

    consumer_client_id: str = Field(
        default="product-reconciler",
        description="Consumer client identifier",
    )

    consumer_auto_offset_reset: Literal["earliest", "latest"] = Field(
        default="earliest",
        description="Where to start consuming when the group has no committed offset",
    )

    poll_timeout_seconds: float = Field(
        default=1.0,
        gt=0,
        le=30,
        description="Upper bound on one poll; also bounds how long shutdown can block",
    )

    create_topic_if_missing: bool = Field(
        default=False,
        description="Create the products topic at startup when it does not exist",
    )

    topic_partitions: int = Field(
        default=3,
        ge=1,
        description="Partition count used when creating the topic",
    )

    topic_replication_factor: int = Field(
        default=1,
        ge=1,
        description="Replication factor used when creating the topic",
    )

    # === DOCUMENT STORE SETTINGS ===
    database_url: Optional[str] = Field(
        default=None,
        description="Full SQLAlchemy URL; overrides the postgres_* settings when set",
    )

    postgres_host: str = Field(
        default="localhost",
        description="PostgreSQL host",
    )

    postgres_port: int = Field(
        default=5432,
        ge=1,
        le=65535,
        description="PostgreSQL port",
    )

    postgres_db: str = Field(
        default="testdb",
        description="PostgreSQL database name",
    )

    postgres_user: str = Field(
        default="postgres",
        description="PostgreSQL username",
    )

    postgres_password: str = Field(
        default="postgres",
        description="PostgreSQL password",
    )

    db_pool_size: int = Field(
        default=5,
        ge=1,
        le=20,
        description="SQLAlchemy connection pool size",
    )

    db_connect_timeout_seconds: int = Field(
        default=10,
        ge=1,
        le=120,
        description="Timeout for establishing a database connection",
    )

    # === LOGGING ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    log_format: Literal["json", "text"] = Field(
        default="json",
        description="Log output format (json or text)",
    )

    log_file: Optional[str] = Field(
        default=None,
        description="Also write logs to this file (e.g. consumer.log)",
    )

    def get_kafka_config(self) -> dict:
        """
        Get the confluent-kafka consumer configuration dictionary.

        Auto-commit is always off: offsets are committed by the delivery loop
        only after the store write.
        """
        return {
            "bootstrap.servers": self.kafka_bootstrap_servers,
            "group.id": self.consumer_group_id,
            "client.id": self.consumer_client_id,
            "auto.offset.reset": self.consumer_auto_offset_reset,
            "enable.auto.commit": False,
        }

    def get_database_url(self) -> str:
        """Get the SQLAlchemy database URL."""
        if self.database_url:
            return self.database_url
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )


def load_config() -> ReconcilerConfig:
    """Load and validate reconciler configuration."""
    return ReconcilerConfig()
