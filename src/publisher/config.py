"""
Publisher Configuration Module

Settings for publishing product operation envelopes to Kafka, loaded from
environment variables (and a local .env file) with Pydantic validation.

CONFIGURATION SOURCES (priority order):
1. Environment variables
2. .env file (loaded by python-dotenv)
3. Default values
"""

from typing import Literal

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class PublisherConfig(BaseSettings):
    """
    Publisher configuration with validation.

    Example:
        >>> config = PublisherConfig()
        >>> config.kafka_topic_products
        'products'
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # === KAFKA CONNECTION ===
    kafka_bootstrap_servers: str = Field(
        default="localhost:9092",
        description="Kafka broker addresses (comma-separated for multiple brokers)",
    )

    kafka_topic_products: str = Field(
        default="products",
        description="Kafka topic for product operation envelopes",
    )

    publisher_client_id: str = Field(
        default="product-publisher",
        description="Producer client identifier (visible in broker logs and monitoring)",
    )

    # === DELIVERY ===
    enable_idempotence: bool = Field(
        default=True,
        description="Idempotent producer (no duplicates from producer retries; requires acks=all)",
    )

    publisher_compression: Literal["none", "gzip", "snappy", "lz4", "zstd"] = Field(
        default="snappy",
        description="Compression algorithm",
    )

    publisher_linger_ms: int = Field(
        default=10,
        ge=0,
        le=1000,
        description="Time to wait for batching messages (milliseconds)",
    )

    flush_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        le=300,
        description="How long flush and close wait for delivery reports",
    )

    # === LOGGING ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    log_format: Literal["json", "text"] = Field(
        default="json",
        description="Log output format (json for production, text for development)",
    )

    def get_kafka_config(self) -> dict:
        """Get the confluent-kafka Producer configuration dictionary."""
        return {
            "bootstrap.servers": self.kafka_bootstrap_servers,
            "client.id": self.publisher_client_id,
            "enable.idempotence": self.enable_idempotence,
            "acks": "all",
            "compression.type": self.publisher_compression,
            "linger.ms": self.publisher_linger_ms,
        }


def load_config() -> PublisherConfig:
    """Load and validate publisher configuration."""
    return PublisherConfig()
