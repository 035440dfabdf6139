"""
Envelope Publisher Package

Producer side of the product sync pipeline: turns product operations into
``{"operation": ..., "data": {...}}`` envelopes on the 'products' topic.

PACKAGE STRUCTURE:
- config.py: Publisher configuration from environment variables
- publisher.py: Kafka producer keyed by product name
- mock_data.py: Reproducible sample traffic
- main.py: CLI for single operations and simulated traffic
"""

from src.publisher.config import PublisherConfig, load_config
from src.publisher.mock_data import MockProductGenerator
from src.publisher.publisher import EnvelopePublisher

__version__ = "1.0.0"

__all__ = [
    "EnvelopePublisher",
    "MockProductGenerator",
    "PublisherConfig",
    "load_config",
]
