"""
Mock Product Traffic Generator

Generates a reproducible stream of product operations for demos and load runs
of the reconciler.

DATA GENERATION STRATEGY:
1. Fixed pool of grocery product names (the natural keys)
2. Faker supplies brands and expiry dates
3. Each step picks a product and an operation that fits what has been
   published so far: CREATE for unseen products, mostly UPDATE afterwards,
   occasional DELETE
4. A small share of UPDATEs target products that were never created, to
   exercise the reconciler's update-on-missing fallback

Same seed → same sequence of (operation, product) pairs.
"""

import random
from datetime import date, timedelta
from typing import Iterator, List, Set, Tuple

from faker import Faker

from src.reconciler.codec import OperationKind, Product

RANDOM_SEED = 42

# Expiry dates are offsets from a fixed day so a seed replays identically on any day
BASE_DATE = date(2025, 1, 1)

PRODUCT_NAMES = [
    "milk", "bread", "eggs", "butter", "cheese", "yogurt", "apples", "bananas",
    "rice", "pasta", "coffee", "tea", "orange juice", "cereal", "chicken",
    "tomatoes", "potatoes", "onions", "flour", "sugar",
]


class MockProductGenerator:
    """
    Generates product operation envelopes.

    Attributes:
        names: Product name pool
        live: Names currently believed to exist downstream
    """

    def __init__(
        self,
        seed: int = RANDOM_SEED,
        num_products: int = len(PRODUCT_NAMES),
        delete_ratio: float = 0.15,
        missing_update_ratio: float = 0.05,
    ):
        if not 1 <= num_products <= len(PRODUCT_NAMES):
            raise ValueError(f"num_products must be between 1 and {len(PRODUCT_NAMES)}")

        self.seed = seed
        self.random = random.Random(seed)
        self.fake = Faker()
        self.fake.seed_instance(seed)

        self.names: List[str] = PRODUCT_NAMES[:num_products]
        self.delete_ratio = delete_ratio
        self.missing_update_ratio = missing_update_ratio
        self.live: Set[str] = set()

    def generate_product(self, name: str) -> Product:
        """Random payload for ``name``: a brand and an expiry within 90 days of BASE_DATE."""
        expired = BASE_DATE + timedelta(days=self.random.randint(1, 90))
        return Product(name=name, expired=expired.isoformat(), brand=self.fake.company())

    def next_operation(self) -> Tuple[str, Product]:
        """Pick the next (operation, product) pair."""
        name = self.random.choice(self.names)

        if name not in self.live:
            if self.random.random() < self.missing_update_ratio:
                operation = OperationKind.UPDATE
            else:
                operation = OperationKind.CREATE
            self.live.add(name)
            return operation.value, self.generate_product(name)

        if self.random.random() < self.delete_ratio:
            self.live.discard(name)
            return OperationKind.DELETE.value, Product(name=name)

        return OperationKind.UPDATE.value, self.generate_product(name)

    def generate(self, count: int) -> Iterator[Tuple[str, Product]]:
        """Yield ``count`` operations."""
        for _ in range(count):
            yield self.next_operation()
