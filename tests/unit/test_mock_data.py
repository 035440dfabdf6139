"""
Unit Tests for Mock Product Traffic

TEST STRATEGY:
- Same seed → same sequence
- Operations are plausible given what was published before
"""

from datetime import date, timedelta

import pytest

from src.publisher.mock_data import BASE_DATE, PRODUCT_NAMES, MockProductGenerator


def as_tuples(operations):
    return [(op, product.to_document_data()) for op, product in operations]


@pytest.mark.unit
def test_seed_reproducibility():
    first = as_tuples(MockProductGenerator(seed=42).generate(50))
    second = as_tuples(MockProductGenerator(seed=42).generate(50))

    assert first == second


@pytest.mark.unit
def test_different_seeds_differ():
    first = as_tuples(MockProductGenerator(seed=1).generate(50))
    second = as_tuples(MockProductGenerator(seed=2).generate(50))

    assert first != second


@pytest.mark.unit
def test_generated_product_structure():
    product = MockProductGenerator().generate_product("milk")
    data = product.to_document_data()

    assert set(data) == {"name", "expired", "brand"}
    assert data["name"] == "milk"
    assert len(data["expired"]) == 10  # YYYY-MM-DD
    assert data["brand"]


@pytest.mark.unit
def test_first_operation_per_product_is_never_delete():
    seen = set()
    for operation, product in MockProductGenerator(seed=3).generate(200):
        if product.name not in seen:
            assert operation in ("CREATE", "UPDATE")
            seen.add(product.name)


@pytest.mark.unit
def test_delete_payload_carries_only_name():
    deletes = [
        product for operation, product in MockProductGenerator(seed=5).generate(300)
        if operation == "DELETE"
    ]

    assert deletes
    assert all(p.to_document_data() == {"name": p.name} for p in deletes)


@pytest.mark.unit
def test_num_products_limits_pool():
    names = {p.name for _, p in MockProductGenerator(num_products=3).generate(100)}

    assert names <= set(PRODUCT_NAMES[:3])


@pytest.mark.unit
@pytest.mark.parametrize("num_products", [0, len(PRODUCT_NAMES) + 1])
def test_num_products_out_of_range(num_products):
    with pytest.raises(ValueError):
        MockProductGenerator(num_products=num_products)


@pytest.mark.unit
def test_expiry_dates_do_not_depend_on_current_day(monkeypatch):
    first = as_tuples(MockProductGenerator(seed=42).generate(20))

    class LaterDate(date):
        @classmethod
        def today(cls):
            return cls(2031, 6, 15)

    monkeypatch.setattr("src.publisher.mock_data.date", LaterDate)
    second = as_tuples(MockProductGenerator(seed=42).generate(20))

    assert first == second


@pytest.mark.unit
def test_expiry_dates_within_window():
    for _, product in MockProductGenerator(seed=9).generate(100):
        if product.expired is not None:
            expired = date.fromisoformat(product.expired)
            assert BASE_DATE < expired <= BASE_DATE + timedelta(days=90)
