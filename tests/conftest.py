"""
Test Suite Configuration
"""
from datetime import date
from decimal import Decimal
from typing import Any, Callable, Dict, List

import polars as pl
import pytest

from sales_star.config import Settings
from sales_star.schema import records_to_frame
from sales_star.storage.store import InMemoryStore

CUSTOMERS = {
    1: ("Alice Martin", "alice@example.com"),
    2: ("Bob Stone", "bob@example.com"),
    3: ("Carol King", "carol@example.com"),
}
PRODUCTS = {1: "Wireless Mouse", 2: "USB Keyboard"}
REGIONS = {1: ("North America East", "US"), 2: ("Western Europe", "DE")}


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Create test settings"""
    return Settings(
        app_env="testing",
        debug=True,
    )


@pytest.fixture
def make_record() -> Callable[..., Dict[str, Any]]:
    """Factory for raw sales record mappings; keyword overrides win"""
    def factory(order_id: int, /, **overrides: Any) -> Dict[str, Any]:
        customer_id = overrides.get("customer_id", order_id % 3 + 1)
        product_id = overrides.get("product_id", order_id % 2 + 1)
        region_id = overrides.get("region_id", order_id % 2 + 1)
        customer_name, customer_email = CUSTOMERS.get(customer_id, (f"Customer {customer_id}", f"c{customer_id}@example.com"))
        region_name, country = REGIONS.get(region_id, (f"Region {region_id}", "US"))

        record = {
            "order_id": order_id,
            "order_date": date(2024, 1, order_id % 3 + 1),
            "customer_id": customer_id,
            "customer_name": customer_name,
            "customer_email": customer_email,
            "product_id": product_id,
            "product_name": PRODUCTS.get(product_id, f"Product {product_id}"),
            "region_id": region_id,
            "region_name": region_name,
            "country": country,
            "quantity": 2,
            "unit_price": Decimal("10.00"),
            "total_amount": Decimal("20.00"),
        }
        record.update(overrides)
        return record

    return factory


@pytest.fixture
def sample_records(make_record) -> List[Dict[str, Any]]:
    """Ten raw sales records; order 10 has a null quantity"""
    records = [make_record(i) for i in range(1, 10)]
    records.append(make_record(10, quantity=None))
    return records


@pytest.fixture
def sample_sales_df(sample_records) -> pl.DataFrame:
    """Sample records as a raw sales frame"""
    return records_to_frame(sample_records)


@pytest.fixture
def memory_store() -> InMemoryStore:
    """Empty in-memory dataset store"""
    return InMemoryStore()
