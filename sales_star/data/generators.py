"""
Synthetic Sales Data Generator

Generates raw sales records for development runs and tests. Records draw
customers, products and regions from fixed pools, so dimensions dedupe
realistically. Optional rates inject null quantities, customers whose name
differs between orders, and inconsistent totals.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import List, Optional, Tuple

import numpy as np
import polars as pl
from faker import Faker

from sales_star.schema import RAW_SALES_SCHEMA

REGIONS: List[Tuple[str, str]] = [
    ("North America East", "US"),
    ("North America West", "US"),
    ("Western Europe", "DE"),
    ("Northern Europe", "SE"),
    ("United Kingdom", "UK"),
    ("Asia Pacific", "AU"),
]


class SalesRecordGenerator:
    """
    Generate realistic raw sales records.

    Example:
        generator = SalesRecordGenerator(seed=7)
        df = generator.generate(1000, null_quantity_rate=0.02)
    """

    def __init__(
        self,
        seed: int = 42,
        n_customers: int = 200,
        n_products: int = 50,
        start_date: Optional[date] = None,
        days: int = 90,
    ):
        self.rng = np.random.default_rng(seed)
        self.fake = Faker()
        self.fake.seed_instance(seed)
        self.start_date = start_date or date(2024, 1, 1)
        self.days = days

        self.customers = [
            (i + 1, self.fake.name(), self.fake.email())
            for i in range(n_customers)
        ]
        self.products = [
            (i + 1, f"{self.fake.word().title()} {self.fake.word().title()}", Decimal(str(round(float(self.rng.uniform(5, 500)), 2))))
            for i in range(n_products)
        ]
        self.regions = [(i + 1, name, country) for i, (name, country) in enumerate(REGIONS)]

    def generate(
        self,
        n: int = 1000,
        null_quantity_rate: float = 0.0,
        renamed_customer_rate: float = 0.0,
        inconsistent_total_rate: float = 0.0,
        first_order_id: int = 1,
    ) -> pl.DataFrame:
        """
        Generate ``n`` raw sales records conforming to RAW_SALES_SCHEMA.

        Args:
            n: Number of records
            null_quantity_rate: Share of records with a null quantity
            renamed_customer_rate: Share of records carrying an altered customer name
            inconsistent_total_rate: Share of records whose total is off by one unit
            first_order_id: First order_id; ids are consecutive
        """
        customer_idx = self.rng.integers(0, len(self.customers), n)
        product_idx = self.rng.integers(0, len(self.products), n)
        region_idx = self.rng.integers(0, len(self.regions), n)
        day_offsets = self.rng.integers(0, self.days, n)
        quantities = self.rng.integers(1, 10, n)
        null_quantity = self.rng.random(n) < null_quantity_rate
        renamed = self.rng.random(n) < renamed_customer_rate
        inconsistent = self.rng.random(n) < inconsistent_total_rate

        rows = []
        for i in range(n):
            customer_id, customer_name, customer_email = self.customers[customer_idx[i]]
            product_id, product_name, unit_price = self.products[product_idx[i]]
            region_id, region_name, country = self.regions[region_idx[i]]
            quantity = int(quantities[i])

            total = unit_price * quantity
            if inconsistent[i]:
                total += Decimal("1.00")

            rows.append({
                "order_id": first_order_id + i,
                "order_date": self.start_date + timedelta(days=int(day_offsets[i])),
                "customer_id": customer_id,
                "customer_name": f"{customer_name} Jr." if renamed[i] else customer_name,
                "customer_email": customer_email,
                "product_id": product_id,
                "product_name": product_name,
                "region_id": region_id,
                "region_name": region_name,
                "country": country,
                "quantity": None if null_quantity[i] else quantity,
                "unit_price": unit_price,
                "total_amount": total,
            })

        if not rows:
            return pl.DataFrame(schema=RAW_SALES_SCHEMA)
        return pl.from_dicts(rows, schema=RAW_SALES_SCHEMA)
