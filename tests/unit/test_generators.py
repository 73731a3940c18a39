"""
Unit Tests - Synthetic Data Generator
"""
import polars as pl

from sales_star.data.generators import SalesRecordGenerator
from sales_star.schema import RAW_SALES_SCHEMA


class TestSalesRecordGenerator:
    """Tests for SalesRecordGenerator"""

    def test_schema_and_size(self):
        """Test generated frames conform to the raw schema"""
        df = SalesRecordGenerator(seed=1).generate(50)

        assert df.schema == pl.Schema(RAW_SALES_SCHEMA)
        assert df.height == 50
        assert df["order_id"].to_list() == list(range(1, 51))
        assert df["quantity"].null_count() == 0

    def test_deterministic_by_seed(self):
        """Test the same seed yields the same batch"""
        first = SalesRecordGenerator(seed=3).generate(20)
        second = SalesRecordGenerator(seed=3).generate(20)

        assert first.equals(second)

    def test_null_quantity_rate(self):
        """Test null quantity injection"""
        df = SalesRecordGenerator(seed=2).generate(30, null_quantity_rate=1.0)

        assert df["quantity"].null_count() == 30

    def test_renamed_customers(self):
        """Test renamed customers keep their id but change name"""
        df = SalesRecordGenerator(seed=4, n_customers=5).generate(100, renamed_customer_rate=0.5)

        names_per_customer = df.group_by("customer_id").agg(pl.col("customer_name").n_unique())
        assert names_per_customer["customer_name"].max() > 1

    def test_consistent_totals(self):
        """Test totals equal quantity times price by default"""
        df = SalesRecordGenerator(seed=5).generate(25)

        expected = df["quantity"].cast(pl.Float64) * df["unit_price"].cast(pl.Float64)
        assert ((df["total_amount"].cast(pl.Float64) - expected).abs() < 0.005).all()

    def test_empty(self):
        """Test zero rows"""
        df = SalesRecordGenerator().generate(0, first_order_id=100)

        assert df.height == 0
        assert df.schema == pl.Schema(RAW_SALES_SCHEMA)
