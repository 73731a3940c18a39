"""
Record Schemas

Polars schemas for the raw, staged and fact datasets, plus the pydantic model
used to validate individual raw records supplied as Python objects.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

import polars as pl
from pydantic import BaseModel, ConfigDict

MONEY = pl.Decimal(precision=18, scale=2)

RAW_SALES_SCHEMA: Dict[str, pl.DataType] = {
    "order_id": pl.Int64,
    "order_date": pl.Date,
    "customer_id": pl.Int64,
    "customer_name": pl.Utf8,
    "customer_email": pl.Utf8,
    "product_id": pl.Int64,
    "product_name": pl.Utf8,
    "region_id": pl.Int64,
    "region_name": pl.Utf8,
    "country": pl.Utf8,
    "quantity": pl.Int64,
    "unit_price": MONEY,
    "total_amount": MONEY,
}

FACT_SCHEMA: Dict[str, pl.DataType] = {
    "order_id": pl.Int64,
    "quantity": pl.Int64,
    "unit_price": MONEY,
    "total": MONEY,
    "customer_key": pl.Int64,
    "product_key": pl.Int64,
    "date_key": pl.Int64,
    "region_key": pl.Int64,
}

# Dataset names in the store
STAGING_DATASET = "staging_sales"
FACT_DATASET = "fact_sales"


class SalesRecord(BaseModel):
    """One raw sales transaction as delivered by the source system"""

    model_config = ConfigDict(frozen=True)

    order_id: int
    order_date: date
    customer_id: Optional[int] = None
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    product_id: Optional[int] = None
    product_name: Optional[str] = None
    region_id: Optional[int] = None
    region_name: Optional[str] = None
    country: Optional[str] = None
    quantity: Optional[int] = None
    unit_price: Optional[Decimal] = None
    total_amount: Optional[Decimal] = None


def records_to_frame(records: Iterable[Union[SalesRecord, Mapping[str, Any]]]) -> pl.DataFrame:
    """Validate records and build a frame conforming to RAW_SALES_SCHEMA"""
    rows: List[Dict[str, Any]] = []
    for record in records:
        if not isinstance(record, SalesRecord):
            record = SalesRecord.model_validate(record)
        rows.append(record.model_dump())
    if not rows:
        return pl.DataFrame(schema=RAW_SALES_SCHEMA)
    return pl.from_dicts(rows, schema=RAW_SALES_SCHEMA)


def conform_to_schema(df: pl.DataFrame, schema: Mapping[str, pl.DataType]) -> pl.DataFrame:
    """
    Select and cast the schema's columns in schema order.

    Extra columns are dropped. Values are cast, never rewritten.

    Raises:
        ValueError: If required columns are missing
    """
    missing = [column for column in schema if column not in df.columns]
    if missing:
        raise ValueError(f"Missing columns: {missing}")

    expressions = []
    for column, dtype in schema.items():
        expr = pl.col(column)
        if df.schema[column] == pl.Utf8 and dtype == pl.Date:
            expr = expr.str.to_date("%Y-%m-%d")
        expressions.append(expr.cast(dtype).alias(column))

    return df.select(expressions)
