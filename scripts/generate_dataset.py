"""
Sales Dataset Generator
Writes synthetic raw sales records for local pipeline runs.
"""

import argparse
from pathlib import Path

from sales_star.data.generators import SalesRecordGenerator

OUTPUT_DIR = Path(__file__).parent.parent / "data" / "raw"


def main():
    parser = argparse.ArgumentParser(description="Generate raw sales records")
    parser.add_argument("--rows", type=int, default=100000)
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--null-quantity-rate", type=float, default=0.01)
    parser.add_argument("--renamed-customer-rate", type=float, default=0.005)
    parser.add_argument("--format", choices=["csv", "parquet"], default="csv")
    args = parser.parse_args()

    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)
    output = OUTPUT_DIR / f"sales.{args.format}"

    print(f"📊 Generating {args.rows:,} sales records...")
    generator = SalesRecordGenerator(seed=args.seed)
    df = generator.generate(
        args.rows,
        null_quantity_rate=args.null_quantity_rate,
        renamed_customer_rate=args.renamed_customer_rate,
    )

    if args.format == "csv":
        df.write_csv(output)
    else:
        df.write_parquet(output)

    size = output.stat().st_size / 1024 / 1024
    print(f"   ✅ {output.name}: {len(df):,} rows ({size:.2f} MB)")
    print(f"   null quantities: {df['quantity'].null_count():,}")


if __name__ == "__main__":
    main()
