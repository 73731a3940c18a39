"""
Command-Line Entry Point

Usage:
    sales-star run --source data/raw/sales.csv
    sales-star run --source data/raw/sales.parquet --format parquet --warehouse data/warehouse
    sales-star generate --rows 10000 --output data/raw/sales.csv
"""

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

import structlog

from sales_star.config import get_settings
from sales_star.config.logging import configure_logging
from sales_star.data.generators import SalesRecordGenerator
from sales_star.exceptions import SourceUnavailable, StorageError
from sales_star.ingestion.sources import FileFormat, FileSource
from sales_star.pipeline import PipelineCoordinator
from sales_star.storage.store import InMemoryStore, ParquetStore

logger = structlog.get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(prog="sales-star", description="Sales star-schema ETL")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="Run the pipeline over one raw file")
    run.add_argument("--source", required=True, help="Raw sales file")
    run.add_argument(
        "--format",
        default=settings.data_lake.default_format,
        choices=[f.value for f in FileFormat],
        help="Raw file format",
    )
    run.add_argument(
        "--warehouse",
        default=settings.data_lake.warehouse_path,
        help="Directory for published Parquet datasets",
    )
    run.add_argument(
        "--backend",
        default=settings.pipeline.store_backend,
        choices=["parquet", "memory"],
        help="Dataset store backend",
    )
    run.add_argument("--workers", type=int, default=None, help="Fact resolution workers")

    generate = subparsers.add_parser("generate", help="Write synthetic raw sales records")
    generate.add_argument("--rows", type=int, default=10000, help="Number of records")
    generate.add_argument("--output", required=True, help="Output CSV path")
    generate.add_argument("--seed", type=int, default=42, help="Random seed")
    generate.add_argument("--null-quantity-rate", type=float, default=0.01)

    return parser


def _run(args: argparse.Namespace) -> int:
    store = ParquetStore(args.warehouse) if args.backend == "parquet" else InMemoryStore()
    coordinator = PipelineCoordinator(store, max_workers=args.workers)

    try:
        result = coordinator.run_sync(FileSource(args.source, FileFormat(args.format)))
    except (SourceUnavailable, StorageError) as e:
        logger.error("Pipeline run failed", error=str(e))
        print(json.dumps({"status": "failed", "error": str(e)}))
        return 1

    print(json.dumps(result.to_dict(), indent=2, default=str))
    return 0


def _generate(args: argparse.Namespace) -> int:
    output = Path(args.output)
    output.parent.mkdir(parents=True, exist_ok=True)

    generator = SalesRecordGenerator(seed=args.seed)
    df = generator.generate(args.rows, null_quantity_rate=args.null_quantity_rate)
    df.write_csv(output)

    logger.info("Synthetic sales written", path=str(output), rows=len(df))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    if args.command == "run":
        return _run(args)
    return _generate(args)


if __name__ == "__main__":
    sys.exit(main())
