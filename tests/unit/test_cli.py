"""
Unit Tests - Command-Line Entry Point
"""
import json
import os

import polars as pl

from sales_star.main import main
from sales_star.schema import FACT_DATASET, STAGING_DATASET
from sales_star.storage.store import ParquetStore


def test_generate_then_run(tmp_path, capsys):
    """Test a generated file runs through to a published warehouse"""
    raw = tmp_path / "raw" / "sales.csv"
    warehouse = tmp_path / "warehouse"

    assert main(["generate", "--rows", "120", "--output", str(raw), "--seed", "11"]) == 0
    assert pl.read_csv(raw).height == 120
    capsys.readouterr()

    code = main([
        "run",
        "--source", str(raw),
        "--format", "csv",
        "--warehouse", str(warehouse),
        "--backend", "parquet",
        "--workers", "2",
    ])

    assert code == 0
    summary = json.loads(capsys.readouterr().out)
    assert summary["status"] == "succeeded"
    assert summary["staged_count"] == 120

    store = ParquetStore(warehouse)
    assert store.read_all(STAGING_DATASET).height == 120
    assert store.read_all(FACT_DATASET).height == summary["fact_count"]
    assert store.exists("dim_customers")


def test_run_missing_source(tmp_path, capsys):
    """Test an unavailable source exits non-zero"""
    code = main([
        "run",
        "--source", str(tmp_path / "missing.csv"),
        "--warehouse", str(tmp_path / "warehouse"),
    ])

    assert code == 1
    summary = json.loads(capsys.readouterr().out)
    assert summary["status"] == "failed"
    assert not ParquetStore(tmp_path / "warehouse").exists(FACT_DATASET)


def test_run_storage_failure(tmp_path, capsys, monkeypatch):
    """Test a warehouse that cannot be written exits non-zero without a traceback"""
    raw = tmp_path / "sales.csv"
    assert main(["generate", "--rows", "20", "--output", str(raw)]) == 0
    capsys.readouterr()

    def broken_replace(src, dst):
        raise OSError("read-only file system")

    monkeypatch.setattr(os, "replace", broken_replace)

    code = main(["run", "--source", str(raw), "--warehouse", str(tmp_path / "warehouse")])

    monkeypatch.undo()
    assert code == 1
    assert json.loads(capsys.readouterr().out)["status"] == "failed"
    assert ParquetStore(tmp_path / "warehouse").datasets() == []
