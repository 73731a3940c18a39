"""
Unit Tests - Pipeline Coordinator
"""
import os

import polars as pl
import pytest
from prometheus_client import REGISTRY

from sales_star.config import get_settings
from sales_star.data.generators import SalesRecordGenerator
from sales_star.exceptions import SourceUnavailable, StorageError
from sales_star.ingestion.sources import DatasetSource, FileSource, InMemorySource
from sales_star.pipeline import PipelineCoordinator, RunStatus
from sales_star.schema import FACT_DATASET, STAGING_DATASET
from sales_star.storage.store import InMemoryStore, ParquetStore
from sales_star.transformation.dimensions import STAR_DIMENSIONS


class FailingPublishStore(InMemoryStore):
    """Store that accepts staging writes but rejects the star schema publish"""

    def publish(self, datasets):
        if FACT_DATASET in datasets:
            raise StorageError("disk full")
        super().publish(datasets)


def generated_source(seed: int = 5, n: int = 300) -> InMemorySource:
    df = SalesRecordGenerator(seed=seed).generate(n, null_quantity_rate=0.1, renamed_customer_rate=0.05)
    return InMemorySource(df.to_dicts())


class TestPipelineScenarios:
    """End-to-end scenarios"""

    @pytest.mark.asyncio
    async def test_ten_records_one_null_quantity(self, memory_store, sample_records):
        """Test 10 staged records with one null quantity give 9 facts"""
        coordinator = PipelineCoordinator(memory_store)

        result = await coordinator.run(InMemorySource(sample_records))

        assert result.status == RunStatus.SUCCEEDED
        assert result.staged_count == 10
        assert result.filtered_count == 9
        assert result.fact_count == 9
        assert result.dropped_counts == {"not_null_quantity": 1}
        assert result.dimension_counts == {"customer": 3, "product": 2, "region": 2, "date": 3}
        assert result.unresolved_counts == {"customer": 0, "product": 0, "region": 0, "date": 0}
        assert not result.has_data_quality_issues

    @pytest.mark.asyncio
    async def test_published_datasets(self, memory_store, sample_records):
        """Test staging, dimensions and facts land in the store"""
        await PipelineCoordinator(memory_store).run(InMemorySource(sample_records))

        assert memory_store.datasets() == sorted(
            [STAGING_DATASET, FACT_DATASET] + [spec.table for spec in STAR_DIMENSIONS]
        )
        assert memory_store.read_all(STAGING_DATASET).height == 10
        assert memory_store.read_all(FACT_DATASET).height == 9
        assert memory_store.read_all("dim_customers").height == 3

    @pytest.mark.asyncio
    async def test_alice_alicia(self, memory_store, make_record):
        """Test one customer row for key 5 and facts use its surrogate"""
        records = [
            make_record(1, customer_id=5, customer_name="Alice"),
            make_record(2, customer_id=5, customer_name="Alicia"),
        ]

        result = await PipelineCoordinator(memory_store).run(InMemorySource(records))

        customers = memory_store.read_all("dim_customers")
        assert customers.height == 1
        assert customers["customer_name"].to_list() == ["Alice"]
        assert result.conflict_counts["customer"] == 1

        facts = memory_store.read_all(FACT_DATASET)
        assert facts["customer_key"].to_list() == [customers["customer_key"][0]] * 2

    @pytest.mark.asyncio
    async def test_missing_region_reference(self, memory_store, make_record):
        """Test a record without a region gets a null region key"""
        records = [make_record(1), make_record(2, region_id=None)]

        result = await PipelineCoordinator(memory_store).run(InMemorySource(records))

        assert result.unresolved_counts["region"] == 1
        assert result.null_key_counts["region"] == 1
        assert result.fact_count == 2
        assert len(result.unresolved_samples) == 1

        facts = memory_store.read_all(FACT_DATASET)
        assert facts.filter(pl.col("order_id") == 2)["region_key"].to_list() == [None]

    @pytest.mark.asyncio
    async def test_empty_source(self, memory_store):
        """Test an empty batch publishes empty tables"""
        result = await PipelineCoordinator(memory_store).run(InMemorySource([]))

        assert result.status == RunStatus.SUCCEEDED
        assert result.staged_count == 0
        assert result.fact_count == 0
        assert all(count == 0 for count in result.dimension_counts.values())
        assert memory_store.read_all(FACT_DATASET).height == 0


class TestPipelineProperties:
    """Invariants over generated batches"""

    @pytest.mark.asyncio
    async def test_counts_and_measures(self, memory_store):
        """Test count relations and unchanged measures"""
        result = await PipelineCoordinator(memory_store, chunk_size=40, max_workers=3).run(generated_source())

        staged = memory_store.read_all(STAGING_DATASET)
        facts = memory_store.read_all(FACT_DATASET)

        null_quantity = staged["quantity"].null_count()
        assert result.filtered_count <= result.staged_count
        assert result.staged_count - result.filtered_count == null_quantity
        assert result.fact_count == result.filtered_count

        joined = facts.join(staged, on="order_id", how="inner")
        assert joined.height == facts.height
        assert (joined["quantity"] == joined["quantity_right"]).all()
        assert (joined["unit_price"] == joined["unit_price_right"]).all()
        assert (joined["total"] == joined["total_amount"]).all()

    @pytest.mark.asyncio
    async def test_idempotent_rebuild(self):
        """Test two runs over the same source agree on keys and counts"""
        first_store, second_store = InMemoryStore(), InMemoryStore()

        first = await PipelineCoordinator(first_store).run(generated_source(seed=9))
        second = await PipelineCoordinator(second_store, parallel_dimensions=False).run(generated_source(seed=9))

        assert first.fact_count == second.fact_count
        assert first.dimension_counts == second.dimension_counts
        for spec in STAR_DIMENSIONS:
            a = first_store.read_all(spec.table)
            b = second_store.read_all(spec.table)
            assert set(a.select(list(spec.business_key)).iter_rows()) == set(b.select(list(spec.business_key)).iter_rows())
            assert b[spec.surrogate_key].n_unique() == b.height

    @pytest.mark.asyncio
    async def test_rerun_replaces_outputs(self, memory_store, make_record):
        """Test a second run fully replaces the previous facts"""
        coordinator = PipelineCoordinator(memory_store)
        await coordinator.run(InMemorySource([make_record(i) for i in range(1, 6)]))
        await coordinator.run(InMemorySource([make_record(i) for i in range(1, 3)]))

        assert memory_store.read_all(FACT_DATASET).height == 2
        assert memory_store.read_all(STAGING_DATASET).height == 2

    @pytest.mark.asyncio
    async def test_reprocess_from_staging(self, memory_store, sample_records):
        """Test the staging snapshot can feed a new run"""
        coordinator = PipelineCoordinator(memory_store)
        first = await coordinator.run(InMemorySource(sample_records))

        second = await coordinator.run(DatasetSource(memory_store, STAGING_DATASET))

        assert second.staged_count == first.staged_count
        assert second.fact_count == first.fact_count


class TestPipelineFailures:
    """Fatal collaborator failures"""

    @pytest.mark.asyncio
    async def test_source_unavailable_keeps_previous_outputs(self, memory_store, sample_records, tmp_path):
        """Test an unreadable source aborts the run without publishing"""
        coordinator = PipelineCoordinator(memory_store)
        await coordinator.run(InMemorySource(sample_records))

        with pytest.raises(SourceUnavailable):
            await coordinator.run(FileSource(tmp_path / "missing.csv"))

        assert memory_store.read_all(FACT_DATASET).height == 9
        assert memory_store.read_all(STAGING_DATASET).height == 10

    @pytest.mark.asyncio
    async def test_publish_failure_keeps_previous_star_schema(self, sample_records, make_record):
        """Test a failed publish leaves no half-written star schema"""
        store = FailingPublishStore()
        InMemoryStore.publish(store, {FACT_DATASET: pl.DataFrame({"order_id": [1]})})

        with pytest.raises(StorageError):
            await PipelineCoordinator(store).run(InMemorySource(sample_records))

        assert store.read_all(FACT_DATASET).height == 1
        assert not store.exists("dim_customers")

    @pytest.mark.asyncio
    async def test_parquet_swap_failure_keeps_previous_star_schema(self, tmp_path, sample_records, make_record, monkeypatch):
        """Test a failed manifest swap leaves every published table on the previous run"""
        store = ParquetStore(tmp_path)
        coordinator = PipelineCoordinator(store)
        await coordinator.run(InMemorySource(sample_records))
        previous = {name: store.read_all(name) for name in store.datasets()}

        real_replace = os.replace
        calls = []

        def replace_then_fail(src, dst):
            calls.append(dst)
            if len(calls) > 1:
                raise OSError("rename failed")
            return real_replace(src, dst)

        monkeypatch.setattr(os, "replace", replace_then_fail)

        with pytest.raises(StorageError):
            await coordinator.run(InMemorySource([make_record(i, customer_id=7) for i in range(1, 4)]))

        monkeypatch.undo()
        for name in [FACT_DATASET] + [spec.table for spec in STAR_DIMENSIONS]:
            assert store.read_all(name).equals(previous[name])
        assert store.read_all(STAGING_DATASET).height == 3


class TestPipelineOptions:
    """Coordinator configuration"""

    @pytest.mark.asyncio
    async def test_validation_summary(self, memory_store, sample_records):
        """Test the staging profile is attached when enabled"""
        result = await PipelineCoordinator(memory_store, enable_validation=True).run(InMemorySource(sample_records))

        assert result.validation["status"] == "passed"
        assert result.validation["failures"] == {"not_null_quantity": 1}

    @pytest.mark.asyncio
    async def test_validation_disabled(self, memory_store, sample_records):
        """Test no profile when validation is disabled"""
        result = await PipelineCoordinator(memory_store, enable_validation=False).run(InMemorySource(sample_records))

        assert result.validation is None

    def test_run_sync(self, memory_store, sample_records):
        """Test the synchronous wrapper"""
        result = PipelineCoordinator(memory_store).run_sync(InMemorySource(sample_records))

        assert result.fact_count == 9
        summary = result.to_dict()
        assert summary["status"] == "succeeded"
        assert summary["dimension_counts"]["date"] == 3


def sample_value(name: str, **labels) -> float:
    return REGISTRY.get_sample_value(name, labels) or 0.0


class TestPipelineMetrics:
    """Prometheus collectors"""

    @pytest.mark.asyncio
    async def test_counters_updated(self, memory_store, make_record, monkeypatch):
        """Test runs, rows and unresolved references are counted"""
        monkeypatch.setattr(get_settings().monitoring, "enable_metrics", True)
        runs = sample_value("sales_star_pipeline_runs_total", status="succeeded")
        unresolved = sample_value("sales_star_unresolved_references_total", dimension="region")

        records = [make_record(1), make_record(2, region_id=None)]
        await PipelineCoordinator(memory_store).run(InMemorySource(records))

        assert sample_value("sales_star_pipeline_runs_total", status="succeeded") == runs + 1
        assert sample_value("sales_star_unresolved_references_total", dimension="region") == unresolved + 1

    @pytest.mark.asyncio
    async def test_counters_untouched_when_disabled(self, memory_store, make_record, monkeypatch):
        """Test no collector moves with metrics switched off"""
        monkeypatch.setattr(get_settings().monitoring, "enable_metrics", False)
        runs = sample_value("sales_star_pipeline_runs_total", status="succeeded")
        facts = sample_value("sales_star_rows_processed_total", stage="facts")
        unresolved = sample_value("sales_star_unresolved_references_total", dimension="region")
        conflicts = sample_value("sales_star_dimension_key_conflicts_total", dimension="customer")

        records = [
            make_record(1, customer_id=5, customer_name="Alice"),
            make_record(2, customer_id=5, customer_name="Alicia", region_id=None),
        ]
        result = await PipelineCoordinator(memory_store).run(InMemorySource(records))

        assert result.conflict_counts["customer"] == 1
        assert result.unresolved_counts["region"] == 1
        assert sample_value("sales_star_pipeline_runs_total", status="succeeded") == runs
        assert sample_value("sales_star_rows_processed_total", stage="facts") == facts
        assert sample_value("sales_star_unresolved_references_total", dimension="region") == unresolved
        assert sample_value("sales_star_dimension_key_conflicts_total", dimension="customer") == conflicts
