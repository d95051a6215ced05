from decimal import Decimal

import pytest

from app.core.exceptions import (
    ImportCancelledError,
    ImportPipelineError,
    InputShapeError,
)
from app.services.product_import import (
    CancellationToken,
    ProductImportService,
    source_row_number,
)
from app.utils.row_validator import RawRow


def _service(repository, **kwargs):
    kwargs.setdefault("checkpoint_interval", 10)
    kwargs.setdefault("catalog_level", 2)
    kwargs.setdefault("finalize_attempts", 2)
    return ProductImportService(repository, **kwargs)


def test_source_row_number_skips_header():
    assert source_row_number(0) == 2
    assert source_row_number(9) == 11


def test_mixed_batch(fake_repository, row_factory):
    rows = [
        row_factory("oak-chair"),
        row_factory("pine-chair", name=None),
        row_factory("oak-chair", name="Oak Chair Copy"),
    ]

    result = _service(fake_repository).run(rows, created_by="user-1")

    assert (result.total_rows, result.success_count, result.error_count) == (3, 1, 2)
    assert [(e.row, e.field, e.message) for e in result.errors] == [
        (3, "name", "Name is required"),
        (4, "slug", 'Duplicate slug in import file: "oak-chair"'),
    ]
    job = fake_repository.jobs[result.job_id]
    assert job["status"] == "completed"
    assert job["success_count"] + job["error_count"] == job["total_rows"]
    assert [c.slug for c in fake_repository.insert_calls[0]] == ["oak-chair"]


def test_empty_input_creates_no_job(fake_repository):
    with pytest.raises(InputShapeError, match="No data rows"):
        _service(fake_repository).run([], created_by="user-1")
    assert fake_repository.jobs == {}
    assert fake_repository.insert_calls == []


def test_large_batch_uses_one_insert(fake_repository, row_factory):
    rows = [row_factory(f"product-{i}") for i in range(200)]

    result = _service(fake_repository, checkpoint_interval=7).run(rows, created_by=None)

    assert result.success_count == 200
    assert len(fake_repository.insert_calls) == 1
    assert len(fake_repository.insert_calls[0]) == 200
    assert fake_repository.jobs[result.job_id]["processed_rows"] == 200
    checkpoints = fake_repository.checkpoints(result.job_id)
    assert checkpoints == list(range(7, 200, 7))


def test_reference_data_loaded_once(fake_repository, row_factory):
    rows = [row_factory(f"p-{i}", catalog_name="Chairs") for i in range(25)]
    _service(fake_repository).run(rows, created_by=None)
    assert fake_repository.reference_loads == 1


def test_row_numbers_follow_source_order(fake_repository, row_factory):
    rows = [row_factory(f"p-{i}", name=None) for i in range(5)]

    result = _service(fake_repository).run(rows, created_by=None)

    assert [e.row for e in result.errors] == [2, 3, 4, 5, 6]
    assert result.success_count == 0
    assert fake_repository.insert_calls == []


def test_existing_slug_is_rejected(repository_factory, row_factory):
    repository = repository_factory(existing_slugs={"oak-chair"})

    result = _service(repository).run([row_factory("oak-chair")], created_by=None)

    assert result.error_count == 1
    assert result.errors[0].message == 'Slug already exists in database: "oak-chair"'


def test_catalog_resolution(fake_repository, row_factory):
    rows = [
        row_factory("a", catalog_name="chairs"),
        row_factory("b", catalog_name=""),
        row_factory("c", catalog_name="Sofas"),
    ]

    result = _service(fake_repository).run(rows, created_by=None)

    assert [(e.row, e.field, e.message) for e in result.errors] == [
        (4, "catalog_name", 'Catalog "Sofas" not found')
    ]
    inserted = {c.slug: c.catalog_id for c in fake_repository.insert_calls[0]}
    assert inserted == {"a": "cat-chairs", "b": None}


def test_slug_is_claimed_even_when_row_fails_later(fake_repository, row_factory):
    rows = [
        row_factory("lamp", catalog_name="Nowhere"),
        row_factory("lamp"),
    ]

    result = _service(fake_repository).run(rows, created_by=None)

    assert [e.field for e in result.errors] == ["catalog_name", "slug"]
    assert result.success_count == 0


def test_dimensions_are_assembled(fake_repository, row_factory):
    rows = [
        row_factory(
            "desk",
            dimensions_width="120",
            dimensions_height="75",
            dimensions_depth="60.5",
            dimensions_unit="cm",
        ),
        row_factory("stool"),
    ]

    _service(fake_repository).run(rows, created_by=None)

    desk, stool = fake_repository.insert_calls[0]
    assert desk.to_record()["dimensions"] == {
        "width": 120,
        "height": 75,
        "depth": 60.5,
        "unit": "cm",
    }
    assert desk.to_record()["base_price"] == Decimal("49.90")
    assert stool.dimensions is None


def test_partial_dimensions_counted_once(fake_repository, row_factory):
    row = row_factory("desk", dimensions_width="1", dimensions_height="2", dimensions_unit="cm")

    result = _service(fake_repository).run([row], created_by=None)

    assert result.error_count == 1
    assert [e.field for e in result.errors] == ["dimensions"]


def test_error_count_counts_rows_not_messages(fake_repository):
    row = RawRow.from_cells({"description": "nothing useful"})

    result = _service(fake_repository).run([row], created_by=None)

    assert result.error_count == 1
    assert len(result.errors) == 4


def test_reference_failure_fails_job(fake_repository, row_factory):
    fake_repository.fail_reference = True

    with pytest.raises(ImportPipelineError) as exc_info:
        _service(fake_repository).run([row_factory()], created_by=None)

    job = fake_repository.jobs[exc_info.value.job_id]
    assert job["status"] == "failed"
    assert "reference data" in job["error_message"]


def test_job_creation_failure(fake_repository, row_factory):
    fake_repository.fail_create = True
    with pytest.raises(ImportPipelineError) as exc_info:
        _service(fake_repository).run([row_factory()], created_by=None)
    assert exc_info.value.job_id is None


def test_insert_failure_fails_job(fake_repository, row_factory):
    fake_repository.fail_insert = True
    notified = []

    with pytest.raises(ImportPipelineError) as exc_info:
        _service(fake_repository, on_catalog_changed=notified.append).run(
            [row_factory("a"), row_factory("b")], created_by=None
        )

    job = fake_repository.jobs[exc_info.value.job_id]
    assert job["status"] == "failed"
    assert "Batch insert failed" in job["error_message"]
    assert notified == []


def test_finalize_is_retried(fake_repository, row_factory):
    fake_repository.failing_finalize_writes = 1

    result = _service(fake_repository).run([row_factory()], created_by=None)

    assert fake_repository.jobs[result.job_id]["status"] == "completed"
    final_writes = [f for _, f in fake_repository.updates if f.get("status") == "completed"]
    assert len(final_writes) == 2
    assert final_writes[0]["completed_at"] == final_writes[1]["completed_at"]


def test_finalize_gives_up_after_attempts(fake_repository, row_factory):
    fake_repository.failing_finalize_writes = 5

    with pytest.raises(ImportPipelineError) as exc_info:
        _service(fake_repository, finalize_attempts=2).run([row_factory()], created_by=None)

    assert fake_repository.jobs[exc_info.value.job_id]["status"] == "failed"


def test_cancelled_import_writes_nothing(fake_repository, row_factory):
    token = CancellationToken()
    token.cancel()

    with pytest.raises(ImportCancelledError) as exc_info:
        _service(fake_repository).run([row_factory()], created_by=None, cancel_token=token)

    assert fake_repository.insert_calls == []
    job = fake_repository.jobs[exc_info.value.job_id]
    assert job["status"] == "failed"
    assert job["error_message"] == "Import cancelled"


def test_deadline_cancels_import(fake_repository, row_factory):
    now = [0.0]
    token = CancellationToken(timeout_seconds=5, clock=lambda: now[0])
    assert not token.cancelled
    now[0] = 6.0

    with pytest.raises(ImportCancelledError, match="timed out"):
        _service(fake_repository).run([row_factory()], created_by=None, cancel_token=token)
    assert fake_repository.insert_calls == []


def test_catalog_change_is_signalled(fake_repository, row_factory):
    notified = []
    _service(fake_repository, on_catalog_changed=notified.append).run(
        [row_factory()], created_by=None
    )
    assert notified == [["products", "catalogs"]]


def test_signal_failure_does_not_fail_import(fake_repository, row_factory):
    def broken(tags):
        raise RuntimeError("broker down")

    result = _service(fake_repository, on_catalog_changed=broken).run(
        [row_factory()], created_by=None
    )
    assert fake_repository.jobs[result.job_id]["status"] == "completed"


def test_progress_snapshots_are_published(fake_repository, row_factory):
    snapshots = []

    def publish(job_id, progress, message=None, **kwargs):
        snapshots.append((progress, kwargs["status"]))

    rows = [row_factory(f"p-{i}") for i in range(20)]
    _service(fake_repository, progress_publisher=publish).run(rows, created_by=None)

    assert snapshots[0] == (0.0, "processing")
    assert (0.5, "processing") in snapshots
    assert snapshots[-1] == (1.0, "completed")


def test_oversized_dimension_is_a_row_error(db_session, row_factory):
    from app.db.models import Product
    from app.services.import_repository import SqlAlchemyImportRepository

    rows = [
        row_factory("good-one"),
        row_factory(
            "desk",
            dimensions_width="1e5000",
            dimensions_height="75",
            dimensions_depth="60",
            dimensions_unit="cm",
        ),
    ]

    result = _service(SqlAlchemyImportRepository(db_session)).run(rows, created_by=None)

    assert (result.success_count, result.error_count) == (1, 1)
    assert [(e.row, e.field) for e in result.errors] == [(3, "dimensions_width")]
    assert [p.slug for p in db_session.query(Product).all()] == ["good-one"]


def test_summary_log_counts_claimed_slugs(fake_repository, row_factory, caplog):
    rows = [row_factory("a"), row_factory("a"), row_factory("b", catalog_name="Nowhere")]

    with caplog.at_level("INFO", logger="app.services.product_import"):
        _service(fake_repository).run(rows, created_by=None)

    assert "2 slugs claimed" in caplog.text
