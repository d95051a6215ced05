import os
from datetime import datetime, timezone

# Point the application at throwaway backends before any app module is imported.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["REVALIDATION_ASYNC"] = "false"
os.environ.pop("REVALIDATION_SECRET", None)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import app.db.models  # noqa: F401  (registers tables on Base.metadata)
from app.db.base import Base
from app.utils.row_validator import RawRow


class FakeRepository:
    """In-memory stand-in for ``SqlAlchemyImportRepository``."""

    def __init__(self, catalogs=None, existing_slugs=None):
        self.catalogs = list(catalogs or [])
        self.existing_slugs = set(existing_slugs or [])
        self.jobs: dict[str, dict] = {}
        self.updates: list[tuple[str, dict]] = []
        self.insert_calls: list[list] = []
        self.reference_loads = 0
        self.fail_reference = False
        self.fail_insert = False
        self.fail_create = False
        self.failing_finalize_writes = 0
        self.failing_checkpoint_writes = 0

    def load_catalogs(self, level):
        self.reference_loads += 1
        if self.fail_reference:
            raise RuntimeError("database unavailable")
        return list(self.catalogs)

    def load_existing_slugs(self):
        return set(self.existing_slugs)

    def create_job(self, **fields):
        if self.fail_create:
            raise RuntimeError("database unavailable")
        job_id = f"job-{len(self.jobs) + 1}"
        created_at = datetime(2024, 1, 1, tzinfo=timezone.utc)
        self.jobs[job_id] = {**fields, "id": job_id, "created_at": created_at}
        return job_id, created_at

    def update_job(self, job_id, **fields):
        self.updates.append((job_id, dict(fields)))
        if fields.get("status") == "completed" and self.failing_finalize_writes:
            self.failing_finalize_writes -= 1
            raise RuntimeError("connection reset")
        if set(fields) == {"processed_rows"} and self.failing_checkpoint_writes:
            self.failing_checkpoint_writes -= 1
            raise RuntimeError("connection reset")
        self.jobs[job_id].update(fields)

    def insert_products(self, candidates, created_by=None):
        self.insert_calls.append(list(candidates))
        if self.fail_insert:
            raise RuntimeError("duplicate key value violates unique constraint")
        return len(candidates)

    def checkpoints(self, job_id):
        return [
            fields["processed_rows"]
            for update_job_id, fields in self.updates
            if update_job_id == job_id and set(fields) == {"processed_rows"}
        ]


def product_cells(slug="oak-chair", **overrides):
    cells = {
        "name": "Oak Chair",
        "slug": slug,
        "base_price": "49.90",
        "is_active": "true",
    }
    cells.update(overrides)
    return cells


def make_row(slug="oak-chair", **overrides) -> RawRow:
    return RawRow.from_cells(product_cells(slug, **overrides))


@pytest.fixture
def fake_repository():
    return FakeRepository(catalogs=[("Chairs", "cat-chairs"), ("Tables", "cat-tables")])


@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(bind=db_engine, autoflush=False, autocommit=False)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def published_progress():
    return []


@pytest.fixture
def catalog_notifications():
    return []


@pytest.fixture
def client(session_factory, published_progress, catalog_notifications):
    """TestClient wired to the SQLite session and recording side effects."""
    from app.api.dependencies.db import get_session
    from app.api.dependencies.imports import (
        get_catalog_change_notifier,
        get_progress_publisher,
        get_progress_reader,
    )
    from app.main import app

    def override_session():
        session = session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def publish(job_id, progress, message=None, **kwargs):
        published_progress.append((job_id, progress, message, kwargs))

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_progress_publisher] = lambda: publish
    app.dependency_overrides[get_progress_reader] = lambda: (lambda job_id: {})
    app.dependency_overrides[get_catalog_change_notifier] = (
        lambda: catalog_notifications.append
    )
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def row_factory():
    return make_row


@pytest.fixture
def cells_factory():
    return product_cells


@pytest.fixture
def repository_factory():
    return FakeRepository
