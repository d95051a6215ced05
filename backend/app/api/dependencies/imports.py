"""Dependencies wiring the product import pipeline into request handlers."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from app.api.dependencies.db import get_session
from app.services.catalog_events import notify_storefront
from app.services.import_repository import SqlAlchemyImportRepository
from app.services.product_import import ProductImportService
from app.services.progress_tracker import fetch_progress, publish_progress


def get_actor_id(x_user_id: str | None = Header(default=None)) -> str:
    """Acting user id, forwarded by the authenticating gateway."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return x_user_id.strip()


def get_progress_publisher() -> Callable[..., None]:
    return publish_progress


def get_progress_reader() -> Callable[[str], dict[str, Any]]:
    return fetch_progress


def get_catalog_change_notifier() -> Callable[[list[str]], None]:
    return notify_storefront


def get_import_repository(db: Session = Depends(get_session)) -> SqlAlchemyImportRepository:
    return SqlAlchemyImportRepository(db)


def get_import_service(
    repository: SqlAlchemyImportRepository = Depends(get_import_repository),
    progress_publisher: Callable[..., None] = Depends(get_progress_publisher),
    notifier: Callable[[list[str]], None] = Depends(get_catalog_change_notifier),
) -> ProductImportService:
    return ProductImportService(
        repository,
        progress_publisher=progress_publisher,
        on_catalog_changed=notifier,
    )
