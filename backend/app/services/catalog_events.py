"""Emit the "catalog/product data changed" signal consumed by storefront caches."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from app.core.config import get_settings
from app.services.storefront_revalidation import CATALOG_TAGS, revalidate_storefront

logger = logging.getLogger(__name__)


def notify_storefront(
    tags: Sequence[str] = CATALOG_TAGS,
    async_dispatch: bool | None = None,
) -> None:
    """Tell the storefront that cached views for ``tags`` are stale.

    Args:
        tags: Cache tags to revalidate (e.g. ["products", "catalogs"])
        async_dispatch: If True, enqueue a Celery task (fire-and-forget).
                        If False, call the storefront inline.
                        Defaults to the ``revalidation_async`` setting.
    """
    if async_dispatch is None:
        async_dispatch = get_settings().revalidation_async

    if async_dispatch:
        # Imported lazily so request handlers do not pull in the worker app.
        from app.workers.tasks.revalidate_storefront import revalidate_storefront_task

        revalidate_storefront_task.delay(list(tags))
        logger.debug(f"Enqueued storefront revalidation for tags {', '.join(tags)}")
        return

    result = revalidate_storefront(tags)
    if not result.get("success"):
        logger.warning(f"Storefront revalidation failed: {result.get('error')}")
