"""Celery task for fire-and-forget storefront cache revalidation."""

from __future__ import annotations

import logging
from typing import Any

from app.services.storefront_revalidation import revalidate_storefront
from app.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, name="app.workers.tasks.revalidate_storefront")
def revalidate_storefront_task(self, tags: list[str]) -> dict[str, Any]:
    """Revalidate storefront cache tags outside the request that changed the data.

    The HTTP client already retries with backoff, so the task itself is not
    retried; a failure only means the storefront serves stale pages until
    its own cache expires.
    """
    try:
        result = revalidate_storefront(tags)
    except Exception as e:
        logger.error(f"Error revalidating storefront tags {tags}: {e}", exc_info=True)
        return {"success": False, "error": str(e), "attempts": 0, "revalidated": None}

    logger.info(
        f"Storefront revalidation task {self.request.id} finished: "
        f"success={result.get('success')}, attempts={result.get('attempts')}"
    )
    return result
