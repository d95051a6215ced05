"""Ask the storefront to drop cached catalog/product views after a mutation."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from typing import Any

import httpx

from app.core.config import get_settings

logger = logging.getLogger(__name__)

REVALIDATE_PATH = "/api/revalidate"
CATALOG_TAGS = ("products", "catalogs")


def _result(
    success: bool,
    attempts: int,
    *,
    revalidated: list[str] | None = None,
    error: str | None = None,
) -> dict[str, Any]:
    return {
        "success": success,
        "revalidated": revalidated,
        "error": error,
        "attempts": attempts,
    }


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = {}
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return f"HTTP {response.status_code}: {response.reason_phrase}"


def revalidate_storefront(
    tags: Sequence[str],
    *,
    transport: httpx.BaseTransport | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> dict[str, Any]:
    """POST the cache tags to the storefront revalidate endpoint.

    Retries with exponential backoff; authentication failures are not retried.

    Returns:
        Dictionary with:
            - success: Boolean indicating the storefront accepted the tags
            - revalidated: Tags the storefront reported as revalidated
            - error: Error message if failed
            - attempts: Number of HTTP attempts made
    """
    settings = get_settings()
    tags = [tag for tag in tags if tag and tag.strip()]

    if not settings.revalidation_secret:
        logger.warning("REVALIDATION_SECRET is not configured, skipping revalidation")
        return _result(False, 0, error="REVALIDATION_SECRET is not configured")
    if not tags:
        logger.warning("No tags provided, skipping revalidation")
        return _result(False, 0, error="No tags provided")

    url = f"{settings.storefront_url}{REVALIDATE_PATH}"
    headers = {
        "Content-Type": "application/json",
        "Authorization": f"Bearer {settings.revalidation_secret}",
    }
    max_attempts = max(1, settings.revalidation_max_retries)
    last_error = "Unknown error"

    with httpx.Client(
        timeout=settings.revalidation_timeout_seconds, transport=transport
    ) as client:
        for attempt in range(1, max_attempts + 1):
            logger.info(
                f"Revalidating storefront tags {', '.join(tags)} "
                f"(attempt {attempt}/{max_attempts})"
            )
            try:
                response = client.post(url, json={"tags": tags}, headers=headers)
            except httpx.TimeoutException:
                last_error = (
                    f"Request timeout after {settings.revalidation_timeout_seconds}s"
                )
                logger.warning(f"Revalidation attempt {attempt} timed out")
            except httpx.RequestError as e:
                last_error = f"Request failed: {e}"
                logger.warning(f"Revalidation attempt {attempt} error: {e}")
            else:
                if response.is_success:
                    try:
                        revalidated = response.json().get("revalidated") or tags
                    except ValueError:
                        revalidated = tags
                    logger.info(
                        f"Storefront revalidated tags {', '.join(revalidated)} "
                        f"(attempt {attempt})"
                    )
                    return _result(True, attempt, revalidated=list(revalidated))

                last_error = _error_detail(response)
                if response.status_code == 401:
                    logger.error("Storefront rejected revalidation secret")
                    return _result(
                        False,
                        attempt,
                        error="Authentication failed - check REVALIDATION_SECRET configuration",
                    )
                logger.warning(f"Revalidation attempt {attempt} failed: {last_error}")

            if attempt < max_attempts:
                # 1s, 2s, 4s, ... with the default base delay
                sleep(settings.revalidation_backoff_seconds * (2 ** (attempt - 1)))

    logger.error(
        f"Failed to revalidate tags [{', '.join(tags)}] after {max_attempts} "
        f"attempts: {last_error}"
    )
    return _result(
        False, max_attempts, error=f"Failed after {max_attempts} attempts: {last_error}"
    )
