"""Import progress snapshots cached in Redis for polling clients.

The database job record is authoritative; a snapshot only adds the latest
human-readable message and counters between checkpoints. Every Redis
failure is swallowed so a cache outage never affects an import.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from redis import Redis
from redis.exceptions import RedisError

from app.core.config import get_settings
from app.utils.redis_client import create_redis_client

logger = logging.getLogger(__name__)

PROGRESS_PREFIX = "imports:progress:"
PROGRESS_TTL = timedelta(hours=24)


class ProgressTracker:
    def __init__(
        self,
        client: Redis | None = None,
        *,
        prefix: str = PROGRESS_PREFIX,
        ttl: timedelta = PROGRESS_TTL,
    ):
        self._client = client
        self.prefix = prefix
        self.ttl = ttl

    @property
    def client(self) -> Redis:
        # Connect on first use so importing the API never touches Redis.
        if self._client is None:
            self._client = create_redis_client(
                get_settings().redis_url, decode_responses=True, socket_timeout=2
            )
        return self._client

    def key(self, job_id: str) -> str:
        return f"{self.prefix}{job_id}"

    def publish(
        self,
        job_id: str,
        progress: float,
        message: str | None = None,
        *,
        status: str | None = None,
        meta: dict[str, Any] | None = None,
    ) -> None:
        snapshot = {
            "job_id": job_id,
            "progress": max(0.0, min(progress, 1.0)),
            "message": message,
            "status": status,
            "meta": meta or {},
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            self.client.set(
                self.key(job_id), json.dumps(snapshot), ex=int(self.ttl.total_seconds())
            )
        except RedisError as e:
            logger.debug(f"Skipping progress snapshot for import job {job_id}: {e}")

    def fetch(self, job_id: str) -> dict[str, Any]:
        """Latest snapshot, or an empty dict when none is cached or readable."""
        try:
            raw = self.client.get(self.key(job_id))
        except RedisError as e:
            logger.debug(f"Progress snapshot for import job {job_id} unavailable: {e}")
            return {}
        if not raw:
            return {}
        try:
            snapshot = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Discarding malformed progress snapshot for import job {job_id}")
            return {}
        return snapshot if isinstance(snapshot, dict) else {}


tracker = ProgressTracker()


def publish_progress(
    job_id: str,
    progress: float,
    message: str | None = None,
    *,
    status: str | None = None,
    meta: dict[str, Any] | None = None,
) -> None:
    tracker.publish(job_id, progress, message, status=status, meta=meta)


def fetch_progress(job_id: str) -> dict[str, Any]:
    return tracker.fetch(job_id)
