"""Celery application for background side effects of catalog imports."""

import ssl

from celery import Celery

from app.core.config import get_settings
from app.utils.redis_client import normalize_redis_url

settings = get_settings()

REVALIDATION_QUEUE = "revalidation"


def _with_ssl_param(url: str) -> str:
    """Celery's Redis backend reads ``ssl_cert_reqs`` from the URL at init time."""
    if not url.startswith("rediss://") or "ssl_cert_reqs" in url:
        return url
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}ssl_cert_reqs=none"


broker_url = _with_ssl_param(normalize_redis_url(settings.celery_broker_url or settings.redis_url))
backend_url = _with_ssl_param(normalize_redis_url(settings.celery_result_url or settings.redis_url))
is_ssl = broker_url.startswith("rediss://") or backend_url.startswith("rediss://")

celery_app = Celery(
    "catalog_importer",
    broker=broker_url,
    backend=backend_url,
)

celery_config = {
    "task_serializer": "json",
    "accept_content": ["json"],
    "result_serializer": "json",
    "timezone": "UTC",
    "enable_utc": True,
    "task_acks_late": True,
    "task_reject_on_worker_lost": True,
    "worker_prefetch_multiplier": 1,
    "task_time_limit": 120,
    "task_soft_time_limit": 100,
    "result_expires": 3600,
    "broker_connection_retry_on_startup": True,
    "worker_hijack_root_logger": False,
    # Publishing happens inside an upload request; give up quickly if the broker is down
    "task_publish_retry_policy": {
        "max_retries": 2,
        "interval_start": 0,
        "interval_step": 0.5,
        "interval_max": 1,
    },
    "task_routes": {
        "app.workers.tasks.revalidate_storefront": {"queue": REVALIDATION_QUEUE},
    },
    "task_default_queue": REVALIDATION_QUEUE,
}

if is_ssl:
    ssl_dict = {"ssl_cert_reqs": ssl.CERT_NONE}
    celery_config["broker_use_ssl"] = ssl_dict
    celery_config["redis_backend_use_ssl"] = ssl_dict

celery_app.conf.update(celery_config)

# Register tasks with the app
from app.workers.tasks import revalidate_storefront  # noqa: E402,F401
