#!/usr/bin/env python3
"""Start the revalidation Celery worker with container-friendly defaults."""

import sys
import warnings

# Containers commonly run the worker as root
warnings.filterwarnings("ignore", category=UserWarning, message=".*superuser privileges.*")
warnings.filterwarnings("ignore", category=RuntimeWarning, message=".*superuser privileges.*")

from app.workers.celery_app import REVALIDATION_QUEUE, celery_app  # noqa: E402

if __name__ == "__main__":
    celery_app.worker_main(
        argv=[
            "worker",
            "--loglevel=info",
            f"--queues={REVALIDATION_QUEUE}",
            "--pool=solo",
            "--without-mingle",
            "--without-gossip",
            *sys.argv[1:],
        ]
    )
