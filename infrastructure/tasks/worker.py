"""Convenience entry point for running a Celery worker with the beat scheduler.

Production deployments invoke the Celery CLI
(``celery -A infrastructure.tasks worker -B``); this script mirrors that for
local runs.
"""
from __future__ import annotations

from .config.celery import celery_app


def main() -> None:
    celery_app.worker_main(["worker", "--beat", "--loglevel=INFO", "--hostname=worker@%h"])


if __name__ == "__main__":
    main()
