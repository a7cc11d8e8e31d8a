"""
@file: worker.py
@description:
Entry point for starting Celery workers.

@usage:
To start a worker:
    $ celery -A chunkvault.workers.worker worker -Q maintenance --loglevel=info

To start the beat scheduler:
    $ celery -A chunkvault.workers.worker beat --loglevel=info
"""

from chunkvault.workers.celery_app import celery_app

__all__ = ["celery_app"]
