"""
@file: celery_worker.py
@description:
Root-level entry point for starting Celery workers, placed at the project root
to keep the -A argument short.

@usage:
To start a worker:
    $ celery -A celery_worker worker -Q maintenance --loglevel=info

To start the beat scheduler:
    $ celery -A celery_worker beat --loglevel=info

To start both worker and beat scheduler:
    $ celery -A celery_worker worker -Q maintenance --beat --loglevel=info
"""

from chunkvault.workers.celery_app import celery_app

# This makes the Celery app importable by the Celery command-line interface
app = celery_app

if __name__ == '__main__':
    print("ERROR: This file should not be executed directly.")
    print("Please use the celery command instead:")
    print("  $ celery -A celery_worker worker -Q maintenance --loglevel=info")
    print("  $ celery -A celery_worker beat --loglevel=info")
