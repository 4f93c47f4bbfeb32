"""
HomeMatch Celery Worker Entry Point

Start the worker:
    celery -A celery_worker.celery worker --loglevel=info -Q embeddings,default
"""

# Import the Celery app instance
from homematch.celery_app import celery  # noqa: F401

# Import tasks so Celery can discover them
import homematch.search.tasks  # noqa: F401
