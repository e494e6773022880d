# =============================================================================
# Django Project Configuration Package
# =============================================================================
# Settings, URLs, the WSGI application and the Celery app.
#
# Import the Celery app so it is loaded when Django starts and picks up the
# tasks of every installed app.
# =============================================================================

from config.celery import app as celery_app

__all__ = ("celery_app",)
