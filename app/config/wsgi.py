"""
WSGI entry point for the reconciliation service.

Webhook and callback handlers are synchronous (blocking provider calls with
bounded timeouts), so the service is deployed behind a WSGI server such as
gunicorn.

For more information on this file, see:
https://docs.djangoproject.com/en/5.2/howto/deployment/wsgi/
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

application = get_wsgi_application()
