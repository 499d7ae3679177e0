"""
WSGI config for retailhub project, served by gunicorn in production.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'retailhub.settings')

application = get_wsgi_application()
