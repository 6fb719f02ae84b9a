"""
WSGI config for the PharmaTrack backend.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'pharmatrack.config.settings')

application = get_wsgi_application()
