"""
WSGI config for the RentVelo backend.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'rentvelo_project.settings')

application = get_wsgi_application()
