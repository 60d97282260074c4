"""
WSGI config for the lendingsystem project.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'lendingsystem.settings')

application = get_wsgi_application()
