# Celery application for the bulk ingestion tasks
from celery import Celery
import os

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'lendingsystem.settings')

app = Celery('lendingsystem')
app.config_from_object('django.conf:settings', namespace='CELERY')

# This discovers tasks from all installed apps
app.autodiscover_tasks()
