import os
from celery import Celery

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'caisse.settings')
app = Celery('caisse')

app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()
