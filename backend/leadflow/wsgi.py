"""WSGI config for LeadFlow."""
import os
from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'leadflow.settings')
application = get_wsgi_application()
