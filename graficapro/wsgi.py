"""
WSGI config para o projeto GráficaPro.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'graficapro.settings')

application = get_wsgi_application()
