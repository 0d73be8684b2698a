"""
ASGI config for management project.

It exposes the ASGI callable as a module-level variable named ``application``.

HTTP only; the ledger API has no WebSocket surface.

For more information on this file, see
https://docs.djangoproject.com/en/5.2/howto/deployment/asgi/
"""

import os
from django.core.asgi import get_asgi_application

# Set Django settings module
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'management.settings')

application = get_asgi_application()
