"""
Django settings for the LeadFlow lead-lifecycle service.

Uses PostgreSQL as the database and django-rest-framework for the API layer.
"""
import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.environ.get('DJANGO_SECRET_KEY', 'dev-secret-key-change-in-production')

DEBUG = os.environ.get('DEBUG', 'True').lower() in ('true', '1', 'yes')

ALLOWED_HOSTS = os.environ.get('ALLOWED_HOSTS', 'localhost,127.0.0.1,testserver').split(',')

# Application definition
INSTALLED_APPS = [
    'django.contrib.contenttypes',
    'rest_framework',
    'corsheaders',
    'django_q',
    'crm',
]

MIDDLEWARE = [
    'corsheaders.middleware.CorsMiddleware',
    'django.middleware.common.CommonMiddleware',
]

# API clients send exact URLs; no trailing-slash redirects
APPEND_SLASH = False

ROOT_URLCONF = 'leadflow.urls'

WSGI_APPLICATION = 'leadflow.wsgi.application'

# Database: PostgreSQL in production, SQLite for local dev
DB_ENGINE = os.environ.get('DB_ENGINE', 'django.db.backends.sqlite3')

if DB_ENGINE == 'django.db.backends.sqlite3':
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': BASE_DIR / 'db.sqlite3',
        }
    }
else:
    DATABASES = {
        'default': {
            'ENGINE': DB_ENGINE,
            'NAME': os.environ.get('DB_NAME', 'leadflow'),
            'USER': os.environ.get('DB_USER', 'postgres'),
            'PASSWORD': os.environ.get('DB_PASSWORD', 'postgres'),
            'HOST': os.environ.get('DB_HOST', 'localhost'),
            'PORT': os.environ.get('DB_PORT', '5432'),
        }
    }

# CORS
CORS_ALLOW_ALL_ORIGINS = DEBUG
CORS_ALLOWED_ORIGINS = [
    'http://localhost:5173',
    'http://localhost:3000',
    'http://127.0.0.1:5173',
]

# DRF: auth is handled upstream, the acting user arrives as X-User-Id
REST_FRAMEWORK = {
    'DEFAULT_RENDERER_CLASSES': [
        'rest_framework.renderers.JSONRenderer',
    ],
    'DEFAULT_PARSER_CLASSES': [
        'rest_framework.parsers.JSONParser',
    ],
    'DEFAULT_PAGINATION_CLASS': None,
    'UNAUTHENTICATED_USER': None,
    'DEFAULT_AUTHENTICATION_CLASSES': [],
    'DEFAULT_PERMISSION_CLASSES': [],
}

# LLM / classification configuration
LLM_PROVIDER = os.environ.get('LLM_PROVIDER', 'mock')  # "openai" or "mock"
OPENAI_API_KEY = os.environ.get('OPENAI_API_KEY', '')
OPENAI_MODEL = os.environ.get('OPENAI_MODEL', 'gpt-4o-mini')
OPENAI_TTS_MODEL = os.environ.get('OPENAI_TTS_MODEL', 'gpt-4o-mini-tts')

# Messaging (WhatsApp Cloud API)
MESSAGING_PROVIDER = os.environ.get('MESSAGING_PROVIDER', 'mock')  # "whatsapp" or "mock"
WHATSAPP_API_BASE = os.environ.get('WHATSAPP_API_BASE', 'https://graph.facebook.com/v20.0')
WHATSAPP_VERIFY_TOKEN = os.environ.get('WHATSAPP_VERIFY_TOKEN', '')
WHATSAPP_TIMEOUT_SECONDS = int(os.environ.get('WHATSAPP_TIMEOUT_SECONDS', '15'))
VOICE_NOTES_ENABLED = os.environ.get('VOICE_NOTES_ENABLED', 'False').lower() in ('true', '1', 'yes')

# Follow-up job processing
FOLLOWUP_SWEEP_MINUTES = int(os.environ.get('FOLLOWUP_SWEEP_MINUTES', '5'))
FOLLOWUP_BATCH_SIZE = int(os.environ.get('FOLLOWUP_BATCH_SIZE', '50'))
FOLLOWUP_CLAIM_LEASE_MINUTES = int(os.environ.get('FOLLOWUP_CLAIM_LEASE_MINUTES', '10'))
FOLLOWUP_MAX_ATTEMPTS = int(os.environ.get('FOLLOWUP_MAX_ATTEMPTS', '1'))
FOLLOWUP_RETRY_DELAY_MINUTES = int(os.environ.get('FOLLOWUP_RETRY_DELAY_MINUTES', '15'))
FOLLOWUP_WAKE_TASKS = os.environ.get('FOLLOWUP_WAKE_TASKS', 'True').lower() in ('true', '1', 'yes')

# Email follow-ups
EMAIL_FOLLOWUPS_ENABLED = os.environ.get('EMAIL_FOLLOWUPS_ENABLED', 'False').lower() in ('true', '1', 'yes')
EMAIL_BACKEND = os.environ.get('EMAIL_BACKEND', 'django.core.mail.backends.console.EmailBackend')
DEFAULT_FROM_EMAIL = os.environ.get('DEFAULT_FROM_EMAIL', 'LeadFlow <no-reply@leadflow.local>')
EMAIL_HOST = os.environ.get('EMAIL_HOST', 'localhost')
EMAIL_PORT = int(os.environ.get('EMAIL_PORT', '25'))
EMAIL_HOST_USER = os.environ.get('EMAIL_HOST_USER', '')
EMAIL_HOST_PASSWORD = os.environ.get('EMAIL_HOST_PASSWORD', '')
EMAIL_USE_TLS = os.environ.get('EMAIL_USE_TLS', 'False').lower() in ('true', '1', 'yes')

# django-q2 task queue on the ORM broker (no Redis needed)
Q_CLUSTER = {
    'name': 'leadflow',
    'workers': 2,
    'timeout': 120,
    'retry': 180,
    'orm': 'default',
    'bulk': 10,
    'catch_up': False,
}

# All datetimes are timezone-aware UTC
USE_TZ = True
TIME_ZONE = 'UTC'

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'INFO',
    },
}
