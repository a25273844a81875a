import os
from datetime import timedelta
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent


def _env_bool(name, default=False):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


SECRET_KEY = os.getenv('DJANGO_SECRET_KEY', 'django-insecure-caisse-dev-key')
DEBUG = _env_bool('DJANGO_DEBUG', True)
ALLOWED_HOSTS = [h for h in os.getenv('DJANGO_ALLOWED_HOSTS', '*').split(',') if h]

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'rest_framework',
    'restaurant',
    'abonnement.apps.AbonnementConfig',
    'paiement',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
]

ROOT_URLCONF = 'caisse.urls'
WSGI_APPLICATION = 'caisse.wsgi.application'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

DATABASES = {
    'default': {
        'ENGINE': os.getenv('DB_ENGINE', 'django.db.backends.sqlite3'),
        'NAME': os.getenv('DB_NAME', str(BASE_DIR / 'db.sqlite3')),
        'USER': os.getenv('DB_USER', ''),
        'PASSWORD': os.getenv('DB_PASSWORD', ''),
        'HOST': os.getenv('DB_HOST', ''),
        'PORT': os.getenv('DB_PORT', ''),
    }
}

AUTH_USER_MODEL = 'restaurant.CustomUser'
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

LANGUAGE_CODE = 'fr-fr'
TIME_ZONE = 'Africa/Kinshasa'
USE_I18N = True
USE_TZ = True
STATIC_URL = 'static/'

REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': [
        'rest_framework_simplejwt.authentication.JWTAuthentication',
        'rest_framework.authentication.SessionAuthentication',
    ],
    'DEFAULT_PERMISSION_CLASSES': [
        'rest_framework.permissions.IsAuthenticated',
    ],
}

SIMPLE_JWT = {
    'ACCESS_TOKEN_LIFETIME': timedelta(hours=int(os.getenv('JWT_ACCESS_HOURS', '12'))),
}

# Celery
CELERY_BROKER_URL = os.getenv('CELERY_BROKER_URL', 'redis://localhost:6379/0')
CELERY_TASK_ALWAYS_EAGER = _env_bool('CELERY_TASK_ALWAYS_EAGER', False)

# E-mails (notifications abonnement / paiement)
EMAIL_BACKEND = os.getenv('EMAIL_BACKEND', 'django.core.mail.backends.console.EmailBackend')
DEFAULT_FROM_EMAIL = os.getenv('DEFAULT_FROM_EMAIL', 'caisse@localhost')
PAYMENT_ADMIN_EMAIL = os.getenv('PAYMENT_ADMIN_EMAIL', 'admin@localhost')

# Paiement : carte bancaire (Stripe)
STRIPE_KEY = os.getenv('STRIPE_KEY', '')
STRIPE_SECRET = os.getenv('STRIPE_SECRET', '')
STRIPE_WEBHOOK_SECRET = os.getenv('STRIPE_WEBHOOK_SECRET', '')
STRIPE_CURRENCY = os.getenv('STRIPE_CURRENCY', 'usd')

# Paiement : mobile money
MOBILE_MONEY_PROVIDER = os.getenv('MOBILE_MONEY_PROVIDER', 'orange_money')
MOBILE_MONEY = {
    'orange_money': {
        'merchant_id': os.getenv('ORANGE_MONEY_MERCHANT_ID'),
        'api_key': os.getenv('ORANGE_MONEY_API_KEY'),
        'api_url': os.getenv('ORANGE_MONEY_API_URL', 'https://api.orange.com'),
        'currency': os.getenv('ORANGE_MONEY_CURRENCY', 'USD'),
        'webhook_secret': os.getenv('ORANGE_MONEY_WEBHOOK_SECRET'),
    },
    'airtel_money': {
        'client_id': os.getenv('AIRTEL_MONEY_CLIENT_ID'),
        'client_secret': os.getenv('AIRTEL_MONEY_CLIENT_SECRET'),
        'api_url': os.getenv('AIRTEL_MONEY_API_URL', 'https://openapiuat.airtel.africa'),
        'country': os.getenv('AIRTEL_MONEY_COUNTRY', 'CD'),
        'currency': os.getenv('AIRTEL_MONEY_CURRENCY', 'USD'),
        'webhook_secret': os.getenv('AIRTEL_MONEY_WEBHOOK_SECRET'),
    },
}
PAYMENT_HTTP_TIMEOUT = int(os.getenv('PAYMENT_HTTP_TIMEOUT', '30'))
PAYMENT_BASE_URL = os.getenv('PAYMENT_BASE_URL', 'http://localhost:8000')

OTP_VALIDITE_MINUTES = int(os.getenv('OTP_VALIDITE_MINUTES', '10'))
FACTURE_TAUX_TVA = os.getenv('FACTURE_TAUX_TVA', '0.18')

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'simple': {
            'format': '[{asctime}] {levelname} {name}: {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'simple',
        },
    },
    'loggers': {
        'paiement': {
            'handlers': ['console'],
            'level': os.getenv('PAIEMENT_LOG_LEVEL', 'INFO'),
        },
        'abonnement': {
            'handlers': ['console'],
            'level': os.getenv('ABONNEMENT_LOG_LEVEL', 'INFO'),
        },
    },
}
