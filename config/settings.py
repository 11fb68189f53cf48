"""
Django settings for the Storefront e-commerce API.
"""
import os
from pathlib import Path
import environ
import sentry_sdk
from sentry_sdk.integrations.django import DjangoIntegration
from sentry_sdk.integrations.celery import CeleryIntegration
from kombu import Queue, Exchange

# Build paths inside the project
BASE_DIR = Path(__file__).resolve().parent.parent

# Initialize environment variables
env = environ.Env(
    DEBUG=(bool, False),
    ALLOWED_HOSTS=(list, ['localhost', '127.0.0.1']),
    DB_CONN_MAX_AGE=(int, 600),
    RATE_LIMIT_ENABLED=(bool, True),
    JSON_LOGS=(bool, False),
    LOG_LEVEL=(str, 'INFO'),
    LOG_TO_FILE=(bool, False),
)

# Read .env file if it exists
environ.Env.read_env(os.path.join(BASE_DIR, '.env'))

# Development fallbacks. CoreConfig.ready() refuses to serve with these
# values when DEBUG is off.
DEV_SECRET_KEY = 'django-insecure-storefront-dev-key-replace-in-production-0x9f'
DEV_JWT_SECRET_KEY = 'dev-jwt-Q7vK2mXp9LrT4wZs8NbY3cHf6JdG1aEu'

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = env('SECRET_KEY', default=DEV_SECRET_KEY)

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = env('DEBUG')

ALLOWED_HOSTS = env('ALLOWED_HOSTS')

USE_X_FORWARDED_HOST = True
SECURE_PROXY_SSL_HEADER = ('HTTP_X_FORWARDED_PROTO', 'https')

# Application definition
INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',

    # Third-party apps
    'rest_framework',
    'drf_spectacular',
    'corsheaders',
    'django_ratelimit',

    # Storefront apps
    'apps.core',
    'apps.tenants',
    'apps.rbac',
    'apps.catalog',
    'apps.orders',
    'apps.integrations',
    'apps.analytics',
    'apps.exchange',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'corsheaders.middleware.CorsMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',

    # Custom middleware
    'apps.tenants.middleware.RequestIDMiddleware',
    'apps.tenants.middleware.StoreContextMiddleware',
]

ROOT_URLCONF = 'config.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [BASE_DIR / 'templates'],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

WSGI_APPLICATION = 'config.wsgi.application'

# Database
DATABASES = {
    'default': env.db('DATABASE_URL', default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}"),
}
DATABASES['default']['CONN_MAX_AGE'] = env('DB_CONN_MAX_AGE')

# Configure based on database engine
if 'postgresql' in DATABASES['default']['ENGINE']:
    DATABASES['default']['OPTIONS'] = {
        'connect_timeout': 10,
    }

# Password validation
AUTH_PASSWORD_VALIDATORS = [
    {
        'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator',
    },
]

# Internationalization
LANGUAGE_CODE = 'en-us'
TIME_ZONE = env('TIME_ZONE', default='UTC')
USE_I18N = True
USE_TZ = True

# Static and uploaded files
STATIC_URL = 'static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'
MEDIA_URL = '/media/'
MEDIA_ROOT = env('MEDIA_ROOT', default=str(BASE_DIR / 'media'))

# Upload limits for product and slider images
IMAGE_UPLOAD_MAX_BYTES = env.int('IMAGE_UPLOAD_MAX_BYTES', default=5 * 1024 * 1024)
IMAGE_UPLOAD_EXTENSIONS = ['jpeg', 'jpg', 'png', 'gif', 'webp']

# Default primary key field type
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# Custom User Model
AUTH_USER_MODEL = 'rbac.User'

AUTHENTICATION_BACKENDS = [
    'apps.rbac.backends.EmailAuthBackend',
]

# REST Framework
REST_FRAMEWORK = {
    'DEFAULT_SCHEMA_CLASS': 'drf_spectacular.openapi.AutoSchema',
    'DEFAULT_PAGINATION_CLASS': 'rest_framework.pagination.PageNumberPagination',
    'PAGE_SIZE': 50,
    'DEFAULT_RENDERER_CLASSES': [
        'rest_framework.renderers.JSONRenderer',
    ],
    'DEFAULT_PARSER_CLASSES': [
        'rest_framework.parsers.JSONParser',
        'rest_framework.parsers.MultiPartParser',
        'rest_framework.parsers.FormParser',
    ],
    'DEFAULT_AUTHENTICATION_CLASSES': [
        'apps.core.authentication.MiddlewareAuthentication',
    ],
    'DEFAULT_PERMISSION_CLASSES': [],
    'EXCEPTION_HANDLER': 'apps.core.exceptions.custom_exception_handler',
}

# DRF Spectacular (OpenAPI)
SPECTACULAR_SETTINGS = {
    'TITLE': 'Storefront API',
    'DESCRIPTION': '''
Multi-store e-commerce storefront and admin back office.

## Authentication

- `Authorization: Bearer <token>` - JWT obtained from `/v1/auth/login`
- `X-Store-ID`: UUID or slug of the store (required for store-scoped operations)

Catalog browsing, site settings and active slider images are readable anonymously.

## Authorization (RBAC)

Permissions are grouped into modules (products, orders, cart, settings, ...) and
identified by codes such as `orders:approve`. Each store seeds three roles:

- **Super Admin**: every permission
- **Manager**: read access to users, products, categories, orders and settings
- **Customer**: shopping permissions (cart, own orders, payments)

Users flagged as super admin bypass every permission check.

## Order Approval Workflow

Orders are created from the cart in `awaiting_approval`. An admin approves
(`payment_pending`) or rejects (`cancelled`) them; payment is only accepted
after approval. Each transition sends a transactional email when SMTP is
configured for the store.

## Rate Limiting

| Endpoint | Rate Limit | Key Type |
|----------|-----------|----------|
| `POST /v1/auth/login` | 5/min per IP, 10/hour per email | IP + Email |
| `POST /v1/auth/forgot-password` | 3/hour | IP address |
| `POST /v1/auth/reset-password` | 5/hour | IP address |
    ''',
    'VERSION': '1.0.0',
    'SERVE_INCLUDE_SCHEMA': False,
    'COMPONENT_SPLIT_REQUEST': True,
    'SCHEMA_PATH_PREFIX': r'/v1/',
    'SWAGGER_UI_SETTINGS': {
        'deepLinking': True,
        'persistAuthorization': True,
        'filter': True,
    },
    'SECURITY': [
        {
            'JWTAuth': []
        }
    ],
    'APPEND_COMPONENTS': {
        'securitySchemes': {
            'JWTAuth': {
                'type': 'http',
                'scheme': 'bearer',
                'bearerFormat': 'JWT',
                'description': 'JWT token obtained from /v1/auth/login. Include as: Authorization: Bearer <token>. For store-scoped operations, also include the X-Store-ID header.',
            }
        }
    },
    'TAGS': [
        {'name': 'Authentication', 'description': 'Login, logout, password reset and profile'},
        {'name': 'RBAC - Roles', 'description': 'Roles, permission modules and role permission sets'},
        {'name': 'RBAC - Users', 'description': 'Store user administration and role assignment'},
        {'name': 'RBAC - Audit', 'description': 'Audit log viewing'},
        {'name': 'Catalog', 'description': 'Products, categories and units of measure'},
        {'name': 'Cart', 'description': 'Shopping cart and wishlist'},
        {'name': 'Orders', 'description': 'Checkout, order history and the approval workflow'},
        {'name': 'Payments', 'description': 'Stripe, Benefit Pay, Credimax and cash on delivery'},
        {'name': 'Settings', 'description': 'Site settings, themes, slider images, SMTP and uploads'},
        {'name': 'Data Exchange', 'description': 'Excel import/export and database backup'},
        {'name': 'Analytics', 'description': 'Admin dashboard statistics'},
    ],
}

# ============================================================================
# SECURITY SETTINGS
# ============================================================================

if not DEBUG:
    SECURE_SSL_REDIRECT = env.bool('SECURE_SSL_REDIRECT', default=True)
    SECURE_HSTS_SECONDS = 31536000  # 1 year
    SECURE_HSTS_INCLUDE_SUBDOMAINS = True
    SECURE_HSTS_PRELOAD = True

    SESSION_COOKIE_SECURE = True
    CSRF_COOKIE_SECURE = True
    SESSION_COOKIE_HTTPONLY = True
    CSRF_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'
    CSRF_COOKIE_SAMESITE = 'Lax'
else:
    SECURE_SSL_REDIRECT = False
    SECURE_HSTS_SECONDS = 0
    SESSION_COOKIE_SECURE = False
    CSRF_COOKIE_SECURE = False

SECURE_CONTENT_TYPE_NOSNIFF = True
SECURE_BROWSER_XSS_FILTER = True
X_FRAME_OPTIONS = 'DENY'

# CORS Configuration
CORS_ALLOW_ALL_ORIGINS = DEBUG
CORS_ALLOWED_ORIGINS = env.list('CORS_ALLOWED_ORIGINS', default=[])

if not DEBUG:
    for origin in CORS_ALLOWED_ORIGINS:
        if not origin.startswith('https://'):
            raise ValueError(
                f"CORS origin must use HTTPS in production: {origin}. "
                f"Update CORS_ALLOWED_ORIGINS in .env"
            )

CORS_ALLOW_CREDENTIALS = True
CORS_ALLOW_HEADERS = [
    'accept',
    'accept-encoding',
    'authorization',
    'content-type',
    'dnt',
    'origin',
    'user-agent',
    'x-csrftoken',
    'x-requested-with',
    'x-request-id',
    'x-store-id',
]

# Cache: Redis when configured, process-local memory otherwise
REDIS_URL = env('REDIS_URL', default=None)

if REDIS_URL:
    CACHES = {
        'default': {
            'BACKEND': 'django_redis.cache.RedisCache',
            'LOCATION': REDIS_URL,
            'OPTIONS': {
                'CLIENT_CLASS': 'django_redis.client.DefaultClient',
                'SOCKET_CONNECT_TIMEOUT': 5,
                'SOCKET_TIMEOUT': 5,
                'CONNECTION_POOL_KWARGS': {
                    'max_connections': 50,
                    'retry_on_timeout': True,
                },
            },
            'KEY_PREFIX': 'storefront',
            'TIMEOUT': 300,
        }
    }
else:
    CACHES = {
        'default': {
            'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
            'LOCATION': 'storefront',
            'TIMEOUT': 300,
        }
    }
    # django-ratelimit expects a shared cache; local memory is fine for a single process
    SILENCED_SYSTEM_CHECKS = ['django_ratelimit.E003', 'django_ratelimit.W001']

# Celery Configuration
CELERY_BROKER_URL = env('CELERY_BROKER_URL', default='redis://localhost:6379/1')
CELERY_RESULT_BACKEND = env('CELERY_RESULT_BACKEND', default='redis://localhost:6379/2')
CELERY_TASK_ALWAYS_EAGER = env.bool('CELERY_TASK_ALWAYS_EAGER', default=False)

CELERY_ACCEPT_CONTENT = ['json']
CELERY_TASK_SERIALIZER = 'json'
CELERY_RESULT_SERIALIZER = 'json'

CELERY_TIMEZONE = TIME_ZONE
CELERY_TASK_TRACK_STARTED = True
CELERY_TASK_TIME_LIMIT = 10 * 60        # 10 minutes
CELERY_TASK_SOFT_TIME_LIMIT = 8 * 60    # 8 minutes

CELERY_TASK_DEFAULT_QUEUE = 'default'
CELERY_TASK_DEFAULT_EXCHANGE = 'default'
CELERY_TASK_DEFAULT_ROUTING_KEY = 'default'

CELERY_QUEUES = (
    Queue('default', Exchange('default'), routing_key='default'),
    Queue('notifications', Exchange('notifications'), routing_key='notifications'),
    Queue('payments', Exchange('payments'), routing_key='payments'),
)

CELERY_TASK_ROUTES = {
    'apps.orders.tasks.*': {'queue': 'notifications'},
    'apps.rbac.tasks.*': {'queue': 'notifications'},
    'apps.integrations.tasks.*': {'queue': 'payments'},
}

CELERY_BEAT_SCHEDULE = {
    # Expire abandoned Benefit Pay / Credimax sessions
    'expire-pending-payment-transactions': {
        'task': 'apps.integrations.tasks.expire_pending_transactions',
        'schedule': 300.0,  # Every 5 minutes
    },
}

CELERY_WORKER_PREFETCH_MULTIPLIER = 1
CELERY_ACKS_LATE = True

# Encryption (SMTP credentials at rest)
ENCRYPTION_KEY = env('ENCRYPTION_KEY', default=None)
ENCRYPTION_OLD_KEYS = env.list('ENCRYPTION_OLD_KEYS', default=[])

# Rate Limiting
RATE_LIMIT_ENABLED = env('RATE_LIMIT_ENABLED')
RATELIMIT_USE_CACHE = 'default'
RATELIMIT_ENABLE = RATE_LIMIT_ENABLED
RATELIMIT_VIEW = 'apps.core.exceptions.ratelimit_view'

# Logging Configuration
LOG_LEVEL = env('LOG_LEVEL')
JSON_LOGS = env('JSON_LOGS')
LOG_TO_FILE = env('LOG_TO_FILE')

_log_handlers = ['console', 'file'] if LOG_TO_FILE else ['console']

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'json': {
            '()': 'apps.core.logging.JSONFormatter',
        },
        'verbose': {
            '()': 'apps.core.log_sanitizer.SanitizingFormatter',
            'format': '{levelname} {asctime} {module} {process:d} {thread:d} {message}',
            'style': '{',
        },
    },
    'filters': {
        'sanitize': {
            '()': 'apps.core.log_sanitizer.SanitizingFilter',
        },
        'request_context': {
            '()': 'apps.core.logging.RequestContextLogFilter',
        },
    },
    'handlers': {
        'console': {
            'level': LOG_LEVEL,
            'class': 'logging.StreamHandler',
            'formatter': 'json' if JSON_LOGS else 'verbose',
            'filters': ['sanitize', 'request_context'],
        },
    },
    'root': {
        'handlers': ['console'],
        'level': LOG_LEVEL,
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
        'django.request': {
            'handlers': _log_handlers,
            'level': 'ERROR',
            'propagate': False,
        },
        'celery': {
            'handlers': _log_handlers,
            'level': 'INFO',
            'propagate': False,
        },
        'apps': {
            'handlers': _log_handlers,
            'level': LOG_LEVEL,
            'propagate': False,
        },
        'security': {
            'handlers': ['security', 'console'] if LOG_TO_FILE else ['console'],
            'level': 'INFO',
            'propagate': False,
        },
    },
}

if LOG_TO_FILE:
    os.makedirs(BASE_DIR / 'logs', exist_ok=True)
    LOGGING['handlers']['file'] = {
        'level': 'INFO',
        'class': 'logging.handlers.RotatingFileHandler',
        'filename': BASE_DIR / 'logs' / 'storefront.log',
        'maxBytes': 1024 * 1024 * 10,  # 10 MB
        'backupCount': 5,
        'formatter': 'json' if JSON_LOGS else 'verbose',
        'filters': ['sanitize', 'request_context'],
    }
    LOGGING['handlers']['security'] = {
        'level': 'INFO',
        'class': 'logging.handlers.RotatingFileHandler',
        'filename': BASE_DIR / 'logs' / 'security.log',
        'maxBytes': 1024 * 1024 * 10,  # 10 MB
        'backupCount': 10,
        'formatter': 'json' if JSON_LOGS else 'verbose',
        'filters': ['sanitize'],
    }

# Sentry Configuration
SENTRY_DSN = env('SENTRY_DSN', default=None)
SENTRY_ENVIRONMENT = env('SENTRY_ENVIRONMENT', default='development')
SENTRY_RELEASE = env('SENTRY_RELEASE', default=None)

if SENTRY_DSN:
    sentry_sdk.init(
        dsn=SENTRY_DSN,
        integrations=[
            DjangoIntegration(),
            CeleryIntegration(),
        ],
        environment=SENTRY_ENVIRONMENT,
        release=SENTRY_RELEASE,
        traces_sample_rate=0.1 if not DEBUG else 1.0,
        send_default_pii=False,
        attach_stacktrace=True,
        max_breadcrumbs=50,
    )

# Email Configuration
# Per-store SMTP credentials live in SiteSettings; the backend class is shared.
EMAIL_BACKEND = env('EMAIL_BACKEND', default='django.core.mail.backends.smtp.EmailBackend')
EMAIL_TIMEOUT = env.int('EMAIL_TIMEOUT', default=30)
DEFAULT_FROM_EMAIL = env('DEFAULT_FROM_EMAIL', default='noreply@storefront.local')

# Frontend Configuration
FRONTEND_URL = env('FRONTEND_URL', default='http://localhost:5173')

# JWT Authentication Configuration
# SECURITY: JWT_SECRET_KEY must differ from SECRET_KEY
JWT_SECRET_KEY = env('JWT_SECRET_KEY', default=DEV_JWT_SECRET_KEY)

if len(JWT_SECRET_KEY) < 32:
    raise ValueError(
        "JWT_SECRET_KEY must be at least 32 characters long for security. "
        "Current length: {}. Generate a strong key with: "
        "python -c \"import secrets; print(secrets.token_urlsafe(32))\"".format(len(JWT_SECRET_KEY))
    )

if JWT_SECRET_KEY == SECRET_KEY:
    raise ValueError(
        "JWT_SECRET_KEY must be different from SECRET_KEY for security. "
        "Generate a separate JWT key with: "
        "python -c \"import secrets; print(secrets.token_urlsafe(32))\""
    )

JWT_ALGORITHM = env('JWT_ALGORITHM', default='HS256')
JWT_EXPIRATION_HOURS = env.int('JWT_EXPIRATION_HOURS', default=24)

# Stripe (card payments)
STRIPE_SECRET_KEY = env('STRIPE_SECRET_KEY', default=None)
STRIPE_PUBLISHABLE_KEY = env('STRIPE_PUBLISHABLE_KEY', default=None)
STRIPE_DEFAULT_CURRENCY = env('STRIPE_DEFAULT_CURRENCY', default='usd')

# Regional gateway stubs
BENEFIT_PAY_URL = env('BENEFIT_PAY_URL', default='https://benefit.bh/pay')
CREDIMAX_URL = env('CREDIMAX_URL', default='https://credimax.com.bh/pay')
PAYMENT_SESSION_TTL_MINUTES = env.int('PAYMENT_SESSION_TTL_MINUTES', default=15)

# Storefront defaults
DEFAULT_STORE_TAX_RATE = env('DEFAULT_STORE_TAX_RATE', default='0.10')
PASSWORD_RESET_PATH = env('PASSWORD_RESET_PATH', default='/reset-password')
