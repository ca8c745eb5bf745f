# /home/techwithwayne/storefront/storefront/settings.py
"""
Storefront Django settings

CHANGE LOG
----------
2026-10-12 • Add storefront business knobs (shipping fee, invoice terms, lead times)
- STOREFRONT_DEFAULT_SHIPPING_FEE_CENTS defaults to 0 (auto-charge disabled).
- STOREFRONT_LEAD_TIMES feeds the ETA service and the order lead-time snapshot.

2026-10-05 • Stripe config consolidated here (checkout, invoices, webhook, reconcile)
- STRIPE_SECRET_KEY / STRIPE_WEBHOOK_SECRET read from env, never hardcoded.
- STOREFRONT_APP_URL drives Checkout success/cancel redirects.

2026-09-28 • Logging encoding → settings-level (UTF-8)
- RotatingFileHandler writes logs/storefront.log with encoding='utf-8'.
"""

from pathlib import Path
import os
from dotenv import load_dotenv

# ========= Base / Env =========
BASE_DIR = Path(__file__).resolve().parent.parent

ENV_CANDIDATES = [
    Path(os.path.expanduser('~/storefront/.env')),  # PythonAnywhere: ~/storefront/.env
    BASE_DIR / '.env',                               # Local: project root
]
for _env in ENV_CANDIDATES:
    if _env.exists():
        load_dotenv(_env)
        print(f"[settings] Loaded env from: {_env}")
        break
else:
    load_dotenv()  # fallback (no-op if missing)

DEBUG = os.getenv("DEBUG", "False") == "True"

# ========= Secret Key =========
SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "")
if not SECRET_KEY:
    # Local runs and the test suite; production must set DJANGO_SECRET_KEY.
    SECRET_KEY = "storefront-insecure-dev-key"
    if not DEBUG:
        print("[settings] DJANGO_SECRET_KEY not set; using insecure development key.")

# ========= Hosts / CSRF / Security =========
ALLOWED_HOSTS = [
    "127.0.0.1",
    "localhost",
    "testserver",
] + (os.getenv("ADDITIONAL_HOSTS", "").split(",") if os.getenv("ADDITIONAL_HOSTS") else [])

SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")
SESSION_COOKIE_SECURE = not DEBUG
CSRF_COOKIE_SECURE = not DEBUG
SECURE_SSL_REDIRECT = os.getenv("SECURE_SSL_REDIRECT", "False") == "True"

# ========= Installed apps =========
INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "corsheaders",
    "rest_framework",
    "orders",
]

# ========= Middleware =========
MIDDLEWARE = [
    "corsheaders.middleware.CorsMiddleware",
    "django.middleware.security.SecurityMiddleware",
    "whitenoise.middleware.WhiteNoiseMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

# ========= URL / Templates / WSGI =========
ROOT_URLCONF = "storefront.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [BASE_DIR / "templates"],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "storefront.wsgi.application"

# ========= Database =========
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": BASE_DIR / "db.sqlite3",
        "OPTIONS": {"timeout": 30},
    }
}

# ========= Password validation =========
AUTH_PASSWORD_VALIDATORS = [
    {"NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator"},
    {"NAME": "django.contrib.auth.password_validation.MinimumLengthValidator"},
    {"NAME": "django.contrib.auth.password_validation.CommonPasswordValidator"},
    {"NAME": "django.contrib.auth.password_validation.NumericPasswordValidator"},
]

# ========= I18N =========
LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

# ========= Static / Media =========
STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

STORAGES = {
    "default": {"BACKEND": "django.core.files.storage.FileSystemStorage"},
    "staticfiles": {"BACKEND": "whitenoise.storage.CompressedManifestStaticFilesStorage"},
}

# ========= Defaults =========
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# ========= REST framework =========
REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "rest_framework.authentication.SessionAuthentication",
        "rest_framework.authentication.BasicAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.AllowAny",
    ],
}

# ========= CORS (React storefront + admin) =========
CORS_ALLOWED_ORIGINS = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
] + [o for o in os.getenv("STOREFRONT_ALLOWED_ORIGINS", "").split(",") if o]
CSRF_TRUSTED_ORIGINS = list(CORS_ALLOWED_ORIGINS)
CORS_ALLOW_CREDENTIALS = True

# ========= Email (Mailgun via Anymail preferred) =========
EMAIL_BACKEND = os.getenv(
    "DJANGO_EMAIL_BACKEND",
    "anymail.backends.mailgun.EmailBackend"
)

ANYMAIL = {
    "MAILGUN_API_KEY": os.getenv("MAILGUN_API_KEY", ""),
    "MAILGUN_SENDER_DOMAIN": os.getenv("MAILGUN_DOMAIN", ""),
    "MAILGUN_API_URL": os.getenv("ANYMAIL_MAILGUN_API_URL", "https://api.mailgun.net/v3"),
}

DEFAULT_FROM_EMAIL = os.getenv("DEFAULT_FROM_EMAIL", "Storefront <no-reply@mg.yourdomain.com>")

# ========= Logging =========
LOG_DIR = BASE_DIR / 'logs'
LOG_DIR.mkdir(exist_ok=True)

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{levelname} {asctime} {module} {process:d} {thread:d} {message}',
            'style': '{',
        },
        'simple': {
            'format': '{levelname} {message}',
            'style': '{',
        },
    },
    'handlers': {
        'file': {
            'level': 'INFO',
            'class': 'logging.handlers.RotatingFileHandler',
            'filename': LOG_DIR / 'storefront.log',
            'maxBytes': 1024*1024*15,
            'backupCount': 10,
            'formatter': 'verbose',
            'encoding': 'utf-8',
        },
        'console': {
            'level': 'INFO',
            'class': 'logging.StreamHandler',
            'formatter': 'simple',
        },
    },
    'loggers': {
        'storefront': {
            'handlers': ['file', 'console'],
            'level': 'INFO',
            'propagate': True,
        },
        'orders': {
            'handlers': ['file', 'console'],
            'level': 'INFO',
            'propagate': False,
        },
        'django': {
            'handlers': ['file'],
            'level': 'ERROR',
            'propagate': True,
        },
    },
}

# ========= Stripe =========
STOREFRONT_APP_URL = os.getenv("STOREFRONT_APP_URL", "http://localhost:5173").rstrip("/")

STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY", "")
STRIPE_PUBLISHABLE_KEY = os.getenv("STRIPE_PUBLISHABLE_KEY", "")
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET", "")

# ========= Storefront business settings =========
STOREFRONT_CURRENCY = os.getenv("STOREFRONT_CURRENCY", "usd").lower()
STOREFRONT_DEFAULT_SHIPPING_FEE_CENTS = int(os.getenv("STOREFRONT_DEFAULT_SHIPPING_FEE_CENTS", "0"))
STOREFRONT_INVOICE_DAYS_UNTIL_DUE = int(os.getenv("STOREFRONT_INVOICE_DAYS_UNTIL_DUE", "7"))
STOREFRONT_SEND_EMAILS = os.getenv("STOREFRONT_SEND_EMAILS", "false").strip().lower() == "true"
STOREFRONT_SALES_NOTIFY_EMAIL = os.getenv("STOREFRONT_SALES_NOTIFY_EMAIL", "")

STOREFRONT_LEAD_TIMES = {
    "production": {
        "min_days": int(os.getenv("STOREFRONT_PRODUCTION_MIN_DAYS", "7")),
        "max_days": int(os.getenv("STOREFRONT_PRODUCTION_MAX_DAYS", "10")),
    },
    "shipping": {
        "min_days": int(os.getenv("STOREFRONT_SHIPPING_MIN_DAYS", "2")),
        "max_days": int(os.getenv("STOREFRONT_SHIPPING_MAX_DAYS", "4")),
    },
    "working_days": ["Mon", "Tue", "Wed", "Thu", "Fri"],
}
