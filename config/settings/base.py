# config/settings/base.py
from pathlib import Path
import os
from dotenv import load_dotenv


BASE_DIR = Path(__file__).resolve().parent.parent.parent
load_dotenv(BASE_DIR / ".env")

SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "unsafe-dev-key")
DEBUG = os.getenv("DJANGO_DEBUG", "0") == "1"
ALLOWED_HOSTS = ["*"]

INSTALLED_APPS = [
    # Django
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",

    # Third-party
    "corsheaders",
    "rest_framework",
    "drf_spectacular",
    "django_filters",

    # Domain apps
    "dc_core.common.apps.CommonConfig",
    "dc_core.patients.apps.PatientsConfig",
    "dc_core.appointments.apps.AppointmentsConfig",
    "dc_core.clinical.apps.ClinicalConfig",
    "dc_core.billing.apps.BillingConfig",
    "dc_core.audit.apps.AuditConfig",

    # binds the patient cascade on ready()
    "dc_core.cascade.apps.CascadeConfig",
]

MIDDLEWARE = [
    "corsheaders.middleware.CorsMiddleware",
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]


ROOT_URLCONF = "config.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    }
]

WSGI_APPLICATION = "config.wsgi.application"

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.postgresql",
        "NAME": os.getenv("DB_NAME", "dental"),
        "USER": os.getenv("DB_USER", "dental"),
        "PASSWORD": os.getenv("DB_PASSWORD", "dental"),
        "HOST": os.getenv("DB_HOST", "127.0.0.1"),
        "PORT": os.getenv("DB_PORT", "5432"),
    }
}

AUTH_PASSWORD_VALIDATORS = [
    {"NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator"},
    {"NAME": "django.contrib.auth.password_validation.MinimumLengthValidator"},
    {"NAME": "django.contrib.auth.password_validation.CommonPasswordValidator"},
    {"NAME": "django.contrib.auth.password_validation.NumericPasswordValidator"},
]

LANGUAGE_CODE = "en-us"
TIME_ZONE = os.getenv("DJANGO_TIME_ZONE", "UTC")
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": (
        "rest_framework.authentication.SessionAuthentication",
    ),
    "DEFAULT_PERMISSION_CLASSES": (
        "rest_framework.permissions.IsAuthenticated",
    ),
    "DEFAULT_SCHEMA_CLASS": "dc_core.common.openapi.ClinicAutoSchema",

    # Standard error envelope
    "EXCEPTION_HANDLER": "dc_core.common.api.exceptions.api_exception_handler",

    "DEFAULT_FILTER_BACKENDS": [
        "django_filters.rest_framework.DjangoFilterBackend",
        "rest_framework.filters.OrderingFilter",
        "rest_framework.filters.SearchFilter",
    ],

    "DEFAULT_PAGINATION_CLASS": "dc_core.common.api.pagination.ClinicPagination",
}

SPECTACULAR_SETTINGS = {
    "TITLE": "Dental Clinic API",
    "DESCRIPTION": "Patients, clinical records and the patient cascade delete",
    "VERSION": "0.1.0",

    "COMPONENT_SPLIT_REQUEST": True,
    "SORT_OPERATIONS": True,
    "SORT_OPERATION_PARAMETERS": True,

    # Drop the /api/* alias, keep /api/v1/*
    "PREPROCESSING_HOOKS": [
        "dc_core.common.spectacular_hooks.preprocess_exclude_legacy_api",
    ],
}

# CORS settings
# Development
CORS_ALLOW_ALL_ORIGINS = True  # Only for development!
CORS_ALLOW_CREDENTIALS = True

# -------------------------
# Patient cascade
# -------------------------

# collection name -> model label
DC_COLLECTIONS = {
    "patients": "patients.Patient",
    "appointments": "appointments.Appointment",
    "patient_transfers": "clinical.PatientTransfer",
    "treatment_records": "clinical.TreatmentRecord",
    "insurance_claims": "billing.InsuranceClaim",
    "medical_history": "clinical.MedicalHistory",
}

# root collection -> ordered (dependent collection, foreign key field)
DC_CASCADE_DEPENDENCIES = {
    "patients": [
        ("appointments", "patient"),
        ("patient_transfers", "patient"),
        ("treatment_records", "patient"),
        ("insurance_claims", "patient"),
        ("medical_history", "patient"),
    ],
}

# 0 = fetch each collection in one query
DC_CASCADE_BATCH_SIZE = int(os.getenv("DC_CASCADE_BATCH_SIZE", "500"))
DC_CASCADE_STATEMENT_TIMEOUT_MS = int(os.getenv("DC_CASCADE_STATEMENT_TIMEOUT_MS", "15000"))
DC_CASCADE_LOCK_TIMEOUT_MS = int(os.getenv("DC_CASCADE_LOCK_TIMEOUT_MS", "5000"))

# -------------------------
# Logging
# -------------------------
DC_LOG_LEVEL = os.getenv("DC_LOG_LEVEL", "INFO").upper()

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {
            "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "simple",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": "WARNING",
    },
    "loggers": {
        "django": {
            "handlers": ["console"],
            "level": os.getenv("DJANGO_LOG_LEVEL", "INFO"),
            "propagate": False,
        },
        # propagates to the root console handler
        "dc_core": {
            "level": DC_LOG_LEVEL,
        },
    },
}
