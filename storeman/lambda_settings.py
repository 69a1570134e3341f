"""
Django settings for running Storeman as an AWS Lambda function.

Environment is read once, at cold start, and turned into the STOREMAN dict;
nothing else in Storeman looks at os.environ.

Environment variables:
    TABLE_NAME            default: Shop
    USERS_TABLE_NAME      default: Users
    SYSTEMS_TABLE_NAME    default: GamingSystems
    AWS_REGION            default: eu-west-2
    STAGE                 "dev" selects the dev media bucket; default: prod
    MEDIA_BUCKET          overrides the per-stage bucket
    LOG_LEVEL             default: INFO
"""

import os

SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "storeman-lambda")
DEBUG = False
ALLOWED_HOSTS = ["*"]
USE_TZ = True

INSTALLED_APPS = [
    "storeman",
]

DATABASES = {}

STOREMAN = {
    "REGION": os.environ.get("AWS_REGION", "eu-west-2"),
    "STAGE": os.environ.get("STAGE", "prod"),
    "CATALOG_TABLE": os.environ.get("TABLE_NAME", "Shop"),
    "ACCOUNTS_TABLE": os.environ.get("USERS_TABLE_NAME", "Users"),
    "SYSTEMS_TABLE": os.environ.get("SYSTEMS_TABLE_NAME", "GamingSystems"),
    "MEDIA_BUCKET": os.environ.get("MEDIA_BUCKET") or None,
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "lambda": {"format": "%(levelname)s %(name)s %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "lambda"},
    },
    "loggers": {
        "storeman": {
            "handlers": ["console"],
            "level": os.environ.get("LOG_LEVEL", "INFO"),
        },
    },
}
