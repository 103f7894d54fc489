"""
Django settings for running the file upload tests.
"""

import tempfile
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent

SECRET_KEY = 'fileupload-tests'
DEBUG = False

INSTALLED_APPS = [
    'django.contrib.contenttypes',
    'django.contrib.auth',
    'fileupload',
    'testapp',
]

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'
USE_TZ = True

FILEUPLOAD_WEB_ROOT = tempfile.mkdtemp(prefix='fileupload-webroot-')
FILEUPLOAD_COLLISION_POLICY = 'overwrite'

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'handlers': {
        'console': {'class': 'logging.StreamHandler'},
    },
    'loggers': {
        'fileupload': {'handlers': ['console'], 'level': 'WARNING'},
    },
}
