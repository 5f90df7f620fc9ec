"""Logging configuration.

Every module logs through ``logging.getLogger(__name__)``, so the
``filehost`` logger catches all project records.
"""

from filehost.settings.components import config

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'console': {
            'format': '%(asctime)s %(levelname)s %(name)s: %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'console',
        },
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': config('DJANGO_LOG_LEVEL', default='INFO'),
            'propagate': True,
        },
        'filehost': {
            'handlers': ['console'],
            'level': config('FILEHOST_LOG_LEVEL', default='INFO'),
            'propagate': False,
        },
    },
}
