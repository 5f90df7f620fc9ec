"""Settings used in production.

Values that have development defaults in the components must be
provided through the environment here.
"""

from filehost.settings.components import config

DEBUG = False

ALLOWED_HOSTS = config(
    'DOMAIN_NAME',
    cast=lambda hosts: [host.strip() for host in hosts.split(',')],
    default='',
)

SECURE_CONTENT_TYPE_NOSNIFF = True
SESSION_COOKIE_SECURE = True
CSRF_COOKIE_SECURE = True
