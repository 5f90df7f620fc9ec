"""Settings used during development and tests."""

DEBUG = True

ALLOWED_HOSTS = ['localhost', '127.0.0.1', '[::1]', 'testserver']

# Faster password hashing for local work and the test suite
PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']
