"""Application configuration, read from the environment (and a local .env file)."""
import os
import secrets

from dotenv import load_dotenv

load_dotenv()


def _database_url():
    url = os.environ.get('DATABASE_URL', 'sqlite:///marketplace.db')
    if url.startswith('postgres://'):
        url = url.replace('postgres://', 'postgresql+psycopg2://', 1)
    elif url.startswith('postgresql://'):
        url = url.replace('postgresql://', 'postgresql+psycopg2://', 1)
    return url


def _flag(name, default='false'):
    return os.environ.get(name, default).lower() in ('1', 'true', 'yes')


class Config:
    SECRET_KEY = os.environ.get('SESSION_SECRET') or os.environ.get('SECRET_KEY') or secrets.token_hex(32)
    JWT_SECRET = os.environ.get('JWT_SECRET') or SECRET_KEY
    JWT_ALGORITHM = 'HS256'
    JWT_EXPIRES_DAYS = int(os.environ.get('JWT_EXPIRES_DAYS', 90))

    SQLALCHEMY_DATABASE_URI = _database_url()
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {'pool_pre_ping': True}

    ALLOWED_ORIGINS = os.environ.get(
        'ALLOWED_ORIGINS', 'http://localhost:5173,http://localhost:3000,http://127.0.0.1:5173'
    ).split(',')
    MAX_CONTENT_LENGTH = 10 * 1024 * 1024  # 10MB
    # number of reverse proxies whose X-Forwarded-For is trusted; 0 means none
    TRUSTED_PROXIES = int(os.environ.get('TRUSTED_PROXIES', 0))

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    SECURITY_LOG_DIR = os.environ.get(
        'SECURITY_LOG_DIR', os.path.join(os.path.dirname(os.path.abspath(__file__)), 'logs')
    )

    RATELIMIT_ENABLED = _flag('RATELIMIT_ENABLED', 'true')
    RATELIMIT_PER_MINUTE = int(os.environ.get('RATELIMIT_PER_MINUTE', 100))
    LOGIN_MAX_ATTEMPTS = int(os.environ.get('LOGIN_MAX_ATTEMPTS', 5))
    LOGIN_WINDOW_MINUTES = 15
    LOGIN_LOCKOUT_MINUTES = 30

    # Yandex ID OAuth
    YANDEX_CLIENT_ID = os.environ.get('YANDEX_CLIENT_ID')
    YANDEX_CLIENT_SECRET = os.environ.get('YANDEX_CLIENT_SECRET')
    YANDEX_REDIRECT_URI = os.environ.get('YANDEX_REDIRECT_URI')
    OAUTH_DEMO_MODE = _flag('OAUTH_DEMO_MODE')


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret'
    JWT_SECRET = 'test-jwt-secret'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_ENGINE_OPTIONS = {}
    RATELIMIT_ENABLED = False
    LOG_LEVEL = 'WARNING'
    YANDEX_CLIENT_ID = 'test-client-id'
    YANDEX_CLIENT_SECRET = 'test-client-secret'
    YANDEX_REDIRECT_URI = 'http://localhost:5173/oauth/callback'
    OAUTH_DEMO_MODE = False
