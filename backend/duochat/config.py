# Configuration settings
import os
from datetime import timedelta
from dotenv import load_dotenv

# This line loads the variables from your .env file
load_dotenv()

APP_ENV = os.environ.get('APP_ENV', 'development')
IS_PRODUCTION = APP_ENV == 'production'


def _csv(value):
    return [item.strip() for item in value.split(',') if item.strip()]


# This class holds all the configuration variables for your app
class Config:
    APP_ENV = APP_ENV
    SECRET_KEY = os.environ.get('SECRET_KEY', 'dev-secret-change-me')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO' if IS_PRODUCTION else 'DEBUG')
    PORT = int(os.environ.get('PORT', 3000))

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        'DATABASE_URL', 'sqlite:///' + os.path.join(os.getcwd(), 'duochat.db')
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Sessions: signed JWT carried in the "jwt" cookie (or a Bearer header)
    JWT_SECRET_KEY = os.environ.get('JWT_SECRET_KEY', SECRET_KEY)
    JWT_TOKEN_LOCATION = ['cookies', 'headers']
    JWT_ACCESS_COOKIE_NAME = 'jwt'
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(days=int(os.environ.get('JWT_EXPIRES_DAYS', 7)))
    JWT_COOKIE_SECURE = IS_PRODUCTION
    JWT_COOKIE_SAMESITE = 'Strict'
    JWT_COOKIE_CSRF_PROTECT = False
    JWT_SESSION_COOKIE = False

    CLIENT_URL = os.environ.get('CLIENT_URL', 'http://localhost:5173')
    CORS_ORIGINS = _csv(os.environ.get('CORS_ORIGINS', '')) or [
        CLIENT_URL,
        'http://localhost:5173',
        'http://127.0.0.1:5173',
    ]

    # Base64 inflates by 4/3, so the request ceiling sits above the image ceiling
    MAX_CONTENT_LENGTH = int(os.environ.get('MAX_CONTENT_LENGTH', 8 * 1024 * 1024))
    MAX_IMAGE_BYTES = int(os.environ.get('MAX_IMAGE_BYTES', 5 * 1024 * 1024))
    MAX_PROFILE_PIC_BYTES = int(os.environ.get('MAX_PROFILE_PIC_BYTES', 1536 * 1024))
    ALLOWED_IMAGE_TYPES = frozenset(_csv(os.environ.get(
        'ALLOWED_IMAGE_TYPES', 'image/jpeg,image/png,image/gif,image/webp'
    )))
    MAX_MESSAGE_LENGTH = int(os.environ.get('MAX_MESSAGE_LENGTH', 2000))
    BCRYPT_COST = int(os.environ.get('BCRYPT_COST', 10))

    # Rate limits per client address, looser outside production
    RATELIMIT_STORAGE_URI = os.environ.get('RATELIMIT_STORAGE_URI', 'memory://')
    RATELIMIT_HEADERS_ENABLED = True
    RATELIMIT_DEFAULT = os.environ.get(
        'RATELIMIT_DEFAULT', '100 per 15 minutes' if IS_PRODUCTION else '1000 per 15 minutes'
    )
    RATELIMIT_AUTH = os.environ.get(
        'RATELIMIT_AUTH', '5 per 15 minutes' if IS_PRODUCTION else '100 per 15 minutes'
    )
    RATELIMIT_MESSAGES = os.environ.get(
        'RATELIMIT_MESSAGES', '30 per minute' if IS_PRODUCTION else '1000 per minute'
    )
    RATELIMIT_UPLOADS = os.environ.get(
        'RATELIMIT_UPLOADS', '10 per 5 minutes' if IS_PRODUCTION else '1000 per 5 minutes'
    )


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret'
    JWT_SECRET_KEY = 'test-jwt-secret-with-enough-length-for-hs256'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    JWT_COOKIE_SECURE = False
    LOG_LEVEL = 'DEBUG'
    BCRYPT_COST = 4
    RATELIMIT_STORAGE_URI = 'memory://'
    RATELIMIT_DEFAULT = '1000 per minute'
    RATELIMIT_AUTH = '20 per 15 minutes'
    RATELIMIT_MESSAGES = '1000 per minute'
    RATELIMIT_UPLOADS = '1000 per minute'
