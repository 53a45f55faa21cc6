"""
Flask application configuration classes.
Provides configuration for development, production, and testing environments.
"""

import os

from dotenv import load_dotenv

load_dotenv()


class Config:
    """Base configuration class with common settings."""

    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'

    # Password gate for the dashboard
    ACCESS_PASSWORD = os.environ.get('ACCESS_PASSWORD', '')

    # Storage: 'remote' uses the relational bookings table, 'local' the JSON blob only
    BOOKING_BACKEND = os.environ.get('BOOKING_BACKEND', 'local')
    REMOTE_DATABASE_PATH = os.environ.get('REMOTE_DATABASE_PATH')
    LOCAL_STORAGE_PATH = os.environ.get('LOCAL_STORAGE_PATH') or 'instance/local_storage.db'

    # Calendar behaviour
    DOUBLE_CLICK_WINDOW_MS = int(os.environ.get('DOUBLE_CLICK_WINDOW_MS', 250))
    MAX_BOOKINGS_PER_DAY = int(os.environ.get('MAX_BOOKINGS_PER_DAY', 3))
    SELECTION_SESSION_LIMIT = int(os.environ.get('SELECTION_SESSION_LIMIT', 1024))
    CURRENCY_LABEL = os.environ.get('CURRENCY_LABEL', 'RM')

    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'

    APP_NAME = 'Tucing Suites Calendar'
    LOG_FILE = os.environ.get('LOG_FILE') or 'logs/tucing.log'


class DevelopmentConfig(Config):
    """Development environment configuration."""

    DEBUG = True
    TESTING = False
    TEMPLATES_AUTO_RELOAD = True


class ProductionConfig(Config):
    """Production environment configuration."""

    DEBUG = False
    TESTING = False
    SESSION_COOKIE_SECURE = os.environ.get('SESSION_COOKIE_SECURE', 'true').lower() == 'true'

    @classmethod
    def validate(cls) -> None:
        """Validate that required production environment variables are set."""
        if not os.environ.get('SECRET_KEY'):
            raise ValueError("SECRET_KEY environment variable must be set in production")
        if not os.environ.get('ACCESS_PASSWORD'):
            raise ValueError("ACCESS_PASSWORD environment variable must be set in production")


class TestConfig(Config):
    """Testing environment configuration."""

    TESTING = True
    DEBUG = True
    SECRET_KEY = 'test-secret-key'
    ACCESS_PASSWORD = 'test-password'
    BOOKING_BACKEND = 'local'
    REMOTE_DATABASE_PATH = None
    LOCAL_STORAGE_PATH = ':memory:'


config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'test': TestConfig,
    'default': DevelopmentConfig,
}
