# config/settings.py
"""
Environment-based configuration for the subscription service
"""

import logging
import os
from datetime import timedelta
from pathlib import Path

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

_project_root = Path(__file__).resolve().parent.parent
_dotenv_path = Path(os.environ.get('DOTENV_PATH', _project_root / '.env'))

if not load_dotenv(_dotenv_path):
    logger.info(f".env not loaded from {_dotenv_path}, using system environment")


class BaseConfig:
    """Settings shared by every environment"""
    
    # Session settings
    SESSION_SECRET = os.environ.get('SESSION_SECRET')
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SECURE = False
    SESSION_COOKIE_SAMESITE = 'Lax'
    PERMANENT_SESSION_LIFETIME = timedelta(days=30)
    
    # Storage
    DATABASE_URL = os.environ.get('DATABASE_URL', 'sqlite:///subscribers/DB_subscribers.db')
    AUDIT_LOG_PATH = os.environ.get('AUDIT_LOG_PATH', 'subscribers_emails.txt')
    SLOW_QUERY_THRESHOLD = float(os.environ.get('SLOW_QUERY_THRESHOLD', 1.0))
    
    # Outbound mail
    SMTP_HOST = os.environ.get('SMTP_HOST', 'smtp.gmail.com')
    SMTP_PORT = int(os.environ.get('SMTP_PORT', 587))
    SMTP_EMAIL = os.environ.get('SMTP_EMAIL')
    SMTP_PASS = os.environ.get('SMTP_PASS')
    SMTP_TIMEOUT = float(os.environ.get('SMTP_TIMEOUT', 10))
    SMTP_STARTTLS = os.environ.get('SMTP_STARTTLS', 'true').lower() in ('1', 'true', 'yes')
    VERIFY_URL = os.environ.get('VERIFY_URL', 'http://localhost:8080/verify')
    
    # OAuth providers
    FACEBOOK_KEY = os.environ.get('FACEBOOK_KEY')
    FACEBOOK_SECRET = os.environ.get('FACEBOOK_SECRET')
    GOOGLE_KEY = os.environ.get('GOOGLE_KEY')
    GOOGLE_SECRET = os.environ.get('GOOGLE_SECRET')
    GITHUB_KEY = os.environ.get('GITHUB_KEY')
    GITHUB_SECRET = os.environ.get('GITHUB_SECRET')
    
    # Rate limiting
    RATELIMIT_STORAGE_URI = os.environ.get('RATELIMIT_STORAGE_URI', 'memory://')
    RATELIMIT_DEFAULT = os.environ.get('RATELIMIT_DEFAULT', '1000 per hour')
    RATELIMIT_HEADERS_ENABLED = True
    SUBSCRIBE_RATE_LIMIT = os.environ.get('SUBSCRIBE_RATE_LIMIT', '30 per minute')
    
    # Logging
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    LOG_FILE = os.environ.get('LOG_FILE')
    SLOW_REQUEST_THRESHOLD = 1000  # milliseconds
    
    # Security headers
    SECURITY_HEADERS = {
        'X-Content-Type-Options': 'nosniff',
        'X-Frame-Options': 'DENY',
        'Referrer-Policy': 'strict-origin-when-cross-origin',
        'Permissions-Policy': 'camera=(), microphone=(), geolocation=()'
    }
    
    PROXY_FIX = False


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'DEBUG')


class TestingConfig(BaseConfig):
    TESTING = True
    SESSION_SECRET = 'testing-session-secret'
    DATABASE_URL = 'sqlite:///:memory:'
    SMTP_EMAIL = 'noreply@example.com'
    SMTP_PASS = 'testing-password'
    FACEBOOK_KEY = GOOGLE_KEY = GITHUB_KEY = None
    RATELIMIT_ENABLED = False
    LOG_LEVEL = 'DEBUG'
    LOG_FILE = None


class ProductionConfig(BaseConfig):
    PROXY_FIX = True


CONFIGS = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
}


def get_config(config_name: str):
    """Look up a configuration class by environment name"""
    try:
        return CONFIGS[config_name]
    except KeyError:
        raise ValueError(f"Unknown configuration '{config_name}', "
                         f"expected one of {', '.join(sorted(CONFIGS))}")
