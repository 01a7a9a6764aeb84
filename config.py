"""Configuration module for the POS engine host application."""
import json
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _list_env(name, default):
    """Comma separated list from the environment."""
    raw = os.getenv(name)
    if not raw:
        return list(default)
    return [part.strip() for part in raw.split(',') if part.strip()]


class Config:
    """Base configuration class."""

    # Flask
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    DEBUG = os.getenv('FLASK_DEBUG', '1') == '1'
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    # Database - Support multiple environment variable naming conventions
    # Priority: DATABASE_URL > DB_* > POSTGRES_*
    DATABASE_URL = os.getenv('DATABASE_URL')

    if not DATABASE_URL:
        # Try DB_* variables (Docker style)
        DB_HOST = os.getenv('DB_HOST') or os.getenv('POSTGRES_HOST', 'localhost')
        DB_PORT = os.getenv('DB_PORT') or os.getenv('POSTGRES_PORT', '5432')
        DB_NAME = os.getenv('DB_NAME') or os.getenv('POSTGRES_DB', 'pos')
        DB_USER = os.getenv('DB_USER') or os.getenv('POSTGRES_USER', 'pos')
        DB_PASSWORD = os.getenv('DB_PASSWORD') or os.getenv('POSTGRES_PASSWORD', 'pos')

        DATABASE_URL = (
            f"postgresql+psycopg://{DB_USER}:{DB_PASSWORD}"
            f"@{DB_HOST}:{DB_PORT}/{DB_NAME}"
        )

    # SQLAlchemy
    SQLALCHEMY_DATABASE_URI = DATABASE_URL
    SQLALCHEMY_ECHO = os.getenv('SQLALCHEMY_ECHO', 'false').lower() == 'true'
    AUTO_CREATE_TABLES = os.getenv('AUTO_CREATE_TABLES', 'false').lower() == 'true'

    # Money and pricing
    CURRENCY_SYMBOL = os.getenv('CURRENCY_SYMBOL', '$')
    DEFAULT_TAX_PERCENT = os.getenv('DEFAULT_TAX_PERCENT', '18')
    TAX_RATE_PRESETS = _list_env('TAX_RATE_PRESETS', ['0', '5', '12', '15', '18', '28'])
    TIP_PRESETS = _list_env('TIP_PRESETS', ['10', '15', '18', '20', '25'])
    # JSON object {"CODE": {"type": "percentage"|"fixed", "value": "10"}}; empty uses the built-in table
    PROMO_CODES = json.loads(os.getenv('PROMO_CODES')) if os.getenv('PROMO_CODES') else None

    # Payments
    PAYMENT_EPSILON_CENTS = int(os.getenv('PAYMENT_EPSILON_CENTS', '1'))
    MAX_SPLIT_PAYERS = int(os.getenv('MAX_SPLIT_PAYERS', '20'))

    # Numbering
    TRANSACTION_NUMBER_PREFIX = os.getenv('TRANSACTION_NUMBER_PREFIX', 'TXN')
    RECEIPT_NUMBER_PREFIX = os.getenv('RECEIPT_NUMBER_PREFIX', 'RCP')

    # Loyalty
    LOYALTY_POINTS_PER_UNIT = os.getenv('LOYALTY_POINTS_PER_UNIT', '1')

    # Business Information (for receipts)
    BUSINESS_NAME = os.getenv('BUSINESS_NAME', 'POS Terminal')
    BUSINESS_ADDRESS = os.getenv('BUSINESS_ADDRESS', '')
    BUSINESS_PHONE = os.getenv('BUSINESS_PHONE', '')
    BUSINESS_EMAIL = os.getenv('BUSINESS_EMAIL', '')
    BUSINESS_TAX_ID = os.getenv('BUSINESS_TAX_ID', '')

    # Optional JSON catalog seed for the demo host
    CATALOG_FILE = os.getenv('CATALOG_FILE')


class TestingConfig(Config):
    """Configuration used by the test suite."""
    TESTING = True
    DEBUG = False
    SECRET_KEY = 'test-secret-key'
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_ECHO = False
    AUTO_CREATE_TABLES = True
    LOG_LEVEL = 'WARNING'
    CURRENCY_SYMBOL = '$'
    DEFAULT_TAX_PERCENT = '18'
    PROMO_CODES = None
    CATALOG_FILE = None
