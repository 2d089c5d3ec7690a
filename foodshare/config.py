import os
import secrets
from datetime import timedelta

basedir = os.path.abspath(os.path.dirname(__file__))

class Config:
    # Generate a secure secret key
    SECRET_KEY = os.environ.get('SECRET_KEY') or secrets.token_hex(16)

    # The hosted data platform is reached through SQLAlchemy; falls back to a local file
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(basedir, 'foodshare.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    PERMANENT_SESSION_LIFETIME = timedelta(days=1)
    WTF_CSRF_ENABLED = os.environ.get('WTF_CSRF_ENABLED', 'true').lower() == 'true'

    # Logging
    LOG_FILE = os.environ.get('LOG_FILE', 'foodshare.log')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # Listing sizes
    DONATIONS_PER_PAGE = 10
    TRANSACTIONS_PER_PAGE = 5

    # Discovery defaults for recipients
    DEFAULT_SEARCH_RADIUS_KM = 10
    DEFAULT_SEARCH_LOCATION = (3.139003, 101.686855)  # Kuala Lumpur city centre

    DEBUG = os.environ.get('FLASK_DEBUG', 'false').lower() == 'true'


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = 'testing'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    WTF_CSRF_ENABLED = False
    LOG_FILE = None
