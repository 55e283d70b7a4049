import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

class Config:
    """Base configuration class"""
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', 'http://localhost:3000,http://localhost:5173').split(',')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    SEED_DATABASE = os.environ.get('SEED_DATABASE', 'true').lower() == 'true'

    # Rate limiting
    RATELIMIT_DEFAULT = "200 per day;50 per hour"
    RATELIMIT_STORAGE_URI = os.environ.get('REDIS_URL', 'memory://')

    # Capacity policy
    STANDARD_WEEKLY_HOURS = float(os.environ.get('STANDARD_WEEKLY_HOURS', 40))
    MAX_WEEKLY_HOURS = float(os.environ.get('MAX_WEEKLY_HOURS', 168))  # sanity ceiling per assignment
    HIGH_UTILIZATION_THRESHOLD = float(os.environ.get('HIGH_UTILIZATION_THRESHOLD', 80))
    DEFAULT_HOURLY_COST = float(os.environ.get('DEFAULT_HOURLY_COST', 75))

class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///staffing_capacity.db'

class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    TESTING = False
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL')
    SEED_DATABASE = os.environ.get('SEED_DATABASE', 'false').lower() == 'true'
    RATELIMIT_DEFAULT = os.environ.get('RATELIMIT_DEFAULT', "100 per hour")
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'WARNING')

    # Only explicitly allowed origins in production
    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '').split(',') if os.environ.get('CORS_ORIGINS') else []

class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SEED_DATABASE = False
    RATELIMIT_ENABLED = False

# Configuration mapping
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
