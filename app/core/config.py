import os
from enum import Enum

from dotenv import load_dotenv

load_dotenv()


class Environment(str, Enum):
    TEST = 'test'
    PRODUCTION = 'production'
    DEVELOP = 'develop'


def _as_bool(value: str) -> bool:
    return (value or '').strip().lower() in ('1', 'true', 'yes', 'on')


class Settings:
    ENVIRONMENT: Environment = Environment(os.getenv('ENVIRONMENT') or Environment.TEST)
    DB_USERNAME: str = os.getenv('DB_USERNAME')
    DB_PASSWORD: str = os.getenv('DB_PASSWORD')
    DB_HOST: str = os.getenv('DB_HOST')
    DB_PORT: str = os.getenv('DB_PORT')
    DB_NAME: str = os.getenv('DB_NAME')

    SQLALCHEMY_TEST_DATABASE_URL = 'sqlite:///:memory:'
    DATABASE_URL: str = (
        f'postgresql://{DB_USERNAME}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}'
        if ENVIRONMENT != Environment.TEST
        else SQLALCHEMY_TEST_DATABASE_URL
    )

    # Shared with the identity provider that signs the bearer tokens
    SECRET_KEY: str = os.getenv('SECRET_KEY', '')

    ALPHA_CODE_LENGTH: int = int(os.getenv('ALPHA_CODE_LENGTH', '6'))
    CODE_GENERATION_MAX_ATTEMPTS: int = int(
        os.getenv('CODE_GENERATION_MAX_ATTEMPTS', '5')
    )

    # visit_time is informational unless this stricter policy is turned on
    ENFORCE_VISIT_TIME: bool = _as_bool(os.getenv('ENFORCE_VISIT_TIME', 'false'))
    VISIT_TIME_GRACE_MINUTES: int = int(os.getenv('VISIT_TIME_GRACE_MINUTES', '120'))

    BULK_EXIT_STAGING_TTL_MINUTES: int = int(
        os.getenv('BULK_EXIT_STAGING_TTL_MINUTES', '60')
    )
    EXPIRY_SWEEP_INTERVAL_SECONDS: int = int(
        os.getenv('EXPIRY_SWEEP_INTERVAL_SECONDS', '3600')
    )


settings = Settings()
