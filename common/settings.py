"""Shared application settings read from environment variables."""

import os

DATA_DIR: str = os.environ.get('DATA_DIR', 'data')
DATABASE_URL: str = os.environ.get(
    'DATABASE_URL', f'sqlite:///{DATA_DIR}/location_groups.db'
)

ENVIRONMENT: str = os.environ.get('ENVIRONMENT', 'development')
IS_PRODUCTION: bool = ENVIRONMENT == 'production'

LOG_LEVEL: str = os.environ.get('LOG_LEVEL', 'INFO').upper()

# Browser origins allowed to call the API with credentials.
ALLOWED_ORIGINS: list[str] = [
    origin.strip()
    for origin in os.environ.get(
        'ALLOWED_ORIGINS', 'http://localhost:3000,http://127.0.0.1:3000'
    ).split(',')
    if origin.strip()
]

DEVICE_COOKIE_NAME: str = os.environ.get('DEVICE_COOKIE_NAME', 'deviceId')
DEVICE_COOKIE_MAX_AGE: int = 365 * 24 * 60 * 60

GEOCODER_USER_AGENT: str = os.environ.get(
    'GEOCODER_USER_AGENT', 'LocationGroupsApp/1.0'
)
GEOCODER_TIMEOUT: float = float(os.environ.get('GEOCODER_TIMEOUT', '10'))

BULK_IMPORT_DELAY_SECONDS: float = float(
    os.environ.get('BULK_IMPORT_DELAY_SECONDS', '0.5')
)

INACTIVE_DEVICE_DAYS: int = int(os.environ.get('INACTIVE_DEVICE_DAYS', '90'))

# Finished bulk import jobs older than this are dropped from memory.
BULK_JOB_RETENTION_SECONDS: float = float(
    os.environ.get('BULK_JOB_RETENTION_SECONDS', '3600')
)
