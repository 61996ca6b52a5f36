"""
Application configuration.

Values are read from environment variables, with a ``.env`` file in the
project root loaded first. Existing environment variables win over the file.
"""
import os
import logging
from pathlib import Path

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent

load_dotenv(BASE_DIR / '.env')


def _env_bool(name, default=False):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _env_int(name, default):
    value = os.getenv(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Invalid integer for {name}: {value!r}, using {default}")
        return default


class Config:
    """Settings applied to ``app.config`` at startup."""

    SECRET_KEY = os.getenv('SECRET_KEY', 'supersecretjwtkey')

    # Relative SQLite paths are resolved inside the Flask instance folder
    SQLALCHEMY_DATABASE_URI = os.getenv('DATABASE_URL', 'sqlite:///car_rental.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    APP_URL = os.getenv('APP_URL', 'http://localhost:5173')
    SERVER_PORT = _env_int('SERVER_PORT', 4000)

    UPLOAD_FOLDER = os.getenv('UPLOAD_FOLDER', str(BASE_DIR / 'uploads'))
    ALLOWED_EXTENSIONS = {'png', 'jpg', 'jpeg', 'gif', 'webp', 'pdf'}
    MAX_CONTENT_LENGTH = _env_int('MAX_UPLOAD_MB', 5) * 1024 * 1024

    TOKEN_COOKIE_NAME = 'token'
    TOKEN_MAX_AGE = _env_int('TOKEN_MAX_AGE_DAYS', 7) * 24 * 60 * 60
    COOKIE_SECURE = _env_bool('COOKIE_SECURE')

    # When enabled, status updates must follow the forward-or-cancel graph
    STRICT_STATUS_TRANSITIONS = _env_bool('STRICT_STATUS_TRANSITIONS')

    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()

    INIT_ADMIN_EMAIL = os.getenv('INIT_ADMIN_EMAIL', '')
    INIT_ADMIN_PASSWORD = os.getenv('INIT_ADMIN_PASSWORD', '')
    INIT_ADMIN_NAME = os.getenv('INIT_ADMIN_NAME', 'Administrator')
