# lunaexecutor/config.py
import os
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name, default=False):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    SECRET_KEY = os.getenv('SECRET_KEY', 'a-super-secret-key-that-you-should-change')
    # relative SQLite paths resolve inside the Flask instance folder
    SQLALCHEMY_DATABASE_URI = os.getenv('DATABASE_URL', 'sqlite:///luna.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()
    LOG_DIR = os.getenv('LOG_DIR')  # file logs are off unless set

    CHAT_HISTORY_LIMIT = int(os.getenv('CHAT_HISTORY_LIMIT', 50))
    CHAT_MAX_MESSAGE_LENGTH = int(os.getenv('CHAT_MAX_MESSAGE_LENGTH', 2000))
    CHAT_ALLOW_ANONYMOUS = _env_bool('CHAT_ALLOW_ANONYMOUS')

    SOCKETIO_ASYNC_MODE = os.getenv('SOCKETIO_ASYNC_MODE') or None
    CORS_ALLOWED_ORIGINS = os.getenv('CORS_ALLOWED_ORIGINS', '*')


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = 'testing'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    LOG_DIR = None
    CHAT_ALLOW_ANONYMOUS = False
    SOCKETIO_ASYNC_MODE = 'threading'
