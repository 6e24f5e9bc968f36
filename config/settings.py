# config/settings.py
import os
from dotenv import load_dotenv

# Cargar variables de entorno
load_dotenv()


class Config:
    SECRET_KEY = os.getenv('SECRET_KEY', 'storefront-chat-secret-key')
    DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///storefront_chat.db')

    # Bearer tokens (REST + socket handshake)
    JWT_SECRET = os.getenv('JWT_SECRET', 'storefront-jwt-secret-change-me-in-production')
    JWT_ALGORITHM = os.getenv('JWT_ALGORITHM', 'HS256')
    JWT_EXPIRATION_SECONDS = int(os.getenv('JWT_EXPIRATION_SECONDS', 3600))

    CORS_ORIGINS = os.getenv('CORS_ORIGINS', '*')
    SOCKETIO_ASYNC_MODE = os.getenv('SOCKETIO_ASYNC_MODE', 'threading')
    MESSAGE_MAX_LENGTH = int(os.getenv('MESSAGE_MAX_LENGTH', 2000))

    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
    APP_PORT = int(os.getenv('APP_PORT', 5001))
    FLASK_DEBUG = os.getenv('FLASK_DEBUG', 'False').lower() == 'true'
