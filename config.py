import os
import secrets

import pytz


class Config:
    """Application configuration"""

    # Base directory
    BASE_DIR = os.path.abspath(os.path.dirname(__file__))

    # Secret key for sessions
    SECRET_KEY = os.environ.get('SECRET_KEY') or secrets.token_hex(32)

    # Panel database (operator preferences)
    SQLALCHEMY_DATABASE_URI = os.environ.get('PANEL_DATABASE_URI') or \
        'sqlite:///' + os.path.join(BASE_DIR, 'panel.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Web server settings
    HOST = os.environ.get('PANEL_HOST', '127.0.0.1')
    PORT = int(os.environ.get('PANEL_PORT', 3000))
    DEBUG = os.environ.get('PANEL_DEBUG', '').lower() in ('1', 'true', 'yes')
    LOG_LEVEL = os.environ.get('PANEL_LOG_LEVEL', 'INFO')

    # Steam Web API
    STEAM_API_KEY = os.environ.get('STEAM_API_KEY', '')
    STEAM_APP_ID = 108600  # Project Zomboid
    STEAM_REQUEST_TIMEOUT = 15

    # RCON defaults
    RCON_HOST = '127.0.0.1'
    RCON_PORT = 27015
    RCON_TIMEOUT = 5

    # Server process
    SERVER_LOG_LINES = 500
    SERVER_STOP_TIMEOUT = 5

    # Timezone for console timestamps
    TIMEZONE = pytz.timezone(os.environ.get('PANEL_TIMEZONE', 'UTC'))
