"""
Project Zomboid RCON Utility
Source RCON sessions for status checks and admin commands
"""

import time
import functools
import logging

from rcon.source import Client
from rcon.exceptions import EmptyResponse, SessionTimeout, WrongPassword

from config import Config

logger = logging.getLogger(__name__)

DEFAULT_HOST = '127.0.0.1'
NO_PASSWORD_MESSAGE = 'RCON password is not configured'

# Errors that mean "server unreachable", reported to the client rather than raised
RCON_ERRORS = (EmptyResponse, SessionTimeout, OSError, ValueError)


def parse_players(output):
    """
    Parse the reply of the 'players' command

    Format:
        Players connected (2):
        -Alice
        -Bob

    Returns:
        list: Player names in reply order
    """
    players = []
    for line in (output or '').splitlines():
        line = line.strip()
        if line.startswith('-') and len(line) > 1:
            players.append(line[1:].strip())
    return players


# --- DECORATOR: SESSION GUARD ---
def rcon_session(func):
    """
    Decorator that opens an RCON session for the wrapped method.

    The session is passed as the first argument after self and closed when the
    method returns. Connection and authentication failures are logged and
    returned as (False, error, elapsed_ms) instead of raised.
    """
    @functools.wraps(func)
    def wrapper(self, *args, **kwargs):
        start = time.monotonic()
        try:
            logger.info(f"Connecting to RCON at {self.host}:{self.port} for '{func.__name__}'")
            with Client(self.host, self.port, passwd=self.password, timeout=self.timeout) as client:
                return func(self, client, *args, **kwargs)
        except WrongPassword:
            logger.warning(f"RCON login failed for {self.host}:{self.port} - invalid password")
            return False, 'Invalid RCON password', self._elapsed(start)
        except RCON_ERRORS as e:
            logger.error(f"RCON '{func.__name__}' failed: {e}")
            return False, str(e) or e.__class__.__name__, self._elapsed(start)
    return wrapper


class RConManager:
    """RCON client for a Project Zomboid server"""

    def __init__(self, host=None, port=None, password='', timeout=None):
        """
        Args:
            host: Server IP address
            port: RCON port (RCONPort in server.ini)
            password: RCONPassword from server.ini
            timeout: Socket timeout in seconds
        """
        self.host = host or Config.RCON_HOST or DEFAULT_HOST
        self.port = int(port or Config.RCON_PORT)
        self.password = password or ''
        self.timeout = timeout or Config.RCON_TIMEOUT

    @staticmethod
    def _elapsed(start):
        return int((time.monotonic() - start) * 1000)

    @rcon_session
    def _players(self, client):
        start = time.monotonic()
        players = parse_players(client.run('players'))
        return True, players, self._elapsed(start)

    def get_status(self):
        """
        Check whether the server answers RCON and list online players

        Returns:
            dict: {status, players, playerList, responseTime, message|error}
        """
        if not self.password:
            return {'status': 'offline', 'error': NO_PASSWORD_MESSAGE}

        start = time.monotonic()
        success, result, _ = self._players()
        elapsed = self._elapsed(start)

        if not success:
            return {'status': 'offline', 'error': result or 'Connection failed', 'responseTime': elapsed}

        logger.info(f"RCON online: {len(result)} player(s) in {elapsed}ms")
        return {
            'status': 'online',
            'players': len(result),
            'playerList': result,
            'message': 'Connected to server',
            'responseTime': elapsed,
        }

    @rcon_session
    def _run(self, client, command):
        start = time.monotonic()
        normalized = command.strip().lower()

        if normalized == 'players':
            players = parse_players(client.run('players'))
            response = f"Players connected ({len(players)}): {', '.join(players)}"
        elif normalized == 'save':
            response = client.run('save')
        elif normalized.startswith('servermsg '):
            message = command.strip()[len('servermsg '):].strip().strip('"\'')
            response = client.run('servermsg', f'"{message}"')
        else:
            response = client.run(command.strip())

        return True, (response or '').strip() or 'Command executed', self._elapsed(start)

    def execute_command(self, command):
        """
        Execute an admin command

        Args:
            command: Command line as typed by the operator

        Returns:
            tuple: (success: bool, response: str, elapsed_ms: int)
        """
        if not self.password:
            return False, NO_PASSWORD_MESSAGE, 0
        if not command or not command.strip():
            return False, 'No command given', 0

        logger.info(f"RCON command: {command}")
        start = time.monotonic()
        success, response, _ = self._run(command)
        return success, response, self._elapsed(start)
