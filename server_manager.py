import os
import re
import signal
import logging
import threading
import subprocess
from collections import deque
from datetime import datetime

from config import Config

logger = logging.getLogger(__name__)

WINDOWS_SCRIPT = 'StartServer64.bat'
POSIX_SCRIPTS = ('start-server.sh', 'StartServer64.sh')
DEDICATED_SERVER_DIR = os.path.join('steamapps', 'common', 'Project Zomboid Dedicated Server')


def find_start_script(server_path, windows=None):
    """
    Find the script that launches the dedicated server

    Args:
        server_path: Server directory, or the script itself
        windows: Override platform detection (defaults to os.name == 'nt')

    Returns:
        str: Script path, or None
    """
    if not server_path:
        return None
    if windows is None:
        windows = os.name == 'nt'

    names = (WINDOWS_SCRIPT,) if windows else POSIX_SCRIPTS
    server_path = os.path.normpath(server_path.strip())

    if os.path.isfile(server_path) and os.path.basename(server_path) in names:
        return server_path

    for name in names:
        candidate = os.path.join(server_path, name)
        if os.path.isfile(candidate):
            return candidate
    return None


def parse_memory_to_mb(memory):
    """Convert a JVM size such as '6G', '4096M' or '524288k' to MB"""
    match = re.match(r'^\s*(\d+(?:\.\d+)?)\s*([GgMmKk]?)\s*$', memory or '')
    if not match:
        return None

    value = float(match.group(1))
    unit = match.group(2).upper()
    if unit == 'G':
        value *= 1024
    elif unit == 'K':
        value /= 1024
    return int(value) if value == int(value) else value


def extract_memory_settings(content):
    """Return (max_memory, min_memory) from -Xmx / -Xms flags, None when absent"""
    xmx = re.search(r'-Xmx(\d+[GgMmKk]?)', content or '')
    xms = re.search(r'-Xms(\d+[GgMmKk]?)', content or '')
    return (xmx.group(1) if xmx else None), (xms.group(1) if xms else None)


def _memory_config_candidates(server_path):
    names = (WINDOWS_SCRIPT,) + POSIX_SCRIPTS
    directories = [
        server_path,
        os.path.join(server_path, '..'),
        os.path.join(server_path, '..', '..'),
        os.path.join(server_path, '..', '..', '..'),
    ]
    parent = os.path.dirname(server_path)
    if 'Zomboid' in parent:
        directories.append(os.path.join(parent, '..', '..', DEDICATED_SERVER_DIR))

    for directory in directories:
        for name in names:
            yield os.path.normpath(os.path.join(directory, name))


def find_memory_config(server_path):
    """
    Read the JVM heap settings from the server start script

    Returns:
        dict: {maxMemory, maxMemoryMB, minMemory, minMemoryMB, batFilePath[, error]}
    """
    result = {
        'maxMemory': None,
        'maxMemoryMB': None,
        'minMemory': None,
        'minMemoryMB': None,
        'batFilePath': None,
    }
    if not server_path:
        result['error'] = 'Server path is not set'
        return result

    script_path = next((path for path in _memory_config_candidates(server_path) if os.path.isfile(path)), None)
    if not script_path:
        result['error'] = f'{WINDOWS_SCRIPT} not found'
        return result

    with open(script_path, 'r', encoding='utf-8', errors='replace') as f:
        max_memory, min_memory = extract_memory_settings(f.read())

    result.update({
        'maxMemory': max_memory,
        'maxMemoryMB': parse_memory_to_mb(max_memory) if max_memory else None,
        'minMemory': min_memory,
        'minMemoryMB': parse_memory_to_mb(min_memory) if min_memory else None,
        'batFilePath': script_path,
    })
    return result


class ServerProcess:
    """Owns the dedicated server child process and its recent console output"""

    def __init__(self, max_lines=None, stop_timeout=None):
        self.lock = threading.Lock()
        self.start_lock = threading.Lock()
        self.output = deque(maxlen=max_lines or Config.SERVER_LOG_LINES)
        self.stop_timeout = stop_timeout if stop_timeout is not None else Config.SERVER_STOP_TIMEOUT
        self.process = None
        self.script_path = None
        self.started_at = None

    def _add_output(self, line):
        timestamp = datetime.now(Config.TIMEZONE).strftime('%H:%M:%S')
        with self.lock:
            self.output.append(f"[{timestamp}] {line}")

    def is_running(self):
        with self.lock:
            return self.process is not None and self.process.poll() is None

    def _build_command(self, script_path):
        if os.name == 'nt':
            return ['cmd.exe', '/c', script_path], {}
        return ['bash', script_path], {'start_new_session': True}

    def start(self, server_path):
        """
        Launch the server start script

        Concurrent calls are serialized by start_lock.

        Returns:
            tuple: (success: bool, message: str)
        """
        with self.start_lock:
            return self._start(server_path)

    def _start(self, server_path):
        if not server_path:
            return False, "Server path is not set"

        script_path = find_start_script(server_path)
        if not script_path:
            return False, f"Start script not found in {server_path}"

        if self.is_running():
            return False, "Server is already running. Stop it before starting again."

        with self.lock:
            self.output.clear()
        self._add_output('=== Starting Project Zomboid server ===')
        self._add_output(f'Script: {script_path}')

        command, extra = self._build_command(script_path)
        try:
            process = subprocess.Popen(
                command,
                cwd=os.path.dirname(script_path),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding='utf-8',
                errors='replace',
                **extra
            )
        except OSError as e:
            logger.error(f"Error starting server from {script_path}: {e}")
            self._add_output(f'[ERROR] {e}')
            return False, f"Error starting server: {str(e)}"

        with self.lock:
            self.process = process
            self.script_path = script_path
            self.started_at = datetime.now(Config.TIMEZONE)

        for stream, prefix in ((process.stdout, ''), (process.stderr, '[ERROR] ')):
            threading.Thread(target=self._pump, args=(stream, prefix), daemon=True).start()
        threading.Thread(target=self._wait, args=(process,), daemon=True).start()

        logger.info(f"Server process started with PID {process.pid} from {script_path}")
        return True, f"Server started (PID: {process.pid})"

    def _pump(self, stream, prefix):
        for line in iter(stream.readline, ''):
            line = line.rstrip('\r\n')
            if line.strip():
                self._add_output(f'{prefix}{line}')
        stream.close()

    def _wait(self, process):
        code = process.wait()
        self._add_output(f'=== Server stopped (exit code: {code}) ===')
        logger.info(f"Server process {process.pid} exited with code {code}")
        with self.lock:
            if self.process is process:
                self.process = None
                self.started_at = None

    def _signal(self, process, sig):
        if os.name == 'nt':
            if sig == signal.SIGTERM:
                process.terminate()
            else:
                process.kill()
            return
        # Signal the whole group so the JVM started by the script goes too
        os.killpg(os.getpgid(process.pid), sig)

    def _force_kill(self, process):
        if process.poll() is not None:
            return
        try:
            self._signal(process, getattr(signal, 'SIGKILL', signal.SIGTERM))
            self._add_output('=== Server was force stopped ===')
            logger.warning(f"Server process {process.pid} killed after {self.stop_timeout}s")
        except ProcessLookupError:
            pass

    def stop(self):
        """
        Ask the server to stop, escalating to kill after stop_timeout seconds

        Returns:
            tuple: (success: bool, message: str)
        """
        with self.lock:
            process = self.process
        if process is None or process.poll() is not None:
            return False, "Server is not running"

        self._add_output('=== Stopping server... ===')
        try:
            self._signal(process, signal.SIGTERM)
        except ProcessLookupError:
            return False, "Server is not running"

        timer = threading.Timer(self.stop_timeout, self._force_kill, args=(process,))
        timer.daemon = True
        timer.start()

        logger.info(f"Sent stop signal to server process {process.pid}")
        return True, "Stopping server..."

    def status(self):
        with self.lock:
            running = self.process is not None and self.process.poll() is None
            return {
                'running': running,
                'pid': self.process.pid if running else None,
                'scriptPath': self.script_path,
                'startedAt': self.started_at.isoformat() if running and self.started_at else None,
            }

    def tail_logs(self, limit=None):
        """Most recent console lines, oldest first"""
        with self.lock:
            lines = list(self.output)
        if limit and limit > 0:
            return lines[-limit:]
        return lines
