import time
import socket
import logging
import platform

import psutil

logger = logging.getLogger(__name__)

# Command line fragments of the dedicated server JVM
SERVER_MARKERS = ('zomboid', 'projectzomboid', 'pzserver', 'zombie.network.gameserver')
CPU_SAMPLE_INTERVAL = 0.1


def find_server_process():
    """
    Find the running Project Zomboid server process

    Returns:
        dict: {found, processName[, pid, cpuPercent, memoryMB, memoryPercent, commandLine]}
    """
    for proc in psutil.process_iter(['pid', 'name', 'cmdline']):
        try:
            command_line = ' '.join(proc.info['cmdline'] or [])
            if not any(marker in command_line.lower() for marker in SERVER_MARKERS):
                continue

            memory = proc.memory_info().rss
            return {
                'found': True,
                'processName': f"{proc.info['name']} (PZ Server)",
                'pid': proc.info['pid'],
                'cpuPercent': proc.cpu_percent(interval=CPU_SAMPLE_INTERVAL),
                'memoryMB': round(memory / (1024 * 1024)),
                'memoryPercent': round(proc.memory_percent(), 1),
                'commandLine': command_line[:100] + ('...' if len(command_line) > 100 else ''),
            }
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
            continue

    return {'found': False, 'processName': 'PZ Server process not found'}


def get_system_stats(include_server=True):
    """
    Host CPU, memory and uptime, plus the server process when requested

    Returns:
        dict: {cpu, memory, uptime, platform, hostname[, pzServer]}
    """
    memory = psutil.virtual_memory()
    stats = {
        'cpu': {
            'cores': psutil.cpu_count() or 0,
            'model': platform.processor() or platform.machine() or 'Unknown',
            'usage': round(psutil.cpu_percent(interval=CPU_SAMPLE_INTERVAL), 1),
        },
        'memory': {
            'total': memory.total,
            'used': memory.total - memory.available,
            'free': memory.available,
            'usagePercent': round(memory.percent, 1),
        },
        'uptime': int(time.time() - psutil.boot_time()),
        'platform': platform.system().lower(),
        'hostname': socket.gethostname(),
    }

    if include_server:
        stats['pzServer'] = find_server_process()
        logger.debug(f"Server process: {stats['pzServer']}")

    return stats
