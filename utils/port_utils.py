# utils/port_utils.py
import socket
import psutil
import logging
from typing import Optional, Dict

logger = logging.getLogger(__name__)


def is_port_in_use(port: int, host: str = '127.0.0.1') -> bool:
    """Проверяет, занят ли порт"""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        try:
            s.bind((host, port))
            return False
        except OSError:
            return True


def get_process_using_port(port: int) -> Optional[Dict]:
    """Возвращает информацию о процессе, слушающем порт"""
    try:
        connections = psutil.net_connections(kind='inet')
    except (psutil.AccessDenied, OSError) as e:
        logger.debug(f"Не удалось получить список соединений: {e}")
        return None

    for conn in connections:
        if not conn.laddr or conn.laddr.port != port or conn.status != psutil.CONN_LISTEN:
            continue
        if conn.pid is None:
            continue
        try:
            process = psutil.Process(conn.pid)
            return {
                'name': process.name(),
                'pid': process.pid,
            }
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
            continue
    return None


def check_port_availability(port: int, host: str = '127.0.0.1') -> tuple[bool, str]:
    """Проверяет доступность порта и возвращает описание проблемы"""
    if not is_port_in_use(port, host):
        return True, "Порт свободен"

    process_info = get_process_using_port(port)
    if process_info:
        return False, (
            f"Порт {port} занят процессом {process_info['name']} "
            f"(PID: {process_info['pid']})"
        )
    return False, f"Порт {port} занят"
