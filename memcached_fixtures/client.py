import logging
import sys
from dataclasses import dataclass

from pymemcache.client.hash import HashClient

from .registry import ServerRegistry


LOOPBACK_HOST = "127.0.0.1"
CLIENT_LOGGER_NAME = "pymemcache"


def resolve_log_level(log_level):
    if isinstance(log_level, int):
        return log_level
    level = logging.getLevelName(str(log_level).upper())
    if not isinstance(level, int):
        raise ValueError(f"unknown log level {log_level}")
    return level


@dataclass
class ClientHandle:
    client: HashClient
    servers: str
    log_handler: logging.Handler
    previous_log_level: int = logging.NOTSET

    def close(self):
        try:
            for server_client in self.client.clients.values():
                server_client.close()
        finally:
            client_logger = logging.getLogger(CLIENT_LOGGER_NAME)
            client_logger.removeHandler(self.log_handler)
            client_logger.setLevel(self.previous_log_level)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


def format_servers(ports, host=LOOPBACK_HOST):
    return ",".join(f"{host}:{port}" for port in ports)


def build_client(registry: ServerRegistry, server_count, log_level=logging.INFO) -> ClientHandle:
    """Build a hashing client pointed at the first ``server_count`` registry servers.

    Missing servers are spawned through ``registry.get_or_spawn``. Client
    library log records at or above ``log_level`` are written to stderr until
    the handle is closed.
    """
    level = resolve_log_level(log_level)
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    client_logger = logging.getLogger(CLIENT_LOGGER_NAME)
    previous_level = client_logger.level
    client_logger.addHandler(handler)
    if client_logger.level == logging.NOTSET or client_logger.level > level:
        client_logger.setLevel(level)

    try:
        ports = [registry.get_or_spawn(i) for i in range(server_count)]
    except Exception:
        client_logger.removeHandler(handler)
        client_logger.setLevel(previous_level)
        raise

    client_settings = registry.settings.client
    client = HashClient(
        [(LOOPBACK_HOST, port) for port in ports],
        connect_timeout=client_settings.connect_timeout,
        timeout=client_settings.timeout,
    )
    return ClientHandle(
        client=client,
        servers=format_servers(ports),
        log_handler=handler,
        previous_log_level=previous_level,
    )
