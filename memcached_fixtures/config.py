"""
memcached test fixture configuration

This module provides configuration classes for the fixture process manager:
where the memcached binary lives, how spawned servers are probed for
readiness, how large the server registry may grow, and how test clients
connect.

Classes:
    MemcachedSettings: server executable and invocation options
    ReadinessSettings: bounded readiness poll parameters
    RegistrySettings: registry capacity and servers started up front
    ClientSettings: timeouts for clients built by the client factory
    Settings: Main configuration class that orchestrates all settings

Key Features:
    - YAML-based configuration loading
    - MEMCACHED_PATH environment override for the server executable
    - Type validation and error handling
"""

import os
from dataclasses import dataclass

import yaml


MEMCACHED_PATH_ENV = "MEMCACHED_PATH"
DEFAULT_MEMCACHED_PATH = "/usr/bin/memcached"
DEFAULT_BIND_ADDRESS = "127.0.0.1"


def stype(obj):
    """Get the simple type name of an object.

    Example:
        >>> stype([1, 2, 3])
        'list'
    """
    return type(obj).__name__


def _is_number(value):
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass
class MemcachedSettings:
    """Cache-server executable and the way it is invoked.

    Attributes:
        path: memcached executable, overridden by MEMCACHED_PATH
        bind_address: address passed to ``-l`` (default: loopback)
        verbose: pass ``-v`` so the server logs connections
        stop_timeout: seconds to wait for a signalled server to exit
    """
    path: str = DEFAULT_MEMCACHED_PATH
    bind_address: str = DEFAULT_BIND_ADDRESS
    verbose: bool = True
    stop_timeout: float = 5.0

    def apply_env_overrides(self):
        env_path = os.environ.get(MEMCACHED_PATH_ENV)
        if env_path:
            self.path = env_path

    def validate(self):
        if not isinstance(self.path, str) or not self.path:
            raise ValueError(f"memcached path should be non-empty string and not {stype(self.path)}")

        if not isinstance(self.bind_address, str) or not self.bind_address:
            raise ValueError(
                f"memcached bind_address should be non-empty string and not {stype(self.bind_address)}"
            )

        if not isinstance(self.verbose, bool):
            raise ValueError(f"memcached verbose should be bool and not {stype(self.verbose)}")

        if not _is_number(self.stop_timeout):
            raise ValueError(f"memcached stop_timeout should be number and not {stype(self.stop_timeout)}")

        if self.stop_timeout <= 0:
            raise ValueError("memcached stop_timeout should be positive")


@dataclass
class ReadinessSettings:
    timeout: float = 5.0
    retry_interval: float = 0.01
    backoff: float = 2.0
    max_interval: float = 0.5

    def validate(self):
        for name in ("timeout", "retry_interval", "backoff", "max_interval"):
            value = getattr(self, name)
            if not _is_number(value):
                raise ValueError(f"readiness {name} should be number and not {stype(value)}")

        if self.timeout <= 0:
            raise ValueError("readiness timeout should be positive")

        if self.retry_interval <= 0:
            raise ValueError("readiness retry_interval should be positive")

        if self.backoff < 1:
            raise ValueError("readiness backoff should be at least 1")

        if self.max_interval < self.retry_interval:
            raise ValueError("readiness max_interval should not be less than retry_interval")


@dataclass
class RegistrySettings:
    capacity: int = 1000
    initial_servers: int = 2

    def validate(self):
        if not isinstance(self.capacity, int) or isinstance(self.capacity, bool):
            raise ValueError(f"registry capacity should be int and not {stype(self.capacity)}")

        if self.capacity <= 0:
            raise ValueError("registry capacity should be positive")

        if not isinstance(self.initial_servers, int) or isinstance(self.initial_servers, bool):
            raise ValueError(f"registry initial_servers should be int and not {stype(self.initial_servers)}")

        if self.initial_servers < 0:
            raise ValueError("registry initial_servers should be non-negative")

        if self.initial_servers > self.capacity:
            raise ValueError("registry initial_servers should not exceed capacity")


@dataclass
class ClientSettings:
    connect_timeout: float = 1.0
    timeout: float = 1.0

    def validate(self):
        if not _is_number(self.connect_timeout) or self.connect_timeout <= 0:
            raise ValueError(f"client connect_timeout should be positive number, got {self.connect_timeout!r}")

        if not _is_number(self.timeout) or self.timeout <= 0:
            raise ValueError(f"client timeout should be positive number, got {self.timeout!r}")


class Settings:
    DEFAULT_LOG_LEVEL = "info"

    def __init__(self):
        self.memcached = MemcachedSettings()
        self.readiness = ReadinessSettings()
        self.registry = RegistrySettings()
        self.client = ClientSettings()
        self.log_level = Settings.DEFAULT_LOG_LEVEL
        self.memcached.apply_env_overrides()

    def load(self, settings_file):
        with open(settings_file, "r") as f:
            data = yaml.safe_load(f.read()) or {}

        if not isinstance(data, dict):
            raise ValueError(f"config root should be mapping and not {stype(data)}")

        self.memcached = MemcachedSettings(**data.pop("memcached", {}))
        self.readiness = ReadinessSettings(**data.pop("readiness", {}))
        self.registry = RegistrySettings(**data.pop("registry", {}))
        self.client = ClientSettings(**data.pop("client", {}))
        self.log_level = data.pop("log_level", Settings.DEFAULT_LOG_LEVEL)

        if data:
            raise Exception(f"Unsupported config options: {list(data.keys())}")

        self.memcached.apply_env_overrides()
        self.validate()

    def validate_log_level(self):
        if self.log_level not in ["critical", "error", "warning", "info", "debug"]:
            raise ValueError(f"wrong log level {self.log_level}")

    def validate(self):
        self.memcached.validate()
        self.readiness.validate()
        self.registry.validate()
        self.client.validate()
        self.validate_log_level()
