"""pytest plugin exposing the memcached server registry to tests.

Enable it with ``pytest_plugins = ["memcached_fixtures.plugin"]`` in a
conftest, or run the suite through ``memcached-fixtures`` which loads it and
shares the registry it pre-populated.
"""

import logging
import os

import pytest

from .client import build_client
from .config import Settings
from .registry import ServerRegistry


registry_key = pytest.StashKey[ServerRegistry]()


class RegistryPlugin:
    """Publishes a driver-owned registry and counts failed test reports."""

    def __init__(self, registry: ServerRegistry):
        self.registry = registry
        self.failed = 0

    def pytest_configure(self, config):
        config.stash[registry_key] = self.registry

    def pytest_runtest_logreport(self, report):
        if report.failed:
            self.failed += 1


def pytest_addoption(parser):
    parser.addini(
        "memcached_config",
        help="YAML config file for spawned memcached servers",
        default="",
    )
    parser.addoption(
        "--require-memcached",
        action="store_true",
        default=False,
        help="Fail instead of skipping tests that need a real memcached binary",
    )


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "requires_memcached: test needs a real memcached binary"
    )


def load_settings(config):
    settings = Settings()
    config_file = config.getini("memcached_config")
    if config_file:
        settings.load(str(config.rootpath / config_file))
    return settings


def pytest_collection_modifyitems(config, items):
    if config.getoption("--require-memcached"):
        return

    memcached_path = load_settings(config).memcached.path
    if os.access(memcached_path, os.X_OK):
        return

    skip_marker = pytest.mark.skip(
        reason=f"memcached not found at {memcached_path}, set MEMCACHED_PATH to run"
    )
    for item in items:
        if "requires_memcached" in item.keywords:
            item.add_marker(skip_marker)


@pytest.fixture(scope="session")
def memcached_registry(request):
    registry = request.config.stash.get(registry_key, None)
    if registry is not None:
        yield registry
        return
    with ServerRegistry(load_settings(request.config)) as registry:
        yield registry


@pytest.fixture
def memcached_port(memcached_registry):
    """Port of the server at an index, starting it when index == len(registry)"""
    return memcached_registry.get_or_spawn


@pytest.fixture
def memcached_client(memcached_registry):
    handles = []

    def factory(server_count, log_level=logging.INFO):
        handle = build_client(memcached_registry, server_count, log_level)
        handles.append(handle)
        return handle

    yield factory
    for handle in handles:
        handle.close()
