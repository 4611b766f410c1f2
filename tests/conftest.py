"""Shared test fixtures and utilities for memcached-fixtures tests"""

import itertools
import os
import stat
import sys
import textwrap
import time

import pytest

from memcached_fixtures.config import Settings
from memcached_fixtures.registry import ServerRegistry
from memcached_fixtures.spawner import SpawnedServer


FAKE_MEMCACHED_SOURCE = textwrap.dedent('''
    import socket
    import sys

    args = sys.argv[1:]
    flag = "-vp" if "-vp" in args else "-p"
    port = int(args[args.index(flag) + 1])
    address = args[args.index("-l") + 1]

    server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    server.bind((address, port))
    server.listen(16)
    print(f"fake memcached listening on {address}:{port}", flush=True)
    while True:
        conn, _ = server.accept()
        conn.close()
''')

EXITING_SERVER_SOURCE = textwrap.dedent('''
    import sys

    print("refusing to start", flush=True)
    sys.exit(3)
''')


class FakeProcess:
    """Stands in for ServerProcess in tests that must not fork anything"""

    def __init__(self, pid, port):
        self.pid = pid
        self.port = port
        self.signals = 0
        self.reaped = False

    def terminate(self):
        self.signals += 1
        return True

    def wait_stopped(self, timeout=5.0):
        self.reaped = True

    def is_alive(self):
        return self.signals == 0


class FakeSpawner:
    def __init__(self, first_port=40000):
        self.ports = itertools.count(first_port)
        self.pids = itertools.count(100000)
        self.spawned = []

    def spawn(self, bind_address=None):
        port = next(self.ports)
        process = FakeProcess(next(self.pids), port)
        self.spawned.append(process)
        return SpawnedServer(process=process, port=port, ready=True)


class OwnerToken:
    """Mutable ownership token used to impersonate another process"""

    def __init__(self, value=1):
        self.value = value

    def __call__(self):
        return self.value


def write_executable(directory, name, source):
    path = directory / name
    path.write_text(f"#!{sys.executable}\n{source}")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(path)


def assert_wait(condition, max_wait_time=10.0, retry_interval=0.05):
    """Wait for a condition to be true with timeout"""
    max_time = time.time() + max_wait_time
    while time.time() < max_time:
        if condition():
            return
        time.sleep(retry_interval)
    assert condition()


def pid_exists(pid):
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    return True


@pytest.fixture
def settings():
    cfg = Settings()
    cfg.readiness.timeout = 5.0
    cfg.memcached.stop_timeout = 2.0
    return cfg


@pytest.fixture
def fake_spawner():
    return FakeSpawner()


@pytest.fixture
def owner_token():
    return OwnerToken()


@pytest.fixture
def registry(settings, fake_spawner, owner_token):
    return ServerRegistry(settings, spawner=fake_spawner, owner=owner_token)


@pytest.fixture
def fake_memcached_path(tmp_path, monkeypatch):
    """Point MEMCACHED_PATH at a small python server speaking only TCP accept"""
    path = write_executable(tmp_path, "fake-memcached", FAKE_MEMCACHED_SOURCE)
    monkeypatch.setenv("MEMCACHED_PATH", path)
    return path


@pytest.fixture
def exiting_server_path(tmp_path, monkeypatch):
    path = write_executable(tmp_path, "exiting-memcached", EXITING_SERVER_SOURCE)
    monkeypatch.setenv("MEMCACHED_PATH", path)
    return path


@pytest.fixture
def live_settings(fake_memcached_path):
    cfg = Settings()
    cfg.readiness.timeout = 10.0
    cfg.memcached.stop_timeout = 2.0
    return cfg


@pytest.fixture
def live_registry(live_settings):
    with ServerRegistry(live_settings) as registry:
        yield registry
