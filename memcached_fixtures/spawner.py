import socket
import time
from dataclasses import dataclass
from logging import getLogger

from .config import Settings
from .ports import allocate_port
from .utils import ServerProcess


logger = getLogger(__name__)


class FixtureError(Exception):
    pass


class SpawnError(FixtureError):
    pass


@dataclass
class SpawnedServer:
    process: ServerProcess
    port: int
    ready: bool

    @property
    def pid(self):
        return self.process.pid


def wait_for_port(
        host, port, timeout=5.0, retry_interval=0.01, backoff=2.0, max_interval=0.5, is_alive=None,
):
    """Poll a TCP connect against host:port until it succeeds or timeout passes.

    Returns True once a connection is accepted while the server process is
    still running. Returns False on timeout, or as soon as ``is_alive()``
    reports that the server process has exited: a clock-derived port can
    collide with another listener, which then answers in its place.
    """
    deadline = time.monotonic() + timeout
    interval = retry_interval
    while True:
        if is_alive is not None and not is_alive():
            return False
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return False
        try:
            with socket.create_connection((host, port), timeout=min(remaining, max_interval)):
                return is_alive is None or is_alive()
        except OSError:
            pass
        time.sleep(min(interval, max(deadline - time.monotonic(), 0)))
        interval = min(interval * backoff, max_interval)


class Spawner:
    def __init__(self, settings: Settings, port_allocator=allocate_port):
        self.settings = settings
        self.port_allocator = port_allocator

    def build_process(self, port, bind_address):
        memcached = self.settings.memcached
        return ServerProcess(
            path=memcached.path,
            port=port,
            bind_address=bind_address,
            verbose=memcached.verbose,
        )

    def spawn(self, bind_address=None):
        bind_address = bind_address or self.settings.memcached.bind_address
        port = self.port_allocator()
        process = self.build_process(port, bind_address)

        logger.info(f"Starting {process.path} on port {port}")
        try:
            process.run()
        except OSError as e:
            raise SpawnError(f"unable to start {process.path}: {e}") from e

        readiness = self.settings.readiness
        ready = wait_for_port(
            bind_address,
            port,
            timeout=readiness.timeout,
            retry_interval=readiness.retry_interval,
            backoff=readiness.backoff,
            max_interval=readiness.max_interval,
            is_alive=process.is_alive,
        )
        if not ready:
            logger.warning(
                f"memcached pid {process.pid} on port {port} not accepting connections "
                f"after {readiness.timeout}s"
            )
        return SpawnedServer(process=process, port=port, ready=ready)
