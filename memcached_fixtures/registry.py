"""
Registry of memcached servers spawned for a test run.

The registry is an ordered, bounded list of ServerRecord. Tests address
servers by index and grow the registry lazily: asking for the index equal to
the current size starts a new server. Every record remembers the ownership
token (by default the pid) of the process that created it, and cleanup only
signals servers owned by the calling process, so a forked test process never
stops servers belonging to its parent.

Usage:
    with ServerRegistry(settings) as registry:
        port = registry.get_or_spawn(0)
        ...
    # every owned server has been sent SIGTERM here
"""

import os
from dataclasses import dataclass, field
from logging import getLogger

from .config import Settings
from .spawner import FixtureError, Spawner
from .utils import ServerProcess


logger = getLogger(__name__)


class RegistryFullError(FixtureError):
    pass


class ServerIndexError(FixtureError, IndexError):
    pass


@dataclass(frozen=True)
class ServerRecord:
    owner: int
    pid: int
    port: int
    process: ServerProcess = field(compare=False, repr=False)


class ServerRegistry:
    def __init__(self, settings: Settings = None, spawner=None, owner=os.getpid):
        self.settings = settings or Settings()
        self.spawner = spawner or Spawner(self.settings)
        self.owner = owner
        self._records: list[ServerRecord] = []
        self._cleaned_up_owners = set()

    @property
    def capacity(self):
        return self.settings.registry.capacity

    @property
    def records(self):
        return list(self._records)

    def __len__(self):
        return len(self._records)

    def __getitem__(self, index):
        return self._records[index]

    def __iter__(self):
        return iter(list(self._records))

    def ports(self):
        return [record.port for record in self._records]

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.cleanup_all()
        return False

    def start(self, bind_address=None):
        if len(self._records) >= self.capacity:
            logger.error(f"too many memcacheds running ({len(self._records)} of {self.capacity})")
            raise RegistryFullError(f"registry is full: {self.capacity} servers running")

        spawned = self.spawner.spawn(bind_address)
        record = ServerRecord(
            owner=self.owner(),
            pid=spawned.pid,
            port=spawned.port,
            process=spawned.process,
        )
        self._records.append(record)
        return record.port

    def get_or_spawn(self, index):
        count = len(self._records)
        # Lazy growth only ever asks for index == count, so the lenient
        # comparison is kept.
        if index > count:
            raise ServerIndexError(f"server index {index} out of range, {count} servers running")
        if index == count:
            self.start()
        return self._records[index].port

    def _kill(self, record: ServerRecord):
        logger.info(f"Sending SIGTERM to memcached pid {record.pid} on port {record.port}")
        return record.process.terminate()

    def stop(self, port):
        for i, record in enumerate(self._records):
            if record.port != port:
                continue
            self._kill(record)
            record.process.wait_stopped(self.settings.memcached.stop_timeout)
            last = self._records.pop()
            if i < len(self._records):
                self._records[i] = last
            return True
        return False

    def cleanup_all(self):
        current_owner = self.owner()
        if current_owner in self._cleaned_up_owners:
            return
        self._cleaned_up_owners.add(current_owner)

        owned = [record for record in self._records if record.owner == current_owner]
        for record in owned:
            self._kill(record)
        for record in owned:
            record.process.wait_stopped(self.settings.memcached.stop_timeout)
