#!/usr/bin/env python3

import argparse
import logging
import sys

import pytest

from .config import Settings
from .plugin import RegistryPlugin
from .registry import ServerRegistry
from .spawner import FixtureError


logger = logging.getLogger(__name__)


def set_logging_config(tags, log_level_str=None):
    """Configure logging to output only to stderr."""
    handlers = [logging.StreamHandler(sys.stderr)]

    log_levels = {
        'critical': logging.CRITICAL,
        'error': logging.ERROR,
        'warning': logging.WARNING,
        'info': logging.INFO,
        'debug': logging.DEBUG,
    }

    log_level = log_levels.get(log_level_str)
    if log_level is None:
        logging.warning(f'Unknown log level {log_level_str}, setting info')
        log_level = logging.INFO

    logging.basicConfig(
        level=log_level,
        format=f'[{tags} %(asctime)s %(levelname)8s] %(message)s',
        handlers=handlers,
        force=True,
    )


def run_tests(settings: Settings, pytest_args, spawner=None):
    with ServerRegistry(settings, spawner=spawner) as registry:
        # start the initial memcacheds in the parent process
        for _ in range(settings.registry.initial_servers):
            try:
                registry.start()
            except FixtureError as e:
                logger.error(f'unable to start initial memcached: {e}')
                break

        plugin = RegistryPlugin(registry)
        exit_code = pytest.main(list(pytest_args), plugins=[plugin, 'memcached_fixtures.plugin'])

        number_failed = plugin.failed
        logger.info(f'pytest finished with exit code {int(exit_code)}, {number_failed} failed')

    return 0 if number_failed == 0 and exit_code == pytest.ExitCode.OK else 1


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="run a pytest suite against freshly spawned memcached servers",
    )
    parser.add_argument("--config", help="config file path", default=None, type=str)
    parser.add_argument("--log-level", help="overrides log_level from config", default=None, type=str)
    args, pytest_args = parser.parse_known_args(argv)

    config = Settings()
    if args.config:
        config.load(args.config)
    if args.log_level:
        config.log_level = args.log_level

    set_logging_config('fixtures', log_level_str=config.log_level)
    sys.exit(run_tests(config, pytest_args))


if __name__ == '__main__':
    main()
