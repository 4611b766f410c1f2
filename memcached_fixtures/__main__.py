#!/usr/bin/env python3
"""
Entry point for running memcached_fixtures as a module.
This file enables: python -m memcached_fixtures
"""

from .main import main

if __name__ == '__main__':
    main()
