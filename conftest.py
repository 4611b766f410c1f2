# conftest.py
pytest_plugins = ["memcached_fixtures.plugin"]
