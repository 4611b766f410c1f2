import importlib.metadata

try:
    __version__ = importlib.metadata.version("memcached-fixtures")
except importlib.metadata.PackageNotFoundError:
    __version__ = "unknown"  # fallback version
