"""
Version of the raffle engine package.

Reads the installed distribution's metadata; a source checkout that was
never installed reports BASE_VERSION with a `+local` tag.
"""
from __future__ import annotations

from functools import lru_cache
from importlib.metadata import PackageNotFoundError, version as _pkg_version

# Keep in step with pyproject.toml.
BASE_VERSION = "0.1.0"

_PKG_NAME = "raffle-engine"


@lru_cache(maxsize=1)
def get_version() -> str:
    try:
        return _pkg_version(_PKG_NAME)
    except PackageNotFoundError:
        return f"{BASE_VERSION}+local"


__version__ = get_version()
__all__ = ["__version__", "get_version", "BASE_VERSION"]
