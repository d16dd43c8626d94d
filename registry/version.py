#!/usr/bin/env python3
"""
Release number of busgraph, as reported by `busgraph --version` and the
inspector's /health endpoint.

The number lives in the VERSION file next to pyproject.toml.
"""
import os
import logging

logger = logging.getLogger(__name__)

VERSION_FILE = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'VERSION')


def get_version(version_file: str = VERSION_FILE) -> str:
    """Read the busgraph release, or "unknown" outside a source checkout"""
    try:
        with open(version_file, 'r') as f:
            version = f.read().strip()
    except FileNotFoundError:
        logger.warning(f"No VERSION file at {version_file}; reporting release as unknown")
        return "unknown"
    except OSError as e:
        logger.error(f"Cannot read busgraph release from {version_file}: {e}")
        return "unknown"

    logger.debug(f"busgraph release {version}")
    return version or "unknown"


_cached_version = None


def get_cached_version() -> str:
    """Release reported by /health; the VERSION file is read once per process"""
    global _cached_version
    if _cached_version is None:
        _cached_version = get_version()
    return _cached_version
