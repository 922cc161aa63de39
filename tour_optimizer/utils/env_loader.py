"""
Environment variable loading utility.

This module provides functions to load environment variables from files.
"""
import os
import logging

logger = logging.getLogger(__name__)


def _parse_line(line):
    """
    Split one ``KEY=value`` line into a (key, value) pair.

    An optional leading ``export`` keyword and matching surrounding quotes
    around the value are stripped.
    """
    if line.startswith('export '):
        line = line[len('export '):]

    key, value = line.split('=', 1)
    key = key.strip()
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
        value = value[1:-1]
    return key, value


def load_env_from_file(file_path, override=True):
    """
    Load environment variables from a file.

    Args:
        file_path: Path to the environment variable file.
        override: Whether values from the file replace variables that are
            already set in the process environment.

    Returns:
        True if file was loaded successfully, False otherwise.
    """
    if not os.path.exists(file_path):
        logger.warning(f"Environment file not found: {file_path}")
        return False

    try:
        with open(file_path, 'r') as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith('#'):
                    continue

                key, value = _parse_line(line)
                if not override and key in os.environ:
                    continue
                os.environ[key] = value

        logger.info(f"Loaded environment variables from {file_path}")
        return True
    except (OSError, ValueError) as e:
        logger.error(f"Error loading environment variables from {file_path}: {str(e)}")
        return False
