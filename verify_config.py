#!/usr/bin/env python3
"""Check a configuration file against the dispatcher's config models."""

import sys
from pathlib import Path

from fanout.config.exceptions import ConfigurationError
from fanout.config.loader import _read_yaml, parse_app_config


def verify_config_structure(config_file: Path = Path("config.example.yaml")) -> bool:
    """Validate the file and print a short summary."""
    if not config_file.exists():
        print(f"✗ {config_file} not found")
        return False

    try:
        config = parse_app_config(_read_yaml(config_file))
    except ConfigurationError as e:
        print(f"✗ {config_file} validation failed:")
        print(str(e))
        return False

    print(f"✓ {config_file} structure is valid")
    print(f"  - Poll interval / window: {config.poll_interval} ({config.poll_interval_seconds}s)")
    print(f"  - Workers per tick: {config.dispatcher.max_workers}")
    print(f"  - Concurrent ticks: {config.dispatcher.max_concurrent_ticks}")
    print(f"  - Template overrides: {len(config.notifications.templates)}")
    return True


if __name__ == "__main__":
    path = Path(sys.argv[1]) if len(sys.argv) > 1 else Path("config.example.yaml")
    sys.exit(0 if verify_config_structure(path) else 1)
