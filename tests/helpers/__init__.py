"""Test helper utilities for notification fan-out tests."""

from .fakes import InMemoryDataSource, InMemorySink, org_follow, user_follow
from .seed import load_fixture, seed_database, seed_from_file

__all__ = [
    "InMemoryDataSource",
    "InMemorySink",
    "org_follow",
    "user_follow",
    "load_fixture",
    "seed_database",
    "seed_from_file",
]
