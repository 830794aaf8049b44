"""
Component Test Mocks

Shared mock implementations for component testing.
These mocks replace real I/O dependencies (PostgreSQL, NATS).
Service-specific mocks live in tests/component/{service}/conftest.py
"""

from .db_mock import MockPostgresClient
from .nats_mock import MockEventBus

__all__ = [
    'MockEventBus',
    'MockPostgresClient',
]
