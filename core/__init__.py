#!/usr/bin/env python3
"""
Core Module for the Pricing Campaign Service

Shared infrastructure components:

COMPONENTS:
    - config/: Dataclass configuration loaded from the environment
    - postgres_client.py: asyncpg connection pool wrapper
    - nats_client.py: NATS JetStream event bus for domain events

USAGE:
    from core.config import get_settings
    from core.postgres_client import get_postgres_client

    settings = get_settings()
    db = await get_postgres_client("pricing_campaign_service", settings.infrastructure)
"""

__version__ = "2.1.0"
