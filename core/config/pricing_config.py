#!/usr/bin/env python3
"""Pricing campaign engine configuration

Batching, retry, and lease settings for the bulk price writer, plus the
schema names the repositories read and write.
"""
import os
from dataclasses import dataclass

def _int(val: str, default: int) -> int:
    try:
        return int(val) if val else default
    except ValueError:
        return default

def _float(val: str, default: float) -> float:
    try:
        return float(val) if val else default
    except ValueError:
        return default


@dataclass
class PricingConfig:
    """Pricing campaign engine settings"""

    service_port: int = 8252

    # Bulk price writes
    batch_size: int = 500
    write_max_attempts: int = 5
    retry_wait_min: float = 0.5
    retry_wait_max: float = 8.0

    # Ownership of an in-progress apply/revert
    lease_seconds: int = 30

    # Storage layout
    catalog_schema: str = "catalog"
    products_table: str = "products"
    # Column type of products.product_id; batch ids are cast to it
    product_id_type: str = "text"
    pricing_schema: str = "pricing"

    @classmethod
    def from_env(cls) -> 'PricingConfig':
        """Load pricing config from environment variables"""
        return cls(
            service_port=_int(os.getenv("PRICING_SERVICE_PORT") or os.getenv("SERVICE_PORT", "8252"), 8252),
            batch_size=max(1, _int(os.getenv("PRICING_BATCH_SIZE", "500"), 500)),
            write_max_attempts=max(1, _int(os.getenv("PRICING_WRITE_MAX_ATTEMPTS", "5"), 5)),
            retry_wait_min=_float(os.getenv("PRICING_RETRY_WAIT_MIN", "0.5"), 0.5),
            retry_wait_max=_float(os.getenv("PRICING_RETRY_WAIT_MAX", "8"), 8.0),
            lease_seconds=max(1, _int(os.getenv("PRICING_LEASE_SECONDS", "30"), 30)),
            catalog_schema=os.getenv("PRICING_CATALOG_SCHEMA", "catalog"),
            products_table=os.getenv("PRICING_PRODUCTS_TABLE", "products"),
            product_id_type=os.getenv("PRICING_PRODUCT_ID_TYPE", "text"),
            pricing_schema=os.getenv("PRICING_SCHEMA", "pricing"),
        )

    def retry_window_seconds(self) -> float:
        """Longest total backoff a single batch write can wait through"""
        waits = (
            min(max(self.retry_wait_min * 2 ** attempt, self.retry_wait_min), self.retry_wait_max)
            for attempt in range(self.write_max_attempts - 1)
        )
        return float(sum(waits))
