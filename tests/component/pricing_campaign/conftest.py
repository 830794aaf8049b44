"""
Component Test Fixtures for Pricing Campaign Service

In-memory product catalog and campaign state store. The state store keeps
the compare-and-set and lease rules of the PostgreSQL implementation, with
a clock tests can move forward to expire leases.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, List, Optional

import pytest

import sys
import os

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../.."))

from core.config import PricingConfig
from microservices.pricing_campaign_service.campaign_service import PricingCampaignService
from microservices.pricing_campaign_service.events.publishers import PricingCampaignEventPublisher
from microservices.pricing_campaign_service.protocols import PersistenceError
from tests.contracts.pricing_campaign.data_contract import (
    CampaignHistoryRecord,
    CampaignPhase,
    PricingCampaign,
    PricingTestDataFactory,
    Product,
)


# ====================
# Mock Product Repository
# ====================


class MockProductRepository:
    """In-memory catalog with write failure injection"""

    def __init__(self, products: Optional[List[Product]] = None):
        self.products: Dict[str, Product] = {}
        self.write_batches: List[Dict[str, Decimal]] = []
        self.write_attempts = 0
        self.read_count = 0
        # Next N writes fail, then writes succeed again
        self.transient_failures = 0
        # Every write after this many successful batches fails
        self.fail_after_batches: Optional[int] = None
        # Awaited before a read or a write; lets a test interleave other work
        self.before_read = None
        self.before_write = None
        self.unavailable = False
        for product in products or []:
            self.products[product.product_id] = product

    async def list_all_products(self) -> List[Product]:
        if self.before_read is not None:
            await self.before_read()
        if self.unavailable:
            raise PersistenceError("Product store unavailable")
        self.read_count += 1
        return [self.products[product_id] for product_id in sorted(self.products)]

    async def write_sale_prices(self, prices: Dict[str, Decimal]) -> None:
        # Yield like a real driver so concurrent operations interleave
        await asyncio.sleep(0)
        if self.before_write is not None:
            await self.before_write(prices)
        self.write_attempts += 1

        if self.unavailable:
            raise PersistenceError("Product store unavailable")
        if self.transient_failures > 0:
            self.transient_failures -= 1
            raise PersistenceError("Transient write failure")
        if self.fail_after_batches is not None and len(self.write_batches) >= self.fail_after_batches:
            raise PersistenceError("Write failure")

        for product_id, price in prices.items():
            if product_id in self.products:
                self.products[product_id] = self.products[product_id].model_copy(
                    update={"sale_price": price}
                )
        self.write_batches.append(dict(prices))

    # Test helpers

    def prices(self) -> Dict[str, Decimal]:
        return {product_id: p.sale_price for product_id, p in self.products.items()}

    def set_price(self, product_id: str, price: Decimal) -> None:
        """Simulate an edit made outside the campaign engine"""
        self.products[product_id] = self.products[product_id].model_copy(
            update={"sale_price": price}
        )

    def written_ids(self) -> List[str]:
        return [product_id for batch in self.write_batches for product_id in batch]


# ====================
# Mock Campaign State Store
# ====================


class MockCampaignStateStore:
    """In-memory single-slot campaign record with CAS and lease semantics"""

    def __init__(self):
        self.active: Optional[PricingCampaign] = None
        self.history: List[CampaignHistoryRecord] = []
        self.now = datetime.now(timezone.utc)
        self.unavailable = False

    def advance(self, seconds: float) -> None:
        """Move the store clock forward"""
        self.now += timedelta(seconds=seconds)

    def _check(self) -> None:
        if self.unavailable:
            raise PersistenceError("Campaign store unavailable")

    def _owned(self, campaign_id: str, owner: str) -> bool:
        return (
            self.active is not None
            and self.active.campaign_id == campaign_id
            and self.active.lease_owner == owner
        )

    def _update(self, **changes) -> PricingCampaign:
        self.active = self.active.model_copy(update={**changes, "updated_at": self.now})
        return self.active.model_copy(deep=True)

    async def initialize(self):
        pass

    async def close(self):
        pass

    async def health_check(self) -> bool:
        return not self.unavailable

    async def get_active_campaign(self) -> Optional[PricingCampaign]:
        self._check()
        return self.active.model_copy(deep=True) if self.active else None

    async def insert_applying(self, campaign: PricingCampaign, owner: str, lease_seconds: int) -> bool:
        self._check()
        if self.active is not None:
            return False
        self.active = campaign.model_copy(
            deep=True,
            update={
                "phase": CampaignPhase.APPLYING,
                "progress": 0,
                "lease_owner": owner,
                "lease_expires_at": self.now + timedelta(seconds=lease_seconds),
                "created_at": self.now,
                "updated_at": self.now,
            },
        )
        return True

    async def record_plan(self, campaign: PricingCampaign, owner: str, lease_seconds: int) -> bool:
        self._check()
        if (
            not self._owned(campaign.campaign_id, owner)
            or self.active.phase != CampaignPhase.APPLYING
            or self.active.planned
        ):
            return False
        self._update(
            snapshot=dict(campaign.snapshot),
            target_prices=dict(campaign.target_prices),
            affected_count=campaign.affected_count,
            blocked_count=campaign.blocked_count,
            planned=True,
            lease_expires_at=self.now + timedelta(seconds=lease_seconds),
        )
        return True

    async def abandon_apply(self, campaign_id: str, owner: str) -> bool:
        self._check()
        if (
            not self._owned(campaign_id, owner)
            or self.active.phase != CampaignPhase.APPLYING
            or self.active.planned
        ):
            return False
        self.active = None
        return True

    async def renew_lease(
        self, campaign_id: str, owner: str, lease_seconds: int, progress: Optional[int] = None
    ) -> bool:
        self._check()
        if not self._owned(campaign_id, owner):
            return False
        changes = {"lease_expires_at": self.now + timedelta(seconds=lease_seconds)}
        if progress is not None:
            changes["progress"] = max(progress, self.active.progress)
        self._update(**changes)
        return True

    async def release_lease(self, campaign_id: str, owner: str) -> None:
        if self._owned(campaign_id, owner):
            self._update(lease_owner=None, lease_expires_at=None)

    async def claim_stale(self, owner: str, lease_seconds: int) -> Optional[PricingCampaign]:
        self._check()
        if self.active is None or not self.active.phase.in_progress:
            return None
        expires = self.active.lease_expires_at
        if expires is not None and expires >= self.now:
            return None
        return self._update(
            lease_owner=owner,
            lease_expires_at=self.now + timedelta(seconds=lease_seconds),
        )

    async def complete_apply(self, campaign_id: str, owner: str) -> bool:
        self._check()
        if not self._owned(campaign_id, owner) or self.active.phase != CampaignPhase.APPLYING:
            return False
        self._update(
            phase=CampaignPhase.APPLIED,
            progress=0,
            lease_owner=None,
            lease_expires_at=None,
            applied_at=self.now,
        )
        return True

    async def begin_revert(self, owner: str, lease_seconds: int) -> Optional[PricingCampaign]:
        self._check()
        if self.active is None or self.active.phase != CampaignPhase.APPLIED:
            return None
        return self._update(
            phase=CampaignPhase.REVERTING,
            progress=0,
            lease_owner=owner,
            lease_expires_at=self.now + timedelta(seconds=lease_seconds),
            revert_started_at=self.now,
        )

    async def finish_revert(self, campaign_id: str, owner: str) -> Optional[CampaignHistoryRecord]:
        self._check()
        if not self._owned(campaign_id, owner) or self.active.phase != CampaignPhase.REVERTING:
            return None
        campaign = self.active
        record = CampaignHistoryRecord(
            campaign_id=campaign.campaign_id,
            name=campaign.name,
            discount_percent=campaign.discount_percent,
            min_markup_factor=campaign.min_markup_factor,
            affected_count=campaign.affected_count,
            blocked_count=campaign.blocked_count,
            restored_count=len(campaign.snapshot),
            created_at=campaign.created_at,
            applied_at=campaign.applied_at,
            reverted_at=self.now,
        )
        self.history.append(record)
        self.active = None
        return record

    async def list_history(self, limit: int = 20, offset: int = 0) -> List[CampaignHistoryRecord]:
        self._check()
        ordered = sorted(self.history, key=lambda r: r.reverted_at, reverse=True)
        return ordered[offset:offset + limit]


# ====================
# Fixtures
# ====================


@pytest.fixture
def factory():
    """Test data factory"""
    return PricingTestDataFactory()


@pytest.fixture
def pricing_config():
    """Small batches and no backoff delay"""
    return PricingConfig(
        batch_size=2,
        write_max_attempts=3,
        retry_wait_min=0,
        retry_wait_max=0,
        lease_seconds=30,
    )


@pytest.fixture
def product_repository(factory):
    """Catalog holding the three reference products"""
    return MockProductRepository(factory.make_reference_catalog())


@pytest.fixture
def large_product_repository(factory):
    """Catalog large enough to span several batches"""
    return MockProductRepository(factory.make_random_catalog(size=11, seed=3))


@pytest.fixture
def state_store():
    """Empty campaign state store"""
    return MockCampaignStateStore()


@pytest.fixture
def make_service(product_repository, state_store, mock_event_bus, pricing_config):
    """Build a service worker with its own lease identity"""

    def _make(instance_id: str = "worker-1", products=None):
        return PricingCampaignService(
            product_repository=products or product_repository,
            state_store=state_store,
            event_publisher=PricingCampaignEventPublisher(mock_event_bus),
            config=pricing_config,
            instance_id=instance_id,
        )

    return _make


@pytest.fixture
def service(make_service):
    """Pricing campaign service over the reference catalog"""
    return make_service()
