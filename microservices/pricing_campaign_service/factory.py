"""
Pricing Campaign Service Factory

Factory for creating pricing campaign service instances with proper dependency injection.
"""

import logging
from typing import Optional

from core.config import ServiceSettings, get_settings
from core.nats_client import NATSEventBus
from core.postgres_client import PostgresClientWrapper, get_postgres_client

from .campaign_repository import CampaignRepository
from .campaign_service import PricingCampaignService
from .events.publishers import PricingCampaignEventPublisher
from .models import RecoveryAction
from .product_repository import ProductRepository
from .protocols import PersistenceError

logger = logging.getLogger(__name__)

SERVICE_NAME = "pricing_campaign_service"


class PricingCampaignServiceFactory:
    """Factory for creating pricing campaign service components"""

    def __init__(self, settings: Optional[ServiceSettings] = None):
        self.settings = settings or get_settings()
        self._db: Optional[PostgresClientWrapper] = None
        self._repository: Optional[CampaignRepository] = None
        self._product_repository: Optional[ProductRepository] = None
        self._service: Optional[PricingCampaignService] = None
        self._nats_client: Optional[NATSEventBus] = None
        self._event_publisher: Optional[PricingCampaignEventPublisher] = None

    async def initialize(self) -> None:
        """Initialize all components and complete any interrupted campaign phase"""
        logger.info("Initializing Pricing Campaign Service components...")

        # Shared connection pool for the catalog and the campaign state
        self._db = await get_postgres_client(SERVICE_NAME, self.settings.infrastructure)

        self._repository = CampaignRepository(self._db, self.settings.pricing)
        await self._repository.initialize()
        self._product_repository = ProductRepository(self._db, self.settings.pricing)

        # Initialize NATS client
        if self.settings.infrastructure.nats_enabled:
            try:
                self._nats_client = NATSEventBus(
                    service_name=SERVICE_NAME,
                    config=self.settings.infrastructure,
                )
                await self._nats_client.connect()
                logger.info("NATS client connected")
            except Exception as e:
                logger.warning(f"NATS client initialization failed: {e}")
                self._nats_client = None
        self._event_publisher = PricingCampaignEventPublisher(self._nats_client)

        # Initialize main service
        self._service = PricingCampaignService(
            product_repository=self._product_repository,
            state_store=self._repository,
            event_publisher=self._event_publisher,
            config=self.settings.pricing,
        )

        # Finish whatever a previous process left in progress
        try:
            result = await self._service.recover_pending()
        except PersistenceError as e:
            # Apply, revert and POST /recover retry the pass
            logger.error(f"Start-up recovery failed: {e}")
        else:
            self._log_recovery(result)

        logger.info("Pricing Campaign Service components initialized")

    def _log_recovery(self, result) -> None:
        if result.action == RecoveryAction.BUSY:
            logger.info(f"Campaign {result.campaign_id} is in progress on another worker")
        elif result.action != RecoveryAction.NONE:
            logger.info(f"Start-up recovery: {result.action.value} for {result.campaign_id}")

    async def close(self) -> None:
        """Close all components"""
        logger.info("Closing Pricing Campaign Service components...")

        if self._nats_client:
            await self._nats_client.close()

        if self._repository:
            await self._repository.close()

        logger.info("Pricing Campaign Service components closed")

    @property
    def repository(self) -> CampaignRepository:
        """Get campaign state store"""
        if not self._repository:
            raise RuntimeError("Factory not initialized. Call initialize() first.")
        return self._repository

    @property
    def product_repository(self) -> ProductRepository:
        """Get product repository"""
        if not self._product_repository:
            raise RuntimeError("Factory not initialized. Call initialize() first.")
        return self._product_repository

    @property
    def service(self) -> PricingCampaignService:
        """Get pricing campaign service"""
        if not self._service:
            raise RuntimeError("Factory not initialized. Call initialize() first.")
        return self._service

    @property
    def nats_client(self) -> Optional[NATSEventBus]:
        """Get NATS client"""
        return self._nats_client

    @property
    def event_publisher(self) -> Optional[PricingCampaignEventPublisher]:
        """Get event publisher"""
        return self._event_publisher


# Global factory instance
_factory: Optional[PricingCampaignServiceFactory] = None


async def get_factory() -> PricingCampaignServiceFactory:
    """Get or create factory instance"""
    global _factory
    if _factory is None:
        _factory = PricingCampaignServiceFactory()
        await _factory.initialize()
    return _factory


async def close_factory() -> None:
    """Close factory instance"""
    global _factory
    if _factory:
        await _factory.close()
        _factory = None


__all__ = [
    "PricingCampaignServiceFactory",
    "get_factory",
    "close_factory",
]
