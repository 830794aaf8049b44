"""
Pricing Campaign Service Client

Client for other services to call pricing_campaign_service.
"""

import logging
import os
from decimal import Decimal
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)


class PricingCampaignClient:
    """Client for pricing_campaign_service"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if base_url is None:
            host = os.getenv("PRICING_SERVICE_HOST", "localhost")
            port = os.getenv("PRICING_SERVICE_PORT", "8252")
            base_url = f"http://{host}:{port}"
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def _http(self, timeout: Optional[float] = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout or self.timeout, transport=self.transport)

    @staticmethod
    def _campaign_body(discount_percent: Decimal, min_markup_factor: Decimal) -> Dict[str, str]:
        # Strings keep the decimals exact on the wire
        return {
            "discount_percent": str(discount_percent),
            "min_markup_factor": str(min_markup_factor),
        }

    async def simulate(
        self,
        discount_percent: Decimal,
        min_markup_factor: Decimal,
    ) -> Dict[str, Any]:
        """
        Project a discount without changing any price.

        Args:
            discount_percent: Discount in [0, 100]
            min_markup_factor: Floor multiplier on cost

        Returns:
            Projection data
        """
        try:
            async with self._http() as client:
                response = await client.post(
                    f"{self.base_url}/api/v1/pricing/simulate",
                    json=self._campaign_body(discount_percent, min_markup_factor),
                )
                response.raise_for_status()
                return response.json()

        except httpx.HTTPStatusError as e:
            logger.error(f"Error simulating campaign: {e.response.text}")
            raise

    async def apply(
        self,
        discount_percent: Decimal,
        min_markup_factor: Decimal,
        name: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Apply a discount campaign.

        Returns:
            {campaign_id, message, affected_count, blocked_count}

        Raises:
            httpx.HTTPStatusError: 409 when a campaign is already active,
                422 for invalid parameters, 503 when a store failed
        """
        body = self._campaign_body(discount_percent, min_markup_factor)
        if name:
            body["name"] = name

        try:
            async with self._http() as client:
                response = await client.post(
                    f"{self.base_url}/api/v1/pricing/apply",
                    json=body,
                )
                response.raise_for_status()
                return response.json()

        except httpx.HTTPStatusError as e:
            logger.error(f"Error applying campaign: {e.response.text}")
            raise

    async def revert(self) -> Dict[str, Any]:
        """
        Revert the active campaign.

        Returns:
            {message, campaign_id, restored_count}

        Raises:
            httpx.HTTPStatusError: 409 when no campaign is active or an apply
                is still running, 503 when a store failed
        """
        try:
            async with self._http() as client:
                response = await client.post(f"{self.base_url}/api/v1/pricing/revert")
                response.raise_for_status()
                return response.json()

        except httpx.HTTPStatusError as e:
            logger.error(f"Error reverting campaign: {e.response.text}")
            raise

    async def recover(self) -> Dict[str, Any]:
        """Trigger the recovery pass"""
        async with self._http() as client:
            response = await client.post(f"{self.base_url}/api/v1/pricing/recover")
            response.raise_for_status()
            return response.json()

    async def get_campaign_state(self) -> Dict[str, Any]:
        """
        Get the current campaign state.

        Returns:
            {status, campaign}
        """
        try:
            async with self._http() as client:
                response = await client.get(f"{self.base_url}/api/v1/pricing/campaign")
                response.raise_for_status()
                return response.json()

        except Exception as e:
            logger.error(f"Error getting campaign state: {e}")
            raise

    async def list_history(self, limit: int = 20, offset: int = 0) -> List[Dict[str, Any]]:
        """List reverted campaigns, newest first"""
        async with self._http() as client:
            response = await client.get(
                f"{self.base_url}/api/v1/pricing/campaigns/history",
                params={"limit": limit, "offset": offset},
            )
            response.raise_for_status()
            return response.json().get("campaigns", [])

    async def health_check(self) -> bool:
        """Check service health"""
        try:
            async with self._http(timeout=5.0) as client:
                response = await client.get(f"{self.base_url}/health")
                return response.status_code == 200
        except Exception:
            return False


__all__ = ["PricingCampaignClient"]
