"""
Product Repository

Adapter over the catalog's products table. The engine only ever reads the
full product list and bulk-sets sale prices; everything else about the
catalog belongs to other services.
"""

import logging
from decimal import Decimal
from typing import Dict, List, Optional

from core.config import PricingConfig, get_settings
from core.postgres_client import PostgresClientWrapper

from .models import Product
from .protocols import PersistenceError

logger = logging.getLogger(__name__)


class ProductRepository:
    """Product catalog access - PostgreSQL (asyncpg)"""

    def __init__(
        self,
        db: Optional[PostgresClientWrapper] = None,
        config: Optional[PricingConfig] = None,
    ):
        config = config or get_settings().pricing
        self.db = db or PostgresClientWrapper("pricing_campaign_service")
        self.table_name = f"{config.catalog_schema}.{config.products_table}"
        self.product_id_type = config.product_id_type

    async def list_all_products(self) -> List[Product]:
        """Read every product with its cost, sale price and quantity"""
        query = f'''
            SELECT product_id, name, cost_price, sale_price, quantity
            FROM {self.table_name}
            ORDER BY product_id
        '''
        try:
            rows = await self.db.query(query)
        except Exception as e:
            logger.error(f"Error reading products: {e}", exc_info=True)
            raise PersistenceError(f"Product store unavailable: {e}") from e

        return [
            Product(
                product_id=str(row["product_id"]),
                name=row.get("name"),
                cost_price=row["cost_price"] or Decimal("0"),
                sale_price=row["sale_price"] or Decimal("0"),
                quantity=row["quantity"] or 0,
            )
            for row in rows
        ]

    async def write_sale_prices(self, prices: Dict[str, Decimal]) -> None:
        """Set sale_price for each product id in one statement"""
        if not prices:
            return

        product_ids = list(prices.keys())
        values = [prices[product_id] for product_id in product_ids]

        query = f'''
            UPDATE {self.table_name} AS p
            SET sale_price = v.sale_price
            FROM unnest($1::text[], $2::numeric[]) AS v(product_id, sale_price)
            WHERE p.product_id = v.product_id::{self.product_id_type}
        '''
        try:
            await self.db.execute(query, [product_ids, values])
        except Exception as e:
            logger.warning(f"Batch price write of {len(prices)} products failed: {e}")
            raise PersistenceError(f"Product store unavailable: {e}") from e

        logger.debug(f"Wrote {len(prices)} sale prices")
