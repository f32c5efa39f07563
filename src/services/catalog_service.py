"""Product catalog and site configuration reads."""

import asyncio
import logging
from typing import Any

from supabase import Client

from src.core.config import Environment, Settings, get_settings
from src.core.supabase import get_supabase_client
from src.schemas.catalog import (
    CustomizationOption,
    DesignOption,
    Product,
    SizePrice,
    StoreConfig,
)

logger = logging.getLogger(__name__)


def parse_currency(value: Any) -> float:
    """Parse a price cell such as '$25.00', '25', or 25.5.

    Unparseable values are treated as 0.
    """
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    if not value:
        return 0.0
    cleaned = str(value).replace("$", "").replace(",", "").strip()
    try:
        return float(cleaned)
    except ValueError:
        return 0.0


def _parse_stores(value: Any) -> list[str]:
    if isinstance(value, list):
        return [str(v).strip() for v in value if str(v).strip()]
    if not value:
        return []
    return [token.strip() for token in str(value).replace("\n", ",").split(",") if token.strip()]


def _parse_sizes(value: Any) -> list[SizePrice]:
    sizes: list[SizePrice] = []
    for entry in value or []:
        if isinstance(entry, str):
            sizes.append(SizePrice(size=entry))
        elif isinstance(entry, dict) and entry.get("size"):
            sizes.append(
                SizePrice(size=str(entry["size"]), upcharge=max(0.0, parse_currency(entry.get("upcharge"))))
            )
    return sizes


def product_from_row(row: dict[str, Any]) -> Product:
    """Convert a products table row into a Product."""
    status = str(row.get("status") or "public").strip().lower()
    return Product(
        id=str(row["id"]),
        name=str(row.get("name") or row["id"]),
        display_name=row.get("display_name"),
        category=row.get("category") or "uncategorized",
        base_price=parse_currency(row.get("base_price")),
        status="draft" if status == "draft" else "public",
        image=row.get("image"),
        available_sizes=_parse_sizes(row.get("sizes")),
        available_design_options=[int(n) for n in row.get("design_options") or []],
        available_customization_options=[int(n) for n in row.get("customization_options") or []],
        stores=_parse_stores(row.get("stores")),
    )


class CatalogService:
    """Service for reading catalog and configuration tables.

    Reads are never cached here: price verification must see the current
    catalog on every submission.
    """

    def __init__(self, client: Client | None = None, settings: Settings | None = None) -> None:
        """Initialize catalog service with clients."""
        self.client = client or get_supabase_client()
        self.settings = settings or get_settings()

    async def _select(self, table: str, order_by: str | None = None) -> list[dict[str, Any]]:
        def run() -> Any:
            query = self.client.table(table).select("*")
            if order_by:
                query = query.order(order_by)
            return query.execute()

        response = await asyncio.to_thread(run)
        return response.data or []

    async def get_products(self, store_slug: str | None = None) -> list[Product]:
        """Get products visible in the current environment and store.

        Draft products are hidden in production. Without a store only
        products sold in every store are returned.

        Args:
            store_slug: Optional store filter.

        Returns:
            list[Product]: Visible products.
        """
        rows = await self._select("products", order_by="name")
        hide_drafts = self.settings.environment == Environment.PRODUCTION

        products: list[Product] = []
        for row in rows:
            if not row.get("id"):
                continue
            product = product_from_row(row)
            if hide_drafts and product.status == "draft":
                continue
            if not product.sold_in(store_slug):
                continue
            products.append(product)
        return products

    async def get_design_options(self) -> list[DesignOption]:
        """Get all design options."""
        rows = await self._select("design_options", order_by="number")
        return [
            DesignOption(
                number=int(row["number"]),
                title=str(row["title"]),
                short=str(row.get("short") or ""),
                price=parse_currency(row.get("price")),
                image=row.get("image"),
            )
            for row in rows
            if row.get("number") is not None and row.get("title")
        ]

    async def get_customization_options(self) -> list[CustomizationOption]:
        """Get all customization options."""
        rows = await self._select("customization_options", order_by="number")
        return [
            CustomizationOption(
                number=int(row["number"]),
                title=str(row["title"]),
                short=str(row.get("short") or ""),
                price=parse_currency(row.get("price")),
                image=row.get("image"),
            )
            for row in rows
            if row.get("number") is not None and row.get("title")
        ]

    async def get_config(self, store_slug: str | None = None) -> StoreConfig:
        """Get site configuration merged with a store's overrides.

        Args:
            store_slug: Optional store whose branding overrides apply.

        Returns:
            StoreConfig: Normalized configuration.
        """
        rows = await self._select("site_config")
        raw = {
            str(row["attribute"]).strip(): row.get("value")
            for row in rows
            if row.get("attribute")
        }
        config = StoreConfig.from_config_map(raw)

        if not store_slug:
            return config

        stores = await self._select("stores")
        for store in stores:
            slug = str(store.get("slug") or "").strip().lower()
            if slug and slug == store_slug.lower() and slug != "all":
                return config.merge_store(store)

        logger.debug("No store overrides for '%s'", store_slug)
        return config
