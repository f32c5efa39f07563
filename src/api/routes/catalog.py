"""Storefront catalog and configuration routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response

from src.api.deps import get_catalog_service
from src.core.config import get_settings
from src.schemas.catalog import CatalogResponse, StoreConfig
from src.services.catalog_service import CatalogService

router = APIRouter(tags=["catalog"])

StoreQuery = Annotated[str | None, Query(alias="store", max_length=50, description="Store slug")]


def _set_cache_headers(response: Response) -> None:
    max_age = get_settings().catalog_cache_seconds
    response.headers["Cache-Control"] = f"public, s-maxage={max_age}, stale-while-revalidate={max_age * 2}"


@router.get("/products", response_model=CatalogResponse, summary="List storefront products")
async def list_products(
    response: Response,
    store: StoreQuery = None,
    catalog: CatalogService = Depends(get_catalog_service),
) -> CatalogResponse:
    """List products visible in a store along with option reference data."""
    products = await catalog.get_products(store)
    design_options = await catalog.get_design_options()
    customization_options = await catalog.get_customization_options()

    _set_cache_headers(response)
    return CatalogResponse(
        products=products,
        design_options=design_options,
        customization_options=customization_options,
    )


@router.get("/config", response_model=StoreConfig, summary="Get store configuration")
async def get_config(
    response: Response,
    store: StoreQuery = None,
    catalog: CatalogService = Depends(get_catalog_service),
) -> StoreConfig:
    """Get site configuration merged with the store's branding overrides."""
    config = await catalog.get_config(store)
    _set_cache_headers(response)
    return config
