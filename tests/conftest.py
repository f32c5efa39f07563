"""Pytest configuration and fixtures."""

import os
from collections.abc import Generator
from datetime import datetime, timezone
from typing import Any
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

# Set test environment variables before importing application modules
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_SECRET_KEY", "test-secret-key")
os.environ.setdefault("RESEND_API_KEY", "re_test_key")
os.environ.setdefault("TECH_SUPPORT_EMAIL", "support@example.com")


@pytest.fixture(scope="session")
def test_settings() -> Generator[Any, None, None]:
    """Provide test settings with cleared cache.

    Yields:
        Settings: Test configuration settings.
    """
    from src.core.config import get_settings

    # Clear the cache to ensure fresh settings
    get_settings.cache_clear()

    settings = get_settings()
    yield settings

    # Clean up cache after tests
    get_settings.cache_clear()


@pytest.fixture
def make_settings() -> Any:
    """Build Settings with overrides, independent of the cached singleton."""
    from src.core.config import Settings

    def _make(**overrides: Any) -> Any:
        values = {
            "supabase_url": "https://test-project.supabase.co",
            "supabase_secret_key": "test-secret-key",
            "deployment_env": "",
            "error_log_dir": "",
        }
        values.update(overrides)
        return Settings(**values)

    return _make


@pytest.fixture
def fixed_now() -> datetime:
    """A fixed ingestion timestamp."""
    return datetime(2025, 1, 26, 14, 3, 22, 123000, tzinfo=timezone.utc)


@pytest.fixture
def order_payload() -> dict[str, Any]:
    """A valid order submission priced against catalog_data."""
    return {
        "contactInfo": {
            "email": "  Jane.Smith@Example.com ",
            "firstName": "Jane",
            "lastName": "Smith",
            "phone": "(555) 123-4567",
        },
        "items": [
            {
                "productId": "hoodie",
                "productName": "Team Hoodie",
                "size": "XL",
                "sizeUpcharge": 0,
                "itemPrice": 15.0,
                "quantity": 2,
                "designOptions": [{"optionNumber": 1, "title": "Front Logo", "price": 5.0}],
                "customizationOptions": [
                    {
                        "optionNumber": 2,
                        "title": "Name and Number",
                        "price": 3.0,
                        "customName": "SMITH",
                        "customNumber": "12",
                    }
                ],
                "totalPrice": 23.0,
            }
        ],
        "totalAmount": 46.0,
        "storeSlug": "phenoms",
    }


@pytest.fixture
def catalog_data() -> dict[str, Any]:
    """Catalog snapshot: products, design options, customization options."""
    from src.schemas.catalog import CustomizationOption, DesignOption, Product, SizePrice

    return {
        "products": [
            Product(
                id="hoodie",
                name="Team Hoodie",
                base_price=15.0,
                available_sizes=[SizePrice(size="M"), SizePrice(size="XL"), SizePrice(size="2XL", upcharge=2.0)],
                stores=["all"],
            ),
            Product(
                id="tee",
                name="Team Tee",
                base_price=15.0,
                available_sizes=[SizePrice(size="M"), SizePrice(size="L")],
                stores=["phenoms"],
            ),
        ],
        "design_options": [
            DesignOption(number=1, title="Front Logo", price=5.0),
            DesignOption(number=3, title="Sleeve Print", price=4.0),
        ],
        "customization_options": [
            CustomizationOption(number=2, title="Name and Number", price=3.0),
        ],
    }


@pytest.fixture
def mock_supabase_client() -> Generator[MagicMock, None, None]:
    """Provide a mocked Supabase client.

    Yields:
        MagicMock: Mocked Supabase client for testing.
    """
    mock_client = MagicMock()

    # Configure default mock responses
    mock_response = MagicMock()
    mock_response.data = []
    mock_client.table.return_value.select.return_value.limit.return_value.execute.return_value = (
        mock_response
    )

    with patch("src.core.supabase.get_supabase_client", return_value=mock_client):
        yield mock_client


@pytest.fixture
def app(mock_supabase_client: MagicMock) -> Any:
    """Provide a fresh application with its own order throttle."""
    from src.main import create_app

    return create_app()


@pytest.fixture
def client(app: Any) -> Generator[TestClient, None, None]:
    """Provide a test client for the FastAPI application.

    Args:
        app: Application fixture.

    Yields:
        TestClient: FastAPI test client.
    """
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def order(order_payload: dict[str, Any], catalog_data: dict[str, Any], fixed_now: datetime) -> Any:
    """An accepted, priced and numbered order."""
    from src.core.config import Environment
    from src.schemas.order import Order, OrderSubmission
    from src.services.pricing_service import price_order

    submission = OrderSubmission.model_validate(order_payload)
    priced = price_order(
        submission.items,
        catalog_data["products"],
        catalog_data["design_options"],
        catalog_data["customization_options"],
    )
    return Order(
        contact_info=submission.contact_info,
        items=priced.items,
        total_amount=priced.total_amount,
        order_date=fixed_now,
        environment=Environment.PRODUCTION,
        store_slug="phenoms",
        order_number="CVL-PROD-PHENOMS-20250126-000042",
        short_order_number="000042",
    )


@pytest.fixture
def store_config() -> Any:
    """Store configuration with payment handles and an admin address."""
    from src.schemas.catalog import StoreConfig

    return StoreConfig(
        business_name="CVL Designs",
        admin_email="admin@example.com",
        tech_support_email="tech@example.com",
        venmo_handle="@cvl-designs",
        zelle_email="pay@example.com",
        store_display_name="Phenoms Basketball",
        primary_color="#1e40af",
        store_slug="phenoms",
    )
