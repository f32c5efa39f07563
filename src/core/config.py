"""Application configuration management using Pydantic Settings."""

from enum import Enum
from functools import lru_cache

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Deployment tier an order is placed in.

    The value is the tag embedded in order numbers, ledger rows and
    archive namespaces.
    """

    PRODUCTION = "PROD"
    PREVIEW = "PREVIEW"
    LOCAL = "DEV"


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    Required settings will raise validation errors if not provided.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="apparel-orders", description="Application name")
    app_env: str = Field(default="development", description="Environment (development/staging/production)")
    debug: bool = Field(default=False, description="Enable debug mode")
    deployment_env: str = Field(
        default="",
        validation_alias=AliasChoices("deployment_env", "vercel_env"),
        description="Hosting platform deployment tier (production/preview), e.g. VERCEL_ENV",
    )

    # Server
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8080, description="Server port")
    max_request_body_size: int = Field(default=262144, description="Maximum request body size in bytes")

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000",
        description="Comma-separated list of allowed CORS origins",
    )

    # Supabase
    supabase_url: str = Field(..., description="Supabase project URL")
    supabase_secret_key: str = Field(..., description="Supabase secret key for backend operations")

    # Ledger tables
    order_ledger_table: str = Field(default="order_ledger", description="Table receiving one row per ordered unit")
    sequence_ledger_table: str = Field(default="order_sequence", description="Append-only order number sequence table")
    sequence_header_rows: int = Field(
        default=0,
        description="Rows preceding the first sequence entry (subtracted from the assigned position)",
    )
    ledger_timeout_seconds: float = Field(default=3.0, description="Timeout for ledger appends")

    # Order numbers
    order_number_prefix: str = Field(default="CVL", description="Prefix of every order number")

    # Rate limiting (order submission)
    order_rate_limit_requests: int = Field(default=3, description="Order submissions allowed per window")
    order_rate_limit_window_seconds: int = Field(default=60, description="Order submission window in seconds")
    rate_limit_cleanup_interval_seconds: int = Field(default=300, description="Expired entry sweep interval")

    # Fulfillment feature flags
    enable_ledger_write: bool = Field(default=True, description="Write order rows to the order ledger")
    enable_invoice_generation: bool = Field(default=True, description="Render the invoice PDF")
    enable_invoice_archive: bool = Field(default=True, description="Upload the invoice PDF to storage")
    enable_customer_email: bool = Field(default=True, description="Send the customer confirmation email")
    enable_admin_email: bool = Field(default=True, description="Send the store admin notification email")

    # Storage
    invoice_bucket: str = Field(default="invoices", description="Storage bucket for archived invoices")

    # Email (Resend)
    resend_api_key: str = Field(default="", description="Resend API key for sending emails")
    email_from_address: str = Field(
        default="CVL Designs <orders@cvldesigns.com>",
        description="From address for transactional emails",
    )
    tech_support_email: str = Field(
        default="",
        description="Fallback operator address for failure escalation when the store config has none",
    )

    # Audit log
    error_log_dir: str = Field(default="", description="Directory for JSON-lines error logs (disabled if empty)")

    # Catalog read endpoints
    catalog_cache_seconds: int = Field(default=300, description="CDN cache window for catalog endpoints")

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins string into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == Environment.PRODUCTION

    @property
    def environment(self) -> Environment:
        """Resolve the deployment tier.

        The hosting platform tier wins when present; otherwise APP_ENV
        decides. Anything that is not production or staging/preview is local.
        """
        deployment = self.deployment_env.strip().lower()
        if deployment == "production":
            return Environment.PRODUCTION
        if deployment == "preview":
            return Environment.PREVIEW

        app_env = self.app_env.strip().lower()
        if app_env == "production":
            return Environment.PRODUCTION
        if app_env in ("staging", "preview"):
            return Environment.PREVIEW
        return Environment.LOCAL


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings: Application settings instance.

    Note:
        Settings are cached using lru_cache for performance.
        Call get_settings.cache_clear() to reload settings.
    """
    return Settings()
