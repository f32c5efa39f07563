"""Catalog and store configuration Pydantic schemas."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

ProductStatus = Literal["draft", "public"]
RequiresInput = Literal["name", "number", "both", "none"]


class CatalogModel(BaseModel):
    """Base model for catalog data served with camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class SizePrice(CatalogModel):
    """An available size and its upcharge."""

    size: str = Field(description="Size label, e.g. XL")
    upcharge: float = Field(default=0, ge=0, description="Added to the base price")


class Product(CatalogModel):
    """A catalog product."""

    id: str = Field(description="Product slug")
    name: str = Field(description="Product name")
    display_name: str | None = Field(default=None, description="Name shown in the storefront")
    category: str = Field(default="uncategorized", description="Category id")
    base_price: float = Field(ge=0, description="Price before size upcharge and options")
    status: ProductStatus = Field(default="public", description="Draft products are hidden in production")
    image: str | None = Field(default=None, description="Image URL")
    available_sizes: list[SizePrice] = Field(default_factory=list, description="Sizes with upcharges")
    available_design_options: list[int] = Field(default_factory=list, description="Allowed design option numbers")
    available_customization_options: list[int] = Field(
        default_factory=list,
        description="Allowed customization option numbers",
    )
    stores: list[str] = Field(default_factory=list, description="Store slugs selling this product ('all' for every store)")

    def upcharge_for(self, size: str) -> float | None:
        """Return the upcharge for a size, or None if the size is not offered."""
        for entry in self.available_sizes:
            if entry.size == size:
                return entry.upcharge
        return None

    def sold_in(self, store_slug: str | None) -> bool:
        """Check whether the product is offered in a store."""
        tokens = [s.strip().lower() for s in self.stores if s.strip()]
        if not store_slug:
            return not tokens or "all" in tokens
        return "all" in tokens or store_slug.lower() in tokens


class DesignOption(CatalogModel):
    """A design option from the reference data."""

    number: int = Field(description="Option number")
    title: str = Field(description="Option title")
    short: str = Field(default="", description="Short label")
    price: float = Field(default=0, ge=0, description="Price added per unit")
    image: str | None = Field(default=None, description="Image URL")


class CustomizationOption(CatalogModel):
    """A customization option from the reference data."""

    number: int = Field(description="Option number")
    title: str = Field(description="Option title")
    short: str = Field(default="", description="Short label")
    price: float = Field(default=0, ge=0, description="Price added per unit")
    image: str | None = Field(default=None, description="Image URL")

    @property
    def requires_input(self) -> RequiresInput:
        """Personalization inputs implied by the option title."""
        title = self.title.lower()
        if "name" in title and "number" in title:
            return "both"
        if "name" in title:
            return "name"
        if "number" in title:
            return "number"
        return "none"


# Historical spellings of configuration keys, resolved once at load time.
CONFIG_KEY_ALIASES: dict[str, tuple[str, ...]] = {
    "business_name": ("Business Name", "Business_Name", "BusinessName"),
    "admin_email": ("ContactMeEmail", "Contact_Me_Email"),
    "tech_support_email": ("Tech_Support_Email", "Tech Support Email"),
    "venmo_handle": ("Venmo_Handle",),
    "cashapp_handle": ("CashApp_Handle",),
    "zelle_email": ("Zelle_Email",),
    "header_logo": ("Header_Logo",),
    "store_header_logo": ("Store_Header_Logo",),
    "store_display_name": ("Store_Display_Name",),
    "store_subtitle": ("Header_Store_Subtitle",),
    "primary_color": ("Store_Primary_Color",),
    "accent_color": ("Store_Accent_Color",),
    "invoice_footer": ("Invoice_Footer", "Invoice Footer"),
    "store_slug": ("Store_Slug",),
}

# Store table columns that override the global configuration.
STORE_OVERRIDE_KEYS: dict[str, str] = {
    "header_logo": "store_header_logo",
    "header_store_subtitle": "store_subtitle",
    "display_name": "store_display_name",
    "primary_color": "primary_color",
    "accent_color": "accent_color",
}


class StoreConfig(CatalogModel):
    """Typed site configuration, optionally merged with store overrides."""

    business_name: str = Field(default="CVL Designs", description="Business name shown to customers")
    admin_email: str | None = Field(default=None, description="Operator address for new-order notifications")
    tech_support_email: str | None = Field(default=None, description="Address for failure escalation")
    venmo_handle: str | None = None
    cashapp_handle: str | None = None
    zelle_email: str | None = None
    header_logo: str | None = None
    store_header_logo: str | None = None
    store_display_name: str | None = None
    store_subtitle: str | None = None
    primary_color: str | None = None
    accent_color: str | None = None
    invoice_footer: str | None = None
    store_slug: str | None = None

    @classmethod
    def from_config_map(cls, raw: dict[str, Any]) -> "StoreConfig":
        """Build a config from raw key/value rows, resolving key aliases.

        The first non-empty alias wins. Unknown keys are ignored.

        Args:
            raw: Attribute/value mapping as stored in the config table.

        Returns:
            StoreConfig: Normalized configuration.
        """
        values: dict[str, str] = {}
        for field_name, aliases in CONFIG_KEY_ALIASES.items():
            for alias in aliases:
                value = raw.get(alias)
                if value is not None and str(value).strip():
                    values[field_name] = str(value).strip()
                    break
        return cls(**values)

    def merge_store(self, store: dict[str, Any]) -> "StoreConfig":
        """Apply a store row's branding overrides.

        Args:
            store: Store row with a 'slug' and optional override columns.

        Returns:
            StoreConfig: A new config with overrides applied.
        """
        updates: dict[str, str] = {}
        for column, field_name in STORE_OVERRIDE_KEYS.items():
            value = store.get(column)
            if value:
                updates[field_name] = str(value).strip()
        if store.get("slug"):
            updates["store_slug"] = str(store["slug"]).strip()
        return self.model_copy(update=updates)

    @property
    def payment_instructions(self) -> dict[str, str]:
        """Configured payment methods, keyed by display label."""
        methods = {
            "Venmo": self.venmo_handle,
            "Cash App": self.cashapp_handle,
            "Zelle": self.zelle_email,
        }
        return {label: value for label, value in methods.items() if value}


class CatalogResponse(CatalogModel):
    """Storefront catalog: products plus option reference data."""

    products: list[Product] = Field(default_factory=list)
    design_options: list[DesignOption] = Field(default_factory=list)
    customization_options: list[CustomizationOption] = Field(default_factory=list)
