"""Order submission Pydantic schemas for API request/response models."""

import re
from datetime import datetime
from typing import Annotated

from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict, Field, StringConstraints
from pydantic.alias_generators import to_camel
from pydantic.networks import validate_email

from src.core.config import Environment

_TAG_PATTERN = re.compile(r"<[^>]*>")
_ANGLE_BRACKETS = re.compile(r"[<>]")


def sanitize_string(value: str) -> str:
    """Strip markup and surrounding whitespace from free text.

    Removes complete tags first, then any stray angle brackets, so the
    value is safe to interpolate into HTML emails.
    """
    value = _TAG_PATTERN.sub("", value)
    value = _ANGLE_BRACKETS.sub("", value)
    return value.strip()


def _normalize_email(value: object) -> object:
    if isinstance(value, str):
        return value.strip().lower()
    return value


def _check_email(value: str) -> str:
    validate_email(value)
    return value


Email = Annotated[
    str,
    BeforeValidator(_normalize_email),
    StringConstraints(min_length=1, max_length=254),
    AfterValidator(_check_email),
]
PersonName = Annotated[str, StringConstraints(min_length=1, max_length=50), AfterValidator(sanitize_string)]
Title = Annotated[str, StringConstraints(max_length=100), AfterValidator(sanitize_string)]
CustomName = Annotated[str, StringConstraints(max_length=30), AfterValidator(sanitize_string)]
ProductId = Annotated[str, StringConstraints(min_length=1, max_length=100), AfterValidator(sanitize_string)]
ProductName = Annotated[str, StringConstraints(min_length=1, max_length=200), AfterValidator(sanitize_string)]
Size = Annotated[str, StringConstraints(min_length=1, max_length=10), AfterValidator(sanitize_string)]
StoreSlug = Annotated[str, StringConstraints(max_length=50), AfterValidator(sanitize_string)]


class WireModel(BaseModel):
    """Base model using camelCase field names on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class ContactInfo(WireModel):
    """Customer contact details."""

    email: Email = Field(description="Customer email (lowercased)")
    first_name: PersonName = Field(description="Customer first name")
    last_name: PersonName = Field(description="Customer last name")
    phone: str = Field(
        min_length=10,
        max_length=20,
        pattern=r"^[\d\s()+-]{10,20}$",
        description="Customer phone number",
    )


class SelectedDesignOption(WireModel):
    """A design option chosen for an item, with its price snapshot."""

    option_number: int = Field(ge=1, le=99, description="Catalog design option number")
    title: Title = Field(description="Design option title")
    price: float = Field(ge=0, le=1000, description="Price snapshot")


class SelectedCustomizationOption(WireModel):
    """A customization option chosen for an item, with personalization."""

    option_number: int = Field(ge=1, le=99, description="Catalog customization option number")
    title: Title = Field(description="Customization option title")
    price: float = Field(ge=0, le=1000, description="Price snapshot")
    custom_name: CustomName | None = Field(default=None, description="Personalized name")
    custom_number: str | None = Field(
        default=None,
        max_length=4,
        pattern=r"^[0-9]*$",
        description="Personalized number (digits only)",
    )


class OrderItem(WireModel):
    """One configured product line, priced per unit."""

    product_id: ProductId = Field(description="Catalog product id")
    product_name: ProductName = Field(description="Product name snapshot")
    size: Size = Field(description="Selected size")
    size_upcharge: float = Field(default=0, ge=0, le=100, description="Size upcharge")
    item_price: float = Field(ge=0, le=10000, description="Base price plus size upcharge")
    quantity: int = Field(ge=1, le=100, description="Units ordered")
    design_options: list[SelectedDesignOption] = Field(default_factory=list, max_length=10)
    design_options_total: float | None = Field(default=None, ge=0, le=10000)
    customization_options: list[SelectedCustomizationOption] = Field(default_factory=list, max_length=10)
    customization_options_total: float | None = Field(default=None, ge=0, le=10000)
    total_price: float = Field(ge=0, le=50000, description="Per-unit total")

    @property
    def line_total(self) -> float:
        """Total for all units of this line."""
        return round(self.total_price * self.quantity, 2)


class OrderSubmission(WireModel):
    """Validated order submission received from the storefront."""

    contact_info: ContactInfo
    items: list[OrderItem] = Field(min_length=1, max_length=50)
    total_amount: float | None = Field(
        default=None,
        ge=0,
        le=100000,
        description="Client-declared total (informational only)",
    )
    store_slug: StoreSlug | None = None


class Order(WireModel):
    """An accepted order with server-computed totals and an order number."""

    contact_info: ContactInfo
    items: list[OrderItem]
    total_amount: float
    order_date: datetime
    environment: Environment
    store_slug: str = ""
    order_number: str
    short_order_number: str

    @property
    def customer_name(self) -> str:
        return f"{self.contact_info.first_name} {self.contact_info.last_name}"

    @property
    def store_label(self) -> str:
        """Upper-cased store name for notifications."""
        return self.store_slug.upper() if self.store_slug else "STORE"


class FieldError(BaseModel):
    """A single validation failure."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    field_path: str = Field(description="Dotted path of the offending field")
    message: str = Field(description="Human-readable error message")


class OrderSubmissionResponse(BaseModel):
    """Successful order submission response."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool = Field(default=True)
    order_number: str = Field(description="Customer-facing (short) order number")
