"""Authoritative order pricing against the product catalog."""

import logging
from dataclasses import dataclass, field

from src.schemas.catalog import CustomizationOption, DesignOption, Product
from src.schemas.order import OrderItem

logger = logging.getLogger(__name__)

# Absorbs floating point rounding only.
PRICE_TOLERANCE = 0.01


@dataclass
class PriceVerification:
    """Result of comparing submitted prices with the catalog."""

    valid: bool
    discrepancies: list[str] = field(default_factory=list)


@dataclass
class PricedOrder:
    """Items re-priced from the catalog and the resulting total."""

    items: list[OrderItem]
    total_amount: float


def _differs(submitted: float, expected: float) -> bool:
    return abs(submitted - expected) > PRICE_TOLERANCE


def _money(value: float) -> str:
    return f"${value:.2f}"


class CatalogPriceIndex:
    """Lookup tables over a catalog snapshot."""

    def __init__(
        self,
        products: list[Product],
        design_options: list[DesignOption],
        customization_options: list[CustomizationOption],
    ) -> None:
        self.products = {p.id: p for p in products}
        self.design_prices = {o.number: o.price for o in design_options}
        self.customization_prices = {o.number: o.price for o in customization_options}


def verify_prices(
    items: list[OrderItem],
    products: list[Product],
    design_options: list[DesignOption],
    customization_options: list[CustomizationOption],
) -> PriceVerification:
    """Verify that submitted prices match the product catalog.

    Every item and option is checked and all discrepancies are collected.
    The discrepancy strings reveal catalog prices and are meant for the
    audit log only, never for the client.

    Args:
        items: Validated order items.
        products: Product catalog with size pricing.
        design_options: Design option reference data.
        customization_options: Customization option reference data.

    Returns:
        PriceVerification: valid flag plus human-readable discrepancies.
    """
    index = CatalogPriceIndex(products, design_options, customization_options)
    discrepancies: list[str] = []

    for position, item in enumerate(items):
        label = f"item {position + 1}"
        product = index.products.get(item.product_id)
        if product is None:
            discrepancies.append(f"Product not found for {label}: {item.product_id}")
            continue

        # Sizes missing from the size table carry no upcharge.
        expected_upcharge = product.upcharge_for(item.size) or 0.0
        if _differs(item.size_upcharge, expected_upcharge):
            discrepancies.append(
                f"Size upcharge mismatch for {product.id} ({item.size}): "
                f"submitted {_money(item.size_upcharge)}, actual {_money(expected_upcharge)}"
            )

        expected_item_price = product.base_price + expected_upcharge
        if _differs(item.item_price, expected_item_price):
            discrepancies.append(
                f"Item price mismatch for {product.id}: submitted {_money(item.item_price)}, "
                f"expected {_money(expected_item_price)} "
                f"(base {_money(product.base_price)} + size {_money(expected_upcharge)})"
            )

        expected_design_total = 0.0
        for option in item.design_options:
            catalog_price = index.design_prices.get(option.option_number)
            if catalog_price is None:
                discrepancies.append(
                    f"Unknown design option {option.option_number} for {product.id}"
                )
                continue
            expected_design_total += catalog_price
            if _differs(option.price, catalog_price):
                discrepancies.append(
                    f"Design option price mismatch for {product.id}: option {option.option_number} "
                    f"submitted {_money(option.price)}, actual {_money(catalog_price)}"
                )

        expected_custom_total = 0.0
        for option in item.customization_options:
            catalog_price = index.customization_prices.get(option.option_number)
            if catalog_price is None:
                discrepancies.append(
                    f"Unknown customization option {option.option_number} for {product.id}"
                )
                continue
            expected_custom_total += catalog_price
            if _differs(option.price, catalog_price):
                discrepancies.append(
                    f"Customization option price mismatch for {product.id}: option {option.option_number} "
                    f"submitted {_money(option.price)}, actual {_money(catalog_price)}"
                )

        expected_total = expected_item_price + expected_design_total + expected_custom_total
        if _differs(item.total_price, expected_total):
            discrepancies.append(
                f"Item total mismatch for {product.id}: submitted {_money(item.total_price)}, "
                f"expected {_money(expected_total)}"
            )

    return PriceVerification(valid=not discrepancies, discrepancies=discrepancies)


def price_order(
    items: list[OrderItem],
    products: list[Product],
    design_options: list[DesignOption],
    customization_options: list[CustomizationOption],
) -> PricedOrder:
    """Re-derive every item's prices and the order total from the catalog.

    Client-declared prices are replaced by catalog values and the total is
    summed from scratch. Call only after verify_prices() succeeded.

    Args:
        items: Verified order items.
        products: Product catalog with size pricing.
        design_options: Design option reference data.
        customization_options: Customization option reference data.

    Returns:
        PricedOrder: Re-priced items and the order total.

    Raises:
        KeyError: If an item references a product missing from the catalog.
    """
    index = CatalogPriceIndex(products, design_options, customization_options)
    priced: list[OrderItem] = []

    for item in items:
        product = index.products[item.product_id]
        upcharge = product.upcharge_for(item.size) or 0.0
        item_price = round(product.base_price + upcharge, 2)

        design_options_priced = [
            option.model_copy(update={"price": index.design_prices.get(option.option_number, 0.0)})
            for option in item.design_options
        ]
        customization_options_priced = [
            option.model_copy(update={"price": index.customization_prices.get(option.option_number, 0.0)})
            for option in item.customization_options
        ]
        design_total = round(sum(o.price for o in design_options_priced), 2)
        custom_total = round(sum(o.price for o in customization_options_priced), 2)

        priced.append(
            item.model_copy(
                update={
                    "size_upcharge": upcharge,
                    "item_price": item_price,
                    "design_options": design_options_priced,
                    "design_options_total": design_total,
                    "customization_options": customization_options_priced,
                    "customization_options_total": custom_total,
                    "total_price": round(item_price + design_total + custom_total, 2),
                }
            )
        )

    total_amount = round(sum(item.line_total for item in priced), 2)
    return PricedOrder(items=priced, total_amount=total_amount)
