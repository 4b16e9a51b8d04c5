"""Vendor Partitioner — split cart lines into per-vendor groups.

Each line is resolved against the catalogue once, and its product type is
fixed at that point. Grouping keeps the order in which vendors first
appear in the cart so quotes and shipments are listed deterministically.
"""

from dataclasses import dataclass, field

import structlog
from protean.exceptions import ValidationError

from ordering.catalogue.port import CataloguePort, Product, VendorProfile
from ordering.shared.money import round_money

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ResolvedLine:
    """A cart line joined with the catalogue product it refers to."""

    product: Product
    quantity: int
    unit_price: float
    variant_id: str | None = None

    @property
    def product_id(self) -> str:
        return self.product.id

    @property
    def vendor_id(self) -> str:
        return self.product.vendor_id

    @property
    def is_physical(self) -> bool:
        return self.product.product_type.is_physical

    @property
    def line_total(self) -> float:
        return round_money(self.unit_price * self.quantity)

    @property
    def weight(self) -> float:
        return (self.product.weight or 1.0) * self.quantity


@dataclass
class VendorGroup:
    vendor_id: str
    vendor_name: str
    profile: VendorProfile | None
    lines: list[ResolvedLine] = field(default_factory=list)

    @property
    def physical_lines(self) -> list[ResolvedLine]:
        return [line for line in self.lines if line.is_physical]

    @property
    def has_physical(self) -> bool:
        return any(line.is_physical for line in self.lines)

    @property
    def total_weight(self) -> float:
        return sum(line.weight for line in self.physical_lines)

    @property
    def has_valid_address(self) -> bool:
        return self.profile is not None and self.profile.has_valid_address

    @property
    def supports_pickup(self) -> bool:
        return self.profile is None or self.profile.supports_pickup

    @property
    def city(self) -> str:
        return self.profile.city if self.profile else ""

    @property
    def state(self) -> str:
        return self.profile.state if self.profile else ""


def resolve_lines(cart_items, catalogue: CataloguePort, require_active: bool = True) -> list[ResolvedLine]:
    """Join cart items with their catalogue products.

    Raises ``ValidationError`` when a product no longer exists or, with
    ``require_active``, is no longer active.
    """
    lines = []
    for item in cart_items:
        product = catalogue.get_product(str(item.product_id))
        if product is None:
            raise ValidationError({"items": [f"Product {item.product_id} is no longer available"]})
        if require_active and not product.is_active:
            raise ValidationError({"items": [f"Product {product.name} is no longer available"]})
        lines.append(
            ResolvedLine(
                product=product,
                quantity=item.quantity,
                unit_price=item.unit_price,
                variant_id=item.variant_id,
            )
        )
    return lines


def partition(lines: list[ResolvedLine], catalogue: CataloguePort) -> list[VendorGroup]:
    """Group resolved lines by vendor, one group per vendor in first-seen order.

    A vendor without a profile gets an empty origin address; the rate
    aggregator then prices that vendor with fallback rates.
    """
    if not lines:
        raise ValidationError({"items": ["Cart is empty"]})

    groups: dict[str, VendorGroup] = {}
    for line in lines:
        group = groups.get(line.vendor_id)
        if group is None:
            profile = catalogue.get_vendor_profile(line.vendor_id)
            if profile is None:
                logger.warning("vendor_profile_missing", vendor_id=line.vendor_id)
            group = VendorGroup(
                vendor_id=line.vendor_id,
                vendor_name=profile.business_name if profile else f"Vendor {line.vendor_id}",
                profile=profile,
            )
            groups[line.vendor_id] = group
        group.lines.append(line)

    return list(groups.values())


def is_digital_only(lines: list[ResolvedLine]) -> bool:
    return bool(lines) and not any(line.is_physical for line in lines)
