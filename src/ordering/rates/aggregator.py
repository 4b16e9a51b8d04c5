"""Rate Aggregator — merge per-vendor courier quotes into customer-facing options.

Every vendor with physical items is quoted separately by the carrier. For
each rate type the cheapest quote per vendor is kept, the kept quotes are
summed across vendors, and the slowest vendor's ETA becomes the option's
ETA because a split order is only complete when its last parcel arrives.

A vendor whose address is unusable, or whose carrier call fails, is priced
with fixed fallback rates. The quote's ``source`` tells the caller whether
any real carrier data was used.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum

import structlog

from ordering.carrier.port import CarrierError, CarrierPort, ContactAddress, CourierQuote, ParcelItem, eta_days
from ordering.catalogue.port import VendorProfile
from ordering.partitioning.partitioner import VendorGroup
from ordering.shared.money import round_money

logger = structlog.get_logger(__name__)

DEFAULT_SENDER_PHONE = "+2348000000000"
DEFAULT_SENDER_EMAIL = "sender@vendorspot.com"
DEFAULT_RECEIVER_EMAIL = "customer@vendorspot.com"


class RateType(Enum):
    PICKUP = "pickup"
    STANDARD = "standard"
    EXPRESS = "express"
    DIGITAL = "digital"


class QuoteSource(Enum):
    CARRIER = "carrier"
    FALLBACK = "fallback"
    DIGITAL = "digital"


# Price charged per vendor-with-physical-items when the order is created
DEFAULT_SHIPPING_PRICES = {
    "standard": 2500.0,
    "express": 5000.0,
    "same_day": 8000.0,
}


def shipping_price_for(delivery_type: str) -> float:
    """Per-vendor shipping price for a delivery type. Unknown types cost the standard price."""
    if delivery_type in ("pickup", "digital"):
        return 0.0
    return DEFAULT_SHIPPING_PRICES.get(delivery_type, DEFAULT_SHIPPING_PRICES["standard"])


@dataclass(frozen=True)
class Destination:
    city: str
    state: str
    street: str | None = None
    full_name: str | None = None
    phone: str | None = None
    country: str = "Nigeria"

    @property
    def one_line(self) -> str:
        street = self.street or f"{self.city} Area"
        return f"{street}, {self.city}, {self.state}, {self.country or 'Nigeria'}"

    def contact(self, email: str | None = None) -> ContactAddress:
        return ContactAddress(
            name=self.full_name or "Customer",
            email=email or DEFAULT_RECEIVER_EMAIL,
            phone=self.phone or DEFAULT_SENDER_PHONE,
            address=self.one_line,
        )


def sender_contact(vendor_name: str, profile: VendorProfile | None) -> ContactAddress:
    return ContactAddress(
        name=vendor_name,
        email=(profile.email if profile else "") or DEFAULT_SENDER_EMAIL,
        phone=(profile.phone if profile else "") or DEFAULT_SENDER_PHONE,
        address=profile.full_address if profile else "",
    )


def parcel_items(group: VendorGroup) -> list[ParcelItem]:
    return [
        ParcelItem(
            name=line.product.name,
            description=line.product.name,
            unit_weight=line.product.weight or 1.0,
            unit_amount=line.unit_price,
            quantity=line.quantity,
        )
        for line in group.physical_lines
    ]


@dataclass(frozen=True)
class VendorRate:
    """One priced delivery option for a single vendor's parcel."""

    type: RateType
    name: str
    description: str
    price: float
    eta: str
    courier: str
    courier_id: str | None = None
    service_code: str | None = None

    @classmethod
    def from_courier(cls, quote: CourierQuote) -> "VendorRate":
        return cls(
            type=RateType.STANDARD if quote.service_type == "pickup" else RateType.EXPRESS,
            name=quote.courier_name,
            description=f"{quote.service_type} - {quote.eta}",
            price=round_money(quote.amount),
            eta=quote.eta or "Within 3-5 days",
            courier=quote.courier_name,
            courier_id=quote.courier_id,
            service_code=quote.service_code,
        )


FALLBACK_RATES = (
    VendorRate(
        type=RateType.STANDARD,
        name="Standard Delivery",
        description="Delivery within 5-7 business days",
        price=2500.0,
        eta="5-7 days",
        courier="Standard",
    ),
    VendorRate(
        type=RateType.EXPRESS,
        name="Express Delivery",
        description="Delivery within 2-3 business days",
        price=5000.0,
        eta="2-3 days",
        courier="Express",
    ),
)

DIGITAL_RATE = VendorRate(
    type=RateType.DIGITAL,
    name="Digital Delivery",
    description="Instant access after payment",
    price=0.0,
    eta="Instant",
    courier="Digital",
)


@dataclass
class VendorQuote:
    vendor_id: str
    vendor_name: str
    rates: list[VendorRate]
    source: QuoteSource
    request_token: str | None = None


@dataclass(frozen=True)
class VendorBreakdown:
    vendor_id: str
    vendor_name: str
    price: float
    courier: str


@dataclass
class RateOption:
    """A customer-facing delivery option for the whole cart."""

    type: RateType
    name: str
    description: str
    price: float
    eta: str
    courier: str
    pickup_address: str | None = None
    vendor_breakdown: list[VendorBreakdown] = field(default_factory=list)

    def to_dict(self) -> dict:
        data = {
            "type": self.type.value,
            "name": self.name,
            "description": self.description,
            "price": self.price,
            "estimated_days": self.eta,
            "courier": self.courier,
            "vendor_breakdown": [
                {
                    "vendor_id": b.vendor_id,
                    "vendor_name": b.vendor_name,
                    "price": b.price,
                    "courier": b.courier,
                }
                for b in self.vendor_breakdown
            ],
        }
        if self.pickup_address is not None:
            data["pickup_address"] = self.pickup_address
        return data


@dataclass
class DeliveryQuote:
    options: list[RateOption]
    vendor_count: int
    source: QuoteSource
    is_digital_only: bool = False

    @property
    def multi_vendor(self) -> bool:
        return self.vendor_count > 1

    def option(self, rate_type) -> RateOption | None:
        rate_type = RateType(rate_type.value if isinstance(rate_type, Enum) else rate_type)
        return next((o for o in self.options if o.type is rate_type), None)

    def to_dict(self) -> dict:
        return {
            "rates": [option.to_dict() for option in self.options],
            "vendor_count": self.vendor_count,
            "multi_vendor": self.multi_vendor,
            "source": self.source.value,
            "is_digital_only": self.is_digital_only,
        }


class RateAggregator:
    """Quote every vendor group and merge the results.

    Vendor groups are disjoint, so their carrier calls run concurrently on a
    small thread pool.
    """

    def __init__(self, carrier: CarrierPort, max_workers: int = 4) -> None:
        self.carrier = carrier
        self.max_workers = max_workers

    def quote(self, groups: list[VendorGroup], destination: Destination, email: str | None = None) -> DeliveryQuote:
        if not any(group.has_physical for group in groups):
            logger.info("digital_only_quote")
            return DeliveryQuote(
                options=[
                    RateOption(
                        type=RateType.DIGITAL,
                        name=DIGITAL_RATE.name,
                        description=DIGITAL_RATE.description,
                        price=0.0,
                        eta=DIGITAL_RATE.eta,
                        courier=DIGITAL_RATE.courier,
                    )
                ],
                vendor_count=0,
                source=QuoteSource.DIGITAL,
                is_digital_only=True,
            )

        options = []
        pickup = self.pickup_option(groups)
        if pickup is not None:
            options.append(pickup)

        if len(groups) > 1 and self.max_workers > 1:
            with ThreadPoolExecutor(max_workers=min(self.max_workers, len(groups))) as pool:
                vendor_quotes = list(pool.map(lambda g: self.vendor_rates(g, destination, email), groups))
        else:
            vendor_quotes = [self.vendor_rates(group, destination, email) for group in groups]

        options.extend(self.aggregate(vendor_quotes))

        source = (
            QuoteSource.CARRIER
            if any(q.source is QuoteSource.CARRIER for q in vendor_quotes)
            else QuoteSource.FALLBACK
        )
        logger.info(
            "delivery_quote_ready",
            vendor_count=len(groups),
            option_count=len(options),
            source=source.value,
        )
        return DeliveryQuote(options=options, vendor_count=len(groups), source=source)

    @staticmethod
    def pickup_option(groups: list[VendorGroup]) -> RateOption | None:
        if not all(group.supports_pickup for group in groups):
            return None
        single = len(groups) == 1
        return RateOption(
            type=RateType.PICKUP,
            name="Store Pickup",
            description=(
                "Pickup from vendor location" if single else f"Pickup from {len(groups)} different vendor locations"
            ),
            price=0.0,
            eta="Available immediately",
            courier="Self Pickup",
            pickup_address=f"{groups[0].city}, {groups[0].state}" if single else "Multiple locations",
        )

    def vendor_rates(self, group: VendorGroup, destination: Destination, email: str | None = None) -> VendorQuote:
        """Quote one vendor group, degrading to fallback rates on any carrier problem."""
        if not group.has_physical:
            return VendorQuote(group.vendor_id, group.vendor_name, [DIGITAL_RATE], QuoteSource.DIGITAL)

        if not group.has_valid_address:
            logger.warning("vendor_address_invalid_using_fallback", vendor_id=group.vendor_id)
            return self._fallback(group)

        try:
            sender_code = self.carrier.validate_address(sender_contact(group.vendor_name, group.profile))
            receiver_code = self.carrier.validate_address(destination.contact(email))
            response = self.carrier.fetch_rates(sender_code, receiver_code, parcel_items(group))
        except CarrierError as exc:
            logger.warning("carrier_rates_failed_using_fallback", vendor_id=group.vendor_id, error=str(exc))
            return self._fallback(group)

        rates = [VendorRate.from_courier(courier) for courier in response.couriers]
        if not rates:
            logger.warning("carrier_returned_no_couriers", vendor_id=group.vendor_id)
            return self._fallback(group)

        return VendorQuote(
            vendor_id=group.vendor_id,
            vendor_name=group.vendor_name,
            rates=rates,
            source=QuoteSource.CARRIER,
            request_token=response.request_token,
        )

    @staticmethod
    def _fallback(group: VendorGroup) -> VendorQuote:
        return VendorQuote(group.vendor_id, group.vendor_name, list(FALLBACK_RATES), QuoteSource.FALLBACK)

    @staticmethod
    def aggregate(vendor_quotes: list[VendorQuote]) -> list[RateOption]:
        """Sum each vendor's cheapest rate per type; keep the slowest ETA."""
        aggregated: dict[RateType, RateOption] = {}

        for vendor_quote in vendor_quotes:
            cheapest: dict[RateType, VendorRate] = {}
            for rate in vendor_quote.rates:
                if rate.type is RateType.DIGITAL:
                    continue
                existing = cheapest.get(rate.type)
                if existing is None or rate.price < existing.price:
                    cheapest[rate.type] = rate

            for rate_type, rate in cheapest.items():
                option = aggregated.get(rate_type)
                if option is None:
                    option = RateOption(
                        type=rate_type,
                        name=rate.name,
                        description=rate.description,
                        price=0.0,
                        eta=rate.eta,
                        courier=rate.courier,
                    )
                    aggregated[rate_type] = option

                option.price = round_money(option.price + rate.price)
                option.vendor_breakdown.append(
                    VendorBreakdown(
                        vendor_id=vendor_quote.vendor_id,
                        vendor_name=vendor_quote.vendor_name,
                        price=rate.price,
                        courier=rate.courier,
                    )
                )
                if eta_days(rate.eta) > eta_days(option.eta):
                    option.eta = rate.eta
                if len(option.vendor_breakdown) > 1:
                    option.courier = "Multiple Couriers"

        return list(aggregated.values())
