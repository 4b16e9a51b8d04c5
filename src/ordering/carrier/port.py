"""Carrier port — abstract interface for the carrier-rate service.

The orchestrator needs five things from a carrier: turn a free-form address
into an address code, quote couriers between two codes, book one of the
quoted couriers, and track or cancel the resulting shipment. Adapters raise
``CarrierError`` for any failure (timeout, rejected address, empty quote),
and callers decide whether that means fallback pricing or a pending shipment.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

_LEADING_NUMBER = re.compile(r"(\d+)")


class CarrierError(Exception):
    """The carrier could not fulfil a request."""


def eta_days(eta: str | None) -> int:
    """Return the first whole number in an ETA string such as ``"2-3 days"``, or 0."""
    match = _LEADING_NUMBER.search(eta or "")
    return int(match.group(1)) if match else 0


@dataclass(frozen=True)
class ContactAddress:
    """A named party and the free-form address the carrier should validate."""

    name: str
    email: str
    phone: str
    address: str

    @property
    def cache_key(self) -> str:
        return f"{self.email}-{self.phone}-{self.address}"


@dataclass(frozen=True)
class ParcelItem:
    name: str
    unit_weight: float
    unit_amount: float
    quantity: int
    description: str = ""


@dataclass(frozen=True)
class CourierQuote:
    """One courier's offer for a parcel."""

    courier_id: str
    courier_name: str
    service_code: str
    service_type: str
    amount: float
    eta: str


@dataclass(frozen=True)
class RateResponse:
    request_token: str
    couriers: tuple[CourierQuote, ...] = field(default_factory=tuple)
    cheapest: CourierQuote | None = None
    fastest: CourierQuote | None = None


@dataclass(frozen=True)
class Booking:
    tracking_ref: str
    shipment_id: str | None = None
    courier_name: str | None = None


class CarrierPort(ABC):
    """Abstract interface for carrier adapters."""

    @abstractmethod
    def validate_address(self, contact: ContactAddress) -> str:
        """Return the carrier's address code for ``contact``."""
        ...

    @abstractmethod
    def fetch_rates(
        self,
        sender_code: str,
        receiver_code: str,
        items: list[ParcelItem],
        dimensions: dict | None = None,
        pickup_date: str | None = None,
        category_id: int | None = None,
    ) -> RateResponse:
        """Quote couriers for a parcel between two validated addresses."""
        ...

    @abstractmethod
    def book(self, request_token: str, courier_id: str, service_code: str | None = None) -> Booking:
        """Book a courier returned by a previous ``fetch_rates`` call."""
        ...

    @abstractmethod
    def track(self, tracking_ref: str) -> dict:
        """Return the current tracking status for a shipment."""
        ...

    @abstractmethod
    def cancel(self, tracking_ref: str) -> bool:
        """Cancel a booked shipment. Returns True when the carrier acknowledged."""
        ...
