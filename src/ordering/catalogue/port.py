"""Catalogue port — the product and vendor data the orchestrator reads and the
stock counters it moves.

Stock changes are the only writes. Each adapter must make a single
decrement atomic per product (check and subtract as one step) because two
checkouts can race for the last unit.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from ordering.shared.product_type import ProductType


class CatalogueError(Exception):
    """The catalogue could not complete a stock operation."""


class InsufficientStock(CatalogueError):
    def __init__(self, product_id: str, name: str, available: int) -> None:
        self.product_id = product_id
        self.name = name
        self.available = available
        super().__init__(f"Insufficient stock for {name}. Only {available} available")


@dataclass(frozen=True)
class Product:
    id: str
    name: str
    vendor_id: str
    price: float
    stock: int
    product_type: ProductType = ProductType.PHYSICAL
    status: str = "active"
    weight: float = 1.0
    image: str | None = None
    requires_license: bool = False
    license_type: str | None = None  # "single" | "multi" | "lifetime"
    download_url: str | None = None
    total_sales: int = 0

    @property
    def is_active(self) -> bool:
        return self.status == "active"


@dataclass(frozen=True)
class VendorProfile:
    vendor_id: str
    business_name: str
    street: str = ""
    city: str = ""
    state: str = ""
    country: str = "Nigeria"
    phone: str = ""
    email: str = ""
    supports_pickup: bool = True

    @property
    def has_valid_address(self) -> bool:
        street = (self.street or "").strip()
        return len(street) > 5 and street != "123 Main Street" and bool(self.city) and bool(self.state)

    @property
    def full_address(self) -> str:
        return f"{self.street}, {self.city}, {self.state}, {self.country or 'Nigeria'}"


class CataloguePort(ABC):
    @abstractmethod
    def get_product(self, product_id: str) -> Product | None:
        """Return the product, or None when it no longer exists."""
        ...

    @abstractmethod
    def get_vendor_profile(self, vendor_id: str) -> VendorProfile | None: ...

    @abstractmethod
    def decrement_stock(self, product_id: str, quantity: int) -> None:
        """Remove ``quantity`` units; raises ``InsufficientStock`` without changing anything."""
        ...

    @abstractmethod
    def increment_stock(self, product_id: str, quantity: int) -> None: ...

    @abstractmethod
    def record_sales(self, product_id: str, quantity: int) -> None:
        """Adjust the product's sales counter (negative for cancellations)."""
        ...

    @abstractmethod
    def record_coupon_usage(self, coupon_code: str) -> None: ...
