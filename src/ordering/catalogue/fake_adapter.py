"""In-memory catalogue for development and tests.

Products and vendor profiles are seeded with ``add_product`` /
``add_vendor``. Stock counters are guarded per product so concurrent
checkouts cannot oversell.
"""

from dataclasses import replace

from ordering.catalogue.port import CatalogueError, CataloguePort, InsufficientStock, Product, VendorProfile
from ordering.shared.locks import KeyedLocks
from ordering.shared.product_type import ProductType


class FakeCatalogue(CataloguePort):
    def __init__(self) -> None:
        self.products: dict[str, Product] = {}
        self.vendors: dict[str, VendorProfile] = {}
        self.coupon_usage: dict[str, int] = {}
        self._locks = KeyedLocks()

    # -------------------------------------------------------------------
    # Seeding
    # -------------------------------------------------------------------
    def add_product(self, product_id: str, name: str, vendor_id: str, price: float, stock: int = 10, **kwargs) -> Product:
        if "product_type" in kwargs:
            kwargs["product_type"] = ProductType.resolve(kwargs["product_type"], product_id=product_id)
        product = Product(id=product_id, name=name, vendor_id=vendor_id, price=price, stock=stock, **kwargs)
        self.products[product_id] = product
        return product

    def add_vendor(self, vendor_id: str, business_name: str, **kwargs) -> VendorProfile:
        profile = VendorProfile(vendor_id=vendor_id, business_name=business_name, **kwargs)
        self.vendors[vendor_id] = profile
        return profile

    def update_product(self, product_id: str, **changes) -> Product:
        with self._locks.hold(product_id):
            product = replace(self._require(product_id), **changes)
            self.products[product_id] = product
            return product

    # -------------------------------------------------------------------
    # Port
    # -------------------------------------------------------------------
    def get_product(self, product_id: str) -> Product | None:
        return self.products.get(str(product_id))

    def get_vendor_profile(self, vendor_id: str) -> VendorProfile | None:
        return self.vendors.get(str(vendor_id))

    def decrement_stock(self, product_id: str, quantity: int) -> None:
        with self._locks.hold(str(product_id)):
            product = self._require(product_id)
            if product.stock < quantity:
                raise InsufficientStock(product.id, product.name, product.stock)
            self.products[product.id] = replace(product, stock=product.stock - quantity)

    def increment_stock(self, product_id: str, quantity: int) -> None:
        with self._locks.hold(str(product_id)):
            product = self._require(product_id)
            self.products[product.id] = replace(product, stock=product.stock + quantity)

    def record_sales(self, product_id: str, quantity: int) -> None:
        with self._locks.hold(str(product_id)):
            product = self._require(product_id)
            self.products[product.id] = replace(product, total_sales=max(0, product.total_sales + quantity))

    def record_coupon_usage(self, coupon_code: str) -> None:
        self.coupon_usage[coupon_code] = self.coupon_usage.get(coupon_code, 0) + 1

    def _require(self, product_id) -> Product:
        product = self.products.get(str(product_id))
        if product is None:
            raise CatalogueError(f"Unknown product {product_id}")
        return product
