"""Shopping Cart aggregate (CQRS).

One active cart per customer. Items carry a unit-price snapshot taken when
they were added; checkout reads the cart, re-validates every line against
the catalogue, and clears the cart in the same unit of work that creates
the order.
"""

from datetime import UTC, datetime

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String

from ordering.cart.events import CartCleared, CartCouponApplied, CartItemAdded, CartItemRemoved, CartQuantityUpdated
from ordering.domain import ordering


@ordering.entity(part_of="ShoppingCart")
class CartItem:
    product_id = Identifier(required=True)
    variant_id = String(max_length=100)
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)
    added_at = DateTime()

    @property
    def line_total(self) -> float:
        return round(self.unit_price * self.quantity, 2)


@ordering.aggregate
class ShoppingCart:
    customer_id = Identifier(required=True)
    items = HasMany(CartItem)
    coupon_code = String(max_length=50)
    discount = Float(default=0.0, min_value=0.0)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def every_item_must_have_positive_quantity(self):
        if any(item.quantity < 1 for item in self.items):
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

    @property
    def subtotal(self) -> float:
        return round(sum(item.line_total for item in self.items), 2)

    @property
    def is_empty(self) -> bool:
        return not self.items

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "customer_id": str(self.customer_id),
            "items": [
                {
                    "id": str(item.id),
                    "product_id": str(item.product_id),
                    "variant_id": item.variant_id,
                    "quantity": item.quantity,
                    "unit_price": item.unit_price,
                    "line_total": item.line_total,
                }
                for item in self.items
            ],
            "coupon_code": self.coupon_code,
            "subtotal": self.subtotal,
            "discount": self.discount_amount(),
        }

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, customer_id):
        now = datetime.now(UTC)
        return cls(customer_id=customer_id, discount=0.0, created_at=now, updated_at=now)

    # -------------------------------------------------------------------
    # Item management
    # -------------------------------------------------------------------
    def add_item(self, product_id, unit_price, quantity=1, variant_id=None):
        """Add a product (or increase its quantity when the same variant is already in the cart)."""
        existing = next(
            (
                i
                for i in self.items
                if str(i.product_id) == str(product_id) and (i.variant_id or None) == (variant_id or None)
            ),
            None,
        )

        now = datetime.now(UTC)
        if existing:
            existing.quantity += quantity
            existing.unit_price = unit_price
        else:
            self.add_items(
                CartItem(
                    product_id=product_id,
                    variant_id=variant_id,
                    quantity=quantity,
                    unit_price=unit_price,
                    added_at=now,
                )
            )
        self.updated_at = now

        self.raise_(CartItemAdded(cart_id=str(self.id), product_id=str(product_id), quantity=quantity))

    def update_item_quantity(self, item_id, new_quantity):
        item = self._find_item(item_id)
        previous_quantity = item.quantity
        item.quantity = new_quantity
        self.updated_at = datetime.now(UTC)

        self.raise_(
            CartQuantityUpdated(
                cart_id=str(self.id),
                item_id=str(item_id),
                previous_quantity=previous_quantity,
                new_quantity=new_quantity,
            )
        )

    def remove_item(self, item_id):
        item = self._find_item(item_id)
        self.remove_items(item)
        self.updated_at = datetime.now(UTC)

        self.raise_(CartItemRemoved(cart_id=str(self.id), item_id=str(item_id)))

    def _find_item(self, item_id):
        item = next((i for i in self.items if str(i.id) == str(item_id)), None)
        if item is None:
            raise ValidationError({"item_id": ["Item not found in cart"]})
        return item

    # -------------------------------------------------------------------
    # Coupons
    # -------------------------------------------------------------------
    def apply_coupon(self, coupon_code, discount):
        if self.is_empty:
            raise ValidationError({"cart": ["Cannot apply a coupon to an empty cart"]})
        if self.coupon_code:
            raise ValidationError({"coupon_code": ["A coupon is already applied to this cart"]})

        self.coupon_code = coupon_code
        self.discount = round(discount, 2)
        self.updated_at = datetime.now(UTC)

        self.raise_(CartCouponApplied(cart_id=str(self.id), coupon_code=coupon_code, discount=self.discount))

    def discount_amount(self) -> float:
        """The discount that can actually be applied, never more than the subtotal."""
        return round(min(self.discount or 0.0, self.subtotal), 2)

    # -------------------------------------------------------------------
    # Checkout
    # -------------------------------------------------------------------
    def clear(self, order_number=None):
        """Empty the cart once its contents became an order."""
        for item in list(self.items):
            self.remove_items(item)
        self.coupon_code = None
        self.discount = 0.0
        self.updated_at = datetime.now(UTC)

        self.raise_(CartCleared(cart_id=str(self.id), order_number=order_number))


@ordering.repository(part_of=ShoppingCart)
class ShoppingCartRepository:
    def find_for_customer(self, customer_id) -> ShoppingCart | None:
        carts = self._dao.query.filter(customer_id=str(customer_id)).all().items
        return carts[0] if carts else None
