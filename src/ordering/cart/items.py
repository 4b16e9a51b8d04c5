"""Cart item management — commands and handler.

Prices are snapshotted from the catalogue when an item is added; the
customer never supplies a price.
"""

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from ordering.cart.cart import ShoppingCart
from ordering.catalogue import get_catalogue
from ordering.domain import ordering


@ordering.command(part_of="ShoppingCart")
class AddToCart:
    customer_id = Identifier(required=True)
    product_id = Identifier(required=True)
    variant_id = String(max_length=100)
    quantity = Integer(required=True, min_value=1)


@ordering.command(part_of="ShoppingCart")
class UpdateCartQuantity:
    customer_id = Identifier(required=True)
    item_id = Identifier(required=True)
    new_quantity = Integer(required=True, min_value=1)


@ordering.command(part_of="ShoppingCart")
class RemoveFromCart:
    customer_id = Identifier(required=True)
    item_id = Identifier(required=True)


@ordering.command(part_of="ShoppingCart")
class ApplyCouponToCart:
    customer_id = Identifier(required=True)
    coupon_code = String(required=True, max_length=50)
    discount = Float(required=True, min_value=0.0)


def _cart_for(customer_id, create=False):
    repo = current_domain.repository_for(ShoppingCart)
    cart = repo.find_for_customer(customer_id)
    if cart is None:
        if not create:
            raise ValidationError({"cart": ["Cart is empty"]})
        cart = ShoppingCart.create(customer_id=customer_id)
    return repo, cart


@ordering.command_handler(part_of=ShoppingCart)
class ManageCartItemsHandler:
    @handle(AddToCart)
    def add_to_cart(self, command):
        product = get_catalogue().get_product(command.product_id)
        if product is None or not product.is_active:
            raise ValidationError({"product_id": ["Product is not available"]})

        repo, cart = _cart_for(command.customer_id, create=True)
        cart.add_item(
            product_id=product.id,
            unit_price=product.price,
            quantity=command.quantity,
            variant_id=command.variant_id,
        )
        repo.add(cart)
        return str(cart.id)

    @handle(UpdateCartQuantity)
    def update_cart_quantity(self, command):
        repo, cart = _cart_for(command.customer_id)
        cart.update_item_quantity(item_id=command.item_id, new_quantity=command.new_quantity)
        repo.add(cart)

    @handle(RemoveFromCart)
    def remove_from_cart(self, command):
        repo, cart = _cart_for(command.customer_id)
        cart.remove_item(item_id=command.item_id)
        repo.add(cart)

    @handle(ApplyCouponToCart)
    def apply_coupon(self, command):
        repo, cart = _cart_for(command.customer_id)
        cart.apply_coupon(coupon_code=command.coupon_code, discount=command.discount)
        repo.add(cart)
