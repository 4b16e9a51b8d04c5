"""Download access for the digital lines of a paid order."""

from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from ordering.catalogue import get_catalogue
from ordering.license.license import License
from ordering.order.order import Order
from ordering.order.verification import order_for_customer


def digital_download(order_number, item_id, customer_id) -> dict:
    order = order_for_customer(current_domain.repository_for(Order), order_number, customer_id)
    if not order.is_paid:
        raise ValidationError({"payment_status": ["Order has not been paid"]})

    item = order.item(item_id)
    if item is None:
        raise ObjectNotFoundError({"item_id": ["Item not found in this order"]})
    if item.is_physical:
        raise ValidationError({"item_id": ["Item is not a digital product"]})

    product = get_catalogue().get_product(str(item.product_id))
    if product is None or not product.download_url:
        raise ObjectNotFoundError({"download_url": ["Download is not available for this product"]})

    license = current_domain.repository_for(License).find_for_line(order.id, item.id)
    return {
        "order_number": order.order_number,
        "item_id": str(item.id),
        "product_name": item.name,
        "download_url": product.download_url,
        "license_key": license.key if license else None,
    }


def order_licenses(order_number, customer_id) -> list[dict]:
    order = order_for_customer(current_domain.repository_for(Order), order_number, customer_id)
    return [license.to_dict() for license in current_domain.repository_for(License).find_for_order(order.id)]
