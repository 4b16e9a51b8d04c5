"""Post-settlement side effects.

Run inside the unit of work that records the payment, so the order's
``side_effects_applied`` flag and the work it guards are committed
together. Replaying a settlement finds the flag set and does nothing.

Inventory (stock, sales counters, coupon usage) is guarded separately by
``stock_committed`` because cash-on-delivery orders commit stock when they
are confirmed, long before any payment arrives.
"""

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from ordering.catalogue import get_catalogue
from ordering.catalogue.port import InsufficientStock
from ordering.license.license import License
from ordering.tasks.outbox import award_points_key, book_shipment_key, enqueue_task
from ordering.tasks.task import TaskKind
from ordering.wallet.wallet import TransactionPurpose, Wallet

logger = structlog.get_logger(__name__)


def commit_inventory(order) -> bool:
    """Decrement stock for physical lines and bump sales counters for every line.

    Decrements already applied are reversed when a later line is short, so a
    failure leaves the catalogue as it was. Returns False when the order's
    stock was committed earlier.
    """
    if order.stock_committed:
        return False

    catalogue = get_catalogue()
    decremented = []
    try:
        for item in order.physical_items():
            catalogue.decrement_stock(str(item.product_id), item.quantity)
            decremented.append(item)
    except InsufficientStock as exc:
        for item in decremented:
            catalogue.increment_stock(str(item.product_id), item.quantity)
        logger.error(
            "stock_commit_failed",
            order_number=order.order_number,
            product_id=exc.product_id,
            available=exc.available,
        )
        raise ValidationError({"stock": [str(exc)]}) from exc

    for item in order.items:
        catalogue.record_sales(str(item.product_id), item.quantity)
    if order.coupon_code:
        catalogue.record_coupon_usage(order.coupon_code)

    order.mark_stock_committed()
    logger.info("stock_committed", order_number=order.order_number, lines=len(decremented))
    return True


def release_inventory(order) -> bool:
    """Return committed stock to the catalogue and reverse the sales counters."""
    if not order.stock_committed:
        return False

    catalogue = get_catalogue()
    for item in order.physical_items():
        catalogue.increment_stock(str(item.product_id), item.quantity)
    for item in order.items:
        catalogue.record_sales(str(item.product_id), -item.quantity)

    logger.info("stock_released", order_number=order.order_number)
    return True


def issue_licenses(order) -> list[License]:
    """Issue one license per digital line whose product requires one."""
    repo = current_domain.repository_for(License)
    issued = []
    for item in order.items:
        if item.is_physical or not item.requires_license:
            continue
        if repo.find_for_line(order.id, item.id) is not None:
            continue

        license = License.issue_for_line(
            customer_id=order.customer_id,
            order_id=order.id,
            order_item_id=item.id,
            product_id=item.product_id,
            license_type=item.license_type,
        )
        repo.add(license)
        issued.append(license)

    if issued:
        logger.info("licenses_issued", order_number=order.order_number, count=len(issued))
    return issued


def enqueue_followups(order) -> None:
    enqueue_task(
        TaskKind.AWARD_POINTS,
        award_points_key(order.id),
        payload={"order_id": str(order.id), "order_number": order.order_number},
        order_id=order.id,
    )

    if not order.needs_shipment_booking:
        return
    for shipment in order.vendor_shipments:
        enqueue_task(
            TaskKind.BOOK_SHIPMENT,
            book_shipment_key(order.id, shipment.vendor_id),
            payload={"order_number": order.order_number, "vendor_id": str(shipment.vendor_id)},
            order_id=order.id,
        )


def apply_side_effects(order) -> bool:
    """Apply everything that follows a completed payment, exactly once per order."""
    if order.side_effects_applied:
        logger.info("side_effects_already_applied", order_number=order.order_number)
        return False
    if not order.is_paid:
        raise ValidationError({"payment_status": ["Side effects follow a completed payment"]})

    commit_inventory(order)
    issue_licenses(order)
    enqueue_followups(order)
    order.mark_side_effects_applied()
    return True


def refund_to_wallet(order, reason) -> None:
    """Credit the order's full total to the customer's wallet and mark the payment refunded.

    The credit's reference is ``REF-<order number>``, so a replay never
    credits twice.
    """
    wallet_repo = current_domain.repository_for(Wallet)
    wallet = wallet_repo.get_or_open(order.customer_id)
    wallet.credit(
        order.total,
        TransactionPurpose.REFUND,
        reference=f"REF-{order.order_number}",
        order_id=order.id,
        description=f"Refund for cancelled order {order.order_number}",
    )
    wallet_repo.add(wallet)
    order.refund(reason)


def revoke_licenses(order) -> int:
    """Deactivate every license issued for the order. Returns how many were revoked."""
    repo = current_domain.repository_for(License)
    revoked = 0
    for license in repo.find_for_order(order.id):
        if license.revoke():
            repo.add(license)
            revoked += 1

    if revoked:
        logger.info("licenses_revoked", order_number=order.order_number, count=revoked)
    return revoked
