"""FastAPI routes for the Ordering domain: carts, orders, wallets, licenses and tasks.

Cart and license routes only touch local records and stay on the event loop.
Order, wallet and task routes call the payment gateway or the carrier and
wait on settlement locks, so they are plain functions that FastAPI runs in
its threadpool.
"""

import json

from fastapi import APIRouter
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from ordering.api.schemas import (
    ActivateLicenseRequest,
    AddToCartRequest,
    ApplyCouponToCartRequest,
    CancelOrderRequest,
    CarrierEventRequest,
    CheckoutRequest,
    CreditWalletRequest,
    DeactivateLicenseRequest,
    DeliveryQuoteRequest,
    InitiateTopUpRequest,
    ResolveWithdrawalRequest,
    StatusResponse,
    TransactionIdResponse,
    UpdateCartQuantityRequest,
    UpdateOrderStatusRequest,
    VerifyPaymentRequest,
    VerifyTopUpRequest,
    WithdrawalRequest,
)
from ordering.cart.cart import ShoppingCart
from ordering.cart.items import AddToCart, ApplyCouponToCart, RemoveFromCart, UpdateCartQuantity
from ordering.checkout import service
from ordering.license.activation import ActivateLicense, DeactivateLicense
from ordering.order.digital_access import digital_download, order_licenses
from ordering.order.order import Order
from ordering.order.tracking import track_order
from ordering.order.verification import order_for_customer
from ordering.rates.aggregator import Destination
from ordering.tasks.runner import retry_task
from ordering.tasks.task import Task
from ordering.wallet.ledger import CreditWallet, RequestWithdrawal, ResolveWithdrawal
from ordering.wallet.top_up import InitiateTopUp, VerifyTopUp
from ordering.wallet.wallet import Wallet

# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/carts", tags=["carts"])


@cart_router.get("/{customer_id}")
async def get_cart(customer_id: str) -> dict:
    cart = current_domain.repository_for(ShoppingCart).find_for_customer(customer_id)
    if cart is None:
        raise ObjectNotFoundError({"customer_id": ["Cart not found"]})
    return cart.to_dict()


@cart_router.post("/{customer_id}/items", response_model=StatusResponse)
async def add_cart_item(customer_id: str, body: AddToCartRequest) -> StatusResponse:
    command = AddToCart(
        customer_id=customer_id,
        product_id=body.product_id,
        variant_id=body.variant_id,
        quantity=body.quantity,
    )
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@cart_router.put("/{customer_id}/items/{item_id}", response_model=StatusResponse)
async def update_cart_item_quantity(customer_id: str, item_id: str, body: UpdateCartQuantityRequest) -> StatusResponse:
    command = UpdateCartQuantity(
        customer_id=customer_id,
        item_id=item_id,
        new_quantity=body.new_quantity,
    )
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@cart_router.delete("/{customer_id}/items/{item_id}", response_model=StatusResponse)
async def remove_cart_item(customer_id: str, item_id: str) -> StatusResponse:
    current_domain.process(RemoveFromCart(customer_id=customer_id, item_id=item_id), asynchronous=False)
    return StatusResponse()


@cart_router.post("/{customer_id}/coupons", response_model=StatusResponse)
async def apply_cart_coupon(customer_id: str, body: ApplyCouponToCartRequest) -> StatusResponse:
    command = ApplyCouponToCart(
        customer_id=customer_id,
        coupon_code=body.coupon_code,
        discount=body.discount,
    )
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("/delivery-rates")
def get_delivery_rates(body: DeliveryQuoteRequest) -> dict:
    destination = Destination(
        city=body.city,
        state=body.state,
        street=body.street,
        full_name=body.full_name,
        phone=body.phone,
    )
    return service.quote_delivery(body.customer_id, destination, email=body.email).to_dict()


@order_router.post("", status_code=201)
def checkout(body: CheckoutRequest) -> dict:
    return service.checkout(
        customer_id=body.customer_id,
        payment_method=body.payment_method,
        delivery_type=body.delivery_type,
        shipping_address=body.shipping_address.model_dump_json() if body.shipping_address else None,
        email=body.email,
    )


@order_router.get("")
def list_orders(customer_id: str) -> list[dict]:
    orders = current_domain.repository_for(Order).find_for_customer(customer_id)
    return [order.to_dict() for order in orders]


@order_router.get("/{order_number}")
def get_order(order_number: str, customer_id: str | None = None) -> dict:
    return order_for_customer(current_domain.repository_for(Order), order_number, customer_id).to_dict()


@order_router.post("/{order_number}/verify-payment")
def verify_payment(order_number: str, body: VerifyPaymentRequest) -> dict:
    return service.verify_payment(order_number, customer_id=body.customer_id)


@order_router.post("/{order_number}/cancel")
def cancel_order(order_number: str, body: CancelOrderRequest) -> dict:
    return service.cancel_order(
        order_number,
        customer_id=body.customer_id,
        reason=body.reason,
        cancelled_by=body.customer_id,
    )


@order_router.patch("/{order_number}/status")
def update_order_status(order_number: str, body: UpdateOrderStatusRequest) -> dict:
    return service.update_order_status(order_number, body.vendor_id, body.status, note=body.note)


@order_router.get("/{order_number}/tracking")
def get_tracking(order_number: str, customer_id: str | None = None) -> dict:
    return track_order(order_number, customer_id=customer_id)


@order_router.post("/{order_number}/tracking/refresh")
def refresh_tracking(order_number: str, customer_id: str | None = None) -> dict:
    return service.refresh_order_status(order_number, customer_id=customer_id)


@order_router.post("/carrier-events")
def record_carrier_event(body: CarrierEventRequest) -> dict:
    return service.record_carrier_status(body.tracking_ref, body.status, note=body.note)


@order_router.get("/{order_number}/items/{item_id}/download")
def get_download(order_number: str, item_id: str, customer_id: str) -> dict:
    return digital_download(order_number, item_id, customer_id)


@order_router.get("/{order_number}/licenses")
def get_order_licenses(order_number: str, customer_id: str) -> list[dict]:
    return order_licenses(order_number, customer_id)


# ---------------------------------------------------------------------------
# Wallet Router
# ---------------------------------------------------------------------------
wallet_router = APIRouter(prefix="/wallets", tags=["wallets"])


@wallet_router.get("/{customer_id}")
def get_wallet(customer_id: str) -> dict:
    return current_domain.repository_for(Wallet).get_or_open(customer_id).summary()


@wallet_router.get("/{customer_id}/transactions")
def get_transactions(customer_id: str) -> list[dict]:
    wallet = current_domain.repository_for(Wallet).get_or_open(customer_id)
    return [txn.to_dict() for txn in wallet.history()]


@wallet_router.post("/{customer_id}/top-ups")
def initiate_top_up(customer_id: str, body: InitiateTopUpRequest) -> dict:
    command = InitiateTopUp(customer_id=customer_id, email=body.email, amount=body.amount)
    return current_domain.process(command, asynchronous=False)


@wallet_router.post("/{customer_id}/top-ups/verify")
def verify_top_up(customer_id: str, body: VerifyTopUpRequest) -> dict:
    return service.process_for_wallet(customer_id, VerifyTopUp(customer_id=customer_id, reference=body.reference))


@wallet_router.post("/{customer_id}/withdrawals", status_code=201, response_model=TransactionIdResponse)
def request_withdrawal(customer_id: str, body: WithdrawalRequest) -> TransactionIdResponse:
    command = RequestWithdrawal(
        customer_id=customer_id,
        amount=body.amount,
        bank_details=json.dumps(body.bank_details.model_dump()) if body.bank_details else None,
    )
    return TransactionIdResponse(transaction_id=service.process_for_wallet(customer_id, command))


@wallet_router.post("/{customer_id}/withdrawals/{transaction_id}/resolve", response_model=TransactionIdResponse)
def resolve_withdrawal(customer_id: str, transaction_id: str, body: ResolveWithdrawalRequest) -> TransactionIdResponse:
    command = ResolveWithdrawal(customer_id=customer_id, transaction_id=transaction_id, status=body.status)
    return TransactionIdResponse(transaction_id=service.process_for_wallet(customer_id, command))


@wallet_router.post("/{customer_id}/credits", status_code=201, response_model=TransactionIdResponse)
def credit_wallet(customer_id: str, body: CreditWalletRequest) -> TransactionIdResponse:
    command = CreditWallet(
        customer_id=customer_id,
        amount=body.amount,
        purpose=body.purpose,
        reference=body.reference,
        order_id=body.order_id,
        description=body.description,
    )
    return TransactionIdResponse(transaction_id=service.process_for_wallet(customer_id, command))


# ---------------------------------------------------------------------------
# License Router
# ---------------------------------------------------------------------------
license_router = APIRouter(prefix="/licenses", tags=["licenses"])


@license_router.post("/activate")
async def activate_license(body: ActivateLicenseRequest) -> dict:
    command = ActivateLicense(
        customer_id=body.customer_id,
        key=body.key,
        device_info=json.dumps(body.device_info) if body.device_info else None,
    )
    return current_domain.process(command, asynchronous=False)


@license_router.post("/deactivate")
async def deactivate_license(body: DeactivateLicenseRequest) -> dict:
    command = DeactivateLicense(customer_id=body.customer_id, key=body.key)
    return current_domain.process(command, asynchronous=False)


# ---------------------------------------------------------------------------
# Task Router
# ---------------------------------------------------------------------------
task_router = APIRouter(prefix="/tasks", tags=["tasks"])


@task_router.get("")
def list_tasks(order_id: str) -> list[dict]:
    return [task.to_dict() for task in current_domain.repository_for(Task).for_order(order_id)]


@task_router.post("/{task_id}/retry", response_model=StatusResponse)
def retry_failed_task(task_id: str) -> StatusResponse:
    return StatusResponse(status=retry_task(task_id))
