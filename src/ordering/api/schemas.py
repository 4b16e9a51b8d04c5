"""Pydantic request/response schemas for the Ordering API.

These are external contracts (anti-corruption layer), separate from
internal Protean commands.
"""

from typing import Literal

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class AddressSchema(BaseModel):
    full_name: str | None = None
    phone: str | None = None
    street: str
    city: str
    state: str
    country: str = "Nigeria"


class BankDetailsSchema(BaseModel):
    account_number: str
    bank_code: str
    account_name: str | None = None


# ---------------------------------------------------------------------------
# Cart Request Schemas
# ---------------------------------------------------------------------------
class AddToCartRequest(BaseModel):
    product_id: str
    variant_id: str | None = None
    quantity: int = Field(ge=1, default=1)


class UpdateCartQuantityRequest(BaseModel):
    new_quantity: int = Field(ge=1)


class ApplyCouponToCartRequest(BaseModel):
    coupon_code: str
    discount: float = Field(ge=0)


# ---------------------------------------------------------------------------
# Order Request Schemas
# ---------------------------------------------------------------------------
class DeliveryQuoteRequest(BaseModel):
    customer_id: str
    city: str
    state: str
    street: str | None = None
    full_name: str | None = None
    phone: str | None = None
    email: str | None = None


class CheckoutRequest(BaseModel):
    customer_id: str
    email: str | None = None
    payment_method: Literal["gateway", "wallet", "cash_on_delivery"]
    delivery_type: Literal["standard", "express", "same_day", "pickup", "digital"] = "standard"
    shipping_address: AddressSchema | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "customer_id": "cust-001",
                    "email": "ada@example.com",
                    "payment_method": "wallet",
                    "delivery_type": "standard",
                    "shipping_address": {
                        "full_name": "Ada Obi",
                        "phone": "+2348012345678",
                        "street": "12 Admiralty Way",
                        "city": "Lekki",
                        "state": "Lagos",
                        "country": "Nigeria",
                    },
                }
            ]
        }
    }


class VerifyPaymentRequest(BaseModel):
    customer_id: str | None = None


class CancelOrderRequest(BaseModel):
    customer_id: str | None = None
    reason: str | None = None


class UpdateOrderStatusRequest(BaseModel):
    vendor_id: str
    status: Literal["processing", "shipped", "in_transit", "delivered"]
    note: str | None = None


class CarrierEventRequest(BaseModel):
    tracking_ref: str
    status: str
    note: str | None = None


# ---------------------------------------------------------------------------
# Wallet Request Schemas
# ---------------------------------------------------------------------------
class InitiateTopUpRequest(BaseModel):
    email: str
    amount: float = Field(gt=0)


class VerifyTopUpRequest(BaseModel):
    reference: str


class WithdrawalRequest(BaseModel):
    amount: float = Field(gt=0)
    bank_details: BankDetailsSchema | None = None


class ResolveWithdrawalRequest(BaseModel):
    status: Literal["completed", "failed"]


class CreditWalletRequest(BaseModel):
    amount: float = Field(gt=0)
    purpose: Literal["refund", "commission", "reward", "cashback"]
    reference: str
    order_id: str | None = None
    description: str | None = None


# ---------------------------------------------------------------------------
# License Request Schemas
# ---------------------------------------------------------------------------
class ActivateLicenseRequest(BaseModel):
    customer_id: str
    key: str
    device_info: dict | None = None


class DeactivateLicenseRequest(BaseModel):
    customer_id: str
    key: str


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class TransactionIdResponse(BaseModel):
    transaction_id: str


class StatusResponse(BaseModel):
    status: str = "ok"
