"""Wallet top-ups through the payment gateway.

Initiation only talks to the gateway; nothing is written until the
payment is verified. Verification credits the wallet under the top-up
reference, so replaying a verification is a no-op.
"""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Float, Identifier, String
from protean.utils.globals import current_domain

from ordering import settings
from ordering.domain import ordering
from ordering.gateway import get_gateway
from ordering.gateway.port import GatewayError
from ordering.shared.money import from_minor_units, to_minor_units
from ordering.shared.numbers import generate_order_number
from ordering.wallet.wallet import TransactionPurpose, Wallet

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Wallet")
class InitiateTopUp:
    customer_id = Identifier(required=True)
    email = String(required=True, max_length=254)
    amount = Float(required=True)


@ordering.command(part_of="Wallet")
class VerifyTopUp:
    customer_id = Identifier(required=True)
    reference = String(required=True, max_length=100)


@ordering.command_handler(part_of=Wallet)
class TopUpHandler:
    @handle(InitiateTopUp)
    def initiate_top_up(self, command):
        if command.amount < settings.MIN_TOP_UP_AMOUNT:
            raise ValidationError({"amount": [f"Minimum top-up amount is {settings.MIN_TOP_UP_AMOUNT:,.0f}"]})

        reference = f"TOPUP-{generate_order_number()}"
        try:
            intent = get_gateway().initialize(
                email=command.email,
                amount_minor_units=to_minor_units(command.amount),
                reference=reference,
                callback_url=f"{settings.FRONTEND_URL}/wallet/top-up-callback",
                metadata={"customer_id": str(command.customer_id), "purpose": "wallet_topup"},
            )
        except GatewayError as exc:
            logger.error("top_up_initialization_failed", customer_id=str(command.customer_id), error=str(exc))
            raise ValidationError({"payment": ["Failed to initialize payment"]}) from exc

        return {
            "redirect_url": intent.redirect_url,
            "access_code": intent.access_code,
            "reference": reference,
        }

    @handle(VerifyTopUp)
    def verify_top_up(self, command):
        repo = current_domain.repository_for(Wallet)
        wallet = repo.get_or_open(command.customer_id)
        if wallet.has_reference(command.reference):
            return wallet.summary()

        try:
            verification = get_gateway().verify(command.reference)
        except GatewayError as exc:
            logger.error("top_up_verification_failed", reference=command.reference, error=str(exc))
            raise ValidationError({"payment": ["Failed to verify payment"]}) from exc

        if not verification.succeeded:
            raise ValidationError({"payment": ["Payment verification failed"]})

        owner = verification.metadata.get("customer_id")
        if owner and owner != str(command.customer_id):
            raise ValidationError({"reference": ["Payment reference belongs to another customer"]})

        amount = from_minor_units(verification.amount_minor_units)
        wallet.credit(
            amount=amount,
            purpose=TransactionPurpose.TOP_UP,
            reference=command.reference,
            description="Wallet top-up",
        )
        repo.add(wallet)

        logger.info("wallet_topped_up", customer_id=str(command.customer_id), reference=command.reference, amount=amount)
        return wallet.summary()
