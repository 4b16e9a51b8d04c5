"""Domain events for the Wallet aggregate."""

from protean.fields import Float, Identifier, String

from ordering.domain import ordering


@ordering.event(part_of="Wallet")
class WalletCredited:
    """Funds were added to a wallet."""

    wallet_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    amount = Float(required=True)
    purpose = String(required=True)
    reference = String(required=True)
    order_id = Identifier()
    balance = Float(required=True)


@ordering.event(part_of="Wallet")
class WalletDebited:
    """Funds were spent from a wallet."""

    wallet_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    amount = Float(required=True)
    purpose = String(required=True)
    reference = String(required=True)
    order_id = Identifier()
    balance = Float(required=True)


@ordering.event(part_of="Wallet")
class WithdrawalRequested:
    wallet_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    transaction_id = Identifier(required=True)
    amount = Float(required=True)
    reference = String(required=True)


@ordering.event(part_of="Wallet")
class WithdrawalResolved:
    wallet_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    transaction_id = Identifier(required=True)
    amount = Float(required=True)
    outcome = String(required=True)
