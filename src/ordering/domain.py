"""Ordering bounded context — order settlement and fulfillment orchestration.

Turns a shopping cart into a confirmed, paid and (for physical goods) shipped
order, split across the vendors that contributed items. Owns the customer
wallet ledger, digital licenses and the outbox of post-settlement tasks.
"""

import structlog
from protean.domain import Domain

ordering = Domain(name="ordering")

logger = structlog.get_logger(__name__)
