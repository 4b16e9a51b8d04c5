"""Product type tag, resolved once when a product enters the ordering context."""

from enum import Enum

import structlog

logger = structlog.get_logger(__name__)


class ProductType(Enum):
    PHYSICAL = "physical"
    DIGITAL = "digital"
    SERVICE = "service"

    @property
    def is_physical(self) -> bool:
        return self is ProductType.PHYSICAL

    @classmethod
    def resolve(cls, raw, product_id=None) -> "ProductType":
        """Turn a catalogue type string into a ``ProductType``.

        Matching is case-insensitive. Anything unrecognised (including a
        missing value) is treated as physical so shipping is never skipped,
        and is logged because the catalogue data is ambiguous.
        """
        if isinstance(raw, cls):
            return raw
        value = str(raw).strip().lower() if raw is not None else ""
        for member in cls:
            if member.value == value:
                return member
        logger.warning("ambiguous_product_type", product_id=product_id, raw_type=raw, resolved_as="physical")
        return cls.PHYSICAL
