"""License aggregate — the activation key issued for a paid digital order line.

At most one license exists per (order, order item): the settlement step
looks the pair up before issuing, and ``issue_for_line`` is the only
factory.
"""

import json
from datetime import UTC, datetime, timedelta
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Identifier, String, Text

from ordering import settings
from ordering.domain import ordering
from ordering.license.events import LicenseActivated, LicenseDeactivated, LicenseIssued
from ordering.shared.numbers import generate_license_key


class LicenseType(Enum):
    SINGLE = "single"
    MULTI = "multi"
    LIFETIME = "lifetime"


@ordering.aggregate
class License:
    key = String(required=True, max_length=29, unique=True)
    customer_id = Identifier(required=True)
    order_id = Identifier(required=True)
    order_item_id = Identifier(required=True)
    product_id = Identifier(required=True)
    license_type = String(choices=LicenseType, default=LicenseType.SINGLE.value)
    is_active = Boolean(default=True)
    issued_at = DateTime()
    activated_at = DateTime()
    expires_at = DateTime()
    device_info = Text()  # JSON

    @classmethod
    def issue_for_line(cls, customer_id, order_id, order_item_id, product_id, license_type=None, now=None):
        now = now or datetime.now(UTC)
        license_type = license_type or LicenseType.SINGLE.value
        expires_at = None if license_type == LicenseType.LIFETIME.value else now + timedelta(days=settings.LICENSE_TERM_DAYS)

        license = cls(
            key=generate_license_key(),
            customer_id=customer_id,
            order_id=order_id,
            order_item_id=order_item_id,
            product_id=product_id,
            license_type=license_type,
            is_active=True,
            issued_at=now,
            expires_at=expires_at,
        )
        license.raise_(
            LicenseIssued(
                license_id=str(license.id),
                key=license.key,
                customer_id=str(customer_id),
                order_id=str(order_id),
                product_id=str(product_id),
                expires_at=expires_at,
            )
        )
        return license

    def is_expired(self, now=None) -> bool:
        if self.expires_at is None:
            return False
        now = now or datetime.now(UTC)
        expires_at = self.expires_at if self.expires_at.tzinfo else self.expires_at.replace(tzinfo=UTC)
        return now > expires_at

    def _assert_owner(self, customer_id):
        if str(self.customer_id) != str(customer_id):
            raise ValidationError({"license": ["License does not belong to you"]})

    def activate(self, customer_id, device_info=None, now=None):
        """Bind the license to a device. The first activation time is kept on re-activation."""
        self._assert_owner(customer_id)
        if not self.is_active:
            raise ValidationError({"license": ["License is deactivated"]})
        if self.is_expired(now):
            raise ValidationError({"license": ["License has expired"]})

        now = now or datetime.now(UTC)
        if self.activated_at is None:
            self.activated_at = now
        self.device_info = json.dumps(device_info) if device_info else self.device_info

        self.raise_(LicenseActivated(license_id=str(self.id), key=self.key, activated_at=self.activated_at))

    def deactivate(self, customer_id):
        self._assert_owner(customer_id)
        if not self.is_active:
            raise ValidationError({"license": ["License is already deactivated"]})
        self.is_active = False

        self.raise_(LicenseDeactivated(license_id=str(self.id), key=self.key))

    def revoke(self) -> bool:
        """Deactivate the license because its order was cancelled and refunded.

        Returns False when it was already inactive.
        """
        if not self.is_active:
            return False
        self.is_active = False

        self.raise_(LicenseDeactivated(license_id=str(self.id), key=self.key))
        return True

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "key": self.key,
            "product_id": str(self.product_id),
            "order_id": str(self.order_id),
            "license_type": self.license_type,
            "is_active": self.is_active,
            "activated_at": self.activated_at.isoformat() if self.activated_at else None,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "device_info": json.loads(self.device_info) if self.device_info else None,
        }


@ordering.repository(part_of=License)
class LicenseRepository:
    def find_by_key(self, key) -> License | None:
        licenses = self._dao.query.filter(key=key).all().items
        return licenses[0] if licenses else None

    def find_for_line(self, order_id, order_item_id) -> License | None:
        licenses = self._dao.query.filter(order_id=str(order_id), order_item_id=str(order_item_id)).all().items
        return licenses[0] if licenses else None

    def find_for_order(self, order_id) -> list[License]:
        return self._dao.query.filter(order_id=str(order_id)).all().items

    def find_for_customer(self, customer_id) -> list[License]:
        return self._dao.query.filter(customer_id=str(customer_id)).all().items
