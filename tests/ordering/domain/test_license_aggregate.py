"""Tests for the License aggregate."""

import re
from datetime import UTC, datetime, timedelta

import pytest
from ordering.license.events import LicenseActivated, LicenseDeactivated, LicenseIssued
from ordering.license.license import License
from protean.exceptions import ValidationError

KEY_PATTERN = re.compile(r"^[A-Z0-9]{5}(-[A-Z0-9]{5}){4}$")


def _issue(license_type="single", now=None):
    return License.issue_for_line(
        customer_id="cust-001",
        order_id="order-1",
        order_item_id="item-1",
        product_id="ebook",
        license_type=license_type,
        now=now,
    )


class TestIssue:
    def test_key_format(self):
        assert KEY_PATTERN.match(_issue().key)

    def test_term_license_expires_after_a_year(self):
        now = datetime(2026, 1, 1, tzinfo=UTC)
        license = _issue(now=now)
        assert license.expires_at == now + timedelta(days=365)

    def test_lifetime_license_never_expires(self):
        license = _issue("lifetime")
        assert license.expires_at is None
        assert license.is_expired(datetime(2100, 1, 1, tzinfo=UTC)) is False

    def test_default_type_is_single(self):
        license = License.issue_for_line("cust-001", "order-1", "item-1", "ebook")
        assert license.license_type == "single"

    def test_issue_raises_event(self):
        license = _issue()
        event = license._events[-1]
        assert isinstance(event, LicenseIssued)
        assert event.key == license.key


class TestActivation:
    def test_owner_can_activate(self):
        license = _issue()
        license.activate("cust-001", device_info={"os": "linux"})
        assert license.activated_at is not None
        assert license.to_dict()["device_info"] == {"os": "linux"}
        assert isinstance(license._events[-1], LicenseActivated)

    def test_reactivation_keeps_first_activation_time(self):
        license = _issue()
        first = datetime(2026, 2, 1, tzinfo=UTC)
        license.activate("cust-001", now=first)
        license.activate("cust-001", device_info={"os": "mac"}, now=first + timedelta(days=1))
        assert license.activated_at == first

    def test_other_customer_cannot_activate(self):
        license = _issue()
        with pytest.raises(ValidationError) as exc:
            license.activate("cust-999")
        assert "License does not belong to you" in str(exc.value)

    def test_expired_license_cannot_activate(self):
        issued = datetime(2024, 1, 1, tzinfo=UTC)
        license = _issue(now=issued)
        with pytest.raises(ValidationError) as exc:
            license.activate("cust-001", now=issued + timedelta(days=366))
        assert "License has expired" in str(exc.value)

    def test_deactivated_license_cannot_activate(self):
        license = _issue()
        license.deactivate("cust-001")
        with pytest.raises(ValidationError) as exc:
            license.activate("cust-001")
        assert "License is deactivated" in str(exc.value)


class TestDeactivation:
    def test_owner_can_deactivate(self):
        license = _issue()
        license.deactivate("cust-001")
        assert license.is_active is False
        assert isinstance(license._events[-1], LicenseDeactivated)

    def test_deactivation_happens_once(self):
        license = _issue()
        license.deactivate("cust-001")
        with pytest.raises(ValidationError):
            license.deactivate("cust-001")
