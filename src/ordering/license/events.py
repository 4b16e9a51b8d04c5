"""Domain events for the License aggregate."""

from protean.fields import DateTime, Identifier, String

from ordering.domain import ordering


@ordering.event(part_of="License")
class LicenseIssued:
    license_id = Identifier(required=True)
    key = String(required=True)
    customer_id = Identifier(required=True)
    order_id = Identifier(required=True)
    product_id = Identifier(required=True)
    expires_at = DateTime()


@ordering.event(part_of="License")
class LicenseActivated:
    license_id = Identifier(required=True)
    key = String(required=True)
    activated_at = DateTime(required=True)


@ordering.event(part_of="License")
class LicenseDeactivated:
    license_id = Identifier(required=True)
    key = String(required=True)
