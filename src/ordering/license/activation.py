"""License activation — commands and handler."""

import json

from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.license.license import License


@ordering.command(part_of="License")
class ActivateLicense:
    customer_id = Identifier(required=True)
    key = String(required=True, max_length=29)
    device_info = Text()  # JSON


@ordering.command(part_of="License")
class DeactivateLicense:
    customer_id = Identifier(required=True)
    key = String(required=True, max_length=29)


def _license_by_key(repo, key):
    license = repo.find_by_key(key)
    if license is None:
        raise ObjectNotFoundError({"key": ["Invalid license key"]})
    return license


@ordering.command_handler(part_of=License)
class LicenseActivationHandler:
    @handle(ActivateLicense)
    def activate(self, command):
        repo = current_domain.repository_for(License)
        license = _license_by_key(repo, command.key)
        device_info = json.loads(command.device_info) if command.device_info else None
        license.activate(command.customer_id, device_info=device_info)
        repo.add(license)
        return license.to_dict()

    @handle(DeactivateLicense)
    def deactivate(self, command):
        repo = current_domain.repository_for(License)
        license = _license_by_key(repo, command.key)
        license.deactivate(command.customer_id)
        repo.add(license)
        return license.to_dict()
