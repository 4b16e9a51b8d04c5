"""Human-readable reference generators."""

import random
import string
import time

_LICENSE_ALPHABET = string.ascii_uppercase + string.digits


def generate_order_number() -> str:
    """Return a reference like ``VS482913370042``.

    The last 8 digits of the epoch-millis timestamp followed by 4 random digits.
    """
    timestamp = str(int(time.time() * 1000))
    suffix = f"{random.randint(0, 9999):04d}"
    return f"VS{timestamp[-8:]}{suffix}"


def generate_license_key() -> str:
    """Return a license key made of 5 dash-separated groups of 5 characters."""
    return "-".join("".join(random.choices(_LICENSE_ALPHABET, k=5)) for _ in range(5))
