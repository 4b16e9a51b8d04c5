"""Runtime settings for the Ordering domain, read from the environment."""

import os

ENVIRONMENT = (os.getenv("ENVIRONMENT") or os.getenv("PROTEAN_ENV") or "development").lower()

CURRENCY = os.getenv("CURRENCY", "NGN")
TAX_RATE = float(os.getenv("TAX_RATE", "0"))

FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")

# Collaborator adapters
PAYMENT_GATEWAY = os.getenv("PAYMENT_GATEWAY", "fake")
PAYMENT_GATEWAY_URL = os.getenv("PAYMENT_GATEWAY_URL", "https://api.paystack.co")
PAYMENT_GATEWAY_SECRET = os.getenv("PAYMENT_GATEWAY_SECRET", "")

CARRIER_ADAPTER = os.getenv("CARRIER_ADAPTER", "fake")
CARRIER_API_URL = os.getenv("CARRIER_API_URL", "https://api.shipbubble.com/v1")
CARRIER_API_KEY = os.getenv("CARRIER_API_KEY", "")
CARRIER_TIMEOUT_SECONDS = float(os.getenv("CARRIER_TIMEOUT_SECONDS", "30"))
CARRIER_CATEGORY_ID = int(os.getenv("CARRIER_CATEGORY_ID", "77179563"))

ADDRESS_CACHE_MAX_SIZE = int(os.getenv("ADDRESS_CACHE_MAX_SIZE", "1024"))
ADDRESS_CACHE_TTL_SECONDS = float(os.getenv("ADDRESS_CACHE_TTL_SECONDS", "86400"))

# Wallet limits (major currency units)
MIN_TOP_UP_AMOUNT = float(os.getenv("MIN_TOP_UP_AMOUNT", "100"))
MIN_WITHDRAWAL_AMOUNT = float(os.getenv("MIN_WITHDRAWAL_AMOUNT", "1000"))

LICENSE_TERM_DAYS = int(os.getenv("LICENSE_TERM_DAYS", "365"))
