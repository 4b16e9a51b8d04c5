"""HTTP payment gateway adapter for a Paystack-style transaction API."""

import requests
import structlog

from ordering.gateway.port import GatewayError, PaymentGateway, PaymentInitialization, PaymentVerification

logger = structlog.get_logger(__name__)


class HttpGateway(PaymentGateway):
    def __init__(
        self,
        base_url: str,
        secret_key: str,
        timeout: float = 30,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.secret_key = secret_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def _request(self, method: str, path: str, payload: dict | None = None) -> dict:
        try:
            response = self.session.request(
                method,
                f"{self.base_url}{path}",
                json=payload,
                headers={"Authorization": f"Bearer {self.secret_key}"},
                timeout=self.timeout,
            )
            response.raise_for_status()
            body = response.json()
        except requests.RequestException as exc:
            logger.error("gateway_request_failed", method=method, path=path, error=str(exc))
            raise GatewayError(f"Payment gateway request to {path} failed: {exc}") from exc
        except ValueError as exc:
            raise GatewayError(f"Payment gateway returned a non-JSON response for {path}") from exc

        if not body.get("status"):
            raise GatewayError(body.get("message") or f"Payment gateway rejected request to {path}")
        return body.get("data") or {}

    def initialize(
        self,
        email: str,
        amount_minor_units: int,
        reference: str,
        callback_url: str,
        metadata: dict | None = None,
    ) -> PaymentInitialization:
        data = self._request(
            "POST",
            "/transaction/initialize",
            {
                "email": email,
                "amount": int(amount_minor_units),
                "reference": reference,
                "callback_url": callback_url,
                "metadata": metadata or {},
            },
        )
        if not data.get("authorization_url"):
            raise GatewayError("Payment gateway did not return an authorization URL")
        return PaymentInitialization(
            redirect_url=data["authorization_url"],
            access_code=data.get("access_code", ""),
            reference=data.get("reference", reference),
        )

    def verify(self, reference: str) -> PaymentVerification:
        data = self._request("GET", f"/transaction/verify/{reference}")
        return PaymentVerification(
            reference=data.get("reference", reference),
            status="success" if data.get("status") == "success" else "failed",
            amount_minor_units=int(data.get("amount") or 0),
            gateway_response=data.get("gateway_response"),
            metadata=data.get("metadata") or {},
        )
