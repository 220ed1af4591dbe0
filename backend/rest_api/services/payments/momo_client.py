"""
MoMo e-wallet gateway client.

Builds and signs create/query requests (HMAC-SHA256 over the gateway's
fixed field order), verifies IPN callback signatures and wraps every
outbound call in the ``momo_breaker`` circuit breaker.

Usage:
    client = MomoClient()
    created = await client.create_payment(Decimal("110000"), "Payment for session 7", {"sessionId": 7})
    ok = client.verify_callback_signature(callback_payload)
"""

import base64
import binascii
import hashlib
import hmac
import json
import math
import time
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

import httpx

from rest_api.services.payments.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerError,
    momo_breaker,
)
from shared.config.logging import mask_reference, payment_logger as logger
from shared.config.settings import Settings, settings as default_settings
from shared.utils.exceptions import ExternalServiceError

SERVICE_NAME = "MoMo"
CREATE_PATH = "/v2/gateway/api/create"
QUERY_PATH = "/v2/gateway/api/query"

RESULT_SUCCESS = 0

ERROR_MESSAGES: dict[int, str] = {
    0: "Success",
    9000: "Transaction confirmed",
    1000: "Transaction initiated",
    1001: "Transaction rejected by issuer",
    1002: "Transaction declined",
    1003: "Transaction cancelled",
    1004: "Transaction failed due to timeout",
    1005: "Transaction failed",
    1006: "User rejected transaction",
    1007: "Transaction is pending",
    2001: "Invalid parameters",
    2007: "Invalid signature",
    3001: "Transaction not found",
    3002: "Invalid amount",
    3003: "Payment exceeds limit",
    4001: "Invalid access key",
    4010: "Duplicate request ID",
    4011: "Duplicate order ID",
    4100: "Merchant account not found",
    7000: "System error",
    7002: "Payment gateway error",
}


def get_error_message(result_code: Any) -> str:
    """Human-readable text for a gateway result code."""
    try:
        code = int(result_code)
    except (TypeError, ValueError):
        return f"Unknown error (code: {result_code})"
    return ERROR_MESSAGES.get(code, f"Unknown error (code: {code})")


def normalize_amount(amount: Any) -> str:
    """Gateway amounts are whole VND; signing a float repr would break the signature."""
    try:
        value = Decimal(str(amount))
    except (ArithmeticError, ValueError):
        return "0"
    if not value.is_finite():
        return "0"
    return str(int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP)))


def encode_extra_data(data: dict[str, Any] | None) -> str:
    """Base64 JSON, or empty string when there is nothing to carry."""
    if not data:
        return ""
    raw = json.dumps(data, separators=(",", ":"))
    return base64.b64encode(raw.encode("utf-8")).decode("ascii")


def decode_extra_data(value: str | None) -> dict[str, Any]:
    """
    Inverse of encode_extra_data.

    Raises:
        ValueError: not base64 JSON describing an object.
    """
    if not value:
        return {}
    try:
        decoded = base64.b64decode(value, validate=True).decode("utf-8")
        data = json.loads(decoded or "{}")
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ValueError(f"Invalid extraData format: {e}") from e
    if not isinstance(data, dict):
        raise ValueError("Invalid extraData format: expected an object")
    return data


def _field(payload: dict[str, Any], name: str, default: str = "") -> str:
    value = payload.get(name)
    if value is None or value == "":
        return default
    return str(value)


class MomoClient:
    """Async client for the MoMo v2 gateway API."""

    def __init__(
        self,
        config: Settings | None = None,
        breaker: CircuitBreaker = momo_breaker,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._config = config or default_settings
        self._breaker = breaker
        self._transport = transport

    # =========================================================================
    # Signing
    # =========================================================================

    def _sign(self, raw: str) -> str:
        return hmac.new(
            self._config.momo_secret_key.encode("utf-8"),
            raw.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

    def build_create_signature(self, data: dict[str, Any]) -> str:
        raw = (
            f"accessKey={data['accessKey']}"
            f"&amount={data['amount']}"
            f"&extraData={data['extraData']}"
            f"&ipnUrl={data['ipnUrl']}"
            f"&orderId={data['orderId']}"
            f"&orderInfo={data['orderInfo']}"
            f"&partnerCode={data['partnerCode']}"
            f"&redirectUrl={data['redirectUrl']}"
            f"&requestId={data['requestId']}"
            f"&requestType={data['requestType']}"
        )
        return self._sign(raw)

    def build_callback_signature(self, payload: dict[str, Any]) -> str:
        """Expected signature of an IPN payload; extraData is signed as sent (still base64)."""
        raw = (
            f"accessKey={self._config.momo_access_key}"
            f"&amount={_field(payload, 'amount')}"
            f"&extraData={_field(payload, 'extraData')}"
            f"&message={_field(payload, 'message')}"
            f"&orderId={_field(payload, 'orderId')}"
            f"&orderInfo={_field(payload, 'orderInfo')}"
            f"&orderType={_field(payload, 'orderType', 'momo_wallet')}"
            f"&partnerCode={_field(payload, 'partnerCode')}"
            f"&payType={_field(payload, 'payType', 'qr')}"
            f"&requestId={_field(payload, 'requestId')}"
            f"&responseTime={_field(payload, 'responseTime')}"
            f"&resultCode={_field(payload, 'resultCode')}"
            f"&transId={_field(payload, 'transId')}"
        )
        return self._sign(raw)

    def verify_callback_signature(self, payload: dict[str, Any]) -> bool:
        signature = payload.get("signature")
        if not signature or not isinstance(signature, str):
            return False
        return hmac.compare_digest(self.build_callback_signature(payload), signature)

    def build_query_signature(self, order_id: str, request_id: str) -> str:
        raw = (
            f"accessKey={self._config.momo_access_key}"
            f"&orderId={order_id}"
            f"&partnerCode={self._config.momo_partner_code}"
            f"&requestId={request_id}"
        )
        return self._sign(raw)

    # =========================================================================
    # Transport
    # =========================================================================

    async def _post(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        url = f"{self._config.momo_endpoint.rstrip('/')}{path}"
        try:
            async with self._breaker.call():
                async with httpx.AsyncClient(
                    timeout=self._config.momo_timeout_seconds,
                    transport=self._transport,
                ) as client:
                    response = await client.post(url, json=body)
                    response.raise_for_status()
                    return response.json()
        except CircuitBreakerError as e:
            raise ExternalServiceError(
                SERVICE_NAME,
                is_unavailable=True,
                retry_after=max(1, math.ceil(e.retry_after)),
            )
        except httpx.TimeoutException:
            raise ExternalServiceError(SERVICE_NAME, "request timed out", path=path)
        except httpx.HTTPStatusError as e:
            raise ExternalServiceError(
                SERVICE_NAME,
                f"HTTP {e.response.status_code}",
                path=path,
            )
        except (httpx.HTTPError, ValueError) as e:
            raise ExternalServiceError(SERVICE_NAME, str(e) or type(e).__name__, path=path)

    # =========================================================================
    # Operations
    # =========================================================================

    async def create_payment(
        self,
        amount: Any,
        order_info: str,
        extra_data: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Create a captureWallet payment.

        Returns ``{pay_url, deeplink, qr_code_url, request_id, order_id,
        result_code, message}``.

        Raises:
            ExternalServiceError: transport failure, open circuit or non-zero resultCode.
        """
        stamp = int(time.time() * 1000)
        request_id = f"MOMO_{stamp}"
        order_id = f"ORDER_{stamp}"

        body: dict[str, Any] = {
            "partnerCode": self._config.momo_partner_code,
            "accessKey": self._config.momo_access_key,
            "requestId": request_id,
            "amount": normalize_amount(amount),
            "orderId": order_id,
            "orderInfo": order_info,
            "redirectUrl": self._config.momo_redirect_url,
            "ipnUrl": self._config.momo_ipn_url,
            "extraData": encode_extra_data(extra_data),
            "requestType": self._config.momo_request_type,
            "lang": self._config.momo_lang,
        }
        body["signature"] = self.build_create_signature(body)

        logger.info(
            "Creating MoMo payment",
            request_id=request_id,
            order_id=order_id,
            amount=body["amount"],
        )
        data = await self._post(CREATE_PATH, body)

        result_code = data.get("resultCode")
        if result_code != RESULT_SUCCESS:
            raise ExternalServiceError(
                SERVICE_NAME,
                get_error_message(result_code),
                result_code=result_code,
                request_id=request_id,
            )

        return {
            "pay_url": data.get("payUrl"),
            "deeplink": data.get("deeplink"),
            "qr_code_url": data.get("qrCodeUrl"),
            "request_id": request_id,
            "order_id": order_id,
            "result_code": result_code,
            "message": data.get("message"),
        }

    async def query_payment_status(self, order_id: str, request_id: str) -> dict[str, Any]:
        """Ask the gateway for the current state of a payment. Returns the raw response."""
        body = {
            "partnerCode": self._config.momo_partner_code,
            "accessKey": self._config.momo_access_key,
            "requestId": request_id,
            "orderId": order_id,
            "lang": self._config.momo_lang,
            "signature": self.build_query_signature(order_id, request_id),
        }
        data = await self._post(QUERY_PATH, body)
        logger.info(
            "MoMo status queried",
            order_id=order_id,
            result_code=data.get("resultCode"),
            trans_id=mask_reference(str(data.get("transId") or "")),
        )
        return data


_client: MomoClient | None = None


def get_momo_client() -> MomoClient:
    """FastAPI dependency returning the process-wide gateway client."""
    global _client
    if _client is None:
        _client = MomoClient()
    return _client
