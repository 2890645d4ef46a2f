# Overview: HTTP client for the external payment gateway (request + verify).

"""
Payment Gateway Client

Zarinpal-style v4 JSON API:
- request: {merchant_id, amount, description, callback_url, metadata}
           -> data.code == 100, data.authority
- verify:  {merchant_id, amount, authority}
           -> data.code in (100, 101), data.ref_id, data.card_pan

Every call is bounded by PAYMENT_GATEWAY_TIMEOUT. Transport errors,
timeouts, non-2xx responses and gateway error codes all raise
PaymentGatewayError; callers treat the gateway as unavailable.
"""

from __future__ import annotations

import httpx
from flask import current_app

from ..errors import PaymentGatewayError


ENDPOINTS = {
    "sandbox": {
        "request": "https://sandbox.zarinpal.com/pg/v4/payment/request.json",
        "verify": "https://sandbox.zarinpal.com/pg/v4/payment/verify.json",
        "start_pay": "https://sandbox.zarinpal.com/pg/StartPay/",
    },
    "production": {
        "request": "https://payment.zarinpal.com/pg/v4/payment/request.json",
        "verify": "https://payment.zarinpal.com/pg/v4/payment/verify.json",
        "start_pay": "https://payment.zarinpal.com/pg/StartPay/",
    },
}

CODE_SUCCESS = 100
CODE_ALREADY_VERIFIED = 101


def _endpoints() -> dict:
    env = current_app.config.get("PAYMENT_GATEWAY_ENV", "sandbox")
    if env not in ENDPOINTS:
        raise PaymentGatewayError(f"Unknown payment gateway environment: {env}")
    return ENDPOINTS[env]


def _merchant_id() -> str:
    merchant_id = current_app.config.get("PAYMENT_MERCHANT_ID")
    if not merchant_id:
        raise PaymentGatewayError("PAYMENT_MERCHANT_ID is not configured")
    return merchant_id


def _post(url: str, body: dict, client: httpx.Client | None = None) -> dict:
    timeout = current_app.config.get("PAYMENT_GATEWAY_TIMEOUT", 10)
    owns_client = client is None
    if owns_client:
        client = httpx.Client(timeout=timeout)
    try:
        response = client.post(url, json=body, headers={"Accept": "application/json"})
        response.raise_for_status()
        return response.json()
    except httpx.TimeoutException as exc:
        current_app.logger.warning("Payment gateway timed out: %s", url)
        raise PaymentGatewayError("Payment gateway timed out") from exc
    except httpx.HTTPStatusError as exc:
        current_app.logger.warning("Payment gateway returned %s: %s", exc.response.status_code, url)
        raise PaymentGatewayError(f"Payment gateway returned HTTP {exc.response.status_code}") from exc
    except httpx.HTTPError as exc:
        current_app.logger.warning("Payment gateway unreachable: %s (%s)", url, exc)
        raise PaymentGatewayError("Payment gateway unreachable") from exc
    except ValueError as exc:
        raise PaymentGatewayError("Payment gateway returned invalid JSON") from exc
    finally:
        if owns_client:
            client.close()


def _data(payload: dict) -> dict:
    data = payload.get("data")
    # The gateway returns an empty list for data on errors
    if not isinstance(data, dict):
        errors = payload.get("errors") or {}
        message = errors.get("message") if isinstance(errors, dict) else None
        code = errors.get("code") if isinstance(errors, dict) else None
        raise PaymentGatewayError(f"Payment gateway error {code}: {message or 'unknown error'}")
    return data


def request_payment(
    amount: int,
    description: str,
    callback_url: str,
    metadata: dict | None = None,
    client: httpx.Client | None = None,
) -> tuple[str, str]:
    """Open a payment. Returns (authority, redirect_url)."""
    if amount <= 0:
        raise PaymentGatewayError("Payment amount must be positive")

    endpoints = _endpoints()
    body = {
        "merchant_id": _merchant_id(),
        "amount": amount,
        "description": description,
        "callback_url": callback_url,
    }
    if metadata:
        body["metadata"] = {k: v for k, v in metadata.items() if v is not None}

    data = _data(_post(endpoints["request"], body, client))
    if data.get("code") != CODE_SUCCESS or not data.get("authority"):
        raise PaymentGatewayError(f"Payment request rejected with code {data.get('code')}")

    authority = data["authority"]
    return authority, f"{endpoints['start_pay']}{authority}"


def verify_payment(
    authority: str,
    amount: int,
    client: httpx.Client | None = None,
) -> tuple[str, str | None]:
    """Confirm a payment with the gateway. Returns (ref_id, card_pan)."""
    body = {
        "merchant_id": _merchant_id(),
        "amount": amount,
        "authority": authority,
    }

    data = _data(_post(_endpoints()["verify"], body, client))
    if data.get("code") not in (CODE_SUCCESS, CODE_ALREADY_VERIFIED):
        raise PaymentGatewayError(f"Payment verification failed with code {data.get('code')}")

    return str(data.get("ref_id")), data.get("card_pan")
