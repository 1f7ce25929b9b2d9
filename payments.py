import hashlib
import hmac
import logging
import os
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)

RAZORPAY_API_URL = "https://api.razorpay.com/v1/orders"
MIN_AMOUNT_PAISE = 100


class PaymentGatewayError(Exception):
    def __init__(self, message: str, status_code: int = 502):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _keys():
    key_id = (os.getenv("RAZORPAY_KEY_ID") or "").strip()
    key_secret = (os.getenv("RAZORPAY_KEY_SECRET") or "").strip()
    return key_id, key_secret


def to_paise(amount: float) -> int:
    return int(round(amount * 100))


def create_razorpay_order(amount: float, receipt: Optional[str] = None) -> Dict[str, Any]:
    """Create a gateway order for ``amount`` rupees and return its id, amount and currency."""
    key_id, key_secret = _keys()
    if not key_id or not key_secret:
        raise PaymentGatewayError(
            "Payment gateway is not configured on the server. Set RAZORPAY_KEY_ID and RAZORPAY_KEY_SECRET.",
            status_code=503,
        )

    amount_paise = to_paise(amount)
    if amount_paise < MIN_AMOUNT_PAISE:
        raise PaymentGatewayError("The total amount must be at least ₹1.00 to proceed with payment.", status_code=400)

    try:
        r = requests.post(
            RAZORPAY_API_URL,
            auth=(key_id, key_secret),
            json={
                "amount": amount_paise,
                "currency": "INR",
                "receipt": receipt or "receipt_" + os.urandom(6).hex(),
            },
            timeout=15,
        )
    except requests.RequestException as e:
        logger.error("Razorpay order creation failed: %s", e)
        raise PaymentGatewayError("Could not reach the payment gateway. Please try again.") from e

    if r.status_code == 401:
        logger.error("Razorpay rejected the API keys: %s", r.text)
        raise PaymentGatewayError("Authentication with Razorpay failed. Check that the API keys are correct and match the account mode.")
    if r.status_code >= 300:
        logger.error("Razorpay order creation failed (%s): %s", r.status_code, r.text)
        try:
            description = r.json().get("error", {}).get("description") or "An unknown error occurred."
        except ValueError:
            description = "An unknown error occurred."
        raise PaymentGatewayError(f"Failed to create payment order. Gateway response: {description}")

    try:
        data = r.json()
    except ValueError as e:
        logger.error("Razorpay returned a non-JSON body: %s", r.text[:200])
        raise PaymentGatewayError("The payment gateway returned an unreadable response.") from e
    if not data.get("id") or data.get("amount") is None:
        logger.error("Razorpay order response is missing fields: %s", data)
        raise PaymentGatewayError("The payment gateway returned an incomplete order.")
    return {"id": data.get("id"), "amount": data.get("amount"), "currency": data.get("currency")}


def payment_signature(order_id: str, payment_id: str, secret: str) -> str:
    return hmac.new(
        bytes(secret, "utf-8"),
        msg=bytes(order_id + "|" + payment_id, "utf-8"),
        digestmod=hashlib.sha256,
    ).hexdigest()


def verify_razorpay_payment(order_id: str, payment_id: str, signature: str) -> bool:
    _, key_secret = _keys()
    if not key_secret:
        raise PaymentGatewayError("Payment verification is not configured on the server. The secret key is missing.", status_code=503)
    expected = payment_signature(order_id, payment_id, key_secret)
    return hmac.compare_digest(expected, signature or "")
