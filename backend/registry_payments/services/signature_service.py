"""
Signature Service for Gateway Webhooks

Implements HMAC-SHA256 signing and verification of raw webhook bodies.
The signature is the hex digest of HMAC-SHA256(shared_secret, raw_body),
sent by the gateway in the X-Gateway-Signature header.
"""
import hmac
import hashlib
import logging
from typing import Optional, Union

logger = logging.getLogger(__name__)


def _as_bytes(raw_body: Union[bytes, str]) -> bytes:
    if isinstance(raw_body, str):
        return raw_body.encode('utf-8')
    return raw_body


def sign_webhook_payload(raw_body: Union[bytes, str], shared_secret: str) -> str:
    """
    Sign a raw webhook body using HMAC-SHA256.

    Args:
        raw_body: Exact bytes of the request body
        shared_secret: Secret shared with the gateway

    Returns:
        Hexadecimal HMAC digest
    """
    return hmac.new(
        shared_secret.encode('utf-8'),
        _as_bytes(raw_body),
        hashlib.sha256
    ).hexdigest()


def verify_webhook_signature(
    raw_body: Union[bytes, str],
    provided_signature: Optional[str],
    shared_secret: Optional[str],
    source_ip: Optional[str] = None
) -> bool:
    """
    Verify a webhook signature using constant-time comparison.

    Args:
        raw_body: Exact bytes of the request body
        provided_signature: Value of the X-Gateway-Signature header
        shared_secret: Secret shared with the gateway
        source_ip: Caller address, logged on rejection

    Returns:
        True if signature valid, False otherwise (never raises)

    The payload itself is never logged: it may carry payer data.
    """
    if not shared_secret:
        logger.warning(f"Webhook rejected from {source_ip}: webhook secret not configured")
        return False

    if not provided_signature:
        logger.warning(f"Webhook rejected from {source_ip}: signature is empty")
        return False

    expected_signature = sign_webhook_payload(raw_body, shared_secret)

    # Constant-time comparison
    is_valid = hmac.compare_digest(
        expected_signature.encode('ascii'),
        provided_signature.strip().lower().encode('utf-8')
    )

    if not is_valid:
        logger.warning(f"Webhook rejected from {source_ip}: signature mismatch")

    return is_valid
