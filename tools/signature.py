import hashlib
import hmac
import time
from typing import Dict, Optional
from loguru import logger

SIGNATURE_HEADER = "calendly-webhook-signature"


def parse_signature_header(header: Optional[str]) -> Optional[Dict[str, str]]:
    """Split `t=<timestamp>,v1=<hex>` into its parts; None when malformed."""
    if not header:
        return None
    parts = {}
    for item in header.split(","):
        key, sep, value = item.strip().partition("=")
        if sep:
            parts[key.strip()] = value.strip()
    if not parts.get("t") or not parts.get("v1"):
        return None
    return parts


def compute_signature(raw_body: bytes, timestamp: str, signing_key: str) -> str:
    message = f"{timestamp}.".encode("utf-8") + raw_body
    return hmac.new(signing_key.encode("utf-8"), message, hashlib.sha256).hexdigest()


def sign_payload(raw_body: bytes, signing_key: str, timestamp: Optional[int] = None) -> str:
    """Build a signature header for `raw_body` (tests and local tooling)."""
    ts = str(int(time.time()) if timestamp is None else timestamp)
    return f"t={ts},v1={compute_signature(raw_body, ts, signing_key)}"


def verify_signature(raw_body: bytes, header: Optional[str], signing_key: str, tolerance: int = 0) -> bool:
    """
    Check a Calendly webhook signature against the raw request body.

    Never raises: a missing key, a missing or malformed header, a stale
    timestamp (only when `tolerance` > 0) or a mismatch all return False.
    """
    if not signing_key:
        logger.warning("Webhook signing key not configured")
        return False

    parts = parse_signature_header(header)
    if parts is None:
        logger.warning("Missing or malformed webhook signature header")
        return False

    timestamp = parts["t"]
    if tolerance > 0:
        try:
            age = abs(time.time() - int(timestamp))
        except ValueError:
            logger.warning(f"Non-numeric signature timestamp: {timestamp!r}")
            return False
        if age > tolerance:
            logger.warning(f"Signature timestamp outside tolerance: {age:.0f}s > {tolerance}s")
            return False

    expected = compute_signature(raw_body, timestamp, signing_key)
    if not hmac.compare_digest(expected.encode("utf-8"), parts["v1"].encode("utf-8")):
        logger.warning("Webhook signature mismatch")
        return False
    return True
