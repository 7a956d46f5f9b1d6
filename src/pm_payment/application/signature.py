"""Webhook authenticity checks.

Current deliveries carry `flutterwave-signature`:
base64(HMAC-SHA256(secret_hash, raw_body)). Older dashboards send
`verif-hash`, which is the secret hash itself.
"""

import base64
import hashlib
import hmac
from collections.abc import Mapping


def compute_signature(raw_body: bytes, secret_hash: str) -> str:
    digest = hmac.new(secret_hash.encode("utf-8"), raw_body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_webhook_signature(
    raw_body: bytes, headers: Mapping[str, str], secret_hash: str
) -> bool:
    if not secret_hash:
        return False
    signature = headers.get("flutterwave-signature")
    if signature:
        return hmac.compare_digest(compute_signature(raw_body, secret_hash), signature)
    legacy = headers.get("verif-hash")
    if legacy:
        return hmac.compare_digest(legacy, secret_hash)
    return False
