import base64
import hashlib
import hmac
import time
from typing import Mapping

from app.core.exceptions import AuthDenied

WEBHOOK_TOLERANCE_SECONDS = 5 * 60


def _webhook_key(secret: str) -> bytes:
    if secret.startswith("whsec_"):
        secret = secret[len("whsec_"):]
    return base64.b64decode(secret)


def sign_clerk_webhook(payload: bytes, msg_id: str, timestamp: str, secret: str) -> str:
    """Svix v1 signature: base64 HMAC-SHA256 of "{id}.{timestamp}.{body}"."""
    signed = msg_id.encode("utf-8") + b"." + timestamp.encode("utf-8") + b"." + payload
    digest = hmac.new(_webhook_key(secret), signed, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_clerk_webhook(
    payload: bytes,
    headers: Mapping[str, str],
    secret: str,
    now: float | None = None,
) -> None:
    """Raise AuthDenied unless the Svix headers carry a fresh, valid signature."""
    if not secret:
        raise AuthDenied("Webhook secret is not configured")
    msg_id = headers.get("svix-id")
    timestamp = headers.get("svix-timestamp")
    signatures = headers.get("svix-signature")
    if not msg_id or not timestamp or not signatures:
        raise AuthDenied("Missing webhook signature headers")
    try:
        sent_at = int(timestamp)
    except ValueError:
        raise AuthDenied("Invalid webhook timestamp") from None
    now = time.time() if now is None else now
    if abs(now - sent_at) > WEBHOOK_TOLERANCE_SECONDS:
        raise AuthDenied("Webhook timestamp outside tolerance")
    expected = sign_clerk_webhook(payload, msg_id, timestamp, secret)
    for entry in signatures.split():
        version, _, sig = entry.partition(",")
        if version == "v1" and hmac.compare_digest(expected, sig):
            return
    raise AuthDenied("Invalid webhook signature")
