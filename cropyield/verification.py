"""Webhook signature verification for Clerk events (Svix signing scheme).

Security contract:
- Signed content is "{svix-id}.{svix-timestamp}.{raw body}", HMAC-SHA256, base64
- All comparisons use hmac.compare_digest() (constant-time)
- Missing secret -> MissingSecret, never a silent pass (fail-closed)
- Timestamps outside the tolerance window are rejected to prevent replay
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import logging
import time
from typing import Mapping, Optional

from cropyield.errors import (
    InvalidPayload,
    InvalidSecret,
    InvalidSignature,
    MissingHeaders,
    MissingSecret,
)
from cropyield.events import WebhookEvent, parse_event

logger = logging.getLogger(__name__)

SVIX_ID_HEADER = "svix-id"
SVIX_TIMESTAMP_HEADER = "svix-timestamp"
SVIX_SIGNATURE_HEADER = "svix-signature"
REQUIRED_HEADERS = (SVIX_ID_HEADER, SVIX_TIMESTAMP_HEADER, SVIX_SIGNATURE_HEADER)

_SECRET_PREFIX = "whsec_"
_SIGNATURE_VERSION = "v1"

# Default timestamp tolerance (seconds), both directions
DEFAULT_TOLERANCE_SECONDS = 300


def _decode_secret(secret: str) -> bytes:
    if secret.startswith(_SECRET_PREFIX):
        secret = secret[len(_SECRET_PREFIX):]
    try:
        key = base64.b64decode(secret, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidSecret("Webhook secret is not valid base64") from exc
    if not key:
        raise InvalidSecret("Webhook secret decodes to an empty key")
    return key


def sign(secret: str, msg_id: str, timestamp: int | str, body: bytes) -> str:
    """Compute the "v1,<signature>" entry for a message.

    Used by the verifier and handy for tests and local tooling that need to
    produce deliveries the endpoint will accept.
    """
    signed_content = f"{msg_id}.{timestamp}.".encode("utf-8") + body
    digest = hmac.new(_decode_secret(secret), signed_content, hashlib.sha256).digest()
    return f"{_SIGNATURE_VERSION},{base64.b64encode(digest).decode('utf-8')}"


class WebhookVerifier:
    """Verify inbound webhooks against a shared secret.

    The secret is injected at construction so the verifier can be exercised
    without touching the process environment.
    """

    def __init__(
        self,
        secret: Optional[str],
        tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS,
    ):
        self.secret = secret
        self.tolerance_seconds = tolerance_seconds

    def verify(self, body: bytes, headers: Mapping[str, Optional[str]]) -> WebhookEvent:
        """Return the typed event if the delivery is authentic.

        Args:
            body: Raw request body, exactly as received
            headers: Request headers (lowercase keys)

        Raises:
            MissingSecret: no secret configured
            InvalidSecret: the configured secret is not a base64 key
            MissingHeaders: svix-id, svix-timestamp or svix-signature absent
            InvalidSignature: bad signature, malformed or stale timestamp
            InvalidPayload: authentic body that is not a well-formed event
        """
        if not self.secret:
            logger.warning("CLERK_WEBHOOK_SECRET not set; rejecting webhook")
            raise MissingSecret()
        _decode_secret(self.secret)

        missing = [name for name in REQUIRED_HEADERS if not headers.get(name)]
        if missing:
            raise MissingHeaders(missing)

        msg_id = headers[SVIX_ID_HEADER]
        timestamp_str = headers[SVIX_TIMESTAMP_HEADER]
        signature_header = headers[SVIX_SIGNATURE_HEADER]

        try:
            timestamp = int(timestamp_str)
        except (ValueError, TypeError):
            raise InvalidSignature(f"Invalid timestamp header: {timestamp_str!r}")

        # Replay protection
        now = time.time()
        if timestamp < now - self.tolerance_seconds:
            raise InvalidSignature("Message timestamp too old")
        if timestamp > now + self.tolerance_seconds:
            raise InvalidSignature("Message timestamp too new")

        expected = sign(self.secret, msg_id, timestamp, body).split(",", 1)[1]

        # Header: space-separated "version,signature" entries (key rotation)
        candidates = []
        for entry in signature_header.split(" "):
            version, _, value = entry.partition(",")
            if version == _SIGNATURE_VERSION and value:
                candidates.append(value)
        expected_bytes = expected.encode("utf-8")
        if not any(
            hmac.compare_digest(expected_bytes, value.encode("utf-8"))
            for value in candidates
        ):
            raise InvalidSignature("No matching signature found")

        try:
            payload = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise InvalidPayload("Webhook body is not valid JSON") from exc
        return parse_event(payload)
