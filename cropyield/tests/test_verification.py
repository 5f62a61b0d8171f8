import base64
import hashlib
import hmac
import json
import time
import unittest

from cropyield.errors import (
    ConfigurationError,
    InvalidPayload,
    InvalidSecret,
    InvalidSignature,
    MissingHeaders,
    MissingSecret,
    ValidationError,
    VerificationError,
)
from cropyield.events import UnhandledEvent, UserCreatedEvent
from cropyield.verification import WebhookVerifier, sign

SECRET = "whsec_dGVzdC1zaWduaW5nLWtleQ=="
KEY = b"test-signing-key"


def _sign(body: bytes, msg_id: str, timestamp: int, key: bytes = KEY) -> str:
    """Compute a valid svix-signature header value."""
    signed = f"{msg_id}.{timestamp}.".encode() + body
    digest = hmac.new(key, signed, hashlib.sha256).digest()
    return "v1," + base64.b64encode(digest).decode()


def _headers(body: bytes, timestamp: int | None = None, msg_id: str = "msg_1") -> dict:
    ts = timestamp if timestamp is not None else int(time.time())
    return {
        "svix-id": msg_id,
        "svix-timestamp": str(ts),
        "svix-signature": _sign(body, msg_id, ts),
    }


class WebhookVerifierTests(unittest.TestCase):
    def setUp(self):
        self.verifier = WebhookVerifier(SECRET)
        self.body = json.dumps(
            {"type": "session.created", "data": {"id": "sess_1"}}
        ).encode()

    def test_valid_signature(self):
        event = self.verifier.verify(self.body, _headers(self.body))
        self.assertIsInstance(event, UnhandledEvent)
        self.assertEqual(event.type, "session.created")
        self.assertEqual(event.data, {"id": "sess_1"})

    def test_user_created_is_typed(self):
        body = json.dumps(
            {
                "type": "user.created",
                "data": {
                    "id": "user_1",
                    "email_addresses": [{"email_address": "a@b.com"}],
                },
            }
        ).encode()
        event = self.verifier.verify(body, _headers(body))
        self.assertIsInstance(event, UserCreatedEvent)
        self.assertEqual(event.data.id, "user_1")

    def test_single_byte_change_rejected(self):
        headers = _headers(self.body)
        tampered = bytearray(self.body)
        tampered[-2] ^= 0x01
        with self.assertRaises(InvalidSignature):
            self.verifier.verify(bytes(tampered), headers)

    def test_wrong_secret_rejected(self):
        other = WebhookVerifier("whsec_" + base64.b64encode(b"other-key").decode())
        with self.assertRaises(InvalidSignature):
            other.verify(self.body, _headers(self.body))

    def test_tampered_id_rejected(self):
        headers = _headers(self.body)
        headers["svix-id"] = "msg_2"
        with self.assertRaises(InvalidSignature):
            self.verifier.verify(self.body, headers)

    def test_missing_any_header_rejected(self):
        for name in ("svix-id", "svix-timestamp", "svix-signature"):
            with self.subTest(header=name):
                headers = _headers(self.body)
                del headers[name]
                with self.assertRaises(MissingHeaders) as ctx:
                    self.verifier.verify(self.body, headers)
                self.assertEqual(ctx.exception.missing, [name])

    def test_missing_header_wins_over_bad_signature(self):
        headers = {"svix-id": "msg_1", "svix-signature": "v1,garbage"}
        with self.assertRaises(MissingHeaders):
            self.verifier.verify(b"not json", headers)

    def test_empty_header_counts_as_missing(self):
        headers = _headers(self.body)
        headers["svix-signature"] = ""
        with self.assertRaises(MissingHeaders):
            self.verifier.verify(self.body, headers)

    def test_missing_secret(self):
        for secret in (None, ""):
            with self.subTest(secret=secret):
                verifier = WebhookVerifier(secret)
                with self.assertRaises(MissingSecret):
                    verifier.verify(self.body, _headers(self.body))

    def test_malformed_secret_is_a_configuration_error(self):
        for secret in ("whsec_not base64!", "whsec_", "plain-text-secret"):
            with self.subTest(secret=secret):
                verifier = WebhookVerifier(secret)
                with self.assertRaises(InvalidSecret) as ctx:
                    verifier.verify(self.body, {})
                self.assertIsInstance(ctx.exception, ConfigurationError)

    def test_error_taxonomy(self):
        self.assertTrue(issubclass(MissingSecret, ConfigurationError))
        self.assertTrue(issubclass(MissingSecret, VerificationError))
        self.assertTrue(issubclass(MissingHeaders, ValidationError))
        self.assertTrue(issubclass(MissingHeaders, VerificationError))
        self.assertTrue(issubclass(InvalidSignature, VerificationError))
        self.assertTrue(issubclass(InvalidSecret, ConfigurationError))
        self.assertTrue(issubclass(InvalidSecret, VerificationError))

    def test_expired_timestamp_rejected(self):
        old_ts = int(time.time()) - 600
        with self.assertRaises(InvalidSignature):
            self.verifier.verify(self.body, _headers(self.body, timestamp=old_ts))

    def test_future_timestamp_rejected(self):
        future_ts = int(time.time()) + 600
        with self.assertRaises(InvalidSignature):
            self.verifier.verify(self.body, _headers(self.body, timestamp=future_ts))

    def test_tolerance_is_configurable(self):
        verifier = WebhookVerifier(SECRET, tolerance_seconds=3600)
        old_ts = int(time.time()) - 600
        event = verifier.verify(self.body, _headers(self.body, timestamp=old_ts))
        self.assertEqual(event.type, "session.created")

    def test_non_integer_timestamp_rejected(self):
        headers = _headers(self.body)
        headers["svix-timestamp"] = "yesterday"
        with self.assertRaises(InvalidSignature):
            self.verifier.verify(self.body, headers)

    def test_rotated_signatures(self):
        """Svix may send several signatures; any v1 match is enough."""
        headers = _headers(self.body)
        headers["svix-signature"] = "v1,bm9wZQ== " + headers["svix-signature"]
        event = self.verifier.verify(self.body, headers)
        self.assertEqual(event.type, "session.created")

    def test_other_signature_versions_ignored(self):
        headers = _headers(self.body)
        valid = headers["svix-signature"].split(",", 1)[1]
        headers["svix-signature"] = "v2," + valid
        with self.assertRaises(InvalidSignature):
            self.verifier.verify(self.body, headers)

    def test_non_json_body_with_valid_signature(self):
        body = b"definitely not json"
        with self.assertRaises(InvalidPayload):
            self.verifier.verify(body, _headers(body))

    def test_body_without_type_rejected(self):
        body = json.dumps({"data": {}}).encode()
        with self.assertRaises(InvalidPayload):
            self.verifier.verify(body, _headers(body))

    def test_secret_without_prefix(self):
        verifier = WebhookVerifier(base64.b64encode(KEY).decode())
        event = verifier.verify(self.body, _headers(self.body))
        self.assertEqual(event.type, "session.created")

    def test_sign_helper_matches(self):
        ts = int(time.time())
        self.assertEqual(sign(SECRET, "msg_9", ts, self.body), _sign(self.body, "msg_9", ts))


if __name__ == "__main__":
    unittest.main()
