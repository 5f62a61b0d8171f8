"""
Exception hierarchy shared by the webhook flow and the record stores.
"""

from __future__ import annotations


class ConfigurationError(Exception):
    """Required configuration is missing or unusable."""


class ValidationError(Exception):
    """An inbound request is missing required transport data."""


class VerificationError(Exception):
    """An inbound webhook could not be authenticated."""


class MissingSecret(VerificationError, ConfigurationError):
    def __init__(self, message: str = "Missing CLERK_WEBHOOK_SECRET"):
        super().__init__(message)


class InvalidSecret(VerificationError, ConfigurationError):
    """The configured secret is not a base64 signing key."""


class MissingHeaders(VerificationError, ValidationError):
    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__(f"Missing required headers: {', '.join(missing)}")


class InvalidSignature(VerificationError):
    pass


class InvalidPayload(InvalidSignature):
    """Signature checked out but the body is not a usable event."""


class DownstreamError(Exception):
    """The store mutation behind a webhook event failed."""


class StoreError(Exception):
    """Base class for record store failures."""


class RecordNotFoundError(StoreError):
    def __init__(self, table: str, record_id: str):
        self.table = table
        self.record_id = record_id
        super().__init__(f"No record {record_id!r} in {table}")


class DuplicateRecordError(StoreError):
    def __init__(self, table: str, field: str, value: str):
        self.table = table
        self.field = field
        self.value = value
        super().__init__(f"{table}.{field} already holds {value!r}")
