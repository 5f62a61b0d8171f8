"""
Typed models for the Clerk webhook envelope ``{"type": ..., "data": {...}}``.

Only ``user.created`` has its fields declared. Every other event type parses
into ``UnhandledEvent`` and is acknowledged without side effects.
"""

from __future__ import annotations

from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from cropyield.errors import InvalidPayload

USER_CREATED = "user.created"


class EmailAddress(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    email_address: str


class PhoneNumber(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    phone_number: str


class UserCreatedData(BaseModel):
    """The subset of a Clerk user object the synchronizer needs."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1)
    email_addresses: list[EmailAddress] = Field(default_factory=list)
    primary_email_address_id: Optional[str] = None
    phone_numbers: list[PhoneNumber] = Field(default_factory=list)
    primary_phone_number_id: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    username: Optional[str] = None
    image_url: Optional[str] = None

    @property
    def email(self) -> str:
        for address in self.email_addresses:
            if address.id and address.id == self.primary_email_address_id:
                return address.email_address
        if self.email_addresses:
            return self.email_addresses[0].email_address
        return ""

    @property
    def phone(self) -> str:
        for number in self.phone_numbers:
            if number.id and number.id == self.primary_phone_number_id:
                return number.phone_number
        if self.phone_numbers:
            return self.phone_numbers[0].phone_number
        return ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()


class UserCreatedEvent(BaseModel):
    type: Literal["user.created"]
    data: UserCreatedData


class UnhandledEvent(BaseModel):
    type: str
    data: Any = None


WebhookEvent = Union[UserCreatedEvent, UnhandledEvent]


def parse_event(payload: Any) -> WebhookEvent:
    """Parse a decoded webhook body into its event variant.

    Raises:
        InvalidPayload: the envelope has no string ``type``, or a
            ``user.created`` event is missing required user fields
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("type"), str):
        raise InvalidPayload("Webhook body is not an event envelope")

    if payload["type"] == USER_CREATED:
        try:
            return UserCreatedEvent.model_validate(payload)
        except PydanticValidationError as exc:
            raise InvalidPayload(f"Malformed {USER_CREATED} event") from exc

    return UnhandledEvent(type=payload["type"], data=payload.get("data"))
