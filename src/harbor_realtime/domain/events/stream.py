"""Tenant stream events.

Every event on the wire is ``{"type": <tag>, "data": {...}}`` with camelCase
payload keys. Known tags parse into one frozen model per variant; unknown tags
parse into :class:`UnknownEvent` so newer producers never break older consumers.
"""
from __future__ import annotations

import json
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from harbor_realtime.domain.value_objects.enums import EventType


class EventParseError(ValueError):
    """A payload claimed a known event type but did not match its shape."""


class _Payload(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )


class MessageNewData(_Payload):
    message_id: int
    tenant_id: str | None = None
    sender_email: str
    sender_name: str | None = None
    recipients: list[str] = Field(default_factory=list)
    subject: str = ""
    body: str = ""
    has_attachments: bool = False
    attachment_count: int = 0
    timestamp: str


class MessageReadData(_Payload):
    message_id: int
    tenant_id: str | None = None
    read_by: str
    read_at: str | None = None
    timestamp: str | None = None


class MessageDeleteData(_Payload):
    message_id: int
    tenant_id: str | None = None
    deleted_by: str | None = None
    timestamp: str | None = None


class MessageUpdateData(_Payload):
    message_id: int
    tenant_id: str | None = None
    updated_by: str | None = None
    changes: dict[str, Any] = Field(default_factory=dict)
    timestamp: str | None = None


class AttachmentAddedData(_Payload):
    message_id: int
    tenant_id: str | None = None
    attachment_id: int
    file_name: str = ""
    file_size: int | None = None
    content_type: str | None = None
    timestamp: str | None = None


class AttachmentRemovedData(_Payload):
    message_id: int
    tenant_id: str | None = None
    attachment_id: int
    file_name: str = ""
    timestamp: str | None = None


class LinkAddedData(_Payload):
    message_id: int
    tenant_id: str | None = None
    link_id: int
    url: str
    title: str | None = None
    domain: str | None = None
    timestamp: str | None = None


class LinkRemovedData(_Payload):
    message_id: int
    tenant_id: str | None = None
    link_id: int
    url: str = ""
    timestamp: str | None = None


class ConnectionEstablishedData(_Payload):
    tenant_id: str
    user_email: str
    timestamp: str


class UnreadUpdateData(_Payload):
    count: int = Field(ge=0)
    timestamp: str | None = None


class _Event(BaseModel):
    model_config = ConfigDict(frozen=True)


class MessageNew(_Event):
    type: Literal["message:new"] = "message:new"
    data: MessageNewData


class MessageRead(_Event):
    type: Literal["message:read"] = "message:read"
    data: MessageReadData


class MessageDelete(_Event):
    type: Literal["message:delete"] = "message:delete"
    data: MessageDeleteData


class MessageUpdate(_Event):
    type: Literal["message:update"] = "message:update"
    data: MessageUpdateData


class AttachmentAdded(_Event):
    type: Literal["message:attachment:added"] = "message:attachment:added"
    data: AttachmentAddedData


class AttachmentRemoved(_Event):
    type: Literal["message:attachment:removed"] = "message:attachment:removed"
    data: AttachmentRemovedData


class LinkAdded(_Event):
    type: Literal["message:link:added"] = "message:link:added"
    data: LinkAddedData


class LinkRemoved(_Event):
    type: Literal["message:link:removed"] = "message:link:removed"
    data: LinkRemovedData


class ConnectionEstablished(_Event):
    type: Literal["connection:established"] = "connection:established"
    data: ConnectionEstablishedData


class UnreadUpdate(_Event):
    type: Literal["unread:update"] = "unread:update"
    data: UnreadUpdateData


class UnknownEvent(_Event):
    """Forward-compatible placeholder for tags this build does not know."""

    type: str
    data: dict[str, Any] = Field(default_factory=dict)


Event = Annotated[
    Union[
        MessageNew,
        MessageRead,
        MessageDelete,
        MessageUpdate,
        AttachmentAdded,
        AttachmentRemoved,
        LinkAdded,
        LinkRemoved,
        ConnectionEstablished,
        UnreadUpdate,
    ],
    Field(discriminator="type"),
]

StreamEvent = Union[
    MessageNew,
    MessageRead,
    MessageDelete,
    MessageUpdate,
    AttachmentAdded,
    AttachmentRemoved,
    LinkAdded,
    LinkRemoved,
    ConnectionEstablished,
    UnreadUpdate,
    UnknownEvent,
]

_event_adapter: TypeAdapter[Any] = TypeAdapter(Event)
_KNOWN_TYPES = frozenset(t.value for t in EventType)


def parse_event(raw: str | bytes | dict[str, Any]) -> StreamEvent:
    """Parse a wire payload into its typed variant.

    Raises :class:`EventParseError` for undecodable JSON or a known tag with
    an invalid payload.
    """
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise EventParseError(f"invalid JSON: {exc}") from exc
    if not isinstance(raw, dict) or not isinstance(raw.get("type"), str):
        raise EventParseError("event must be an object with a string 'type'")

    if raw["type"] not in _KNOWN_TYPES:
        data = raw.get("data")
        return UnknownEvent(type=raw["type"], data=data if isinstance(data, dict) else {})

    try:
        return _event_adapter.validate_python(raw)
    except PydanticValidationError as exc:
        raise EventParseError(str(exc)) from exc


def dump_event(event: StreamEvent) -> str:
    """Serialize an event to its camelCase wire JSON."""
    return event.model_dump_json(by_alias=True)


def build_event(event_type: str, data: dict[str, Any]) -> StreamEvent:
    return parse_event({"type": event_type, "data": data})
