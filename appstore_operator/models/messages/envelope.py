"""Message bus envelope and payload models.

Wire format: a JSON envelope ``{type, id, timestamp, source, payload}``
whose payload shape depends on ``type``. Field names are camelCase on the
wire.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from appstore_operator.constants.enums import MessageType


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    def to_wire(self) -> dict[str, Any]:
        """Dump with camelCase keys, dropping unset optionals."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class DeploymentRequestPayload(_WireModel):
    """Request to deploy a catalog application."""

    request_id: str = ""
    team_id: str = Field(min_length=1)
    user_id: str = ""
    app_name: str = Field(min_length=1)
    namespace: str = Field(min_length=1)
    release_name: str | None = None
    version: str | None = None
    values: dict[str, Any] | None = None


class DeploymentUpdatePayload(_WireModel):
    """Request to change version and/or values of an existing deployment."""

    request_id: str = ""
    team_id: str = Field(min_length=1)
    user_id: str = ""
    name: str = Field(min_length=1)
    namespace: str = Field(min_length=1)
    version: str | None = None
    values: dict[str, Any] | None = None


class DeploymentDeletePayload(_WireModel):
    """Request to remove a deployment."""

    request_id: str = ""
    team_id: str = Field(min_length=1)
    user_id: str = ""
    name: str = Field(min_length=1)
    namespace: str = Field(min_length=1)


class StatusUpdatePayload(_WireModel):
    """Operator-to-caller notification of a record's observed state."""

    name: str
    namespace: str
    phase: str
    message: str | None = None
    helm_release_name: str | None = None
    helm_release_revision: int | None = None
    deployed_chart_version: str | None = None
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class MessageEnvelope(BaseModel):
    """Envelope shared by every message on the bus.

    ``type`` stays a plain string so an unknown discriminator can be told
    apart from a malformed body.
    """

    type: str
    id: str = ""
    timestamp: datetime | None = None
    source: str = ""
    payload: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def wrap(
        cls,
        message_type: MessageType,
        message_id: str,
        source: str,
        payload: _WireModel,
    ) -> MessageEnvelope:
        """Build an envelope around a typed payload, stamped with the current time."""
        return cls(
            type=message_type.value,
            id=message_id,
            timestamp=datetime.now(timezone.utc),
            source=source,
            payload=payload.to_wire(),
        )

    def message_type(self) -> MessageType | None:
        """Return the known message type, or None for an unrecognized one."""
        try:
            return MessageType(self.type)
        except ValueError:
            return None

    def to_json(self) -> bytes:
        return self.model_dump_json(exclude_none=True).encode("utf-8")
