"""Turns deployment lifecycle messages into AppDeployment record mutations."""

from __future__ import annotations

import logging
from typing import Protocol

from pydantic import ValidationError

from appstore_operator.constants.defaults import (
    ANNOTATION_REQUESTED_BY,
    LABEL_APP,
    LABEL_REQUEST_ID,
    LABEL_TEAM,
)
from appstore_operator.constants.enums import MessageType
from appstore_operator.constants.limits import REQUEST_ID_PREFIX_LENGTH
from appstore_operator.constants.patterns import is_valid_release_name
from appstore_operator.controllers.store.deployment_store import RecordAlreadyExistsError
from appstore_operator.messaging.errors import (
    InvalidMessageError,
    OwnershipError,
    RetryableMessageError,
    UnknownMessageTypeError,
)
from appstore_operator.models.deployment import AppDeployment, AppDeploymentSpec, ObjectMeta
from appstore_operator.models.messages import (
    DeploymentDeletePayload,
    DeploymentRequestPayload,
    DeploymentUpdatePayload,
    MessageEnvelope,
)

logger = logging.getLogger(__name__)


class RecordWriter(Protocol):
    def get(self, namespace: str, name: str) -> AppDeployment | None: ...
    def create(self, record: AppDeployment) -> AppDeployment: ...
    def update(self, record: AppDeployment) -> AppDeployment: ...
    def delete(self, namespace: str, name: str) -> bool: ...


def deployment_name(payload: DeploymentRequestPayload, request_id: str) -> str:
    """Record name: the requested release name, else ``<app>-<request id prefix>``."""
    if payload.release_name:
        return payload.release_name
    return f"{payload.app_name}-{request_id[:REQUEST_ID_PREFIX_LENGTH]}"


class DeploymentHandler:
    """Dispatches decoded messages to the record store.

    Handlers are blocking; the consumer runs them in a worker thread.
    """

    def __init__(self, store: RecordWriter) -> None:
        self.store = store

    def handle(self, body: bytes) -> None:
        """Decode and handle one delivery body.

        Raises:
            PermanentMessageError: The message can never succeed.
            RetryableMessageError: The message may succeed on redelivery.
            StoreError: The record store failed (retryable).
        """
        try:
            envelope = MessageEnvelope.model_validate_json(body)
        except ValidationError as e:
            raise InvalidMessageError(f"unparseable envelope: {e.error_count()} error(s)") from e
        self.dispatch(envelope)

    def dispatch(self, envelope: MessageEnvelope) -> None:
        message_type = envelope.message_type()
        logger.debug("Handling %s message %s", envelope.type, envelope.id)
        try:
            if message_type == MessageType.DEPLOYMENT_REQUEST:
                self.handle_request(
                    DeploymentRequestPayload.model_validate(envelope.payload), envelope
                )
            elif message_type == MessageType.DEPLOYMENT_UPDATE:
                self.handle_update(DeploymentUpdatePayload.model_validate(envelope.payload))
            elif message_type == MessageType.DEPLOYMENT_DELETE:
                self.handle_delete(DeploymentDeletePayload.model_validate(envelope.payload))
            else:
                raise UnknownMessageTypeError(f"unsupported message type: {envelope.type!r}")
        except ValidationError as e:
            raise InvalidMessageError(
                f"invalid {envelope.type} payload in message {envelope.id}: {e}"
            ) from e

    # =========================================================================
    # Handlers
    # =========================================================================

    def handle_request(
        self, payload: DeploymentRequestPayload, envelope: MessageEnvelope
    ) -> None:
        """Create the record for a deployment request; an existing record is success."""
        request_id = payload.request_id or envelope.id
        name = deployment_name(payload, request_id)
        if not is_valid_release_name(name):
            raise InvalidMessageError(f"cannot derive a valid deployment name (got {name!r})")

        record = AppDeployment(
            metadata=ObjectMeta(
                name=name,
                namespace=payload.namespace,
                labels={
                    LABEL_TEAM: payload.team_id,
                    LABEL_APP: payload.app_name,
                    LABEL_REQUEST_ID: request_id,
                },
                annotations={ANNOTATION_REQUESTED_BY: payload.user_id},
            ),
            spec=AppDeploymentSpec(
                app_name=payload.app_name,
                chart_version=payload.version or "",
                team_id=payload.team_id,
                requested_by=payload.user_id,
                release_name=name,
                values=payload.values,
            ),
        )
        try:
            self.store.create(record)
        except RecordAlreadyExistsError:
            logger.info(
                "AppDeployment %s/%s already exists, treating request %s as delivered",
                payload.namespace,
                name,
                request_id,
            )
            return
        logger.info(
            "Created AppDeployment %s/%s for team %s (app %s)",
            payload.namespace,
            name,
            payload.team_id,
            payload.app_name,
        )

    def handle_update(self, payload: DeploymentUpdatePayload) -> None:
        """Apply a version and/or values change to an existing record."""
        record = self.store.get(payload.namespace, payload.name)
        if record is None:
            raise RetryableMessageError(
                f"AppDeployment {payload.namespace}/{payload.name} not found"
            )
        self._check_owner(record, payload.team_id)

        if payload.version:
            record.spec.chart_version = payload.version
        if payload.values is not None:
            record.spec.values = payload.values
        self.store.update(record)
        logger.info("Updated AppDeployment %s/%s", payload.namespace, payload.name)

    def handle_delete(self, payload: DeploymentDeletePayload) -> None:
        """Delete a record; an already-absent record is success."""
        record = self.store.get(payload.namespace, payload.name)
        if record is None:
            logger.info(
                "AppDeployment %s/%s already gone", payload.namespace, payload.name
            )
            return
        self._check_owner(record, payload.team_id)
        self.store.delete(payload.namespace, payload.name)

    @staticmethod
    def _check_owner(record: AppDeployment, team_id: str) -> None:
        # spec.teamId is authoritative; the team label is informational
        if record.spec.team_id != team_id:
            raise OwnershipError(
                f"team {team_id!r} does not own {record.namespace}/{record.name}"
            )
