"""AMQP publisher for deployment requests and status updates."""

from __future__ import annotations

import logging
import uuid

import aio_pika
from aio_pika.abc import AbstractExchange, AbstractRobustConnection

from appstore_operator.constants.defaults import (
    AMQP_URL_DEFAULT,
    EXCHANGE_DEFAULT,
    MESSAGE_SOURCE_DEFAULT,
    ROUTING_KEY_DEPLOYMENT_DELETE,
    ROUTING_KEY_DEPLOYMENT_REQUEST,
    ROUTING_KEY_DEPLOYMENT_UPDATE,
    ROUTING_KEY_STATUS_UPDATE,
)
from appstore_operator.constants.enums import MessageType
from appstore_operator.models.deployment import AppDeployment, utcnow
from appstore_operator.models.messages import (
    DeploymentDeletePayload,
    DeploymentRequestPayload,
    DeploymentUpdatePayload,
    MessageEnvelope,
    StatusUpdatePayload,
)

logger = logging.getLogger(__name__)

ROUTING_KEYS: dict[MessageType, str] = {
    MessageType.DEPLOYMENT_REQUEST: ROUTING_KEY_DEPLOYMENT_REQUEST,
    MessageType.DEPLOYMENT_UPDATE: ROUTING_KEY_DEPLOYMENT_UPDATE,
    MessageType.DEPLOYMENT_DELETE: ROUTING_KEY_DEPLOYMENT_DELETE,
    MessageType.STATUS_UPDATE: ROUTING_KEY_STATUS_UPDATE,
}


def status_payload(record: AppDeployment) -> StatusUpdatePayload:
    """Build a status update from a record's current status."""
    status = record.status
    return StatusUpdatePayload(
        name=record.name,
        namespace=record.namespace,
        phase=status.phase.value if status.phase else "",
        message=status.message or None,
        helm_release_name=status.helm_release_name or None,
        helm_release_revision=status.helm_release_revision or None,
        deployed_chart_version=status.deployed_chart_version or None,
        updated_at=utcnow(),
    )


class MessagePublisher:
    """Publishes persistent envelopes to the topic exchange."""

    def __init__(
        self,
        amqp_url: str = AMQP_URL_DEFAULT,
        exchange: str = EXCHANGE_DEFAULT,
        source: str = MESSAGE_SOURCE_DEFAULT,
    ) -> None:
        self.amqp_url = amqp_url
        self.exchange_name = exchange
        self.source = source
        self._connection: AbstractRobustConnection | None = None
        self._exchange: AbstractExchange | None = None

    async def __aenter__(self) -> MessagePublisher:
        await self.connect()
        return self

    async def __aexit__(self, *_exc: object) -> None:
        await self.close()

    async def connect(self) -> None:
        self._connection = await aio_pika.connect_robust(self.amqp_url)
        channel = await self._connection.channel()
        self._exchange = await channel.declare_exchange(
            self.exchange_name, aio_pika.ExchangeType.TOPIC, durable=True
        )
        logger.debug("Publisher connected to exchange %s", self.exchange_name)

    async def close(self) -> None:
        if self._connection is not None:
            await self._connection.close()
        self._connection = None
        self._exchange = None

    async def publish(
        self,
        message_type: MessageType,
        payload: DeploymentRequestPayload
        | DeploymentUpdatePayload
        | DeploymentDeletePayload
        | StatusUpdatePayload,
        message_id: str | None = None,
    ) -> MessageEnvelope:
        """Wrap ``payload`` in an envelope and publish it persistently.

        Returns:
            The published envelope.

        Raises:
            RuntimeError: ``connect`` has not been awaited.
        """
        if self._exchange is None:
            raise RuntimeError("publisher is not connected")
        envelope = MessageEnvelope.wrap(
            message_type, message_id or str(uuid.uuid4()), self.source, payload
        )
        message = aio_pika.Message(
            body=envelope.to_json(),
            content_type="application/json",
            delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
            message_id=envelope.id,
            timestamp=envelope.timestamp,
            type=envelope.type,
        )
        routing_key = ROUTING_KEYS[message_type]
        await self._exchange.publish(message, routing_key=routing_key)
        logger.debug("Published %s message %s", envelope.type, envelope.id)
        return envelope

    async def publish_status(self, record: AppDeployment) -> MessageEnvelope:
        return await self.publish(MessageType.STATUS_UPDATE, status_payload(record))
