"""Durable AMQP consumer for deployment lifecycle messages."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import aio_pika
from aio_pika.abc import AbstractChannel, AbstractIncomingMessage, AbstractQueue
from aio_pika.exceptions import AMQPError

from appstore_operator.constants.defaults import (
    AMQP_URL_DEFAULT,
    CONSUMER_TAG_DEFAULT,
    DEPLOYMENT_ROUTING_KEYS,
    EXCHANGE_DEFAULT,
    QUEUE_DEPLOYMENTS_DEFAULT,
)
from appstore_operator.constants.enums import DeliveryOutcome
from appstore_operator.constants.limits import PREFETCH_COUNT_DEFAULT
from appstore_operator.constants.timeouts import BROKER_RECONNECT_DELAY
from appstore_operator.messaging.errors import ConsumerConnectionLost, PermanentMessageError
from appstore_operator.messaging.handler import DeploymentHandler

logger = logging.getLogger(__name__)


class DeploymentConsumer:
    """Consumes the deployments queue one delivery at a time.

    ``run`` owns the connection lifecycle: connect, declare, consume, and on
    any connection failure wait ``reconnect_delay`` and start over, until
    the stop event is set.
    """

    def __init__(
        self,
        handler: DeploymentHandler,
        amqp_url: str = AMQP_URL_DEFAULT,
        exchange: str = EXCHANGE_DEFAULT,
        queue: str = QUEUE_DEPLOYMENTS_DEFAULT,
        routing_keys: tuple[str, ...] | list[str] = DEPLOYMENT_ROUTING_KEYS,
        prefetch_count: int = PREFETCH_COUNT_DEFAULT,
        consumer_tag: str = CONSUMER_TAG_DEFAULT,
        dead_letter_exchange: str | None = None,
        reconnect_delay: float = BROKER_RECONNECT_DELAY,
    ) -> None:
        self.handler = handler
        self.amqp_url = amqp_url
        self.exchange_name = exchange
        self.queue_name = queue
        self.routing_keys = list(routing_keys)
        self.prefetch_count = prefetch_count
        self.consumer_tag = consumer_tag
        self.dead_letter_exchange = dead_letter_exchange
        self.reconnect_delay = reconnect_delay

    async def run(self, stop: asyncio.Event) -> None:
        """Consume until ``stop`` is set, reconnecting after failures."""
        while not stop.is_set():
            try:
                await self.consume(stop)
            except ConsumerConnectionLost:
                logger.warning("Broker connection lost, reconnecting")
            except (AMQPError, OSError) as e:
                logger.error(
                    "Broker connection failed: %s; retrying in %.0fs", e, self.reconnect_delay
                )
            if stop.is_set():
                break
            try:
                await asyncio.wait_for(stop.wait(), timeout=self.reconnect_delay)
            except asyncio.TimeoutError:
                pass
        logger.info("Deployment consumer stopped")

    async def consume(self, stop: asyncio.Event) -> None:
        """Run one connection's worth of consuming.

        Returns when ``stop`` is set.

        Raises:
            ConsumerConnectionLost: The connection closed underneath us.
        """
        connection = await aio_pika.connect(self.amqp_url)
        lost = asyncio.Event()

        def _on_close(*_args: Any) -> None:
            lost.set()

        connection.close_callbacks.add(_on_close)
        async with connection:
            channel = await connection.channel()
            queue = await self.declare(channel)
            logger.info(
                "Consuming %s (bindings: %s, prefetch %d)",
                self.queue_name,
                ", ".join(self.routing_keys),
                self.prefetch_count,
            )

            consume_task = asyncio.create_task(self._drain(queue))
            stop_task = asyncio.create_task(stop.wait())
            lost_task = asyncio.create_task(lost.wait())
            try:
                done, _ = await asyncio.wait(
                    {consume_task, stop_task, lost_task},
                    return_when=asyncio.FIRST_COMPLETED,
                )
            finally:
                for task in (consume_task, stop_task, lost_task):
                    task.cancel()
                await asyncio.gather(consume_task, stop_task, lost_task, return_exceptions=True)

            if stop.is_set():
                return
            if consume_task in done and not consume_task.cancelled():
                # handler failures are settled in process(); what escapes is broker-side
                raise ConsumerConnectionLost("consume loop ended") from consume_task.exception()
            raise ConsumerConnectionLost("connection closed")

    async def declare(self, channel: AbstractChannel) -> AbstractQueue:
        """Declare the topology; safe to repeat on every reconnect."""
        await channel.set_qos(prefetch_count=self.prefetch_count)
        exchange = await channel.declare_exchange(
            self.exchange_name, aio_pika.ExchangeType.TOPIC, durable=True
        )
        arguments = None
        if self.dead_letter_exchange:
            arguments = {"x-dead-letter-exchange": self.dead_letter_exchange}
        queue = await channel.declare_queue(self.queue_name, durable=True, arguments=arguments)
        for routing_key in self.routing_keys:
            await queue.bind(exchange, routing_key=routing_key)
        return queue

    async def _drain(self, queue: AbstractQueue) -> None:
        async with queue.iterator(consumer_tag=self.consumer_tag) as messages:
            async for message in messages:
                await self.process(message)

    async def process(self, message: AbstractIncomingMessage) -> DeliveryOutcome:
        """Handle one delivery and settle it.

        Success acks, a permanent failure rejects without requeue, anything
        else nacks with requeue.
        """
        try:
            await asyncio.to_thread(self.handler.handle, message.body)
        except PermanentMessageError as e:
            logger.error(
                "Rejecting message %s (%s): %s",
                message.message_id or "-",
                message.routing_key,
                e,
            )
            await message.reject(requeue=False)
            return DeliveryOutcome.REJECTED
        except Exception:
            logger.exception(
                "Failed to handle message %s (%s), requeueing",
                message.message_id or "-",
                message.routing_key,
            )
            await message.nack(requeue=True)
            return DeliveryOutcome.REQUEUED
        await message.ack()
        return DeliveryOutcome.ACKED
