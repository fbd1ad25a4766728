"""Operator runtime - wires the mirror, reconciler, watch and consumer together."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Hashable

from aio_pika.exceptions import AMQPError

from appstore_operator.controllers.base import BaseController, ReconcileResult
from appstore_operator.controllers.charts import ChartMirror
from appstore_operator.controllers.deployment import DeploymentReconciler
from appstore_operator.controllers.helm import ReleaseManager
from appstore_operator.controllers.store import (
    DeploymentStore,
    ValuesSource,
    load_kube_config,
)
from appstore_operator.messaging import DeploymentConsumer, DeploymentHandler, MessagePublisher
from appstore_operator.models.deployment import AppDeployment
from appstore_operator.models.state import OperatorSettings
from appstore_operator.runtime.watcher import DeploymentWatcher
from appstore_operator.runtime.work_queue import WorkQueue

logger = logging.getLogger(__name__)


class Operator:
    """Long-running operator process.

    One stop event ends everything: the consumer retry loop, the mirror
    sync loop, the watch and the workers.
    """

    def __init__(
        self,
        settings: OperatorSettings,
        mirror: ChartMirror,
        reconciler: DeploymentReconciler,
        watcher: DeploymentWatcher | None = None,
        consumer: DeploymentConsumer | None = None,
        publisher: MessagePublisher | None = None,
        health_checks: dict[str, BaseController] | None = None,
    ) -> None:
        self.settings = settings
        self.mirror = mirror
        self.reconciler = reconciler
        self.watcher = watcher
        self.consumer = consumer
        self.publisher = publisher
        self.health_checks = health_checks or {}
        self.queue = WorkQueue()
        self._loop: asyncio.AbstractEventLoop | None = None

    @classmethod
    def from_settings(cls, settings: OperatorSettings) -> Operator:
        """Build the full object graph against the configured cluster and broker."""
        load_kube_config(settings.kube_context)
        store = DeploymentStore()
        mirror = ChartMirror(
            repo_url=settings.charts_repo_url,
            local_path=settings.charts_path,
            branch=settings.charts_branch,
            sync_interval=settings.charts_sync_interval,
            git_binary=settings.git_binary,
        )
        releases = ReleaseManager(
            mirror=mirror,
            repo_url=settings.helm_repo_url,
            helm_binary=settings.helm_binary,
            kube_context=settings.kube_context,
            serialize_all_mutations=settings.serialize_all_mutations,
        )
        reconciler = DeploymentReconciler(
            store=store,
            releases=releases,
            charts=mirror,
            values_reader=ValuesSource(),
            requeue_after_success=settings.requeue_after_success,
            requeue_after_failure=settings.requeue_after_failure,
        )
        consumer = None
        if settings.consumer_enabled:
            consumer = DeploymentConsumer(
                handler=DeploymentHandler(store),
                amqp_url=settings.amqp_url,
                exchange=settings.exchange,
                queue=settings.queue,
                routing_keys=settings.routing_keys,
                prefetch_count=settings.prefetch_count,
                consumer_tag=settings.consumer_tag,
                dead_letter_exchange=settings.dead_letter_exchange,
                reconnect_delay=settings.reconnect_delay,
            )
        publisher = None
        if settings.publish_status_updates:
            publisher = MessagePublisher(
                amqp_url=settings.amqp_url,
                exchange=settings.exchange,
                source=settings.message_source,
            )
        return cls(
            settings=settings,
            mirror=mirror,
            reconciler=reconciler,
            watcher=DeploymentWatcher(store, namespace=settings.watch_namespace),
            consumer=consumer,
            publisher=publisher,
            health_checks={"helm": releases, "kubernetes": store},
        )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def run(self, stop: asyncio.Event) -> None:
        """Start every component and block until ``stop`` is set.

        Raises:
            MirrorSyncError: The initial chart sync failed.
        """
        self._loop = asyncio.get_running_loop()
        await asyncio.to_thread(self.mirror.start)
        await asyncio.to_thread(self.check_dependencies)
        await self._connect_publisher()

        background = [asyncio.create_task(self.mirror.run_periodic(stop), name="chart-sync")]
        if self.watcher is not None:
            background.append(
                asyncio.create_task(self.watcher.run(stop, self.queue.add), name="watch")
            )
        if self.consumer is not None:
            background.append(asyncio.create_task(self.consumer.run(stop), name="consumer"))
        workers = [
            asyncio.create_task(self._worker(stop), name=f"worker-{i}")
            for i in range(self.settings.max_workers)
        ]
        logger.info("Operator started with %d workers", len(workers))

        try:
            await stop.wait()
        finally:
            logger.info("Shutting down")
            stop.set()
            for task in workers:
                task.cancel()
            await asyncio.gather(*workers, return_exceptions=True)
            results = await asyncio.gather(*background, return_exceptions=True)
            for task, result in zip(background, results):
                if isinstance(result, Exception):
                    logger.error("%s ended with error: %s", task.get_name(), result)
            self.queue.shutdown()
            if self.publisher is not None:
                await self.publisher.close()
        logger.info("Operator stopped")

    def check_dependencies(self) -> dict[str, bool]:
        """Probe the chart checkout and every registered backend once.

        Failures are logged, not raised: the workers retry on their own
        schedule once the backend comes back.

        Returns:
            Mapping of dependency name to whether it responded.
        """
        controllers: dict[str, BaseController] = {"charts": self.mirror, **self.health_checks}
        results: dict[str, bool] = {}
        for name, controller in controllers.items():
            results[name] = bool(controller.check_connection())
            if results[name]:
                logger.info("Dependency %s is available", name)
            else:
                logger.warning("Dependency %s is unavailable", name)
        return results

    async def _worker(self, stop: asyncio.Event) -> None:
        while not stop.is_set():
            key = await self.queue.get()
            try:
                result = await asyncio.to_thread(self.reconciler.reconcile_key, *key)
            except Exception:
                logger.exception("Reconcile of %s/%s raised", *key)
                result = ReconcileResult.after(self.settings.requeue_after_failure)
            finally:
                self.queue.done(key)
            self._schedule(key, result)

    def _schedule(self, key: Hashable, result: ReconcileResult) -> None:
        if result.error:
            logger.warning("Reconcile of %s/%s: %s", *key, result.error)
        if result.requeue:
            self.queue.add(key)
        elif result.requeue_after is not None:
            self.queue.add_after(key, result.requeue_after)

    # =========================================================================
    # Status publishing
    # =========================================================================

    async def _connect_publisher(self) -> None:
        if self.publisher is None:
            return
        try:
            await self.publisher.connect()
        except (AMQPError, OSError) as e:
            logger.warning("Status publishing disabled, broker unavailable: %s", e)
            self.publisher = None
            return
        self.reconciler.status_notifier = self._notify_status

    def _notify_status(self, record: AppDeployment) -> None:
        """Called from worker threads; hands the publish to the event loop."""
        if self._loop is None or self._loop.is_closed():
            return
        asyncio.run_coroutine_threadsafe(self._publish_status(record), self._loop)

    async def _publish_status(self, record: AppDeployment) -> None:
        if self.publisher is None:
            return
        try:
            await self.publisher.publish_status(record)
        except (AMQPError, OSError, RuntimeError) as e:
            logger.warning(
                "Failed to publish status of %s/%s: %s", record.namespace, record.name, e
            )
