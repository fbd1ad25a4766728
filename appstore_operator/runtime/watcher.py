"""Watches AppDeployment records and feeds their keys to the work queue."""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Callable
from typing import Any

from kubernetes import watch
from kubernetes.client.exceptions import ApiException

from appstore_operator.constants.enums import WatchEventType
from appstore_operator.constants.timeouts import (
    WATCH_RESTART_DELAY,
    WATCH_STOP_TIMEOUT,
    WATCH_TIMEOUT_SECONDS,
)
from appstore_operator.controllers.store import DeploymentStore, StoreError
from appstore_operator.models.deployment import AppDeployment

logger = logging.getLogger(__name__)

Key = tuple[str, str]
# (generation, being deleted, finalizers): the parts of a record a reconcile reacts to
Signature = tuple[int, bool, tuple[str, ...]]


def event_key(event: dict[str, Any]) -> Key | None:
    """(namespace, name) of the object carried by a watch event."""
    obj = event.get("object")
    if not isinstance(obj, dict):
        return None
    metadata = obj.get("metadata") or {}
    name = metadata.get("name")
    if not name:
        return None
    return metadata.get("namespace") or "default", name


def object_signature(obj: dict[str, Any]) -> Signature:
    """Change signature of a raw watch object."""
    metadata = obj.get("metadata") or {}
    return (
        int(metadata.get("generation") or 0),
        metadata.get("deletionTimestamp") is not None,
        tuple(metadata.get("finalizers") or ()),
    )


def record_signature(record: AppDeployment) -> Signature:
    """Change signature of a listed record."""
    return (
        record.metadata.generation,
        record.is_being_deleted,
        tuple(record.metadata.finalizers),
    )


class DeploymentWatcher:
    """Runs a blocking Kubernetes watch in a daemon thread.

    Every (re)start of the stream lists all records first, so events missed
    while disconnected still lead to a reconcile. MODIFIED events are only
    passed on when the generation, the deletion marker or the finalizers
    changed, so the reconciler's own status writes do not feed back into
    the queue.
    """

    def __init__(
        self,
        store: DeploymentStore,
        namespace: str | None = None,
        timeout_seconds: int = WATCH_TIMEOUT_SECONDS,
        restart_delay: float = WATCH_RESTART_DELAY,
        stop_timeout: float = WATCH_STOP_TIMEOUT,
    ) -> None:
        self.store = store
        self.namespace = namespace
        self.timeout_seconds = timeout_seconds
        self.restart_delay = restart_delay
        self.stop_timeout = stop_timeout
        self._stopped = threading.Event()
        self._watch: watch.Watch | None = None
        self._seen: dict[Key, Signature] = {}

    async def run(self, stop: asyncio.Event, enqueue: Callable[[Key], None]) -> None:
        """Watch until ``stop`` is set, calling ``enqueue`` on the loop thread."""
        loop = asyncio.get_running_loop()

        def submit(key: Key) -> None:
            loop.call_soon_threadsafe(enqueue, key)

        self._stopped.clear()
        thread = threading.Thread(
            target=self._watch_loop, args=(submit,), name="appdeployment-watch", daemon=True
        )
        thread.start()
        logger.info("Watching AppDeployments in %s", self.namespace or "all namespaces")
        await stop.wait()
        self._stopped.set()
        if self._watch is not None:
            self._watch.stop()
        await asyncio.to_thread(thread.join, self.stop_timeout)
        if thread.is_alive():
            logger.warning("Watch thread still blocked after %.0fs, abandoning it", self.stop_timeout)
        logger.info("AppDeployment watch stopped")

    def _watch_loop(self, submit: Callable[[Key], None]) -> None:
        while not self._stopped.is_set():
            try:
                self._resync(submit)
                self._stream(submit)
            except ApiException as e:
                logger.warning("Watch interrupted: %s %s", e.status, e.reason)
            except StoreError as e:
                logger.warning("Resync failed: %s", e)
            except Exception:
                logger.exception("Unexpected watch failure")
            self._stopped.wait(self.restart_delay)

    def _resync(self, submit: Callable[[Key], None]) -> None:
        records = self.store.list(self.namespace)
        self._seen = {record.key: record_signature(record) for record in records}
        for record in records:
            submit(record.key)

    def _stream(self, submit: Callable[[Key], None]) -> None:
        func, args = self.store.list_function(self.namespace)
        self._watch = watch.Watch()
        for event in self._watch.stream(func, *args, timeout_seconds=self.timeout_seconds):
            if self._stopped.is_set():
                break
            event_type = event.get("type")
            if event_type == WatchEventType.ERROR.value:
                logger.warning("Watch error event: %s", event.get("object"))
                return
            key = event_key(event)
            if key is None or not self._changed(event_type, key, event["object"]):
                continue
            logger.debug("%s %s/%s", event_type, *key)
            submit(key)

    def _changed(self, event_type: str | None, key: Key, obj: dict[str, Any]) -> bool:
        if event_type == WatchEventType.DELETED.value:
            self._seen.pop(key, None)
            return True
        signature = object_signature(obj)
        previous = self._seen.get(key)
        self._seen[key] = signature
        if event_type == WatchEventType.MODIFIED.value:
            return previous != signature
        return True
