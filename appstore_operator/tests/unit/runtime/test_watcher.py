"""Tests for DeploymentWatcher."""

from __future__ import annotations

import asyncio
import threading
import time
from typing import Any

import pytest
from kubernetes.client.exceptions import ApiException

from appstore_operator.controllers.store import StoreError
from appstore_operator.runtime import watcher as watcher_module
from appstore_operator.runtime.watcher import DeploymentWatcher


def _event(
    event_type: str,
    name: str = "pg",
    generation: int = 1,
    finalizers: list[str] | None = None,
    deleting: bool = False,
    failure_count: int = 0,
) -> dict[str, Any]:
    metadata: dict[str, Any] = {
        "name": name,
        "namespace": "ns1",
        "generation": generation,
        "finalizers": finalizers if finalizers is not None else ["appstore.bitpipe.no/finalizer"],
    }
    if deleting:
        metadata["deletionTimestamp"] = "2024-05-02T11:30:15Z"
    return {
        "type": event_type,
        "object": {"metadata": metadata, "status": {"failureCount": failure_count}},
    }


class FakeWatch:
    """Stands in for kubernetes.watch.Watch, replaying scripted streams."""

    scripts: list[list[Any]] = []
    instances: list[FakeWatch] = []
    block_when_empty = False

    def __init__(self) -> None:
        self.stopped = threading.Event()
        self.calls: list[tuple[Any, ...]] = []
        FakeWatch.instances.append(self)

    def stream(self, func: Any, *args: Any, **kwargs: Any):
        self.calls.append((func, args, kwargs))
        script = FakeWatch.scripts.pop(0) if FakeWatch.scripts else []
        for event in script:
            if isinstance(event, Exception):
                raise event
            yield event
        if FakeWatch.block_when_empty:
            self.stopped.wait(timeout=2)

    def stop(self) -> None:
        self.stopped.set()


class ListStore:
    """Record store offering only what the watcher needs."""

    def __init__(self, records: list[Any]) -> None:
        self.records = records
        self.list_calls = 0
        self.failures: list[Exception] = []

    def list(self, namespace: str | None = None) -> list[Any]:
        self.list_calls += 1
        if self.failures:
            raise self.failures.pop(0)
        return list(self.records)

    def list_function(self, namespace: str | None = None) -> tuple[Any, tuple[Any, ...]]:
        return self.list_cluster, ("appstore.bitpipe.no", "v1alpha1", "appdeployments")

    def list_cluster(self, *args: Any, **kwargs: Any) -> dict[str, Any]:
        return {"items": []}


@pytest.fixture(autouse=True)
def fake_watch(monkeypatch: pytest.MonkeyPatch) -> type[FakeWatch]:
    FakeWatch.scripts = []
    FakeWatch.instances = []
    FakeWatch.block_when_empty = False
    monkeypatch.setattr(watcher_module.watch, "Watch", FakeWatch)
    return FakeWatch


class TestEventFilter:
    """Tests for which watch events reach the queue."""

    def test_status_only_change_is_dropped(self, fake_watch) -> None:
        """Test a write that only touched status does not requeue the record."""
        fake_watch.scripts = [
            [
                _event("ADDED"),
                _event("MODIFIED", failure_count=1),
                _event("MODIFIED", failure_count=2),
            ]
        ]
        submitted: list[tuple[str, str]] = []

        DeploymentWatcher(ListStore([]))._stream(submitted.append)

        assert submitted == [("ns1", "pg")]

    def test_spec_deletion_and_finalizer_changes_pass(self, fake_watch) -> None:
        fake_watch.scripts = [
            [
                _event("ADDED", finalizers=[]),
                _event("MODIFIED"),  # finalizer added
                _event("MODIFIED", generation=2),  # spec changed
                _event("MODIFIED", generation=2, deleting=True),
                _event("MODIFIED", generation=2, deleting=True, failure_count=3),
                _event("MODIFIED", generation=2, deleting=True, finalizers=[]),
                _event("DELETED", generation=2, deleting=True, finalizers=[]),
            ]
        ]
        submitted: list[tuple[str, str]] = []

        DeploymentWatcher(ListStore([]))._stream(submitted.append)

        assert len(submitted) == 6

    def test_resync_seeds_known_state(self, fake_watch, make_record) -> None:
        """Test records seen by the list are not requeued by an unchanged MODIFIED."""
        record = make_record(name="pg", namespace="ns1", generation=1)
        fake_watch.scripts = [[_event("MODIFIED", failure_count=4), _event("MODIFIED", generation=2)]]
        watcher = DeploymentWatcher(ListStore([record]))
        submitted: list[tuple[str, str]] = []

        watcher._resync(submitted.append)
        watcher._stream(submitted.append)

        assert submitted == [("ns1", "pg"), ("ns1", "pg")]

    def test_unknown_key_modified_passes(self, fake_watch) -> None:
        fake_watch.scripts = [[_event("MODIFIED", name="redis")]]
        submitted: list[tuple[str, str]] = []

        DeploymentWatcher(ListStore([]))._stream(submitted.append)

        assert submitted == [("ns1", "redis")]

    def test_error_event_ends_stream(self, fake_watch) -> None:
        fake_watch.scripts = [
            [
                _event("ADDED"),
                {"type": "ERROR", "object": {"code": 410, "reason": "Expired"}},
                _event("ADDED", name="redis"),
            ]
        ]
        submitted: list[tuple[str, str]] = []

        DeploymentWatcher(ListStore([]))._stream(submitted.append)

        assert submitted == [("ns1", "pg")]

    def test_stream_uses_store_list_function(self, fake_watch) -> None:
        store = ListStore([])
        DeploymentWatcher(store, timeout_seconds=60)._stream(lambda key: None)

        func, args, kwargs = fake_watch.instances[0].calls[0]
        assert func == store.list_cluster
        assert args == ("appstore.bitpipe.no", "v1alpha1", "appdeployments")
        assert kwargs == {"timeout_seconds": 60}


class TestWatchLoop:
    """Tests for the list-then-watch restart loop."""

    def _run_until(self, watcher: DeploymentWatcher, condition, timeout: float = 2.0) -> list:
        submitted: list[tuple[str, str]] = []
        thread = threading.Thread(target=watcher._watch_loop, args=(submitted.append,))
        thread.start()
        deadline = time.monotonic() + timeout
        while not condition(submitted) and time.monotonic() < deadline:
            time.sleep(0.01)
        watcher._stopped.set()
        thread.join(timeout=2)
        assert not thread.is_alive()
        return submitted

    def test_resync_submits_every_record(self, make_record) -> None:
        store = ListStore(
            [make_record(name="pg", namespace="ns1"), make_record(name="redis", namespace="ns2")]
        )
        watcher = DeploymentWatcher(store, restart_delay=0.01)

        submitted = self._run_until(watcher, lambda s: len(s) >= 2)

        assert submitted[:2] == [("ns1", "pg"), ("ns2", "redis")]

    @pytest.mark.parametrize(
        "failure",
        [StoreError("list failed"), ApiException(status=500, reason="Internal Server Error")],
    )
    def test_restarts_after_failure(self, make_record, failure: Exception) -> None:
        store = ListStore([make_record(name="pg", namespace="ns1")])
        store.failures = [failure]
        watcher = DeploymentWatcher(store, restart_delay=0.01)

        submitted = self._run_until(watcher, lambda s: len(s) >= 1)

        assert store.list_calls >= 2
        assert submitted[0] == ("ns1", "pg")

    def test_stream_failure_restarts_with_resync(self, fake_watch, make_record) -> None:
        store = ListStore([make_record(name="pg", namespace="ns1")])
        fake_watch.scripts = [[ApiException(status=410, reason="Gone")]]
        watcher = DeploymentWatcher(store, restart_delay=0.01)

        self._run_until(watcher, lambda s: len(s) >= 2)

        assert store.list_calls >= 2


class TestWatcherRun:
    """Tests for the async entry point."""

    @pytest.mark.asyncio
    async def test_stop_ends_thread_and_stream(self, fake_watch, make_record) -> None:
        fake_watch.block_when_empty = True
        store = ListStore([make_record(name="pg", namespace="ns1")])
        watcher = DeploymentWatcher(store, restart_delay=0.01)
        stop = asyncio.Event()
        queued: list[tuple[str, str]] = []

        task = asyncio.create_task(watcher.run(stop, queued.append))
        await asyncio.sleep(0.1)
        stop.set()
        await asyncio.wait_for(task, timeout=3)

        assert queued == [("ns1", "pg")]
        assert fake_watch.instances[0].stopped.is_set()
        assert not any(t.name == "appdeployment-watch" for t in threading.enumerate())
