"""Operator runtime: work queue, watch and process wiring."""

from appstore_operator.runtime.operator import Operator
from appstore_operator.runtime.watcher import DeploymentWatcher, event_key
from appstore_operator.runtime.work_queue import WorkQueue

__all__ = ["DeploymentWatcher", "Operator", "WorkQueue", "event_key"]
