"""Base controller and result types shared by the operator controllers.

Controllers here are blocking by design: the runtime calls them from
worker threads via ``asyncio.to_thread`` so the event loop stays free for
the watch, the timers and the message consumer.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ReconcileResult:
    """Outcome of one reconcile pass.

    ``requeue`` asks for an immediate retry, ``requeue_after`` for a delayed
    one; both unset means wait for the next external trigger.
    """

    requeue: bool = False
    requeue_after: float | None = None
    error: str | None = None
    duration_ms: float = 0.0

    @classmethod
    def done(cls) -> ReconcileResult:
        return cls()

    @classmethod
    def immediately(cls) -> ReconcileResult:
        return cls(requeue=True)

    @classmethod
    def after(cls, delay: float, error: str | None = None) -> ReconcileResult:
        return cls(requeue_after=delay, error=error)

    @property
    def ok(self) -> bool:
        return self.error is None


class BaseController(ABC):
    """Base class for controllers backed by an external tool or API."""

    @abstractmethod
    def check_connection(self) -> bool:
        """Check if the backing tool or data source is usable.

        Returns:
            True if it responds, False otherwise
        """
        ...
