"""Controllers for the appstore operator."""

from appstore_operator.controllers.base import BaseController, ReconcileResult

__all__ = ["BaseController", "ReconcileResult"]
