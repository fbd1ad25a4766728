"""Base controller classes."""

from appstore_operator.controllers.base.base_controller import (
    BaseController,
    ReconcileResult,
)

__all__ = ["BaseController", "ReconcileResult"]
