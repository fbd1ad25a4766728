"""Helm output parsers."""

from appstore_operator.controllers.helm.parsers.release_parser import ReleaseParser

__all__ = ["ReleaseParser"]
