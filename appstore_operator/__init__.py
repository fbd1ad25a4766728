"""Kubernetes operator for the application store."""
