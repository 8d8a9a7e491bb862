"""Resilient clients for external REST dependencies."""

from .service import ResilientServiceClient, ServiceHealth

__all__ = ["ResilientServiceClient", "ServiceHealth"]
