"""Notifications module: fan-out on new messages plus read/delete endpoints."""

from .service import NotificationService

__all__ = ["NotificationService"]
