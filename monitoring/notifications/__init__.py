"""
Notifications Package.

Notification handlers for the monitoring subsystem.
"""

from .webhook import (
    Notification,
    DeliveryResult,
    WebhookFormatter,
    ChannelRateLimiter,
    WebhookNotifier,
)


__all__ = [
    "Notification",
    "DeliveryResult",
    "WebhookFormatter",
    "ChannelRateLimiter",
    "WebhookNotifier",
]
