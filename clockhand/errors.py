"""Error types raised by clockhand.

Startup errors (:class:`ConfigNotFound`, :class:`ConfigMalformed`) are fatal.
:class:`RemoteQueryFailed` and :class:`NotificationDeliveryFailed` are logged by
the watch loop, which keeps running. :class:`WatchSubscriptionLost` ends the loop.
"""

from __future__ import annotations

__all__ = [
    "ClockhandError",
    "ConfigNotFound",
    "ConfigMalformed",
    "RemoteQueryFailed",
    "NotificationDeliveryFailed",
    "WatchSubscriptionLost",
]


class ClockhandError(Exception):
    """Base class for all clockhand errors."""


class ConfigNotFound(ClockhandError):
    """A required configuration file does not exist or cannot be read."""


class ConfigMalformed(ClockhandError):
    """A configuration file exists but does not have the expected shape."""


class RemoteQueryFailed(ClockhandError):
    """A request to the Harvest API failed or returned an unusable payload."""


class NotificationDeliveryFailed(ClockhandError):
    """The desktop notification surface rejected a notification."""


class WatchSubscriptionLost(ClockhandError):
    """The file system watch could not be established or has died."""
