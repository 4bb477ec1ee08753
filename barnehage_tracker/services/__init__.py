"""Application services for Barnehage Tracker."""

from barnehage_tracker.services.notifications import (
    NotificationCandidate,
    NotificationMatcher,
)

__all__ = [
    "NotificationCandidate",
    "NotificationMatcher",
]
