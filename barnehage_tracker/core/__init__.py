"""Core domain models and enums for Barnehage Tracker."""

from barnehage_tracker.core.enums import (
    AgeGroup,
    ErrorType,
    PreferenceType,
    SpotStatus,
    TransportType,
)
from barnehage_tracker.core.schema import (
    Address,
    Kindergarten,
    Malform,
    NotificationPreference,
    ParentSurveyResults,
    PreferenceParameters,
    SpotRecord,
)

__all__ = [
    # Enums
    "AgeGroup",
    "ErrorType",
    "PreferenceType",
    "SpotStatus",
    "TransportType",
    # Models
    "Address",
    "Kindergarten",
    "Malform",
    "NotificationPreference",
    "ParentSurveyResults",
    "PreferenceParameters",
    "SpotRecord",
]
