"""Enums for kindergarten availability fields."""

from enum import Enum


class AgeGroup(str, Enum):
    """Age group a listed spot is offered for."""

    UNDER_3 = "under 3 years"
    OVER_3 = "over 3 years"
    AGE_2_TO_6 = "2-6 years"
    UNKNOWN = "unknown"


class SpotStatus(str, Enum):
    """Lifecycle status of a spot record."""

    AVAILABLE = "available"
    TAKEN = "taken"


class ErrorType(str, Enum):
    """Diagnostic categories produced by the scrape pipeline."""

    REGION_ERROR = "RegionError"
    NO_MATCH_ERROR = "NoMatchError"
    FIELD_ERROR = "FieldError"
    FUZZY_MATCH_ERROR = "FuzzyMatchError"


class PreferenceType(str, Enum):
    """Kinds of notification preference a user can register."""

    SPECIFIC_KINDERGARTEN = "specificKindergarten"
    REGION = "region"
    DISTANCE = "distance"
    AGE_GROUP = "ageGroup"


class TransportType(str, Enum):
    """Transport mode attached to distance preferences."""

    WALKING = "walking"
    BICYCLING = "bicycling"
    DRIVING = "driving"
    TRANSIT = "transit"
