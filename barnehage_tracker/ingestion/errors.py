"""
Pipeline Diagnostics Module
===========================

Typed diagnostic records collected during a scrape run. Malformed
content never raises; it becomes a MappingError that is logged and
reported to the operator. Only infrastructure failures raise.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from barnehage_tracker.core.enums import ErrorType


class PipelineError(Exception):
    """Base class for fatal pipeline failures."""


class ConfigurationError(PipelineError):
    """Raised when a required source or setting is missing."""


class FetchError(PipelineError):
    """Raised when a page or API resource could not be fetched."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"Failed to fetch {url}: {reason}")
        self.url = url
        self.reason = reason


@dataclass
class MappingError:
    """A non-fatal diagnostic produced while parsing or matching."""

    type: ErrorType
    message: str
    context: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Flatten to the operator-facing form: type, message, then context fields."""
        return {"type": self.type.value, "message": self.message, **self.context}

    def __str__(self) -> str:
        return f"{self.type.value}: {self.message}"


def region_error(header_text: str) -> MappingError:
    return MappingError(
        type=ErrorType.REGION_ERROR,
        message="Failed to parse region name or update date",
        context={"content": header_text},
    )


def no_match_error(
    kindergarten: str, region: str, last_updated: str, details: str
) -> MappingError:
    return MappingError(
        type=ErrorType.NO_MATCH_ERROR,
        message="No matches found",
        context={
            "kindergarten": kindergarten,
            "region": region,
            "lastUpdated": last_updated,
            "details": details,
        },
    )


def field_error(
    kindergarten: str, region: str, last_updated: str, entry: dict[str, Any]
) -> MappingError:
    return MappingError(
        type=ErrorType.FIELD_ERROR,
        message="Incomplete or unknown field value",
        context={
            "kindergarten": kindergarten,
            "region": region,
            "lastUpdated": last_updated,
            "field": entry,
        },
    )


def fuzzy_match_error(kindergarten: str, best_match: str | None, rating: float) -> MappingError:
    return MappingError(
        type=ErrorType.FUZZY_MATCH_ERROR,
        message=(
            f'Could not confidently match "{kindergarten}". '
            f'Best match: "{best_match}" with rating {rating:.3f}'
        ),
        context={"kindergarten": kindergarten, "bestMatch": best_match, "rating": rating},
    )
