"""
Source Registry Module
======================

Manages source configurations loaded from YAML files. Sources define
the availability page and the registry API the pipeline talks to, with
their rate limits and URL filters.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import yaml

from barnehage_tracker.ingestion.errors import ConfigurationError

SOURCE_KINDS = ("page", "api")

PAGE_SOURCE = "oslo-ledige-plasser"
API_SOURCE = "barnehagefakta"


@dataclass
class RateLimitConfig:
    """Rate limiting configuration for a source."""

    requests_per_second: float = 1.0
    burst_limit: int = 5

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> RateLimitConfig:
        """Create from dictionary, using defaults for missing values."""
        if data is None:
            return cls()
        return cls(
            requests_per_second=float(data.get("requests_per_second", 1.0)),
            burst_limit=int(data.get("burst_limit", 5)),
        )


@dataclass
class SourceConfig:
    """Configuration for a single upstream source."""

    name: str
    kind: str
    url: str
    enabled: bool = True
    description: str = ""
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    allowlist: list[str] = field(default_factory=list)
    denylist: list[str] = field(default_factory=list)
    custom_config: dict[str, Any] = field(default_factory=dict)

    _allowlist_patterns: list[re.Pattern[str]] | None = field(
        default=None, repr=False, compare=False
    )
    _denylist_patterns: list[re.Pattern[str]] | None = field(
        default=None, repr=False, compare=False
    )

    @classmethod
    def from_dict(
        cls, data: dict[str, Any], default_rate_limit: RateLimitConfig | None = None
    ) -> SourceConfig:
        """Create from dictionary."""
        kind = data.get("kind", "page")
        if kind not in SOURCE_KINDS:
            raise ConfigurationError(
                f"Source '{data.get('name')}' has unknown kind '{kind}' "
                f"(expected one of {', '.join(SOURCE_KINDS)})"
            )

        rate_limit_data = data.get("rate_limit")
        if rate_limit_data:
            rate_limit = RateLimitConfig.from_dict(rate_limit_data)
        elif default_rate_limit:
            rate_limit = default_rate_limit
        else:
            rate_limit = RateLimitConfig()

        return cls(
            name=data["name"],
            kind=kind,
            url=data["url"],
            enabled=data.get("enabled", True),
            description=data.get("description", ""),
            rate_limit=rate_limit,
            allowlist=data.get("allowlist", []),
            denylist=data.get("denylist", []),
            custom_config=data.get("custom_config", {}),
        )

    @property
    def domain(self) -> str:
        return urlparse(self.url).netloc

    def _compile_patterns(self) -> None:
        if self._allowlist_patterns is None:
            self._allowlist_patterns = [re.compile(p) for p in self.allowlist]
        if self._denylist_patterns is None:
            self._denylist_patterns = [re.compile(p) for p in self.denylist]

    def is_url_allowed(self, url: str) -> bool:
        """
        Check if a URL is allowed for this source.

        Rules:
        1. If URL matches any denylist pattern, it's denied
        2. If allowlist is empty, URL is allowed
        3. If allowlist is not empty, URL must match at least one pattern
        """
        self._compile_patterns()

        for pattern in self._denylist_patterns or []:
            if pattern.match(url):
                return False

        if not self._allowlist_patterns:
            return True

        return any(pattern.match(url) for pattern in self._allowlist_patterns)


@dataclass
class GlobalConfig:
    """Global configuration settings."""

    default_rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    user_agent: str = "BarnehageTracker/0.1"
    snapshot_storage_path: str = "~/.barnehage_tracker/snapshots"
    request_timeout: int = 30
    max_retries: int = 3
    respect_robots: bool = True
    default_year: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> GlobalConfig:
        """Create from dictionary."""
        if data is None:
            return cls()
        default_year = data.get("default_year")
        return cls(
            default_rate_limit=RateLimitConfig.from_dict(data.get("default_rate_limit")),
            user_agent=data.get("user_agent", "BarnehageTracker/0.1"),
            snapshot_storage_path=data.get(
                "snapshot_storage_path", "~/.barnehage_tracker/snapshots"
            ),
            request_timeout=int(data.get("request_timeout", 30)),
            max_retries=int(data.get("max_retries", 3)),
            respect_robots=bool(data.get("respect_robots", True)),
            default_year=int(default_year) if default_year else None,
        )


class SourceRegistry:
    """
    Registry for source configurations.

    Loads source definitions from a YAML file and provides methods
    to query them.
    """

    def __init__(self) -> None:
        self._sources: dict[str, SourceConfig] = {}
        self._global_config: GlobalConfig = GlobalConfig()
        self._config_path: Path | None = None

    @property
    def global_config(self) -> GlobalConfig:
        return self._global_config

    @property
    def config_path(self) -> Path | None:
        return self._config_path

    def load_config(self, config_path: Path | str) -> None:
        """
        Load configuration from a YAML file.

        Args:
            config_path: Path to the sources.yaml file

        Raises:
            FileNotFoundError: If the file does not exist
            ConfigurationError: If a source entry is invalid
        """
        config_path = Path(config_path).expanduser().resolve()
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

        self._config_path = config_path
        self._global_config = GlobalConfig.from_dict(data.get("global"))

        self._sources.clear()
        for source_data in data.get("sources", []):
            try:
                source = SourceConfig.from_dict(
                    source_data, self._global_config.default_rate_limit
                )
            except KeyError as e:
                raise ConfigurationError(f"Source entry is missing required key {e}") from e
            self._sources[source.name] = source

    def get_source(self, name: str) -> SourceConfig | None:
        """
        Get a source configuration by name.

        Returns:
            SourceConfig if found, None otherwise
        """
        return self._sources.get(name)

    def require_source(self, name: str) -> SourceConfig:
        """
        Get an enabled source configuration by name.

        Raises:
            ConfigurationError: If the source is missing or disabled
        """
        source = self._sources.get(name)
        if source is None:
            raise ConfigurationError(f"Source '{name}' not found")
        if not source.enabled:
            raise ConfigurationError(f"Source '{name}' is disabled")
        return source

    def list_sources(self) -> list[SourceConfig]:
        return list(self._sources.values())

    def list_enabled_sources(self) -> list[SourceConfig]:
        return [s for s in self._sources.values() if s.enabled]


# Global registry instance
_default_registry: SourceRegistry | None = None


def get_default_registry() -> SourceRegistry:
    """
    Get the default source registry instance.

    Loads configuration from the path specified in SOURCES_CONFIG_PATH
    environment variable, or falls back to config/sources.yaml.

    Returns:
        The global SourceRegistry instance
    """
    global _default_registry

    if _default_registry is None:
        _default_registry = SourceRegistry()

        config_path = os.environ.get("SOURCES_CONFIG_PATH")
        if config_path:
            path = Path(config_path)
        else:
            project_root = Path(__file__).parent.parent.parent
            path = project_root / "config" / "sources.yaml"

        if path.exists():
            _default_registry.load_config(path)

    return _default_registry


def reset_default_registry() -> None:
    """Reset the default registry (useful for testing)."""
    global _default_registry
    _default_registry = None
