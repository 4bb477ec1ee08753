"""
Barnehage Tracker Ingestion Pipeline
====================================

This package turns the municipal availability page into an
append-only spot history per kindergarten.

Pipeline Stages:
1. Fetch - Crawler respects robots.txt, rate limits, fetches the page
2. Snapshot - Raw page stored gzip-compressed for offline replay
3. Parse - Page Parser extracts observations and diagnostics
4. Match - Entity Matcher resolves free-text names to the registry
5. Reconcile - New spots appended, seen spots refreshed, vanished spots taken
6. Notify - Preferences matched against newly discovered spots

The registry itself is bootstrapped from barnehagefakta.no.
"""

from barnehage_tracker.ingestion.bootstrap import (
    BarnehagefaktaClient,
    initialize_kindergartens,
    map_kindergarten_data,
)
from barnehage_tracker.ingestion.crawler import (
    Crawler,
    FetchResult,
    RobotsChecker,
    TokenBucket,
)
from barnehage_tracker.ingestion.errors import (
    ConfigurationError,
    FetchError,
    MappingError,
    PipelineError,
)
from barnehage_tracker.ingestion.jobs import (
    JobResult,
    JobStatus,
    enqueue,
    get_job_status,
    run_bootstrap,
    run_scrape,
)
from barnehage_tracker.ingestion.matcher import (
    MATCH_THRESHOLD,
    EntityMatcher,
    MatchCandidate,
    compare_two_strings,
)
from barnehage_tracker.ingestion.parser import (
    AvailabilityPageParser,
    Observation,
    ParseResult,
    parse_availability_page,
)
from barnehage_tracker.ingestion.reconciler import (
    AvailabilityReconciler,
    ReconciliationResult,
    RegistryStore,
    create_spot_id,
)
from barnehage_tracker.ingestion.registry import (
    RateLimitConfig,
    SourceConfig,
    SourceRegistry,
    get_default_registry,
)
from barnehage_tracker.ingestion.storage import (
    LocalFileStorage,
    SnapshotMetadata,
)

__all__ = [
    # Registry
    "SourceRegistry",
    "SourceConfig",
    "RateLimitConfig",
    "get_default_registry",
    # Crawler
    "Crawler",
    "FetchResult",
    "TokenBucket",
    "RobotsChecker",
    # Storage
    "LocalFileStorage",
    "SnapshotMetadata",
    # Diagnostics
    "PipelineError",
    "ConfigurationError",
    "FetchError",
    "MappingError",
    # Parser
    "AvailabilityPageParser",
    "Observation",
    "ParseResult",
    "parse_availability_page",
    # Matcher
    "MATCH_THRESHOLD",
    "EntityMatcher",
    "MatchCandidate",
    "compare_two_strings",
    # Reconciler
    "AvailabilityReconciler",
    "ReconciliationResult",
    "RegistryStore",
    "create_spot_id",
    # Bootstrap
    "BarnehagefaktaClient",
    "initialize_kindergartens",
    "map_kindergarten_data",
    # Jobs
    "run_scrape",
    "run_bootstrap",
    "enqueue",
    "get_job_status",
    "JobResult",
    "JobStatus",
]
