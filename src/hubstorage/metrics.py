"""Prometheus metrics for storage operations.

Metrics Defined:
- hubstorage_file_mutations_total: Counter of file creates/updates by repository
- hubstorage_issues_polled_total: Counter of issues returned by polls
- hubstorage_poll_cursor_timestamp_seconds: Gauge of the current watermark
- hubstorage_migration_archive_bytes: Histogram of downloaded archive sizes
"""

from datetime import datetime
from typing import Optional

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)


# Archive sizes from 1 MiB to 16 GiB
ARCHIVE_SIZE_BUCKETS = tuple(float(2 ** exp) for exp in range(20, 35, 2))


class HubStorageMetrics:
    """Container for all storage Prometheus metrics.

    Supports custom registries so tests can create fresh instances
    without colliding on the default registry.

    Example:
        >>> metrics = HubStorageMetrics(CollectorRegistry())
        >>> metrics.record_file_mutation("acme/widgets", "update")
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """Initialize storage metrics.

        Args:
            registry: Optional Prometheus registry. If None, uses the
                      default REGISTRY. Pass a custom registry for testing.
        """
        self.registry = registry or REGISTRY

        self.file_mutations_total = Counter(
            "hubstorage_file_mutations_total",
            "Total number of file mutations issued by the content reconciler",
            labelnames=["repository", "kind"],
            registry=self.registry,
        )

        self.issues_polled_total = Counter(
            "hubstorage_issues_polled_total",
            "Total number of issues returned by the issue poller",
            registry=self.registry,
        )

        self.poll_cursor_timestamp_seconds = Gauge(
            "hubstorage_poll_cursor_timestamp_seconds",
            "Current issue poll watermark as a Unix timestamp",
            labelnames=["cursor"],
            registry=self.registry,
        )

        self.migration_archive_bytes = Histogram(
            "hubstorage_migration_archive_bytes",
            "Size of downloaded migration archives in bytes",
            buckets=ARCHIVE_SIZE_BUCKETS,
            registry=self.registry,
        )

    def record_file_mutation(self, repository: str, kind: str) -> None:
        """Record a file mutation.

        Args:
            repository: The repository in format "{owner}/{repo}".
            kind: "create" or "update".
        """
        self.file_mutations_total.labels(repository=repository, kind=kind).inc()

    def record_poll(self, cursor: str, issue_count: int, since: datetime) -> None:
        """Record the outcome of a successful poll."""
        self.issues_polled_total.inc(issue_count)
        self.poll_cursor_timestamp_seconds.labels(cursor=cursor).set(since.timestamp())

    def record_archive_download(self, size_bytes: int) -> None:
        self.migration_archive_bytes.observe(size_bytes)

    def generate_metrics(self) -> bytes:
        """Generate Prometheus exposition format output for this registry."""
        return generate_latest(self.registry)
