"""Prometheus metrics for metadata resolution."""

import structlog
from prometheus_client import CollectorRegistry, Counter

logger = structlog.get_logger(__name__)


class Metrics:
    """Counters describing record status changes and resolver failures.

    Counters are registered on the given registry so each application (or test)
    owns an isolated set instead of sharing the process-global default one.
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        self.registry = registry if registry is not None else CollectorRegistry()

        self.actions = Counter(
            "tokenmeta_metadata_actions_total",
            "Total number of metadata records created or updated, by resulting status",
            ["kind", "status"],
            registry=self.registry,
        )
        self.errors = Counter(
            "tokenmeta_metadata_errors_total",
            "Total number of classified resolver errors",
            ["kind"],
            registry=self.registry,
        )

    def record_status(self, kind: str, status: str) -> None:
        """Count a record reaching `status` (e.g. kind="token", status="applied")."""
        try:
            self.actions.labels(kind=kind, status=_label(status)).inc()
        except Exception as e:  # metrics must never fail the caller
            logger.warning("metrics.increment_failed", metric="actions", error=str(e))

    def record_error(self, kind: str) -> None:
        """Count one resolver error of the given kind."""
        try:
            self.errors.labels(kind=_label(kind)).inc()
        except Exception as e:  # metrics must never fail the caller
            logger.warning("metrics.increment_failed", metric="errors", error=str(e))

    def get_status_count(self, kind: str, status: str) -> float:
        """Current value of the actions counter for (kind, status)."""
        value = self.registry.get_sample_value(
            "tokenmeta_metadata_actions_total", {"kind": kind, "status": _label(status)}
        )
        return value or 0.0

    def get_error_count(self, kind: str) -> float:
        """Current value of the errors counter for kind."""
        value = self.registry.get_sample_value(
            "tokenmeta_metadata_errors_total", {"kind": _label(kind)}
        )
        return value or 0.0


def _label(value) -> str:
    """Label text for plain strings and str-valued enums."""
    return getattr(value, "value", value)
