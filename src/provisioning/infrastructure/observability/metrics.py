"""Prometheus metrics configuration."""

from __future__ import annotations

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    Info,
)


# Application info
APP_INFO = Info("provisioning", "Identity lifecycle provisioning orchestrator info")
APP_INFO.info({
    "version": "1.0.0",
    "service": "identity-lifecycle-provisioning",
})

# Saga metrics
SAGAS_TOTAL = Counter(
    "provisioning_sagas_total",
    "Total number of provisioning sagas run",
    ["event_type", "status"],
)

SAGA_DURATION = Histogram(
    "provisioning_saga_duration_seconds",
    "Time taken for a provisioning saga",
    ["event_type"],
    buckets=[0.5, 1, 2.5, 5, 10, 30, 60, 120],
)

ACTIVE_SAGAS = Gauge(
    "provisioning_active_sagas",
    "Number of sagas currently running",
    ["event_type"],
)

# Step metrics
STEPS_TOTAL = Counter(
    "provisioning_steps_total",
    "Total number of saga steps executed",
    ["action", "status"],
)

STEP_DURATION = Histogram(
    "provisioning_step_duration_seconds",
    "Time taken for a single saga step",
    ["action"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

TOLERATED_FAILURES_TOTAL = Counter(
    "provisioning_tolerated_failures_total",
    "Step failures recorded as warnings without aborting the saga",
    ["action"],
)

COMPENSATIONS_TOTAL = Counter(
    "provisioning_compensations_total",
    "Total compensation attempts",
    ["action", "outcome"],  # outcome: Compensated/Failed/Skipped
)

ENTITLEMENT_FALLBACKS_TOTAL = Counter(
    "provisioning_entitlement_fallbacks_total",
    "Entitlement resolutions that fell back from an exact department match",
    ["source"],  # "default", "empty"
)

NOTIFICATION_FAILURES_TOTAL = Counter(
    "provisioning_notification_failures_total",
    "Notifications that could not be queued",
    ["kind"],  # "welcome", "escalation"
)

LEDGER_WRITE_FAILURES_TOTAL = Counter(
    "provisioning_ledger_write_failures_total",
    "Request ledger writes that could not be persisted",
    ["operation"],  # "save", "update"
)

# Directory metrics
DIRECTORY_CALLS_TOTAL = Counter(
    "provisioning_directory_calls_total",
    "Total directory API calls",
    ["operation", "result"],
)

DIRECTORY_RETRIES_TOTAL = Counter(
    "provisioning_directory_retries_total",
    "Total directory call retries",
    ["operation"],
)

# API metrics
API_REQUESTS_TOTAL = Counter(
    "provisioning_api_requests_total",
    "Total API requests",
    ["method", "endpoint", "status_code"],
)

API_REQUEST_DURATION = Histogram(
    "provisioning_api_request_duration_seconds",
    "API request duration",
    ["method", "endpoint"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

DISTRIBUTED_LOCK_OPERATIONS = Counter(
    "provisioning_distributed_lock_operations_total",
    "Total distributed lock operations",
    ["operation", "result"],  # operation: acquire/release, result: success/failure
)
