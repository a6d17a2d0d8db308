"""Business metrics for ModelVault."""

from opentelemetry import metrics

from .logging_config import get_logger

logger = get_logger(__name__)

meter = metrics.get_meter(__name__)

# Catalogue
models_uploaded_total = meter.create_counter(
    name="models_uploaded_total",
    description="Total number of models uploaded",
)

models_updated_total = meter.create_counter(
    name="models_updated_total",
    description="Total number of model edits that changed at least one field",
)

# Deletion workflow
deletion_transitions_total = meter.create_counter(
    name="deletion_transitions_total",
    description="Deletion workflow transitions by target state",
)

purged_assets_total = meter.create_counter(
    name="purged_assets_total",
    description="Asset deletions attempted during finalize, by outcome",
)

models_pending_deletion = meter.create_up_down_counter(
    name="models_pending_deletion",
    description="Models currently marked for deletion",
)

# Sessions
logins_total = meter.create_counter(
    name="logins_total",
    description="Login attempts by outcome",
)

# Asset store
upstream_request_duration = meter.create_histogram(
    name="upstream_request_duration_seconds",
    description="Duration of WebDAV requests in seconds",
    unit="s",
)

upstream_errors_total = meter.create_counter(
    name="upstream_errors_total",
    description="WebDAV requests that failed or timed out",
)

# Audit
audit_write_failures_total = meter.create_counter(
    name="audit_write_failures_total",
    description="Audit log entries that could not be persisted",
)


def record_model_uploaded(screenshot_count: int):
    models_uploaded_total.add(1, {"screenshots": str(min(screenshot_count, 10))})


def record_model_updated(fields: list[str]):
    for field in fields:
        models_updated_total.add(1, {"field": field})


def record_deletion_transition(target_state: str):
    """Record a deletion workflow transition and keep the pending gauge in step."""
    deletion_transitions_total.add(1, {"state": target_state})
    if target_state == "marked":
        models_pending_deletion.add(1)
    elif target_state in ("restored", "purged_from_marked"):
        models_pending_deletion.add(-1)


def record_asset_purge(deleted: int, failed: int):
    if deleted:
        purged_assets_total.add(deleted, {"outcome": "deleted"})
    if failed:
        purged_assets_total.add(failed, {"outcome": "failed"})


def record_login(success: bool):
    logins_total.add(1, {"outcome": "success" if success else "failure"})


def record_upstream_request(method: str, status_code: int | None, duration: float):
    labels = {"method": method, "status_code": str(status_code or "none")}
    upstream_request_duration.record(duration, labels)
    if status_code is None or status_code >= 500:
        upstream_errors_total.add(1, labels)


def record_audit_write_failure():
    audit_write_failures_total.add(1)


logger.info("Business metrics instruments created")
