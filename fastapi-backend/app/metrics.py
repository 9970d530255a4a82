"""Prometheus metrics shared by grievance, upload, auth and notification modules."""

from prometheus_client import Counter

from .config import get_settings

_NS = get_settings().metrics_namespace


GRIEVANCES_CREATED = Counter(
    "grievances_created_total",
    "Total number of grievances created",
    ["category"],
    namespace=_NS,
)
GRIEVANCES_PURGED = Counter(
    "grievances_purged_total",
    "Total number of grievances deleted through admin rejection",
    namespace=_NS,
)
UPLOAD_ATTEMPTS = Counter(
    "attachment_upload_attempts_total",
    "Total number of attachment upload attempts",
    namespace=_NS,
)
UPLOAD_SUCCESSES = Counter(
    "attachment_upload_success_total",
    "Total number of successful attachment uploads",
    namespace=_NS,
)
UPLOAD_FAILURES = Counter(
    "attachment_upload_failure_total",
    "Total number of rejected or failed attachment uploads",
    namespace=_NS,
)
AUTH_FAILURES = Counter(
    "auth_failures_total",
    "Total number of requests rejected by authentication",
    namespace=_NS,
)
NOTIFICATIONS_SENT = Counter(
    "notifications_sent_total",
    "Total number of notifications delivered to the SMS provider",
    namespace=_NS,
)
NOTIFICATION_FAILURES = Counter(
    "notification_failures_total",
    "Total number of notification tasks that failed",
    ["task"],
    namespace=_NS,
)
