from prometheus_client import Counter, Histogram

api_request_latency_seconds = Histogram(
    "api_request_latency_seconds",
    "API request latency in seconds",
    ["route", "method", "status"],
)

entity_writes_total = Counter(
    "entity_writes_total",
    "Entity writes through the generic persistence service",
    ["entity", "op"],
)

login_attempts_total = Counter(
    "login_attempts_total",
    "Login attempts recorded against existing users",
    ["outcome"],
)

account_lockouts_total = Counter(
    "account_lockouts_total",
    "Accounts locked after repeated failed logins",
)

case_assignments_total = Counter(
    "case_assignments_total",
    "Case assignments",
)

case_status_changes_total = Counter(
    "case_status_changes_total",
    "Case status transitions, by new status",
    ["status"],
)

case_duration_days = Histogram(
    "case_duration_days",
    "Days from case opening to close",
    buckets=(1, 7, 30, 90, 180, 365, 730, 1825),
)
