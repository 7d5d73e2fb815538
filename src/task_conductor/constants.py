STATE_DIR_NAME = ".conductor"
CONFIG_FILE = "config.yaml"
RUN_STATE_FILE = "run_state.yaml"
STATUS_FEED_FILE = "status_feed.jsonl"
LOCK_FILE = ".lock"
STATE_VERSION = 1

DEFAULT_MAX_RETRIES = 3
DEFAULT_CAPACITY = 1
DEFAULT_INVOCATION_TIMEOUT_SECONDS = 300.0
DEFAULT_RETRY_BACKOFF_SECONDS = 1.0
DEFAULT_MAX_BACKOFF_SECONDS = 30.0
DEFAULT_CANCEL_GRACE_SECONDS = 5.0
CANCEL_POLL_SECONDS = 0.05
LOCK_TIMEOUT_SECONDS = 30

DEFAULT_WARNING_BLOCKERS = 1
DEFAULT_CRITICAL_BLOCKERS = 3
DEFAULT_WARNING_FAILURES = 1
DEFAULT_CRITICAL_FAILURES = 3

SOFT_POLICY_RERUN = "rerun"
SOFT_POLICY_ACCEPT = "accept"
SOFT_DEPENDENCY_POLICIES = {SOFT_POLICY_RERUN, SOFT_POLICY_ACCEPT}

BLOCKER_TIMEOUT = "timeout"
BLOCKER_WORKER = "worker_blocked"
BLOCKER_DEPENDENCY_FAILED = "dependency_failed"
BLOCKER_AWAITING_SOFT = "awaiting_soft_dependency"
BLOCKER_WORKER_UNAVAILABLE = "worker_unavailable"
BLOCKER_INTERRUPTED = "interrupted"
BLOCKER_INVOCATION_FAILED = "invocation_failed"
BLOCKER_NO_CAPABLE_WORKER = "no_capable_worker"

# Blockers that represent expected waiting rather than a problem.
PASSIVE_BLOCKER_REASONS = frozenset({BLOCKER_AWAITING_SOFT})
# Blockers left out of the health count: waits, and fallout of a failure
# that is already counted on its own.
UNCOUNTED_BLOCKER_REASONS = PASSIVE_BLOCKER_REASONS | {BLOCKER_DEPENDENCY_FAILED}

HEALTH_HEALTHY = "healthy"
HEALTH_WARNING = "warning"
HEALTH_CRITICAL = "critical"

OUTCOME_COMPLETED = "completed"
OUTCOME_BLOCKED = "blocked"
OUTCOME_FAILED = "failed"
OUTCOME_CANCELLED = "cancelled"
