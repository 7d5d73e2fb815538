"""Parse run configuration and load it from `.conductor/config.yaml`."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from .constants import (
    CONFIG_FILE,
    DEFAULT_CANCEL_GRACE_SECONDS,
    DEFAULT_CAPACITY,
    DEFAULT_CRITICAL_BLOCKERS,
    DEFAULT_CRITICAL_FAILURES,
    DEFAULT_INVOCATION_TIMEOUT_SECONDS,
    DEFAULT_MAX_BACKOFF_SECONDS,
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_BACKOFF_SECONDS,
    DEFAULT_WARNING_BLOCKERS,
    DEFAULT_WARNING_FAILURES,
    SOFT_DEPENDENCY_POLICIES,
    SOFT_POLICY_RERUN,
    STATE_DIR_NAME,
)
from .errors import ConfigError
from .io_utils import _load_data_with_error


@dataclass(frozen=True)
class HealthThresholds:
    """Counts at which the progress tracker escalates run health."""

    warning_blockers: int = DEFAULT_WARNING_BLOCKERS
    critical_blockers: int = DEFAULT_CRITICAL_BLOCKERS
    warning_failures: int = DEFAULT_WARNING_FAILURES
    critical_failures: int = DEFAULT_CRITICAL_FAILURES


@dataclass(frozen=True)
class RunConfig:
    """Resolved configuration for one orchestration run."""

    capacity_per_category: dict[str, int] = field(default_factory=dict)
    default_capacity: int = DEFAULT_CAPACITY
    max_retries: int = DEFAULT_MAX_RETRIES
    invocation_timeout: float = DEFAULT_INVOCATION_TIMEOUT_SECONDS
    critical_task_ids: frozenset[str] = frozenset()
    health_thresholds: HealthThresholds = field(default_factory=HealthThresholds)
    retry_backoff_seconds: float = DEFAULT_RETRY_BACKOFF_SECONDS
    max_backoff_seconds: float = DEFAULT_MAX_BACKOFF_SECONDS
    cancel_grace_seconds: float = DEFAULT_CANCEL_GRACE_SECONDS
    soft_dependency_policy: str = SOFT_POLICY_RERUN
    authority_ranking: tuple[str, ...] = ()
    effort_unit_seconds: Optional[float] = None
    schedule_tolerance: float = 0.0

    def capacity_for(self, capability: str) -> int:
        return self.capacity_per_category.get(capability, self.default_capacity)

    def backoff_for(self, attempt: int) -> float:
        """Delay before retry number *attempt* (1-based), doubling each time."""
        delay = self.retry_backoff_seconds * (2 ** max(attempt - 1, 0))
        return min(delay, self.max_backoff_seconds)


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _pick(raw: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in raw and raw[key] is not None:
            return raw[key]
    return None


def _positive_int(value: Any, name: str) -> int:
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ConfigError(f"'{name}' must be an integer, got {value!r}")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"'{name}' must be an integer, got {value!r}") from None
    if number < 1:
        raise ConfigError(f"'{name}' must be a positive integer, got {value!r}")
    return number


def _non_negative_float(value: Any, name: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"'{name}' must be a number, got {value!r}") from None
    if number < 0:
        raise ConfigError(f"'{name}' must not be negative, got {value!r}")
    return number


def get_run_config(config: dict[str, Any]) -> RunConfig:
    """Build a :class:`RunConfig` from a plain mapping.

    Accepts snake_case keys as well as the camelCase names used in run
    descriptions (``capacityPerCategory``, ``maxRetries``,
    ``invocationTimeout``, ``criticalTaskIds``, ``healthThresholds``).

    Args:
        config: Raw configuration mapping; may be nested under ``run``.

    Returns:
        The resolved run configuration.

    Raises:
        ConfigError: If any value is malformed.
    """
    raw = _as_dict(config.get("run")) or _as_dict(config)

    capacity_raw = _as_dict(_pick(raw, "capacity_per_category", "capacityPerCategory"))
    capacity = {
        str(category): _positive_int(limit, f"capacity_per_category.{category}")
        for category, limit in capacity_raw.items()
    }

    kwargs: dict[str, Any] = {"capacity_per_category": capacity}

    default_capacity = _pick(raw, "default_capacity", "defaultCapacity")
    if default_capacity is not None:
        kwargs["default_capacity"] = _positive_int(default_capacity, "default_capacity")

    max_retries = _pick(raw, "max_retries", "maxRetries")
    if max_retries is not None:
        kwargs["max_retries"] = _positive_int(max_retries, "max_retries")

    timeout = _pick(raw, "invocation_timeout", "invocationTimeout")
    if timeout is not None:
        kwargs["invocation_timeout"] = _non_negative_float(timeout, "invocation_timeout")
        if kwargs["invocation_timeout"] == 0:
            raise ConfigError("'invocation_timeout' must be greater than zero")

    critical = _pick(raw, "critical_task_ids", "criticalTaskIds")
    if critical is not None:
        if isinstance(critical, str) or not isinstance(critical, (list, tuple, set, frozenset)):
            raise ConfigError("'critical_task_ids' must be a list of task ids")
        kwargs["critical_task_ids"] = frozenset(str(tid) for tid in critical)

    thresholds_raw = _as_dict(_pick(raw, "health_thresholds", "healthThresholds"))
    if thresholds_raw:
        kwargs["health_thresholds"] = _parse_thresholds(thresholds_raw)

    for key, camel in (
        ("retry_backoff_seconds", "retryBackoffSeconds"),
        ("max_backoff_seconds", "maxBackoffSeconds"),
        ("cancel_grace_seconds", "cancelGraceSeconds"),
        ("schedule_tolerance", "scheduleTolerance"),
    ):
        value = _pick(raw, key, camel)
        if value is not None:
            kwargs[key] = _non_negative_float(value, key)

    unit = _pick(raw, "effort_unit_seconds", "effortUnitSeconds")
    if unit is not None:
        kwargs["effort_unit_seconds"] = _non_negative_float(unit, "effort_unit_seconds") or None

    policy = _pick(raw, "soft_dependency_policy", "softDependencyPolicy")
    if policy is not None:
        policy = str(policy).strip().lower()
        if policy not in SOFT_DEPENDENCY_POLICIES:
            raise ConfigError(
                f"'soft_dependency_policy' must be one of {sorted(SOFT_DEPENDENCY_POLICIES)}, got {policy!r}"
            )
        kwargs["soft_dependency_policy"] = policy

    ranking = _pick(raw, "authority_ranking", "authorityRanking")
    if ranking is not None:
        if isinstance(ranking, str) or not isinstance(ranking, (list, tuple)):
            raise ConfigError("'authority_ranking' must be a list of categories, highest authority first")
        kwargs["authority_ranking"] = tuple(str(c) for c in ranking)

    return RunConfig(**kwargs)


def _parse_thresholds(raw: dict[str, Any]) -> HealthThresholds:
    kwargs: dict[str, int] = {}
    for key, camel in (
        ("warning_blockers", "warningBlockers"),
        ("critical_blockers", "criticalBlockers"),
        ("warning_failures", "warningFailures"),
        ("critical_failures", "criticalFailures"),
    ):
        value = _pick(raw, key, camel)
        if value is not None:
            kwargs[key] = _positive_int(value, f"health_thresholds.{key}")
    thresholds = HealthThresholds(**kwargs)
    if thresholds.critical_blockers < thresholds.warning_blockers:
        raise ConfigError("'critical_blockers' must be >= 'warning_blockers'")
    if thresholds.critical_failures < thresholds.warning_failures:
        raise ConfigError("'critical_failures' must be >= 'warning_failures'")
    return thresholds


def load_run_config(project_dir: Path) -> tuple[RunConfig, str | None]:
    """Load the optional run config file.

    Args:
        project_dir: Directory holding the ``.conductor/`` state directory.

    Returns:
        A tuple of `(config, error_message)`. If the file is missing, returns
        the defaults and `None`; a malformed file yields the defaults and an
        error message.
    """
    project_dir = project_dir.resolve()
    path = project_dir / STATE_DIR_NAME / CONFIG_FILE
    data, err = _load_data_with_error(path, {})
    if err:
        return RunConfig(), err
    try:
        return get_run_config(data), None
    except ConfigError as exc:
        return RunConfig(), f"{path.name}: {exc}"
