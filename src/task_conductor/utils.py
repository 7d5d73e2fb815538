from __future__ import annotations

from datetime import datetime, timezone


def _now_iso() -> str:
    """UTC now as an ISO-8601 string; every persisted timestamp uses this."""
    return datetime.now(timezone.utc).isoformat()
