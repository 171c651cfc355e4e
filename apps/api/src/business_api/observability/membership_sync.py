"""In-process telemetry for membership counter synchronisation."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timezone
from threading import Lock
from typing import Dict


@dataclass
class MembershipSyncSnapshot:
    totals: Dict[str, int]
    last_success_at: datetime | None
    last_failure_at: datetime | None
    last_error: str | None

    def as_dict(self) -> Dict[str, object]:
        return {
            "totals": dict(self.totals),
            "lastSuccessAt": self.last_success_at.isoformat() if self.last_success_at else None,
            "lastFailureAt": self.last_failure_at.isoformat() if self.last_failure_at else None,
            "lastError": self.last_error,
        }


class MembershipSyncObservabilityStore:
    """Counts pushes to the user-service so readiness can report drift risk."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._totals: Dict[str, int] = defaultdict(int)
        self._last_success_at: datetime | None = None
        self._last_failure_at: datetime | None = None
        self._last_error: str | None = None

    def record_success(self, *, attempts: int) -> None:
        with self._lock:
            self._totals["succeeded"] += 1
            if attempts > 1:
                self._totals["retried"] += 1
            self._last_success_at = datetime.now(timezone.utc)

    def record_failure(self, error: str) -> None:
        with self._lock:
            self._totals["failed"] += 1
            self._last_failure_at = datetime.now(timezone.utc)
            self._last_error = error

    def snapshot(self) -> MembershipSyncSnapshot:
        with self._lock:
            return MembershipSyncSnapshot(
                totals=dict(self._totals),
                last_success_at=self._last_success_at,
                last_failure_at=self._last_failure_at,
                last_error=self._last_error,
            )

    def reset(self) -> None:
        with self._lock:
            self._totals.clear()
            self._last_success_at = None
            self._last_failure_at = None
            self._last_error = None


_STORE = MembershipSyncObservabilityStore()


def get_membership_sync_store() -> MembershipSyncObservabilityStore:
    return _STORE


__all__ = ["MembershipSyncObservabilityStore", "MembershipSyncSnapshot", "get_membership_sync_store"]
