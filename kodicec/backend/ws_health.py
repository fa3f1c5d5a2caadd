"""Device reachability tracking primitives."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import time
from typing import Any


class DeviceStatus(str, Enum):
    """Reachability of the Kodi instance as seen by the supervisor."""

    UNKNOWN = "unknown"
    ONLINE = "online"
    OFFLINE = "offline"


class StatusDetail(str, Enum):
    """Why the device is offline."""

    NONE = "none"
    CONFIGURATION_ERROR = "configuration_error"
    COMMUNICATION_ERROR = "communication_error"


@dataclass(frozen=True, slots=True)
class StatusChange:
    """Status update delivered to listeners."""

    status: DeviceStatus
    detail: StatusDetail = StatusDetail.NONE
    reason: str | None = None


@dataclass
class ReachabilityTracker:
    """Track reachability status, its cause, and health-check timestamps."""

    status: DeviceStatus = DeviceStatus.UNKNOWN
    detail: StatusDetail = StatusDetail.NONE
    reason: str | None = None
    online_since: float | None = None
    last_status_at: float | None = None
    last_check_at: float | None = None
    last_success_at: float | None = None
    failure_streak: int = 0

    def update_status(
        self,
        status: DeviceStatus,
        *,
        detail: StatusDetail = StatusDetail.NONE,
        reason: str | None = None,
        timestamp: float | None = None,
    ) -> bool:
        """Update the tracked status and return True when anything changed."""

        now = timestamp or time.time()
        if status is not DeviceStatus.OFFLINE:
            detail = StatusDetail.NONE
            reason = None

        changed = (
            status != self.status or detail != self.detail or reason != self.reason
        )
        if status != self.status:
            self.last_status_at = now
        self.status = status
        self.detail = detail
        self.reason = reason

        if status is DeviceStatus.ONLINE:
            if self.online_since is None:
                self.online_since = now
        else:
            self.online_since = None
        return changed

    def mark_check(self, *, success: bool, timestamp: float | None = None) -> None:
        """Record the outcome of a connect attempt or health check."""

        now = timestamp or time.time()
        self.last_check_at = now
        if success:
            self.last_success_at = now
            self.failure_streak = 0
        else:
            self.failure_streak += 1

    def online_minutes(self, *, now: float | None = None) -> int:
        """Return the number of minutes spent online."""

        if self.online_since is None:
            return 0
        current = now or time.time()
        if current <= self.online_since:
            return 0
        return int((current - self.online_since) / 60)

    def as_change(self) -> StatusChange:
        """Return the current state as a listener payload."""

        return StatusChange(self.status, self.detail, self.reason)

    def snapshot(self, *, now: float | None = None) -> dict[str, Any]:
        """Return a serializable snapshot of the tracker state."""

        current = now or time.time()
        return {
            "status": self.status.value,
            "detail": self.detail.value,
            "reason": self.reason,
            "online_since": self.online_since,
            "online_minutes": self.online_minutes(now=current),
            "last_status_at": self.last_status_at,
            "last_check_at": self.last_check_at,
            "last_success_at": self.last_success_at,
            "failure_streak": self.failure_streak,
        }


__all__ = ["DeviceStatus", "ReachabilityTracker", "StatusChange", "StatusDetail"]
