"""
Availability search results.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal, Optional

AttemptOutcome = Literal["free", "busy", "timeout", "error"]


@dataclass(frozen=True)
class AvailabilityAttempt:
    """One CHECK of the availability loop."""

    number: int
    start: datetime
    stop: datetime
    outcome: AttemptOutcome
    detail: Optional[str] = None

    @property
    def is_conflict(self) -> bool:
        return self.outcome != "free"


@dataclass
class AvailabilityResult:
    """
    Outcome of the bounded availability search.

    On success, final_start/final_stop is the first free window found.
    On failure, it equals the requested window.
    """

    requested_start: datetime
    requested_stop: datetime
    final_start: datetime
    final_stop: datetime
    attempts: int
    success: bool
    message: str
    history: list[AvailabilityAttempt] = field(default_factory=list)

    @property
    def suggestion_differs(self) -> bool:
        """True when the free slot is not the requested one."""
        return self.success and (
            self.final_start != self.requested_start
            or self.final_stop != self.requested_stop
        )

    @property
    def exhausted(self) -> bool:
        return not self.success
