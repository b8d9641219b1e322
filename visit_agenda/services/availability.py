"""
Availability resolver.

Bounded search for a free window:

    CHECK --free--> SUCCESS
    CHECK --conflict--> SEARCH_NEXT --> CHECK   (while attempts < max_attempts)
    CHECK --conflict, attempts == max_attempts--> FAILURE

A timeout or a collaborator error counts as a conflict and consumes one
attempt. Every CHECK is recorded in the result history.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Optional

from visit_agenda.config import Settings
from visit_agenda.exceptions import AgendaError
from visit_agenda.integrations.base import AvailabilityService
from visit_agenda.integrations.webhooks.exceptions import WebhookError
from visit_agenda.models import (
    AttemptOutcome,
    AvailabilityAttempt,
    AvailabilityResult,
    ContactId,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_CALL_TIMEOUT = 5.0
DEFAULT_WORKING_HOURS = (8, 20)


class AvailabilityResolver:
    """
    Finds the first free window at or after a requested one.

    Step policy: shift by step_minutes, or by the event duration when unset
    (next back-to-back slot). With working hours, a window that would end
    after the end hour moves to the start hour of the next day.
    """

    def __init__(
        self,
        service: AvailabilityService,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        step_minutes: Optional[int] = None,
        per_call_timeout: float = DEFAULT_CALL_TIMEOUT,
        working_hours: Optional[tuple[int, int]] = DEFAULT_WORKING_HOURS,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.service = service
        self.max_attempts = max_attempts
        self.step_minutes = step_minutes
        self.per_call_timeout = per_call_timeout
        self.working_hours = working_hours

    @classmethod
    def from_settings(cls, service: AvailabilityService, settings: Settings) -> "AvailabilityResolver":
        return cls(
            service,
            max_attempts=settings.availability_max_attempts,
            step_minutes=settings.availability_step_minutes,
            per_call_timeout=settings.availability_call_timeout,
            working_hours=settings.working_hours,
        )

    async def resolve(
        self,
        participant_ids: list[ContactId],
        start: datetime,
        stop: datetime,
        max_attempts: Optional[int] = None,
    ) -> AvailabilityResult:
        """
        Search for a free window for all participants.

        Args:
            participant_ids: Contacts that must all be free
            start: Requested start
            stop: Requested stop (after start)
            max_attempts: Override of the configured attempt budget

        Returns:
            AvailabilityResult; on failure the final window is the requested one

        Raises:
            ValueError: If stop is not after start
        """
        if stop <= start:
            raise ValueError("stop must be after start")

        limit = max(1, max_attempts or self.max_attempts)

        if not participant_ids:
            return AvailabilityResult(
                requested_start=start,
                requested_stop=stop,
                final_start=start,
                final_stop=stop,
                attempts=0,
                success=True,
                message="Aucun participant à vérifier",
            )

        duration = stop - start
        step = timedelta(minutes=self.step_minutes) if self.step_minutes else duration
        window_start, window_stop = start, stop
        history: list[AvailabilityAttempt] = []

        while len(history) < limit:
            number = len(history) + 1
            outcome, detail = await self._check(participant_ids, window_start, window_stop)
            history.append(
                AvailabilityAttempt(
                    number=number,
                    start=window_start,
                    stop=window_stop,
                    outcome=outcome,
                    detail=detail,
                )
            )
            logger.info(
                f"Availability attempt {number}/{limit} "
                f"{window_start.isoformat()} -> {outcome}"
            )

            if outcome == "free":
                if number == 1:
                    message = "Créneau disponible"
                else:
                    message = f"Créneau libre trouvé après {number} tentatives"
                return AvailabilityResult(
                    requested_start=start,
                    requested_stop=stop,
                    final_start=window_start,
                    final_stop=window_stop,
                    attempts=number,
                    success=True,
                    message=message,
                    history=history,
                )

            window_start = self._next_start(window_start, duration, step)
            window_stop = window_start + duration

        return AvailabilityResult(
            requested_start=start,
            requested_stop=stop,
            final_start=start,
            final_stop=stop,
            attempts=len(history),
            success=False,
            message=f"Aucun créneau disponible après {len(history)} tentatives",
            history=history,
        )

    async def _check(
        self,
        participant_ids: list[ContactId],
        start: datetime,
        stop: datetime,
    ) -> tuple[AttemptOutcome, Optional[str]]:
        try:
            free = await asyncio.wait_for(
                self.service.is_available(participant_ids, start, stop),
                timeout=self.per_call_timeout,
            )
        except asyncio.TimeoutError:
            return "timeout", f"No answer within {self.per_call_timeout}s"
        except (WebhookError, AgendaError) as e:
            logger.warning(f"Availability check failed: {e}")
            return "error", str(e)

        return ("free", None) if free else ("busy", None)

    def _next_start(self, start: datetime, duration: timedelta, step: timedelta) -> datetime:
        candidate = start + step
        if self.working_hours is None:
            return candidate

        start_hour, end_hour = self.working_hours
        # end_hour may be 24 (midnight closing)
        midnight = candidate.replace(hour=0, minute=0, second=0, microsecond=0)
        day_start = midnight + timedelta(hours=start_hour)
        day_end = midnight + timedelta(hours=end_hour)

        if candidate < day_start:
            return day_start
        if candidate + duration > day_end:
            return day_start + timedelta(days=1)
        return candidate
