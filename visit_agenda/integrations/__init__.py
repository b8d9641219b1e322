"""
External service integrations for the Visit Agenda engine.

Provides the collaborator protocols the engine depends on.
"""

from visit_agenda.integrations.base import (
    AvailabilityService,
    CalendarMutationService,
    ContactCreationService,
    DirectoryService,
    EventLookupService,
    ExtractionService,
)

__all__ = [
    "AvailabilityService",
    "CalendarMutationService",
    "ContactCreationService",
    "DirectoryService",
    "EventLookupService",
    "ExtractionService",
]
