"""
Service layer for the Visit Agenda engine.

Provides the resolution pipeline:
- Temporal normalization (dates, times, durations)
- Participant directory index and fuzzy name matching
- Extractor payload parsing
- Draft building, availability search, intent resolution and commits
- Request-scoped orchestration (AgendaService)
"""

from visit_agenda.services.temporal import (
    TemporalNormalizer,
    TemporalResult,
    normalize,
    parse_duration,
    parse_time,
)

from visit_agenda.services.matching import (
    classify,
    levenshtein,
    match,
    normalize_name,
    score,
)

from visit_agenda.services.directory import (
    ParticipantDirectory,
    coerce_contact_id,
    contact_from_row,
)

from visit_agenda.services.extraction import (
    ExtractionPayload,
    FreeformPayload,
    StructuredPayload,
    classify_payload,
    parse_key_value_block,
    to_raw_extraction,
)

from visit_agenda.services.intent import (
    IntentResolver,
    classify_intent,
)

from visit_agenda.services.draft_builder import EventDraftBuilder
from visit_agenda.services.availability import AvailabilityResolver
from visit_agenda.services.commit import CommitGateway

from visit_agenda.services.agenda_service import (
    AgendaCollaborators,
    AgendaService,
    Deadline,
)

__all__ = [
    # Temporal
    "TemporalNormalizer",
    "TemporalResult",
    "normalize",
    "parse_duration",
    "parse_time",
    # Matching
    "classify",
    "levenshtein",
    "match",
    "normalize_name",
    "score",
    # Directory
    "ParticipantDirectory",
    "coerce_contact_id",
    "contact_from_row",
    # Extraction
    "ExtractionPayload",
    "FreeformPayload",
    "StructuredPayload",
    "classify_payload",
    "parse_key_value_block",
    "to_raw_extraction",
    # Intent
    "IntentResolver",
    "classify_intent",
    # Pipeline
    "EventDraftBuilder",
    "AvailabilityResolver",
    "CommitGateway",
    # Orchestration
    "AgendaCollaborators",
    "AgendaService",
    "Deadline",
]
