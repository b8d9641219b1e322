"""
Event draft builder.

Turns dictated text into an EventDraft:
1. Ask the extractor for a best-effort structured guess (never fatal)
2. Convert its answer through the single payload conversion point
3. Resolve participant mentions against the directory
4. Normalize start/stop/duration
5. Classify the intent and prepare the lookup key for update/cancel

Every gap becomes a warning on the draft; nothing here raises on bad input.
"""

import logging
from datetime import date, datetime
from typing import Any, Optional

from visit_agenda.config import Settings, get_settings
from visit_agenda.exceptions import ExtractionUnavailable
from visit_agenda.integrations.base import ExtractionService
from visit_agenda.models import EventDraft, EventMatchQuery, ParticipantMatch, RawExtraction
from visit_agenda.services.directory import ParticipantDirectory
from visit_agenda.services.extraction import classify_payload, to_raw_extraction
from visit_agenda.services.intent import classify_intent
from visit_agenda.services.matching import classify, normalize_name
from visit_agenda.services.temporal import TemporalNormalizer, TemporalResult

logger = logging.getLogger(__name__)

WARNING_EXTRACTION_UNAVAILABLE = "Extraction indisponible, analyse locale du texte"
WARNING_NO_PARTICIPANTS = "Aucun participant détecté"
WARNING_NO_LOCATION = "Lieu non spécifié"
WARNING_DUPLICATE = "Participant en double fusionné: {name}"
WARNING_AMBIGUOUS = "Participant ambigu: {name}"
WARNING_UNMATCHED = "Participant inconnu: {name}"
WARNING_NO_ORIGINAL_EVENT = "Événement d'origine non identifié"
WARNING_ORIGINAL_HOUR_MISSING = "Heure de l'événement d'origine manquante (le {day:%d/%m/%Y})"

MAX_TITLE_LENGTH = 80


class EventDraftBuilder:
    """
    Builds drafts from dictated text.

    Stateless apart from its configuration; safe to share within a request.
    """

    def __init__(
        self,
        extractor: Optional[ExtractionService] = None,
        settings: Optional[Settings] = None,
    ):
        self.extractor = extractor
        self.settings = settings or get_settings()

    async def build(
        self,
        raw_text: str,
        directory: ParticipantDirectory,
        reference_now: datetime,
    ) -> EventDraft:
        """
        Extract then build a draft.

        Args:
            raw_text: Dictated text
            directory: Contacts fetched for this request
            reference_now: Instant relative expressions resolve against

        Returns:
            EventDraft, possibly empty but always valid
        """
        raw_payload: Any = None
        extraction_failed = self.extractor is None

        if self.extractor is not None:
            try:
                raw_payload = await self.extractor.extract(raw_text, reference_now)
            except ExtractionUnavailable as e:
                logger.warning(f"Extractor unavailable, falling back to local parsing: {e}")
                extraction_failed = True

        draft = self.build_from_payload(raw_text, raw_payload, directory, reference_now)
        if extraction_failed:
            draft.warnings.insert(0, WARNING_EXTRACTION_UNAVAILABLE)
        return draft

    def build_from_payload(
        self,
        raw_text: str,
        raw_payload: Any,
        directory: ParticipantDirectory,
        reference_now: datetime,
    ) -> EventDraft:
        """Build a draft from an extractor answer already in hand."""
        extraction = to_raw_extraction(classify_payload(raw_payload))
        logger.debug(
            f"Extraction kind={extraction.payload_kind} "
            f"participants={len(extraction.participants)} start={extraction.start_text!r}"
        )

        draft = EventDraft(
            source_text=raw_text,
            raw_extraction=extraction,
            description=extraction.description,
            location=extraction.location,
            title=self._title(extraction),
        )

        self._resolve_participants(draft, extraction, directory)
        timing = self._resolve_time(draft, extraction, raw_text, reference_now)

        if not draft.location:
            draft.add_warning(WARNING_NO_LOCATION)

        draft.intent = classify_intent(raw_text, extraction.intent_hint)
        if draft.intent != "create":
            draft.event_match = self._match_query(draft, extraction, reference_now, timing)
            if draft.event_match is None:
                draft.add_warning(WARNING_NO_ORIGINAL_EVENT)

        return draft

    def _title(self, extraction: RawExtraction) -> str:
        title = extraction.title or extraction.description
        if not title:
            return self.settings.default_event_title
        title = " ".join(title.split())
        if len(title) > MAX_TITLE_LENGTH:
            title = title[:MAX_TITLE_LENGTH - 1].rstrip() + "…"
        return title

    def _resolve_participants(
        self,
        draft: EventDraft,
        extraction: RawExtraction,
        directory: ParticipantDirectory,
    ) -> None:
        seen_names: set[str] = set()

        for name in extraction.participants:
            key = normalize_name(name)
            if not key:
                continue
            if key in seen_names:
                draft.add_warning(WARNING_DUPLICATE.format(name=name))
                continue
            seen_names.add(key)

            ranked = directory.match(name, top_n=self.settings.match_top_n)
            participant = classify(
                name,
                ranked,
                match_threshold=self.settings.match_threshold,
                ambiguity_margin=self.settings.ambiguity_margin,
            )

            if participant.is_matched and participant.resolved_id in draft.participant_ids:
                draft.add_warning(WARNING_DUPLICATE.format(name=name))
                continue

            self._warn_unresolved(draft, participant)
            draft.participants.append(participant)

        if not draft.participants:
            draft.add_warning(WARNING_NO_PARTICIPANTS)

    @staticmethod
    def _warn_unresolved(draft: EventDraft, participant: ParticipantMatch) -> None:
        if participant.status == "ambiguous":
            draft.add_warning(WARNING_AMBIGUOUS.format(name=participant.input_name))
        elif participant.status == "unmatched":
            draft.add_warning(WARNING_UNMATCHED.format(name=participant.input_name))

    def _normalizer(self, reference_now: datetime) -> TemporalNormalizer:
        return TemporalNormalizer(
            reference_now,
            locale=self.settings.locale,
            default_duration_minutes=self.settings.default_duration_minutes,
        )

    def _resolve_time(
        self,
        draft: EventDraft,
        extraction: RawExtraction,
        raw_text: str,
        reference_now: datetime,
    ) -> TemporalResult:
        # Without any extracted start, the dictated text itself is parsed.
        start_fragment = extraction.start_text or raw_text
        result = self._normalizer(reference_now).resolve(
            start_fragment,
            stop_fragment=extraction.stop_text,
            duration_fragment=extraction.duration_text,
        )

        draft.start = result.start
        draft.stop = result.stop
        for warning in result.warnings:
            draft.add_warning(warning)
        return result

    def _match_query(
        self,
        draft: EventDraft,
        extraction: RawExtraction,
        reference_now: datetime,
        timing: TemporalResult,
    ) -> Optional[EventMatchQuery]:
        """
        Lookup key for the event to change.

        The lookup needs the exact original start: a date without an hour
        yields no query and a warning naming the date.
        """
        original_start: Optional[datetime] = None
        day_only: Optional[date] = None
        hint = extraction.event_match

        if hint.original_start:
            original = self._normalizer(reference_now).resolve(hint.original_start)
            original_start = original.start
            day_only = original.day
        if original_start is None and draft.intent == "cancel":
            original_start = draft.start
            day_only = day_only or timing.day
        if original_start is None:
            if day_only is not None:
                draft.add_warning(WARNING_ORIGINAL_HOUR_MISSING.format(day=day_only))
            return None

        return EventMatchQuery(
            original_start=original_start,
            participant_ids=draft.participant_ids,
            keywords=hint.keywords or None,
        )
