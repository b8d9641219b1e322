"""
Intent classification and event location for update/cancel.

Intent is rule-based on the dictated text: cancellation keywords win over
modification keywords, anything else is a creation. Generic verbs such as
"changer" or "déplacer" only mean an update when they bear on the
appointment or its time ("changer l'heure", "le rendez-vous est déplacé");
"changer le pansement" is care vocabulary.
"""

import logging
import re
from typing import Optional

from visit_agenda.exceptions import EventNotFound
from visit_agenda.integrations.base import EventLookupService
from visit_agenda.integrations.webhooks.exceptions import WebhookError
from visit_agenda.models import ContactId, EventMatchQuery, Intent
from visit_agenda.services.directory import coerce_contact_id
from visit_agenda.services.text import fold

logger = logging.getLogger(__name__)

CANCEL_KEYWORDS = ("annul", "supprim", "cancel")
# Always about timing.
RESCHEDULE_KEYWORDS = ("report", "decal", "reschedul", "postpon")
# Need an appointment or time word as object or subject.
UPDATE_KEYWORDS = ("deplac", "chang", "modifi", "move")
UPDATE_PARTICIPLES = ("deplace", "change", "modifie", "moved", "changed", "modified")

APPOINTMENT_WORDS = (
    r"rdv", r"rendez[- ]vous", r"visites?", r"passages?", r"seances?", r"consultations?",
    r"heures?", r"horaires?", r"dates?", r"creneaux?", r"creneau",
    r"appointments?", r"visits?", r"meetings?", r"time", r"slot",
)

_APPOINTMENT = r"(?:" + "|".join(APPOINTMENT_WORDS) + r")\b"

_CANCEL_RE = re.compile(r"\b(?:" + "|".join(CANCEL_KEYWORDS) + r")")
_RESCHEDULE_RE = re.compile(r"\b(?:" + "|".join(RESCHEDULE_KEYWORDS) + r")")
# "déplace le rdv", "change l'heure du rendez-vous"
_UPDATE_OBJECT_RE = re.compile(
    r"\b(?:" + "|".join(UPDATE_KEYWORDS) + r")\w*\W+(?:\w+\W+){0,2}?" + _APPOINTMENT
)
# "le rendez-vous de Jean est déplacé"
_UPDATE_SUBJECT_RE = re.compile(
    r"\b" + _APPOINTMENT + r"(?:\W+\w+){0,4}?\W+(?:" + "|".join(UPDATE_PARTICIPLES) + r")\b"
)

NOT_FOUND_MESSAGE = "ID de l'événement original non trouvé"


def classify_intent(text: str, hint: Optional[str] = None) -> Intent:
    """
    Classify dictated text as create, update or cancel.

    The extractor's hint is only used when the text itself is empty.
    """
    folded = fold(text or "")
    if not folded and hint:
        folded = fold(hint)

    if _CANCEL_RE.search(folded):
        return "cancel"
    if (
        _RESCHEDULE_RE.search(folded)
        or _UPDATE_OBJECT_RE.search(folded)
        or _UPDATE_SUBJECT_RE.search(folded)
    ):
        return "update"
    return "create"


class IntentResolver:
    """Identifies the existing event an update or cancel refers to."""

    def __init__(self, lookup: EventLookupService):
        self.lookup = lookup

    async def locate(
        self,
        event_id: Optional[ContactId] = None,
        query: Optional[EventMatchQuery] = None,
    ) -> ContactId:
        """
        Resolve the target event id.

        A supplied event_id is used as-is. Otherwise the lookup service is
        asked for events at query.original_start with query.participant_ids;
        exactly one distinct id must come back.

        Raises:
            EventNotFound: No id and no query, lookup failure, no match,
                or several matches
        """
        coerced = coerce_contact_id(event_id)
        if coerced is not None:
            return coerced

        if query is None:
            raise EventNotFound("Aucun identifiant ni critère de recherche pour l'événement")

        try:
            found = await self.lookup.find_events(query)
        except WebhookError as e:
            logger.warning(f"Event lookup failed: {e}")
            raise EventNotFound(NOT_FOUND_MESSAGE, original_error=e) from e

        distinct: list[ContactId] = []
        for candidate in found:
            if candidate not in distinct:
                distinct.append(candidate)

        if not distinct:
            logger.info(
                f"No event at {query.original_start.isoformat()} "
                f"for participants {query.participant_ids}"
            )
            raise EventNotFound(NOT_FOUND_MESSAGE)

        if len(distinct) > 1:
            raise EventNotFound(
                f"Plusieurs événements correspondent ({len(distinct)})",
                candidates=distinct,
            )

        return distinct[0]
