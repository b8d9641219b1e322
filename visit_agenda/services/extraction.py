"""
Extraction payload parsing.

The extractor is an LLM behind a webhook; its answer is untrusted and comes
in several shapes:
- a JSON object (flat or nested under 'event' / 'event_match')
- an array whose first object is the answer
- JSON wrapped in a ```json fence or embedded in prose
- a "- key: value" text block

classify_payload() turns any of these into a tagged union and
to_raw_extraction() is the one place that turns that union into a
RawExtraction the draft builder consumes.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Literal, Optional, Union

from visit_agenda.models import EventMatchHint, RawExtraction
from visit_agenda.services.text import fold

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StructuredPayload:
    """Extractor answer that decoded to a JSON object."""

    data: dict[str, Any]
    kind: Literal["structured"] = "structured"


@dataclass(frozen=True)
class FreeformPayload:
    """Extractor answer that is plain text."""

    text: str
    kind: Literal["freeform"] = "freeform"


ExtractionPayload = Union[StructuredPayload, FreeformPayload]


# =============================================================================
# Key aliases (folded, lowercase, no accents)
# =============================================================================

KEY_ALIASES: dict[str, str] = {
    # participants
    "participants": "participants",
    "participant": "participants",
    "personnes": "participants",
    "personne": "participants",
    "invites": "participants",
    "attendees": "participants",
    "avec": "participants",
    "with": "participants",
    # date / time
    "date": "start_date",
    "jour": "start_date",
    "day": "start_date",
    "start_date": "start_date",
    "date de debut": "start_date",
    "heure": "start_time",
    "time": "start_time",
    "start_time": "start_time",
    "heure de debut": "start_time",
    "debut": "start_time",
    "start": "start",
    "fin": "end_time",
    "heure de fin": "end_time",
    "end": "end_time",
    "end_time": "end_time",
    "stop": "stop",
    "duree": "duration_minutes",
    "duration": "duration_minutes",
    "duration_minutes": "duration_minutes",
    # content
    "titre": "title",
    "title": "title",
    "nom": "title",
    "name": "title",
    "objet": "description",
    "motif": "description",
    "subject": "description",
    "description": "description",
    "notes": "description",
    "lieu": "location",
    "adresse": "location",
    "address": "location",
    "location": "location",
    "place": "location",
    "intent": "intent",
    "intention": "intent",
    "action": "intent",
}

LIST_KEYS = frozenset({"participants"})

NULL_VALUES = frozenset({
    "", "-", "--", "null", "none", "nil", "n/a", "na", "nan", "undefined",
    "aucun", "aucune", "non", "non specifie", "non specifiee", "inconnu", "?",
})

_WRAPPER_KEYS = ("output", "text", "response", "content", "message", "result")

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)
_BULLET_RE = re.compile(r"^\s*(?:[-*•·]|\d+[.)])\s+")
_KEY_VALUE_RE = re.compile(r"^\*{0,2}([^:*]{1,40}?)\*{0,2}\s*:\s*\*{0,2}\s*(.*)$")
_LIST_SPLIT_RE = re.compile(r"\s*(?:,|;|&|\bet\b|\band\b)\s*")


# =============================================================================
# Classification
# =============================================================================


def classify_payload(raw: Any) -> Optional[ExtractionPayload]:
    """
    Tag a raw extractor answer.

    Returns:
        StructuredPayload, FreeformPayload, or None for an empty answer
    """
    if raw is None:
        return None

    if isinstance(raw, dict):
        if len(raw) == 1:
            (key, value), = raw.items()
            if key in _WRAPPER_KEYS and isinstance(value, str):
                return classify_payload(value)
        return StructuredPayload(data=raw)

    if isinstance(raw, list):
        for item in raw:
            if isinstance(item, dict):
                return classify_payload(item)
        texts = [item for item in raw if isinstance(item, str) and item.strip()]
        return classify_payload("\n".join(texts)) if texts else None

    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")

    text = str(raw).strip()
    if not text:
        return None

    decoded = _decode_json_text(text)
    if isinstance(decoded, (dict, list)):
        return classify_payload(decoded)
    return FreeformPayload(text=text)


def _decode_json_text(text: str) -> Any:
    """Decode JSON from a bare string, a fenced block, or the first {...} span."""
    candidates = [text]
    fence = _FENCE_RE.search(text)
    if fence:
        candidates.append(fence.group(1).strip())
    first, last = text.find("{"), text.rfind("}")
    if 0 <= first < last:
        candidates.append(text[first:last + 1])

    for candidate in candidates:
        try:
            return json.loads(candidate)
        except ValueError:
            continue
    return None


# =============================================================================
# Key/value text fallback
# =============================================================================


def _clean_value(value: str) -> Optional[str]:
    cleaned = value.strip().strip("*").strip().strip("\"'").strip()
    if fold(cleaned) in NULL_VALUES:
        return None
    return cleaned


def split_names(value: Union[str, list, None]) -> list[str]:
    """Split 'Jean, Marie et Paul' (or a list) into individual names."""
    if value is None:
        return []
    items = value if isinstance(value, list) else [value]
    names: list[str] = []
    for item in items:
        if isinstance(item, dict):
            item = item.get("name") or item.get("nom") or ""
        if not isinstance(item, str):
            continue
        for part in _LIST_SPLIT_RE.split(item):
            cleaned = _clean_value(part)
            if cleaned:
                names.append(cleaned)
    return names


def parse_key_value_block(text: str) -> dict[str, Any]:
    """
    Parse a loosely formatted "- key: value" block.

    Tolerates '-', '*', '•' and numbered bullets, **bold** keys, lines
    without bullets, null-like values and stray prose (ignored). Under a
    list key with an empty value, following bullet lines are list items.
    The first non-null value of a scalar key wins; list keys accumulate.

    Returns:
        Dict keyed by canonical names ('participants', 'start_date', ...);
        unknown keys are kept folded.
    """
    result: dict[str, Any] = {}
    current_list: Optional[str] = None

    for raw_line in (text or "").splitlines():
        if not raw_line.strip():
            continue

        is_bullet = bool(_BULLET_RE.match(raw_line))
        line = _BULLET_RE.sub("", raw_line, count=1).strip()

        match = _KEY_VALUE_RE.match(line)
        key = None
        if match:
            folded_key = fold(match.group(1)).strip()
            key = KEY_ALIASES.get(folded_key, folded_key if re.fullmatch(r"[a-z_]+", folded_key) else None)

        if key is None:
            if current_list and is_bullet:
                result.setdefault(current_list, []).extend(split_names(line))
            continue

        value = match.group(2)
        if key in LIST_KEYS:
            result.setdefault(key, []).extend(split_names(value))
            current_list = key
            continue

        current_list = None
        cleaned = _clean_value(value)
        if cleaned is None:
            result.setdefault(key, None)
        elif result.get(key) is None:
            result[key] = cleaned
        else:
            logger.debug(f"Ignoring duplicate key '{key}' in extractor text")

    return result


# =============================================================================
# Conversion
# =============================================================================


def _text(value: Any) -> Optional[str]:
    if value is None or value is False:
        return None
    if isinstance(value, (int, float)):
        return str(value)
    if not isinstance(value, str):
        return None
    return _clean_value(value)


def _join_date_time(date_text: Optional[str], time_text: Optional[str]) -> Optional[str]:
    parts = [part for part in (date_text, time_text) if part]
    return " ".join(parts) or None


def _match_hint(data: Any) -> EventMatchHint:
    if not isinstance(data, dict):
        return EventMatchHint()
    keywords = data.get("keywords") or []
    if isinstance(keywords, str):
        keywords = split_names(keywords)
    return EventMatchHint(
        original_start=_text(data.get("original_start")),
        original_stop=_text(data.get("original_stop")),
        keywords=[k for k in keywords if isinstance(k, str) and k.strip()],
        participants=split_names(data.get("participants")),
    )


_KNOWN_KEYS = frozenset({
    "participants", "start", "stop", "start_date", "start_time", "end_time",
    "duration_minutes", "title", "description", "location", "intent",
    "event", "event_match",
})


def _from_mapping(data: dict[str, Any], payload_kind: str) -> RawExtraction:
    # Nested shape: {intent, event: {...}, event_match: {...}}
    event = data.get("event") if isinstance(data.get("event"), dict) else {}
    canonical: dict[str, Any] = {}
    for source in (data, event):
        for key, value in source.items():
            if key in ("event", "event_match"):
                continue
            canonical_key = KEY_ALIASES.get(fold(str(key)), key)
            canonical.setdefault(canonical_key, value)

    start_text = _text(canonical.get("start")) or _join_date_time(
        _text(canonical.get("start_date")), _text(canonical.get("start_time"))
    )
    stop_text = _text(canonical.get("stop")) or _text(canonical.get("end_time"))

    return RawExtraction(
        payload_kind=payload_kind,
        participants=split_names(canonical.get("participants")),
        start_text=start_text,
        stop_text=stop_text,
        duration_text=_text(canonical.get("duration_minutes")),
        title=_text(canonical.get("title")),
        description=_text(canonical.get("description")) or "",
        location=_text(canonical.get("location")) or "",
        intent_hint=_text(canonical.get("intent")),
        event_match=_match_hint(data.get("event_match")),
        extra={k: v for k, v in canonical.items() if k not in _KNOWN_KEYS},
    )


def to_raw_extraction(payload: Optional[ExtractionPayload]) -> RawExtraction:
    """Convert a tagged extractor payload into a RawExtraction."""
    if payload is None:
        return RawExtraction(payload_kind="empty")

    if payload.kind == "structured":
        return _from_mapping(payload.data, "structured")

    parsed = parse_key_value_block(payload.text)
    if not parsed:
        return RawExtraction(payload_kind="freeform", extra={"text": payload.text})
    return _from_mapping(parsed, "freeform")
