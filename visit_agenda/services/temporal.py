"""
Temporal normalizer for dictated appointments.

Turns date/time/duration fragments ("demain à 14h pour 30 minutes",
"15 mars 2026 14h30", "2025-01-11 14:00", "de 9h à 10h") into absolute
datetimes relative to a reference instant.

Resolution rules:
- Missing year: nearest occurrence on or after the reference date
- Weekday names: next occurrence strictly after the reference date
- Time without date: reference date, or the next day if already past
- Stop precedence: explicit stop > start + duration > start + default

Pure: the same (fragment, reference_now, locale) always yields the same
result. Never raises; unresolved parts become warnings.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Optional, Union

from dateutil.parser import isoparse

from visit_agenda.services.text import fold

logger = logging.getLogger(__name__)

DEFAULT_DURATION_MINUTES = 60

WARNING_NO_TIME = "Date/heure non spécifiée"
WARNING_NO_HOUR = "Heure non spécifiée"
WARNING_DEFAULT_DURATION = "Durée non spécifiée => durée par défaut {minutes} min"
WARNING_STOP_BEFORE_START = "Heure de fin antérieure au début, ignorée"
WARNING_INVALID_DATE = "Date invalide: {text}"
WARNING_UNRESOLVED_STOP = "Heure de fin non reconnue: {text}"


# =============================================================================
# Locale tables (keys are accent-folded)
# =============================================================================

WEEKDAYS: dict[str, list[str]] = {
    "fr": ["lundi", "mardi", "mercredi", "jeudi", "vendredi", "samedi", "dimanche"],
    "en": ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"],
}

MONTHS: dict[str, dict[str, int]] = {
    "fr": {
        "janvier": 1, "janv": 1,
        "fevrier": 2, "fevr": 2, "fev": 2,
        "mars": 3,
        "avril": 4, "avr": 4,
        "mai": 5,
        "juin": 6,
        "juillet": 7, "juil": 7,
        "aout": 8,
        "septembre": 9, "sept": 9,
        "octobre": 10, "oct": 10,
        "novembre": 11, "nov": 11,
        "decembre": 12, "dec": 12,
    },
    "en": {
        "january": 1, "jan": 1,
        "february": 2, "feb": 2,
        "march": 3, "mar": 3,
        "april": 4, "apr": 4,
        "may": 5,
        "june": 6, "jun": 6,
        "july": 7, "jul": 7,
        "august": 8, "aug": 8,
        "september": 9, "sep": 9, "sept": 9,
        "october": 10, "oct": 10,
        "november": 11, "nov": 11,
        "december": 12, "dec": 12,
    },
}

# Longest expressions first so "apres-demain" wins over "demain".
RELATIVE_DAYS: dict[str, list[tuple[str, int]]] = {
    "fr": [
        (r"apres[- ]?demain", 2),
        (r"aujourd'?hui", 0),
        (r"demain", 1),
    ],
    "en": [
        (r"(?:the\s+)?day\s+after\s+tomorrow", 2),
        (r"today", 0),
        (r"tomorrow", 1),
    ],
}

NEXT_WORD = {"fr": "prochain", "en": "next"}


# =============================================================================
# Patterns
# =============================================================================

_TIME = (
    r"(?:\d{1,2}\s*h(?:eures?)?\s*(?:\d{2})?"
    r"|\d{1,2}:\d{2}"
    r"|\d{1,2}(?::\d{2})?\s*(?:am|pm)"
    r"|midi|minuit|noon|midnight)"
)

_ISO_RE = re.compile(
    r"\b(\d{4})-(\d{2})-(\d{2})"
    r"(?:[t\s]+(\d{1,2}):(\d{2})(?::(\d{2}))?(?:\.\d+)?\s*(z|[+-]\d{2}:?\d{2})?)?"
)

# Spelled-out units only: "pour 14h" is a start time, "pour 2 heures" a duration.
_DURATION_WORDS = (
    r"half\s+an\s+hour"
    r"|an?\s+hour(?:\s+and\s+a\s+half)?"
    r"|\d+\s*hours?"
    r"|une?\s+demi[- ]?heure"
    r"|une\s+heure(?:\s+et\s+demie)?"
    r"|\d+\s*heures?(?:\s+et\s+demie)?"
    r"|\d+\s*min(?:utes?)?"
)
_DURATION_BODY = (
    r"(?:" + _DURATION_WORDS
    + r"|\d+\s*h\s*(?:et\s+demie|\d{1,2}(?:\s*min(?:utes?)?)?)?)"
)
_DURATION_INTRO_RE = re.compile(
    r"\b(?:pendant|durant|duree(?:\s+de)?|for|lasting)\s+(" + _DURATION_BODY + r")(?![\w:])"
    r"|\bpour\s+(" + _DURATION_WORDS + r")(?![\w:])"
)
_DURATION_BARE_RE = re.compile(
    r"\b(\d+\s*min(?:utes?)?|une?\s+demi[- ]?heure|half\s+an\s+hour)(?!\w)"
)

_RANGE_RE = re.compile(
    r"(?:\b(?:de|entre|from|between)\s+)?\b(" + _TIME + r")\s*"
    r"(?:-|a|au|jusqu'a|to|until|and|et)\s*(" + _TIME + r")(?!\w)"
)

_NUMERIC_DATE_RE = re.compile(r"\b(\d{1,2})[/.\-](\d{1,2})(?:[/.\-](\d{2,4}))?\b")

_SINGLE_TIME_RE = re.compile(
    r"\b(?:"
    r"(?P<hh>\d{1,2})\s*h(?:eures?)?\s*(?:(?P<hm>\d{2})|et\s+(?P<frac>demie|quart))?"
    r"|(?P<ch>\d{1,2}):(?P<cm>\d{2})(?::\d{2})?"
    r"|(?P<ah>\d{1,2})(?::(?P<am>\d{2}))?\s*(?P<ampm>am|pm)"
    r"|(?P<word>midi|minuit|noon|midnight)"
    r")(?!\w)"
)


@dataclass
class TemporalResult:
    """Normalized time window. Fields stay None when unresolved."""

    start: Optional[datetime] = None
    stop: Optional[datetime] = None
    duration_minutes: Optional[int] = None
    warnings: list[str] = field(default_factory=list)
    default_duration_applied: bool = False
    # date found without an hour
    day: Optional[date] = None

    @property
    def resolved(self) -> bool:
        return self.start is not None and self.stop is not None


@dataclass
class _Scan:
    """Raw pieces found in one fragment."""

    day: Optional[date] = None
    at: Optional[time] = None
    end_at: Optional[time] = None
    duration_minutes: Optional[int] = None
    warnings: list[str] = field(default_factory=list)


# =============================================================================
# Public helpers
# =============================================================================


def parse_duration(value: Union[str, int, float, None]) -> Optional[int]:
    """
    Parse a duration fragment into minutes.

    Accepts "30 min", "1h30", "2 heures", "une demi-heure", "1 heure et demie",
    "an hour", bare numbers (minutes) and numeric values.

    Returns:
        Positive number of minutes, or None
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value) if value > 0 else None

    text = fold(str(value))
    if not text:
        return None

    if re.search(r"demi[- ]?heure|half\s+an\s+hour", text):
        return 30

    half = 30 if re.search(r"et\s+demie|and\s+a\s+half", text) else 0

    match = re.search(r"(\d+)\s*h(?:eures?|ours?)?(?![a-z])\s*(\d{1,2})?", text)
    if match:
        minutes = int(match.group(1)) * 60 + int(match.group(2) or 0) + half
        return minutes or None

    if re.search(r"\b(?:une|an?)\s+(?:heure|hour)\b", text):
        return 60 + half

    match = re.search(r"(\d+)\s*min", text)
    if match:
        return int(match.group(1)) or None

    match = re.fullmatch(r"(\d+)", text)
    if match:
        return int(match.group(1)) or None

    return None


def parse_time(value: str) -> Optional[time]:
    """Parse "14h", "14h30", "14:30", "2pm", "midi" into a time."""
    if not value:
        return None
    match = _SINGLE_TIME_RE.search(fold(value))
    if not match:
        return None
    return _time_from_match(match)


def normalize(
    fragment: str,
    reference_now: datetime,
    locale: str = "fr",
    default_duration_minutes: int = DEFAULT_DURATION_MINUTES,
) -> TemporalResult:
    """
    Normalize a single free-form fragment into a start/stop window.

    Args:
        fragment: Dictated text or extractor field ("demain 14h pour 30 min")
        reference_now: Instant relative expressions are resolved against
        locale: "fr" or "en" vocabulary
        default_duration_minutes: Applied when only a start is found

    Returns:
        TemporalResult with warnings for anything unresolved
    """
    normalizer = TemporalNormalizer(
        reference_now,
        locale=locale,
        default_duration_minutes=default_duration_minutes,
    )
    return normalizer.resolve(fragment)


# =============================================================================
# Normalizer
# =============================================================================


class TemporalNormalizer:
    """
    Resolves date/time fragments against a fixed reference instant.

    Output datetimes carry the tzinfo of reference_now.
    """

    def __init__(
        self,
        reference_now: datetime,
        locale: str = "fr",
        default_duration_minutes: int = DEFAULT_DURATION_MINUTES,
    ):
        self.reference_now = reference_now
        self.locale = locale if locale in WEEKDAYS else "fr"
        self.default_duration_minutes = default_duration_minutes

    @property
    def today(self) -> date:
        return self.reference_now.date()

    def resolve(
        self,
        start_fragment: Optional[str],
        stop_fragment: Optional[str] = None,
        duration_fragment: Union[str, int, float, None] = None,
    ) -> TemporalResult:
        """
        Resolve a start fragment plus optional explicit stop and duration.

        A stop fragment carrying only a time is anchored on the start's date.
        """
        result = TemporalResult()

        scan = self._scan(start_fragment or "")
        result.warnings.extend(scan.warnings)

        if scan.at is not None:
            day = scan.day
            if day is None:
                day = self.today
                if self._combine(day, scan.at) < self.reference_now:
                    day = day + timedelta(days=1)
            result.start = self._combine(day, scan.at)
        elif scan.day is not None:
            result.day = scan.day
            result.warnings.append(WARNING_NO_HOUR)
        else:
            result.warnings.append(WARNING_NO_TIME)

        duration = parse_duration(duration_fragment)
        if duration is None:
            duration = scan.duration_minutes
        result.duration_minutes = duration

        if result.start is None:
            return result

        explicit_stop = self._explicit_stop(result, scan, stop_fragment)
        if explicit_stop is not None and explicit_stop <= result.start:
            result.warnings.append(WARNING_STOP_BEFORE_START)
            explicit_stop = None

        if explicit_stop is not None:
            result.stop = explicit_stop
            if result.duration_minutes is None:
                result.duration_minutes = int((explicit_stop - result.start).total_seconds() // 60)
        elif duration is not None:
            result.stop = result.start + timedelta(minutes=duration)
        else:
            result.stop = result.start + timedelta(minutes=self.default_duration_minutes)
            result.duration_minutes = self.default_duration_minutes
            result.default_duration_applied = True
            result.warnings.append(
                WARNING_DEFAULT_DURATION.format(minutes=self.default_duration_minutes)
            )

        return result

    def _explicit_stop(
        self,
        result: TemporalResult,
        scan: _Scan,
        stop_fragment: Optional[str],
    ) -> Optional[datetime]:
        if stop_fragment:
            stop_scan = self._scan(stop_fragment)
            if stop_scan.at is None and stop_scan.duration_minutes:
                return result.start + timedelta(minutes=stop_scan.duration_minutes)
            if stop_scan.at is None:
                result.warnings.append(WARNING_UNRESOLVED_STOP.format(text=stop_fragment))
                return None
            return self._combine(stop_scan.day or result.start.date(), stop_scan.at)
        if scan.end_at is not None:
            return self._combine(result.start.date(), scan.end_at)
        return None

    def _combine(self, day: date, at: time) -> datetime:
        return datetime.combine(day, at, tzinfo=self.reference_now.tzinfo)

    # -------------------------------------------------------------------------
    # Scanning
    # -------------------------------------------------------------------------

    def _scan(self, fragment: str) -> _Scan:
        """Extract date, time, end time and duration from one fragment."""
        scan = _Scan()
        text = fold(fragment)
        if not text:
            return scan

        text = self._scan_iso(text, scan)
        text = self._scan_duration(text, scan)
        text = self._scan_range(text, scan)
        if scan.day is None:
            text = self._scan_numeric_date(text, scan)
        if scan.day is None:
            text = self._scan_month_name(text, scan)
        if scan.day is None:
            text = self._scan_relative_day(text, scan)
        if scan.day is None:
            text = self._scan_weekday(text, scan)
        if scan.at is None:
            match = _SINGLE_TIME_RE.search(text)
            if match:
                scan.at = _time_from_match(match)

        return scan

    def _scan_iso(self, text: str, scan: _Scan) -> str:
        match = _ISO_RE.search(text)
        if not match:
            return text

        year, month, day, hour, minute, second, offset = match.groups()
        if hour is None:
            try:
                scan.day = date(int(year), int(month), int(day))
            except ValueError:
                scan.warnings.append(WARNING_INVALID_DATE.format(text=match.group(0)))
            return _consume(text, match)

        iso = f"{year}-{month}-{day}T{int(hour):02d}:{minute}:{second or '00'}"
        if offset:
            iso += "Z" if offset == "z" else offset
        try:
            parsed = isoparse(iso)
        except ValueError:
            scan.warnings.append(WARNING_INVALID_DATE.format(text=match.group(0)))
            return _consume(text, match)

        if parsed.tzinfo is not None:
            if self.reference_now.tzinfo is not None:
                parsed = parsed.astimezone(self.reference_now.tzinfo)
            else:
                parsed = parsed.replace(tzinfo=None)

        scan.day = parsed.date()
        scan.at = parsed.time().replace(tzinfo=None)
        return _consume(text, match)

    def _scan_duration(self, text: str, scan: _Scan) -> str:
        match = _DURATION_INTRO_RE.search(text)
        if match:
            scan.duration_minutes = parse_duration(match.group(1) or match.group(2))
            return _consume(text, match)
        match = _DURATION_BARE_RE.search(text)
        if match:
            scan.duration_minutes = parse_duration(match.group(1))
            return _consume(text, match)
        return text

    def _scan_range(self, text: str, scan: _Scan) -> str:
        if scan.at is not None:
            return text
        match = _RANGE_RE.search(text)
        if not match:
            return text
        start_at = parse_time(match.group(1))
        end_at = parse_time(match.group(2))
        if start_at is None or end_at is None:
            return text
        scan.at = start_at
        scan.end_at = end_at
        return _consume(text, match)

    def _scan_numeric_date(self, text: str, scan: _Scan) -> str:
        match = _NUMERIC_DATE_RE.search(text)
        if not match:
            return text

        day, month, year = match.groups()
        if year is None:
            scan.day = self._nearest(int(month), int(day), match.group(0), scan)
        else:
            year_value = int(year)
            if year_value < 100:
                year_value += 2000
            try:
                scan.day = date(year_value, int(month), int(day))
            except ValueError:
                scan.warnings.append(WARNING_INVALID_DATE.format(text=match.group(0)))
        return _consume(text, match)

    def _scan_month_name(self, text: str, scan: _Scan) -> str:
        months = MONTHS[self.locale]
        names = "|".join(sorted(months, key=len, reverse=True))

        day_first = re.compile(
            r"\b(\d{1,2})(?:er|st|nd|rd|th)?\s+(" + names + r")\b\.?(?:\s+(\d{4}))?"
        )
        month_first = re.compile(
            r"\b(" + names + r")\b\.?\s+(\d{1,2})(?:st|nd|rd|th)?\b(?:,?\s+(\d{4}))?"
        )

        match = day_first.search(text)
        if match:
            day, month_name, year = match.groups()
        else:
            # "sept" is also a French number; only English puts the month first
            match = month_first.search(text) if self.locale == "en" else None
            if not match:
                return text
            month_name, day, year = match.groups()

        month = months[month_name]
        if year is None:
            scan.day = self._nearest(month, int(day), match.group(0), scan)
        else:
            try:
                scan.day = date(int(year), month, int(day))
            except ValueError:
                scan.warnings.append(WARNING_INVALID_DATE.format(text=match.group(0)))
        return _consume(text, match)

    def _scan_relative_day(self, text: str, scan: _Scan) -> str:
        for pattern, offset in RELATIVE_DAYS[self.locale]:
            match = re.search(r"\b" + pattern + r"\b", text)
            if match:
                scan.day = self.today + timedelta(days=offset)
                return _consume(text, match)
        return text

    def _scan_weekday(self, text: str, scan: _Scan) -> str:
        names = WEEKDAYS[self.locale]
        pattern = re.compile(
            r"\b(?:" + NEXT_WORD[self.locale] + r"\s+)?("
            + "|".join(names)
            + r")s?\b(?:\s+" + NEXT_WORD[self.locale] + r")?"
        )
        match = pattern.search(text)
        if not match:
            return text
        target = names.index(match.group(1))
        days_ahead = (target - self.today.weekday()) % 7 or 7
        scan.day = self.today + timedelta(days=days_ahead)
        return _consume(text, match)

    def _nearest(self, month: int, day: int, raw: str, scan: _Scan) -> Optional[date]:
        """Nearest occurrence of month/day on or after the reference date."""
        for year in (self.today.year, self.today.year + 1):
            try:
                candidate = date(year, month, day)
            except ValueError:
                continue
            if candidate >= self.today:
                return candidate
        scan.warnings.append(WARNING_INVALID_DATE.format(text=raw))
        return None


def _consume(text: str, match: re.Match) -> str:
    """Blank out a matched span so later patterns do not see it again."""
    start, end = match.span()
    return text[:start] + " " * (end - start) + text[end:]


def _time_from_match(match: re.Match) -> Optional[time]:
    groups = match.groupdict()
    hour: Optional[int] = None
    minute = 0

    if groups.get("hh") is not None:
        hour = int(groups["hh"])
        if groups.get("hm"):
            minute = int(groups["hm"])
        elif groups.get("frac") == "demie":
            minute = 30
        elif groups.get("frac") == "quart":
            minute = 15
    elif groups.get("ch") is not None:
        hour = int(groups["ch"])
        minute = int(groups["cm"])
    elif groups.get("ah") is not None:
        hour = int(groups["ah"]) % 12
        minute = int(groups.get("am") or 0)
        if groups["ampm"] == "pm":
            hour += 12
    elif groups.get("word") in ("midi", "noon"):
        hour = 12
    elif groups.get("word") in ("minuit", "midnight"):
        hour = 0

    if hour is None or hour > 23 or minute > 59:
        return None
    return time(hour, minute)
