"""
Fuzzy name matcher.

Scores dictated participant names against directory entries and classifies
the best candidates as matched, ambiguous or unmatched.

Score = 0.6 * token overlap + 0.4 * (1 - levenshtein / max_len), computed on
normalized names (lowercase, no accents, no punctuation, no leading
honorific). Identical normalized names score 1.0; anything else is capped
at 0.99 so an exact match always ranks strictly first.
"""

import re
from typing import Iterable, Optional

from visit_agenda.models import (
    ContactRecord,
    MatchCandidate,
    ParticipantMatch,
    ProposedContact,
)
from visit_agenda.services.text import fold

DEFAULT_MATCH_THRESHOLD = 0.65
DEFAULT_AMBIGUITY_MARGIN = 0.10
MAX_AMBIGUOUS_CANDIDATES = 3

TOKEN_WEIGHT = 0.6
EDIT_WEIGHT = 0.4
PREFIX_SIMILARITY = 0.5
MIN_TOKEN_EDIT_SIMILARITY = 0.8
NON_EXACT_CAP = 0.99

HONORIFICS = frozenset({
    "m", "mr", "mme", "mlle", "madame", "monsieur", "mademoiselle",
    "dr", "docteur", "pr", "professeur", "me", "maitre",
})

_PUNCTUATION = re.compile(r"[^\w\s]|_")


def normalize_name(name: str) -> str:
    """
    Normalize a person name for comparison.

    'Mme Marie-Hélène  Dupont' -> 'marie helene dupont'
    A lone honorific ('M.') is kept so it still has something to match.
    """
    folded = _PUNCTUATION.sub(" ", fold(name or ""))
    tokens = folded.split()
    while len(tokens) > 1 and tokens[0] in HONORIFICS:
        tokens = tokens[1:]
    return " ".join(tokens)


def levenshtein(a: str, b: str) -> int:
    """Classic edit distance (insert, delete, substitute all cost 1)."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)
    if len(a) < len(b):
        a, b = b, a

    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + (char_a != char_b),
            ))
        previous = current
    return previous[-1]


def edit_similarity(a: str, b: str) -> float:
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein(a, b) / longest


def token_similarity(a: str, b: str) -> float:
    """
    Similarity of two name tokens.

    1.0 for identical tokens, 0.5 when one is a prefix (or initial) of the
    other, the edit similarity when it reaches 0.8, else 0.
    """
    if a == b:
        return 1.0
    best = 0.0
    if a.startswith(b) or b.startswith(a):
        best = PREFIX_SIMILARITY
    edit = edit_similarity(a, b)
    if edit >= MIN_TOKEN_EDIT_SIMILARITY:
        best = max(best, edit)
    return best


def token_overlap(input_tokens: list[str], target_tokens: list[str]) -> float:
    if not input_tokens or not target_tokens:
        return 0.0
    total = sum(
        max(token_similarity(token, target) for target in target_tokens)
        for token in input_tokens
    )
    return min(1.0, total / max(len(input_tokens), len(target_tokens)))


def score_normalized(normalized_input: str, normalized_target: str) -> float:
    """Score two already-normalized names."""
    if not normalized_input or not normalized_target:
        return 0.0
    if normalized_input == normalized_target:
        return 1.0

    overlap = token_overlap(normalized_input.split(), normalized_target.split())
    edit = edit_similarity(normalized_input, normalized_target)
    score = TOKEN_WEIGHT * overlap + EDIT_WEIGHT * edit
    return round(min(score, NON_EXACT_CAP), 4)


def score(input_name: str, target_name: str) -> float:
    """Similarity of two raw names in [0, 1]."""
    return score_normalized(normalize_name(input_name), normalize_name(target_name))


def rank(
    normalized_input: str,
    entries: Iterable[tuple[ContactRecord, str]],
    top_n: int = 5,
) -> list[MatchCandidate]:
    """
    Rank pre-normalized directory entries against a normalized input.

    Sorted by descending score, ties by name then id.
    """
    candidates = [
        MatchCandidate(id=contact.id, name=contact.name, score=score_normalized(normalized_input, normalized))
        for contact, normalized in entries
    ]
    candidates.sort(key=lambda c: (-c.score, c.name, str(c.id)))
    return candidates[:top_n]


def match(
    candidate_name: str,
    directory: Iterable[ContactRecord],
    top_n: int = 5,
) -> list[MatchCandidate]:
    """
    Rank directory contacts for one dictated name.

    Args:
        candidate_name: Name as dictated ("Jean Dupond")
        directory: Contacts to search
        top_n: Maximum number of candidates returned

    Returns:
        Candidates sorted by descending score
    """
    entries = ((contact, normalize_name(contact.name)) for contact in directory)
    return rank(normalize_name(candidate_name), entries, top_n=top_n)


def classify(
    input_name: str,
    ranked: list[MatchCandidate],
    match_threshold: float = DEFAULT_MATCH_THRESHOLD,
    ambiguity_margin: float = DEFAULT_AMBIGUITY_MARGIN,
) -> ParticipantMatch:
    """
    Turn ranked candidates into a ParticipantMatch.

    - top below threshold: unmatched, with a contact proposal
    - unique exact match: matched
    - runner-up above threshold or within margin of the top: ambiguous
    - otherwise: matched
    """
    top: Optional[MatchCandidate] = ranked[0] if ranked else None

    if top is None or top.score < match_threshold:
        return ParticipantMatch(
            input_name=input_name,
            status="unmatched",
            score=top.score if top else 0.0,
            candidates=[c for c in ranked[:MAX_AMBIGUOUS_CANDIDATES] if c.score > 0],
            proposed_contact=ProposedContact(name=input_name.strip()),
        )

    runner_up = ranked[1] if len(ranked) > 1 else None

    unique_exact = top.score >= 1.0 and (runner_up is None or runner_up.score < 1.0)
    contested = runner_up is not None and (
        runner_up.score >= match_threshold
        or top.score - runner_up.score < ambiguity_margin
    )

    if contested and not unique_exact:
        close = [
            c for c in ranked
            if c.score >= match_threshold or top.score - c.score < ambiguity_margin
        ]
        return ParticipantMatch(
            input_name=input_name,
            status="ambiguous",
            score=top.score,
            candidates=close[:MAX_AMBIGUOUS_CANDIDATES],
        )

    return ParticipantMatch(
        input_name=input_name,
        status="matched",
        score=top.score,
        resolved_id=top.id,
        resolved_name=top.name,
        candidates=[top],
    )
