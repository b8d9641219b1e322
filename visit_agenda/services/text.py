"""
Text folding helpers shared by the temporal normalizer and the name matcher.
"""

import re
import unicodedata

_APOSTROPHES = str.maketrans({"’": "'", "‘": "'", "ʼ": "'", "`": "'"})
_DASHES = str.maketrans({"–": "-", "—": "-", "−": "-"})
_WHITESPACE = re.compile(r"\s+")


def strip_diacritics(text: str) -> str:
    """Remove combining accents: 'Février' -> 'Fevrier'."""
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def fold(text: str) -> str:
    """
    Lowercase, strip accents, unify apostrophes/dashes and collapse spaces.

    Offsets are not preserved; callers match against the folded string only.
    """
    if not text:
        return ""
    folded = strip_diacritics(text).lower()
    folded = folded.translate(_APOSTROPHES).translate(_DASHES)
    return _WHITESPACE.sub(" ", folded).strip()
