"""
Contact and participant-match types.

ContactRecord is a read-only snapshot of the external directory; the engine
never persists it. ParticipantMatch is the outcome of resolving one dictated
name against that snapshot.
"""

from dataclasses import dataclass, field
from typing import Literal, Optional, Union

ContactId = Union[int, str]
MatchStatus = Literal["matched", "ambiguous", "unmatched"]


@dataclass(frozen=True)
class ContactRecord:
    """One entry of the external contact directory."""

    id: ContactId
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None


@dataclass(frozen=True)
class MatchCandidate:
    """A ranked directory entry for a dictated name."""

    id: ContactId
    name: str
    score: float


@dataclass
class ProposedContact:
    """Contact the user may create when a name is not in the directory."""

    name: str
    email: Optional[str] = None
    phone: Optional[str] = None


@dataclass
class ParticipantMatch:
    """
    Resolution of one participant mention.

    Invariants:
    - matched: resolved_id is set and score >= match threshold
    - ambiguous: at least two candidates, resolved_id is None
    - unmatched: resolved_id is None and proposed_contact is set
    """

    input_name: str
    status: MatchStatus
    score: float = 0.0
    resolved_id: Optional[ContactId] = None
    resolved_name: Optional[str] = None
    candidates: list[MatchCandidate] = field(default_factory=list)
    proposed_contact: Optional[ProposedContact] = None

    @property
    def is_matched(self) -> bool:
        return self.status == "matched"

    @property
    def needs_contact_creation(self) -> bool:
        return self.status == "unmatched"

    @property
    def display_name(self) -> str:
        """Name shown in summaries: the directory name when resolved."""
        return self.resolved_name or self.input_name

    def mark_resolved(self, contact_id: ContactId, name: str) -> None:
        """Turn this mention into a confirmed match (user choice or new contact)."""
        self.status = "matched"
        self.resolved_id = contact_id
        self.resolved_name = name
        self.score = 1.0
        self.candidates = []
        self.proposed_contact = None
