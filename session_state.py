# session_state.py
# Formal FSM for one speech/billing session plus its arena of consumed spans.
# The dispatcher and the speech session are the only writers.

import time
from enum import Enum
from dataclasses import dataclass, field
from typing import List, Optional

from order_models import Span


# ── Phases ────────────────────────────────────────────────────────────────────

class Phase(str, Enum):
    IDLE      = "IDLE"
    LISTENING = "LISTENING"
    FLUSHING  = "FLUSHING"


# Legal transitions; anything not listed here is forbidden
_ALLOWED = {
    Phase.IDLE:      {Phase.LISTENING, Phase.FLUSHING, Phase.IDLE},
    Phase.LISTENING: {Phase.LISTENING, Phase.FLUSHING, Phase.IDLE},
    Phase.FLUSHING:  {Phase.LISTENING, Phase.IDLE},
}


class InvalidTransitionError(Exception):
    pass


# ── Shield arena ──────────────────────────────────────────────────────────────

@dataclass
class ShieldArena:
    """
    Character ranges of the normalized transcript already turned into commands.
    Survives re-processing of a growing utterance; cleared per new batch.
    """
    spans: List[Span] = field(default_factory=list)

    def shield(self, span: Optional[Span]) -> None:
        if span is None or span.length <= 0:
            return
        self.spans.append(span)

    def covers(self, span: Span) -> bool:
        """True when every character of `span` is shielded."""
        if span.length <= 0:
            return True
        covered = set()
        for s in self.spans:
            if s.overlaps(span):
                covered.update(range(max(s.start, span.start), min(s.end, span.end)))
        return len(covered) == span.length

    def mask(self, text: str) -> str:
        """Same-length copy of `text` with shielded characters blanked."""
        if not self.spans:
            return text
        chars = list(text)
        for s in self.spans:
            for i in range(max(0, s.start), min(len(chars), s.end)):
                chars[i] = " "
        return "".join(chars)

    def clear(self) -> None:
        self.spans.clear()

    def __len__(self):
        return len(self.spans)


# ── Session state ─────────────────────────────────────────────────────────────

@dataclass
class SessionState:
    """
    Complete state for one speech session.
    Lives in memory only; the cart it feeds is persisted separately.
    """
    session_id:        str
    phase:             Phase       = Phase.IDLE
    buffer:            str         = ""
    interim:           str         = ""
    shield:            ShieldArena = field(default_factory=ShieldArena)
    last_text:         Optional[str]   = None
    last_processed_at: Optional[float] = None
    processed_once:    bool        = False
    cancelled:         bool        = False
    in_flight:         bool        = False

    # ── Phase transitions ─────────────────────────────────────────────────────

    def transition(self, target: Phase) -> None:
        """
        Enforced transition. Raises InvalidTransitionError for illegal moves.
        """
        allowed = _ALLOWED.get(self.phase, set())
        if target not in allowed:
            raise InvalidTransitionError(
                f"Illegal transition: {self.phase.value} -> {target.value}"
            )
        self.phase = target

    def force_transition(self, target: Phase) -> None:
        """Bypasses validation. Error recovery only."""
        self.phase = target

    # ── Dedup bookkeeping ─────────────────────────────────────────────────────

    def is_duplicate(self, text: str, window: float, now: Optional[float] = None) -> bool:
        if self.last_text is None or self.last_processed_at is None:
            return False
        now = time.time() if now is None else now
        return text == self.last_text and (now - self.last_processed_at) < window

    def mark_processed(self, text: str, now: Optional[float] = None) -> None:
        self.last_text         = text
        self.last_processed_at = time.time() if now is None else now
        self.processed_once    = True

    def reset_batch(self) -> None:
        """Starts a fresh utterance: empty buffer, no shielded ranges."""
        self.buffer         = ""
        self.interim        = ""
        self.processed_once = False
        self.shield.clear()

    def summary(self) -> dict:
        return {
            "session_id":     self.session_id,
            "phase":          self.phase.value,
            "buffer":         self.buffer,
            "interim":        self.interim,
            "shielded":       [{"start": s.start, "length": s.length} for s in self.shield.spans],
            "processed_once": self.processed_once,
            "cancelled":      self.cancelled,
        }

    def __repr__(self):
        return (
            f"SessionState(session={self.session_id!r}, "
            f"phase={self.phase.value}, "
            f"buffer={self.buffer!r}, "
            f"shielded={len(self.shield)})"
        )
