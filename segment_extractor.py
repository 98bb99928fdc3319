# segment_extractor.py
# Recovers the spoken product name around each entity, and splits bare
# product mentions when a stretch of text carries no entity at all.
# Every range turned into a command is shielded so it is never read twice.

import re
from typing import Callable, List, Optional, Sequence

from constants import (
    STOP_WORDS, SEPARATOR_WORDS, SEPARATOR_PUNCTUATION, NGRAM_SKIP_WORDS,
    KNOWN_UNITS, CURRENCY_WORDS, CURRENCY_SYMBOLS,
    BACKWARD_NAME_WORDS, FORWARD_NAME_WORDS, MIN_NAME_CHARS,
)
from order_models import Entity, NamedCommand, Product, Span
from session_state import ShieldArena

Matcher = Callable[[str], Optional[Product]]

_TOKEN_RE  = re.compile(r"[,;&+]|[^\s,;&+]+")
_NUMBER_RE = re.compile(r"^\d+(?:\.\d+)?[a-z]*$")

_SHORT_SEGMENT_WORDS = 3
_SHORT_SEGMENT_CHARS = 20


# ── Tokens ────────────────────────────────────────────────────────────────────

class _Token:
    __slots__ = ("word", "start", "end")

    def __init__(self, word: str, start: int, end: int):
        self.word  = word
        self.start = start
        self.end   = end

    @property
    def is_separator(self) -> bool:
        return self.word in SEPARATOR_PUNCTUATION or self.word in SEPARATOR_WORDS

    @property
    def is_noise(self) -> bool:
        w = self.word
        return (
            w in STOP_WORDS
            or w in KNOWN_UNITS
            or w in CURRENCY_WORDS
            or w in CURRENCY_SYMBOLS
            or bool(_NUMBER_RE.match(w))
        )


def _tokenize(text: str, start: int = 0, end: Optional[int] = None) -> List[_Token]:
    end = len(text) if end is None else end
    tokens = []
    for m in _TOKEN_RE.finditer(text, start, end):
        word = m.group(0)
        trimmed = word.rstrip(".!?")
        if not trimmed:
            tokens.append(_Token(".", m.start(), m.end()))
            continue
        tokens.append(_Token(trimmed, m.start(), m.start() + len(trimmed)))
    return tokens


def _clean(tokens: Sequence[_Token]) -> List[_Token]:
    return [t for t in tokens if not t.is_noise and not t.is_separator]


def _join(tokens: Sequence[_Token]) -> str:
    return " ".join(t.word for t in tokens)


def _span_of(tokens: Sequence[_Token]) -> Optional[Span]:
    if not tokens:
        return None
    return Span.between(tokens[0].start, tokens[-1].end)


# ── Entity path ───────────────────────────────────────────────────────────────

def name_for_entity(
    entity:   Entity,
    entities: Sequence[Entity],
    text:     str,
    shield:   ShieldArena,
    catalog:  Sequence[Product] = (),
) -> NamedCommand:
    """
    Finds the words naming the product `entity` refers to and shields them.
    Backward first ("chini 2 kg"), then forward ("20 rupees of sugar"),
    then the nearest catalog name anywhere in the unshielded text.
    """
    masked = shield.mask(text)
    prev_end   = max((e.span.end for e in entities if e.span.end <= entity.span.start), default=0)
    next_start = min((e.span.start for e in entities if e.span.start >= entity.span.end),
                     default=len(text))

    name, name_span = _look_backward(masked, prev_end, entity.span.start)
    if len(name) < MIN_NAME_CHARS:
        name, name_span = _look_forward(masked, entity.span.end, next_start)
    if len(name) < MIN_NAME_CHARS:
        name, name_span = _nearest_catalog_name(masked, entity.span, catalog)

    shield.shield(entity.span)
    shield.shield(name_span)

    consumed = entity.span
    if name_span is not None:
        consumed = Span.between(
            min(entity.span.start, name_span.start),
            max(entity.span.end, name_span.end),
        )
    return NamedCommand(spoken_name=name, entity=entity, span=consumed)


def _look_backward(masked: str, start: int, end: int):
    tokens = _tokenize(masked, start, end)
    for i in range(len(tokens) - 1, -1, -1):
        if tokens[i].is_separator:
            tokens = tokens[i + 1:]
            break
    window = tokens[-BACKWARD_NAME_WORDS:]
    words = _clean(window)
    if not words:
        return "", None
    return _join(words), Span.between(window[0].start, end)


def _look_forward(masked: str, start: int, end: int):
    tokens = _tokenize(masked, start, end)
    for i, token in enumerate(tokens):
        if token.is_separator:
            tokens = tokens[:i]
            break
    window = tokens[:FORWARD_NAME_WORDS]
    words = _clean(window)
    if not words:
        return "", None
    return _join(words), Span.between(start, window[-1].end)


def _nearest_catalog_name(masked: str, anchor: Span, catalog: Sequence[Product]):
    best = None  # (distance, catalog index, span, product)
    for index, product in enumerate(catalog):
        name = (product.name or "").lower().strip()
        if not name:
            continue
        needles = [name] + [w for w in name.split() if len(w) > 3 and w != name]
        for needle in needles:
            for m in re.finditer(rf"(?<!\w){re.escape(needle)}(?!\w)", masked):
                span = Span.between(m.start(), m.end())
                candidate = (span.distance_to(anchor), index, span, product)
                if best is None or candidate[:2] < best[:2]:
                    best = candidate
    if best is None:
        return "", None
    return best[3].name.lower(), best[2]


# ── Bare-mention path ─────────────────────────────────────────────────────────

def bare_mentions(
    text:    str,
    shield:  ShieldArena,
    matcher: Optional[Matcher] = None,
) -> List[NamedCommand]:
    """
    Splits the unshielded text on enumeration separators; every segment is a
    product mention with implicit quantity 1. A single separator-free segment
    that is long is scanned with 3/2-word windows, then single words.
    """
    masked = shield.mask(text)
    tokens = _tokenize(masked)
    if not tokens:
        return []

    segments: List[List[_Token]] = [[]]
    has_separator = False
    for token in tokens:
        if token.is_separator:
            has_separator = True
            segments.append([])
        else:
            segments[-1].append(token)
    segments = [s for s in segments if _clean(s)]

    commands: List[NamedCommand] = []
    if len(segments) == 1 and not has_separator and matcher is not None:
        segment = segments[0]
        phrase = _join(_clean(segment))
        is_short = len(segment) < _SHORT_SEGMENT_WORDS and len(phrase) < _SHORT_SEGMENT_CHARS
        if not is_short:
            commands = _ngram_mentions(segment, matcher)
    if not commands:
        for segment in segments:
            words = _clean(segment)
            commands.append(NamedCommand(spoken_name=_join(words), span=_span_of(segment)))

    for command in commands:
        shield.shield(command.span)
    return commands


def _ngram_mentions(segment: Sequence[_Token], matcher: Matcher) -> List[NamedCommand]:
    words = [t for t in _clean(segment) if t.word not in NGRAM_SKIP_WORDS]
    used = set()
    seen = set()
    found: List[NamedCommand] = []

    def _try(indices):
        if any(i in used for i in indices):
            return
        window = [words[i] for i in indices]
        phrase = _join(window)
        product = matcher(phrase)
        if product is None or product.identity in seen:
            return
        # A multi-word window must not swallow several one-word products
        if len(window) > 1 and len(product.name.split()) < len(window):
            return
        seen.add(product.identity)
        used.update(indices)
        found.append(NamedCommand(spoken_name=phrase, span=_span_of(window)))

    for size in (3, 2):
        for i in range(len(words) - size + 1):
            _try(range(i, i + size))
    for i, token in enumerate(words):
        if len(token.word) > 2:
            _try([i])

    found.sort(key=lambda c: c.span.start)
    return found
