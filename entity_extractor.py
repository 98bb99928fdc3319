# entity_extractor.py
# Finds amount mentions ("20 rupees", "₹20", "20 ki") and quantity-unit
# mentions ("2 kg", "500ml") in a normalized transcript.
# Stateless. Returns entities sorted by span start.
#
# Two families, matched independently then reconciled:
#   Family 1: amount patterns (four word orders)
#   Family 2: quantity + unit patterns
# An amount sitting next to an explicit unit mention is discarded.

import re
from typing import List

from constants import (
    KNOWN_UNITS, CURRENCY_WORDS, CURRENCY_SYMBOLS, POSSESSIVE_PARTICLES,
    OVERLAP_TOLERANCE_CHARS,
)
from order_models import AmountEntity, QuantityUnitEntity, Span, Entity
from unit_reconciler import normalize_unit


def _alternation(words) -> str:
    return "|".join(re.escape(w) for w in sorted(words, key=len, reverse=True))


_NUM      = r"(?P<num>\d+(?:\.\d+)?)"
_CURRENCY = _alternation(CURRENCY_WORDS)
_SYMBOL   = _alternation(CURRENCY_SYMBOLS)
_PARTICLE = _alternation(POSSESSIVE_PARTICLES)
_UNITS    = _alternation(KNOWN_UNITS)

# Number must not be glued to a preceding word or decimal
_LEAD = r"(?<![\w.])"


# ── Family 1: amount patterns ─────────────────────────────────────────────────

_AMOUNT_PATTERNS = [
    # "20 rupees" | "20rs" | "20 rupaye"
    re.compile(rf"{_LEAD}{_NUM}\s*(?:{_CURRENCY})\b\.?"),
    # "₹20" | "₹ 20"
    re.compile(rf"(?:{_SYMBOL})\s*{_NUM}\b"),
    # "rs 20" | "rs. 20" | "rupees 20"
    re.compile(rf"\b(?:{_CURRENCY})\.?\s*{_NUM}\b"),
    # "20 ki namak", colloquial "worth of"
    re.compile(rf"{_LEAD}{_NUM}\s+(?:{_PARTICLE})\b"),
]


# ── Family 2: quantity-unit patterns ──────────────────────────────────────────

_QUANTITY_UNIT_RE = re.compile(rf"{_LEAD}{_NUM}\s*(?P<unit>{_UNITS})\b")


# ── Public entry point ────────────────────────────────────────────────────────

def extract(text: str, tolerance: int = OVERLAP_TOLERANCE_CHARS) -> List[Entity]:
    """
    Main extractor. Always returns a list (possibly empty). Never raises.
    """
    if not text or not text.strip():
        return []

    quantities = extract_quantity_units(text)
    amounts    = extract_amounts(text)

    # An explicit unit mention beats a nearby "worth of" reading
    amounts = [
        a for a in amounts
        if not any(a.span.distance_to(q.span) <= tolerance for q in quantities)
    ]

    return sorted(quantities + amounts, key=lambda e: e.span.start)


def extract_amounts(text: str) -> List[AmountEntity]:
    found = []
    for pattern in _AMOUNT_PATTERNS:
        for m in pattern.finditer(text):
            found.append(AmountEntity(
                amount=float(m.group("num")),
                span=Span.between(m.start(), m.end()),
            ))
    return _drop_overlapping(found)


def extract_quantity_units(text: str) -> List[QuantityUnitEntity]:
    found = []
    for m in _QUANTITY_UNIT_RE.finditer(text):
        unit = normalize_unit(m.group("unit"))
        if unit is None:
            continue
        found.append(QuantityUnitEntity(
            quantity=float(m.group("num")),
            unit=unit,
            span=Span.between(m.start(), m.end()),
        ))
    return found


def _drop_overlapping(entities: list) -> list:
    """Earliest start wins; on equal start the longest match wins."""
    ordered = sorted(entities, key=lambda e: (e.span.start, -e.span.length))
    kept = []
    for entity in ordered:
        if any(entity.span.overlaps(k.span) for k in kept):
            continue
        kept.append(entity)
    return kept
