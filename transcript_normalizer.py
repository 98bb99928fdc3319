# transcript_normalizer.py
# Lowercases a raw utterance and folds compound quantities into one token.
# "1 kg 200 g chini" → "1.2kg chini". No entity extraction happens here.

import re
from dataclasses import dataclass

from constants import (
    NUMBER_WORDS, KNOWN_UNITS, CURRENCY_WORDS, CURRENCY_SYMBOLS,
)
from unit_reconciler import (
    normalize_unit, unit_category, major_unit, to_base, from_base, format_quantity,
)


@dataclass(frozen=True)
class Transcript:
    raw:  str
    text: str


# ── Patterns ──────────────────────────────────────────────────────────────────

_UNIT_PATTERN = "|".join(
    re.escape(u) for u in sorted(KNOWN_UNITS, key=len, reverse=True)
)

_QTY_UNIT = rf"(\d+(?:\.\d+)?)\s*({_UNIT_PATTERN})\b"

# One <number> <unit> token; adjacent tokens are paired after matching
_QTY_UNIT_RE = re.compile(rf"(?<![\w.]){_QTY_UNIT}")

_FOLLOW_WORDS = "|".join(
    re.escape(w) for w in sorted(KNOWN_UNITS | CURRENCY_WORDS, key=len, reverse=True)
)

# Number words only become digits when a unit or currency word follows them
_NUMBER_WORD_RE = re.compile(
    r"\b(" + "|".join(sorted(NUMBER_WORDS, key=len, reverse=True)) + r")\s+"
    rf"(?=(?:{_FOLLOW_WORDS})\b)"
)

_CURRENCY_SYMBOL_RE = re.compile("|".join(re.escape(s) for s in CURRENCY_SYMBOLS))


# ── Public entry point ────────────────────────────────────────────────────────

def normalize(raw: str) -> Transcript:
    if not raw or not raw.strip():
        return Transcript(raw=raw or "", text="")

    text = raw.lower()
    text = _CURRENCY_SYMBOL_RE.sub(lambda m: f" {m.group(0)}", text)
    text = re.sub(r"\s+", " ", text).strip()
    text = _number_words_to_digits(text)
    text = fold_compound_quantities(text)
    return Transcript(raw=raw, text=text)


def _number_words_to_digits(text: str) -> str:
    return _NUMBER_WORD_RE.sub(lambda m: f"{NUMBER_WORDS[m.group(1)]} ", text)


def fold_compound_quantities(text: str) -> str:
    """
    Replaces every "<n> <unit> <n> <unit>" pair of the same weight/volume
    category with a single token in the category's major unit.
    Tokens pair with their right neighbour; a mismatched pair only moves
    the scan forward by one token.
    Replacements run right-to-left so earlier offsets stay valid.
    """
    tokens = list(_QTY_UNIT_RE.finditer(text))
    replacements = []
    i = 0
    while i < len(tokens) - 1:
        first, second = tokens[i], tokens[i + 1]
        folded = _fold_pair(first, second, text[first.end():second.start()])
        if folded is None:
            i += 1
            continue
        replacements.append((first.start(), second.end(), folded))
        i += 2

    for start, end, token in sorted(replacements, key=lambda r: r[0], reverse=True):
        text = text[:start] + token + text[end:]
    return text


def _fold_pair(first, second, gap: str):
    if not gap or not gap.isspace():
        return None
    unit_a = normalize_unit(first.group(2))
    unit_b = normalize_unit(second.group(2))
    category = unit_category(unit_a)
    if category not in ("weight", "volume") or category != unit_category(unit_b):
        return None
    total_base = to_base(float(first.group(1)), unit_a) + to_base(float(second.group(1)), unit_b)
    target = major_unit(unit_a)
    return f"{format_quantity(from_base(total_base, target))}{target}"
