# product_resolver.py
# Cascading matcher from spoken text to a catalog product.
# Each stage is a plain function (text, catalog) -> Product | None, tried in
# order; the first stage that returns a product wins.
#
#   1. vocabulary   colloquial word → catalog-style name, exact hit only
#   2. exact        case-insensitive name equality
#   3. prefix       text starts with a catalog name + word boundary
#   4. overlap      most shared words (substring either direction)
#   5. fuzzy        normalized Levenshtein score above the threshold
#   6. phonetic     known mis-hearings substituted, cascade re-run once

import re
from typing import Callable, List, Optional, Sequence, Tuple

from rapidfuzz.distance import Levenshtein

from constants import VOCABULARY, PHONETIC_CORRECTIONS, FUZZY_MATCH_THRESHOLD
from order_models import Product
from shared.logging.logger import get_logger

logger = get_logger("product_resolver")

Strategy = Callable[[str, Sequence[Product]], Optional[Product]]


def _name(product: Product) -> str:
    return (product.name or "").lower().strip()


def _substitute_words(text: str, table: dict) -> str:
    """Longest keys first, whole words only."""
    for key in sorted(table, key=len, reverse=True):
        text = re.sub(rf"(?<!\w){re.escape(key)}(?!\w)", table[key], text)
    return re.sub(r"\s+", " ", text).strip()


# ── Stages ────────────────────────────────────────────────────────────────────

def match_vocabulary(text: str, catalog: Sequence[Product]) -> Optional[Product]:
    candidates = []
    if text in VOCABULARY:
        candidates.append(VOCABULARY[text])
    substituted = _substitute_words(text, VOCABULARY)
    if substituted != text:
        candidates.append(substituted)
    for term in candidates:
        for product in catalog:
            if _name(product) == term:
                return product
    return None


def match_exact(text: str, catalog: Sequence[Product]) -> Optional[Product]:
    for product in catalog:
        if _name(product) == text:
            return product
    return None


def match_prefix(text: str, catalog: Sequence[Product]) -> Optional[Product]:
    best = None
    for product in catalog:
        name = _name(product)
        if not name or not text.startswith(name):
            continue
        if len(text) > len(name) and not text[len(name)].isspace():
            continue
        if best is None or len(name) > len(_name(best)):
            best = product
    return best


def match_word_overlap(text: str, catalog: Sequence[Product]) -> Optional[Product]:
    words = [w for w in text.split() if len(w) > 2]
    if not words:
        return None
    best, best_count = None, 0
    for product in catalog:
        name = _name(product)
        if not name:
            continue
        name_words = name.split()
        count = sum(
            1 for w in words
            if w in name or any(nw in w for nw in name_words if len(nw) > 2)
        )
        if count > best_count:
            best, best_count = product, count
    return best


def fuzzy_score(text: str, name: str) -> float:
    max_len = max(len(text), len(name))
    if max_len == 0:
        return 0.0
    score = (max_len - Levenshtein.distance(text, name)) / max_len
    if len(text) > 3 and text in name:
        score += 0.2
    if abs(len(text) - len(name)) > 10:
        score -= 0.3
    return score


def match_fuzzy(text: str, catalog: Sequence[Product],
                threshold: float = FUZZY_MATCH_THRESHOLD) -> Optional[Product]:
    best, best_score = None, threshold
    for product in catalog:
        name = _name(product)
        if not name:
            continue
        score = fuzzy_score(text, name)
        if score > best_score:
            best, best_score = product, score
    return best


STRATEGIES: List[Tuple[str, Strategy]] = [
    ("vocabulary", match_vocabulary),
    ("exact",      match_exact),
    ("prefix",     match_prefix),
    ("overlap",    match_word_overlap),
    ("fuzzy",      match_fuzzy),
]


# ── Resolver ──────────────────────────────────────────────────────────────────

class ProductResolver:
    """
    Deterministic over a fixed catalog snapshot. Never raises on bad input.
    """

    def __init__(self, catalog: Sequence[Product], strategies=None):
        self.catalog    = [p for p in catalog if p.name]
        self.strategies = list(strategies or STRATEGIES)

    def resolve(self, spoken_name: str) -> Optional[Product]:
        text = re.sub(r"\s+", " ", (spoken_name or "").lower()).strip()
        if not text or not self.catalog:
            return None

        product, stage = self._cascade(text)
        if product is None:
            corrected = _substitute_words(text, PHONETIC_CORRECTIONS)
            if corrected != text:
                product, stage = self._cascade(corrected)
                stage = f"phonetic+{stage}" if stage else None

        if product is None:
            logger.info(f"[Resolver] No match for {text!r}", extra={"spoken_name": text})
        else:
            logger.debug(
                f"[Resolver] {text!r} → {product.name!r} via {stage}",
                extra={"spoken_name": text, "product_id": product.identity, "stage": stage},
            )
        return product

    def _cascade(self, text: str):
        for stage, strategy in self.strategies:
            product = strategy(text, self.catalog)
            if product is not None:
                return product, stage
        return None, None

    def __call__(self, spoken_name: str) -> Optional[Product]:
        return self.resolve(spoken_name)
