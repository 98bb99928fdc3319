# unit_reconciler.py
# Pure conversion / compatibility rules between weight, volume and count units.
# No side effects. Every function here is safe to call with unknown units.

import math
from dataclasses import dataclass, field
from typing import Optional

from constants import (
    UNIT_CANONICAL, UNIT_FACTORS, UNIT_CATEGORIES,
    BASE_UNITS, MAJOR_UNITS,
)

_PRECISION = 6


# ── Result type ───────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Reconciliation:
    quantity:      float
    unit:          str
    compatible:    bool = True
    rule:          str  = "same_unit"
    required_unit: Optional[str] = None
    allowed_units: tuple = field(default_factory=tuple)


# ── Unit lookups ──────────────────────────────────────────────────────────────

def normalize_unit(word: Optional[str]) -> Optional[str]:
    """Maps any spoken/stored unit spelling to its canonical code."""
    if not word:
        return None
    key = word.strip().lower().rstrip(".")
    return UNIT_CANONICAL.get(key)


def unit_category(unit: Optional[str]) -> Optional[str]:
    code = normalize_unit(unit)
    return UNIT_CATEGORIES.get(code) if code else None


def base_unit(unit: Optional[str]) -> Optional[str]:
    category = unit_category(unit)
    return BASE_UNITS.get(category) if category else None


def is_count_unit(unit: Optional[str]) -> bool:
    return unit_category(unit) == "count"


def is_measured_unit(unit: Optional[str]) -> bool:
    """Weight or volume: decimal quantities allowed."""
    return unit_category(unit) in ("weight", "volume")


def same_category(a: Optional[str], b: Optional[str]) -> bool:
    cat_a = unit_category(a)
    return cat_a is not None and cat_a == unit_category(b)


def allowed_units(native_unit: Optional[str]) -> tuple:
    """Units a product stocked in `native_unit` can be sold in."""
    category = unit_category(native_unit)
    if category == "weight":
        return ("kg", "g")
    if category == "volume":
        return ("l", "ml")
    return (normalize_unit(native_unit) or "pcs",)


# ── Conversion ────────────────────────────────────────────────────────────────

def to_base(quantity: float, unit: Optional[str]) -> float:
    code = normalize_unit(unit)
    return round(float(quantity) * UNIT_FACTORS.get(code, 1.0), _PRECISION)


def from_base(quantity: float, unit: Optional[str]) -> float:
    code = normalize_unit(unit)
    factor = UNIT_FACTORS.get(code, 1.0) or 1.0
    return round(float(quantity) / factor, _PRECISION)


def convert(quantity: float, from_unit: str, to_unit: str) -> float:
    """Linear conversion. Caller guarantees both units share a category."""
    return from_base(to_base(quantity, from_unit), to_unit)


def major_unit(unit: Optional[str]) -> Optional[str]:
    category = unit_category(unit)
    return MAJOR_UNITS.get(category) if category else None


# ── Reconciliation ────────────────────────────────────────────────────────────

def reconcile(quantity: float, spoken_unit: str, target_unit: str) -> Reconciliation:
    """
    Expresses a spoken (quantity, unit) in the target unit.

    a. count → count          quantity unchanged, target unit
    b. same category          linear conversion, target unit
    c. count → weight/volume  spoken number taken literally in the target unit
    d. weight/volume → count  spoken number taken literally in the target unit
    e. anything else          incompatible; quantity/unit unchanged
    """
    spoken = normalize_unit(spoken_unit) or spoken_unit
    target = normalize_unit(target_unit) or target_unit
    spoken_cat = unit_category(spoken)
    target_cat = unit_category(target)

    if spoken_cat == "count" and target_cat == "count":
        return Reconciliation(quantity=quantity, unit=target, rule="count")

    if spoken_cat is not None and spoken_cat == target_cat:
        if spoken == target:
            return Reconciliation(quantity=quantity, unit=target, rule="same_unit")
        return Reconciliation(
            quantity=convert(quantity, spoken, target),
            unit=target,
            rule="converted",
        )

    if spoken_cat == "count" and target_cat in ("weight", "volume"):
        return Reconciliation(quantity=quantity, unit=target, rule="count_as_measure")

    if target_cat == "count" and spoken_cat in ("weight", "volume"):
        return Reconciliation(quantity=quantity, unit=target, rule="measure_as_count")

    return Reconciliation(
        quantity=quantity,
        unit=spoken,
        compatible=False,
        rule="incompatible",
        required_unit=target,
        allowed_units=allowed_units(target),
    )


# ── Display ───────────────────────────────────────────────────────────────────

def format_quantity(quantity: float) -> str:
    if quantity is None or not math.isfinite(quantity):
        return "0"
    text = f"{quantity:.3f}".rstrip("0").rstrip(".")
    return text or "0"


def format_quantity_with_unit(quantity: float, unit: Optional[str]) -> str:
    code = normalize_unit(unit) or (unit or "")
    return f"{format_quantity(quantity)} {code}".strip()
