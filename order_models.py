# order_models.py
# Value types shared by every stage of the order-intake pipeline.
# Everything here is immutable once built; stages create new values instead.

import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional, Union


# ── Spans ─────────────────────────────────────────────────────────────────────

@dataclass(frozen=True, order=True)
class Span:
    start:  int
    length: int

    @property
    def end(self) -> int:
        return self.start + self.length

    def overlaps(self, other: "Span") -> bool:
        return self.start < other.end and other.start < self.end

    def distance_to(self, other: "Span") -> int:
        """Characters between the two spans; 0 when they touch or overlap."""
        return max(0, max(self.start, other.start) - min(self.end, other.end))

    @classmethod
    def between(cls, start: int, end: int) -> "Span":
        return cls(start=start, length=max(0, end - start))


# ── Entities ──────────────────────────────────────────────────────────────────

class EntityKind(str, Enum):
    AMOUNT        = "amount"
    QUANTITY_UNIT = "quantity_unit"


@dataclass(frozen=True)
class AmountEntity:
    amount: float
    span:   Span
    kind:   EntityKind = field(default=EntityKind.AMOUNT, init=False)


@dataclass(frozen=True)
class QuantityUnitEntity:
    quantity: float
    unit:     str
    span:     Span
    kind:     EntityKind = field(default=EntityKind.QUANTITY_UNIT, init=False)


Entity = Union[AmountEntity, QuantityUnitEntity]


@dataclass(frozen=True)
class NamedCommand:
    """A spoken product mention with zero or one entity attached."""
    spoken_name: str
    entity:      Optional[Entity] = None
    span:        Optional[Span]   = None

    @property
    def is_bare(self) -> bool:
        return self.entity is None


# ── Catalog snapshot ──────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Batch:
    id:            str
    quantity:      float = 0.0
    selling_price: float = 0.0
    cost_price:    float = 0.0

    @classmethod
    def from_doc(cls, doc: dict) -> "Batch":
        return cls(
            id            = str(doc.get("id") or doc.get("_id") or ""),
            quantity      = _num(doc.get("quantity")),
            selling_price = _num(doc.get("sellingPrice", doc.get("selling_price"))),
            cost_price    = _num(doc.get("costPrice", doc.get("cost_price"))),
        )


@dataclass(frozen=True)
class Product:
    id:                 Optional[str]
    name:               str
    native_unit:        str   = "pcs"
    selling_price:      float = 0.0
    cost_price:         float = 0.0
    gst_percent:        float = 0.0
    stock:              float = 0.0
    wholesale_moq:      float = 0.0
    batches:            tuple = ()
    selling_unit_price: float = 0.0
    unit_price:         float = 0.0
    wholesale_price:    float = 0.0
    code:               Optional[str] = None

    @property
    def is_direct(self) -> bool:
        return not self.id

    @property
    def identity(self) -> str:
        """Catalog id, or code+price for ad-hoc direct products."""
        if self.id:
            return str(self.id)
        return f"direct:{self.code or self.name.lower()}:{self.selling_price:g}"

    @property
    def effective_price(self) -> float:
        """First positive price among the known price fields, else 0."""
        for price in (self.selling_price, self.selling_unit_price,
                      self.cost_price, self.unit_price):
            if price and math.isfinite(price) and price > 0:
                return float(price)
        return 0.0

    @classmethod
    def from_doc(cls, doc: dict) -> "Product":
        return cls(
            id                 = str(doc.get("id") or doc.get("_id") or "") or None,
            name               = str(doc.get("name") or "").strip(),
            native_unit        = str(doc.get("quantityUnit") or doc.get("unit")
                                     or doc.get("native_unit") or "pcs").lower(),
            selling_price      = _num(doc.get("sellingPrice", doc.get("selling_price"))),
            cost_price         = _num(doc.get("costPrice", doc.get("cost_price"))),
            gst_percent        = _num(doc.get("gstPercent", doc.get("gst_percent"))),
            stock              = _num(doc.get("quantity", doc.get("stock"))),
            wholesale_moq      = _num(doc.get("wholesaleMOQ", doc.get("wholesale_moq"))),
            batches            = tuple(Batch.from_doc(b) for b in doc.get("batches") or []),
            selling_unit_price = _num(doc.get("sellingUnitPrice", doc.get("selling_unit_price"))),
            unit_price         = _num(doc.get("unitPrice", doc.get("unit_price"))),
            wholesale_price    = _num(doc.get("wholesalePrice", doc.get("wholesale_price"))),
            code               = doc.get("code") or doc.get("barcode"),
        )


def _num(value) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


# ── Resolved commands ─────────────────────────────────────────────────────────

class CommandError(str, Enum):
    UNMATCHED_PRODUCT = "UnmatchedProduct"
    UNIT_INCOMPATIBLE = "UnitIncompatible"
    INVALID_QUANTITY  = "InvalidQuantity"


@dataclass(frozen=True)
class ResolvedCommand:
    product:         Optional[Product]
    spoken_name:     str
    quantity:        float
    unit:            Optional[str]
    amount_paid:     Optional[float] = None
    is_amount_based: bool = False
    unit_compatible: bool = True
    matched:         bool = True
    warnings:        tuple = ()
    error:           Optional[CommandError] = None
    required_unit:   Optional[str] = None
    allowed_units:   tuple = ()

    @property
    def is_mergeable(self) -> bool:
        return self.matched and self.error is None and self.product is not None

    @classmethod
    def unmatched(cls, spoken_name: str) -> "ResolvedCommand":
        return cls(
            product     = None,
            spoken_name = spoken_name,
            quantity    = 0.0,
            unit        = None,
            matched     = False,
            error       = CommandError.UNMATCHED_PRODUCT,
        )

    def with_error(self, error: CommandError) -> "ResolvedCommand":
        return replace(self, error=error)


# ── Cart lines ────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class CartLine:
    product_id:     str
    name:           str
    quantity:       float
    unit:           str
    unit_price:     float = 0.0
    gst_amount:     float = 0.0
    line_total:     float = 0.0
    source_batches: tuple = ()
    cost_total:     float = 0.0

    def to_doc(self) -> dict:
        return {
            "product_id":     self.product_id,
            "name":           self.name,
            "quantity":       self.quantity,
            "unit":           self.unit,
            "unit_price":     self.unit_price,
            "gst_amount":     self.gst_amount,
            "line_total":     self.line_total,
            "source_batches": [dict(b) for b in self.source_batches],
            "cost_total":     self.cost_total,
        }

    @classmethod
    def from_doc(cls, doc: dict) -> "CartLine":
        return cls(
            product_id     = str(doc["product_id"]),
            name           = doc.get("name", ""),
            quantity       = _num(doc.get("quantity")),
            unit           = doc.get("unit") or "pcs",
            unit_price     = _num(doc.get("unit_price")),
            gst_amount     = _num(doc.get("gst_amount")),
            line_total     = _num(doc.get("line_total")),
            source_batches = tuple(
                tuple(sorted(b.items())) if isinstance(b, dict) else b
                for b in doc.get("source_batches") or []
            ),
            cost_total     = _num(doc.get("cost_total")),
        )


# ── Money ─────────────────────────────────────────────────────────────────────

def floor_money(value: float) -> float:
    """Truncates to 2 decimals (never rounds) so totals match the invoice."""
    if value is None or not math.isfinite(value):
        return 0.0
    return math.floor(round(value * 100, 6)) / 100
