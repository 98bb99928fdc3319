# services/business_logic/cart_engine.py
# The ONLY place cart lines are created, changed or removed.
# Every mutation is validated in full before it touches the cart; a rejected
# merge leaves the cart exactly as it was. Mutations are serialized per engine:
# the flush worker and the cart endpoints run on different threads.

import math
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from threading import RLock
from typing import Iterator, List, Optional

from constants import DEFAULT_SALE_MODE, SALE_MODE_WHOLESALE
from order_models import (
    CartLine, CommandError, Product, ResolvedCommand, floor_money,
)
from quantity_resolver import quantity_problem
from services.business_logic.inventory import (
    BatchPricingService, StockService, quantity_in_native,
)
from shared.logging.logger import get_logger
from unit_reconciler import (
    reconcile, same_category, convert, is_count_unit, normalize_unit,
    format_quantity_with_unit, to_base, from_base,
)

logger = get_logger("cart_engine")


# ── Cart ──────────────────────────────────────────────────────────────────────

class Cart:
    """Insertion-ordered product identity → CartLine. One line per identity."""

    def __init__(self, lines=None):
        self._lines: "OrderedDict[str, CartLine]" = OrderedDict()
        for line in lines or []:
            self._lines[line.product_id] = line

    def get(self, identity: str) -> Optional[CartLine]:
        return self._lines.get(identity)

    def put(self, line: CartLine) -> None:
        self._lines[line.product_id] = line

    def remove(self, identity: str) -> Optional[CartLine]:
        return self._lines.pop(identity, None)

    def lines(self) -> List[CartLine]:
        return list(self._lines.values())

    def copy(self) -> "Cart":
        return Cart(self.lines())

    @property
    def total(self) -> float:
        return floor_money(sum(line.line_total for line in self._lines.values()))

    def to_doc(self) -> list:
        return [line.to_doc() for line in self._lines.values()]

    @classmethod
    def from_doc(cls, docs) -> "Cart":
        return cls([CartLine.from_doc(d) for d in docs or [] if d.get("product_id")])

    def __contains__(self, identity) -> bool:
        return identity in self._lines

    def __iter__(self) -> Iterator[CartLine]:
        return iter(self.lines())

    def __len__(self):
        return len(self._lines)

    def __repr__(self):
        return f"Cart(lines={len(self._lines)}, total={self.total})"


# ── Results ───────────────────────────────────────────────────────────────────

class MergeError(str, Enum):
    STOCK_INSUFFICIENT = "StockInsufficient"
    MOQ_NOT_MET        = "MOQNotMet"
    UNIT_INCOMPATIBLE  = "UnitIncompatible"
    INVALID_QUANTITY   = "InvalidQuantity"
    PRODUCT_MISSING    = "ProductMissing"


_COMMAND_TO_MERGE_ERROR = {
    CommandError.UNMATCHED_PRODUCT: MergeError.PRODUCT_MISSING,
    CommandError.UNIT_INCOMPATIBLE: MergeError.UNIT_INCOMPATIBLE,
    CommandError.INVALID_QUANTITY:  MergeError.INVALID_QUANTITY,
}


@dataclass(frozen=True)
class MergeResult:
    ok:                bool
    line:              Optional[CartLine]  = None
    error:             Optional[MergeError] = None
    message:           str  = ""
    stock_display:     Optional[str] = None
    requested_display: Optional[str] = None
    removed:           bool = False

    @classmethod
    def failure(cls, error: MergeError, message: str, **kwargs) -> "MergeResult":
        return cls(ok=False, error=error, message=message, **kwargs)


# ── Engine ────────────────────────────────────────────────────────────────────

class CartEngine:
    """
    Applies resolved commands to one session's cart.

    add()     : combine with an existing line (in that line's unit)
    replace() : overwrite quantity outright; zero or less removes the line

    Pricing and stock are delegated; the engine never prices batches itself.
    The draft store is read once here and written after every success.
    """

    def __init__(self, session_id: str, pricing=None, stock=None,
                 store=None, sale_mode: str = DEFAULT_SALE_MODE):
        self.session_id = session_id
        self.pricing    = pricing or BatchPricingService()
        self.stock      = stock or StockService()
        self.store      = store
        self.sale_mode  = sale_mode
        self.cart       = store.load(session_id) if store is not None else Cart()
        self._direct: dict = {}  # identity -> Product for catalog-less lines
        self._lock = RLock()

    def snapshot(self) -> Cart:
        """Consistent copy of the cart for readers on other threads."""
        with self._lock:
            return self.cart.copy()

    # ── Add ───────────────────────────────────────────────────────────────────

    def add(self, command: ResolvedCommand, batch_id: Optional[str] = None) -> MergeResult:
        if not command.is_mergeable:
            return self._rejected_command(command)

        product = command.product
        with self._lock:
            existing = self.cart.get(product.identity)

            if existing is not None:
                result = reconcile(command.quantity, command.unit, existing.unit)
                if not result.compatible:
                    return MergeResult.failure(
                        MergeError.UNIT_INCOMPATIBLE,
                        f"{product.name} is billed in {existing.unit}; "
                        f"{command.unit} cannot be added to it.",
                    )
                quantity = _tidy(existing.quantity + result.quantity, existing.unit)
                unit     = existing.unit
            else:
                quantity = _tidy(command.quantity, command.unit)
                unit     = command.unit

            return self._commit(product, quantity, unit, batch_id, existing)

    # ── Replace ───────────────────────────────────────────────────────────────

    def replace(self, command: ResolvedCommand, batch_id: Optional[str] = None) -> MergeResult:
        product = command.product
        if product is None:
            return self._rejected_command(command)
        if command.error == CommandError.UNIT_INCOMPATIBLE:
            return self._rejected_command(command)
        if command.quantity is None or not math.isfinite(command.quantity):
            return MergeResult.failure(
                MergeError.INVALID_QUANTITY, quantity_problem(command.quantity, command.unit),
            )

        with self._lock:
            existing = self.cart.get(product.identity)
            quantity, unit = command.quantity, command.unit
            if existing is not None and same_category(unit, existing.unit):
                quantity, unit = convert(quantity, unit, existing.unit), existing.unit

            if quantity <= 0:
                removed = self.cart.remove(product.identity)
                if removed is not None:
                    self._save()
                    logger.info(
                        f"[Cart] Removed {product.name}",
                        extra={"session_id": self.session_id, "product_id": product.identity,
                               "outcome": "removed"},
                    )
                return MergeResult(ok=True, line=removed, removed=True,
                                   message=f"Removed {product.name}.")

            return self._commit(product, _tidy(quantity, unit), unit, batch_id, existing)

    def set_quantity(self, product: Product, quantity: float,
                     unit: Optional[str] = None, batch_id: Optional[str] = None) -> MergeResult:
        """Direct numeric edit of a line, e.g. from the quantity box."""
        with self._lock:
            existing = self.cart.get(product.identity)
            unit = normalize_unit(unit) or (existing.unit if existing else product.native_unit)
            command = ResolvedCommand(
                product=product, spoken_name=product.name, quantity=quantity, unit=unit,
            )
            return self.replace(command, batch_id)

    def remove(self, identity: str) -> bool:
        with self._lock:
            removed = self.cart.remove(identity)
            if removed is not None:
                self._save()
            return removed is not None

    def add_direct(self, name: str, price: float, quantity: float = 1,
                   unit: str = "pcs", code: Optional[str] = None) -> MergeResult:
        """Catalog-less item keyed by code + price."""
        product = Product(
            id=None, name=name, native_unit=normalize_unit(unit) or "pcs",
            selling_price=float(price), code=code,
        )
        command = ResolvedCommand(
            product=product, spoken_name=name, quantity=quantity,
            unit=normalize_unit(unit) or "pcs",
        )
        if quantity_problem(command.quantity, command.unit):
            command = command.with_error(CommandError.INVALID_QUANTITY)
        with self._lock:
            result = self.add(command)
            if result.ok:
                self._direct[product.identity] = product
        return result

    def direct_product(self, identity: str) -> Optional[Product]:
        return self._direct.get(identity)

    # ── Internals ─────────────────────────────────────────────────────────────

    def _commit(self, product: Product, quantity: float, unit: str,
                batch_id: Optional[str], existing: Optional[CartLine]) -> MergeResult:
        problem = quantity_problem(quantity, unit)
        if problem:
            return MergeResult.failure(MergeError.INVALID_QUANTITY, problem)

        if self.sale_mode == SALE_MODE_WHOLESALE and product.wholesale_moq > 0:
            if quantity_in_native(product, quantity, unit) + 1e-9 < product.wholesale_moq:
                return MergeResult.failure(
                    MergeError.MOQ_NOT_MET,
                    f"Minimum order quantity for {product.name} is "
                    f"{format_quantity_with_unit(product.wholesale_moq, product.native_unit)}.",
                )

        check = self.stock.check_stock(product, quantity, unit, batch_id)
        if not check.available:
            return MergeResult.failure(
                MergeError.STOCK_INSUFFICIENT,
                check.error or self._low_stock_message(product, check, existing, unit),
                stock_display=check.stock_display,
                requested_display=check.requested_display,
            )

        line = self._build_line(product, quantity, unit, batch_id)
        self.cart.put(line)
        self._save()
        logger.info(
            f"[Cart] {product.name} → {format_quantity_with_unit(quantity, unit)}",
            extra={"session_id": self.session_id, "product_id": product.identity,
                   "quantity": quantity, "unit": unit, "outcome": "merged"},
        )
        return MergeResult(ok=True, line=line,
                           message=f"{product.name}: {format_quantity_with_unit(quantity, unit)}")

    def _build_line(self, product: Product, quantity: float, unit: str,
                    batch_id: Optional[str]) -> CartLine:
        # Always rebuilt from the pricing service, never scaled from the old total
        quote = self.pricing.price(product, quantity, unit, self.sale_mode, batch_id)
        line_total = floor_money(quote.total_selling_price)
        gst = float(product.gst_percent or 0)
        return CartLine(
            product_id     = product.identity,
            name           = product.name,
            quantity       = quantity,
            unit           = unit,
            unit_price     = floor_money(line_total / quantity) if quantity else 0.0,
            gst_amount     = floor_money(line_total * gst / (100 + gst)) if gst > 0 else 0.0,
            line_total     = line_total,
            source_batches = tuple(tuple(sorted(b.items())) for b in quote.used_batches),
            cost_total     = floor_money(quote.total_cost_price),
        )

    def _low_stock_message(self, product, check, existing, unit) -> str:
        already = existing.quantity if existing else 0
        native  = normalize_unit(product.native_unit) or "pcs"
        if same_category(unit, native):
            room = max(0.0, to_base(check.stock_quantity, native) - to_base(already, unit))
            room = from_base(room, unit)
        else:
            room = max(0.0, check.stock_quantity - already)
        return (
            f"Low stock! Available: {check.stock_display}. "
            f"Already in bill: {format_quantity_with_unit(already, unit)}. "
            f"You can add maximum: {format_quantity_with_unit(room, unit)}."
        )

    def _rejected_command(self, command: ResolvedCommand) -> MergeResult:
        error = _COMMAND_TO_MERGE_ERROR.get(command.error, MergeError.PRODUCT_MISSING)
        return MergeResult.failure(error, f"Cannot bill {command.spoken_name!r}: {error.value}")

    def _save(self) -> None:
        if self.store is not None:
            self.store.save(self.session_id, self.cart)


def _tidy(quantity: float, unit: Optional[str]) -> float:
    if quantity is None or not math.isfinite(quantity):
        return quantity
    if is_count_unit(unit) and abs(quantity - round(quantity)) < 1e-9:
        return float(round(quantity))
    return round(quantity, 3)
