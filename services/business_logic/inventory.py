# services/business_logic/inventory.py
# Default catalog, pricing and stock collaborators for the cart engine.
# The engine only ever calls list_products(), price() and check_stock();
# anything with the same methods can be injected instead.

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from constants import SALE_MODE_WHOLESALE
from order_models import Product, floor_money
from shared.logging.logger import get_logger
from unit_reconciler import (
    normalize_unit, same_category, convert, format_quantity_with_unit, base_unit,
)

logger = get_logger("inventory")


def quantity_in_native(product: Product, quantity: float, unit: Optional[str]) -> float:
    """Quantity expressed in the product's stocking unit."""
    native = normalize_unit(product.native_unit) or "pcs"
    if unit and same_category(unit, native):
        return convert(quantity, unit, native)
    return quantity


# ── Catalog ───────────────────────────────────────────────────────────────────

class InMemoryCatalog:

    def __init__(self, products: Sequence[Product] = ()):
        self._products = list(products)

    def list_products(self) -> List[Product]:
        return list(self._products)

    def replace(self, products: Sequence[Product]) -> None:
        self._products = list(products)

    def get(self, identity: str) -> Optional[Product]:
        return next((p for p in self._products if p.identity == identity), None)


class MongoCatalog:
    """
    Reads the `products` collection. Keeps the last good snapshot so a
    MongoDB outage degrades to stale prices instead of an empty catalog.
    """

    def __init__(self, db=None):
        self._db       = db
        self._snapshot: List[Product] = []

    def _get_db(self):
        if self._db is None:
            from shared.database.mongo_client import get_db
            self._db = get_db()
        return self._db

    def list_products(self) -> List[Product]:
        try:
            docs = self._get_db().products.find({"isDeleted": {"$ne": True}})
            self._snapshot = [Product.from_doc(d) for d in docs]
        except Exception as e:
            logger.warning(f"[Catalog] Could not refresh products, using snapshot: {e}")
        return list(self._snapshot)

    def get(self, identity: str) -> Optional[Product]:
        return next((p for p in self.list_products() if p.identity == identity), None)


# ── Pricing ───────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class PriceQuote:
    total_selling_price: float
    total_cost_price:    float
    used_batches:        list = field(default_factory=list)


class BatchPricingService:
    """
    Prices a quantity against the product's batches, oldest first.
    An explicit batch id pins the whole quantity to that batch.
    Whatever the batches cannot cover is priced at the product's own price.
    """

    def price(self, product: Product, quantity: float, unit: str,
              sale_mode: str = "retail", batch_id: Optional[str] = None) -> PriceQuote:
        qty = quantity_in_native(product, quantity, unit)
        product_selling = float(product.selling_price or product.cost_price or 0)
        product_cost    = float(product.cost_price or product.unit_price or 0)
        wholesale = sale_mode == SALE_MODE_WHOLESALE and product.wholesale_price > 0

        if batch_id:
            batch = next((b for b in product.batches if b.id == batch_id), None)
            if batch is not None:
                selling = product.wholesale_price if wholesale else (batch.selling_price or product_selling)
                cost    = batch.cost_price or product_cost
                return PriceQuote(
                    total_selling_price=floor_money(selling * qty),
                    total_cost_price=floor_money(cost * qty),
                    used_batches=[{"batch_id": batch.id, "quantity": qty}],
                )

        remaining, selling_total, cost_total, used = qty, 0.0, 0.0, []
        for batch in product.batches:
            if remaining <= 0:
                break
            if batch.quantity <= 0:
                continue
            take = min(remaining, batch.quantity)
            selling = product.wholesale_price if wholesale else (batch.selling_price or product_selling)
            selling_total += selling * take
            cost_total    += (batch.cost_price or product_cost) * take
            used.append({"batch_id": batch.id, "quantity": round(take, 6)})
            remaining -= take

        if remaining > 0:
            selling = product.wholesale_price if wholesale else product_selling
            selling_total += selling * remaining
            cost_total    += product_cost * remaining

        return PriceQuote(
            total_selling_price=floor_money(selling_total),
            total_cost_price=floor_money(cost_total),
            used_batches=used,
        )


# ── Stock ─────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class StockCheck:
    available:         bool
    stock_display:     str
    requested_display: str
    error:             Optional[str] = None
    stock_quantity:    float = 0.0
    base_unit:         Optional[str] = None


class StockService:

    def check_stock(self, product: Product, quantity: float, unit: str,
                    batch_id: Optional[str] = None) -> StockCheck:
        native    = normalize_unit(product.native_unit) or "pcs"
        requested = format_quantity_with_unit(quantity, unit)

        if product.is_direct:
            return StockCheck(
                available=True, stock_display="untracked",
                requested_display=requested, base_unit=base_unit(native),
            )

        stock = product.stock
        if batch_id:
            batch = next((b for b in product.batches if b.id == batch_id), None)
            if batch is None:
                return StockCheck(
                    available=False, stock_display=format_quantity_with_unit(0, native),
                    requested_display=requested, error="Selected batch not found.",
                )
            stock = batch.quantity

        needed = quantity_in_native(product, quantity, unit)
        return StockCheck(
            available=needed <= stock + 1e-9,
            stock_display=format_quantity_with_unit(stock, native),
            requested_display=requested,
            stock_quantity=stock,
            base_unit=base_unit(native),
        )
