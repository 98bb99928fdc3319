# quantity_resolver.py
# Turns a named command plus its resolved product into a concrete
# (quantity, unit). Stateless; always returns a ResolvedCommand.

import math
from typing import Optional

from constants import PRICE_MISSING
from order_models import (
    AmountEntity, QuantityUnitEntity, NamedCommand, Product,
    ResolvedCommand, CommandError,
)
from unit_reconciler import (
    reconcile, normalize_unit, is_count_unit, is_measured_unit, allowed_units,
)


def resolve_quantity(named: NamedCommand, product: Optional[Product]) -> ResolvedCommand:
    if product is None:
        return ResolvedCommand.unmatched(named.spoken_name)

    native = normalize_unit(product.native_unit) or "pcs"
    entity = named.entity

    if entity is None:
        command = ResolvedCommand(
            product=product, spoken_name=named.spoken_name,
            quantity=1.0, unit=native,
        )
    elif isinstance(entity, QuantityUnitEntity):
        command = _from_quantity_unit(named, product, entity, native)
    elif isinstance(entity, AmountEntity):
        command = _from_amount(named, product, entity, native)
    else:
        raise TypeError(f"Unknown entity type: {type(entity).__name__}")

    return validate(command)


def _from_quantity_unit(named, product, entity: QuantityUnitEntity, native: str) -> ResolvedCommand:
    result = reconcile(entity.quantity, entity.unit, native)
    if not result.compatible:
        return ResolvedCommand(
            product=product, spoken_name=named.spoken_name,
            quantity=entity.quantity, unit=entity.unit,
            unit_compatible=False,
            error=CommandError.UNIT_INCOMPATIBLE,
            required_unit=result.required_unit,
            allowed_units=result.allowed_units,
        )
    return ResolvedCommand(
        product=product, spoken_name=named.spoken_name,
        quantity=_round_for_unit(result.quantity, result.unit), unit=result.unit,
    )


def _from_amount(named, product, entity: AmountEntity, native: str) -> ResolvedCommand:
    price = product.effective_price
    if price > 0:
        return ResolvedCommand(
            product=product, spoken_name=named.spoken_name,
            quantity=_round_for_unit(entity.amount / price, native), unit=native,
            amount_paid=entity.amount, is_amount_based=True,
        )
    # No usable price: surface the line anyway so the seller sees it
    placeholder = 0.0 if is_measured_unit(native) else 1.0
    return ResolvedCommand(
        product=product, spoken_name=named.spoken_name,
        quantity=placeholder, unit=native,
        amount_paid=entity.amount, is_amount_based=True,
        warnings=(PRICE_MISSING,),
    )


def _round_for_unit(quantity: float, unit: str) -> float:
    if not math.isfinite(quantity):
        return quantity
    if is_count_unit(unit) and abs(quantity - round(quantity)) < 1e-9:
        return float(round(quantity))
    return round(quantity, 3)


# ── Validation ────────────────────────────────────────────────────────────────

def quantity_problem(quantity: float, unit: Optional[str]) -> Optional[str]:
    """Human-readable reason a quantity is unusable, or None if it is fine."""
    if quantity is None or not math.isfinite(quantity):
        return "Please enter a valid quantity."
    if quantity <= 0:
        return "Quantity must be greater than zero."
    if is_count_unit(unit) and abs(quantity - round(quantity)) > 1e-9:
        return "Quantity must be a whole number for pieces, packets and boxes."
    return None


def validate(command: ResolvedCommand) -> ResolvedCommand:
    if command.error is not None or PRICE_MISSING in command.warnings:
        return command
    if quantity_problem(command.quantity, command.unit):
        return command.with_error(CommandError.INVALID_QUANTITY)
    return command


def corrective_units(command: ResolvedCommand) -> tuple:
    """Units offered to the seller when a spoken unit did not fit."""
    if command.product is None:
        return ()
    return command.allowed_units or allowed_units(command.product.native_unit)
