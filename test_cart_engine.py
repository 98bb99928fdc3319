import pytest

from constants import SALE_MODE_WHOLESALE
from order_models import CommandError, Product, ResolvedCommand
from services.business_logic.cart_engine import Cart, CartEngine, MergeError
from services.business_logic.inventory import BatchPricingService, StockService


def _cmd(product, quantity, unit):
    return ResolvedCommand(product=product, spoken_name=product.name.lower(),
                           quantity=quantity, unit=unit)


@pytest.fixture
def engine(store):
    return CartEngine("counter-1", store=store)


def test_new_line_is_priced_and_floored(engine, by_id):
    result = engine.add(_cmd(by_id["p-sugar"], 2, "kg"))
    assert result.ok
    line = result.line
    assert (line.quantity, line.unit) == (2, "kg")
    assert line.line_total == 100
    assert line.unit_price == 50
    # 5% GST inclusive share: 100 * 5 / 105
    assert line.gst_amount == 4.76
    assert line.cost_total == 84


def test_merge_converts_into_existing_line_unit(engine, by_id):
    engine.add(_cmd(by_id["p-sugar"], 2, "kg"))
    result = engine.add(_cmd(by_id["p-sugar"], 500, "g"))
    assert result.ok
    assert len(engine.cart) == 1
    line = engine.cart.get("p-sugar")
    assert (line.quantity, line.unit) == (2.5, "kg")
    assert line.line_total == 125


def test_at_most_one_line_per_product(engine, by_id):
    for _ in range(3):
        engine.add(_cmd(by_id["p-salt"], 1, "kg"))
    assert [l.product_id for l in engine.cart] == ["p-salt"]
    assert engine.cart.get("p-salt").quantity == 3


def test_stock_rejection_leaves_cart_unchanged(engine, by_id):
    soap = by_id["p-soap"]
    assert engine.add(_cmd(soap, 2, "pcs")).ok
    result = engine.add(_cmd(soap, 3, "pcs"))
    assert not result.ok
    assert result.error == MergeError.STOCK_INSUFFICIENT
    assert result.message == (
        "Low stock! Available: 4 pcs. Already in bill: 2 pcs. You can add maximum: 2 pcs."
    )
    assert result.stock_display == "4 pcs"
    assert engine.cart.get("p-soap").quantity == 2


def test_incompatible_unit_against_existing_line(engine, by_id):
    engine.add(_cmd(by_id["p-sugar"], 1, "kg"))
    result = engine.add(_cmd(by_id["p-sugar"], 1, "l"))
    assert result.error == MergeError.UNIT_INCOMPATIBLE
    assert engine.cart.get("p-sugar").quantity == 1


def test_rejected_commands_map_to_merge_errors(engine, by_id):
    assert engine.add(ResolvedCommand.unmatched("xyzzy")).error == MergeError.PRODUCT_MISSING
    bad = _cmd(by_id["p-soap"], 1.5, "pcs").with_error(CommandError.INVALID_QUANTITY)
    assert engine.add(bad).error == MergeError.INVALID_QUANTITY
    assert len(engine.cart) == 0


def test_non_finite_quantities_are_invalid(engine, by_id):
    soap = by_id["p-soap"]
    assert engine.add(_cmd(soap, 2, "pcs")).ok
    for bad in (float("nan"), float("inf"), float("-inf")):
        result = engine.set_quantity(soap, bad)
        assert not result.ok
        assert result.error == MergeError.INVALID_QUANTITY
    assert engine.add(_cmd(soap, float("inf"), "pcs")).error == MergeError.INVALID_QUANTITY
    assert engine.cart.get("p-soap").quantity == 2


def test_fractional_count_total_is_rejected(engine, by_id):
    result = engine.add(_cmd(by_id["p-soap"], 1.5, "pcs"))
    assert result.error == MergeError.INVALID_QUANTITY


def test_wholesale_moq(store, by_id):
    engine = CartEngine("counter-2", store=store, sale_mode=SALE_MODE_WHOLESALE)
    result = engine.add(_cmd(by_id["p-atta"], 5, "kg"))
    assert result.error == MergeError.MOQ_NOT_MET
    assert engine.add(_cmd(by_id["p-atta"], 10, "kg")).ok
    assert engine.cart.get("p-atta").line_total == 350


def test_fifo_batches(engine, by_id):
    line = engine.add(_cmd(by_id["p-atta"], 2, "kg")).line
    # 1 kg from the old batch at 38, 1 kg from the new one at 40
    assert line.line_total == 78
    assert [dict(b)["batch_id"] for b in line.source_batches] == ["b-old", "b-new"]


def test_explicit_batch(engine, by_id):
    line = engine.add(_cmd(by_id["p-atta"], 2, "kg"), batch_id="b-new").line
    assert line.line_total == 80


def test_money_is_truncated_not_rounded(engine):
    product = Product(id="p-x", name="Cashew", native_unit="kg",
                      selling_price=33.339, stock=10)
    line = engine.add(_cmd(product, 3, "kg")).line
    assert line.line_total == 100.01


def test_replace_normalizes_into_line_unit(engine, by_id):
    engine.add(_cmd(by_id["p-sugar"], 2, "kg"))
    result = engine.replace(_cmd(by_id["p-sugar"], 750, "g"))
    assert result.ok
    assert engine.cart.get("p-sugar").quantity == 0.75


def test_replace_with_zero_removes(engine, by_id):
    engine.add(_cmd(by_id["p-sugar"], 2, "kg"))
    result = engine.set_quantity(by_id["p-sugar"], 0)
    assert result.removed
    assert "p-sugar" not in engine.cart


def test_remove(engine, by_id):
    engine.add(_cmd(by_id["p-rice"], 1, "kg"))
    assert engine.remove("p-rice")
    assert not engine.remove("p-rice")


def test_direct_product(engine):
    result = engine.add_direct("Loose Pen", 10, quantity=3, code="PEN10")
    assert result.ok
    assert result.line.product_id == "direct:PEN10:10"
    assert result.line.line_total == 30
    assert engine.direct_product("direct:PEN10:10").name == "Loose Pen"
    # same code at another price is a separate line
    engine.add_direct("Loose Pen", 12, quantity=1, code="PEN10")
    assert len(engine.cart) == 2


def test_draft_is_saved_and_reloaded(store, by_id):
    first = CartEngine("counter-9", store=store)
    first.add(_cmd(by_id["p-sugar"], 2, "kg"))
    again = CartEngine("counter-9", store=store)
    assert again.cart.get("p-sugar").line_total == 100
    assert again.cart.total == 100


def test_cart_document_round_trip(engine, by_id):
    engine.add(_cmd(by_id["p-atta"], 2, "kg"))
    restored = Cart.from_doc(engine.cart.to_doc())
    assert restored.lines() == engine.cart.lines()


def test_injected_collaborators(by_id):
    class FlatPricing(BatchPricingService):
        def price(self, product, quantity, unit, sale_mode="retail", batch_id=None):
            return super().price(product, quantity, unit, sale_mode, batch_id)

    class NoStock(StockService):
        def check_stock(self, product, quantity, unit, batch_id=None):
            check = super().check_stock(product, quantity, unit, batch_id)
            return check.__class__(available=False, stock_display="0 kg",
                                   requested_display=check.requested_display,
                                   error="Out of stock.")

    engine = CartEngine("counter-3", pricing=FlatPricing(), stock=NoStock())
    result = engine.add(_cmd(by_id["p-salt"], 1, "kg"))
    assert result.error == MergeError.STOCK_INSUFFICIENT
    assert result.message == "Out of stock."
