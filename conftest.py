import pytest

from order_models import Batch, Product
from services.business_logic.draft_store import DraftStore
from services.business_logic.inventory import InMemoryCatalog


def make_products():
    return [
        Product(id="p-sugar", name="Sugar", native_unit="kg", selling_price=50,
                cost_price=42, gst_percent=5, stock=100),
        Product(id="p-salt", name="Salt", native_unit="kg", selling_price=20,
                cost_price=15, stock=50),
        Product(id="p-rice", name="Rice", native_unit="kg", selling_price=60,
                cost_price=52, stock=80),
        Product(id="p-oil", name="Mustard Oil", native_unit="l", selling_price=180,
                cost_price=160, gst_percent=5, stock=20),
        Product(id="p-soap", name="Soap", native_unit="pcs", selling_price=30,
                cost_price=24, gst_percent=18, stock=4),
        Product(id="p-dal", name="Dal", native_unit="kg", stock=30),
        Product(id="p-atta", name="Atta", native_unit="kg", selling_price=40,
                wholesale_price=35, wholesale_moq=10, stock=500,
                batches=(Batch(id="b-old", quantity=1, selling_price=38, cost_price=30),
                         Batch(id="b-new", quantity=100, selling_price=40, cost_price=33))),
    ]


class Recorder:
    """Stands in for the notification channel."""

    def __init__(self):
        self.notes = []

    def __call__(self, message, severity="info", duration_ms=None):
        self.notes.append((message, severity))

    def severities(self):
        return [s for _, s in self.notes]


class FakeClock:

    def __init__(self, now=1_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def products():
    return make_products()


@pytest.fixture
def catalog(products):
    return InMemoryCatalog(products)


@pytest.fixture
def by_id(products):
    return {p.id: p for p in products}


@pytest.fixture
def store():
    return DraftStore(use_db=False)


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def clock():
    return FakeClock()
