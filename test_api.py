import pytest
from fastapi.testclient import TestClient

from services.api import main
from services.business_logic.draft_store import DraftStore
from services.business_logic.inventory import InMemoryCatalog


@pytest.fixture
def client(monkeypatch, products, recorder):
    monkeypatch.setattr(main, "catalog", InMemoryCatalog(products))
    monkeypatch.setattr(main, "drafts", DraftStore(use_db=False))
    monkeypatch.setattr(main, "notifier_factory", lambda session_id: recorder)
    main._sessions.clear()
    with TestClient(main.app) as c:
        yield c
    main._sessions.clear()


def _lines(body):
    return {l["product_id"]: (l["quantity"], l["unit"]) for l in body["lines"]}


def test_typed_order(client):
    r = client.post("/orders/counter-1/text", json={"text": "do kilo chini aur namak"})
    assert r.status_code == 200
    body = r.json()
    assert [c["product_id"] for c in body["commands"]] == ["p-sugar", "p-salt"]
    assert body["total"] == 120
    assert len(body["cart"]) == 2


def test_empty_typed_order_rejected(client):
    assert client.post("/orders/counter-1/text", json={"text": "  "}).status_code == 400


def test_voice_flow(client):
    r = client.post("/voice/counter-1/start")
    assert r.json()["phase"] == "LISTENING"

    r = client.post("/voice/counter-1/final", json={"text": "chini 2 kg"})
    assert r.json()["accepted"]
    assert r.json()["commands"] == []

    r = client.post("/voice/counter-1/final",
                    json={"text": "aur namak", "end_of_speech": True})
    body = r.json()
    assert [c["product_id"] for c in body["commands"]] == ["p-sugar", "p-salt"]
    assert body["phase"] == "LISTENING"


def test_unit_error_is_returned_with_alternatives(client):
    r = client.post("/orders/counter-1/text", json={"text": "chini 1 litre"})
    [command] = r.json()["commands"]
    assert command["error"] == "UnitIncompatible"
    assert command["required_unit"] == "kg"
    assert command["allowed_units"] == ["kg", "g"]
    assert r.json()["cart"] == []


def test_cancel_processes_once_then_ignores_input(client):
    client.post("/voice/counter-1/start")
    client.post("/voice/counter-1/final", json={"text": "chini 2 kg"})
    r = client.post("/voice/counter-1/cancel")
    assert r.json()["phase"] == "IDLE"
    assert len(r.json()["commands"]) == 1

    r = client.post("/voice/counter-1/final", json={"text": "namak", "end_of_speech": True})
    assert not r.json()["accepted"]
    assert _lines(client.get("/cart/counter-1").json()) == {"p-sugar": (2, "kg")}


def test_replace_line_quantity(client):
    client.post("/orders/counter-1/text", json={"text": "chini 2 kg"})
    r = client.put("/cart/counter-1/lines/p-sugar", json={"quantity": 500, "unit": "g"})
    assert r.status_code == 200
    assert _lines(r.json()) == {"p-sugar": (0.5, "kg")}
    assert r.json()["total"] == 25


def test_replace_with_zero_removes_line(client):
    client.post("/orders/counter-1/text", json={"text": "chini 2 kg"})
    r = client.put("/cart/counter-1/lines/p-sugar", json={"quantity": 0})
    assert r.json()["lines"] == []


def test_replace_beyond_stock(client):
    r = client.put("/cart/counter-1/lines/p-soap", json={"quantity": 10})
    assert r.status_code == 422
    assert r.json()["detail"]["error"] == "StockInsufficient"


def test_replace_with_non_finite_quantity_is_rejected(client):
    client.post("/orders/counter-1/text", json={"text": "soap 2 pcs"})
    r = client.put("/cart/counter-1/lines/p-soap", content=b"{\"quantity\": NaN}",
                   headers={"Content-Type": "application/json"})
    assert r.status_code == 422
    assert r.json()["detail"]["error"] == "InvalidQuantity"
    assert _lines(client.get("/cart/counter-1").json()) == {"p-soap": (2, "pcs")}


def test_replace_unknown_product(client):
    assert client.put("/cart/counter-1/lines/nope", json={"quantity": 1}).status_code == 404


def test_delete_line(client):
    client.post("/orders/counter-1/text", json={"text": "namak"})
    assert client.delete("/cart/counter-1/lines/p-salt").status_code == 200
    assert client.delete("/cart/counter-1/lines/p-salt").status_code == 404


def test_direct_item(client):
    r = client.post("/cart/counter-1/direct",
                    json={"name": "Pen", "price": 10, "quantity": 3, "code": "PEN"})
    assert r.status_code == 200
    assert r.json()["total"] == 30
    r = client.put("/cart/counter-1/lines/direct:PEN:10", json={"quantity": 1})
    assert r.json()["total"] == 10


def test_sessions_are_isolated(client):
    client.post("/orders/counter-1/text", json={"text": "chini 2 kg"})
    assert client.get("/cart/counter-2").json()["lines"] == []


def test_health(client, monkeypatch):
    class FakeRedis:
        def ping(self):
            return True

    monkeypatch.setattr("shared.database.mongo_client.ping", lambda: True)
    monkeypatch.setattr("shared.events.notifier.get_redis", lambda: FakeRedis())
    body = client.get("/health").json()
    assert body["status"] == "healthy"
    assert body["checks"]["catalog_products"] == 7
