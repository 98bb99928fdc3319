# services/api/main.py
# REST API for the billing screen.
# Speech-to-text runs on the client; this service receives transcript chunks
# and typed text, and owns the bill being built for each session.

import os
from typing import List, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

load_dotenv()

from constants import DEFAULT_SALE_MODE
from order_models import ResolvedCommand
from services.business_logic.cart_engine import CartEngine, MergeResult
from services.business_logic.draft_store import DraftStore
from services.business_logic.inventory import MongoCatalog
from services.voice_agent.order_dispatcher import OrderDispatcher
from services.voice_agent.speech_session import SpeechSession
from shared.events.notifier import Notifier
from shared.logging.logger import get_logger

logger = get_logger("api")

app = FastAPI(
    title="POS Order Intake API",
    description="Voice and typed order intake for the billing screen",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

# Swappable collaborators (tests replace these before the first request)
catalog          = MongoCatalog()
drafts           = DraftStore()
notifier_factory = Notifier
_sessions: dict  = {}


def get_session(session_id: str, constrained_device: bool = False) -> SpeechSession:
    session = _sessions.get(session_id)
    if session is None:
        engine = CartEngine(session_id, store=drafts,
                            sale_mode=os.getenv("SALE_MODE", DEFAULT_SALE_MODE))
        dispatcher = OrderDispatcher(catalog, engine, notify=notifier_factory(session_id))
        session = SpeechSession(session_id, dispatcher, constrained_device=constrained_device)
        _sessions[session_id] = session
    return session


# ── Request / Response models ─────────────────────────────────────────────────

class StartRequest(BaseModel):
    constrained_device: bool = False

class FinalRequest(BaseModel):
    text: str
    end_of_speech: bool = False

class TextRequest(BaseModel):
    text: str

class LineUpdate(BaseModel):
    quantity: float
    unit: Optional[str] = None

class DirectItemRequest(BaseModel):
    name: str
    price: float
    quantity: float = 1
    unit: str = "pcs"
    code: Optional[str] = None

class CartResponse(BaseModel):
    session_id: str
    lines: list
    total: float

class VoiceResponse(BaseModel):
    session_id: str
    phase: str
    accepted: bool = True
    commands: list = []
    cart: list = []
    total: float = 0.0


def _command_doc(c: ResolvedCommand) -> dict:
    return {
        "spoken_name":     c.spoken_name,
        "product_id":      c.product.identity if c.product else None,
        "product_name":    c.product.name if c.product else None,
        "quantity":        c.quantity,
        "unit":            c.unit,
        "amount_paid":     c.amount_paid,
        "is_amount_based": c.is_amount_based,
        "matched":         c.matched,
        "error":           c.error.value if c.error else None,
        "warnings":        list(c.warnings),
        "required_unit":   c.required_unit,
        "allowed_units":   list(c.allowed_units),
    }


def _voice_response(session: SpeechSession, commands: List[ResolvedCommand],
                    accepted: bool = True) -> VoiceResponse:
    cart = session.engine.snapshot()
    return VoiceResponse(
        session_id=session.session_id,
        phase=session.state.phase.value,
        accepted=accepted,
        commands=[_command_doc(c) for c in commands],
        cart=cart.to_doc(),
        total=cart.total,
    )


def _cart_response(session: SpeechSession) -> CartResponse:
    cart = session.engine.snapshot()
    return CartResponse(session_id=session.session_id, lines=cart.to_doc(), total=cart.total)


def _raise_for_merge(result: MergeResult) -> None:
    if not result.ok:
        raise HTTPException(status_code=422, detail={
            "error":             result.error.value if result.error else None,
            "message":           result.message,
            "stock_display":     result.stock_display,
            "requested_display": result.requested_display,
        })


# ── Endpoints ─────────────────────────────────────────────────────────────────

@app.get("/")
def root():
    return {"status": "ok", "service": "pos-order-intake", "version": "1.0.0"}


@app.get("/health")
def health():
    checks = {}

    try:
        from shared.database.mongo_client import ping
        ping()
        checks["mongodb"] = "ok"
    except Exception as e:
        checks["mongodb"] = f"error: {e}"

    try:
        from shared.events.notifier import get_redis
        get_redis().ping()
        checks["redis"] = "ok"
    except Exception as e:
        checks["redis"] = f"error: {e}"

    try:
        checks["catalog_products"] = len(catalog.list_products())
    except Exception as e:
        checks["catalog_products"] = f"error: {e}"

    all_ok = checks["mongodb"] == "ok" and checks["redis"] == "ok"
    return {"status": "healthy" if all_ok else "degraded", "checks": checks}


@app.post("/voice/{session_id}/start", response_model=VoiceResponse)
def start_listening(session_id: str, req: Optional[StartRequest] = None):
    session = get_session(session_id, constrained_device=bool(req and req.constrained_device))
    session.start()
    return _voice_response(session, [])


@app.post("/voice/{session_id}/final", response_model=VoiceResponse)
async def final_transcript(session_id: str, req: FinalRequest):
    session  = get_session(session_id)
    accepted = session.on_final(req.text)
    commands = await session.flush() if accepted and req.end_of_speech else []
    return _voice_response(session, commands, accepted=accepted)


@app.post("/voice/{session_id}/cancel", response_model=VoiceResponse)
async def cancel_listening(session_id: str):
    session  = get_session(session_id)
    commands = await session.cancel()
    return _voice_response(session, commands)


@app.post("/orders/{session_id}/text", response_model=VoiceResponse)
async def typed_order(session_id: str, req: TextRequest):
    if not req.text or not req.text.strip():
        raise HTTPException(status_code=400, detail="Text cannot be empty")
    session  = get_session(session_id)
    commands = await session.submit_text(req.text)
    return _voice_response(session, commands)


@app.get("/cart/{session_id}", response_model=CartResponse)
def get_cart(session_id: str):
    return _cart_response(get_session(session_id))


@app.put("/cart/{session_id}/lines/{identity}", response_model=CartResponse)
def update_line(session_id: str, identity: str, req: LineUpdate):
    session = get_session(session_id)
    engine  = session.engine
    product = catalog.get(identity) or engine.direct_product(identity)
    if product is None:
        raise HTTPException(status_code=404, detail="Product not found")
    _raise_for_merge(engine.set_quantity(product, req.quantity, req.unit))
    return _cart_response(session)


@app.delete("/cart/{session_id}/lines/{identity}", response_model=CartResponse)
def delete_line(session_id: str, identity: str):
    session = get_session(session_id)
    if not session.engine.remove(identity):
        raise HTTPException(status_code=404, detail="Line not found")
    return _cart_response(session)


@app.post("/cart/{session_id}/direct", response_model=CartResponse)
def add_direct_item(session_id: str, req: DirectItemRequest):
    session = get_session(session_id)
    _raise_for_merge(session.engine.add_direct(
        req.name, req.price, quantity=req.quantity, unit=req.unit, code=req.code,
    ))
    return _cart_response(session)
