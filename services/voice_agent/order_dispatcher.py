# services/voice_agent/order_dispatcher.py
# One pass over a transcript: normalize → extract → name → resolve → merge.
# Entity-bearing mentions go first; whatever text is left unshielded is then
# read as bare mentions ("... aur namak" → 1 unit of salt).
#
# Per-command failures are logged and reported, never raised past process().

import time
from typing import Callable, List, Optional, Sequence

from constants import DEDUP_WINDOW_SECONDS, OVERLAP_TOLERANCE_CHARS, PRICE_MISSING
from entity_extractor import extract
from order_models import CommandError, NamedCommand, Product, ResolvedCommand
from product_resolver import ProductResolver
from quantity_resolver import resolve_quantity, corrective_units
from segment_extractor import name_for_entity, bare_mentions
from session_state import SessionState
from shared.logging.logger import get_logger
from transcript_normalizer import normalize
from unit_reconciler import format_quantity_with_unit

logger = get_logger("order_dispatcher")

NotifyFn = Callable[..., object]


def _log_only(message: str, severity: str = "info", duration_ms: Optional[int] = None):
    logger.info(f"[Notify] {message}", extra={"severity": severity})


class OrderDispatcher:

    def __init__(
        self,
        catalog,
        engine,
        notify:       Optional[NotifyFn] = None,
        clock:        Callable[[], float] = time.time,
        dedup_window: float = DEDUP_WINDOW_SECONDS,
        tolerance:    int   = OVERLAP_TOLERANCE_CHARS,
    ):
        self.catalog      = catalog
        self.engine       = engine
        self.notify       = notify or _log_only
        self.clock        = clock
        self.dedup_window = dedup_window
        self.tolerance    = tolerance
        self._snapshot: List[Product] = []

    # ── Entry point ───────────────────────────────────────────────────────────

    def process(self, text: str, session: SessionState,
                is_reprocess: bool = False) -> List[ResolvedCommand]:
        started = time.perf_counter()
        transcript = normalize(text)
        if not transcript.text:
            return []

        now = self.clock()
        if session.is_duplicate(transcript.text, self.dedup_window, now):
            logger.info(
                "[Dispatch] Duplicate transcript inside dedup window, skipped",
                extra={"session_id": session.session_id, "outcome": "duplicate"},
            )
            return []

        if not is_reprocess:
            session.shield.clear()

        products = self._refresh_catalog()
        resolver = ProductResolver(products)
        t = transcript.text
        results: List[ResolvedCommand] = []

        # ── Entity path ───────────────────────────────────────────────────────
        entities = extract(t, self.tolerance)
        for entity in entities:
            if session.shield.covers(entity.span):
                continue
            named = self._guarded(
                session, "name",
                lambda: name_for_entity(entity, entities, t, session.shield, products),
            )
            if named is not None:
                self._handle(named, resolver, session, results)

        # ── Bare path on the unshielded remainder ─────────────────────────────
        mentions = self._guarded(
            session, "segment",
            lambda: bare_mentions(t, session.shield, matcher=resolver),
        ) or []
        for named in mentions:
            self._handle(named, resolver, session, results)

        session.mark_processed(t, now)
        logger.info(
            f"[Dispatch] {len(results)} command(s) from {t!r}",
            extra={"session_id": session.session_id, "event_type": "dispatch",
                   "latency_ms": round((time.perf_counter() - started) * 1000, 2)},
        )
        return results

    # ── Per command ───────────────────────────────────────────────────────────

    def _handle(self, named: NamedCommand, resolver: ProductResolver,
                session: SessionState, results: List[ResolvedCommand]) -> None:
        if not named.spoken_name and named.entity is None:
            return
        command = self._guarded(session, "resolve", lambda: self._resolve(named, resolver))
        if command is None:
            return
        results.append(command)
        self._guarded(session, "merge", lambda: self._apply(command, session))

    def _resolve(self, named: NamedCommand, resolver: ProductResolver) -> ResolvedCommand:
        product = resolver(named.spoken_name) if named.spoken_name else None
        return resolve_quantity(named, product)

    def _apply(self, command: ResolvedCommand, session: SessionState) -> None:
        extra = {"session_id": session.session_id, "spoken_name": command.spoken_name}

        if command.error == CommandError.UNMATCHED_PRODUCT:
            logger.info(f"[Dispatch] Unmatched: {command.spoken_name!r}",
                        extra={**extra, "outcome": command.error.value})
            label = command.spoken_name or "that item"
            self.notify(f"Product not found: {label}", "warning")
            return

        if command.error == CommandError.UNIT_INCOMPATIBLE:
            units = ", ".join(corrective_units(command))
            logger.info(f"[Dispatch] Unit {command.unit} does not fit {command.product.name}",
                        extra={**extra, "outcome": command.error.value, "unit": command.unit})
            self.notify(
                f"{command.product.name} is sold in {command.required_unit}. "
                f"Use one of: {units}.",
                "error",
            )
            return

        if command.error == CommandError.INVALID_QUANTITY:
            logger.info(f"[Dispatch] Invalid quantity for {command.product.name}",
                        extra={**extra, "outcome": command.error.value,
                               "quantity": command.quantity, "unit": command.unit})
            self.notify(
                f"Invalid quantity for {command.product.name}: "
                f"{format_quantity_with_unit(command.quantity, command.unit)}",
                "error",
            )
            return

        if PRICE_MISSING in command.warnings:
            self.notify(f"No price set for {command.product.name}; check the quantity.", "warning")
            if not command.quantity:
                logger.info(f"[Dispatch] {command.product.name} has no price, not merged",
                            extra={**extra, "outcome": PRICE_MISSING})
                return

        result = self.engine.add(command)
        if result.ok:
            self.notify(f"Added {result.message}", "success", 1500)
        else:
            logger.info(f"[Dispatch] Merge rejected: {result.message}",
                        extra={**extra, "outcome": result.error.value})
            self.notify(result.message, "error", 4000)

    # ── Helpers ───────────────────────────────────────────────────────────────

    def _refresh_catalog(self) -> Sequence[Product]:
        try:
            self._snapshot = list(self.catalog.list_products())
        except Exception as e:
            logger.warning(f"[Dispatch] Catalog refresh failed, using last snapshot: {e}")
        return self._snapshot

    def _guarded(self, session: SessionState, stage: str, fn):
        try:
            return fn()
        except Exception as e:
            logger.error(
                f"[Dispatch] {stage} failed: {e}",
                exc_info=True,
                extra={"session_id": session.session_id, "stage": stage, "outcome": "error"},
            )
            self.notify("Could not process part of that order.", "error")
            return None
