# services/voice_agent/speech_session.py
# Drives one listening session: final transcript chunks accumulate in a
# buffer, a silence timer flushes them through the dispatcher.
#
#   IDLE ──start──▶ LISTENING ──silence / end_of_speech──▶ FLUSHING ──▶ LISTENING
#                                                             └─cancel──▶ IDLE
#
# Must be driven from inside a running event loop.

import asyncio
from typing import List, Optional

from constants import SILENCE_TIMEOUT_SECONDS, SILENCE_TIMEOUT_CONSTRAINED_SECONDS
from order_models import ResolvedCommand
from session_state import SessionState, Phase
from shared.logging.logger import get_logger

logger = get_logger("speech_session")


class SpeechSession:

    def __init__(self, session_id: str, dispatcher,
                 constrained_device: bool = False,
                 silence_timeout: Optional[float] = None):
        self.session_id = session_id
        self.dispatcher = dispatcher
        self.state      = SessionState(session_id=session_id)
        if silence_timeout is None:
            silence_timeout = (SILENCE_TIMEOUT_CONSTRAINED_SECONDS if constrained_device
                               else SILENCE_TIMEOUT_SECONDS)
        self.silence_timeout = silence_timeout
        self._timer: Optional[asyncio.TimerHandle] = None
        self._rerun = False

    @property
    def engine(self):
        return self.dispatcher.engine

    # ── Events ────────────────────────────────────────────────────────────────

    def start(self) -> None:
        self.state.cancelled = False
        # Already listening or flushing: buffered text stays for the next flush
        if self.state.phase == Phase.IDLE:
            self.state.reset_batch()
            self.state.transition(Phase.LISTENING)
        logger.info("[Speech] Listening", extra={"session_id": self.session_id,
                                                 "event_type": "start"})

    def on_interim(self, text: str) -> None:
        """Display only; interim text is never billed."""
        if self.state.phase != Phase.IDLE and not self.state.cancelled:
            self.state.interim = text or ""

    def on_final(self, text: str) -> bool:
        """Appends a final chunk. Returns False when the chunk was discarded."""
        if self.state.cancelled or self.state.phase == Phase.IDLE:
            logger.debug("[Speech] Final chunk discarded, session not listening",
                         extra={"session_id": self.session_id})
            return False
        text = (text or "").strip()
        if not text:
            return False
        self.state.buffer  = f"{self.state.buffer} {text}".strip()
        self.state.interim = ""
        self._restart_timer()
        return True

    async def cancel(self) -> List[ResolvedCommand]:
        """Processes what was already heard once, then drops further input."""
        self.state.cancelled = True
        self._stop_timer()
        while self.state.in_flight:
            await asyncio.sleep(0.01)
        results = await self.flush()
        self.state.reset_batch()
        if self.state.phase != Phase.IDLE:
            self.state.transition(Phase.IDLE)
        logger.info("[Speech] Cancelled", extra={"session_id": self.session_id,
                                                 "event_type": "cancel"})
        return results

    async def submit_text(self, text: str) -> List[ResolvedCommand]:
        """Typed input: bypasses the silence timer and flushes right away."""
        text = (text or "").strip()
        if not text:
            return []
        self.state.buffer = f"{self.state.buffer} {text}".strip()
        return await self.flush()

    # ── Flush ─────────────────────────────────────────────────────────────────

    async def flush(self) -> List[ResolvedCommand]:
        if self.state.in_flight:
            # Coalesced: the running flush picks the new text up when it ends
            self._rerun = True
            return []
        self._stop_timer()
        if not self.state.buffer.strip():
            return []

        resume = Phase.LISTENING if self.state.phase == Phase.LISTENING else Phase.IDLE
        self.state.in_flight = True
        self.state.transition(Phase.FLUSHING)
        collected: List[ResolvedCommand] = []
        try:
            while True:
                self._rerun = False
                snapshot = self.state.buffer
                commands = await asyncio.to_thread(
                    self.dispatcher.process, snapshot, self.state,
                    self.state.processed_once,
                )
                collected.extend(commands)
                if self.state.buffer == snapshot and not self._rerun:
                    break
        finally:
            self.state.in_flight = False
            self.state.reset_batch()
            self._stop_timer()
            target = Phase.IDLE if self.state.cancelled else resume
            self.state.transition(target)

        return collected

    # ── Silence timer ─────────────────────────────────────────────────────────

    def _restart_timer(self) -> None:
        self._stop_timer()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.silence_timeout, self._on_silence)

    def _stop_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_silence(self) -> None:
        self._timer = None
        logger.debug("[Speech] Silence timeout, flushing",
                     extra={"session_id": self.session_id, "event_type": "silence"})
        task = asyncio.ensure_future(self.flush())
        task.add_done_callback(self._on_flush_done)

    def _on_flush_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(
                f"[Speech] Silence flush failed: {error}",
                exc_info=(type(error), error, error.__traceback__),
                extra={"session_id": self.session_id, "event_type": "silence"},
            )

    def __repr__(self):
        return f"SpeechSession({self.state!r}, timeout={self.silence_timeout})"
