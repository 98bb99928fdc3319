# shared/events/notifier.py
# Seller-facing toasts ("Added sugar 2 kg", "Low stock!") published to a
# Redis Stream that the billing screen tails. Fire-and-forget: a dead Redis
# must never stop a bill from being built.

import json
import os
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Optional

import redis
from dotenv import load_dotenv

from shared.logging.logger import get_logger
from shared.utils.circuit_breaker import CircuitBreaker, CircuitOpenError, notification_breaker

load_dotenv()

logger = get_logger("notifier")

STREAM_NAME    = "pos:notifications"
MAX_STREAM_LEN = 10_000  # cap to avoid unbounded memory growth

SEVERITIES = ("success", "info", "warning", "error")


# ── Redis connection ──────────────────────────────────────────────────────────

_redis_client: Optional[redis.Redis] = None


def get_redis() -> redis.Redis:
    global _redis_client
    if _redis_client is None:
        url = os.getenv("REDIS_URL", "redis://localhost:6379")
        _redis_client = redis.from_url(url, decode_responses=True, socket_timeout=1)
    return _redis_client


# ── Payload ───────────────────────────────────────────────────────────────────

@dataclass
class Notification:
    message:     str
    severity:    str = "info"
    session_id:  str = ""
    duration_ms: Optional[int] = None
    timestamp:   str = ""

    def __post_init__(self):
        if self.severity not in SEVERITIES:
            self.severity = "info"
        if not self.timestamp:
            self.timestamp = datetime.now(timezone.utc).isoformat()

    def serialize(self) -> str:
        return json.dumps(asdict(self))


# ── Publisher ─────────────────────────────────────────────────────────────────

class Notifier:
    """
    Callable as notify(message, severity, duration_ms=None).
    Swallows and logs every delivery failure.
    """

    def __init__(self, session_id: str = "", client=None,
                 breaker: CircuitBreaker = notification_breaker):
        self.session_id = session_id
        self._client    = client
        self.breaker    = breaker

    def _redis(self):
        if self._client is None:
            self._client = get_redis()
        return self._client

    def _publish(self, note: Notification) -> str:
        return self._redis().xadd(
            STREAM_NAME,
            {"data": note.serialize()},
            maxlen=MAX_STREAM_LEN,
            approximate=True,
        )

    def notify(self, message: str, severity: str = "info",
               duration_ms: Optional[int] = None) -> Optional[str]:
        note = Notification(message=message, severity=severity,
                            session_id=self.session_id, duration_ms=duration_ms)
        try:
            msg_id = self.breaker.call(self._publish, note)
        except CircuitOpenError:
            logger.debug(f"[Notifier] Channel down, dropped: {message}",
                         extra={"session_id": self.session_id, "severity": note.severity})
            return None
        except Exception as e:
            logger.warning(f"[Notifier] Publish failed: {e}",
                           extra={"session_id": self.session_id, "severity": note.severity})
            return None
        logger.debug(f"[Notifier] {note.severity}: {message} | id={msg_id}",
                     extra={"session_id": self.session_id, "severity": note.severity})
        return msg_id

    __call__ = notify
