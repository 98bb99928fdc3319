# shared/utils/circuit_breaker.py
# Stops hammering a dead dependency (Redis for notifications, today).
# States: CLOSED (normal) → OPEN (failing) → HALF_OPEN (testing recovery)
#
# Usage:
#   breaker = CircuitBreaker(name="notifications", failure_threshold=3)
#   breaker.call(publish, payload)

import time
from shared.logging.logger import get_logger

logger = get_logger("circuit_breaker")


class CircuitOpenError(Exception):
    """Raised when the circuit is OPEN and the call was not attempted."""


class CircuitBreaker:

    def __init__(
        self,
        name:              str,
        failure_threshold: int   = 3,     # failures before opening
        recovery_timeout:  float = 30.0,  # seconds before a trial call
        success_threshold: int   = 1,     # successes in HALF_OPEN to close
        clock=time.time,
    ):
        self.name              = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout  = recovery_timeout
        self.success_threshold = success_threshold
        self._clock            = clock

        self._state           = "CLOSED"
        self._failure_count   = 0
        self._success_count   = 0
        self._last_failure_ts = None

    @property
    def state(self) -> str:
        if self._state == "OPEN" and self._clock() - self._last_failure_ts >= self.recovery_timeout:
            self._state         = "HALF_OPEN"
            self._success_count = 0
            logger.info(f"Circuit [{self.name}] → HALF_OPEN")
        return self._state

    def is_available(self) -> bool:
        return self.state != "OPEN"

    def record_success(self):
        if self._state == "HALF_OPEN":
            self._success_count += 1
            if self._success_count >= self.success_threshold:
                self._state         = "CLOSED"
                self._failure_count = 0
                logger.info(f"Circuit [{self.name}] → CLOSED")
        elif self._state == "CLOSED":
            self._failure_count = 0

    def record_failure(self):
        self._failure_count   += 1
        self._last_failure_ts  = self._clock()
        if self._state == "HALF_OPEN" or self._failure_count >= self.failure_threshold:
            self._state = "OPEN"
            logger.warning(
                f"Circuit [{self.name}] → OPEN "
                f"({self._failure_count} failures, blocking for {self.recovery_timeout}s)"
            )

    def call(self, func, *args, **kwargs):
        if not self.is_available():
            raise CircuitOpenError(f"Circuit [{self.name}] is OPEN")
        try:
            result = func(*args, **kwargs)
        except Exception:
            self.record_failure()
            raise
        self.record_success()
        return result

    def __repr__(self):
        return (
            f"CircuitBreaker(name={self.name!r}, "
            f"state={self._state}, "
            f"failures={self._failure_count})"
        )


notification_breaker = CircuitBreaker(name="notifications", failure_threshold=3, recovery_timeout=30)
