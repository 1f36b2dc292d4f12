import logging
from dataclasses import dataclass
from typing import Callable, Dict

from .errors import RateLimited
from .models import RequestType
from .otp_store import OTPStore
from .utils import mask_phone, now_ms

logger = logging.getLogger(__name__)

MINUTE_MS = 60 * 1000


@dataclass(frozen=True)
class RateLimitConfig:
    max_requests: int
    window_ms: int


RATE_LIMITS: Dict[str, RateLimitConfig] = {
    RequestType.SEND_OTP.value: RateLimitConfig(max_requests=3, window_ms=5 * MINUTE_MS),
    RequestType.VERIFY_OTP.value: RateLimitConfig(max_requests=5, window_ms=15 * MINUTE_MS),
}

RATE_LIMIT_MESSAGES = {
    RequestType.SEND_OTP.value: "Çok fazla deneme yaptınız. Lütfen 5 dakika sonra tekrar deneyin.",
    RequestType.VERIFY_OTP.value: "Çok fazla yanlış deneme. Lütfen 15 dakika sonra tekrar deneyin.",
}


def window_start_for(now: int, window_ms: int) -> int:
    return (now // window_ms) * window_ms


class RateLimiter:
    """
    Fixed-window counter keyed by (identifier, request type, window start).

    Every call is counted, including the one that goes over the limit, so a
    window admits exactly `max_requests` calls.
    """

    def __init__(self, store: OTPStore, clock: Callable[[], int] = now_ms):
        self.store = store
        self.clock = clock

    def check_and_count(self, identifier: str, request_type: str) -> bool:
        return self._count(identifier, request_type, self.clock())

    def _count(self, identifier: str, request_type: str, now: int) -> bool:
        config = RATE_LIMITS[request_type]
        window_start = window_start_for(now, config.window_ms)

        count = self.store.increment_rate_limit(identifier, request_type, window_start)
        return count <= config.max_requests

    def enforce(self, identifier: str, request_type: str) -> None:
        """Counts the call and raises RateLimited when the window is exhausted."""
        now = self.clock()
        if self._count(identifier, request_type, now):
            return

        config = RATE_LIMITS[request_type]
        retry_after = window_start_for(now, config.window_ms) + config.window_ms - now

        logger.warning("[RATE] %s blocked for %s (retry in %sms)", request_type, mask_phone(identifier), retry_after)
        raise RateLimited(RATE_LIMIT_MESSAGES[request_type], retry_after_ms=retry_after)
