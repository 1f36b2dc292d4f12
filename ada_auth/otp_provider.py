import logging
import random
import secrets
from dataclasses import dataclass
from typing import Callable, Optional

from .errors import (
    AlreadyActive,
    DeliveryFailed,
    InvalidOrExpired,
    OTPError,
    TooManyAttempts,
    ValidationError,
)
from .jobs import sweep
from .models import RequestType
from .otp_store import OTPStore
from .rate_limit import MINUTE_MS, RateLimiter
from .sms import SMSGateway, otp_message
from .utils import mask_phone, normalize_phone, now_ms

logger = logging.getLogger(__name__)

OTP_TTL_MINUTES = 10
OTP_TTL_MS = OTP_TTL_MINUTES * MINUTE_MS
ACTIVE_LOOKBACK_MS = 5 * MINUTE_MS
MAX_ATTEMPTS = 3

FATAL = "fatal"
ADVISORY = "advisory"


def generate_otp(random_bytes: Callable[[int], bytes] = secrets.token_bytes) -> str:
    """6 digit code from 3 secure random bytes (big endian) modulo 10**6."""
    num = int.from_bytes(random_bytes(3), "big")
    return f"{num % 1_000_000:06d}"


@dataclass(frozen=True)
class IssuedOTP:
    identifier: str
    expires_at: int


@dataclass(frozen=True)
class VerifiedIdentity:
    identifier: str
    holder_name: str
    user_id: int


class OTPIssuer:
    def __init__(
        self,
        store: OTPStore,
        gateway: SMSGateway,
        delivery_failure_policy: str = FATAL,
        clock: Callable[[], int] = now_ms,
        random_bytes: Callable[[int], bytes] = secrets.token_bytes,
        cleanup_probability: float = 0.0,
        rng: Callable[[], float] = random.random,
    ):
        if delivery_failure_policy not in (FATAL, ADVISORY):
            raise ValueError(f"Unknown delivery failure policy: {delivery_failure_policy}")

        self.store = store
        self.gateway = gateway
        self.delivery_failure_policy = delivery_failure_policy
        self.clock = clock
        self.random_bytes = random_bytes
        self.cleanup_probability = cleanup_probability
        self.rng = rng
        self.rate_limiter = RateLimiter(store, clock)

    def issue(self, holder_name: str, raw_phone: str, timeout: Optional[float] = None) -> IssuedOTP:
        if self.cleanup_probability and self.rng() < self.cleanup_probability:
            with self.store.transaction():
                sweep(self.store, self.clock())

        name = (holder_name or "").strip()
        if len(name) < 2:
            raise ValidationError("İsim en az 2 karakter olmalı.")

        identifier = normalize_phone(raw_phone)

        # The counter upsert is the first statement, so the write lock it takes
        # also covers the active check and the insert below.
        with self.store.transaction():
            self.rate_limiter.enforce(identifier, RequestType.SEND_OTP.value)

            now = self.clock()
            if self.store.find_recent_active_otp(identifier, now - ACTIVE_LOOKBACK_MS, now):
                logger.info("[OTP] Active code already exists for %s", mask_phone(identifier))
                raise AlreadyActive()

            code = generate_otp(self.random_bytes)
            record = self.store.insert_otp(identifier, name, code, now, now + OTP_TTL_MS)
            expires_at = record.expires_at

        logger.info("[OTP] Code issued for %s", mask_phone(identifier))
        self._deliver(identifier, name, code, timeout)

        return IssuedOTP(identifier=identifier, expires_at=expires_at)

    def _deliver(self, identifier: str, name: str, code: str, timeout: Optional[float]) -> None:
        try:
            self.gateway.send(identifier, otp_message(code, OTP_TTL_MINUTES), timeout=timeout)
        except DeliveryFailed:
            if self.delivery_failure_policy == FATAL:
                raise
            logger.warning("[DEV] SMS not delivered. OTP Code for %s (%s): %s", name, identifier, code)


class OTPVerifier:
    def __init__(self, store: OTPStore, clock: Callable[[], int] = now_ms):
        self.store = store
        self.clock = clock
        self.rate_limiter = RateLimiter(store, clock)

    def verify(self, raw_phone: str, code: str) -> VerifiedIdentity:
        identifier = normalize_phone(raw_phone)

        with self.store.transaction():
            self.rate_limiter.enforce(identifier, RequestType.VERIFY_OTP.value)

            now = self.clock()
            record = self.store.find_valid_otp(identifier, code, now)

            if record is None:
                self.store.increment_attempts(identifier, code)
                logger.info("[OTP] Invalid or expired code for %s", mask_phone(identifier))
                raise InvalidOrExpired()

            if record.attempts >= MAX_ATTEMPTS:
                logger.warning("[OTP] Attempt cap reached for %s", mask_phone(identifier))
                raise TooManyAttempts()

            if not self.store.mark_used(record.id, now):
                raise InvalidOrExpired()

            self.store.upsert_user(identifier, record.name, now)
            identity = VerifiedIdentity(
                identifier=identifier,
                holder_name=record.name,
                user_id=record.id,
            )

        logger.info("[OTP] Verified %s", mask_phone(identifier))
        return identity


def otp_status(store: OTPStore, raw_phone: str, now: int) -> dict:
    """Newest active code created in the last 5 minutes; any failure means none."""
    try:
        identifier = normalize_phone(raw_phone)
        with store.transaction():
            record = store.find_recent_active_otp(identifier, now - ACTIVE_LOOKBACK_MS, now)
            status = {
                "has_active_otp": record is not None,
                "expires_at": record.expires_at if record else None,
                "attempts": record.attempts if record else 0,
            }
    except OTPError as e:
        logger.warning("[OTP] Status lookup failed: %s", e)
        return {"has_active_otp": False, "expires_at": None, "attempts": 0}

    return status
