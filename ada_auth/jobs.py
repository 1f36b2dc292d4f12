import logging
from typing import Optional

from sqlalchemy.orm import Session

from .otp_store import OTPStore
from .utils import now_ms

logger = logging.getLogger(__name__)

RATE_LIMIT_RETENTION_MS = 24 * 60 * 60 * 1000


def sweep(store: OTPStore, now: int) -> dict:
    """
    Deletes expired OTP codes and counter rows whose window started more
    than 24h ago. Runs inside the caller's transaction.
    """
    expired = store.delete_expired_otps(now)
    stale = store.delete_rate_limits_before(now - RATE_LIMIT_RETENTION_MS)

    return {"expired_otps": expired, "stale_rate_limits": stale}


def cleanup_database(db: Session, now: Optional[int] = None) -> dict:
    store = OTPStore(db)
    with store.transaction():
        removed = sweep(store, now_ms() if now is None else now)

    if removed["expired_otps"] or removed["stale_rate_limits"]:
        logger.info("[CLEANUP] %s", removed)
    return removed


if __name__ == "__main__":
    from .database import SessionLocal, init_db

    logging.basicConfig(level=logging.INFO)
    init_db()

    db = SessionLocal()
    try:
        print(cleanup_database(db))
    finally:
        db.close()
