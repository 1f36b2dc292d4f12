import logging
from contextlib import contextmanager
from typing import Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import OTPError, StorageFailure
from .models import OTPCode, RateLimit, User

logger = logging.getLogger(__name__)


class OTPStore:
    """
    Persistence for OTP codes, users and rate-limit counters.

    Every check goes to the database; nothing is cached in the process. Writes
    that must not race (counter increments, attempt increments, the used flag)
    are single statements so the database serialises them.
    """

    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def transaction(self):
        """
        Commits on success. Domain rejections (OTPError) also commit what was
        written before them, so a rejected request still counts. Database
        errors roll back and surface as StorageFailure.
        """
        try:
            yield self
            self.db.commit()
        except StorageFailure:
            self.db.rollback()
            raise
        except OTPError:
            self._commit_or_fail()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("[STORE] Transaction failed: %s", e)
            raise StorageFailure() from e
        except Exception:
            self.db.rollback()
            raise

    def _commit_or_fail(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("[STORE] Commit failed: %s", e)
            raise StorageFailure() from e

    def _insert(self, model):
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            return postgresql.insert(model)
        return sqlite.insert(model)

    # -------- Rate limits --------
    def increment_rate_limit(self, identifier: str, request_type: str, window_start: int) -> int:
        """Insert-or-increment the counter row and return its current count."""
        stmt = (
            self._insert(RateLimit)
            .values(
                phone_number=identifier,
                request_type=request_type,
                request_count=1,
                window_start=window_start,
            )
            .on_conflict_do_update(
                index_elements=["phone_number", "request_type", "window_start"],
                set_={"request_count": RateLimit.request_count + 1},
            )
        )
        self.db.execute(stmt)

        return self.db.execute(
            select(RateLimit.request_count).where(
                RateLimit.phone_number == identifier,
                RateLimit.request_type == request_type,
                RateLimit.window_start == window_start,
            )
        ).scalar_one()

    def delete_rate_limits_before(self, cutoff: int) -> int:
        result = self.db.execute(delete(RateLimit).where(RateLimit.window_start < cutoff))
        return result.rowcount

    # -------- OTP codes --------
    def find_recent_active_otp(self, identifier: str, since: int, now: int) -> Optional[OTPCode]:
        return self.db.execute(
            select(OTPCode)
            .where(
                OTPCode.phone_number == identifier,
                OTPCode.created_at > since,
                OTPCode.expires_at > now,
                OTPCode.is_used == False,  # noqa: E712
            )
            .order_by(OTPCode.created_at.desc(), OTPCode.id.desc())
            .limit(1)
        ).scalars().first()

    def insert_otp(self, identifier: str, name: str, code: str, created_at: int, expires_at: int) -> OTPCode:
        record = OTPCode(
            phone_number=identifier,
            name=name,
            otp_code=code,
            created_at=created_at,
            expires_at=expires_at,
            attempts=0,
            is_used=False,
        )
        self.db.add(record)
        self.db.flush()
        return record

    def find_valid_otp(self, identifier: str, code: str, now: int) -> Optional[OTPCode]:
        return self.db.execute(
            select(OTPCode)
            .where(
                OTPCode.phone_number == identifier,
                OTPCode.otp_code == code,
                OTPCode.expires_at > now,
                OTPCode.is_used == False,  # noqa: E712
            )
            .order_by(OTPCode.created_at.desc(), OTPCode.id.desc())
            .limit(1)
        ).scalars().first()

    def increment_attempts(self, identifier: str, code: str) -> int:
        """Bumps attempts on every record for (identifier, code), whatever its state."""
        result = self.db.execute(
            update(OTPCode)
            .where(OTPCode.phone_number == identifier, OTPCode.otp_code == code)
            .values(attempts=OTPCode.attempts + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def mark_used(self, otp_id: int, now: int) -> bool:
        """False when another request consumed the code first."""
        result = self.db.execute(
            update(OTPCode)
            .where(OTPCode.id == otp_id, OTPCode.is_used == False)  # noqa: E712
            .values(is_used=True, verified_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def count_otps(self, identifier: str) -> int:
        return self.db.execute(
            select(func.count(OTPCode.id)).where(OTPCode.phone_number == identifier)
        ).scalar_one()

    def delete_expired_otps(self, now: int) -> int:
        result = self.db.execute(delete(OTPCode).where(OTPCode.expires_at < now))
        return result.rowcount

    # -------- Users --------
    def upsert_user(self, identifier: str, name: str, now: int) -> User:
        stmt = (
            self._insert(User)
            .values(
                phone_number=identifier,
                name=name,
                created_at=now,
                last_login_at=now,
                is_active=True,
            )
            .on_conflict_do_update(
                index_elements=["phone_number"],
                set_={"name": name, "last_login_at": now},
            )
        )
        self.db.execute(stmt)
        return self.find_user(identifier)

    def find_user(self, identifier: str) -> Optional[User]:
        return self.db.execute(
            select(User)
            .where(User.phone_number == identifier)
            .execution_options(populate_existing=True)
        ).scalars().first()
