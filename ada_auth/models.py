from enum import Enum

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    Index,
    Integer,
    String,
    UniqueConstraint,
)

from .database import Base


# ---------------------------------------
# REQUEST KINDS GATED BY THE RATE LIMITER
# ---------------------------------------
class RequestType(str, Enum):
    SEND_OTP = "send_otp"
    VERIFY_OTP = "verify_otp"


# ---------------------------------------
# OTP
# All instants are milliseconds since epoch
# ---------------------------------------
class OTPCode(Base):
    __tablename__ = "otp_codes"
    __table_args__ = (
        Index("idx_phone_otp", "phone_number", "otp_code"),
        Index("idx_expires_at", "expires_at"),
        Index("idx_phone_created", "phone_number", "created_at"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)

    phone_number = Column(String, nullable=False)
    name = Column(String, nullable=False)
    otp_code = Column(String(6), nullable=False)

    created_at = Column(BigInteger, nullable=False)
    expires_at = Column(BigInteger, nullable=False)
    verified_at = Column(BigInteger, nullable=True)

    attempts = Column(Integer, nullable=False, default=0)
    is_used = Column(Boolean, nullable=False, default=False)


# ---------------------------------------
# USERS (created or refreshed by a successful OTP verification)
# ---------------------------------------
class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    phone_number = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)

    created_at = Column(BigInteger, nullable=False)
    last_login_at = Column(BigInteger, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)


# ---------------------------------------
# FIXED WINDOW COUNTERS
# ---------------------------------------
class RateLimit(Base):
    __tablename__ = "rate_limits"
    __table_args__ = (
        UniqueConstraint("phone_number", "request_type", "window_start", name="uq_rate_limit_window"),
        Index("idx_rate_limit_phone", "phone_number", "request_type"),
        Index("idx_rate_limit_window", "window_start"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    phone_number = Column(String, nullable=False)
    request_type = Column(String, nullable=False)
    request_count = Column(Integer, nullable=False, default=1)
    window_start = Column(BigInteger, nullable=False)
