from typing import Callable, Optional

from fastapi import Cookie, Depends, Header, HTTPException
from sqlalchemy.orm import Session

from .auth import AUTH_COOKIE, decode_session_token
from .config import CLEANUP_PROBABILITY, OTP_DELIVERY_FAILURE_POLICY
from .database import get_db
from .otp_provider import OTPIssuer, OTPVerifier
from .otp_store import OTPStore
from .sms import SMSGateway, build_sms_gateway
from .utils import now_ms


def get_clock() -> Callable[[], int]:
    return now_ms


def get_sms_gateway() -> SMSGateway:
    return build_sms_gateway()


def get_store(db: Session = Depends(get_db)) -> OTPStore:
    return OTPStore(db)


def get_otp_issuer(
    store: OTPStore = Depends(get_store),
    gateway: SMSGateway = Depends(get_sms_gateway),
    clock: Callable[[], int] = Depends(get_clock),
) -> OTPIssuer:
    return OTPIssuer(
        store,
        gateway,
        delivery_failure_policy=OTP_DELIVERY_FAILURE_POLICY,
        clock=clock,
        cleanup_probability=CLEANUP_PROBABILITY,
    )


def get_otp_verifier(
    store: OTPStore = Depends(get_store),
    clock: Callable[[], int] = Depends(get_clock),
) -> OTPVerifier:
    return OTPVerifier(store, clock=clock)


async def get_current_session(
    auth_token: Optional[str] = Cookie(default=None, alias=AUTH_COOKIE),
    authorization: Optional[str] = Header(default=None),
    clock: Callable[[], int] = Depends(get_clock),
) -> dict:
    # Cookie first, then bearer header for API clients
    token = auth_token
    if not token and authorization and authorization.lower().startswith("bearer "):
        token = authorization.split(" ", 1)[1]

    if not token:
        raise HTTPException(status_code=401, detail="No authentication token found")

    session = decode_session_token(token, now=clock())
    if not session:
        raise HTTPException(status_code=401, detail="Invalid token")
    return session
