from typing import Callable

from fastapi import APIRouter, Depends, Query, Response

from ..auth import AUTH_COOKIE, SESSION_MAX_AGE_SECONDS, create_session_token
from ..config import IS_PRODUCTION
from ..deps import get_clock, get_current_session, get_otp_issuer, get_otp_verifier, get_store
from ..otp_provider import OTPIssuer, OTPVerifier, otp_status
from ..otp_store import OTPStore
from ..schemas import (
    MessageResponse,
    OTPSentResponse,
    OTPStatusResponse,
    OTPVerifiedResponse,
    SendOTPRequest,
    SessionResponse,
    VerifyOTPRequest,
)

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/send-otp", response_model=OTPSentResponse)
def send_otp(payload: SendOTPRequest, issuer: OTPIssuer = Depends(get_otp_issuer)):
    issued = issuer.issue(payload.holder_name, payload.raw_phone)
    return OTPSentResponse(
        message="Doğrulama kodu gönderildi.",
        identifier=issued.identifier,
        expires_at=issued.expires_at,
    )


@router.post("/verify-otp", response_model=OTPVerifiedResponse)
def verify_otp(
    payload: VerifyOTPRequest,
    response: Response,
    verifier: OTPVerifier = Depends(get_otp_verifier),
    clock: Callable[[], int] = Depends(get_clock),
):
    identity = verifier.verify(payload.raw_phone, payload.code)

    token = create_session_token(
        identity.identifier,
        identity.holder_name,
        identity.user_id,
        login_time=clock(),
    )
    response.set_cookie(
        AUTH_COOKIE,
        token,
        path="/",
        httponly=True,
        secure=IS_PRODUCTION,
        samesite="lax",
        max_age=SESSION_MAX_AGE_SECONDS,
    )

    return OTPVerifiedResponse(
        message="Doğrulama başarılı.",
        identifier=identity.identifier,
        holder_name=identity.holder_name,
        user_id=identity.user_id,
        token=token,
    )


@router.post("/logout", response_model=MessageResponse)
def logout(response: Response):
    response.delete_cookie(AUTH_COOKIE, path="/", httponly=True, secure=IS_PRODUCTION, samesite="lax")
    return MessageResponse(success=True, message="Başarıyla çıkış yapıldı.")


@router.get("/otp-status", response_model=OTPStatusResponse)
def get_otp_status(
    phone_number: str = Query(alias="phoneNumber"),
    store: OTPStore = Depends(get_store),
    clock: Callable[[], int] = Depends(get_clock),
):
    return OTPStatusResponse(**otp_status(store, phone_number, clock()))


@router.get("/me", response_model=SessionResponse)
def me(session: dict = Depends(get_current_session)):
    return SessionResponse(
        phone_number=session["phoneNumber"],
        name=session["name"],
        user_id=session["userId"],
        login_time=session["loginTime"],
    )
