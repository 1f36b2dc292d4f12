import re
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

PHONE_PATTERN = re.compile(r"^5\d{9}$")
CODE_PATTERN = re.compile(r"^\d{6}$")


# ============================================================
# VALIDATORS
# ============================================================

def validate_holder_name(v) -> str:
    if not isinstance(v, str) or len(v.strip()) < 2:
        raise ValueError("İsim en az 2 karakter olmalı.")
    return v.strip()


def validate_local_phone(v) -> str:
    if not isinstance(v, str) or not v:
        raise ValueError("Telefon numarası gerekli.")
    clean = re.sub(r"\s", "", v)
    if not PHONE_PATTERN.match(clean):
        raise ValueError("Geçerli bir telefon numarası girin (5XX XXX XX XX).")
    return clean


def validate_phone_present(v) -> str:
    if not isinstance(v, str) or not v.strip():
        raise ValueError("Telefon numarası gerekli.")
    return v


def validate_code(v) -> str:
    if not isinstance(v, str) or not CODE_PATTERN.match(v):
        raise ValueError("Doğrulama kodu 6 haneli olmalı.")
    return v


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================
# REQUESTS
# ============================================================

class SendOTPRequest(CamelModel):
    holder_name: Optional[str] = Field(default=None, validate_default=True, validation_alias=AliasChoices("holderName", "name"))
    raw_phone: Optional[str] = Field(default=None, validate_default=True, validation_alias=AliasChoices("rawPhone", "phoneNumber"))

    @field_validator("holder_name", mode="before")
    @classmethod
    def check_holder_name(cls, v):
        return validate_holder_name(v)

    @field_validator("raw_phone", mode="before")
    @classmethod
    def check_raw_phone(cls, v):
        return validate_local_phone(v)


class VerifyOTPRequest(CamelModel):
    raw_phone: Optional[str] = Field(default=None, validate_default=True, validation_alias=AliasChoices("rawPhone", "phoneNumber"))
    code: Optional[str] = Field(default=None, validate_default=True, validation_alias=AliasChoices("code", "otpCode"))

    @field_validator("raw_phone", mode="before")
    @classmethod
    def check_raw_phone(cls, v):
        return validate_phone_present(v)

    @field_validator("code", mode="before")
    @classmethod
    def check_code(cls, v):
        return validate_code(v)


# ============================================================
# RESPONSES
# ============================================================

class OTPSentResponse(CamelModel):
    success: bool = True
    message: str
    identifier: str
    expires_at: int


class OTPVerifiedResponse(CamelModel):
    success: bool = True
    message: str
    identifier: str
    holder_name: str
    user_id: int
    token: str


class OTPStatusResponse(CamelModel):
    has_active_otp: bool = Field(alias="hasActiveOTP")
    expires_at: Optional[int] = None
    attempts: int = 0


class SessionResponse(CamelModel):
    phone_number: str
    name: str
    user_id: int
    login_time: int


class MessageResponse(BaseModel):
    success: bool
    message: str
    error: Optional[str] = None
