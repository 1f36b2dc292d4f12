"""Failure taxonomy of the OTP login flow.

Every error carries a stable ``code``, the HTTP status the API answers with and
a message that can be shown to the learner as-is. Nothing in this package
retries on its own; the caller decides.
"""

from typing import Optional


class OTPError(Exception):
    code = "otp_error"
    status_code = 400
    default_message = "İşlem başarısız. Lütfen tekrar deneyin."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(OTPError, ValueError):
    """Malformed input. Always the caller's fault."""

    code = "validation_error"
    default_message = "Geçersiz istek."


class InvalidPhoneFormat(ValidationError):
    code = "invalid_phone_format"
    default_message = "Geçerli bir telefon numarası girin (5XX XXX XX XX)."


class RateLimited(OTPError):
    code = "rate_limited"
    status_code = 429
    default_message = "Çok fazla deneme yaptınız. Lütfen daha sonra tekrar deneyin."

    def __init__(self, message: Optional[str] = None, retry_after_ms: int = 0):
        super().__init__(message)
        self.retry_after_ms = max(0, retry_after_ms)

    @property
    def retry_after_seconds(self) -> int:
        return -(-self.retry_after_ms // 1000)


class AlreadyActive(OTPError):
    code = "already_active"
    status_code = 429
    default_message = "Zaten aktif bir doğrulama kodunuz var. Lütfen bekleyin veya mevcut kodu kullanın."


class DeliveryFailed(OTPError):
    code = "delivery_failed"
    status_code = 502
    default_message = "Doğrulama kodu gönderilemedi. Lütfen tekrar deneyin."


class InvalidOrExpired(OTPError):
    code = "invalid_or_expired"
    default_message = "Doğrulama kodu yanlış veya süresi dolmuş."


class TooManyAttempts(OTPError):
    code = "too_many_attempts"
    default_message = "Bu doğrulama kodu için çok fazla yanlış deneme yapıldı."


class StorageFailure(OTPError):
    code = "storage_failure"
    status_code = 500
    default_message = "Sunucu hatası. Lütfen tekrar deneyin."
