from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from .config import JWT_SECRET, SESSION_EXPIRE_DAYS
from .utils import now_ms

ALGO = "HS256"
AUTH_COOKIE = "auth-token"
SESSION_MAX_AGE_SECONDS = SESSION_EXPIRE_DAYS * 24 * 60 * 60


def create_session_token(
    phone_number: str,
    name: str,
    user_id: int,
    login_time: Optional[int] = None,
    expires_days: int = SESSION_EXPIRE_DAYS,
) -> str:
    """Signs the identity returned by a successful OTP verification."""
    expire = datetime.now(timezone.utc) + timedelta(days=expires_days)
    to_encode = {
        "sub": phone_number,
        "phoneNumber": phone_number,
        "name": name,
        "userId": user_id,
        "loginTime": now_ms() if login_time is None else login_time,
        "exp": expire,
    }
    return jwt.encode(to_encode, JWT_SECRET, algorithm=ALGO)


def decode_session_token(token: str, now: Optional[int] = None) -> Optional[dict]:
    """Returns the session claims, or None when the token is invalid or too old."""
    if not token:
        return None

    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[ALGO])
    except JWTError:
        return None

    login_time = payload.get("loginTime")
    if not isinstance(login_time, int):
        return None

    current = now_ms() if now is None else now
    if current - login_time > SESSION_MAX_AGE_SECONDS * 1000:
        return None

    return payload
