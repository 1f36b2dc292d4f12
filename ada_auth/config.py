import os

APP_ENV = os.getenv("APP_ENV", "development").lower()
IS_PRODUCTION = APP_ENV == "production"

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./ada.db")

# Upper bound for lock waits and statements in the store (seconds)
STORE_TIMEOUT_SECONDS = float(os.getenv("STORE_TIMEOUT_SECONDS", "5"))

# JWT
JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-key")
SESSION_EXPIRE_DAYS = int(os.getenv("SESSION_EXPIRE_DAYS", "30"))

# "fatal": SMS failure is returned to the client
# "advisory": SMS failure is only logged, together with the code
OTP_DELIVERY_FAILURE_POLICY = os.getenv(
    "OTP_DELIVERY_FAILURE_POLICY",
    "fatal" if IS_PRODUCTION else "advisory",
).lower()

SMS_GATEWAY_URL = os.getenv("SMS_GATEWAY_URL")
SMS_GATEWAY_API_KEY = os.getenv("SMS_GATEWAY_API_KEY")
SMS_SENDER = os.getenv("SMS_SENDER", "ADA")
SMS_TIMEOUT_SECONDS = float(os.getenv("SMS_TIMEOUT_SECONDS", "10"))

CLEANUP_PROBABILITY = float(os.getenv("CLEANUP_PROBABILITY", "0.1"))

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

# uvicorn bind address for `ada-auth` / `python -m ada_auth.main`
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8000"))
