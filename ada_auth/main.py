import logging
from time import sleep

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
import uvicorn

from .config import APP_ENV, CORS_ORIGINS, HOST, PORT
from .database import engine, init_db
from .errors import OTPError, RateLimited, StorageFailure, ValidationError
from .routers import auth

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Ada Auth API",
    version="1.0.0",
    description="Phone number OTP login for the Ada Python tutor",
)


def safe_init_db(bind: Engine = engine):
    max_retries = 30
    delay = 2

    for attempt in range(1, max_retries + 1):
        try:
            init_db(bind=bind)
            logger.info("[INIT] Database ready (%s).", APP_ENV)
            return
        except OperationalError:
            logger.warning("[INIT] Database not ready (%s/%s)...", attempt, max_retries)
            sleep(delay)

    raise RuntimeError("Could not connect to the database after several attempts.")


@app.on_event("startup")
def on_startup():
    safe_init_db()


app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def error_body(message: str, code: str) -> dict:
    return {"success": False, "message": message, "error": code}


@app.exception_handler(OTPError)
async def otp_error_handler(request: Request, exc: OTPError) -> JSONResponse:
    headers = None
    if isinstance(exc, RateLimited):
        headers = {"Retry-After": str(exc.retry_after_seconds)}

    body = error_body(exc.message, exc.code)
    if isinstance(exc, RateLimited):
        body["retryAfter"] = exc.retry_after_seconds

    return JSONResponse(status_code=exc.status_code, content=body, headers=headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    message = ValidationError.default_message
    errors = exc.errors()
    if errors:
        ctx_error = (errors[0].get("ctx") or {}).get("error")
        if ctx_error is not None:
            message = str(ctx_error)

    return JSONResponse(status_code=400, content=error_body(message, ValidationError.code))


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("[ERROR] Unhandled error on %s", request.url.path)
    return JSONResponse(status_code=500, content=error_body(StorageFailure.default_message, "internal_error"))


app.include_router(auth.router)


@app.get("/")
def root():
    return {
        "ok": True,
        "service": "Ada Auth API",
        "version": "1.0.0",
        "docs": "/docs",
        "status": "running",
    }


@app.get("/healthz")
def health_check():
    return {"ok": True, "status": "UP"}


def run():
    uvicorn.run("ada_auth.main:app", host=HOST, port=PORT)


if __name__ == "__main__":
    run()
