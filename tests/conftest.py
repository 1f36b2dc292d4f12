import pytest
from sqlalchemy.orm import sessionmaker

from ada_auth import models  # noqa: F401
from ada_auth.database import Base, make_engine
from ada_auth.errors import DeliveryFailed
from ada_auth.otp_provider import FATAL, OTPIssuer, OTPVerifier
from ada_auth.otp_store import OTPStore
from ada_auth.sms import SMSGateway

# Aligned to both the 5 and the 15 minute windows
BASE_TIME = 1_800_000_000_000
MINUTE = 60 * 1000

PHONE = "555 123 45 67"
IDENTIFIER = "905551234567"

# b"\x01\x02\x03" -> 66051 -> "066051"
FIXED_BYTES = b"\x01\x02\x03"
FIXED_CODE = "066051"


class FakeClock:
    def __init__(self, now: int = BASE_TIME):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class RecordingGateway(SMSGateway):
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent = []

    def send(self, identifier, text, timeout=None):
        self.sent.append((identifier, text, timeout))
        if self.fail:
            raise DeliveryFailed()


def fixed_bytes(n: int) -> bytes:
    return FIXED_BYTES[:n]


@pytest.fixture
def engine(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'ada-test.db'}", timeout=5)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def store(db):
    return OTPStore(db)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def gateway():
    return RecordingGateway()


@pytest.fixture
def issuer(store, gateway, clock):
    return OTPIssuer(store, gateway, delivery_failure_policy=FATAL, clock=clock, random_bytes=fixed_bytes)


@pytest.fixture
def verifier(store, clock):
    return OTPVerifier(store, clock=clock)
