from ada_auth.auth import SESSION_MAX_AGE_SECONDS, create_session_token, decode_session_token

from conftest import BASE_TIME


def test_session_token_round_trip():
    token = create_session_token("905551234567", "Ada", 7, login_time=BASE_TIME)

    claims = decode_session_token(token, now=BASE_TIME + 1000)

    assert claims["sub"] == "905551234567"
    assert claims["phoneNumber"] == "905551234567"
    assert claims["name"] == "Ada"
    assert claims["userId"] == 7
    assert claims["loginTime"] == BASE_TIME


def test_session_older_than_max_age_is_rejected():
    token = create_session_token("905551234567", "Ada", 7, login_time=BASE_TIME)

    assert decode_session_token(token, now=BASE_TIME + SESSION_MAX_AGE_SECONDS * 1000 + 1) is None


def test_garbage_token_is_rejected():
    assert decode_session_token("not-a-jwt") is None
    assert decode_session_token("") is None
