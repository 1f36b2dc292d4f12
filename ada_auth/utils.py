import time

import phonenumbers

from .errors import InvalidPhoneFormat

COUNTRY_CODE = "90"


# ---------------------------------------------------------
# PHONE NUMBER NORMALIZATION
# ---------------------------------------------------------
def normalize_phone(raw: str) -> str:
    """
    Maps free-form input to the canonical identifier `90XXXXXXXXXX`.

    Accepts a 10 digit mobile number starting with 5 or a 12 digit number
    already carrying the 90 country code; separators are ignored. Never
    truncates or guesses.
    """
    digits = phonenumbers.normalize_digits_only(raw or "")

    if len(digits) == 10 and digits.startswith("5"):
        return COUNTRY_CODE + digits

    if len(digits) == 12 and digits.startswith(COUNTRY_CODE):
        return digits

    raise InvalidPhoneFormat()


def to_e164(identifier: str) -> str:
    num = phonenumbers.parse("+" + identifier, None)
    return phonenumbers.format_number(num, phonenumbers.PhoneNumberFormat.E164)


def mask_phone(identifier: str) -> str:
    if len(identifier) <= 4:
        return "****"
    return "*" * (len(identifier) - 4) + identifier[-4:]


# ---------------------------------------------------------
# CLOCK
# ---------------------------------------------------------
def now_ms() -> int:
    return int(time.time() * 1000)
