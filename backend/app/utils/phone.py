import re

COUNTRY_CODES = ["+91", "+1", "+44", "+61", "+81"]
DEFAULT_COUNTRY_CODE = "+91"

_NON_DIGITS = re.compile(r"\D")


def normalize_phone(country_code: str, raw_phone: str) -> str:
    """Rewrite a free-form phone number as ``+<digits>``.

    Numbers typed with a leading ``+`` keep their own dial code. Otherwise
    leading zeros are dropped and ``country_code`` is prepended unless the
    digits already start with it.
    """
    trimmed = raw_phone.strip()
    if not trimmed:
        return ""

    if trimmed.startswith("+"):
        return "+" + _NON_DIGITS.sub("", trimmed)

    digits = _NON_DIGITS.sub("", trimmed).lstrip("0")
    code = country_code.replace("+", "", 1)

    if digits.startswith(code):
        return "+" + digits

    return f"{country_code}{digits}"


def phone_digits(phone: str) -> str:
    return _NON_DIGITS.sub("", phone)
