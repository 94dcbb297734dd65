import phonenumbers

from dispatch.errors import InvalidInput


def normalize_phone(raw: str, region: str = "CU") -> str:
    """
    Parse a phone number typed by a user and return it in E.164 (+5351234567).
    Local numbers are read in `region`. An empty value stays empty.
    """
    raw = (raw or "").strip()
    if not raw:
        return ""

    try:
        number = phonenumbers.parse(raw, region)
    except phonenumbers.NumberParseException as exc:
        raise InvalidInput(f"Invalid phone number: {raw}") from exc

    if not phonenumbers.is_possible_number(number):
        raise InvalidInput(f"Invalid phone number: {raw}")

    return phonenumbers.format_number(number, phonenumbers.PhoneNumberFormat.E164)
