import secrets
import string
from datetime import datetime

_ALPHABET = string.digits + string.ascii_uppercase


def _base36(n: int) -> str:
    digits = []
    while n:
        n, r = divmod(n, 36)
        digits.append(_ALPHABET[r])
    return "".join(reversed(digits)) or "0"


def generate_certificate_number(now: datetime, prefix: str = "CERT", suffix_length: int = 6) -> str:
    """Номер вида CERT-<время в base36>-<случайный суффикс>, например CERT-MGX1K2A0-7QZ4PB."""
    stamp = _base36(int(now.timestamp() * 1000))
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(suffix_length))
    return f"{prefix}-{stamp}-{suffix}"
