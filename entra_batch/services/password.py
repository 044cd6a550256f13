from __future__ import annotations

import secrets
import string

"""Temporary password generation for member creation.

Generated passwords always contain at least one uppercase letter, one
lowercase letter, one digit and one symbol from SYMBOLS; the remaining
characters are drawn uniformly from the union of the four classes and the
final order is shuffled.
"""

__all__ = [
    "SYMBOLS",
    "PASSWORD_LENGTH",
    "generate_password",
]

# Entra ID が受け付ける記号のみ
SYMBOLS = "!@#$%^&*-_=+?"
PASSWORD_LENGTH = 16

_CLASSES = (
    string.ascii_uppercase,
    string.ascii_lowercase,
    string.digits,
    SYMBOLS,
)


def generate_password(length: int = PASSWORD_LENGTH) -> str:
    if length < len(_CLASSES):
        raise ValueError(f"password length must be at least {len(_CLASSES)}")
    chars = [secrets.choice(cls) for cls in _CLASSES]
    alphabet = "".join(_CLASSES)
    chars.extend(secrets.choice(alphabet) for _ in range(length - len(chars)))
    secrets.SystemRandom().shuffle(chars)
    return "".join(chars)
