"""Password hashing and the signup password policy.

The policy is a list of named rules so each one can be checked (and tested) on
its own. ``password_policy_failures`` returns the names of the rules a password
breaks; an empty list means the password is acceptable.
"""
import re
from typing import Callable, List, NamedTuple, Union

import bcrypt

PASSWORD_SYMBOLS = "!@#$%^&*()_+-="
MIN_PASSWORD_LENGTH = 8
# bcrypt only hashes the first 72 bytes and rejects longer input.
MAX_PASSWORD_BYTES = 72

_ALLOWED_CHARACTERS = re.compile(r"^[A-Za-z0-9" + re.escape(PASSWORD_SYMBOLS) + r"]*$")


class PasswordRule(NamedTuple):
    name: str
    description: str
    check: Callable[[str], bool]


PASSWORD_RULES = (
    PasswordRule(
        "length",
        f"at least {MIN_PASSWORD_LENGTH} characters",
        lambda value: len(value) >= MIN_PASSWORD_LENGTH,
    ),
    PasswordRule(
        "max_length",
        f"at most {MAX_PASSWORD_BYTES} bytes",
        lambda value: len(value.encode("utf-8")) <= MAX_PASSWORD_BYTES,
    ),
    PasswordRule(
        "lowercase",
        "a lowercase letter",
        lambda value: re.search(r"[a-z]", value) is not None,
    ),
    PasswordRule(
        "uppercase",
        "an uppercase letter",
        lambda value: re.search(r"[A-Z]", value) is not None,
    ),
    PasswordRule(
        "digit",
        "a number",
        lambda value: re.search(r"\d", value) is not None,
    ),
    PasswordRule(
        "symbol",
        f"a symbol ({PASSWORD_SYMBOLS})",
        lambda value: any(char in PASSWORD_SYMBOLS for char in value),
    ),
    PasswordRule(
        "charset",
        "only letters, numbers and the listed symbols",
        lambda value: _ALLOWED_CHARACTERS.match(value) is not None,
    ),
)


def password_policy_failures(password: str) -> List[str]:
    value = password or ""
    return [rule.name for rule in PASSWORD_RULES if not rule.check(value)]


def is_strong_password(password: str) -> bool:
    return not password_policy_failures(password)


def hash_password(password: str, rounds: int = 10) -> bytes:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds))


def verify_password(password: str, hashed: Union[bytes, str, None]) -> bool:
    if not hashed:
        return False
    if isinstance(hashed, str):
        hashed = hashed.encode("utf-8")
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed)
    except ValueError:
        return False
