"""Validation helpers for tenant slugs, branding values, and citizen documents.

Pure functions only; services turn a False result into a VALIDATION error.
"""

import re
from datetime import date
from urllib.parse import urlparse

MUNICIPALITY_SLUG_MAX_LENGTH = 64
MINIMUM_VOTING_AGE = 16

_SLUG_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
_HEX_COLOR_RE = re.compile(r"^#[0-9a-fA-F]{6}$")
_NON_DIGITS_RE = re.compile(r"\D")
_CEP_RE = re.compile(r"^\d{5}-?\d{3}$")


def is_valid_slug(slug: str) -> bool:
    """Check a municipality slug: lowercase letters, digits and single hyphens.

    Args:
        slug: Candidate slug such as ``muriae-mg``.

    Returns:
        True if the slug is acceptable as a permanent public identifier.
    """
    return 0 < len(slug) <= MUNICIPALITY_SLUG_MAX_LENGTH and _SLUG_RE.fullmatch(slug) is not None


def is_valid_hex_color(value: str) -> bool:
    """Check a ``#RRGGBB`` colour."""
    return _HEX_COLOR_RE.fullmatch(value) is not None


def is_valid_http_url(value: str) -> bool:
    """Check that a URL is absolute http(s) with a host."""
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def digits_only(value: str) -> str:
    return _NON_DIGITS_RE.sub("", value)


def is_valid_cpf(cpf: str) -> bool:
    """Validate a Brazilian CPF using its two check digits.

    Formatting characters are ignored, so ``529.982.247-25`` and
    ``52998224725`` are equivalent.

    Args:
        cpf: The CPF to validate.

    Returns:
        True if the CPF has 11 digits, is not a repeated digit, and both
        check digits match.
    """
    digits = digits_only(cpf)
    if len(digits) != 11 or digits == digits[0] * 11:
        return False

    numbers = [int(d) for d in digits]
    for position in (9, 10):
        total = sum(n * weight for n, weight in zip(numbers[:position], range(position + 1, 1, -1), strict=True))
        check = (total * 10) % 11
        if check == 10:
            check = 0
        if check != numbers[position]:
            return False
    return True


def is_valid_cep(cep: str) -> bool:
    """Validate a Brazilian postal code (CEP): exactly 8 digits once formatting is removed."""
    return _CEP_RE.fullmatch(cep.strip()) is not None


def age_on(birth_date: date, today: date) -> int:
    """Return completed years between ``birth_date`` and ``today``."""
    years = today.year - birth_date.year
    if (today.month, today.day) < (birth_date.month, birth_date.day):
        years -= 1
    return years


def is_voting_age(birth_date: date, today: date | None = None) -> bool:
    """Check that a person is at least the minimum voting age.

    Args:
        birth_date: Date of birth.
        today: Reference date; defaults to the current date.
    """
    return age_on(birth_date, today or date.today()) >= MINIMUM_VOTING_AGE
