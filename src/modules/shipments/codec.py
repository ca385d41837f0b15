"""Tracking-number codec.

Tracking numbers are ``OM`` followed by exactly nine ASCII digits
(``OM123456789``).  Input is case-insensitive and canonicalised to upper
case.  Everything here is pure; the random source used by ``generate`` is
injectable so tests can pin it.
"""

from __future__ import annotations

import random
import re
from typing import Container, Optional

from modules.shipments.constants import (
    TRACKING_DIGITS,
    TRACKING_NUMBER_MAX,
    TRACKING_NUMBER_MIN,
    TRACKING_PREFIX,
)
from modules.shipments.exceptions import InvalidTrackingNumber

TRACKING_NUMBER_PATTERN = re.compile(rf"{TRACKING_PREFIX}[0-9]{{{TRACKING_DIGITS}}}")
_DIGITS_PATTERN = re.compile(r"[0-9]+")

ISSUE_EMPTY = "empty"
ISSUE_MISSING_PREFIX = "missing_prefix"
ISSUE_NON_DIGIT = "non_digit"
ISSUE_WRONG_LENGTH = "wrong_length"

_system_random = random.SystemRandom()


def normalize(raw: Optional[str]) -> str:
    """Trim and upper-case user input."""
    return (raw or "").strip().upper()


def validate(normalized: str) -> str:
    """Return ``normalized`` if it is a well-formed tracking number.

    Raises:
        InvalidTrackingNumber: with the sub-case and a user-facing message.
    """
    if TRACKING_NUMBER_PATTERN.fullmatch(normalized):
        return normalized

    if not normalized:
        raise InvalidTrackingNumber(ISSUE_EMPTY, "Please enter a tracking number.")
    if not normalized.startswith(TRACKING_PREFIX):
        raise InvalidTrackingNumber(
            ISSUE_MISSING_PREFIX,
            f"Invalid format. Tracking number must start with '{TRACKING_PREFIX}'.",
        )

    number_part = normalized[len(TRACKING_PREFIX):]
    if number_part and not _DIGITS_PATTERN.fullmatch(number_part):
        raise InvalidTrackingNumber(
            ISSUE_NON_DIGIT,
            "Invalid format. Tracking number must contain only numbers "
            f"after '{TRACKING_PREFIX}'.",
        )
    raise InvalidTrackingNumber(
        ISSUE_WRONG_LENGTH,
        f"Invalid length. Expected {TRACKING_DIGITS} digits after "
        f"'{TRACKING_PREFIX}', but found {len(number_part)}.",
    )


def is_valid(normalized: str) -> bool:
    return bool(TRACKING_NUMBER_PATTERN.fullmatch(normalized))


def parse(raw: Optional[str]) -> str:
    """Normalize then validate; the usual entry point for user input."""
    return validate(normalize(raw))


def generate(
    existing_keys: Container[str],
    rng: Optional[random.Random] = None,
) -> str:
    """Draw a fresh tracking number not present in ``existing_keys``.

    Never returns fewer than nine digits.  Loops forever if every key in
    the space is taken.
    """
    source = rng or _system_random
    while True:
        candidate = f"{TRACKING_PREFIX}{source.randint(TRACKING_NUMBER_MIN, TRACKING_NUMBER_MAX)}"
        if candidate not in existing_keys:
            return candidate
