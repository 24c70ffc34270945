"""Booking reference generation."""

import re
import secrets
import string

from healthfirst.config import settings

REFERENCE_ALPHABET = string.ascii_uppercase + string.digits
REFERENCE_LENGTH = 8
REFERENCE_PATTERN = re.compile(r"^[A-Z]+-[A-Z0-9]{8}$")


def new_booking_reference(prefix: str | None = None) -> str:
    """Return a fresh reference such as ``APT-7K2Q9XZD``."""
    prefix = prefix or settings.booking_reference_prefix
    code = "".join(secrets.choice(REFERENCE_ALPHABET) for _ in range(REFERENCE_LENGTH))
    return f"{prefix}-{code}"


class BookingReferenceFactory:
    """Issues references that are unique within one generation batch."""

    def __init__(self, prefix: str | None = None):
        self.prefix = prefix
        self._issued: set[str] = set()

    def __call__(self) -> str:
        reference = new_booking_reference(self.prefix)
        while reference in self._issued:
            reference = new_booking_reference(self.prefix)
        self._issued.add(reference)
        return reference
