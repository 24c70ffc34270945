"""Database models."""

from healthfirst.models.availability import provider_availability
from healthfirst.models.base import metadata
from healthfirst.models.patients import patients
from healthfirst.models.providers import providers
from healthfirst.models.slots import appointment_slots

__all__ = [
    "appointment_slots",
    "metadata",
    "patients",
    "provider_availability",
    "providers",
]
