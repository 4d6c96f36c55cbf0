"""Closed role set for authenticated clinic principals."""

from __future__ import annotations

from enum import StrEnum


class Role(StrEnum):
    """Roles assigned to clinic user accounts."""

    ADMIN = "admin"
    DOCTOR = "doctor"
    DENTIST = "dentist"
    NURSE = "nurse"
    PATIENT = "patient"


STAFF_ROLES = frozenset({Role.DOCTOR, Role.DENTIST, Role.NURSE})
