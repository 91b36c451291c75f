"""
principal.py - Caller identity handed in by the upstream identity provider.

A Principal is an identifier only. It never carries roles: authority is
always looked up in the role registry inside the operating transaction.
"""

import uuid
from dataclasses import dataclass


@dataclass(frozen=True)
class Principal:
    id: uuid.UUID

    @classmethod
    def from_str(cls, value: str) -> "Principal":
        return cls(id=uuid.UUID(value))
