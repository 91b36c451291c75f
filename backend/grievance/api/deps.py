"""
deps.py - FastAPI dependencies.

The principal is resolved upstream by the identity provider and forwarded in
the X-Principal-Id header; this layer only parses it.
"""

from functools import lru_cache

from fastapi import Header, HTTPException, status

from grievance.principal import Principal
from grievance.services import PolicyEnforcedStore


@lru_cache
def get_store() -> PolicyEnforcedStore:
    return PolicyEnforcedStore()


def get_principal(x_principal_id: str = Header(...)) -> Principal:
    try:
        return Principal.from_str(x_principal_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-Principal-Id must be a UUID",
        ) from None
