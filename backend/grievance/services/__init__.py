"""
Core services.

The store is the only externally callable surface; the other components are
collaborators that operate inside the store's unit of work.
"""

from .audit import AuditRecorder
from .identity import IdentityLocker
from .limits import InvariantEnforcer
from .roles import RoleRegistry
from .store import PolicyEnforcedStore

__all__ = [
    "AuditRecorder",
    "IdentityLocker",
    "InvariantEnforcer",
    "PolicyEnforcedStore",
    "RoleRegistry",
]
