from .enums import AppRole, ComplaintCategory, ComplaintSeverity, ComplaintStatus, RevealStatus
from .profile import Profile
from .user_role import UserRole
from .complaint import Complaint
from .timeline import TimelineEntry, TimelineMutationError
from .identity_locker import IdentityLocker

__all__ = [
    "AppRole",
    "Complaint",
    "ComplaintCategory",
    "ComplaintSeverity",
    "ComplaintStatus",
    "IdentityLocker",
    "Profile",
    "RevealStatus",
    "TimelineEntry",
    "TimelineMutationError",
    "UserRole",
]
