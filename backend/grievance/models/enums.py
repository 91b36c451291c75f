from enum import Enum


class AppRole(str, Enum):
    STUDENT = "student"
    STAFF = "staff"
    ADMIN = "admin"


class ComplaintCategory(str, Enum):
    HOSTEL = "hostel"
    ACADEMIC = "academic"
    FOOD = "food"
    INFRASTRUCTURE = "infrastructure"
    OTHER = "other"


class ComplaintSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ComplaintStatus(str, Enum):
    SUBMITTED = "submitted"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"


class RevealStatus(str, Enum):
    NOT_REVEALED = "not_revealed"
    REQUESTED = "requested"
    REVEALED = "revealed"
