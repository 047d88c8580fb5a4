from .base import Base, utcnow
from .school import School
from .user import User, UserRole, parent_students
from .class_model import ClassModel, class_teachers, class_students
from .subject import Subject, subject_teachers
from .grade import Grade
from .contact import Contact, ContactStatus
from .event import Event, AudienceType
from .subscription import Subscription
from .maintenance import SystemMaintenance, MaintenanceHistory
from .theme import Theme

__all__ = [
    "Base",
    "utcnow",
    "School",
    "User",
    "UserRole",
    "parent_students",
    "ClassModel",
    "class_teachers",
    "class_students",
    "Subject",
    "subject_teachers",
    "Grade",
    "Contact",
    "ContactStatus",
    "Event",
    "AudienceType",
    "Subscription",
    "SystemMaintenance",
    "MaintenanceHistory",
    "Theme",
]
