from . import (
    classes,
    contacts,
    events,
    grades,
    health,
    maintenance,
    schools,
    stats,
    subjects,
    subscriptions,
    themes,
    users,
)

__all__ = [
    "classes",
    "contacts",
    "events",
    "grades",
    "health",
    "maintenance",
    "schools",
    "stats",
    "subjects",
    "subscriptions",
    "themes",
    "users",
]
