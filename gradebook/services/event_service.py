# gradebook/services/event_service.py
"""Calendar events with role-dependent audiences."""
import logging
from datetime import datetime
from typing import Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import BadRequest, Forbidden, NotFound
from ..models.event import AudienceType, Event
from ..models.user import User, UserRole
from ..schemas.common import iso, naive_utc, str_id
from ..schemas.event_schemas import EventAudience, EventCreate, EventUpdate
from .base_service import BaseService

logger = logging.getLogger(__name__)

# audiences each role may publish to, and the fallback for anything else
AUDIENCE_RULES = {
    UserRole.SUPERADMIN.value: (
        {t.value for t in AudienceType},
        AudienceType.ALL.value,
    ),
    UserRole.ADMIN.value: (
        {AudienceType.TEACHERS.value, AudienceType.STUDENTS.value, AudienceType.SPECIFIC.value},
        AudienceType.TEACHERS.value,
    ),
    UserRole.SECRETARY.value: (
        {AudienceType.TEACHERS.value, AudienceType.STUDENTS.value, AudienceType.SPECIFIC.value},
        AudienceType.TEACHERS.value,
    ),
    UserRole.TEACHER.value: (
        {AudienceType.STUDENTS.value, AudienceType.SPECIFIC.value},
        AudienceType.STUDENTS.value,
    ),
}

ROLE_AUDIENCE = {
    UserRole.ADMIN.value: AudienceType.ADMINS.value,
    UserRole.SECRETARY.value: AudienceType.ADMINS.value,
    UserRole.TEACHER.value: AudienceType.TEACHERS.value,
    UserRole.STUDENT.value: AudienceType.STUDENTS.value,
}


def allowed_audiences(role: str) -> set:
    return AUDIENCE_RULES.get(role, (set(), None))[0]


def normalize_target_type(role: str, target_type: Optional[str]) -> str:
    if role not in AUDIENCE_RULES:
        raise Forbidden("You do not have permission to create events")
    allowed, fallback = AUDIENCE_RULES[role]
    target_type = target_type or AudienceType.SPECIFIC.value
    return target_type if target_type in allowed else fallback


def can_view(user: User, event: Event) -> bool:
    """Audience match for one user; school scoping is applied separately."""
    if user.role == UserRole.SUPERADMIN.value:
        return True
    if event.creator_id == user.id:
        return True
    # admins oversee every event of their own school
    if user.role in (UserRole.ADMIN.value, UserRole.SECRETARY.value) and event.school_id == user.school_id:
        return True
    if event.target_type == AudienceType.ALL.value:
        return True
    if ROLE_AUDIENCE.get(user.role) == event.target_type:
        return True
    if str(user.id) in (event.specific_users or []):
        return True
    if event.target_type == AudienceType.SPECIFIC.value and user.school_id is not None:
        return str(user.school_id) in (event.schools or [])
    return False


def can_modify(user: User, event: Event) -> bool:
    return (
        user.role == UserRole.SUPERADMIN.value
        or event.creator_id == user.id
        or (user.role == UserRole.ADMIN.value and event.school_id is not None and event.school_id == user.school_id)
    )


class EventService(BaseService[Event]):
    resource_name = "Event"

    def __init__(self, db: AsyncSession):
        super().__init__(Event, db)

    async def to_dicts(self, events: Sequence[Event]) -> List[dict]:
        creator_ids = {e.creator_id for e in events if e.creator_id}
        creators: Dict[UUID, str] = {}
        if creator_ids:
            rows = await self.db.execute(select(User.id, User.name).where(User.id.in_(creator_ids)))
            creators = {user_id: name for user_id, name in rows.all()}
        return [
            {
                "_id": str(e.id),
                "title": e.title,
                "description": e.description or "",
                "startDate": iso(e.start_date),
                "endDate": iso(e.end_date),
                "allDay": e.all_day,
                "creator": {"_id": str(e.creator_id), "name": creators.get(e.creator_id)} if e.creator_id else None,
                "creatorRole": e.creator_role,
                "schoolId": str_id(e.school_id),
                "audience": {
                    "targetType": e.target_type,
                    "specificUsers": e.specific_users or [],
                    "schools": e.schools or [],
                    "directions": e.directions or [],
                },
                "color": e.color,
                "tags": e.tags or [],
                "isActive": e.is_active,
                "createdAt": iso(e.created_at),
                "updatedAt": iso(e.updated_at),
            }
            for e in events
        ]

    async def to_dict(self, event: Event) -> dict:
        return (await self.to_dicts([event]))[0]

    @staticmethod
    def _apply_audience(event: Event, audience: EventAudience):
        if audience.specific_users is not None:
            event.specific_users = [str(i) for i in audience.specific_users]
        if audience.schools is not None:
            event.schools = audience.schools
        if audience.directions is not None:
            event.directions = audience.directions

    async def create_event(self, data: EventCreate, actor: User) -> dict:
        audience = data.audience or EventAudience()
        target_type = normalize_target_type(actor.role, audience.target_type)

        start = naive_utc(data.start_date)
        end = naive_utc(data.end_date) or start
        if end < start:
            raise BadRequest("End date must be after start date")

        event = Event(
            title=data.title.strip(),
            description=data.description or "",
            start_date=start,
            end_date=end,
            all_day=data.all_day,
            creator_id=actor.id,
            creator_role=actor.role,
            school_id=actor.school_id,
            target_type=target_type,
            specific_users=[],
            schools=[],
            directions=[],
            color=data.color or "#1976d2",
            tags=data.tags,
            is_active=True,
        )
        self._apply_audience(event, audience)
        self.db.add(event)
        await self.db.commit()
        await self.db.refresh(event)
        logger.info(f"Event {event.id} '{event.title}' created by {actor.id} ({actor.role}) for {target_type}")
        return await self.to_dict(event)

    def _base_query(self, actor: User):
        stmt = select(Event).where(Event.is_active.is_(True))
        if actor.role != UserRole.SUPERADMIN.value:
            # own school plus system-wide events
            stmt = stmt.where(or_(Event.school_id == actor.school_id, Event.school_id.is_(None)))
        return stmt

    async def list_events(
        self,
        actor: User,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        tags: Optional[str] = None,
    ) -> List[dict]:
        stmt = self._base_query(actor)
        if start_date:
            stmt = stmt.where(Event.start_date >= naive_utc(start_date))
        if end_date:
            stmt = stmt.where(Event.end_date <= naive_utc(end_date))
        result = await self.db.execute(stmt.order_by(Event.start_date))
        events = [e for e in result.scalars().all() if can_view(actor, e)]

        if tags:
            wanted = {tag.strip() for tag in tags.split(",") if tag.strip()}
            events = [e for e in events if wanted.intersection(e.tags or [])]

        logger.debug(f"Returning {len(events)} events for user {actor.id}")
        return await self.to_dicts(events)

    async def _visible_event(self, event_id: UUID, actor: User) -> Event:
        result = await self.db.execute(self._base_query(actor).where(Event.id == event_id))
        event = result.scalar_one_or_none()
        if not event:
            raise NotFound("Event")
        return event

    async def get_event(self, event_id: UUID, actor: User) -> dict:
        event = await self._visible_event(event_id, actor)
        if not can_view(actor, event):
            raise Forbidden("You do not have permission to view this event")
        return await self.to_dict(event)

    async def update_event(self, event_id: UUID, data: EventUpdate, actor: User) -> dict:
        event = await self._visible_event(event_id, actor)
        if not can_modify(actor, event):
            raise Forbidden("You do not have permission to update this event")

        changes = data.model_dump(exclude_unset=True, exclude={"audience", "start_date", "end_date"})
        for key, value in changes.items():
            if value is not None or key == "description":
                setattr(event, key, value)
        if data.start_date:
            event.start_date = naive_utc(data.start_date)
        if data.end_date:
            event.end_date = naive_utc(data.end_date)
        if event.end_date < event.start_date:
            raise BadRequest("End date must be after start date")

        if data.audience is not None:
            if data.audience.target_type:
                if data.audience.target_type not in allowed_audiences(actor.role):
                    raise Forbidden("You do not have permission to set this audience type")
                event.target_type = data.audience.target_type
            self._apply_audience(event, data.audience)

        await self.db.commit()
        await self.db.refresh(event)
        logger.info(f"Event {event.id} updated by {actor.id} ({actor.role})")
        return await self.to_dict(event)

    async def delete_event(self, event_id: UUID, actor: User) -> dict:
        event = await self._visible_event(event_id, actor)
        if not can_modify(actor, event):
            raise Forbidden("You do not have permission to delete this event")
        event.is_active = False
        await self.db.commit()
        logger.info(f"Event {event.id} deleted by {actor.id} ({actor.role})")
        return {"success": True, "message": "Event deleted successfully"}
