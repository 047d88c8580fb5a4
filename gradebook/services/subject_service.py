# gradebook/services/subject_service.py
import logging
from typing import Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import delete, insert, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import SchoolContext
from ..core.exceptions import BadRequest, Conflict, NotFound
from ..models.grade import Grade
from ..models.school import School
from ..models.subject import Subject, subject_teachers
from ..models.user import User, UserRole
from ..schemas.common import iso, str_id
from ..schemas.subject_schemas import SubjectCreate, SubjectUpdate
from .base_service import BaseService

logger = logging.getLogger(__name__)

DUPLICATE_SUBJECT = "Subject with this name already exists in this school"


class SubjectService(BaseService[Subject]):
    resource_name = "Subject"

    def __init__(self, db: AsyncSession):
        super().__init__(Subject, db)

    async def to_dicts(self, subjects: Sequence[Subject]) -> List[dict]:
        ids = [s.id for s in subjects]
        teachers: Dict[UUID, List[dict]] = {i: [] for i in ids}
        if ids:
            stmt = (
                select(subject_teachers.c.subject_id, User.id, User.name, User.email)
                .join(User, User.id == subject_teachers.c.teacher_id)
                .where(subject_teachers.c.subject_id.in_(ids))
                .order_by(User.name)
            )
            for subject_id, user_id, name, email in (await self.db.execute(stmt)).all():
                teachers[subject_id].append({"_id": str(user_id), "name": name, "email": email})
        return [
            {
                "_id": str(s.id),
                "name": s.name,
                "description": s.description or "",
                "schoolId": str_id(s.school_id),
                "directions": s.directions or [],
                "teachers": teachers[s.id],
                "createdAt": iso(s.created_at),
                "updatedAt": iso(s.updated_at),
            }
            for s in subjects
        ]

    async def to_dict(self, subject: Subject) -> dict:
        return (await self.to_dicts([subject]))[0]

    async def _teachers(self, ids: Sequence[UUID], school_id: UUID) -> List[UUID]:
        if not ids:
            return []
        result = await self.db.execute(
            select(User.id).where(
                User.id.in_(list(ids)), User.school_id == school_id, User.role == UserRole.TEACHER.value
            )
        )
        found = list(result.scalars().all())
        if len(found) != len(set(ids)):
            raise NotFound("One or more teachers")
        return found

    async def _set_teachers(self, subject_id: UUID, teacher_ids: Sequence[UUID]):
        await self.db.execute(delete(subject_teachers).where(subject_teachers.c.subject_id == subject_id))
        if teacher_ids:
            await self.db.execute(
                insert(subject_teachers), [{"subject_id": subject_id, "teacher_id": t} for t in teacher_ids]
            )

    async def _ensure_name_free(self, name: str, school_id: UUID, exclude_id: Optional[UUID] = None):
        stmt = select(Subject.id).where(Subject.school_id == school_id, Subject.name == name)
        if exclude_id:
            stmt = stmt.where(Subject.id != exclude_id)
        if (await self.db.execute(stmt)).scalar_one_or_none():
            raise Conflict(DUPLICATE_SUBJECT)

    async def _commit(self):
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise Conflict(DUPLICATE_SUBJECT)

    async def create_subject(self, data: SubjectCreate, ctx: SchoolContext) -> dict:
        school_id = ctx.school_id or data.school_id
        if school_id is None:
            raise BadRequest("School ID is required")
        if ctx.school_id is None and not await self.db.get(School, school_id):
            raise NotFound("School")

        name = data.name.strip()
        await self._ensure_name_free(name, school_id)
        teachers = await self._teachers(data.teachers, school_id)

        subject = Subject(
            school_id=school_id,
            name=name,
            description=data.description or "",
            directions=data.directions,
        )
        self.db.add(subject)
        await self.db.flush()
        await self._set_teachers(subject.id, teachers)
        await self._commit()
        await self.db.refresh(subject)
        logger.info(f"Subject {subject.name} created in school {school_id}")
        return await self.to_dict(subject)

    async def list_subjects(self, ctx: SchoolContext, school_id: Optional[UUID] = None) -> List[dict]:
        # superadmins may narrow the system-wide listing to one school
        stmt = self.scoped(select(Subject), ctx.school_id or school_id).order_by(Subject.name)
        return await self.to_dicts(list((await self.db.execute(stmt)).scalars().all()))

    async def get_subject(self, subject_id: UUID, ctx: SchoolContext) -> dict:
        return await self.to_dict(await self.get_or_404(subject_id, ctx.school_id))

    async def update_subject(self, subject_id: UUID, data: SubjectUpdate, ctx: SchoolContext) -> dict:
        subject = await self.get_or_404(subject_id, ctx.school_id)
        if data.name:
            name = data.name.strip()
            await self._ensure_name_free(name, subject.school_id, exclude_id=subject.id)
            subject.name = name
        if data.description is not None:
            subject.description = data.description
        if data.directions is not None:
            subject.directions = data.directions
        if data.teachers is not None:
            await self._set_teachers(subject.id, await self._teachers(data.teachers, subject.school_id))
        await self._commit()
        await self.db.refresh(subject)
        return await self.to_dict(subject)

    async def delete_subject(self, subject_id: UUID, ctx: SchoolContext) -> dict:
        subject = await self.get_or_404(subject_id, ctx.school_id)
        await self.db.execute(delete(Grade).where(Grade.subject_id == subject.id))
        await self.db.execute(delete(subject_teachers).where(subject_teachers.c.subject_id == subject.id))
        await self.hard_delete(subject)
        logger.info(f"Subject {subject_id} deleted")
        return {"message": "Subject removed"}

    async def subjects_for_teacher(self, teacher_id: UUID, ctx: SchoolContext) -> List[dict]:
        taught = select(subject_teachers.c.subject_id).where(subject_teachers.c.teacher_id == teacher_id)
        stmt = self.scoped(select(Subject).where(Subject.id.in_(taught)), ctx.school_id).order_by(Subject.name)
        return await self.to_dicts(list((await self.db.execute(stmt)).scalars().all()))

    async def subjects_for_direction(self, direction: str, ctx: SchoolContext) -> List[dict]:
        # directions is a JSON list, filtered in Python to stay portable across backends
        stmt = self.scoped(select(Subject), ctx.school_id).order_by(Subject.name)
        subjects = [s for s in (await self.db.execute(stmt)).scalars().all() if direction in (s.directions or [])]
        return await self.to_dicts(subjects)
