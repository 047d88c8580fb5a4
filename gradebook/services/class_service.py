# gradebook/services/class_service.py
"""Classes and their teacher/student rosters."""
import logging
from typing import Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import delete, insert, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import SchoolContext, enforce_school_filter
from ..core.exceptions import BadRequest, Conflict, Forbidden, NotFound
from ..core.policy import policy
from ..models.class_model import ClassModel, class_students, class_teachers
from ..models.subject import Subject, subject_teachers
from ..models.user import User, UserRole, parent_students
from ..schemas.class_schemas import ClassCreate, ClassUpdate
from ..schemas.common import iso, str_id
from .base_service import BaseService

logger = logging.getLogger(__name__)

DUPLICATE_CLASS = "A class with this name already exists"


class ClassService(BaseService[ClassModel]):
    resource_name = "Class"

    def __init__(self, db: AsyncSession):
        super().__init__(ClassModel, db)

    # ---- rosters -------------------------------------------------------

    async def _roster(self, table, column, class_ids: Sequence[UUID]) -> Dict[UUID, List[dict]]:
        rosters: Dict[UUID, List[dict]] = {class_id: [] for class_id in class_ids}
        if not class_ids:
            return rosters
        stmt = (
            select(table.c.class_id, User.id, User.name, User.email)
            .join(User, User.id == column)
            .where(table.c.class_id.in_(list(class_ids)))
            .order_by(User.name)
        )
        for class_id, user_id, name, email in (await self.db.execute(stmt)).all():
            rosters[class_id].append({"_id": str(user_id), "name": name, "email": email})
        return rosters

    async def to_dicts(self, classes: Sequence[ClassModel]) -> List[dict]:
        ids = [c.id for c in classes]
        students = await self._roster(class_students, class_students.c.student_id, ids)
        teachers = await self._roster(class_teachers, class_teachers.c.teacher_id, ids)
        return [
            {
                "_id": str(c.id),
                "name": c.name,
                "schoolId": str_id(c.school_id),
                "subject": c.subject,
                "direction": c.direction,
                "schoolBranch": c.school_branch,
                "description": c.description or "",
                "schedule": c.schedule or [],
                "active": c.active,
                "students": students[c.id],
                "teachers": teachers[c.id],
                "createdAt": iso(c.created_at),
                "updatedAt": iso(c.updated_at),
            }
            for c in classes
        ]

    async def to_dict(self, class_obj: ClassModel) -> dict:
        return (await self.to_dicts([class_obj]))[0]

    async def _members(self, ids: Sequence[UUID], school_id: UUID, role: UserRole) -> List[UUID]:
        if not ids:
            return []
        result = await self.db.execute(
            select(User.id).where(User.id.in_(list(ids)), User.school_id == school_id, User.role == role.value)
        )
        found = list(result.scalars().all())
        if len(found) != len(set(ids)):
            raise NotFound(f"One or more {role.value}s")
        return found

    async def _member_ids(self, table, column, class_id: UUID) -> List[UUID]:
        result = await self.db.execute(select(column).where(table.c.class_id == class_id))
        return list(result.scalars().all())

    async def _link(self, table, column_name: str, class_id: UUID, ids: Sequence[UUID]):
        column = table.c[column_name]
        current = set(await self._member_ids(table, column, class_id))
        rows = [{"class_id": class_id, column_name: i} for i in ids if i not in current]
        if rows:
            await self.db.execute(insert(table), rows)

    async def _unlink(self, table, column_name: str, class_id: UUID, ids: Sequence[UUID]):
        if ids:
            await self.db.execute(
                delete(table).where(table.c.class_id == class_id, table.c[column_name].in_(list(ids)))
            )

    async def _replace(self, table, column_name: str, class_id: UUID, ids: Sequence[UUID]):
        await self.db.execute(delete(table).where(table.c.class_id == class_id))
        if ids:
            await self.db.execute(insert(table), [{"class_id": class_id, column_name: i} for i in ids])

    async def _ensure_subject(self, school_id: UUID, name: str, teacher_ids: Sequence[UUID]) -> Subject:
        """Find or create the subject a class teaches and attach the class teachers to it."""
        result = await self.db.execute(
            select(Subject).where(Subject.school_id == school_id, Subject.name == name)
        )
        subject = result.scalar_one_or_none()
        if not subject:
            subject = Subject(
                school_id=school_id,
                name=name,
                description=f"Auto-created subject for {name}",
                directions=[],
            )
            self.db.add(subject)
            await self.db.flush()
            logger.info(f"Auto-created subject {name} for school {school_id}")

        linked = await self.db.execute(
            select(subject_teachers.c.teacher_id).where(subject_teachers.c.subject_id == subject.id)
        )
        current = set(linked.scalars().all())
        rows = [{"subject_id": subject.id, "teacher_id": t} for t in teacher_ids if t not in current]
        if rows:
            await self.db.execute(insert(subject_teachers), rows)
        return subject

    async def _commit(self):
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise Conflict(DUPLICATE_CLASS)

    # ---- writes --------------------------------------------------------

    async def create_class(self, data: ClassCreate, actor: User, ctx: SchoolContext) -> dict:
        school_id = ctx.school_id or actor.school_id
        if school_id is None:
            raise BadRequest("A school is required to create a class")

        subject = (data.subject or "").strip()
        name = (data.name or "").strip() or subject
        direction = (data.direction or "").strip()
        branch = (data.school_branch or "").strip()
        if not name or not subject or not direction or not branch:
            raise BadRequest("Please provide all required fields")

        existing = await self.db.execute(
            select(ClassModel.id).where(ClassModel.school_id == school_id, ClassModel.name == name)
        )
        if existing.scalar_one_or_none():
            raise Conflict(DUPLICATE_CLASS)

        students = await self._members(data.students, school_id, UserRole.STUDENT)
        teachers = await self._members(data.teachers, school_id, UserRole.TEACHER)

        await self._ensure_subject(school_id, subject, teachers)
        class_obj = ClassModel(
            school_id=school_id,
            name=name,
            subject=subject,
            direction=direction,
            school_branch=branch,
            description=data.description or "",
            schedule=[slot.model_dump(by_alias=True) for slot in data.schedule],
        )
        self.db.add(class_obj)
        await self.db.flush()
        await self._replace(class_students, "student_id", class_obj.id, students)
        await self._replace(class_teachers, "teacher_id", class_obj.id, teachers)
        await self._commit()
        await self.db.refresh(class_obj)
        logger.info(
            f"Class {class_obj.name} created in school {school_id} "
            f"with {len(students)} students and {len(teachers)} teachers"
        )
        return await self.to_dict(class_obj)

    async def update_class(self, class_id: UUID, data: ClassUpdate, ctx: SchoolContext) -> dict:
        class_obj = await self.get_or_404(class_id, ctx.school_id)
        changes = data.model_dump(exclude_unset=True, exclude={"students", "teachers", "schedule"})
        for key, value in changes.items():
            if value is not None or key == "description":
                setattr(class_obj, key, value)
        if data.schedule is not None:
            class_obj.schedule = [slot.model_dump(by_alias=True) for slot in data.schedule]

        if data.students is not None:
            students = await self._members(data.students, class_obj.school_id, UserRole.STUDENT)
            await self._replace(class_students, "student_id", class_obj.id, students)
        if data.teachers is not None:
            teachers = await self._members(data.teachers, class_obj.school_id, UserRole.TEACHER)
            await self._replace(class_teachers, "teacher_id", class_obj.id, teachers)
        if data.subject or data.teachers:
            teacher_ids = await self._member_ids(class_teachers, class_teachers.c.teacher_id, class_obj.id)
            await self._ensure_subject(class_obj.school_id, class_obj.subject, teacher_ids)

        await self._commit()
        await self.db.refresh(class_obj)
        return await self.to_dict(class_obj)

    async def delete_class(self, class_id: UUID, ctx: SchoolContext) -> dict:
        class_obj = await self.get_or_404(class_id, ctx.school_id)
        await self.db.execute(delete(class_students).where(class_students.c.class_id == class_obj.id))
        await self.db.execute(delete(class_teachers).where(class_teachers.c.class_id == class_obj.id))
        await self.hard_delete(class_obj)
        logger.info(f"Class {class_id} deleted")
        return {"message": "Class removed successfully"}

    async def add_students(self, class_id: UUID, ids: Sequence[UUID], ctx: SchoolContext) -> dict:
        class_obj = await self.get_or_404(class_id, ctx.school_id)
        students = await self._members(ids, class_obj.school_id, UserRole.STUDENT)
        await self._link(class_students, "student_id", class_obj.id, students)
        await self.db.commit()
        return await self.to_dict(class_obj)

    async def remove_students(self, class_id: UUID, ids: Sequence[UUID], ctx: SchoolContext) -> dict:
        class_obj = await self.get_or_404(class_id, ctx.school_id)
        await self._unlink(class_students, "student_id", class_obj.id, ids)
        await self.db.commit()
        return await self.to_dict(class_obj)

    async def add_teachers(self, class_id: UUID, ids: Sequence[UUID], ctx: SchoolContext) -> dict:
        class_obj = await self.get_or_404(class_id, ctx.school_id)
        teachers = await self._members(ids, class_obj.school_id, UserRole.TEACHER)
        await self._link(class_teachers, "teacher_id", class_obj.id, teachers)
        await self._ensure_subject(class_obj.school_id, class_obj.subject, teachers)
        await self.db.commit()
        return await self.to_dict(class_obj)

    async def remove_teachers(self, class_id: UUID, ids: Sequence[UUID], ctx: SchoolContext) -> dict:
        class_obj = await self.get_or_404(class_id, ctx.school_id)
        await self._unlink(class_teachers, "teacher_id", class_obj.id, ids)
        await self.db.commit()
        return await self.to_dict(class_obj)

    # ---- reads ---------------------------------------------------------

    def _visible_to(self, stmt, actor: User):
        """Narrow ``stmt`` to the classes a teacher, student or parent belongs to."""
        if policy.is_allowed(actor, "classes", "view_all"):
            return stmt
        if actor.role == UserRole.TEACHER.value:
            taught = select(class_teachers.c.class_id).where(class_teachers.c.teacher_id == actor.id)
            return stmt.where(ClassModel.id.in_(taught))
        if actor.role == UserRole.PARENT.value:
            children = select(parent_students.c.student_id).where(parent_students.c.parent_id == actor.id)
            enrolled = select(class_students.c.class_id).where(class_students.c.student_id.in_(children))
            return stmt.where(ClassModel.id.in_(enrolled))
        enrolled = select(class_students.c.class_id).where(class_students.c.student_id == actor.id)
        return stmt.where(ClassModel.id.in_(enrolled))

    async def _fetch(self, stmt) -> List[dict]:
        result = await self.db.execute(stmt.order_by(ClassModel.name))
        return await self.to_dicts(list(result.scalars().all()))

    async def list_classes(
        self,
        actor: User,
        ctx: SchoolContext,
        subject: Optional[str] = None,
        direction: Optional[str] = None,
        school_branch: Optional[str] = None,
        teacher: Optional[UUID] = None,
        student: Optional[UUID] = None,
    ) -> List[dict]:
        stmt = self._visible_to(self.scoped(select(ClassModel), ctx.school_id), actor)
        if subject:
            stmt = stmt.where(ClassModel.subject.ilike(f"%{subject}%"))
        if direction:
            stmt = stmt.where(ClassModel.direction.ilike(f"%{direction}%"))
        if school_branch:
            stmt = stmt.where(ClassModel.school_branch.ilike(f"%{school_branch}%"))
        if teacher:
            stmt = stmt.where(
                ClassModel.id.in_(select(class_teachers.c.class_id).where(class_teachers.c.teacher_id == teacher))
            )
        if student:
            stmt = stmt.where(
                ClassModel.id.in_(select(class_students.c.class_id).where(class_students.c.student_id == student))
            )
        return await self._fetch(stmt)

    async def get_class(self, class_id: UUID, actor: User, ctx: SchoolContext) -> dict:
        class_obj = await self.get_or_404(class_id, ctx.school_id)
        if actor.role == UserRole.TEACHER.value:
            members = await self._member_ids(class_teachers, class_teachers.c.teacher_id, class_obj.id)
            if actor.id not in members:
                raise Forbidden("Not authorized to access this class")
        elif actor.role == UserRole.STUDENT.value:
            members = await self._member_ids(class_students, class_students.c.student_id, class_obj.id)
            if actor.id not in members:
                raise Forbidden("Not authorized to access this class")
        return await self.to_dict(class_obj)

    async def categories(self, ctx: SchoolContext) -> dict:
        async def distinct(column):
            stmt = self.scoped(select(column).distinct(), ctx.school_id).order_by(column)
            return [value for value in (await self.db.execute(stmt)).scalars().all() if value]

        return {
            "subjects": await distinct(ClassModel.subject),
            "directions": await distinct(ClassModel.direction),
            "schoolBranches": await distinct(ClassModel.school_branch),
        }

    async def my_teaching_classes(self, actor: User, ctx: SchoolContext) -> List[dict]:
        if ctx.school_id is None:
            return []
        taught = select(class_teachers.c.class_id).where(class_teachers.c.teacher_id == actor.id)
        stmt = select(ClassModel).where(ClassModel.id.in_(taught))
        return await self._fetch(enforce_school_filter(stmt, ClassModel, ctx.school_id))

    async def my_classes(self, actor: User, ctx: SchoolContext) -> List[dict]:
        if ctx.school_id is None:
            return []
        enrolled = select(class_students.c.class_id).where(class_students.c.student_id == actor.id)
        stmt = select(ClassModel).where(ClassModel.id.in_(enrolled))
        return await self._fetch(enforce_school_filter(stmt, ClassModel, ctx.school_id))
