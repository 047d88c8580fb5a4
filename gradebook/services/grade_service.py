# gradebook/services/grade_service.py
"""Grades: school-scoped CRUD with the shared-class rule for teachers."""
import logging
from datetime import date
from typing import Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import exists, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import SchoolContext
from ..core.exceptions import Conflict, Forbidden, NotFound
from ..core.policy import policy
from ..models.base import utcnow
from ..models.class_model import ClassModel, class_students, class_teachers
from ..models.grade import Grade
from ..models.subject import Subject
from ..models.user import User, UserRole, parent_students
from ..schemas.common import iso, str_id
from ..schemas.grade_schemas import GradeCreate, GradeUpdate, grade_day
from .base_service import BaseService

logger = logging.getLogger(__name__)

DUPLICATE_GRADE = "A grade already exists for this student, subject and date"


class GradeService(BaseService[Grade]):
    resource_name = "Grade"

    def __init__(self, db: AsyncSession):
        super().__init__(Grade, db)

    # ---- serialization -------------------------------------------------

    async def to_dicts(self, grades: Sequence[Grade]) -> List[dict]:
        if not grades:
            return []
        user_ids = {g.student_id for g in grades} | {g.teacher_id for g in grades}
        subject_ids = {g.subject_id for g in grades}
        users = await self.db.execute(select(User).where(User.id.in_(user_ids)))
        subjects = await self.db.execute(select(Subject).where(Subject.id.in_(subject_ids)))
        user_map: Dict[UUID, User] = {u.id: u for u in users.scalars().all()}
        subject_map: Dict[UUID, Subject] = {s.id: s for s in subjects.scalars().all()}

        def ref(obj, with_email=False):
            if obj is None:
                return None
            data = {"_id": str(obj.id), "name": obj.name}
            if with_email:
                data["email"] = obj.email
            return data

        return [
            {
                "_id": str(g.id),
                "student": ref(user_map.get(g.student_id), with_email=True),
                "subject": ref(subject_map.get(g.subject_id)),
                "teacher": ref(user_map.get(g.teacher_id)),
                "value": g.value,
                "description": g.description,
                "date": iso(g.date),
                "schoolId": str_id(g.school_id),
                "createdAt": iso(g.created_at),
            }
            for g in grades
        ]

    async def to_dict(self, grade: Grade) -> dict:
        return (await self.to_dicts([grade]))[0]

    # ---- validation ----------------------------------------------------

    async def _student_in_school(self, student_id: UUID, school_id: Optional[UUID]) -> User:
        stmt = select(User).where(User.id == student_id, User.role == UserRole.STUDENT.value)
        if school_id is not None:
            stmt = stmt.where(User.school_id == school_id)
        student = (await self.db.execute(stmt)).scalar_one_or_none()
        if not student:
            raise NotFound("Student")
        return student

    async def _subject_in_school(self, subject_id: UUID, school_id: Optional[UUID]) -> Subject:
        stmt = select(Subject).where(Subject.id == subject_id)
        if school_id is not None:
            stmt = stmt.where(Subject.school_id == school_id)
        subject = (await self.db.execute(stmt)).scalar_one_or_none()
        if not subject:
            raise NotFound("Subject")
        return subject

    async def teacher_shares_class(self, teacher_id: UUID, student_id: UUID, subject: Subject) -> bool:
        """True when a class of the subject's school teaches ``subject`` to the student with this teacher."""
        stmt = select(
            exists()
            .where(ClassModel.school_id == subject.school_id)
            .where(ClassModel.subject == subject.name)
            .where(
                exists().where(
                    class_teachers.c.class_id == ClassModel.id,
                    class_teachers.c.teacher_id == teacher_id,
                )
            )
            .where(
                exists().where(
                    class_students.c.class_id == ClassModel.id,
                    class_students.c.student_id == student_id,
                )
            )
        )
        return bool((await self.db.execute(stmt)).scalar())

    async def _ensure_unique(self, student_id, subject_id, day, school_id, exclude_id=None):
        stmt = select(Grade.id).where(
            Grade.student_id == student_id,
            Grade.subject_id == subject_id,
            Grade.date == day,
            Grade.school_id == school_id,
        )
        if exclude_id:
            stmt = stmt.where(Grade.id != exclude_id)
        if (await self.db.execute(stmt)).scalar_one_or_none():
            raise Conflict(DUPLICATE_GRADE)

    async def _commit_unique(self):
        try:
            await self.db.commit()
        except IntegrityError:
            # lost the race against a concurrent insert of the same grade
            await self.db.rollback()
            raise Conflict(DUPLICATE_GRADE)

    # ---- writes --------------------------------------------------------

    async def create_grade(self, data: GradeCreate, actor: User, ctx: SchoolContext) -> dict:
        student = await self._student_in_school(data.student, ctx.school_id)
        subject = await self._subject_in_school(data.subject, ctx.school_id)
        school_id = subject.school_id

        if not policy.is_allowed(actor, "grades", "grade_any_student"):
            if not await self.teacher_shares_class(actor.id, student.id, subject):
                logger.warning(
                    f"Teacher {actor.id} tried to grade student {student.id} outside a shared {subject.name} class"
                )
                raise Forbidden("You can only grade students in your own classes for this subject")

        day = grade_day(data.date) or utcnow().date()
        await self._ensure_unique(student.id, subject.id, day, school_id)

        grade = Grade(
            student_id=student.id,
            subject_id=subject.id,
            teacher_id=actor.id,
            value=data.value,
            description=data.description,
            date=day,
            school_id=school_id,
        )
        self.db.add(grade)
        await self._commit_unique()
        await self.db.refresh(grade)
        logger.info(f"Grade {grade.id} created by {actor.id} for student {student.id}")
        return await self.to_dict(grade)

    def _ensure_can_edit(self, grade: Grade, actor: User):
        if not policy.is_allowed(actor, "grades", "edit_any") and grade.teacher_id != actor.id:
            raise Forbidden("You can only modify grades you have assigned")

    async def update_grade(self, grade_id: UUID, data: GradeUpdate, actor: User, ctx: SchoolContext) -> dict:
        grade = await self.get_or_404(grade_id, ctx.school_id)
        self._ensure_can_edit(grade, actor)
        changes = data.model_dump(exclude_unset=True)

        student_id = grade.student_id
        subject_id = grade.subject_id
        if changes.get("student"):
            student_id = (await self._student_in_school(changes["student"], grade.school_id)).id
        if changes.get("subject"):
            subject_id = (await self._subject_in_school(changes["subject"], grade.school_id)).id

        moved = student_id != grade.student_id or subject_id != grade.subject_id
        if moved and not policy.is_allowed(actor, "grades", "grade_any_student"):
            subject = await self._subject_in_school(subject_id, grade.school_id)
            if not await self.teacher_shares_class(actor.id, student_id, subject):
                logger.warning(f"Teacher {actor.id} tried to move grade {grade.id} outside a shared {subject.name} class")
                raise Forbidden("You can only grade students in your own classes for this subject")

        day = grade_day(changes.get("date")) or grade.date

        await self._ensure_unique(student_id, subject_id, day, grade.school_id, exclude_id=grade.id)

        grade.student_id = student_id
        grade.subject_id = subject_id
        grade.date = day
        if changes.get("value") is not None:
            grade.value = changes["value"]
        if "description" in changes:
            grade.description = changes["description"]
        await self._commit_unique()
        await self.db.refresh(grade)
        logger.info(f"Grade {grade.id} updated by {actor.id}")
        return await self.to_dict(grade)

    async def delete_grade(self, grade_id: UUID, actor: User, ctx: SchoolContext) -> dict:
        grade = await self.get_or_404(grade_id, ctx.school_id)
        self._ensure_can_edit(grade, actor)
        await self.hard_delete(grade)
        logger.info(f"Grade {grade_id} deleted by {actor.id}")
        return {"message": "Grade removed", "_id": str(grade_id)}

    # ---- reads ---------------------------------------------------------

    async def _fetch(self, stmt) -> List[dict]:
        result = await self.db.execute(stmt.order_by(Grade.date.desc(), Grade.created_at.desc()))
        return await self.to_dicts(list(result.scalars().all()))

    async def list_grades(
        self,
        ctx: SchoolContext,
        student: Optional[UUID] = None,
        subject: Optional[UUID] = None,
        teacher: Optional[UUID] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[dict]:
        stmt = self.scoped(select(Grade), ctx.school_id)
        if student:
            stmt = stmt.where(Grade.student_id == student)
        if subject:
            stmt = stmt.where(Grade.subject_id == subject)
        if teacher:
            stmt = stmt.where(Grade.teacher_id == teacher)
        if start_date:
            stmt = stmt.where(Grade.date >= start_date)
        if end_date:
            stmt = stmt.where(Grade.date <= end_date)
        return await self._fetch(stmt)

    async def _is_parent_of(self, parent_id: UUID, student_id: UUID) -> bool:
        stmt = select(parent_students.c.student_id).where(
            parent_students.c.parent_id == parent_id,
            parent_students.c.student_id == student_id,
        )
        return (await self.db.execute(stmt)).scalar_one_or_none() is not None

    async def _ensure_can_view_student(self, actor: User, student_id: UUID):
        if actor.role == UserRole.STUDENT.value and student_id != actor.id:
            raise Forbidden("Students can only view their own grades")
        if actor.role == UserRole.PARENT.value and not await self._is_parent_of(actor.id, student_id):
            raise Forbidden("Parents can only view grades of their linked students")

    async def grades_for_student(self, student_id: UUID, actor: User, ctx: SchoolContext) -> List[dict]:
        await self._ensure_can_view_student(actor, student_id)
        student = await self._student_in_school(student_id, ctx.school_id)
        return await self._fetch(select(Grade).where(Grade.student_id == student.id))

    async def grades_for_subject(self, subject_id: UUID, actor: User, ctx: SchoolContext) -> List[dict]:
        subject = await self._subject_in_school(subject_id, ctx.school_id)
        stmt = select(Grade).where(Grade.subject_id == subject.id)
        if actor.role == UserRole.STUDENT.value:
            stmt = stmt.where(Grade.student_id == actor.id)
        elif actor.role == UserRole.PARENT.value:
            children = select(parent_students.c.student_id).where(parent_students.c.parent_id == actor.id)
            stmt = stmt.where(Grade.student_id.in_(children))
        return await self._fetch(stmt)

    async def grades_for_teacher(self, teacher_id: UUID, actor: User, ctx: SchoolContext) -> List[dict]:
        if teacher_id != actor.id and not policy.is_allowed(actor, "grades", "view_any"):
            raise Forbidden("Teachers can only view their own grades")
        stmt = self.scoped(select(Grade).where(Grade.teacher_id == teacher_id), ctx.school_id)
        return await self._fetch(stmt)

    async def get_grade(self, grade_id: UUID, actor: User, ctx: SchoolContext) -> dict:
        grade = await self.get_or_404(grade_id, ctx.school_id)
        if actor.role == UserRole.TEACHER.value and grade.teacher_id != actor.id:
            raise Forbidden("Teachers can only view grades they have assigned")
        await self._ensure_can_view_student(actor, grade.student_id)
        return await self.to_dict(grade)

    async def recent_for_students(self, student_ids: Sequence[UUID], school_id: Optional[UUID], limit: int) -> List[dict]:
        if not student_ids:
            return []
        stmt = self.scoped(select(Grade).where(Grade.student_id.in_(list(student_ids))), school_id)
        return await self._fetch(stmt.limit(limit))
