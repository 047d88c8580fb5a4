# gradebook/services/stats_service.py
"""Per-student grade statistics for staff dashboards."""
import logging
from collections import defaultdict
from typing import Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import SchoolContext
from ..core.exceptions import Forbidden, NotFound
from ..core.policy import policy
from ..models.base import utcnow
from ..models.class_model import ClassModel, class_students, class_teachers
from ..models.grade import Grade
from ..models.subject import Subject
from ..models.user import User, UserRole
from .base_service import BaseService
from .grade_service import GradeService

logger = logging.getLogger(__name__)

UNKNOWN_SUBJECT = "Unknown Subject"
RECENT_GRADES = 10
MONTHS_OF_PROGRESS = 12


def _average(values: Sequence[int]) -> float:
    return round(sum(values) / len(values), 2) if values else 0


def _overview(values: Sequence[int]) -> dict:
    return {
        "gradeCount": len(values),
        "averageGrade": _average(values),
        "highestGrade": max(values) if values else 0,
        "lowestGrade": min(values) if values else 0,
    }


def _month_keys(months: int) -> List[str]:
    today = utcnow().date()
    keys = []
    for back in range(months - 1, -1, -1):
        year, month = divmod(today.year * 12 + today.month - 1 - back, 12)
        keys.append(f"{year}-{month + 1:02d}")
    return keys


class StudentStatsService(BaseService[User]):
    resource_name = "Student"

    def __init__(self, db: AsyncSession):
        super().__init__(User, db)

    def _teacher_students(self, teacher_id: UUID, school_id: Optional[UUID]):
        stmt = (
            select(class_students.c.student_id)
            .join(class_teachers, class_teachers.c.class_id == class_students.c.class_id)
            .where(class_teachers.c.teacher_id == teacher_id)
        )
        if school_id is not None:
            stmt = stmt.join(ClassModel, ClassModel.id == class_students.c.class_id).where(
                ClassModel.school_id == school_id
            )
        return stmt

    async def _grades_by_student(self, student_ids: Sequence[UUID], school_id: Optional[UUID]) -> Dict[UUID, list]:
        grouped: Dict[UUID, list] = defaultdict(list)
        if not student_ids:
            return grouped
        stmt = (
            select(Grade, Subject.name)
            .outerjoin(Subject, Subject.id == Grade.subject_id)
            .where(Grade.student_id.in_(list(student_ids)))
            .order_by(Grade.date.desc(), Grade.created_at.desc())
        )
        if school_id is not None:
            stmt = stmt.where(Grade.school_id == school_id)
        for grade, subject_name in (await self.db.execute(stmt)).all():
            grouped[grade.student_id].append((grade, subject_name or UNKNOWN_SUBJECT))
        return grouped

    async def student_stats(self, actor: User, ctx: SchoolContext, search: Optional[str] = None) -> dict:
        stmt = self.scoped(select(User).where(User.role == UserRole.STUDENT.value), ctx.school_id)
        if not policy.is_allowed(actor, "stats", "view_any"):
            stmt = stmt.where(User.id.in_(self._teacher_students(actor.id, ctx.school_id)))
        term = (search or "").strip()
        if term:
            stmt = stmt.where(func.lower(User.name).contains(term.lower()))
        students = list((await self.db.execute(stmt.order_by(User.name))).scalars().all())

        grades = await self._grades_by_student([s.id for s in students], ctx.school_id)
        results = []
        for student in students:
            by_subject: Dict[str, List[int]] = defaultdict(list)
            for grade, subject_name in grades.get(student.id, []):
                by_subject[subject_name].append(grade.value)
            values = [grade.value for grade, _ in grades.get(student.id, [])]
            statistics = _overview(values)
            statistics["subjectStats"] = {
                name: {"count": len(marks), "total": sum(marks), "average": _average(marks)}
                for name, marks in by_subject.items()
            }
            results.append(
                {
                    "student": {"_id": str(student.id), "name": student.name, "email": student.email},
                    "statistics": statistics,
                }
            )

        logger.info(f"Computed grade statistics for {len(results)} students for {actor.id} ({actor.role})")
        return {"students": results, "total": len(results), "searchTerm": term or None}

    async def student_detail(self, student_id: UUID, actor: User, ctx: SchoolContext) -> dict:
        stmt = self.scoped(
            select(User).where(User.id == student_id, User.role == UserRole.STUDENT.value), ctx.school_id
        )
        student = (await self.db.execute(stmt)).scalar_one_or_none()
        if not student:
            raise NotFound("Student")

        if not policy.is_allowed(actor, "stats", "view_any"):
            shared = await self.db.execute(
                self._teacher_students(actor.id, ctx.school_id).where(class_students.c.student_id == student.id)
            )
            if shared.first() is None:
                raise Forbidden("Not authorized to view this student's statistics")

        rows = (await self._grades_by_student([student.id], ctx.school_id)).get(student.id, [])
        teacher_ids = {grade.teacher_id for grade, _ in rows}
        teachers = {}
        if teacher_ids:
            result = await self.db.execute(select(User.id, User.name).where(User.id.in_(teacher_ids)))
            teachers = dict(result.all())

        monthly = {key: [] for key in _month_keys(MONTHS_OF_PROGRESS)}
        subjects: Dict[str, list] = defaultdict(list)
        for grade, subject_name in rows:
            key = grade.date.strftime("%Y-%m")
            if key in monthly:
                monthly[key].append(grade.value)
            subjects[subject_name].append(grade)

        return {
            "student": {"_id": str(student.id), "name": student.name, "email": student.email},
            "overview": _overview([grade.value for grade, _ in rows]),
            "monthlyProgress": {
                key: {"count": len(marks), "total": sum(marks), "average": _average(marks)}
                for key, marks in monthly.items()
            },
            "subjectBreakdown": {
                name: {
                    "count": len(items),
                    "total": sum(g.value for g in items),
                    "average": _average([g.value for g in items]),
                    "highest": max(g.value for g in items),
                    "lowest": min(g.value for g in items),
                    # rows arrive newest first
                    "grades": [
                        {
                            "value": g.value,
                            "date": g.date.isoformat(),
                            "teacher": teachers.get(g.teacher_id, "Unknown Teacher"),
                            "description": g.description,
                        }
                        for g in items
                    ],
                }
                for name, items in subjects.items()
            },
            "recentGrades": await GradeService(self.db).to_dicts([grade for grade, _ in rows[:RECENT_GRADES]]),
        }
