# gradebook/services/user_service.py
"""User administration and parent-student linking."""
import logging
from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import delete, insert, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import SchoolContext, find_school_by_email
from ..core.exceptions import BadRequest, Conflict, Forbidden, NotFound
from ..core.security import get_password_hash
from ..models.class_model import class_students, class_teachers
from ..models.grade import Grade
from ..models.subject import subject_teachers
from ..models.subscription import Subscription
from ..models.user import (
    SECRETARY_PERMISSION_KEYS,
    User,
    UserRole,
    default_secretary_permissions,
    parent_students,
)
from ..schemas.user_schemas import (
    AdminUserCreate,
    CreateParentRequest,
    ProfileUpdate,
    UserUpdate,
    user_summary,
    user_to_dict,
)
from .base_service import BaseService
from .grade_service import GradeService

logger = logging.getLogger(__name__)

LISTABLE_ROLES = ("admin", "teacher", "student", "secretary", "parent")


class UserService(BaseService[User]):
    resource_name = "User"

    def __init__(self, db: AsyncSession):
        super().__init__(User, db)

    # ---- link lookups -------------------------------------------------

    async def linked_student_ids(self, parent_id: UUID) -> List[UUID]:
        result = await self.db.execute(
            select(parent_students.c.student_id).where(parent_students.c.parent_id == parent_id)
        )
        return list(result.scalars().all())

    async def parent_ids(self, student_id: UUID) -> List[UUID]:
        result = await self.db.execute(
            select(parent_students.c.parent_id).where(parent_students.c.student_id == student_id)
        )
        return list(result.scalars().all())

    async def teacher_student_ids(self, teacher_id: UUID) -> List[UUID]:
        """Students sharing at least one class with ``teacher_id``."""
        stmt = (
            select(class_students.c.student_id)
            .join(class_teachers, class_teachers.c.class_id == class_students.c.class_id)
            .where(class_teachers.c.teacher_id == teacher_id)
            .distinct()
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def to_dict(self, user: User) -> dict:
        if user.role == UserRole.PARENT.value:
            return user_to_dict(user, linked_student_ids=await self.linked_student_ids(user.id))
        if user.role == UserRole.STUDENT.value:
            return user_to_dict(user, parent_ids=await self.parent_ids(user.id))
        return user_to_dict(user)

    # ---- reads ---------------------------------------------------------

    async def list_users(self, ctx: SchoolContext, role: Optional[str] = None) -> List[User]:
        stmt = self.scoped(select(User), ctx.school_id).order_by(User.name)
        if role:
            stmt = stmt.where(User.role == role)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def users_by_ids(self, ids: Sequence[UUID], school_id: Optional[UUID], role: Optional[str] = None) -> List[User]:
        if not ids:
            return []
        stmt = self.scoped(select(User).where(User.id.in_(list(ids))), school_id)
        if role:
            stmt = stmt.where(User.role == role)
        result = await self.db.execute(stmt.order_by(User.name))
        return list(result.scalars().all())

    async def list_by_role(self, actor: User, ctx: SchoolContext, role: str) -> List[User]:
        if role not in LISTABLE_ROLES:
            raise BadRequest(f"Invalid role. Must be one of: {', '.join(LISTABLE_ROLES)}")
        if actor.role == UserRole.TEACHER.value and role == UserRole.STUDENT.value:
            return await self.teacher_students(actor, ctx)
        return await self.list_users(ctx, role=role)

    async def teacher_students(self, actor: User, ctx: SchoolContext) -> List[User]:
        if actor.role == UserRole.TEACHER.value:
            ids = await self.teacher_student_ids(actor.id)
            return await self.users_by_ids(ids, ctx.school_id, role=UserRole.STUDENT.value)
        return await self.list_users(ctx, role=UserRole.STUDENT.value)

    # ---- writes --------------------------------------------------------

    async def _ensure_email_free(self, email: str, school_id: Optional[UUID], exclude_id: Optional[UUID] = None):
        stmt = select(User.id).where(User.email == email)
        stmt = stmt.where(User.school_id == school_id) if school_id else stmt.where(User.school_id.is_(None))
        if exclude_id:
            stmt = stmt.where(User.id != exclude_id)
        result = await self.db.execute(stmt)
        if result.scalar_one_or_none():
            raise Conflict("User with this email already exists")

    async def _target_school_id(self, ctx: SchoolContext, email: str, role: str) -> Optional[UUID]:
        if ctx.school_id:
            return ctx.school_id
        if role == UserRole.SUPERADMIN.value:
            return None
        school = await find_school_by_email(self.db, email)
        if not school:
            raise BadRequest("No school found for this email domain")
        return school.id

    async def create_by_admin(self, data: AdminUserCreate, actor: User, ctx: SchoolContext) -> dict:
        """Create a user; for students, optionally create or reuse a parent and link it.

        User, parent and link rows are committed together.
        """
        email = data.email.strip().lower()
        role = data.role.value
        if role == UserRole.SUPERADMIN.value and not actor.is_superadmin:
            raise Forbidden("Only superadmins can create superadmin accounts")
        school_id = await self._target_school_id(ctx, email, role)
        await self._ensure_email_free(email, school_id)

        user = User(
            name=data.name.strip(),
            email=email,
            password_hash=get_password_hash(data.password),
            role=role,
            school_id=school_id,
            mobile_phone=data.mobile_phone,
            personal_email=data.personal_email,
            require_password_change=True,
            is_first_login=True,
        )
        if role == UserRole.SECRETARY.value and data.secretary_permissions:
            user.secretary_permissions = self._merge_permissions({}, data.secretary_permissions)
        if role == UserRole.TEACHER.value:
            if data.can_send_notifications is not None:
                user.can_send_notifications = data.can_send_notifications
            if data.can_add_grade_descriptions is not None:
                user.can_add_grade_descriptions = data.can_add_grade_descriptions
        self.db.add(user)

        parent = None
        parent_created = False
        if data.parent and role == UserRole.STUDENT.value:
            await self.db.flush()
            parent_email = data.parent.email.strip().lower()
            parent = await self._find_in_school(parent_email, school_id)
            if parent and parent.role != UserRole.PARENT.value:
                await self.db.rollback()
                raise BadRequest("Parent email belongs to a non-parent account")
            if not parent:
                parent = self._new_parent(data.parent.name, parent_email, data.parent.password, school_id)
                self.db.add(parent)
                await self.db.flush()
                parent_created = True
            await self.db.execute(insert(parent_students), [{"parent_id": parent.id, "student_id": user.id}])

        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise Conflict("User with this email already exists")
        await self.db.refresh(user)
        logger.info(f"User {user.id} ({role}) created by {actor.id}")

        result = {"user": await self.to_dict(user), "parent": None, "parentCreated": parent_created}
        if parent:
            await self.db.refresh(parent)
            result["parent"] = await self.to_dict(parent)
        return result

    async def _find_in_school(self, email: str, school_id: Optional[UUID]) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == email, User.school_id == school_id))
        return result.scalar_one_or_none()

    @staticmethod
    def _new_parent(name: str, email: str, password: str, school_id: UUID) -> User:
        return User(
            name=name.strip(),
            email=email,
            password_hash=get_password_hash(password),
            role=UserRole.PARENT.value,
            school_id=school_id,
            require_password_change=True,
            is_first_login=True,
        )

    @staticmethod
    def _merge_permissions(current: dict, changes: dict) -> dict:
        merged = {**default_secretary_permissions(), **(current or {})}
        for key, value in changes.items():
            if key in SECRETARY_PERMISSION_KEYS:
                merged[key] = bool(value)
        return merged

    async def update_user(self, user_id: UUID, data: UserUpdate, actor: User, ctx: SchoolContext) -> dict:
        user = await self.get_or_404(user_id, ctx.school_id)
        if user.is_superadmin and not actor.is_superadmin:
            raise Forbidden("Cannot modify superadmin users")

        changes = data.model_dump(exclude_unset=True)
        if "role" in changes and changes["role"] is not None:
            new_role = changes["role"].value
            if new_role == UserRole.SUPERADMIN.value and not actor.is_superadmin:
                raise Forbidden("Only superadmins can grant the superadmin role")
            user.role = new_role
        if changes.get("email"):
            email = changes["email"].strip().lower()
            await self._ensure_email_free(email, user.school_id, exclude_id=user.id)
            user.email = email
        for field in ("name", "mobile_phone", "personal_email"):
            if field in changes and changes[field] is not None:
                setattr(user, field, changes[field])
        if changes.get("active") is not None:
            user.active = changes["active"]

        if user.role == UserRole.TEACHER.value:
            for field in ("can_send_notifications", "can_add_grade_descriptions"):
                if changes.get(field) is not None:
                    setattr(user, field, changes[field])
        if user.role == UserRole.SECRETARY.value and changes.get("secretary_permissions"):
            user.secretary_permissions = self._merge_permissions(
                user.secretary_permissions, changes["secretary_permissions"]
            )
        if changes.get("password"):
            user.password_hash = get_password_hash(changes["password"])

        await self.db.commit()
        await self.db.refresh(user)
        logger.info(f"User {user.id} updated by {actor.id}")
        return await self.to_dict(user)

    async def update_profile(self, user: User, data: ProfileUpdate) -> dict:
        changes = data.model_dump(exclude_unset=True)
        if changes.get("email"):
            email = changes["email"].strip().lower()
            await self._ensure_email_free(email, user.school_id, exclude_id=user.id)
            user.email = email
        for field in ("name", "mobile_phone", "personal_email"):
            if changes.get(field) is not None:
                setattr(user, field, changes[field])
        if changes.get("password"):
            user.password_hash = get_password_hash(changes["password"])
        await self.db.commit()
        await self.db.refresh(user)
        return await self.to_dict(user)

    async def delete_user(self, user_id: UUID, actor: User, ctx: SchoolContext) -> dict:
        if user_id == actor.id:
            raise BadRequest("Cannot delete your own account")
        user = await self.get_or_404(user_id, ctx.school_id)
        if user.is_superadmin and not actor.is_superadmin:
            raise Forbidden("Cannot delete superadmin users")

        for table, column in (
            (parent_students, parent_students.c.parent_id),
            (parent_students, parent_students.c.student_id),
            (class_teachers, class_teachers.c.teacher_id),
            (class_students, class_students.c.student_id),
            (subject_teachers, subject_teachers.c.teacher_id),
        ):
            await self.db.execute(delete(table).where(column == user.id))
        await self.db.execute(delete(Grade).where(Grade.student_id == user.id))
        await self.db.execute(delete(Subscription).where(Subscription.user_id == user.id))
        await self.db.delete(user)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise Conflict("User is still referenced by other records (e.g. grades they issued)")
        logger.info(f"User {user_id} deleted by {actor.id}")
        return {"message": "User removed", "_id": str(user_id)}

    # ---- parents -------------------------------------------------------

    async def _students_in_school(self, student_ids: Sequence[UUID], school_id: Optional[UUID]) -> List[User]:
        students = await self.users_by_ids(student_ids, school_id, role=UserRole.STUDENT.value)
        if len(students) != len(set(student_ids)):
            raise NotFound("One or more students")
        return students

    async def create_parent_account(self, data: CreateParentRequest, actor: User, ctx: SchoolContext) -> dict:
        """Create a parent linked to students, or link an existing parent to more students.

        The result carries ``created`` so the router can answer 201 or 200.
        """
        students = await self._students_in_school(data.student_ids, ctx.school_id)
        school_id = ctx.school_id or students[0].school_id
        email = data.parent_email.strip().lower()

        parent = await self._find_in_school(email, school_id)
        created = False
        if parent:
            if parent.role != UserRole.PARENT.value:
                raise BadRequest("A user with this email already exists and is not a parent account")
            already = set(await self.linked_student_ids(parent.id))
            new_ids = [s.id for s in students if s.id not in already]
            if not new_ids:
                raise BadRequest("Parent is already linked to all selected students")
        else:
            parent = self._new_parent(data.parent_name, email, data.parent_password, school_id)
            self.db.add(parent)
            await self.db.flush()
            new_ids = [s.id for s in students]
            created = True

        await self.db.execute(
            insert(parent_students),
            [{"parent_id": parent.id, "student_id": sid} for sid in new_ids],
        )
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise Conflict("Parent account could not be linked")
        await self.db.refresh(parent)
        logger.info(f"Parent {parent.id} linked to {len(new_ids)} student(s) by {actor.id}")

        return {
            "created": created,
            "message": "Parent account created successfully" if created else "Parent linked to additional students",
            "parent": await self.to_dict(parent),
            "students": [user_summary(s) for s in students],
            "newlyLinked": [str(i) for i in new_ids],
        }

    async def get_parents_by_student(self, student_id: UUID, ctx: SchoolContext) -> dict:
        student = await self.get_or_404(student_id, ctx.school_id)
        if student.role != UserRole.STUDENT.value:
            raise NotFound("Student")
        parents = await self.users_by_ids(await self.parent_ids(student.id), ctx.school_id)
        return {
            "student": user_summary(student),
            "hasParents": bool(parents),
            "parentCount": len(parents),
            "parents": [user_summary(p) for p in parents],
        }

    async def get_students_by_parent(self, parent_id: UUID, ctx: SchoolContext) -> dict:
        parent = await self.get_or_404(parent_id, ctx.school_id)
        if parent.role != UserRole.PARENT.value:
            raise NotFound("Parent")
        students = await self.users_by_ids(await self.linked_student_ids(parent.id), ctx.school_id)
        return {
            "parent": user_summary(parent),
            "studentCount": len(students),
            "students": [user_summary(s) for s in students],
        }

    async def unlink_parent(self, parent_id: UUID, student_ids: Sequence[UUID], actor: User, ctx: SchoolContext) -> dict:
        parent = await self.get_or_404(parent_id, ctx.school_id)
        if parent.role != UserRole.PARENT.value:
            raise NotFound("Parent")
        result = await self.db.execute(
            delete(parent_students).where(
                parent_students.c.parent_id == parent.id,
                parent_students.c.student_id.in_(list(student_ids)),
            )
        )
        await self.db.commit()
        remaining = await self.linked_student_ids(parent.id)
        logger.info(f"Parent {parent.id} unlinked from {result.rowcount} student(s) by {actor.id}")
        return {
            "message": "Parent unlinked from students",
            "unlinkedCount": result.rowcount,
            "remainingStudentCount": len(remaining),
            "remainingStudentIds": [str(i) for i in remaining],
        }

    async def students_data_for_parent(self, parent: User) -> dict:
        students = await self.users_by_ids(await self.linked_student_ids(parent.id), parent.school_id)
        grades = GradeService(self.db)
        data = []
        for student in students:
            recent = await grades.recent_for_students([student.id], parent.school_id, limit=5)
            data.append({"student": user_summary(student), "recentGrades": recent})
        combined = await grades.recent_for_students([s.id for s in students], parent.school_id, limit=10)
        return {"students": data, "recentGrades": combined}
