# gradebook/services/school_service.py
import logging
import re
from typing import List, Optional
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import SchoolContext
from ..core.exceptions import BadRequest, Conflict, NotFound
from ..models.school import School
from ..schemas.school_schemas import SchoolCreate, SchoolUpdate, school_to_dict
from .base_service import BaseService

logger = logging.getLogger(__name__)


def default_school_domain(name: str) -> str:
    return re.sub(r"\s+", "", name.lower())


class SchoolService(BaseService[School]):
    resource_name = "School"

    def __init__(self, db: AsyncSession):
        super().__init__(School, db)

    def _visible(self, stmt, ctx: SchoolContext):
        # School rows carry no school_id; non-superadmins only ever see their own school
        if ctx.school_id is not None:
            stmt = stmt.where(School.id == ctx.school_id)
        return stmt

    async def _ensure_unique(self, name: Optional[str], email_domain: Optional[str], exclude_id: Optional[UUID] = None):
        clauses = []
        if name:
            clauses.append(School.name == name)
        if email_domain:
            clauses.append(School.email_domain == email_domain)
        if not clauses:
            return
        stmt = select(School).where(or_(*clauses))
        if exclude_id:
            stmt = stmt.where(School.id != exclude_id)
        existing = (await self.db.execute(stmt)).scalars().first()
        if existing:
            if name and existing.name == name:
                raise Conflict("School branch already exists with this name")
            raise Conflict("Another school already uses this email domain")

    async def _commit(self):
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise Conflict("School branch already exists with this name")

    async def create_school(self, data: SchoolCreate) -> dict:
        name = data.name.strip()
        school_domain = (data.school_domain or default_school_domain(name)).strip().lower()
        email_domain = (data.email_domain or f"{school_domain}.edu").strip().lower()
        if not school_domain:
            raise BadRequest("Please provide school branch name and address")
        await self._ensure_unique(name, email_domain)

        school = School(
            name=name,
            address=data.address.strip(),
            phone=data.phone,
            email=data.email,
            school_domain=school_domain,
            email_domain=email_domain,
            active=data.active,
        )
        self.db.add(school)
        await self._commit()
        await self.db.refresh(school)
        logger.info(f"School {school.name} created with email domain {school.email_domain}")
        return school_to_dict(school)

    async def list_schools(self, ctx: SchoolContext) -> List[dict]:
        stmt = self._visible(select(School), ctx).order_by(School.name)
        return [school_to_dict(s) for s in (await self.db.execute(stmt)).scalars().all()]

    async def get_school(self, school_id: UUID, ctx: SchoolContext) -> dict:
        school = await self.get(school_id)
        if not school or (ctx.school_id is not None and school.id != ctx.school_id):
            raise NotFound(self.resource_name)
        return school_to_dict(school)

    async def update_school(self, school_id: UUID, data: SchoolUpdate) -> dict:
        school = await self.get(school_id)
        if not school:
            raise NotFound(self.resource_name)
        changes = data.model_dump(exclude_unset=True)
        await self._ensure_unique(changes.get("name"), changes.get("email_domain"), exclude_id=school.id)
        for key, value in changes.items():
            if value is None and key not in ("phone", "email"):
                continue
            setattr(school, key, value.strip() if isinstance(value, str) else value)
        await self._commit()
        await self.db.refresh(school)
        logger.info(f"School {school.id} updated: {sorted(changes)}")
        return school_to_dict(school)
