import os
import tempfile

# Settings are read at import time
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(tempfile.gettempdir(), 'gradebook_health.db')}"
os.environ["JWT_SECRET"] = "test-secret-key"
os.environ["ENVIRONMENT"] = "test"
os.environ["SECURITY_STORE"] = "memory"

from types import SimpleNamespace

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from gradebook.core.database import get_db
from gradebook.core.security import create_access_token, get_password_hash
from gradebook.core.security_store import InMemorySecurityStore
from gradebook.main import create_app
from gradebook.models import (
    Base,
    ClassModel,
    School,
    Subject,
    User,
    UserRole,
    class_students,
    class_teachers,
    subject_teachers,
)
from gradebook.services.email_service import email_service

PASSWORD = "password123"
PASSWORD_HASH = get_password_hash(PASSWORD)


class FakeClock:
    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'gradebook.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession, autoflush=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def store():
    return InMemorySecurityStore()


@pytest.fixture
def app(session_factory, store):
    application = create_app()
    application.state.security_store = store

    async def override_get_db():
        async with session_factory() as session:
            yield session

    application.dependency_overrides[get_db] = override_get_db
    return application


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture(autouse=True)
def sent_emails(monkeypatch):
    sent = []

    async def fake_send(to, subject, text, html=None):
        sent.append({"to": to, "subject": subject, "text": text})
        return True

    monkeypatch.setattr(email_service, "send", fake_send)
    return sent


def auth(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.school_id)}"}


async def create_school(db, name: str, domain: str, active: bool = True) -> School:
    school = School(
        name=name,
        address=f"1 {name} Street",
        school_domain=domain,
        email_domain=f"{domain}.edu",
        active=active,
    )
    db.add(school)
    await db.commit()
    await db.refresh(school)
    return school


async def create_user(db, role: UserRole, email: str, school=None, **fields) -> User:
    user = User(
        name=fields.pop("name", email.split("@")[0].replace(".", " ").title()),
        email=email,
        password_hash=PASSWORD_HASH,
        role=role.value,
        school_id=school.id if school else None,
        **fields,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


@pytest.fixture
async def seed(db):
    """Two schools; the first has staff, two students, a subject and one class."""
    school = await create_school(db, "Athens High", "athens")
    other_school = await create_school(db, "Sparta High", "sparta")

    superadmin = await create_user(db, UserRole.SUPERADMIN, "root@gradebook.edu")
    admin = await create_user(db, UserRole.ADMIN, "admin@athens.edu", school)
    secretary = await create_user(db, UserRole.SECRETARY, "secretary@athens.edu", school)
    teacher = await create_user(db, UserRole.TEACHER, "teacher@athens.edu", school)
    other_teacher = await create_user(db, UserRole.TEACHER, "history.teacher@athens.edu", school)
    student = await create_user(db, UserRole.STUDENT, "student@athens.edu", school)
    student2 = await create_user(db, UserRole.STUDENT, "student2@athens.edu", school)
    foreign_admin = await create_user(db, UserRole.ADMIN, "admin@sparta.edu", other_school)
    foreign_student = await create_user(db, UserRole.STUDENT, "student@sparta.edu", other_school)

    subject = Subject(school_id=school.id, name="Mathematics", description="Algebra and geometry", directions=["Science"])
    db.add(subject)
    klass = ClassModel(
        school_id=school.id,
        name="Math A",
        subject="Mathematics",
        direction="Science",
        school_branch="Main",
        schedule=[],
    )
    db.add(klass)
    await db.flush()
    await db.execute(insert(subject_teachers).values(subject_id=subject.id, teacher_id=teacher.id))
    await db.execute(insert(class_teachers).values(class_id=klass.id, teacher_id=teacher.id))
    await db.execute(insert(class_students).values(class_id=klass.id, student_id=student.id))
    await db.commit()

    return SimpleNamespace(
        school=school,
        other_school=other_school,
        superadmin=superadmin,
        admin=admin,
        secretary=secretary,
        teacher=teacher,
        other_teacher=other_teacher,
        student=student,
        student2=student2,
        foreign_admin=foreign_admin,
        foreign_student=foreign_student,
        subject=subject,
        klass=klass,
    )
