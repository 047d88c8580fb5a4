# gradebook/models/class_model.py
from sqlalchemy import Column, String, Boolean, ForeignKey, JSON, Table, Text, Uuid
from sqlalchemy import UniqueConstraint
from .base import Base


class_teachers = Table(
    "class_teachers",
    Base.metadata,
    Column("class_id", Uuid, ForeignKey("classes.id", ondelete="CASCADE"), primary_key=True),
    Column("teacher_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)

class_students = Table(
    "class_students",
    Base.metadata,
    Column("class_id", Uuid, ForeignKey("classes.id", ondelete="CASCADE"), primary_key=True),
    Column("student_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


class ClassModel(Base):
    __tablename__ = "classes"

    school_id = Column(Uuid, ForeignKey("schools.id"), nullable=False, index=True)

    name = Column(String(100), nullable=False)
    # Subject name, matched against Subject.name when teachers grade
    subject = Column(String(100), nullable=False, index=True)
    direction = Column(String(100), nullable=False)
    school_branch = Column(String(100), nullable=False)
    description = Column(Text)
    schedule = Column(JSON, default=list, nullable=False)
    active = Column(Boolean, default=True, nullable=False)

    __table_args__ = (
        UniqueConstraint("school_id", "name", name="uq_class_school_name"),
    )
