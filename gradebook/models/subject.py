# gradebook/models/subject.py
from sqlalchemy import Column, String, ForeignKey, JSON, Table, Text, Uuid, UniqueConstraint
from .base import Base


subject_teachers = Table(
    "subject_teachers",
    Base.metadata,
    Column("subject_id", Uuid, ForeignKey("subjects.id", ondelete="CASCADE"), primary_key=True),
    Column("teacher_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


class Subject(Base):
    __tablename__ = "subjects"

    school_id = Column(Uuid, ForeignKey("schools.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text)
    directions = Column(JSON, default=list, nullable=False)

    __table_args__ = (
        UniqueConstraint("school_id", "name", name="uq_subject_school_name"),
    )
