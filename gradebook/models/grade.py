# gradebook/models/grade.py
from sqlalchemy import Column, Date, ForeignKey, Integer, Text, Uuid
from sqlalchemy import CheckConstraint, Index, UniqueConstraint
from .base import Base


class Grade(Base):
    __tablename__ = "grades"

    school_id = Column(Uuid, ForeignKey("schools.id"), nullable=False, index=True)
    student_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    subject_id = Column(Uuid, ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False, index=True)
    teacher_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)

    value = Column(Integer, nullable=False)
    description = Column(Text)
    # Calendar day: at most one grade per student and subject each day
    date = Column(Date, nullable=False)

    __table_args__ = (
        UniqueConstraint("student_id", "subject_id", "date", "school_id", name="uq_grade_student_subject_day"),
        CheckConstraint("value >= 0 AND value <= 100", name="ck_grade_value_range"),
        Index("idx_grade_school_date", "school_id", "date"),
    )
