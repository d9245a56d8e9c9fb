"""
Course and CourseEnrollment ORM models.

Key design decisions:
- A course's enrolled students are the CourseEnrollment rows pointing at it.
  UNIQUE(course_id, student_id) makes double enrollment impossible at the
  storage level, whatever the application does.
- enrolled_count mirrors the number of enrollment rows. It exists so the
  capacity check can be a single conditional UPDATE on the course row
  (see enrollment/writer.py); nothing else writes it.
- max_students is optional: NULL means unlimited seats.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    String, Integer, Float, Boolean, DateTime, Text, JSON, Uuid,
    ForeignKey, UniqueConstraint, CheckConstraint, func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base
from models.enums import CourseDifficulty


class Course(Base):
    __tablename__ = "courses"
    __table_args__ = (
        CheckConstraint("max_students IS NULL OR max_students >= 1", name="ck_courses_max_students"),
        CheckConstraint("enrolled_count >= 0", name="ck_courses_enrolled_count"),
    )

    # ── Identity ────────────────────────────────────────────────
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    instructor_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=True, index=True
    )
    instructor_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")

    # ── Catalog fields ──────────────────────────────────────────
    category: Mapped[str] = mapped_column(String(50), nullable=False, default="programming")
    difficulty: Mapped[str] = mapped_column(
        String(20), nullable=False, default=CourseDifficulty.BEGINNER.value
    )
    duration: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)  # hours
    price: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)

    # ── Capacity ────────────────────────────────────────────────
    max_students: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    enrolled_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # ── Timestamps ──────────────────────────────────────────────
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    enrollments: Mapped[list["CourseEnrollment"]] = relationship(
        back_populates="course", cascade="all, delete-orphan"
    )

    @property
    def is_full(self) -> bool:
        return self.max_students is not None and self.enrolled_count >= self.max_students

    def __repr__(self) -> str:
        return f"<Course {self.id} {self.title!r} {self.enrolled_count}/{self.max_students}>"


class CourseEnrollment(Base):
    __tablename__ = "course_enrollments"
    __table_args__ = (
        UniqueConstraint("course_id", "student_id", name="uq_enrollment_course_student"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    course_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True
    )
    student_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False, index=True
    )
    student_name: Mapped[str] = mapped_column(String(100), nullable=False)

    # ── Learning progress ───────────────────────────────────────
    enrolled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)  # percentage
    completed_lessons: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    course: Mapped[Course] = relationship(back_populates="enrollments")

    def __repr__(self) -> str:
        return f"<CourseEnrollment {self.student_id} in {self.course_id}>"
