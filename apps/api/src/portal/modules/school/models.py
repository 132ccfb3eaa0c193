"""
School Models

Classes, subjects, the role-specific records (Student, Teacher, Parent),
the student-parent link and the weekly timetable.

Each role-specific record is keyed by account_id and deleted together with
its account (ON DELETE CASCADE).
"""

from sqlalchemy import ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from portal.modules.shared import BaseModel


class SchoolClass(BaseModel):
    """A class (grade + section) that students belong to."""

    __tablename__ = "classes"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    section: Mapped[str | None] = mapped_column(String(20), nullable=True)

    def __repr__(self) -> str:
        return f"<SchoolClass(id={self.id}, name={self.name})>"


class Subject(BaseModel):
    """A taught subject."""

    __tablename__ = "subjects"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    code: Mapped[str | None] = mapped_column(String(20), nullable=True)


class Student(BaseModel):
    """
    Student record.

    `student_id` is the school-facing identifier; its lower-cased form is
    also the local part of the student's login identifier.
    """

    __tablename__ = "students"

    account_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("accounts.id", ondelete="CASCADE"),
        unique=True,
        index=True,
        nullable=False,
    )
    student_id: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        index=True,
        nullable=False,
    )
    class_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("classes.id", ondelete="SET NULL"),
        index=True,
        nullable=True,
    )
    status: Mapped[str] = mapped_column(String(20), default="active", nullable=False)

    def __repr__(self) -> str:
        return f"<Student(student_id={self.student_id}, class_id={self.class_id})>"


class Teacher(BaseModel):
    """Teacher record."""

    __tablename__ = "teachers"

    account_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("accounts.id", ondelete="CASCADE"),
        unique=True,
        index=True,
        nullable=False,
    )
    employee_id: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        index=True,
        nullable=False,
    )
    department_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    qualification: Mapped[str | None] = mapped_column(Text, nullable=True)
    specialization: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="active", nullable=False)

    def __repr__(self) -> str:
        return f"<Teacher(employee_id={self.employee_id})>"


class Parent(BaseModel):
    """
    Parent record.

    `father_cnic` is stored without separators and is unique; it is the
    local part of the parent's login identifier.
    """

    __tablename__ = "parents"

    account_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("accounts.id", ondelete="CASCADE"),
        unique=True,
        index=True,
        nullable=False,
    )
    father_cnic: Mapped[str] = mapped_column(
        String(20),
        unique=True,
        index=True,
        nullable=False,
    )
    occupation: Mapped[str | None] = mapped_column(String(100), nullable=True)
    relationship: Mapped[str] = mapped_column(String(20), default="father", nullable=False)

    def __repr__(self) -> str:
        return f"<Parent(father_cnic={self.father_cnic})>"


class StudentParent(BaseModel):
    """Links a student to a parent."""

    __tablename__ = "student_parents"
    __table_args__ = (UniqueConstraint("student_id", "parent_id", name="uq_student_parent"),)

    student_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("students.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    parent_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("parents.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )


class TimetableEntry(BaseModel):
    """
    One weekly timetable slot.

    `day_of_week` is 0 for Sunday through 6 for Saturday; `start_time` is
    "HH:MM" in the school's timezone.
    """

    __tablename__ = "timetable_entries"

    class_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("classes.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    subject_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("subjects.id", ondelete="CASCADE"),
        nullable=False,
    )
    teacher_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("teachers.id", ondelete="SET NULL"),
        nullable=True,
    )
    day_of_week: Mapped[int] = mapped_column(Integer, index=True, nullable=False)
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str | None] = mapped_column(String(5), nullable=True)
    room_number: Mapped[str | None] = mapped_column(String(20), nullable=True)
