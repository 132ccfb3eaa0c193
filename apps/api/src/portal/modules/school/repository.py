"""
School Repository

Database operations for role-specific records, class rosters and the
timetable.
"""

import logging
from collections.abc import Collection
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from portal.modules.school.models import (
    Parent,
    SchoolClass,
    Student,
    StudentParent,
    Subject,
    Teacher,
    TimetableEntry,
)

logger = logging.getLogger(__name__)


class StudentRepository:
    """Repository for student records."""

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        account_id: str,
        student_id: str,
        class_id: str | None = None,
    ) -> Student:
        """
        Create a student record.

        Args:
            db: Database session
            account_id: Owning account
            student_id: Unique school-facing student id
            class_id: Class the student belongs to (optional)

        Returns:
            Created Student
        """
        student = Student(
            account_id=account_id,
            student_id=student_id,
            class_id=class_id,
            status="active",
        )
        db.add(student)
        await db.flush()
        logger.info(f"Created student record {student_id} for account {account_id}")
        return student

    @staticmethod
    async def student_id_exists(db: AsyncSession, student_id: str) -> bool:
        """Check whether a student id is already in use (case-insensitive)."""
        result = await db.execute(
            select(Student.id)
            .where(func.lower(Student.student_id) == student_id.lower())
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def list_by_class(db: AsyncSession, class_id: str) -> list[Student]:
        """Get all students in a class."""
        result = await db.execute(select(Student).where(Student.class_id == class_id))
        return list(result.scalars().all())


class TeacherRepository:
    """Repository for teacher records."""

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        account_id: str,
        employee_id: str,
        department_id: str | None = None,
        qualification: str | None = None,
        specialization: str | None = None,
    ) -> Teacher:
        """Create a teacher record."""
        teacher = Teacher(
            account_id=account_id,
            employee_id=employee_id,
            department_id=department_id,
            qualification=qualification,
            specialization=specialization,
            status="active",
        )
        db.add(teacher)
        await db.flush()
        logger.info(f"Created teacher record {employee_id} for account {account_id}")
        return teacher

    @staticmethod
    async def employee_id_exists(db: AsyncSession, employee_id: str) -> bool:
        """Check whether an employee id is already in use."""
        result = await db.execute(
            select(Teacher.id).where(Teacher.employee_id == employee_id).limit(1)
        )
        return result.scalar_one_or_none() is not None


class ParentRepository:
    """Repository for parent records."""

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        account_id: str,
        father_cnic: str,
        occupation: str | None = None,
        relationship: str = "father",
    ) -> Parent:
        """Create a parent record. `father_cnic` must already be cleaned."""
        parent = Parent(
            account_id=account_id,
            father_cnic=father_cnic,
            occupation=occupation,
            relationship=relationship,
        )
        db.add(parent)
        await db.flush()
        logger.info(f"Created parent record for account {account_id}")
        return parent

    @staticmethod
    async def cnic_exists(db: AsyncSession, father_cnic: str) -> bool:
        """Check whether a (cleaned) CNIC is already registered."""
        result = await db.execute(
            select(Parent.id).where(Parent.father_cnic == father_cnic).limit(1)
        )
        return result.scalar_one_or_none() is not None


class StudentParentRepository:
    """Repository for the student-parent link."""

    @staticmethod
    async def parent_account_ids(db: AsyncSession, student_ids: Collection[str]) -> list[str]:
        """
        Resolve the parent accounts linked to a set of students.

        Args:
            db: Database session
            student_ids: Student record ids (students.id, not student_id)

        Returns:
            Unique parent account ids, in first-seen order
        """
        if not student_ids:
            return []

        result = await db.execute(
            select(Parent.account_id)
            .join(StudentParent, StudentParent.parent_id == Parent.id)
            .where(StudentParent.student_id.in_(list(student_ids)))
        )
        return list(dict.fromkeys(result.scalars().all()))


@dataclass
class UpcomingClass:
    """A timetable slot joined with the names needed for a reminder."""

    teacher_account_id: str | None
    class_name: str | None
    subject_name: str | None
    start_time: str
    room_number: str | None


class TimetableRepository:
    """Repository for timetable lookups."""

    @staticmethod
    async def starting_between(
        db: AsyncSession,
        *,
        day_of_week: int,
        start: str,
        end: str,
    ) -> list[UpcomingClass]:
        """
        Find timetable entries on a weekday whose start time is in [start, end].

        Times are "HH:MM" strings, so lexical comparison matches clock order.
        """
        stmt = (
            select(
                Teacher.account_id,
                SchoolClass.name,
                Subject.name,
                TimetableEntry.start_time,
                TimetableEntry.room_number,
            )
            .select_from(TimetableEntry)
            .outerjoin(Teacher, Teacher.id == TimetableEntry.teacher_id)
            .outerjoin(SchoolClass, SchoolClass.id == TimetableEntry.class_id)
            .outerjoin(Subject, Subject.id == TimetableEntry.subject_id)
            .where(TimetableEntry.day_of_week == day_of_week)
            .where(TimetableEntry.start_time >= start)
            .where(TimetableEntry.start_time <= end)
            .order_by(TimetableEntry.start_time)
        )
        result = await db.execute(stmt)
        return [
            UpcomingClass(
                teacher_account_id=row[0],
                class_name=row[1],
                subject_name=row[2],
                start_time=row[3],
                room_number=row[4],
            )
            for row in result.all()
        ]
