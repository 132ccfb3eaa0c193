"""
School module - Classes, role-specific records and the timetable.
"""

from portal.modules.school.models import (
    Parent,
    SchoolClass,
    Student,
    StudentParent,
    Subject,
    Teacher,
    TimetableEntry,
)

__all__ = [
    "Parent",
    "SchoolClass",
    "Student",
    "StudentParent",
    "Subject",
    "Teacher",
    "TimetableEntry",
]
