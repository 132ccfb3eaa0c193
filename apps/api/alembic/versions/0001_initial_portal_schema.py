"""initial portal schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-16 09:00:00.000000

This migration creates:
1. The app_role enum type
2. Identity tables: accounts, profiles, role_grants
3. School tables: classes, subjects, students, teachers, parents,
   student_parents, timetable_entries
4. Notification tables: notifications, push_subscriptions

Role-specific records, profiles and notifications reference accounts with
ON DELETE CASCADE so deleting an account removes everything it owns.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _base_columns() -> list[sa.Column]:
    """Primary key and timestamps (from BaseModel)."""
    return [
        sa.Column("id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def _account_fk(table: str) -> sa.ForeignKeyConstraint:
    return sa.ForeignKeyConstraint(
        ["account_id"],
        ["accounts.id"],
        name=f"fk_{table}_account_id",
        ondelete="CASCADE",
    )


def upgrade() -> None:
    """Create the portal schema."""
    app_role_enum = postgresql.ENUM(
        "admin",
        "teacher",
        "student",
        "parent",
        name="app_role",
        create_type=False,
    )
    app_role_enum.create(op.get_bind(), checkfirst=True)

    # Identity
    op.create_table(
        "accounts",
        *_base_columns(),
        sa.Column("login_identifier", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.Text(), nullable=False),
        sa.Column("is_confirmed", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("banned_until", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "user_metadata",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_accounts_login_identifier"), "accounts", ["login_identifier"], unique=True
    )

    op.create_table(
        "profiles",
        *_base_columns(),
        sa.Column("account_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("full_name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("phone", sa.String(length=20), nullable=True),
        sa.Column("photo_url", sa.Text(), nullable=True),
        sa.Column(
            "email_notifications_enabled", sa.Boolean(), nullable=False, server_default="true"
        ),
        sa.Column(
            "sms_notifications_enabled", sa.Boolean(), nullable=False, server_default="false"
        ),
        sa.Column(
            "whatsapp_notifications_enabled", sa.Boolean(), nullable=False, server_default="false"
        ),
        sa.Column(
            "push_notifications_enabled", sa.Boolean(), nullable=False, server_default="true"
        ),
        sa.PrimaryKeyConstraint("id"),
        _account_fk("profiles"),
    )
    op.create_index(op.f("ix_profiles_account_id"), "profiles", ["account_id"], unique=True)

    op.create_table(
        "role_grants",
        *_base_columns(),
        sa.Column("account_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("role", app_role_enum, nullable=False),
        sa.PrimaryKeyConstraint("id"),
        _account_fk("role_grants"),
    )
    op.create_index(op.f("ix_role_grants_account_id"), "role_grants", ["account_id"], unique=True)

    # School
    op.create_table(
        "classes",
        *_base_columns(),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("section", sa.String(length=20), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "subjects",
        *_base_columns(),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("code", sa.String(length=20), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "students",
        *_base_columns(),
        sa.Column("account_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("student_id", sa.String(length=50), nullable=False),
        sa.Column("class_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
        sa.PrimaryKeyConstraint("id"),
        _account_fk("students"),
        sa.ForeignKeyConstraint(
            ["class_id"], ["classes.id"], name="fk_students_class_id", ondelete="SET NULL"
        ),
    )
    op.create_index(op.f("ix_students_account_id"), "students", ["account_id"], unique=True)
    op.create_index(op.f("ix_students_student_id"), "students", ["student_id"], unique=True)
    op.create_index(op.f("ix_students_class_id"), "students", ["class_id"], unique=False)

    op.create_table(
        "teachers",
        *_base_columns(),
        sa.Column("account_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("employee_id", sa.String(length=50), nullable=False),
        sa.Column("department_id", sa.String(length=100), nullable=True),
        sa.Column("qualification", sa.Text(), nullable=True),
        sa.Column("specialization", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
        sa.PrimaryKeyConstraint("id"),
        _account_fk("teachers"),
    )
    op.create_index(op.f("ix_teachers_account_id"), "teachers", ["account_id"], unique=True)
    op.create_index(op.f("ix_teachers_employee_id"), "teachers", ["employee_id"], unique=True)

    op.create_table(
        "parents",
        *_base_columns(),
        sa.Column("account_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("father_cnic", sa.String(length=20), nullable=False),
        sa.Column("occupation", sa.String(length=100), nullable=True),
        sa.Column("relationship", sa.String(length=20), nullable=False, server_default="father"),
        sa.PrimaryKeyConstraint("id"),
        _account_fk("parents"),
    )
    op.create_index(op.f("ix_parents_account_id"), "parents", ["account_id"], unique=True)
    op.create_index(op.f("ix_parents_father_cnic"), "parents", ["father_cnic"], unique=True)

    op.create_table(
        "student_parents",
        *_base_columns(),
        sa.Column("student_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("parent_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["student_id"],
            ["students.id"],
            name="fk_student_parents_student_id",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["parent_id"],
            ["parents.id"],
            name="fk_student_parents_parent_id",
            ondelete="CASCADE",
        ),
        sa.UniqueConstraint("student_id", "parent_id", name="uq_student_parent"),
    )
    op.create_index(
        op.f("ix_student_parents_student_id"), "student_parents", ["student_id"], unique=False
    )
    op.create_index(
        op.f("ix_student_parents_parent_id"), "student_parents", ["parent_id"], unique=False
    )

    op.create_table(
        "timetable_entries",
        *_base_columns(),
        sa.Column("class_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("subject_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("teacher_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.String(length=5), nullable=False),
        sa.Column("end_time", sa.String(length=5), nullable=True),
        sa.Column("room_number", sa.String(length=20), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["class_id"],
            ["classes.id"],
            name="fk_timetable_entries_class_id",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["subject_id"],
            ["subjects.id"],
            name="fk_timetable_entries_subject_id",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["teacher_id"],
            ["teachers.id"],
            name="fk_timetable_entries_teacher_id",
            ondelete="SET NULL",
        ),
    )
    op.create_index(
        op.f("ix_timetable_entries_class_id"), "timetable_entries", ["class_id"], unique=False
    )
    op.create_index(
        op.f("ix_timetable_entries_day_of_week"),
        "timetable_entries",
        ["day_of_week"],
        unique=False,
    )

    # Notifications
    op.create_table(
        "notifications",
        *_base_columns(),
        sa.Column("account_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("type", sa.String(length=50), nullable=False),
        sa.Column("link", sa.String(length=500), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default="false"),
        sa.PrimaryKeyConstraint("id"),
        _account_fk("notifications"),
    )
    op.create_index(
        op.f("ix_notifications_account_id"), "notifications", ["account_id"], unique=False
    )

    op.create_table(
        "push_subscriptions",
        *_base_columns(),
        sa.Column("account_id", postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column("endpoint", sa.Text(), nullable=False),
        sa.Column("p256dh", sa.Text(), nullable=False),
        sa.Column("auth", sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        _account_fk("push_subscriptions"),
        sa.UniqueConstraint("account_id", "endpoint", name="uq_push_subscription_endpoint"),
    )
    op.create_index(
        op.f("ix_push_subscriptions_account_id"),
        "push_subscriptions",
        ["account_id"],
        unique=False,
    )


def downgrade() -> None:
    """Drop the portal schema in reverse dependency order."""
    op.drop_table("push_subscriptions")
    op.drop_table("notifications")
    op.drop_table("timetable_entries")
    op.drop_table("student_parents")
    op.drop_table("parents")
    op.drop_table("teachers")
    op.drop_table("students")
    op.drop_table("subjects")
    op.drop_table("classes")
    op.drop_table("role_grants")
    op.drop_table("profiles")
    op.drop_table("accounts")

    postgresql.ENUM(name="app_role").drop(op.get_bind(), checkfirst=True)
