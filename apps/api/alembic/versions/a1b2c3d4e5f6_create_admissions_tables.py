"""Create staff_users and applications tables

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-19

Initial schema for the admissions intake:
- staff_users: dashboard accounts
- applications: submitted forms, with the approval-only exam fields
  guarded by check constraints
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "a1b2c3d4e5f6"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


application_status = postgresql.ENUM(
    "Pending", "Approved", "Rejected", name="application_status", create_type=False
)


def upgrade() -> None:
    op.create_table(
        "staff_users",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.Text(), nullable=False),
        sa.Column("full_name", sa.String(length=200), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
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
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_staff_users_email", "staff_users", ["email"], unique=True)

    application_status.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "applications",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("application_number", sa.String(length=20), nullable=False),
        sa.Column("session", sa.String(length=20), nullable=False),
        sa.Column("admission_class", sa.String(length=50), nullable=False),
        sa.Column("location", sa.String(length=100), nullable=False),
        sa.Column("student_name", sa.String(length=200), nullable=False),
        sa.Column("dob", sa.Date(), nullable=False),
        sa.Column("gender", sa.String(length=20), nullable=False),
        sa.Column("religion", sa.String(length=50), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("father_name", sa.String(length=200), nullable=False),
        sa.Column("father_occupation", sa.String(length=100), nullable=False),
        sa.Column("mother_name", sa.String(length=200), nullable=False),
        sa.Column("mother_occupation", sa.String(length=100), nullable=False),
        sa.Column("whatsapp_no", sa.String(length=20), nullable=False),
        sa.Column("mobile_no", sa.String(length=20), nullable=False),
        sa.Column("village", sa.String(length=200), nullable=False),
        sa.Column("post_office", sa.String(length=200), nullable=False),
        sa.Column("pin_code", sa.String(length=10), nullable=False),
        sa.Column("state", sa.String(length=100), nullable=False),
        sa.Column("district", sa.String(length=100), nullable=False),
        sa.Column("exam_state", sa.String(length=100), nullable=False),
        sa.Column("exam_district", sa.String(length=100), nullable=False),
        sa.Column("exam_centre", sa.String(length=200), nullable=False),
        sa.Column("info_source", sa.String(length=100), nullable=False),
        sa.Column("photo_url", sa.String(length=1024), nullable=False, server_default=""),
        sa.Column("signature_url", sa.String(length=1024), nullable=False, server_default=""),
        sa.Column("status", application_status, nullable=False, server_default="Pending"),
        sa.Column(
            "submitted_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column("decided_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("decided_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("roll_number", sa.String(length=20), nullable=True),
        sa.Column("exam_date", sa.Date(), nullable=True),
        sa.Column("exam_time", sa.String(length=50), nullable=True),
        sa.Column("exam_centre_assigned", sa.String(length=200), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("application_number"),
        sa.UniqueConstraint("roll_number"),
        sa.CheckConstraint(
            "(status = 'Approved') = ("
            "roll_number IS NOT NULL AND exam_date IS NOT NULL "
            "AND exam_time IS NOT NULL AND exam_centre_assigned IS NOT NULL)",
            name="ck_applications_approval_fields",
        ),
        sa.CheckConstraint(
            "status = 'Approved' OR (roll_number IS NULL AND exam_date IS NULL "
            "AND exam_time IS NULL AND exam_centre_assigned IS NULL)",
            name="ck_applications_unapproved_no_exam_fields",
        ),
    )

    # Dashboard filter and sort
    op.create_index("ix_applications_status", "applications", ["status"], unique=False)
    op.create_index("ix_applications_submitted_at", "applications", ["submitted_at"], unique=False)

    # Public lookup
    op.create_index(
        "ix_applications_number_dob",
        "applications",
        ["application_number", "dob"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_applications_number_dob", table_name="applications")
    op.drop_index("ix_applications_submitted_at", table_name="applications")
    op.drop_index("ix_applications_status", table_name="applications")
    op.drop_table("applications")
    application_status.drop(op.get_bind(), checkfirst=True)

    op.drop_index("ix_staff_users_email", table_name="staff_users")
    op.drop_table("staff_users")
