"""Initial schema

Revision ID: 20261017_0001
Revises:
Create Date: 2026-10-17 09:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "20261017_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


role_enum = sa.Enum("student", "tutor", "admin", name="role_enum", native_enum=False)
appointment_status_enum = sa.Enum(
    "scheduled",
    "confirmed",
    "completed",
    "cancelled",
    name="appointment_status_enum",
    native_enum=False,
)
payment_status_enum = sa.Enum("due", "paid", name="payment_status_enum", native_enum=False)
ledger_payment_status_enum = sa.Enum(
    "up_to_date",
    "due_soon",
    "overdue",
    name="ledger_payment_status_enum",
    native_enum=False,
)
outbox_status_enum = sa.Enum("pending", "processed", "failed", name="outbox_status_enum", native_enum=False)


def _id_col() -> sa.Column:
    return sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False)


def _created_col() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), nullable=False)


def _updated_col() -> sa.Column:
    return sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False)


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")

    op.create_table(
        "roles",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("name", role_enum, nullable=False),
        sa.UniqueConstraint("name", name="uq_roles_name"),
    )

    op.create_table(
        "users",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("timezone", sa.String(length=64), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("role_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.ForeignKeyConstraint(["role_id"], ["roles.id"], name="fk_users_role_id_roles", ondelete="RESTRICT"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=False)

    op.create_table(
        "tutor_profiles",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("display_name", sa.String(length=128), nullable=False),
        sa.Column("bio", sa.Text(), nullable=False),
        sa.Column("hourly_rate", sa.Numeric(10, 2), nullable=True),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.CheckConstraint(
            "hourly_rate IS NULL OR hourly_rate >= 0",
            name="ck_tutor_profiles_hourly_rate_non_negative",
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], name="fk_tutor_profiles_user_id_users", ondelete="CASCADE"),
        sa.UniqueConstraint("user_id", name="uq_tutor_profiles_user_id"),
    )

    op.create_table(
        "weekly_availability_rules",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("tutor_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("day_of_week", sa.SmallInteger(), nullable=False),
        sa.Column("start_time", sa.Time(timezone=False), nullable=False),
        sa.Column("end_time", sa.Time(timezone=False), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_weekly_availability_rules_day_of_week_range"),
        sa.CheckConstraint("start_time < end_time", name="ck_weekly_availability_rules_start_before_end"),
        sa.ForeignKeyConstraint(
            ["tutor_id"],
            ["users.id"],
            name="fk_weekly_availability_rules_tutor_id_users",
            ondelete="CASCADE",
        ),
    )
    op.create_index(
        "ix_weekly_availability_rules_tutor_id",
        "weekly_availability_rules",
        ["tutor_id"],
        unique=False,
    )
    op.create_index(
        "ix_weekly_availability_rules_tutor_day",
        "weekly_availability_rules",
        ["tutor_id", "day_of_week"],
        unique=False,
    )

    op.create_table(
        "appointments",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("tutor_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("student_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("subject", sa.String(length=128), nullable=False),
        sa.Column("start_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", appointment_status_enum, nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("idempotency_key", sa.String(length=128), nullable=True),
        sa.CheckConstraint("start_at < end_at", name="ck_appointments_start_before_end"),
        sa.ForeignKeyConstraint(["tutor_id"], ["users.id"], name="fk_appointments_tutor_id_users", ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(
            ["student_id"],
            ["users.id"],
            name="fk_appointments_student_id_users",
            ondelete="RESTRICT",
        ),
        sa.UniqueConstraint("idempotency_key", name="uq_appointments_idempotency_key"),
    )
    op.create_index("ix_appointments_tutor_id", "appointments", ["tutor_id"], unique=False)
    op.create_index("ix_appointments_student_id", "appointments", ["student_id"], unique=False)
    op.create_index("ix_appointments_status", "appointments", ["status"], unique=False)
    op.create_index("ix_appointments_tutor_window", "appointments", ["tutor_id", "start_at", "end_at"], unique=False)
    op.execute(
        "ALTER TABLE appointments ADD CONSTRAINT ex_appointments_tutor_no_overlap "
        "EXCLUDE USING gist (tutor_id WITH =, tstzrange(start_at, end_at, '[)') WITH &&) "
        "WHERE (status <> 'cancelled')",
    )

    op.create_table(
        "lecture_hours_ledgers",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("student_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("tutor_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("subject", sa.String(length=128), nullable=False),
        sa.Column("total_seconds", sa.Numeric(16, 6), nullable=False),
        sa.Column("unpaid_seconds", sa.Numeric(16, 6), nullable=False),
        sa.Column("payment_interval_hours", sa.Numeric(10, 4), nullable=False),
        sa.Column("last_session_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reminder_status", ledger_payment_status_enum, nullable=True),
        sa.CheckConstraint("unpaid_seconds >= 0", name="ck_lecture_hours_ledgers_unpaid_seconds_non_negative"),
        sa.CheckConstraint("unpaid_seconds <= total_seconds", name="ck_lecture_hours_ledgers_unpaid_within_total"),
        sa.CheckConstraint(
            "payment_interval_hours > 0",
            name="ck_lecture_hours_ledgers_payment_interval_positive",
        ),
        sa.ForeignKeyConstraint(
            ["student_id"],
            ["users.id"],
            name="fk_lecture_hours_ledgers_student_id_users",
            ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(
            ["tutor_id"],
            ["users.id"],
            name="fk_lecture_hours_ledgers_tutor_id_users",
            ondelete="RESTRICT",
        ),
        sa.UniqueConstraint("student_id", "tutor_id", "subject", name="uq_lecture_hours_ledgers_key"),
    )
    op.create_index("ix_lecture_hours_ledgers_student_id", "lecture_hours_ledgers", ["student_id"], unique=False)
    op.create_index("ix_lecture_hours_ledgers_tutor_id", "lecture_hours_ledgers", ["tutor_id"], unique=False)

    op.create_table(
        "lecture_sessions",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("ledger_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("appointment_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("duration_seconds", sa.Numeric(14, 6), nullable=False),
        sa.Column("start_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(
            ["ledger_id"],
            ["lecture_hours_ledgers.id"],
            name="fk_lecture_sessions_ledger_id_lecture_hours_ledgers",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["appointment_id"],
            ["appointments.id"],
            name="fk_lecture_sessions_appointment_id_appointments",
            ondelete="RESTRICT",
        ),
        sa.UniqueConstraint("appointment_id", name="uq_lecture_sessions_appointment_id"),
    )
    op.create_index("ix_lecture_sessions_ledger_id", "lecture_sessions", ["ledger_id"], unique=False)

    op.create_table(
        "payments",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("ledger_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("hours_included", sa.Numeric(10, 4), nullable=False),
        sa.Column("status", payment_status_enum, nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("paid_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reminders_sent", sa.Integer(), nullable=False),
        sa.Column("last_reminder_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("amount >= 0", name="ck_payments_amount_non_negative"),
        sa.CheckConstraint("hours_included >= 0", name="ck_payments_hours_included_non_negative"),
        sa.ForeignKeyConstraint(
            ["ledger_id"],
            ["lecture_hours_ledgers.id"],
            name="fk_payments_ledger_id_lecture_hours_ledgers",
            ondelete="CASCADE",
        ),
    )
    op.create_index("ix_payments_ledger_id", "payments", ["ledger_id"], unique=False)
    op.create_index("ix_payments_status", "payments", ["status"], unique=False)

    op.create_table(
        "audit_logs",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("actor_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("action", sa.String(length=128), nullable=False),
        sa.Column("entity_type", sa.String(length=128), nullable=False),
        sa.Column("entity_id", sa.String(length=128), nullable=True),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.ForeignKeyConstraint(["actor_id"], ["users.id"], name="fk_audit_logs_actor_id_users", ondelete="SET NULL"),
    )
    op.create_index("ix_audit_logs_actor_id", "audit_logs", ["actor_id"], unique=False)
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"], unique=False)

    op.create_table(
        "outbox_events",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("aggregate_type", sa.String(length=128), nullable=False),
        sa.Column("aggregate_id", sa.String(length=128), nullable=False),
        sa.Column("event_type", sa.String(length=128), nullable=False),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("status", outbox_status_enum, nullable=False),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_outbox_events_aggregate_type", "outbox_events", ["aggregate_type"], unique=False)
    op.create_index("ix_outbox_events_aggregate_id", "outbox_events", ["aggregate_id"], unique=False)
    op.create_index("ix_outbox_events_event_type", "outbox_events", ["event_type"], unique=False)
    op.create_index("ix_outbox_events_status", "outbox_events", ["status"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_outbox_events_status", table_name="outbox_events")
    op.drop_index("ix_outbox_events_event_type", table_name="outbox_events")
    op.drop_index("ix_outbox_events_aggregate_id", table_name="outbox_events")
    op.drop_index("ix_outbox_events_aggregate_type", table_name="outbox_events")
    op.drop_table("outbox_events")

    op.drop_index("ix_audit_logs_action", table_name="audit_logs")
    op.drop_index("ix_audit_logs_actor_id", table_name="audit_logs")
    op.drop_table("audit_logs")

    op.drop_index("ix_payments_status", table_name="payments")
    op.drop_index("ix_payments_ledger_id", table_name="payments")
    op.drop_table("payments")

    op.drop_index("ix_lecture_sessions_ledger_id", table_name="lecture_sessions")
    op.drop_table("lecture_sessions")

    op.drop_index("ix_lecture_hours_ledgers_tutor_id", table_name="lecture_hours_ledgers")
    op.drop_index("ix_lecture_hours_ledgers_student_id", table_name="lecture_hours_ledgers")
    op.drop_table("lecture_hours_ledgers")

    op.execute("ALTER TABLE appointments DROP CONSTRAINT IF EXISTS ex_appointments_tutor_no_overlap")
    op.drop_index("ix_appointments_tutor_window", table_name="appointments")
    op.drop_index("ix_appointments_status", table_name="appointments")
    op.drop_index("ix_appointments_student_id", table_name="appointments")
    op.drop_index("ix_appointments_tutor_id", table_name="appointments")
    op.drop_table("appointments")

    op.drop_index("ix_weekly_availability_rules_tutor_day", table_name="weekly_availability_rules")
    op.drop_index("ix_weekly_availability_rules_tutor_id", table_name="weekly_availability_rules")
    op.drop_table("weekly_availability_rules")

    op.drop_table("tutor_profiles")

    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")

    op.drop_table("roles")
