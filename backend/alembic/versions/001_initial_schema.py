"""Initial schema: users, libraries, seats, time slots, wallets, ledger,
bookings, monthly bookings, attendance and withdraw requests.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ACTIVE_BOOKING = "status IN ('pending', 'confirmed', 'checked-in')"
BOOKING_STATUSES = (
    "status IN ('pending', 'confirmed', 'checked-in', 'completed', "
    "'cancelled', 'rejected', 'missed', 'no-checkout')"
)
PAYMENT_STATUSES = "payment_status IN ('pending', 'paid', 'failed', 'refunded')"


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("role", sa.String(20), nullable=False, server_default="student"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.CheckConstraint("role IN ('student', 'librarian', 'admin')", name="check_user_role"),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    op.create_table(
        "libraries",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("librarian_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("monthly_fee", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_blocked", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        *_timestamps(),
        sa.CheckConstraint("monthly_fee >= 0", name="check_library_monthly_fee_non_negative"),
    )
    op.create_index("ix_libraries_id", "libraries", ["id"])
    op.create_index("ix_libraries_librarian_id", "libraries", ["librarian_id"])

    op.create_table(
        "seats",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("library_id", sa.Integer(), sa.ForeignKey("libraries.id"), nullable=False),
        sa.Column("seat_number", sa.String(50), nullable=False),
        sa.Column("seat_name", sa.String(100), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.UniqueConstraint("library_id", "seat_number", name="uq_seat_library_number"),
    )
    op.create_index("ix_seats_id", "seats", ["id"])
    op.create_index("ix_seats_library_id", "seats", ["library_id"])

    op.create_table(
        "time_slots",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("library_id", sa.Integer(), sa.ForeignKey("libraries.id"), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("price", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.CheckConstraint("start_time < end_time", name="check_time_slot_order"),
        sa.CheckConstraint("price >= 0", name="check_time_slot_price_non_negative"),
    )
    op.create_index("ix_time_slots_id", "time_slots", ["id"])
    op.create_index("ix_time_slots_library_id", "time_slots", ["library_id"])

    op.create_table(
        "time_slot_seats",
        sa.Column("time_slot_id", sa.Integer(), sa.ForeignKey("time_slots.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("seat_id", sa.Integer(), sa.ForeignKey("seats.id", ondelete="CASCADE"), primary_key=True),
    )

    op.create_table(
        "commission_settings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("coin_price", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("wallet_commission", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("booking_commission", sa.Integer(), nullable=False, server_default=sa.text("0")),
        *_timestamps(),
        sa.CheckConstraint("coin_price > 0", name="check_settings_coin_price_positive"),
        sa.CheckConstraint("wallet_commission >= 0", name="check_settings_wallet_commission"),
        sa.CheckConstraint("booking_commission >= 0", name="check_settings_booking_commission"),
    )

    op.create_table(
        "wallets",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False, unique=True),
        sa.Column("balance", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("currency", sa.String(10), nullable=False, server_default="coin"),
        *_timestamps(),
        sa.CheckConstraint("balance >= 0", name="check_wallet_balance_non_negative"),
    )
    op.create_index("ix_wallets_id", "wallets", ["id"])

    op.create_table(
        "monthly_bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("seat_id", sa.Integer(), sa.ForeignKey("seats.id"), nullable=False),
        sa.Column("time_slot_id", sa.Integer(), sa.ForeignKey("time_slots.id"), nullable=True),
        sa.Column("library_id", sa.Integer(), sa.ForeignKey("libraries.id"), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("commission", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_amount", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="confirmed"),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default="paid"),
        sa.Column("booked_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(BOOKING_STATUSES, name="check_monthly_booking_status"),
        sa.CheckConstraint(PAYMENT_STATUSES, name="check_monthly_booking_payment_status"),
        sa.CheckConstraint("start_date <= end_date", name="check_monthly_booking_window"),
        sa.CheckConstraint("total_amount = amount + commission", name="check_monthly_booking_total_amount"),
    )
    op.create_index("ix_monthly_bookings_id", "monthly_bookings", ["id"])
    op.create_index("ix_monthly_bookings_user_status", "monthly_bookings", ["user_id", "status"])
    op.create_index("ix_monthly_bookings_seat_window", "monthly_bookings", ["seat_id", "start_date", "end_date"])
    op.create_index(
        "ix_monthly_bookings_library_window", "monthly_bookings", ["library_id", "start_date", "end_date"]
    )

    op.create_table(
        "ledger_entries",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("wallet_id", sa.Integer(), sa.ForeignKey("wallets.id"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("library_id", sa.Integer(), sa.ForeignKey("libraries.id"), nullable=True),
        sa.Column("kind", sa.String(10), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("description", sa.String(500), nullable=False, server_default=""),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("monthly_booking_id", sa.Integer(), sa.ForeignKey("monthly_bookings.id"), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("amount > 0", name="check_ledger_amount_positive"),
        sa.CheckConstraint("kind IN ('credit', 'debit', 'refund')", name="check_ledger_kind"),
        sa.CheckConstraint("status IN ('pending', 'completed', 'failed')", name="check_ledger_status"),
    )
    op.create_index("ix_ledger_entries_id", "ledger_entries", ["id"])
    op.create_index("ix_ledger_entries_wallet_id", "ledger_entries", ["wallet_id"])
    op.create_index("ix_ledger_entries_user_id", "ledger_entries", ["user_id"])
    op.create_index("ix_ledger_entries_library_id", "ledger_entries", ["library_id"])
    op.create_index("ix_ledger_entries_monthly_booking_id", "ledger_entries", ["monthly_booking_id"])
    op.create_index("ix_ledger_entries_user_created", "ledger_entries", ["user_id", "created_at"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("seat_id", sa.Integer(), sa.ForeignKey("seats.id"), nullable=False),
        sa.Column("time_slot_id", sa.Integer(), sa.ForeignKey("time_slots.id"), nullable=False),
        sa.Column("library_id", sa.Integer(), sa.ForeignKey("libraries.id"), nullable=False),
        sa.Column("booking_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("commission", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_amount", sa.Integer(), nullable=False),
        sa.Column("ledger_entry_id", sa.Integer(), sa.ForeignKey("ledger_entries.id"), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(BOOKING_STATUSES, name="check_booking_status"),
        sa.CheckConstraint(PAYMENT_STATUSES, name="check_booking_payment_status"),
        sa.CheckConstraint("amount >= 0", name="check_booking_amount_non_negative"),
        sa.CheckConstraint("total_amount = amount + commission", name="check_booking_total_amount"),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_user_id", "bookings", ["user_id"])
    op.create_index("ix_bookings_user_status", "bookings", ["user_id", "status"])
    op.create_index("ix_bookings_library_date", "bookings", ["library_id", "booking_date"])
    op.create_index("ix_bookings_slot_date", "bookings", ["time_slot_id", "booking_date"])
    # At most one live booking per seat, slot and date
    op.create_index(
        "uq_bookings_active_seat_slot_date",
        "bookings",
        ["seat_id", "time_slot_id", "booking_date"],
        unique=True,
        postgresql_where=sa.text(ACTIVE_BOOKING),
    )

    op.create_table(
        "ledger_entry_bookings",
        sa.Column(
            "ledger_entry_id", sa.Integer(), sa.ForeignKey("ledger_entries.id", ondelete="CASCADE"), primary_key=True
        ),
        sa.Column("booking_id", sa.Integer(), sa.ForeignKey("bookings.id", ondelete="CASCADE"), primary_key=True),
    )

    op.create_table(
        "attendances",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("student_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("library_id", sa.Integer(), sa.ForeignKey("libraries.id"), nullable=False),
        sa.Column("booking_id", sa.Integer(), sa.ForeignKey("bookings.id"), nullable=False),
        sa.Column("time_slot_id", sa.Integer(), sa.ForeignKey("time_slots.id"), nullable=False),
        sa.Column("check_in_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("check_out_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration_minutes", sa.Integer(), nullable=True),
        sa.Column("method", sa.String(10), nullable=False, server_default="QR"),
        *_timestamps(),
        sa.UniqueConstraint("booking_id", name="uq_attendance_booking"),
        sa.CheckConstraint("method IN ('QR', 'manual')", name="check_attendance_method"),
    )
    op.create_index("ix_attendances_id", "attendances", ["id"])
    op.create_index("ix_attendances_student_checkin", "attendances", ["student_id", "check_in_time"])
    op.create_index("ix_attendances_library_checkin", "attendances", ["library_id", "check_in_time"])

    op.create_table(
        "monthly_attendances",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("student_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("library_id", sa.Integer(), sa.ForeignKey("libraries.id"), nullable=False),
        sa.Column("booking_id", sa.Integer(), sa.ForeignKey("monthly_bookings.id"), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("sessions", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("total_duration_minutes", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("method", sa.String(10), nullable=False, server_default="QR"),
        *_timestamps(),
        sa.UniqueConstraint("booking_id", "date", name="uq_monthly_attendance_booking_date"),
        sa.CheckConstraint("method IN ('QR', 'manual')", name="check_monthly_attendance_method"),
    )
    op.create_index("ix_monthly_attendances_id", "monthly_attendances", ["id"])
    op.create_index("ix_monthly_attendances_student_date", "monthly_attendances", ["student_id", "date"])
    op.create_index("ix_monthly_attendances_library_date", "monthly_attendances", ["library_id", "date"])

    op.create_table(
        "withdraw_requests",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("library_id", sa.Integer(), sa.ForeignKey("libraries.id"), nullable=False),
        sa.Column("requested_amount", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("rejected_reason", sa.String(500), nullable=True),
        sa.Column("requested_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("requested_amount > 0", name="check_withdraw_amount_positive"),
        sa.CheckConstraint("status IN ('pending', 'resolved', 'rejected')", name="check_withdraw_status"),
    )
    op.create_index("ix_withdraw_requests_id", "withdraw_requests", ["id"])
    op.create_index("ix_withdraw_requests_library_id", "withdraw_requests", ["library_id"])


def downgrade() -> None:
    op.drop_table("withdraw_requests")
    op.drop_table("monthly_attendances")
    op.drop_table("attendances")
    op.drop_table("ledger_entry_bookings")
    op.drop_index("uq_bookings_active_seat_slot_date", table_name="bookings")
    op.drop_table("bookings")
    op.drop_table("ledger_entries")
    op.drop_table("monthly_bookings")
    op.drop_table("wallets")
    op.drop_table("commission_settings")
    op.drop_table("time_slot_seats")
    op.drop_table("time_slots")
    op.drop_table("seats")
    op.drop_table("libraries")
    op.drop_table("users")
