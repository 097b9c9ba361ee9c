"""Initial schema: slots, bookings, tickets, gate and notification ledgers.

Revision ID: 001
Revises: None
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # Slots table
    op.create_table(
        "slots",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("slot_date", sa.Date(), nullable=False),
        sa.Column("time_slot", sa.String(32), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="available"),
        *_timestamps(),
        sa.UniqueConstraint("slot_date", "time_slot", name="uq_slot_date_time"),
        sa.CheckConstraint("status IN ('available', 'booked')", name="check_slot_status"),
    )
    op.create_index("ix_slots_id", "slots", ["id"])
    # The slot picker reads one date at a time
    op.create_index("ix_slots_date_status", "slots", ["slot_date", "status"])

    # Memberships table
    op.create_table(
        "memberships",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("member_name", sa.String(100), nullable=False),
        sa.Column("phone", sa.String(20), nullable=False),
        sa.Column("child_count", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("membership_type", sa.String(20), nullable=False),
        sa.Column("discount_percent", sa.Integer(), nullable=False, server_default=sa.text("100")),
        sa.Column("valid_from", sa.Date(), nullable=False),
        sa.Column("valid_till", sa.Date(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "discount_percent >= 0 AND discount_percent <= 100", name="check_membership_discount_range"
        ),
        sa.CheckConstraint("membership_type IN ('monthly', 'quarterly', 'yearly')", name="check_membership_type"),
        sa.CheckConstraint("status IN ('active', 'expired', 'cancelled')", name="check_membership_status"),
        sa.CheckConstraint("valid_till >= valid_from", name="check_membership_window"),
    )
    op.create_index("ix_memberships_id", "memberships", ["id"])
    # Every ticket issuance looks up the phone's active membership
    op.create_index("ix_memberships_phone_status", "memberships", ["phone", "status"])

    # Bookings table
    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("slot_id", sa.Integer(), sa.ForeignKey("slots.id"), nullable=True),
        sa.Column("slot_date", sa.Date(), nullable=False),
        sa.Column("time_slot", sa.String(32), nullable=False),
        sa.Column("parent_name", sa.String(100), nullable=False),
        sa.Column("parent_phone", sa.String(20), nullable=False),
        sa.Column("child_count", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("booking_type", sa.String(30), nullable=False, server_default="hourly_play"),
        sa.Column("status", sa.String(20), nullable=False, server_default="confirmed"),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default="unpaid"),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("child_count > 0", name="check_booking_child_count_positive"),
        sa.CheckConstraint("status IN ('pending', 'confirmed', 'cancelled')", name="check_booking_status"),
        sa.CheckConstraint(
            "payment_status IN ('unpaid', 'pending', 'paid', 'refunded')", name="check_booking_payment_status"
        ),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_slot_id", "bookings", ["slot_id"])
    op.create_index("ix_bookings_parent_phone", "bookings", ["parent_phone"])
    # Reminder job: confirmed bookings for tomorrow
    op.create_index("ix_bookings_date_status", "bookings", ["slot_date", "status"])

    # Payments table
    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("booking_id", sa.Integer(), sa.ForeignKey("bookings.id"), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("method", sa.String(30), nullable=False, server_default="online"),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("refunded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("refund_reason", sa.String(500), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("amount >= 0", name="check_payment_amount_non_negative"),
        sa.CheckConstraint(
            "status IN ('pending', 'completed', 'failed', 'refunded')", name="check_payment_status"
        ),
    )
    op.create_index("ix_payments_id", "payments", ["id"])
    op.create_index("ix_payments_booking_id", "payments", ["booking_id"])

    # Rides catalogue
    op.create_table(
        "rides",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("price", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.CheckConstraint("price >= 0", name="check_ride_price_non_negative"),
    )
    op.create_index("ix_rides_id", "rides", ["id"])

    # Tickets table
    op.create_table(
        "tickets",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("ticket_number", sa.String(32), nullable=False),
        sa.Column("booking_id", sa.Integer(), sa.ForeignKey("bookings.id"), nullable=True),
        sa.Column("slot_date", sa.Date(), nullable=False),
        sa.Column("time_slot", sa.String(32), nullable=True),
        sa.Column("guardian_name", sa.String(100), nullable=False, server_default="Walk-in Customer"),
        sa.Column("guardian_phone", sa.String(20), nullable=False),
        sa.Column("guardian_count", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("child_count", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("socks_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("entry_price", sa.Integer(), nullable=False),
        sa.Column("socks_price", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("addons_price", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("discount_applied", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_price", sa.Integer(), nullable=False),
        sa.Column("payment_type", sa.String(20), nullable=False),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("source", sa.String(20), nullable=False, server_default="physical"),
        sa.Column("ticket_type", sa.String(30), nullable=False, server_default="hourly_play"),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("inside_venue", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("membership_id", sa.Integer(), sa.ForeignKey("memberships.id"), nullable=True),
        sa.Column("in_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("out_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by_id", sa.String(64), nullable=True),
        sa.Column("created_by_name", sa.String(100), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("guardian_count >= 1", name="check_ticket_guardian_count"),
        sa.CheckConstraint("child_count >= 1", name="check_ticket_child_count"),
        sa.CheckConstraint("socks_count >= 0", name="check_ticket_socks_count"),
        sa.CheckConstraint("total_price >= 0", name="check_ticket_total_non_negative"),
        sa.CheckConstraint("payment_type IN ('cash', 'online')", name="check_ticket_payment_type"),
        sa.CheckConstraint("payment_status IN ('pending', 'paid')", name="check_ticket_payment_status"),
        sa.CheckConstraint("status IN ('active', 'used', 'cancelled', 'expired')", name="check_ticket_status"),
    )
    op.create_index("ix_tickets_id", "tickets", ["id"])
    op.create_index("ix_tickets_ticket_number", "tickets", ["ticket_number"], unique=True)
    op.create_index("ix_tickets_guardian_phone", "tickets", ["guardian_phone"])
    # Expiry sweep and daily gate listings
    op.create_index("ix_tickets_date_status", "tickets", ["slot_date", "status"])

    # Ticket ride lines
    op.create_table(
        "ticket_rides",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("ticket_id", sa.Integer(), sa.ForeignKey("tickets.id"), nullable=False),
        sa.Column("ride_id", sa.Integer(), sa.ForeignKey("rides.id"), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("unit_price", sa.Integer(), nullable=False),
        sa.Column("total_price", sa.Integer(), nullable=False),
        sa.CheckConstraint("quantity > 0", name="check_ticket_ride_quantity_positive"),
    )
    op.create_index("ix_ticket_rides_id", "ticket_rides", ["id"])
    op.create_index("ix_ticket_rides_ticket_id", "ticket_rides", ["ticket_id"])

    # Gate cameras
    op.create_table(
        "gate_cameras",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("gate_id", sa.String(50), nullable=False, unique=True),
        sa.Column("camera_ref", sa.String(255), nullable=True),
    )
    op.create_index("ix_gate_cameras_id", "gate_cameras", ["id"])

    # Gate logs: insert-only
    op.create_table(
        "gate_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("ticket_id", sa.Integer(), sa.ForeignKey("tickets.id"), nullable=False),
        sa.Column("entry_type", sa.String(10), nullable=False),
        sa.Column("gate_id", sa.String(50), nullable=False, server_default="main_gate"),
        sa.Column("camera_ref", sa.String(255), nullable=True),
        sa.Column("scanned_by_id", sa.String(64), nullable=True),
        sa.Column("scanned_by_name", sa.String(100), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("entry_type IN ('entry', 'exit')", name="check_gate_log_entry_type"),
    )
    op.create_index("ix_gate_logs_id", "gate_logs", ["id"])
    # Every scan folds one ticket's history in insertion order
    op.create_index("ix_gate_logs_ticket_id_id", "gate_logs", ["ticket_id", "id"])
    op.create_index("ix_gate_logs_created_at", "gate_logs", ["created_at"])

    # Notification attempts / idempotency ledger
    op.create_table(
        "notification_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("channel", sa.String(20), nullable=False),
        sa.Column("recipient_phone", sa.String(20), nullable=False),
        sa.Column("message", sa.String(500), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("reference_id", sa.String(64), nullable=True),
        sa.Column("reference_type", sa.String(30), nullable=True),
        sa.Column("attempt", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("channel IN ('sms', 'whatsapp')", name="check_notification_channel"),
        sa.CheckConstraint("status IN ('pending', 'sent', 'failed')", name="check_notification_status"),
    )
    op.create_index("ix_notification_logs_id", "notification_logs", ["id"])
    # Idempotency check runs before every send
    op.create_index(
        "ix_notification_logs_reference",
        "notification_logs",
        ["reference_id", "reference_type", "channel", "status"],
    )


def downgrade() -> None:
    op.drop_table("notification_logs")
    op.drop_table("gate_logs")
    op.drop_table("gate_cameras")
    op.drop_table("ticket_rides")
    op.drop_table("tickets")
    op.drop_table("rides")
    op.drop_table("payments")
    op.drop_table("bookings")
    op.drop_table("memberships")
    op.drop_table("slots")
