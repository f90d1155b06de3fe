"""initial dispatch schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 00:00:00
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

user_role = sa.Enum("user", "provider", "admin", name="user_role")
provider_status = sa.Enum("online", "busy", "offline", name="provider_status")
service_type = sa.Enum(
    "towing", "battery", "tire", "fuel", "lockout", "winch", "other",
    name="service_type",
)
request_priority = sa.Enum("low", "medium", "high", name="request_priority")
request_status = sa.Enum(
    "pending", "assigned", "in_progress", "completed", "cancelled",
    name="request_status",
)
assignment_source = sa.Enum("accepted", "dispatched", name="assignment_source")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), nullable=False,
            server_default=sa.func.now(),
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(320), nullable=False, unique=True),
        sa.Column("username", sa.String(150), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("phone_number", sa.String(20), nullable=True),
        sa.Column("role", user_role, nullable=False),
        sa.Column("is_verified", sa.Boolean(), nullable=False),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "auth_sessions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("jti", sa.String(64), nullable=False, unique=True),
        sa.Column(
            "user_id", sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_auth_sessions_user_id", "auth_sessions", ["user_id"])

    op.create_table(
        "providers",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "user_id", sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True,
        ),
        sa.Column("company_name", sa.String(200), nullable=False),
        sa.Column("license_number", sa.String(100), nullable=False),
        sa.Column("vehicle_type", sa.String(50), nullable=False),
        sa.Column("vehicle_plate", sa.String(20), nullable=False),
        sa.Column("insurance_provider", sa.String(200), nullable=True),
        sa.Column("insurance_policy_number", sa.String(100), nullable=True),
        sa.Column("is_profile_complete", sa.Boolean(), nullable=False),
        sa.Column("current_status", provider_status, nullable=False),
        sa.Column("latitude", sa.Numeric(10, 7), nullable=True),
        sa.Column("longitude", sa.Numeric(10, 7), nullable=True),
        sa.Column("location_updated_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "service_requests",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "user_id", sa.Integer(),
            sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False,
        ),
        sa.Column(
            "provider_id", sa.Integer(),
            sa.ForeignKey("providers.id", ondelete="RESTRICT"), nullable=True,
        ),
        sa.Column("service_type", service_type, nullable=False),
        sa.Column("priority", request_priority, nullable=False),
        sa.Column("status", request_status, nullable=False),
        sa.Column("assignment_source", assignment_source, nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("location_address", sa.String(500), nullable=False),
        sa.Column("latitude", sa.Numeric(10, 7), nullable=True),
        sa.Column("longitude", sa.Numeric(10, 7), nullable=True),
        sa.Column("vehicle_make", sa.String(100), nullable=False),
        sa.Column("vehicle_model", sa.String(100), nullable=False),
        sa.Column("vehicle_year", sa.Integer(), nullable=True),
        sa.Column("vehicle_plate", sa.String(20), nullable=True),
        sa.Column("final_cost", sa.Numeric(10, 2), nullable=True),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_service_requests_user_id", "service_requests", ["user_id"])
    op.create_index("ix_service_requests_provider_id", "service_requests", ["provider_id"])
    op.create_index("ix_service_requests_status", "service_requests", ["status"])

    op.create_table(
        "request_events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "request_id", sa.Integer(),
            sa.ForeignKey("service_requests.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("event_type", sa.String(50), nullable=False),
        sa.Column("actor_id", sa.Integer(), nullable=True),
        sa.Column("data", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_request_events_request_id", "request_events", ["request_id"])


def downgrade() -> None:
    op.drop_index("ix_request_events_request_id", table_name="request_events")
    op.drop_table("request_events")
    op.drop_index("ix_service_requests_status", table_name="service_requests")
    op.drop_index("ix_service_requests_provider_id", table_name="service_requests")
    op.drop_index("ix_service_requests_user_id", table_name="service_requests")
    op.drop_table("service_requests")
    op.drop_table("providers")
    op.drop_index("ix_auth_sessions_user_id", table_name="auth_sessions")
    op.drop_table("auth_sessions")
    op.drop_table("users")

    bind = op.get_bind()
    for enum_type in (
        assignment_source,
        request_status,
        request_priority,
        service_type,
        provider_status,
        user_role,
    ):
        enum_type.drop(bind, checkfirst=True)
