"""Initial schema: users, rides, ride rejections, transactions, activity log.

Revision ID: 001
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    vehicle_type = sa.Enum("OKADA", "KEKE", "MINIBUS", "TRUCK", name="vehicletype")

    # ── users ─────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("email", sa.String(255), unique=True, nullable=False),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("nin", sa.String(11), unique=True, nullable=True),
        sa.Column(
            "role",
            sa.Enum("ADMIN", "DRIVER", "PASSENGER", "STAFF", name="userrole"),
            nullable=False,
        ),
        sa.Column("wallet_balance", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column(
            "status",
            sa.Enum("ACTIVE", "BANNED", "SUSPENDED", name="accountstatus"),
            nullable=False,
        ),
        sa.Column("suspension_reason", sa.String(255), nullable=True),
        sa.Column("ip", sa.String(64), nullable=True),
        sa.Column("device", sa.String(120), nullable=True),
        sa.Column("vehicle_type", vehicle_type, nullable=True),
        sa.Column("license_plate", sa.String(32), nullable=True),
        sa.Column("is_online", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("rating", sa.Float, nullable=True),
        sa.Column("total_trips", sa.Integer, nullable=False, server_default="0"),
        sa.Column("vehicle_capacity_kg", sa.Float, nullable=True),
        sa.Column("current_load_kg", sa.Float, nullable=False, server_default="0"),
        sa.Column(
            "load_status",
            sa.Enum("EMPTY", "HALF_LOAD", "FULL_LOAD", "OVERLOAD", name="loadstatus"),
            nullable=False,
            server_default="EMPTY",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_users_role_online", "users", ["role", "is_online"])

    # ── rides ─────────────────────────────────────────────────────────
    op.create_table(
        "rides",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "passenger_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False
        ),
        sa.Column("driver_id", sa.Integer, sa.ForeignKey("users.id"), nullable=True),
        sa.Column(
            "type",
            sa.Enum("RIDE", "LOGISTICS", name="ridetype"),
            nullable=False,
        ),
        sa.Column(
            "vehicle_type",
            postgresql.ENUM(name="vehicletype", create_type=False),
            nullable=False,
        ),
        sa.Column("pickup_address", sa.String(255), nullable=False),
        sa.Column("dropoff_address", sa.String(255), nullable=False),
        sa.Column("distance_km", sa.Float, nullable=False, server_default="0"),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.Column("estimated_weight_kg", sa.Float, nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                "PENDING",
                "ACCEPTED",
                "IN_PROGRESS",
                "COMPLETED",
                "CANCELLED",
                name="ridestatus",
            ),
            nullable=False,
        ),
        sa.Column("parcel_description", sa.Text, nullable=True),
        sa.Column("parcel_weight", sa.String(32), nullable=True),
        sa.Column("receiver_phone", sa.String(32), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_rides_status", "rides", ["status"])
    op.create_index("idx_rides_passenger", "rides", ["passenger_id", "created_at"])
    op.create_index("idx_rides_driver", "rides", ["driver_id"])

    # ── ride_rejections ───────────────────────────────────────────────
    op.create_table(
        "ride_rejections",
        sa.Column("ride_id", sa.Integer, sa.ForeignKey("rides.id"), primary_key=True),
        sa.Column("driver_id", sa.Integer, sa.ForeignKey("users.id"), primary_key=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )

    # ── transactions ──────────────────────────────────────────────────
    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "type",
            sa.Enum("WITHDRAWAL", "PAYMENT", "EARNING", name="transactiontype"),
            nullable=False,
        ),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False),
        sa.Column("ride_id", sa.Integer, sa.ForeignKey("rides.id"), nullable=True),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column(
            "status",
            sa.Enum("PENDING", "SUCCESS", "FAILED", name="transactionstatus"),
            nullable=False,
        ),
        sa.Column("reference", sa.String(32), unique=True, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_transactions_user", "transactions", ["user_id"])

    # ── activity_log ──────────────────────────────────────────────────
    op.create_table(
        "activity_log",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer, nullable=False),
        sa.Column("action", sa.String(40), nullable=False),
        sa.Column("details", sa.Text, nullable=False, server_default=""),
        sa.Column("ip", sa.String(64), nullable=False, server_default="Unknown"),
        sa.Column(
            "timestamp",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_activity_user", "activity_log", ["user_id"])


def downgrade() -> None:
    op.drop_table("activity_log")
    op.drop_table("transactions")
    op.drop_table("ride_rejections")
    op.drop_table("rides")
    op.drop_table("users")
    for enum_name in (
        "transactionstatus",
        "transactiontype",
        "ridestatus",
        "ridetype",
        "loadstatus",
        "vehicletype",
        "accountstatus",
        "userrole",
    ):
        op.execute(f"DROP TYPE IF EXISTS {enum_name}")
