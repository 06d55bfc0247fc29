"""initial_schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19

Initial database schema for Quluub Payments.
"""

from collections.abc import Sequence

import sqlalchemy as sa
import sqlmodel

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

# Enum columns store member names, matching SQLModel's mapping of str enums
currency_enum = sa.Enum("USD", "NGN", name="currency")
provider_enum = sa.Enum("STRIPE", "PAYSTACK", name="paymentprovider")


def upgrade() -> None:
    """Create initial database schema."""
    # Users table
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("clerk_id", sqlmodel.sql.sqltypes.AutoString(length=255), nullable=False),
        sa.Column("email", sqlmodel.sql.sqltypes.AutoString(length=255), nullable=False),
        sa.Column("name", sqlmodel.sql.sqltypes.AutoString(length=255), nullable=True),
        sa.Column(
            "role", sa.Enum("CLIENT", "COUNSELOR", "ADMIN", name="userrole"), nullable=False
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("session_rate", sa.DECIMAL(18, 2), nullable=False),
        sa.Column("ngn_session_rate", sa.DECIMAL(18, 2), nullable=False),
        sa.Column("push_subscription", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_users_clerk_id"), "users", ["clerk_id"], unique=True)
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=False)

    # Wallets table
    op.create_table(
        "wallets",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("balance", sa.DECIMAL(18, 2), nullable=False),
        sa.Column("currency", currency_enum, nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_wallets_user_id"), "wallets", ["user_id"], unique=True)

    # Transactions table (wallet ledger)
    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("wallet_id", sa.Integer(), nullable=False),
        sa.Column("type", sa.Enum("CREDIT", "DEBIT", name="transactiontype"), nullable=False),
        sa.Column("amount", sa.DECIMAL(18, 2), nullable=False),
        sa.Column("description", sqlmodel.sql.sqltypes.AutoString(length=500), nullable=False),
        sa.Column(
            "status",
            sa.Enum("PENDING", "COMPLETED", "FAILED", name="transactionstatus"),
            nullable=False,
        ),
        sa.Column("reference", sqlmodel.sql.sqltypes.AutoString(length=128), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["wallet_id"], ["wallets.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_transactions_wallet_id"), "transactions", ["wallet_id"], unique=False)
    op.create_index(op.f("ix_transactions_type"), "transactions", ["type"], unique=False)
    op.create_index(op.f("ix_transactions_status"), "transactions", ["status"], unique=False)
    op.create_index(op.f("ix_transactions_reference"), "transactions", ["reference"], unique=True)
    op.create_index(
        op.f("ix_transactions_created_at"), "transactions", ["created_at"], unique=False
    )

    # Sessions table
    op.create_table(
        "sessions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("client_id", sa.Integer(), nullable=False),
        sa.Column("counselor_id", sa.Integer(), nullable=False),
        sa.Column("date", sa.DateTime(), nullable=False),
        sa.Column("duration", sa.Integer(), nullable=False),
        sa.Column("price", sa.DECIMAL(18, 2), nullable=False),
        sa.Column("currency", currency_enum, nullable=False),
        sa.Column(
            "status",
            sa.Enum("PENDING_PAYMENT", "PAID", "COMPLETED", "CANCELED", name="sessionstatus"),
            nullable=False,
        ),
        sa.Column("provider", provider_enum, nullable=False),
        sa.Column(
            "stripe_checkout_session_id",
            sqlmodel.sql.sqltypes.AutoString(length=255),
            nullable=True,
        ),
        sa.Column(
            "payment_reference", sqlmodel.sql.sqltypes.AutoString(length=128), nullable=True
        ),
        sa.Column(
            "payment_intent_id", sqlmodel.sql.sqltypes.AutoString(length=255), nullable=True
        ),
        sa.Column("amount_paid", sa.DECIMAL(18, 2), nullable=True),
        sa.Column("video_call_url", sqlmodel.sql.sqltypes.AutoString(length=512), nullable=True),
        sa.Column("notes", sqlmodel.sql.sqltypes.AutoString(length=2000), nullable=True),
        sa.Column("paid_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("canceled_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["client_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["counselor_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_sessions_client_id"), "sessions", ["client_id"], unique=False)
    op.create_index(op.f("ix_sessions_counselor_id"), "sessions", ["counselor_id"], unique=False)
    op.create_index(op.f("ix_sessions_date"), "sessions", ["date"], unique=False)
    op.create_index(op.f("ix_sessions_status"), "sessions", ["status"], unique=False)
    op.create_index(
        op.f("ix_sessions_stripe_checkout_session_id"),
        "sessions",
        ["stripe_checkout_session_id"],
        unique=True,
    )
    op.create_index(
        op.f("ix_sessions_payment_reference"), "sessions", ["payment_reference"], unique=True
    )

    # Bank accounts table
    op.create_table(
        "bank_accounts",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column(
            "account_type",
            sa.Enum("LOCAL", "INTERNATIONAL", name="bankaccounttype"),
            nullable=False,
        ),
        sa.Column("bank_name", sqlmodel.sql.sqltypes.AutoString(length=255), nullable=False),
        sa.Column("bank_code", sqlmodel.sql.sqltypes.AutoString(length=32), nullable=True),
        sa.Column(
            "encrypted_account_number",
            sqlmodel.sql.sqltypes.AutoString(length=512),
            nullable=False,
        ),
        sa.Column(
            "account_number_last4", sqlmodel.sql.sqltypes.AutoString(length=4), nullable=False
        ),
        sa.Column("account_name", sqlmodel.sql.sqltypes.AutoString(length=255), nullable=False),
        sa.Column("swift_bic", sqlmodel.sql.sqltypes.AutoString(length=16), nullable=True),
        sa.Column("country", sqlmodel.sql.sqltypes.AutoString(length=2), nullable=False),
        sa.Column("recipient_code", sqlmodel.sql.sqltypes.AutoString(length=64), nullable=True),
        sa.Column("is_verified", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_bank_accounts_user_id"), "bank_accounts", ["user_id"], unique=True)

    # Withdrawals table
    op.create_table(
        "withdrawals",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("bank_account_id", sa.Integer(), nullable=False),
        sa.Column("amount", sa.DECIMAL(18, 2), nullable=False),
        sa.Column("currency", currency_enum, nullable=False),
        sa.Column(
            "status",
            sa.Enum("PENDING", "PROCESSING", "COMPLETED", "FAILED", name="withdrawalstatus"),
            nullable=False,
        ),
        sa.Column("transfer_code", sqlmodel.sql.sqltypes.AutoString(length=64), nullable=True),
        sa.Column(
            "transfer_reference", sqlmodel.sql.sqltypes.AutoString(length=64), nullable=True
        ),
        sa.Column("failure_reason", sqlmodel.sql.sqltypes.AutoString(length=500), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["bank_account_id"], ["bank_accounts.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_withdrawals_user_id"), "withdrawals", ["user_id"], unique=False)
    op.create_index(op.f("ix_withdrawals_status"), "withdrawals", ["status"], unique=False)
    op.create_index(
        op.f("ix_withdrawals_transfer_code"), "withdrawals", ["transfer_code"], unique=True
    )
    op.create_index(
        op.f("ix_withdrawals_transfer_reference"),
        "withdrawals",
        ["transfer_reference"],
        unique=False,
    )
    op.create_index(op.f("ix_withdrawals_created_at"), "withdrawals", ["created_at"], unique=False)

    # Processed webhook events (idempotency markers)
    op.create_table(
        "processed_events",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("provider", provider_enum, nullable=False),
        sa.Column("event_key", sqlmodel.sql.sqltypes.AutoString(length=255), nullable=False),
        sa.Column("event_type", sqlmodel.sql.sqltypes.AutoString(length=64), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("provider", "event_key", name="uq_processed_event"),
    )

    # Connection requests table
    op.create_table(
        "connection_requests",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("client_id", sa.Integer(), nullable=False),
        sa.Column("counselor_id", sa.Integer(), nullable=False),
        sa.Column(
            "status",
            sa.Enum("PENDING", "ACCEPTED", "DECLINED", name="connectionrequeststatus"),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["client_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["counselor_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_connection_requests_client_id"), "connection_requests", ["client_id"]
    )
    op.create_index(
        op.f("ix_connection_requests_counselor_id"), "connection_requests", ["counselor_id"]
    )


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table("connection_requests")
    op.drop_table("processed_events")
    op.drop_table("withdrawals")
    op.drop_table("bank_accounts")
    op.drop_table("sessions")
    op.drop_table("transactions")
    op.drop_table("wallets")
    op.drop_table("users")
