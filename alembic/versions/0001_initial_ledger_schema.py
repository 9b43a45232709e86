"""Initial ledger schema: accounts, tournaments, transactions, audit log.

Revision ID: 0001_initial_ledger
Revises:
Create Date: 2026-10-19

This migration creates:
- admin_accounts and accounts (multi-currency balances with optimistic lock)
- tournaments and participations (seat uniqueness per tournament)
- transactions (append-only ledger with integrity hash)
- audit_log (append-only admin action log)
- announcements
- idempotency_keys
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_initial_ledger"
down_revision = None
branch_labels = None
depends_on = None

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")
BIGINT_PK = sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    ]


def upgrade() -> None:
    # ===========================================================
    # 1. Admin accounts
    # ===========================================================
    op.create_table(
        "admin_accounts",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("display_name", sa.String(100), nullable=False),
        sa.Column("permissions", JSON_TYPE, nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    # ===========================================================
    # 2. Accounts
    # ===========================================================
    op.create_table(
        "accounts",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("username", sa.String(50), nullable=False),
        sa.Column(
            "cash_balance",
            sa.Numeric(12, 2),
            nullable=False,
            server_default="0",
            comment="Real-money balance",
        ),
        sa.Column("gems", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("coins", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("voucher_20", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("voucher_30", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("voucher_50", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        *_timestamps(),
        sa.CheckConstraint("cash_balance >= 0", name="ck_accounts_cash_nonneg"),
        sa.CheckConstraint("gems >= 0", name="ck_accounts_gems_nonneg"),
        sa.CheckConstraint("coins >= 0", name="ck_accounts_coins_nonneg"),
        sa.CheckConstraint("voucher_20 >= 0", name="ck_accounts_voucher_20_nonneg"),
        sa.CheckConstraint("voucher_30 >= 0", name="ck_accounts_voucher_30_nonneg"),
        sa.CheckConstraint("voucher_50 >= 0", name="ck_accounts_voucher_50_nonneg"),
    )
    op.create_index("ix_accounts_username", "accounts", ["username"], unique=True)

    # ===========================================================
    # 3. Tournaments and participations
    # ===========================================================
    op.create_table(
        "tournaments",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("game", sa.String(50), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("rules", sa.Text(), nullable=True),
        sa.Column(
            "entry_fee",
            sa.Numeric(12, 2),
            nullable=False,
            server_default="0",
            comment="0 means free entry",
        ),
        sa.Column("prize_pool", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("occupancy", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(20), nullable=False, server_default="upcoming"),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("room_id", sa.String(100), nullable=True),
        sa.Column("room_password", sa.String(100), nullable=True),
        sa.Column("created_by", sa.String(36), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        *_timestamps(),
        sa.CheckConstraint("capacity > 0", name="ck_tournaments_capacity_pos"),
        sa.CheckConstraint(
            "occupancy >= 0 AND occupancy <= capacity",
            name="ck_tournaments_occupancy_bounds",
        ),
        sa.CheckConstraint("entry_fee >= 0", name="ck_tournaments_fee_nonneg"),
    )
    op.create_index("ix_tournaments_game", "tournaments", ["game"])
    op.create_index("ix_tournaments_status", "tournaments", ["status"])
    op.create_index("ix_tournaments_start_time", "tournaments", ["start_time"])

    op.create_table(
        "participations",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "tournament_id",
            sa.String(36),
            sa.ForeignKey("tournaments.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "account_id",
            sa.String(36),
            sa.ForeignKey("accounts.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("seat_number", sa.Integer(), nullable=False),
        sa.Column("in_game_name", sa.String(50), nullable=False),
        sa.Column("fee_charged", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("voucher_denomination", sa.Integer(), nullable=True),
        sa.Column("prize_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("winner_tagged", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        *_timestamps(),
        sa.UniqueConstraint(
            "tournament_id", "account_id", name="uq_participations_tournament_account"
        ),
        sa.UniqueConstraint(
            "tournament_id", "seat_number", name="uq_participations_tournament_seat"
        ),
        sa.CheckConstraint("prize_amount >= 0", name="ck_participations_prize_nonneg"),
    )
    op.create_index("ix_participations_tournament_id", "participations", ["tournament_id"])
    op.create_index("ix_participations_account_id", "participations", ["account_id"])

    # ===========================================================
    # 4. Ledger transactions (append-only)
    # ===========================================================
    op.create_table(
        "transactions",
        sa.Column("id", BIGINT_PK, primary_key=True, autoincrement=True),
        sa.Column(
            "account_id",
            sa.String(36),
            sa.ForeignKey("accounts.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("currency", sa.String(20), nullable=False),
        sa.Column("tx_type", sa.String(30), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("tournament_id", sa.String(36), nullable=True),
        sa.Column("balance_after", sa.Numeric(14, 2), nullable=False),
        sa.Column("integrity_hash", sa.String(64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_transactions_account_id", "transactions", ["account_id"])
    op.create_index("ix_transactions_tx_type", "transactions", ["tx_type"])
    op.create_index("ix_transactions_tournament_id", "transactions", ["tournament_id"])
    op.create_index("ix_transactions_created_at", "transactions", ["created_at"])

    # ===========================================================
    # 5. Audit log (append-only)
    # ===========================================================
    op.create_table(
        "audit_log",
        sa.Column("id", BIGINT_PK, primary_key=True, autoincrement=True),
        sa.Column(
            "admin_id",
            sa.String(36),
            sa.ForeignKey("admin_accounts.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("target_type", sa.String(30), nullable=True),
        sa.Column("target_id", sa.String(36), nullable=True),
        sa.Column("details", JSON_TYPE, nullable=False),
        sa.Column("entry_hash", sa.String(64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_audit_log_admin_id", "audit_log", ["admin_id"])
    op.create_index("ix_audit_log_action", "audit_log", ["action"])
    op.create_index("ix_audit_log_target_id", "audit_log", ["target_id"])
    op.create_index("ix_audit_log_created_at", "audit_log", ["created_at"])

    # ===========================================================
    # 6. Announcements and idempotency keys
    # ===========================================================
    op.create_table(
        "announcements",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("kind", sa.String(20), nullable=False, server_default="general"),
        sa.Column("priority", sa.String(20), nullable=False, server_default="normal"),
        sa.Column(
            "created_by",
            sa.String(36),
            sa.ForeignKey("admin_accounts.id", ondelete="SET NULL"),
            nullable=True,
        ),
        *_timestamps(),
    )

    op.create_table(
        "idempotency_keys",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("scope", sa.String(120), nullable=False),
        sa.Column("key", sa.String(128), nullable=False),
        sa.Column("fingerprint", sa.String(64), nullable=False),
        sa.Column("resource_type", sa.String(30), nullable=False),
        sa.Column("resource_id", sa.String(36), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("scope", "key", name="uq_idempotency_keys_scope_key"),
    )


def downgrade() -> None:
    op.drop_table("idempotency_keys")
    op.drop_table("announcements")

    op.drop_index("ix_audit_log_created_at", table_name="audit_log")
    op.drop_index("ix_audit_log_target_id", table_name="audit_log")
    op.drop_index("ix_audit_log_action", table_name="audit_log")
    op.drop_index("ix_audit_log_admin_id", table_name="audit_log")
    op.drop_table("audit_log")

    op.drop_index("ix_transactions_created_at", table_name="transactions")
    op.drop_index("ix_transactions_tournament_id", table_name="transactions")
    op.drop_index("ix_transactions_tx_type", table_name="transactions")
    op.drop_index("ix_transactions_account_id", table_name="transactions")
    op.drop_table("transactions")

    op.drop_index("ix_participations_account_id", table_name="participations")
    op.drop_index("ix_participations_tournament_id", table_name="participations")
    op.drop_table("participations")

    op.drop_index("ix_tournaments_start_time", table_name="tournaments")
    op.drop_index("ix_tournaments_status", table_name="tournaments")
    op.drop_index("ix_tournaments_game", table_name="tournaments")
    op.drop_table("tournaments")

    op.drop_index("ix_accounts_username", table_name="accounts")
    op.drop_table("accounts")

    op.drop_table("admin_accounts")
