"""Create ledger tables.

Owners, apartments and contracts (read by the ledger), obligations and their
payments, owner balance audit trail, settlements and agency accounting
entries.

Revision ID: 001_create_ledger_tables
Revises:
Create Date: 2024-03-01 09:00:00.000000

"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "001_create_ledger_tables"
down_revision = None
branch_labels = None
depends_on = None

MONEY = sa.Numeric(precision=12, scale=2)
# Enums are stored by value in plain VARCHAR columns (native_enum=False)
ENUM = sa.String(length=32)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.current_timestamp(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.current_timestamp(),
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "owners",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False, comment="Owner display name"),
        sa.Column(
            "balance",
            MONEY,
            nullable=False,
            server_default="0",
            comment="Signed running balance (positive = agency owes owner)",
        ),
        sa.Column("commission_type", ENUM, nullable=True),
        sa.Column(
            "commission_value",
            MONEY,
            nullable=True,
            comment="Percent (for percentage) or flat amount (for fixed)",
        ),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "apartments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("label", sa.String(length=100), nullable=False),
        sa.Column("owner_id", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["owner_id"], ["owners.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_apartments_owner_id", "owner_id"),
    )

    op.create_table(
        "contracts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("apartment_id", sa.Integer(), nullable=False),
        sa.Column("tenant_name", sa.String(length=255), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("commission_type", ENUM, nullable=True),
        sa.Column("commission_value", MONEY, nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["apartment_id"], ["apartments.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_contracts_apartment_id", "apartment_id"),
    )

    op.create_table(
        "obligations",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("apartment_id", sa.Integer(), nullable=False),
        sa.Column("contract_id", sa.Integer(), nullable=True),
        sa.Column("type", ENUM, nullable=False),
        sa.Column("category", sa.String(length=100), nullable=True),
        sa.Column("description", sa.String(length=500), nullable=False),
        sa.Column("notes", sa.String(length=1000), nullable=True),
        sa.Column(
            "period",
            sa.Date(),
            nullable=False,
            comment="First day of the month this obligation represents",
        ),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("paid_amount", MONEY, nullable=False, server_default="0"),
        sa.Column("status", ENUM, nullable=False, server_default="pending"),
        sa.Column("paid_by", ENUM, nullable=False, server_default="tenant"),
        sa.Column("owner_impact", MONEY, nullable=False, server_default="0"),
        sa.Column("agency_impact", MONEY, nullable=False, server_default="0"),
        sa.Column("commission_amount", MONEY, nullable=False, server_default="0"),
        sa.Column("owner_amount", MONEY, nullable=False, server_default="0"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        *_timestamps(),
        sa.ForeignKeyConstraint(["apartment_id"], ["apartments.id"]),
        sa.ForeignKeyConstraint(["contract_id"], ["contracts.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("amount > 0", name="ck_obligation_amount_positive"),
        sa.CheckConstraint("paid_amount >= 0", name="ck_obligation_paid_non_negative"),
        sa.CheckConstraint("paid_amount <= amount", name="ck_obligation_no_overpayment"),
        sa.Index("ix_obligations_apartment_id", "apartment_id"),
        sa.Index("ix_obligations_contract_id", "contract_id"),
        sa.Index("ix_obligations_type", "type"),
        sa.Index("ix_obligations_period", "period"),
        sa.Index("ix_obligations_due_date", "due_date"),
        sa.Index("ix_obligations_status", "status"),
        sa.Index("idx_obligation_status_due", "status", "due_date"),
        sa.Index("idx_obligation_period_status", "period", "status"),
    )

    op.create_table(
        "obligation_payments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("obligation_id", sa.Integer(), nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("payment_date", sa.Date(), nullable=False),
        sa.Column("method", ENUM, nullable=False),
        sa.Column("reference", sa.String(length=255), nullable=True),
        sa.Column("notes", sa.String(length=1000), nullable=True),
        sa.Column(
            "owner_id",
            sa.Integer(),
            nullable=True,
            comment="Owner whose balance funded this payment",
        ),
        *_timestamps(),
        sa.ForeignKeyConstraint(["obligation_id"], ["obligations.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["owner_id"], ["owners.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("amount > 0", name="ck_payment_amount_positive"),
        sa.Index("ix_obligation_payments_obligation_id", "obligation_id"),
        sa.Index("ix_obligation_payments_payment_date", "payment_date"),
        sa.Index("ix_obligation_payments_owner_id", "owner_id"),
        sa.Index("idx_payment_obligation_date", "obligation_id", "payment_date"),
    )

    op.create_table(
        "settlements",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("owner_id", sa.Integer(), nullable=False),
        sa.Column("period", sa.Date(), nullable=False),
        sa.Column("total_income", MONEY, nullable=False),
        sa.Column("total_expenses", MONEY, nullable=False),
        sa.Column("commission_amount", MONEY, nullable=False),
        sa.Column("net_amount", MONEY, nullable=False),
        sa.Column("obligation_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", ENUM, nullable=False, server_default="pending"),
        sa.Column("settled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("disposition", ENUM, nullable=True),
        sa.Column("payment_method", sa.String(length=50), nullable=True),
        sa.Column("reference", sa.String(length=255), nullable=True),
        sa.Column("notes", sa.String(length=1000), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        *_timestamps(),
        sa.ForeignKeyConstraint(["owner_id"], ["owners.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("owner_id", "period", name="uq_settlement_owner_period"),
        sa.Index("ix_settlements_owner_id", "owner_id"),
        sa.Index("ix_settlements_status", "status"),
    )

    op.create_table(
        "accounting_entries",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("type", ENUM, nullable=False),
        sa.Column("description", sa.String(length=500), nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("entry_date", sa.Date(), nullable=False),
        sa.Column("period", sa.Date(), nullable=False),
        sa.Column("owner_id", sa.Integer(), nullable=True),
        sa.Column("settlement_id", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["owner_id"], ["owners.id"]),
        sa.ForeignKeyConstraint(["settlement_id"], ["settlements.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("settlement_id"),
        sa.Index("ix_accounting_entries_period", "period"),
    )

    op.create_table(
        "owner_balance_entries",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("owner_id", sa.Integer(), nullable=False),
        sa.Column("delta", MONEY, nullable=False),
        sa.Column("balance_after", MONEY, nullable=False),
        sa.Column("reason", ENUM, nullable=False),
        sa.Column("payment_id", sa.Integer(), nullable=True),
        sa.Column("settlement_id", sa.Integer(), nullable=True),
        sa.Column("note", sa.String(length=500), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["owner_id"], ["owners.id"]),
        sa.ForeignKeyConstraint(["payment_id"], ["obligation_payments.id"]),
        sa.ForeignKeyConstraint(["settlement_id"], ["settlements.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_owner_balance_entries_owner_id", "owner_id"),
        sa.Index("idx_balance_entry_owner", "owner_id", "id"),
    )


def downgrade() -> None:
    op.drop_table("owner_balance_entries")
    op.drop_table("accounting_entries")
    op.drop_table("settlements")
    op.drop_table("obligation_payments")
    op.drop_table("obligations")
    op.drop_table("contracts")
    op.drop_table("apartments")
    op.drop_table("owners")
