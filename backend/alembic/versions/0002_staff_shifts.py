from alembic import op
import sqlalchemy as sa


revision = "0002_staff_shifts"
down_revision = "0001_init"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "staff_shifts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("staff_id", sa.Integer(), nullable=False, index=True),
        sa.Column("business_id", sa.Integer(), nullable=False, index=True),
        sa.Column("branch_id", sa.Integer(), nullable=True, index=True),
        sa.Column("shift_date", sa.Date(), nullable=False, index=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="open", index=True),
        sa.Column("opened_at", sa.DateTime(), nullable=False),
        sa.Column("closed_at", sa.DateTime(), nullable=True),
        sa.Column("expected_start", sa.DateTime(), nullable=True),
        sa.Column("late_minutes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("consumables_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("percent_master", sa.Numeric(9, 4), nullable=True),
        sa.Column("percent_salon", sa.Numeric(9, 4), nullable=True),
        sa.Column("base_master_share", sa.Numeric(12, 2), nullable=True),
        sa.Column("base_salon_share", sa.Numeric(12, 2), nullable=True),
        sa.Column("master_share", sa.Numeric(12, 2), nullable=True),
        sa.Column("salon_share", sa.Numeric(12, 2), nullable=True),
        sa.Column("hours_worked", sa.Numeric(6, 2), nullable=True),
        sa.Column("hourly_rate", sa.Numeric(12, 2), nullable=True),
        sa.Column("guaranteed_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("topup_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["staff_id"], ["staff.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["business_id"], ["businesses.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["branch_id"], ["branches.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("staff_id", "shift_date", name="uq_staff_shifts_staff_date"),
    )
    op.create_table(
        "staff_shift_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("shift_id", sa.Integer(), nullable=False, index=True),
        sa.Column("client_name", sa.String(length=255), nullable=True),
        sa.Column("service_name", sa.String(length=255), nullable=True),
        sa.Column("service_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("consumables_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("note", sa.String(length=500), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["shift_id"], ["staff_shifts.id"], ondelete="CASCADE"),
    )


def downgrade() -> None:
    op.drop_table("staff_shift_items")
    op.drop_table("staff_shifts")
