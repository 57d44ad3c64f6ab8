from alembic import op
import sqlalchemy as sa


revision = "20261019_create_contribution_tables"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        "gift_lists",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("owner_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id"), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_gift_lists_owner_id", "gift_lists", ["owner_id"])
    op.create_index("ix_gift_lists_event_id", "gift_lists", ["event_id"])

    op.create_table(
        "items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("list_id", sa.Integer(), sa.ForeignKey("gift_lists.id"), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("advancer_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("contribution_version", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_items_list_id", "items", ["list_id"])

    op.create_table(
        "contributions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("item_id", sa.Integer(), sa.ForeignKey("items.id"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("total_price", sa.Numeric(12, 2), nullable=True),
        sa.Column("contribution_type", sa.String(length=16), nullable=False, server_default="PARTIAL"),
        sa.Column("note", sa.String(length=500), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("item_id", "user_id", name="uq_contributions_item_user"),
        sa.CheckConstraint("amount >= 0", name="ck_contributions_amount_non_negative"),
    )
    op.create_index("ix_contributions_item_id", "contributions", ["item_id"])
    op.create_index("ix_contributions_user_id", "contributions", ["user_id"])

    op.create_table(
        "debts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("item_id", sa.Integer(), sa.ForeignKey("items.id"), nullable=False),
        sa.Column("from_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("to_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("is_settled", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("settled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("amount >= 0", name="ck_debts_amount_non_negative"),
    )
    op.create_index("ix_debts_item_id", "debts", ["item_id"])
    op.create_index("ix_debts_from_user_id", "debts", ["from_user_id"])
    op.create_index("ix_debts_to_user_id", "debts", ["to_user_id"])
    op.create_index(
        "uq_debts_item_from_to_open",
        "debts",
        ["item_id", "from_user_id", "to_user_id"],
        unique=True,
        sqlite_where=sa.text("is_settled = 0"),
        postgresql_where=sa.text("NOT is_settled"),
    )


def downgrade() -> None:
    op.drop_table("debts")
    op.drop_table("contributions")
    op.drop_table("items")
    op.drop_table("gift_lists")
    op.drop_table("events")
    op.drop_table("users")
