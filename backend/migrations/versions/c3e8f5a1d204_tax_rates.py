"""Add tax_rates and sales.tax_rate_id

Revision ID: c3e8f5a1d204
Revises: b7c41e2d9a10
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "c3e8f5a1d204"
down_revision = "b7c41e2d9a10"
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "tax_rates",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("rate", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )

    with op.batch_alter_table("sales", schema=None) as batch_op:
        batch_op.add_column(sa.Column("tax_rate_id", sa.String(length=36), nullable=True))
        batch_op.create_foreign_key(
            "fk_sales_tax_rate",
            "tax_rates",
            ["tax_rate_id"],
            ["id"],
        )


def downgrade():
    with op.batch_alter_table("sales", schema=None) as batch_op:
        batch_op.drop_constraint("fk_sales_tax_rate", type_="foreignkey")
        batch_op.drop_column("tax_rate_id")

    op.drop_table("tax_rates")
