"""swap requests + one pending request per ordered pair"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0002"
down_revision = "0001"
branch_labels = None
depends_on = None

def upgrade():
    swap_status = sa.Enum("pending", "accepted", "rejected", name="swap_status")
    bind = op.get_bind()
    if bind.dialect.name != "sqlite":
        swap_status.create(bind, checkfirst=True)

    op.create_table(
        "swap_requests",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("requester_id", sa.Integer(), sa.ForeignKey("residents.id", ondelete="CASCADE"), nullable=False),
        sa.Column("target_id", sa.Integer(), sa.ForeignKey("residents.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", swap_status, nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("decided_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("requester_id <> target_id", name="ck_swap_not_self"),
    )
    op.create_index("ix_swap_requests_requester_id", "swap_requests", ["requester_id"])
    op.create_index("ix_swap_requests_target_id", "swap_requests", ["target_id"])
    # партиальный уникальный индекс: SQLite >= 3.8 и PostgreSQL
    op.create_index(
        "uq_swap_pending_pair", "swap_requests", ["requester_id", "target_id"], unique=True,
        sqlite_where=sa.text("status = 'pending'"),
        postgresql_where=sa.text("status = 'pending'"),
    )

def downgrade():
    op.drop_index("uq_swap_pending_pair", table_name="swap_requests")
    op.drop_table("swap_requests")
    bind = op.get_bind()
    if bind.dialect.name != "sqlite":
        sa.Enum(name="swap_status").drop(bind, checkfirst=True)
