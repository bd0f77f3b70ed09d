"""initial_fieldtrack_schema

Creates the field-ops tables:
  - work_orders   — immutable order numbers
  - line_items    — billable units with live per-unit rate
  - users         — directory for supervisor enrichment and stats
  - submissions   — work entries with rate snapshot, status and resubmission link

Tables created conditionally (IF NOT EXISTS semantics) so databases that
already received them via db.create_all() upgrade cleanly.

Revision ID: a1f3c9d2e7b4
Revises:
Create Date: 2026-10-19 09:12:41.518203
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = 'a1f3c9d2e7b4'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing = set(inspector.get_table_names())

    # ── WorkOrder ─────────────────────────────────────────────────────────
    if "work_orders" not in existing:
        op.create_table(
            "work_orders",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column(
                "order_number", sa.String(length=100), nullable=False,
                comment="Exact, case-sensitive business key",
            ),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("order_number"),
        )

    # ── LineItem ──────────────────────────────────────────────────────────
    if "line_items" not in existing:
        op.create_table(
            "line_items",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("work_order_id", sa.String(length=36), nullable=False),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("uom", sa.String(length=30), nullable=False, comment="Unit of measure, e.g. m3"),
            sa.Column("rate", sa.Numeric(precision=12, scale=2), nullable=False, comment="Currency per UOM"),
            sa.Column("standard_manpower", sa.String(length=255), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.CheckConstraint("rate >= 0", name="ck_line_items_rate_non_negative"),
            sa.ForeignKeyConstraint(["work_order_id"], ["work_orders.id"], ondelete="RESTRICT"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_line_items_work_order", "line_items", ["work_order_id"])

    # ── User ──────────────────────────────────────────────────────────────
    if "users" not in existing:
        op.create_table(
            "users",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("emp_id", sa.String(length=50), nullable=False),
            sa.Column("email", sa.String(length=255), nullable=False),
            sa.Column("phone", sa.String(length=30), nullable=True),
            sa.Column("role", sa.String(length=20), nullable=False),
            sa.Column("image", sa.String(length=500), nullable=True, comment="Profile photo reference"),
            sa.Column("active", sa.Boolean(), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("emp_id"),
            sa.UniqueConstraint("email"),
        )

    # ── Submission ────────────────────────────────────────────────────────
    if "submissions" not in existing:
        op.create_table(
            "submissions",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("supervisor_id", sa.String(length=36), nullable=False),
            sa.Column("supervisor_name", sa.String(length=200), nullable=False),
            sa.Column("work_order_id", sa.String(length=36), nullable=False),
            sa.Column("line_item_id", sa.String(length=36), nullable=False),
            sa.Column("quantity", sa.Numeric(precision=12, scale=3), nullable=False),
            sa.Column("actual_manpower", sa.String(length=255), nullable=False),
            sa.Column("material_consumed", sa.Text(), nullable=False),
            sa.Column("snapshot_rate", sa.Numeric(precision=12, scale=2), nullable=False),
            sa.Column("snapshot_standard_manpower", sa.String(length=255), nullable=False),
            sa.Column("revenue", sa.Numeric(precision=16, scale=2), nullable=False),
            sa.Column(
                "status", sa.String(length=30), nullable=False,
                comment="Pending Validation | Approved | Rejected | Resubmitted",
            ),
            sa.Column("remarks", sa.Text(), nullable=False, comment="Validator rejection reason"),
            sa.Column("admin_remarks", sa.Text(), nullable=False),
            sa.Column("previous_submission_id", sa.String(length=36), nullable=True),
            sa.Column("evidence_photos", sa.JSON(), nullable=False),
            sa.Column("version", sa.Integer(), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.CheckConstraint("quantity >= 0", name="ck_submissions_quantity_non_negative"),
            sa.ForeignKeyConstraint(["work_order_id"], ["work_orders.id"], ondelete="RESTRICT"),
            sa.ForeignKeyConstraint(["line_item_id"], ["line_items.id"], ondelete="RESTRICT"),
            sa.ForeignKeyConstraint(["previous_submission_id"], ["submissions.id"], ondelete="RESTRICT"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("previous_submission_id"),
        )
        op.create_index(
            "ix_submissions_supervisor_created", "submissions", ["supervisor_id", "created_at"],
        )
        op.create_index("ix_submissions_status_created", "submissions", ["status", "created_at"])


def downgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing = set(inspector.get_table_names())

    if "submissions" in existing:
        op.drop_index("ix_submissions_status_created", table_name="submissions")
        op.drop_index("ix_submissions_supervisor_created", table_name="submissions")
        op.drop_table("submissions")

    if "users" in existing:
        op.drop_table("users")

    if "line_items" in existing:
        op.drop_index("ix_line_items_work_order", table_name="line_items")
        op.drop_table("line_items")

    if "work_orders" in existing:
        op.drop_table("work_orders")
