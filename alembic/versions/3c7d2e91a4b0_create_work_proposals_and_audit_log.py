"""create work proposals and audit log tables

Revision ID: 3c7d2e91a4b0
Revises:
Create Date: 2026-10-19 10:12:41.208113

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '3c7d2e91a4b0'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONDocument = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade():
    op.create_table(
        "work_proposals",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("serial_number", sa.String(length=32), nullable=False),
        sa.Column("name_of_work", sa.String(length=500), nullable=False),
        sa.Column("work_description", sa.Text(), server_default=sa.text("''"), nullable=False),
        sa.Column("type_of_work", sa.String(length=128), nullable=False),
        sa.Column("work_agency", sa.String(length=128), nullable=False),
        sa.Column("scheme", sa.String(length=128), nullable=False),
        sa.Column("work_department", sa.String(length=128), nullable=False),
        sa.Column("approving_department", sa.String(length=128), nullable=False),
        sa.Column("financial_year", sa.String(length=16), nullable=False),
        sa.Column("sanction_amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("city", sa.String(length=128), nullable=True),
        sa.Column("ward", sa.String(length=128), nullable=True),
        sa.Column("type_of_location", sa.String(length=128), nullable=True),
        sa.Column("assembly", sa.String(length=128), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("appointed_engineer_id", sa.String(length=64), nullable=False),
        sa.Column("appointed_sdo", sa.String(length=128), nullable=False),
        sa.Column("is_tender_required", sa.Boolean(), nullable=False),
        sa.Column("submitted_by", sa.String(length=64), nullable=False),
        sa.Column("submission_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("estimated_completion_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("current_status", sa.String(length=64), nullable=False),
        sa.Column("last_status_update", sa.DateTime(timezone=True), nullable=False),
        sa.Column("technical_approval_json", JSONDocument, nullable=True),
        sa.Column("administrative_approval_json", JSONDocument, nullable=True),
        sa.Column("tender_process_json", JSONDocument, nullable=True),
        sa.Column("work_order_json", JSONDocument, nullable=True),
        sa.Column("work_progress_json", JSONDocument, nullable=False),
        sa.Column("work_order_number", sa.String(length=64), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.UniqueConstraint("serial_number"),
        sa.UniqueConstraint("work_order_number"),
    )
    op.create_index("ix_work_proposals_appointed_engineer_id", "work_proposals", ["appointed_engineer_id"])
    op.create_index("ix_work_proposals_status", "work_proposals", ["current_status"])
    op.create_index("ix_work_proposals_financial_year", "work_proposals", ["financial_year"])

    op.create_table(
        "audit_log_records",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("request_id", sa.String(length=128), nullable=False),
        sa.Column("route", sa.String(length=256), nullable=False),
        sa.Column("method", sa.String(length=16), nullable=False),
        sa.Column("actor_user_id", sa.String(length=128), nullable=False),
        sa.Column("actor_role", sa.String(length=64), nullable=False),
        sa.Column("proposal_id", sa.Uuid(), nullable=False),
        sa.Column("action", sa.String(length=96), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("payload_hash", sa.String(length=128), nullable=False),
        sa.Column("payload_summary_json", JSONDocument, nullable=False),
        sa.Column("ref_id", sa.String(length=128), nullable=True),
    )
    op.create_index("ix_audit_log_records_request_id", "audit_log_records", ["request_id"])
    op.create_index("ix_audit_proposal", "audit_log_records", ["proposal_id"])
    op.create_index("ix_audit_action", "audit_log_records", ["action"])
    op.create_index("ix_audit_created", "audit_log_records", ["created_at"])


def downgrade():
    op.drop_index("ix_audit_created", table_name="audit_log_records")
    op.drop_index("ix_audit_action", table_name="audit_log_records")
    op.drop_index("ix_audit_proposal", table_name="audit_log_records")
    op.drop_index("ix_audit_log_records_request_id", table_name="audit_log_records")
    op.drop_table("audit_log_records")

    op.drop_index("ix_work_proposals_financial_year", table_name="work_proposals")
    op.drop_index("ix_work_proposals_status", table_name="work_proposals")
    op.drop_index("ix_work_proposals_appointed_engineer_id", table_name="work_proposals")
    op.drop_table("work_proposals")
