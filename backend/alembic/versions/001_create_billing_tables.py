"""Create billing catalog, chain, physician and service tables.

Revision ID: 001
Revises: None
Create Date: 2026-10-18

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _base_columns() -> list[sa.Column]:
    return [
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
    ]


def upgrade() -> None:
    # Catalog
    op.create_table(
        "sections",
        *_base_columns(),
        sa.Column("code", sa.String(20), nullable=False, unique=True),
        sa.Column("title", sa.String(255), nullable=False),
    )

    op.create_table(
        "billing_codes",
        *_base_columns(),
        sa.Column("code", sa.String(20), nullable=False),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column(
            "section_id",
            sa.Integer(),
            sa.ForeignKey("sections.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("day_range", sa.Integer(), nullable=True),
        sa.Column("max_units", sa.Integer(), nullable=True),
        sa.Column("multiple_unit_indicator", sa.String(1), nullable=True),
        sa.Column("billing_unit_type", sa.String(50), nullable=True),
        sa.Column("billing_record_type", sa.Integer(), nullable=False, server_default="50"),
        sa.Column("fee_cents", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_index("ix_billing_codes_code", "billing_codes", ["code"])
    op.create_index("ix_billing_codes_section_id", "billing_codes", ["section_id"])
    op.create_index(
        "ix_billing_codes_billing_record_type", "billing_codes", ["billing_record_type"]
    )

    op.create_table(
        "billing_code_chain_edges",
        *_base_columns(),
        sa.Column(
            "code_id",
            sa.Integer(),
            sa.ForeignKey("billing_codes.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("previous_code_id", sa.Integer(), nullable=False),
        sa.UniqueConstraint("code_id", "previous_code_id", name="uq_chain_edge"),
    )
    op.create_index("ix_billing_code_chain_edges_code_id", "billing_code_chain_edges", ["code_id"])
    op.create_index(
        "ix_billing_code_chain_edges_previous_code_id",
        "billing_code_chain_edges",
        ["previous_code_id"],
    )

    # Derived chain records
    op.create_table(
        "billing_code_chain",
        *_base_columns(),
        sa.Column("code_id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(20), nullable=False),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("day_range", sa.Integer(), nullable=False),
        sa.Column("root_id", sa.Integer(), nullable=False),
        sa.Column("previous_code_id", sa.Integer(), nullable=True),
        sa.Column("previous_day_range", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("cumulative_day_range", sa.Integer(), nullable=False),
        sa.Column("prev_plus_self", sa.Integer(), nullable=False),
        sa.Column("is_last", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.UniqueConstraint("root_id", "code_id", name="uq_chain_root_code"),
    )
    op.create_index("ix_billing_code_chain_code_id", "billing_code_chain", ["code_id"])
    op.create_index("ix_billing_code_chain_root_id", "billing_code_chain", ["root_id"])
    op.create_index(
        "ix_billing_code_chain_cumulative_day_range",
        "billing_code_chain",
        ["cumulative_day_range"],
    )

    # Physicians
    op.create_table(
        "physicians",
        *_base_columns(),
        sa.Column("billing_number", sa.String(10), nullable=False),
        sa.Column("group_number", sa.String(3), nullable=True),
        sa.Column("clinic_number", sa.String(3), nullable=True),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("street_address", sa.String(255), nullable=True),
        sa.Column("city", sa.String(100), nullable=True),
        sa.Column("province", sa.String(50), nullable=True),
        sa.Column("postal_code", sa.String(10), nullable=True),
        sa.Column("corporation_indicator", sa.String(1), nullable=True),
        sa.Column("timezone", sa.String(64), nullable=False, server_default="America/Regina"),
        sa.Column("most_recent_claim_number", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_index("ix_physicians_billing_number", "physicians", ["billing_number"])

    op.create_table(
        "physician_preferred_sections",
        *_base_columns(),
        sa.Column(
            "physician_id",
            sa.Integer(),
            sa.ForeignKey("physicians.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "section_id",
            sa.Integer(),
            sa.ForeignKey("sections.id", ondelete="CASCADE"),
            nullable=False,
        ),
    )
    op.create_index(
        "ix_physician_preferred_sections_physician_id",
        "physician_preferred_sections",
        ["physician_id"],
    )

    # Services
    op.create_table(
        "services",
        *_base_columns(),
        sa.Column(
            "physician_id",
            sa.Integer(),
            sa.ForeignKey("physicians.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("service_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="OPEN"),
    )
    op.create_index("ix_services_physician_id", "services", ["physician_id"])

    op.create_table(
        "service_codes",
        *_base_columns(),
        sa.Column(
            "service_id",
            sa.Integer(),
            sa.ForeignKey("services.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("code_id", sa.Integer(), sa.ForeignKey("billing_codes.id"), nullable=False),
        sa.Column("number_of_units", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("service_date", sa.Date(), nullable=True),
        sa.Column("service_end_date", sa.Date(), nullable=True),
        sa.Column("service_location", sa.String(1), nullable=True),
        sa.Column("location_of_service", sa.String(1), nullable=True),
        sa.Column("last_rounded_date", sa.Date(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
    )
    op.create_index("ix_service_codes_service_id", "service_codes", ["service_id"])
    op.create_index("ix_service_codes_code_id", "service_codes", ["code_id"])

    op.create_table(
        "service_code_change_logs",
        *_base_columns(),
        sa.Column(
            "service_code_id",
            sa.Integer(),
            sa.ForeignKey("service_codes.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("change_type", sa.String(20), nullable=False),
        sa.Column("previous_data", sa.JSON(), nullable=True),
        sa.Column("new_data", sa.JSON(), nullable=True),
        sa.Column("changed_by", sa.String(64), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("rounding_date", sa.Date(), nullable=True),
    )
    op.create_index(
        "ix_service_code_change_logs_service_code_id",
        "service_code_change_logs",
        ["service_code_id"],
    )


def downgrade() -> None:
    op.drop_table("service_code_change_logs")
    op.drop_table("service_codes")
    op.drop_table("services")
    op.drop_table("physician_preferred_sections")
    op.drop_table("physicians")
    op.drop_table("billing_code_chain")
    op.drop_table("billing_code_chain_edges")
    op.drop_table("billing_codes")
    op.drop_table("sections")
