"""Initial schema for Barnehage Tracker.

Revision ID: 0001
Revises:
Create Date: 2025-03-01

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create kindergartens table
    op.create_table(
        "kindergartens",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("orgnr", sa.String(20), nullable=False),
        sa.Column("navn", sa.String(255), nullable=False),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("fylkesnummer", sa.String(10), nullable=True),
        sa.Column("kommunenummer", sa.String(10), nullable=True),
        sa.Column("details_json", sa.Text(), default="{}"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_kindergartens_orgnr", "kindergartens", ["orgnr"], unique=True)
    op.create_index("ix_kindergartens_navn", "kindergartens", ["navn"])
    op.create_index("ix_kindergartens_kommunenummer", "kindergartens", ["kommunenummer"])

    # Create spot_records table
    op.create_table(
        "spot_records",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "kindergarten_id",
            sa.String(36),
            sa.ForeignKey("kindergartens.id"),
            nullable=False,
        ),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("region", sa.String(100), default=""),
        sa.Column("discovered_at", sa.DateTime(), nullable=False),
        sa.Column("last_seen_at", sa.DateTime(), nullable=False),
        sa.Column("spots", sa.Integer(), default=1),
        sa.Column("age_group", sa.String(20), default="unknown"),
        sa.Column("availability_date", sa.String(50), default="now"),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("spot_id", sa.String(32), nullable=False),
    )
    op.create_index("ix_spot_records_kindergarten_id", "spot_records", ["kindergarten_id"])
    op.create_index("ix_spot_records_region", "spot_records", ["region"])
    op.create_index("ix_spot_records_age_group", "spot_records", ["age_group"])
    op.create_index("ix_spot_records_status", "spot_records", ["status"])
    op.create_index("ix_spot_records_spot_id", "spot_records", ["spot_id"])

    # Create notification_preferences table
    op.create_table(
        "notification_preferences",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("type", sa.String(30), nullable=False),
        sa.Column("parameters_json", sa.Text(), default="{}"),
        sa.Column("is_enabled", sa.Boolean(), default=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index(
        "ix_notification_preferences_user_id", "notification_preferences", ["user_id"]
    )


def downgrade() -> None:
    op.drop_table("notification_preferences")
    op.drop_table("spot_records")
    op.drop_table("kindergartens")
