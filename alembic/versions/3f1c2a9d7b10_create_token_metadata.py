"""create_token_metadata

Revision ID: 3f1c2a9d7b10
Revises:
Create Date: 2026-10-17 09:12:41.318204

"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f1c2a9d7b10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create token_metadata table."""
    op.create_table(
        "token_metadata",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("network", sa.String(length=64), nullable=False),
        sa.Column("contract", sa.String(length=64), nullable=False),
        # NUMERIC(20, 0) holds the full unsigned 64-bit range
        sa.Column("token_id", sa.Numeric(precision=20, scale=0), nullable=False),
        sa.Column(
            "status",
            sa.Enum("NEW", "APPLIED", "FAILED", name="metadatastatus"),
            nullable=False,
        ),
        sa.Column("metadata", sa.Text(), nullable=False),
        sa.Column("link", sa.Text(), nullable=False),
        sa.Column("retry_count", sa.Integer(), nullable=False),
        sa.Column("update_id", sa.BigInteger(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "network", "contract", "token_id", name="uq_token_metadata_identity"
        ),
    )
    op.create_index("ix_token_metadata_network", "token_metadata", ["network"])
    op.create_index("ix_token_metadata_contract", "token_metadata", ["contract"])
    op.create_index("ix_token_metadata_status", "token_metadata", ["status"])
    op.create_index("ix_token_metadata_update_id", "token_metadata", ["update_id"])


def downgrade() -> None:
    """Drop token_metadata table."""
    op.drop_index("ix_token_metadata_update_id", table_name="token_metadata")
    op.drop_index("ix_token_metadata_status", table_name="token_metadata")
    op.drop_index("ix_token_metadata_contract", table_name="token_metadata")
    op.drop_index("ix_token_metadata_network", table_name="token_metadata")
    op.drop_table("token_metadata")
    sa.Enum(name="metadatastatus").drop(op.get_bind(), checkfirst=True)
