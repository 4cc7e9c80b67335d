"""Add estimate flag and updated_at to profile photo history

Revision ID: add_photo_history_estimates
Revises: create_profile_photo_history
Create Date: 2026-01-12
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = 'add_photo_history_estimates'
down_revision = 'create_profile_photo_history'
branch_labels = None
depends_on = None


def upgrade():
    op.add_column('profile_photo_history', sa.Column('is_estimated', sa.Boolean(), nullable=False, server_default=sa.text('0')))
    op.add_column('profile_photo_history', sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()))
    # Rows seeded from pre-existing avatars have no observed start of use
    op.execute("UPDATE profile_photo_history SET is_estimated = 1 WHERE used_from IS NULL")


def downgrade():
    op.drop_column('profile_photo_history', 'updated_at')
    op.drop_column('profile_photo_history', 'is_estimated')
