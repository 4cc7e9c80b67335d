"""Create profile photo history

Revision ID: create_profile_photo_history
Revises: create_users_and_settings
Create Date: 2026-01-10
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = 'create_profile_photo_history'
down_revision = 'create_users_and_settings'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'profile_photo_history',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('photo_path', sa.Text(), nullable=False),
        sa.Column('used_from', sa.DateTime(), nullable=True),
        sa.Column('used_until', sa.DateTime(), nullable=True),
        sa.Column('is_current', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_profile_photo_history_user_id', 'profile_photo_history', ['user_id'], unique=False)
    op.create_index('ix_profile_photo_history_created_at', 'profile_photo_history', ['created_at'], unique=False)
    op.create_index(
        'ix_profile_photo_history_user_id_is_current',
        'profile_photo_history',
        ['user_id', 'is_current'],
        unique=False,
    )

    # Existing avatars become the current, estimated entry of each user's history
    conn = op.get_bind()
    conn.execute(
        sa.text(
            "INSERT INTO profile_photo_history (user_id, photo_path, used_from, used_until, is_current, created_at) "
            "SELECT id, avatar_path, avatar_updated_at, NULL, 1, CURRENT_TIMESTAMP FROM \"user\" WHERE avatar_path IS NOT NULL"
        )
    )


def downgrade():
    op.drop_index('ix_profile_photo_history_user_id_is_current', table_name='profile_photo_history')
    op.drop_index('ix_profile_photo_history_created_at', table_name='profile_photo_history')
    op.drop_index('ix_profile_photo_history_user_id', table_name='profile_photo_history')
    op.drop_table('profile_photo_history')
