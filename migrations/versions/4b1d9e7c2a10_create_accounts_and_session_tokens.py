"""create accounts and session tokens

Revision ID: 4b1d9e7c2a10
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""
import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = '4b1d9e7c2a10'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'accounts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=254), nullable=False),
        sa.Column('username', sa.String(length=50), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column(
            'role',
            sa.Enum('user', 'manager', 'admin', name='account_role', native_enum=False),
            server_default='user',
            nullable=False,
        ),
        sa.Column('is_verified', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_login_ip', sa.String(length=45), nullable=True),
        sa.Column('verification_token', sa.String(length=36), nullable=True),
        sa.Column('verification_expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('reset_token', sa.String(length=64), nullable=True),
        sa.Column('reset_expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('reset_token_used', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint(
            '(verification_token IS NULL) = (verification_expires_at IS NULL)',
            name=op.f('ck_accounts_verification_pair'),
        ),
        sa.CheckConstraint(
            '(reset_token IS NULL) = (reset_expires_at IS NULL)',
            name=op.f('ck_accounts_reset_pair'),
        ),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_accounts')),
        sa.UniqueConstraint('email', name='uq_accounts_email'),
        sa.UniqueConstraint('username', name='uq_accounts_username'),
    )
    with op.batch_alter_table('accounts', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_accounts_verification_token'), ['verification_token'], unique=False)
        batch_op.create_index(batch_op.f('ix_accounts_reset_token'), ['reset_token'], unique=False)

    op.create_table(
        'session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('token', sa.String(length=512), nullable=False),
        sa.Column('last_activity_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint(
            'expires_at >= last_activity_at',
            name=op.f('ck_session_tokens_expiry_after_activity'),
        ),
        sa.ForeignKeyConstraint(
            ['user_id'], ['accounts.id'],
            name=op.f('fk_session_tokens_user_id_accounts'),
            ondelete='CASCADE',
        ),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_session_tokens')),
        sa.UniqueConstraint('token', name='uq_session_tokens_token'),
    )
    with op.batch_alter_table('session_tokens', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_session_tokens_user_id'), ['user_id'], unique=False)


def downgrade():
    with op.batch_alter_table('session_tokens', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_session_tokens_user_id'))
    op.drop_table('session_tokens')

    with op.batch_alter_table('accounts', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_accounts_reset_token'))
        batch_op.drop_index(batch_op.f('ix_accounts_verification_token'))
    op.drop_table('accounts')
