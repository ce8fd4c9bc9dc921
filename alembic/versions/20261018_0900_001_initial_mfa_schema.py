"""Initial MFA schema

Revision ID: 001
Revises:
Create Date: 2026-10-18 09:00:00

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Profiles (MFA flags and role; account data lives in the identity service)
    op.create_table(
        'profiles',
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('role', sa.Enum('user', 'dealer', 'organizer', 'admin', name='profile_role'), nullable=False, server_default='user'),
        sa.Column('mfa_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('mfa_verified', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('mfa_enrollment_time', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('user_id')
    )

    op.create_table(
        'authenticator_enrollments',
        sa.Column('enrollment_id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('secret', sa.Text(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False, server_default='Authenticator App'),
        sa.Column('algorithm', sa.String(length=10), nullable=False, server_default='SHA1'),
        sa.Column('digits', sa.Integer(), nullable=False, server_default='6'),
        sa.Column('period', sa.Integer(), nullable=False, server_default='30'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('NOW()')),
        sa.Column('last_used_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.user_id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('enrollment_id'),
        sa.UniqueConstraint('user_id', name='uq_authenticator_enrollments_user')
    )

    op.create_table(
        'recovery_codes',
        sa.Column('recovery_code_id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('code_hash', sa.String(length=64), nullable=False),
        sa.Column('used', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('used_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('NOW()')),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.user_id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('recovery_code_id')
    )
    op.create_index(op.f('ix_recovery_codes_user_id'), 'recovery_codes', ['user_id'], unique=False)
    op.create_index('idx_recovery_codes_user_hash', 'recovery_codes', ['user_id', 'code_hash'], unique=False)

    op.create_table(
        'mfa_challenges',
        sa.Column('mfa_challenge_id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('challenge_id', sa.String(length=64), nullable=False),
        sa.Column('verified', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('NOW()')),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('verified_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint('expires_at > created_at', name='ck_mfa_challenges_expiry'),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.user_id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('mfa_challenge_id'),
        sa.UniqueConstraint('challenge_id')
    )
    op.create_index(op.f('ix_mfa_challenges_user_id'), 'mfa_challenges', ['user_id'], unique=False)
    op.create_index(op.f('ix_mfa_challenges_expires_at'), 'mfa_challenges', ['expires_at'], unique=False)

    # Attempt ledger: append-only, no FK so unknown user ids are still counted
    op.create_table(
        'mfa_attempts',
        sa.Column('attempt_id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('successful', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('NOW()')),
        sa.PrimaryKeyConstraint('attempt_id')
    )
    op.create_index(op.f('ix_mfa_attempts_user_id'), 'mfa_attempts', ['user_id'], unique=False)
    op.create_index(op.f('ix_mfa_attempts_ip_address'), 'mfa_attempts', ['ip_address'], unique=False)
    op.create_index(op.f('ix_mfa_attempts_created_at'), 'mfa_attempts', ['created_at'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_mfa_attempts_created_at'), table_name='mfa_attempts')
    op.drop_index(op.f('ix_mfa_attempts_ip_address'), table_name='mfa_attempts')
    op.drop_index(op.f('ix_mfa_attempts_user_id'), table_name='mfa_attempts')
    op.drop_table('mfa_attempts')

    op.drop_index(op.f('ix_mfa_challenges_expires_at'), table_name='mfa_challenges')
    op.drop_index(op.f('ix_mfa_challenges_user_id'), table_name='mfa_challenges')
    op.drop_table('mfa_challenges')

    op.drop_index('idx_recovery_codes_user_hash', table_name='recovery_codes')
    op.drop_index(op.f('ix_recovery_codes_user_id'), table_name='recovery_codes')
    op.drop_table('recovery_codes')

    op.drop_table('authenticator_enrollments')
    op.drop_table('profiles')
    op.execute("DROP TYPE IF EXISTS profile_role")
