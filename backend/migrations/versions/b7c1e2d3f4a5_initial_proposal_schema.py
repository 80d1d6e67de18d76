"""initial proposal schema

Revision ID: b7c1e2d3f4a5
Revises:
Create Date: 2026-10-18 00:00:00.000000

This migration creates the proposal service schema:
- proposals: the single lifecycle record (sent -> signed, unpaid -> paid)
- admin_users: internal dashboard accounts
- admin_sessions: hashed bearer tokens for admin_users
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'b7c1e2d3f4a5'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ============================================================================
    # proposals: one row per proposal; id is the client's capability token
    # ============================================================================
    op.create_table(
        'proposals',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('proposal_num', sa.String(length=64), nullable=True),
        sa.Column('contact_name', sa.Text(), nullable=False),
        sa.Column('company', sa.Text(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('tier', sa.String(length=32), nullable=True),
        sa.Column('tier_price', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('extra_trainees', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('extra_kits', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('tracks', sa.JSON(), nullable=False),
        sa.Column('videography', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('on_roof_day', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('total_price', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('let_client_choose', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('vimeo_url', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='sent'),
        sa.Column('signature_name', sa.Text(), nullable=True),
        sa.Column('signature_data', sa.Text(), nullable=True),
        sa.Column('signed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('opened_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('open_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('payment_status', sa.String(length=16), nullable=False, server_default='unpaid'),
        sa.Column('stripe_session_id', sa.String(length=255), nullable=True),
        sa.CheckConstraint("status IN ('sent', 'signed')", name='ck_proposals_status'),
        sa.CheckConstraint("payment_status IN ('unpaid', 'paid')", name='ck_proposals_payment_status'),
        sa.CheckConstraint('open_count >= 0', name='ck_proposals_open_count'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_proposals_created_at', 'proposals', ['created_at'])

    # ============================================================================
    # admin_users / admin_sessions: internal dashboard auth
    # ============================================================================
    op.create_table(
        'admin_users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'admin_sessions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('admin_user_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['admin_user_id'], ['admin_users.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_admin_sessions_admin_user_id', 'admin_sessions', ['admin_user_id'])
    op.create_index('ix_admin_sessions_token_hash', 'admin_sessions', ['token_hash'], unique=True)


def downgrade():
    op.drop_index('ix_admin_sessions_token_hash', table_name='admin_sessions')
    op.drop_index('ix_admin_sessions_admin_user_id', table_name='admin_sessions')
    op.drop_table('admin_sessions')
    op.drop_table('admin_users')
    op.drop_index('ix_proposals_created_at', table_name='proposals')
    op.drop_table('proposals')
