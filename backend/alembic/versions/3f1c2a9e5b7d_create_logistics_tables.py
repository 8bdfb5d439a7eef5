"""Create logistics tables

Revision ID: 3f1c2a9e5b7d
Revises:
Create Date: 2026-10-19 09:12:44.318207

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# Revision identifiers used by Alembic
revision: str = '3f1c2a9e5b7d'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=True),
        sa.Column('role', sa.String(), nullable=True),
        sa.Column('phone', sa.String(), nullable=True),
        sa.Column('is_admin', sa.String(), nullable=True),
        sa.Column('permissions', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_users_id'), 'users', ['id'], unique=False)
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)

    op.create_table(
        'logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('ts', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('actor_email', sa.String(), nullable=True),
        sa.Column('action', sa.String(length=50), nullable=True),
        sa.Column('resource', sa.String(length=50), nullable=True),
        sa.Column('resource_id', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=True),
        sa.Column('ip', sa.String(length=64), nullable=True),
        sa.Column('meta', sa.JSON(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_logs_id'), 'logs', ['id'], unique=False)
    op.create_index(op.f('ix_logs_ts'), 'logs', ['ts'], unique=False)
    op.create_index(op.f('ix_logs_action'), 'logs', ['action'], unique=False)
    op.create_index(op.f('ix_logs_resource'), 'logs', ['resource'], unique=False)
    op.create_index(op.f('ix_logs_actor_email'), 'logs', ['actor_email'], unique=False)
    op.create_index(op.f('ix_logs_resource_id'), 'logs', ['resource_id'], unique=False)
    op.create_index(op.f('ix_logs_status'), 'logs', ['status'], unique=False)

    op.create_table(
        'transports',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('destination_city', sa.String(), nullable=False),
        sa.Column('postal_code', sa.String(), nullable=True),
        sa.Column('street', sa.String(), nullable=True),
        sa.Column('delivery_date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('source_warehouse', sa.String(length=30), nullable=False),
        sa.Column('mpk', sa.String(), nullable=True),
        sa.Column('client_name', sa.String(), nullable=True),
        sa.Column('requester_name', sa.String(), nullable=True),
        sa.Column('requester_email', sa.String(), nullable=True),
        sa.Column('transport_request_id', sa.Integer(), nullable=True),
        sa.Column('wz_number', sa.String(), nullable=True),
        sa.Column('market_id', sa.Integer(), nullable=True),
        sa.Column('distance', sa.Float(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('loading_level', sa.String(length=10), nullable=True),
        sa.Column('is_cyclical', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_transports_id'), 'transports', ['id'], unique=False)
    op.create_index(op.f('ix_transports_delivery_date'), 'transports', ['delivery_date'], unique=False)
    op.create_index(op.f('ix_transports_transport_request_id'), 'transports', ['transport_request_id'], unique=False)

    op.create_table(
        'transport_requests',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('requester_email', sa.String(), nullable=False),
        sa.Column('requester_name', sa.String(), nullable=True),
        sa.Column('transport_type', sa.String(length=20), nullable=False),
        sa.Column('destination_city', sa.String(), nullable=True),
        sa.Column('postal_code', sa.String(), nullable=True),
        sa.Column('street', sa.String(), nullable=True),
        sa.Column('mpk', sa.String(), nullable=True),
        sa.Column('construction_name', sa.String(), nullable=True),
        sa.Column('construction_id', sa.Integer(), nullable=True),
        sa.Column('client_name', sa.String(), nullable=True),
        sa.Column('real_client_name', sa.String(), nullable=True),
        sa.Column('wz_numbers', sa.String(), nullable=True),
        sa.Column('market_id', sa.Integer(), nullable=True),
        sa.Column('contact_person', sa.String(), nullable=True),
        sa.Column('contact_phone', sa.String(), nullable=True),
        sa.Column('transport_direction', sa.String(length=30), nullable=True),
        sa.Column('goods_description', sa.Text(), nullable=True),
        sa.Column('document_numbers', sa.String(), nullable=True),
        sa.Column('delivery_date', sa.Date(), nullable=False),
        sa.Column('justification', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('approved_by', sa.String(), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rejection_reason', sa.String(), nullable=True),
        sa.Column('transport_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.ForeignKeyConstraint(['transport_id'], ['transports.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_transport_requests_id'), 'transport_requests', ['id'], unique=False)
    op.create_index(op.f('ix_transport_requests_status'), 'transport_requests', ['status'], unique=False)
    op.create_index(op.f('ix_transport_requests_requester_email'), 'transport_requests', ['requester_email'], unique=False)
    op.create_index(op.f('ix_transport_requests_created_at'), 'transport_requests', ['created_at'], unique=False)

    op.create_table(
        'spedycje',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_number', sa.String(length=20), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('created_by', sa.String(), nullable=True),
        sa.Column('created_by_email', sa.String(), nullable=False),
        sa.Column('responsible_person', sa.String(), nullable=True),
        sa.Column('responsible_email', sa.String(), nullable=True),
        sa.Column('mpk', sa.String(), nullable=True),
        sa.Column('location', sa.String(), nullable=True),
        sa.Column('location_data', sa.Text(), nullable=True),
        sa.Column('delivery_data', sa.Text(), nullable=True),
        sa.Column('loading_contact', sa.String(), nullable=True),
        sa.Column('unloading_contact', sa.String(), nullable=True),
        sa.Column('delivery_date', sa.Date(), nullable=True),
        sa.Column('documents', sa.String(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('goods_description', sa.Text(), nullable=True),
        sa.Column('responsible_constructions', sa.Text(), nullable=True),
        sa.Column('distance_km', sa.Float(), nullable=True),
        sa.Column('response_data', sa.Text(), nullable=True),
        sa.Column('merged_transports', sa.Text(), nullable=True),
        sa.Column('completed_by', sa.String(), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_spedycje_id'), 'spedycje', ['id'], unique=False)
    op.create_index(op.f('ix_spedycje_order_number'), 'spedycje', ['order_number'], unique=True)
    op.create_index(op.f('ix_spedycje_status'), 'spedycje', ['status'], unique=False)
    op.create_index(op.f('ix_spedycje_created_by_email'), 'spedycje', ['created_by_email'], unique=False)
    op.create_index(op.f('ix_spedycje_created_at'), 'spedycje', ['created_at'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('spedycje')
    op.drop_table('transport_requests')
    op.drop_table('transports')
    op.drop_table('logs')
    op.drop_table('users')
