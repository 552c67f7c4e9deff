"""create_integration_tables

Revision ID: a1f3c9e2b7d4
Revises:
Create Date: 2026-10-19 09:12:44.318207

Creates the OAuth integration and sync tables:
- oauth_credentials (one per project/provider)
- gsc_sites, ga4_properties (resource bindings)
- gsc_data, ga4_data (metric facts, unique on natural key)
- sync_runs
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'a1f3c9e2b7d4'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    """Create integration tables."""
    op.create_table(
        'oauth_credentials',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('project_id', sa.Integer(), nullable=False),
        sa.Column('provider', sa.String(length=50), nullable=False),
        sa.Column('access_token', sa.Text(), nullable=False),
        sa.Column('refresh_token', sa.Text(), nullable=True),
        sa.Column('token_type', sa.String(length=50), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.Column('scopes', sa.JSON(), nullable=True),
        sa.Column('account_email', sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('project_id', 'provider', name='uq_oauth_credentials_project_provider'),
    )
    op.create_index('ix_oauth_credentials_id', 'oauth_credentials', ['id'])
    op.create_index('ix_oauth_credentials_project_id', 'oauth_credentials', ['project_id'])
    op.create_index('ix_oauth_credentials_provider', 'oauth_credentials', ['provider'])

    op.create_table(
        'gsc_sites',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('project_id', sa.Integer(), nullable=False),
        sa.Column('site_url', sa.String(length=500), nullable=False),
        sa.Column('permission_level', sa.String(length=50), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('project_id', 'site_url', name='uq_gsc_sites_project_site'),
    )
    op.create_index('ix_gsc_sites_id', 'gsc_sites', ['id'])
    op.create_index('ix_gsc_sites_project_id', 'gsc_sites', ['project_id'])

    op.create_table(
        'ga4_properties',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('project_id', sa.Integer(), nullable=False),
        sa.Column('property_id', sa.String(length=100), nullable=False),
        sa.Column('property_name', sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('project_id', 'property_id', name='uq_ga4_properties_project_property'),
    )
    op.create_index('ix_ga4_properties_id', 'ga4_properties', ['id'])
    op.create_index('ix_ga4_properties_project_id', 'ga4_properties', ['project_id'])

    op.create_table(
        'gsc_data',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('project_id', sa.Integer(), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('page', sa.String(length=1000), nullable=False),
        sa.Column('query', sa.String(length=500), nullable=False),
        sa.Column('country', sa.String(length=10), nullable=False),
        sa.Column('device', sa.String(length=20), nullable=False),
        sa.Column('clicks', sa.Integer(), nullable=False),
        sa.Column('impressions', sa.Integer(), nullable=False),
        sa.Column('ctr', sa.Float(), nullable=False),
        sa.Column('position', sa.Float(), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_gsc_data_id', 'gsc_data', ['id'])
    op.create_index(
        'gsc_data_unique_idx', 'gsc_data',
        ['project_id', 'date', 'page', 'query', 'country', 'device'],
        unique=True,
    )
    op.create_index('gsc_data_project_date_idx', 'gsc_data', ['project_id', 'date'])

    op.create_table(
        'ga4_data',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('project_id', sa.Integer(), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('property_id', sa.String(length=100), nullable=False),
        sa.Column('source', sa.String(length=255), nullable=False),
        sa.Column('medium', sa.String(length=100), nullable=False),
        sa.Column('device_category', sa.String(length=50), nullable=False),
        sa.Column('sessions', sa.Integer(), nullable=False),
        sa.Column('users', sa.Integer(), nullable=False),
        sa.Column('new_users', sa.Integer(), nullable=False),
        sa.Column('engagement_rate', sa.Float(), nullable=False),
        sa.Column('average_session_duration', sa.Float(), nullable=False),
        sa.Column('conversions', sa.Integer(), nullable=False),
        sa.Column('conversion_rate', sa.Float(), nullable=False),
        sa.Column('revenue', sa.Float(), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_ga4_data_id', 'ga4_data', ['id'])
    op.create_index(
        'ga4_data_unique_idx', 'ga4_data',
        ['project_id', 'date', 'property_id', 'source', 'medium', 'device_category'],
        unique=True,
    )
    op.create_index('ga4_data_project_date_idx', 'ga4_data', ['project_id', 'date'])

    op.create_table(
        'sync_runs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('project_id', sa.Integer(), nullable=False),
        sa.Column('provider', sa.String(length=50), nullable=False),
        sa.Column('resource_id', sa.String(length=500), nullable=True),
        sa.Column('date_from', sa.Date(), nullable=True),
        sa.Column('date_to', sa.Date(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('rows_synced', sa.Integer(), nullable=False),
        sa.Column('error_code', sa.String(length=64), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('started_at', sa.DateTime(), nullable=False),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('duration_seconds', sa.Float(), nullable=True),
    )
    op.create_index('ix_sync_runs_id', 'sync_runs', ['id'])
    op.create_index('ix_sync_runs_project_id', 'sync_runs', ['project_id'])
    op.create_index('ix_sync_runs_provider', 'sync_runs', ['provider'])


def downgrade() -> None:
    """Drop integration tables."""
    op.drop_table('sync_runs')
    op.drop_table('ga4_data')
    op.drop_table('gsc_data')
    op.drop_table('ga4_properties')
    op.drop_table('gsc_sites')
    op.drop_table('oauth_credentials')
