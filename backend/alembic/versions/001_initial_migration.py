"""Initial migration

Revision ID: 001
Revises: 
Create Date: 2026-10-17 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), 'postgresql')


def upgrade() -> None:
    # Create toggl_accounts table
    op.create_table('toggl_accounts',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('name', sa.String(length=100), nullable=False),
    sa.Column('api_token', sa.Text(), nullable=False),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_toggl_accounts_id'), 'toggl_accounts', ['id'], unique=False)

    # Create reports table
    op.create_table('reports',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('name', sa.String(length=200), nullable=False),
    sa.Column('slug', sa.String(length=200), nullable=False),
    sa.Column('description', sa.Text(), nullable=True),
    sa.Column('contracted_hours', sa.Float(), nullable=True),
    sa.Column('contract_start_date', sa.Date(), nullable=True),
    sa.Column('date_range_start', sa.Date(), nullable=True),
    sa.Column('date_range_end', sa.Date(), nullable=True),
    sa.Column('auto_refresh_enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
    sa.Column('refresh_interval_hours', sa.Integer(), nullable=False, server_default='2'),
    sa.Column('last_refreshed_at', sa.DateTime(timezone=True), nullable=True),
    sa.Column('next_refresh_at', sa.DateTime(timezone=True), nullable=True),
    sa.Column('refresh_status', sa.String(length=20), nullable=False, server_default='no-snapshot'),
    sa.Column('last_refresh_error', sa.Text(), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_reports_id'), 'reports', ['id'], unique=False)
    op.create_index(op.f('ix_reports_slug'), 'reports', ['slug'], unique=True)
    op.create_index(op.f('ix_reports_next_refresh_at'), 'reports', ['next_refresh_at'], unique=False)

    # Create report_account_configs table
    op.create_table('report_account_configs',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('report_id', sa.Integer(), nullable=False),
    sa.Column('account_id', sa.Integer(), nullable=False),
    sa.Column('workspace_id', sa.BigInteger(), nullable=True),
    sa.Column('client_id', sa.BigInteger(), nullable=True),
    sa.Column('project_id', sa.BigInteger(), nullable=True),
    sa.Column('tag_id', sa.BigInteger(), nullable=True),
    sa.Column('priority', sa.Integer(), nullable=False, server_default='0'),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.ForeignKeyConstraint(['report_id'], ['reports.id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['account_id'], ['toggl_accounts.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('report_id', 'account_id', name='uq_report_account')
    )
    op.create_index(op.f('ix_report_account_configs_id'), 'report_account_configs', ['id'], unique=False)
    op.create_index(op.f('ix_report_account_configs_report_id'), 'report_account_configs', ['report_id'], unique=False)

    # Create report_results table
    op.create_table('report_results',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('report_id', sa.Integer(), nullable=False),
    sa.Column('entries', JSONType, nullable=False),
    sa.Column('total_duration', sa.BigInteger(), nullable=False),
    sa.Column('total_entries', sa.Integer(), nullable=False),
    sa.Column('date_range_start', sa.Date(), nullable=True),
    sa.Column('date_range_end', sa.Date(), nullable=True),
    sa.Column('hours_summary', JSONType, nullable=True),
    sa.Column('projections', JSONType, nullable=True),
    sa.Column('distribution_by_description', JSONType, nullable=False),
    sa.Column('distribution_by_team_member', JSONType, nullable=False),
    sa.Column('consumption_by_month', JSONType, nullable=False),
    sa.Column('grouped_entries', JSONType, nullable=False),
    sa.Column('latest_entries', JSONType, nullable=False),
    sa.Column('data_sources', JSONType, nullable=False),
    sa.Column('generated_at', sa.DateTime(timezone=True), nullable=False),
    sa.ForeignKeyConstraint(['report_id'], ['reports.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('report_id')
    )
    op.create_index(op.f('ix_report_results_id'), 'report_results', ['id'], unique=False)

    # Create historical_archives table
    op.create_table('historical_archives',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('report_id', sa.Integer(), nullable=False),
    sa.Column('filename', sa.String(length=255), nullable=False),
    sa.Column('processing_status', sa.String(length=20), nullable=False, server_default='pending'),
    sa.Column('entries', JSONType, nullable=True),
    sa.Column('error_message', sa.Text(), nullable=True),
    sa.Column('uploaded_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.ForeignKeyConstraint(['report_id'], ['reports.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_historical_archives_id'), 'historical_archives', ['id'], unique=False)
    op.create_index('idx_historical_archives_report_status', 'historical_archives', ['report_id', 'processing_status'], unique=False)

    # Create api_cache table
    op.create_table('api_cache',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('cache_key', sa.String(length=500), nullable=False),
    sa.Column('account_id', sa.Integer(), nullable=False),
    sa.Column('endpoint', sa.String(length=255), nullable=False),
    sa.Column('data', JSONType, nullable=True),
    sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.ForeignKeyConstraint(['account_id'], ['toggl_accounts.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_api_cache_id'), 'api_cache', ['id'], unique=False)
    op.create_index(op.f('ix_api_cache_cache_key'), 'api_cache', ['cache_key'], unique=True)
    op.create_index(op.f('ix_api_cache_account_id'), 'api_cache', ['account_id'], unique=False)


def downgrade() -> None:
    # Drop tables in reverse order
    op.drop_index(op.f('ix_api_cache_account_id'), table_name='api_cache')
    op.drop_index(op.f('ix_api_cache_cache_key'), table_name='api_cache')
    op.drop_index(op.f('ix_api_cache_id'), table_name='api_cache')
    op.drop_table('api_cache')

    op.drop_index('idx_historical_archives_report_status', table_name='historical_archives')
    op.drop_index(op.f('ix_historical_archives_id'), table_name='historical_archives')
    op.drop_table('historical_archives')

    op.drop_index(op.f('ix_report_results_id'), table_name='report_results')
    op.drop_table('report_results')

    op.drop_index(op.f('ix_report_account_configs_report_id'), table_name='report_account_configs')
    op.drop_index(op.f('ix_report_account_configs_id'), table_name='report_account_configs')
    op.drop_table('report_account_configs')

    op.drop_index(op.f('ix_reports_next_refresh_at'), table_name='reports')
    op.drop_index(op.f('ix_reports_slug'), table_name='reports')
    op.drop_index(op.f('ix_reports_id'), table_name='reports')
    op.drop_table('reports')

    op.drop_index(op.f('ix_toggl_accounts_id'), table_name='toggl_accounts')
    op.drop_table('toggl_accounts')
