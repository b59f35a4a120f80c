"""Initial schema for trip selection and template sync

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

Dossiers, trips and their structure (days, formulas, items), conditions,
and cotations.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    ]


def upgrade() -> None:
    # Dossiers (selected_trip_id FK added once trips exists)
    op.create_table('dossiers',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('reference', sa.String(length=50), nullable=False),
        sa.Column('status', sa.String(length=30), server_default='lead', nullable=False),
        sa.Column('client_name', sa.String(length=255), nullable=True),
        sa.Column('pax_adults', sa.Integer(), server_default='2', nullable=False),
        sa.Column('pax_children', sa.Integer(), server_default='0', nullable=False),
        sa.Column('pax_infants', sa.Integer(), server_default='0', nullable=False),
        sa.Column('selected_trip_id', sa.BigInteger(), nullable=True),
        sa.Column('selected_cotation_id', sa.BigInteger(), nullable=True),
        sa.Column('selected_cotation_name', sa.String(length=100), nullable=True),
        sa.Column('final_pax_count', sa.Integer(), nullable=True),
        sa.Column('status_before_selection', sa.String(length=50), nullable=True),
        sa.Column('selected_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_activity_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('reference'),
    )
    op.create_index('ix_dossiers_selected_trip_id', 'dossiers', ['selected_trip_id'])

    # Trips
    op.create_table('trips',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('reference', sa.String(length=100), nullable=True),
        sa.Column('dossier_id', sa.Uuid(), nullable=True),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('duration_days', sa.Integer(), server_default='1', nullable=False),
        sa.Column('destination_country', sa.String(length=2), nullable=True),
        sa.Column('default_currency', sa.String(length=3), server_default='EUR', nullable=False),
        sa.Column('status', sa.String(length=30), server_default='draft', nullable=False),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['dossier_id'], ['dossiers.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_trips_name', 'trips', ['name'])
    op.create_index('ix_trips_dossier_id', 'trips', ['dossier_id'])

    op.create_foreign_key(
        'fk_dossiers_selected_trip', 'dossiers', 'trips',
        ['selected_trip_id'], ['id'], ondelete='SET NULL',
    )

    op.create_table('trip_days',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('trip_id', sa.BigInteger(), nullable=False),
        sa.Column('day_number', sa.Integer(), nullable=False),
        sa.Column('day_number_end', sa.Integer(), nullable=True),
        sa.Column('title', sa.String(length=255), nullable=True),
        sa.Column('sort_order', sa.Integer(), server_default='0', nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['trip_id'], ['trips.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_trip_days_trip_id', 'trip_days', ['trip_id'])

    # Conditions
    op.create_table('conditions',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.String(length=500), nullable=True),
        sa.Column('applies_to', sa.String(length=50), server_default='all', nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table('condition_options',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('condition_id', sa.BigInteger(), nullable=False),
        sa.Column('label', sa.String(length=255), nullable=False),
        sa.Column('sort_order', sa.Integer(), server_default='0', nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['condition_id'], ['conditions.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_condition_options_condition_id', 'condition_options', ['condition_id'])

    op.create_table('trip_conditions',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('trip_id', sa.BigInteger(), nullable=False),
        sa.Column('condition_id', sa.BigInteger(), nullable=False),
        sa.Column('selected_option_id', sa.BigInteger(), nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default='true', nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['trip_id'], ['trips.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['condition_id'], ['conditions.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['selected_option_id'], ['condition_options.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('trip_id', 'condition_id', name='uq_trip_conditions_trip_condition'),
    )
    op.create_index('ix_trip_conditions_trip_id', 'trip_conditions', ['trip_id'])
    op.create_index('ix_trip_conditions_condition_id', 'trip_conditions', ['condition_id'])

    # Formulas (day-level, transversal and templates)
    op.create_table('formulas',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('trip_day_id', sa.BigInteger(), nullable=True),
        sa.Column('trip_id', sa.BigInteger(), nullable=True),
        sa.Column('is_transversal', sa.Boolean(), server_default='false', nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description_html', sa.Text(), nullable=True),
        sa.Column('service_day_start', sa.Integer(), nullable=True),
        sa.Column('service_day_end', sa.Integer(), nullable=True),
        sa.Column('is_template', sa.Boolean(), server_default='false', nullable=False),
        sa.Column('template_source_id', sa.BigInteger(), nullable=True),
        sa.Column('template_version', sa.Integer(), server_default='1', nullable=False),
        sa.Column('template_source_version', sa.Integer(), nullable=True),
        sa.Column('sort_order', sa.Integer(), server_default='0', nullable=False),
        sa.Column('block_type', sa.String(length=20), server_default='activity', nullable=False),
        sa.Column('condition_id', sa.BigInteger(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['trip_day_id'], ['trip_days.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['trip_id'], ['trips.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['template_source_id'], ['formulas.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['condition_id'], ['conditions.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_formulas_trip_day_id', 'formulas', ['trip_day_id'])
    op.create_index('ix_formulas_trip_id', 'formulas', ['trip_id'])
    op.create_index('ix_formulas_condition_id', 'formulas', ['condition_id'])

    op.create_table('items',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('formula_id', sa.BigInteger(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('currency', sa.String(length=3), server_default='EUR', nullable=False),
        sa.Column('unit_cost', sa.DECIMAL(precision=12, scale=2), server_default='0', nullable=False),
        sa.Column('condition_option_id', sa.BigInteger(), nullable=True),
        sa.Column('sort_order', sa.Integer(), server_default='0', nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['formula_id'], ['formulas.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['condition_option_id'], ['condition_options.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_items_formula_id', 'items', ['formula_id'])
    op.create_index('ix_items_condition_option_id', 'items', ['condition_option_id'])

    # Cotations
    op.create_table('trip_cotations',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('trip_id', sa.BigInteger(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('sort_order', sa.Integer(), server_default='0', nullable=False),
        sa.Column('condition_selections_json', sa.JSON(), nullable=True),
        sa.Column('tarification_json', sa.JSON(), nullable=True),
        sa.Column('status', sa.String(length=20), server_default='draft', nullable=False),
        sa.Column('calculated_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['trip_id'], ['trips.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_trip_cotations_trip_id', 'trip_cotations', ['trip_id'])


def downgrade() -> None:
    op.drop_table('trip_cotations')
    op.drop_table('items')
    op.drop_table('formulas')
    op.drop_table('trip_conditions')
    op.drop_table('condition_options')
    op.drop_table('conditions')
    op.drop_table('trip_days')
    op.drop_constraint('fk_dossiers_selected_trip', 'dossiers', type_='foreignkey')
    op.drop_table('trips')
    op.drop_table('dossiers')
