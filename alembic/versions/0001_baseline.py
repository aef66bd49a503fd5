"""Baseline migration - forms, fields, responses and answers

Revision ID: 0001_baseline
Revises:
Create Date: 2026-10-18

Creates the four tables behind form definitions and their responses.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '0001_baseline'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    """Create form and response tables."""

    # ==========================================================================
    # Forms
    # ==========================================================================
    op.create_table(
        'forms',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('published', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_by', sa.String(255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('idx_forms_owner', 'forms', ['created_by'])
    op.create_index('idx_forms_published', 'forms', ['published'])

    # ==========================================================================
    # Fields
    # ==========================================================================
    op.create_table(
        'fields',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('form_id', sa.Uuid(), sa.ForeignKey('forms.id', ondelete='CASCADE'), nullable=False),
        sa.Column('label', sa.String(200), nullable=False),
        sa.Column('type', sa.String(32), nullable=False),
        sa.Column('required', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('options', JSON_TYPE, nullable=False),
        sa.Column('order', sa.Integer(), nullable=False),
        sa.Column('linked_form_id', sa.Uuid(), sa.ForeignKey('forms.id', ondelete='SET NULL'), nullable=True),
        sa.UniqueConstraint('form_id', 'order', name='uq_field_form_order'),
    )
    op.create_index('idx_fields_form', 'fields', ['form_id'])

    # ==========================================================================
    # Responses
    # ==========================================================================
    op.create_table(
        'responses',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('form_id', sa.Uuid(), sa.ForeignKey('forms.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('submitted_by', sa.String(255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('idx_responses_form', 'responses', ['form_id'])
    op.create_index('idx_responses_submitter', 'responses', ['submitted_by'])

    # ==========================================================================
    # Response fields (one row per response/field pair)
    # ==========================================================================
    op.create_table(
        'response_fields',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('response_id', sa.Uuid(), sa.ForeignKey('responses.id', ondelete='CASCADE'), nullable=False),
        sa.Column('field_id', sa.Uuid(), sa.ForeignKey('fields.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('value', sa.Text(), nullable=False, server_default=''),
        sa.Column('file_name', sa.String(255), nullable=True),
        sa.Column('file_path', sa.String(512), nullable=True),
        sa.Column('file_size', sa.Integer(), nullable=True),
        sa.Column('mime_type', sa.String(100), nullable=True),
        sa.UniqueConstraint('response_id', 'field_id', name='uq_response_field'),
    )
    op.create_index('idx_response_fields_response', 'response_fields', ['response_id'])


def downgrade() -> None:
    op.drop_table('response_fields')
    op.drop_table('responses')
    op.drop_table('fields')
    op.drop_table('forms')
