"""create incidents, notes, watchers and key sequence tables

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create incident tables."""
    op.create_table(
        'incidents',
        sa.Column('id', sa.String(32), primary_key=True),
        sa.Column('incident_key', sa.Integer, nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('severity', sa.Enum('low', 'medium', 'high', 'critical', name='incident_severity', native_enum=False), nullable=False),
        sa.Column('status', sa.Enum('open', 'in_progress', 'resolved', 'closed', name='incident_status', native_enum=False), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_by', sa.String(320), nullable=False, server_default=''),
        sa.Column('description', sa.Text, nullable=False, server_default=''),
        sa.Column('assignee', sa.String(320), nullable=False, server_default=''),
    )
    op.create_index('ix_incidents_incident_key', 'incidents', ['incident_key'], unique=True)
    op.create_index('ix_incidents_created_at', 'incidents', ['created_at'])

    op.create_table(
        'incident_notes',
        sa.Column('id', sa.String(32), primary_key=True),
        sa.Column('incident_id', sa.String(32), sa.ForeignKey('incidents.id', ondelete='CASCADE'), nullable=False),
        sa.Column('position', sa.Integer, nullable=False),
        sa.Column('content', sa.Text, nullable=False),
        sa.Column('author_email', sa.String(320), nullable=False, server_default=''),
        sa.Column('type', sa.Enum('update', 'investigation', 'resolution', 'communication', name='note_type', native_enum=False), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('incident_id', 'position', name='uq_incident_notes_position'),
    )

    op.create_table(
        'incident_watchers',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('incident_id', sa.String(32), sa.ForeignKey('incidents.id', ondelete='CASCADE'), nullable=False),
        sa.Column('email', sa.String(320), nullable=False),
        sa.UniqueConstraint('incident_id', 'email', name='uq_incident_watchers_email'),
    )

    op.create_table(
        'incident_key_sequences',
        sa.Column('name', sa.String(64), primary_key=True),
        sa.Column('value', sa.Integer, nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )


def downgrade() -> None:
    """Drop incident tables."""
    op.drop_table('incident_key_sequences')
    op.drop_table('incident_watchers')
    op.drop_table('incident_notes')
    op.drop_index('ix_incidents_created_at')
    op.drop_index('ix_incidents_incident_key')
    op.drop_table('incidents')
