"""create chatbot, faq, session and engagement log tables

Revision ID: 3f9c1a7e2b10
Revises:
Create Date: 2025-02-11

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f9c1a7e2b10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'plans',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('max_queries_per_month', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_plans_id', 'plans', ['id'])

    op.create_table(
        'tenants',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('plan_id', sa.Integer(), sa.ForeignKey('plans.id'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        'chatbots',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('tenant_id', sa.String(64), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_chatbots_tenant_id', 'chatbots', ['tenant_id'])

    op.create_table(
        'faqs',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('chatbot_id', sa.String(64), sa.ForeignKey('chatbots.id', ondelete='CASCADE'), nullable=False),
        sa.Column('question', sa.Text(), nullable=False),
        sa.Column('answer', sa.Text(), nullable=True),
        sa.Column('synonym', sa.Text(), nullable=True),
        sa.Column('layout', sa.String(50), nullable=True),
        sa.Column('images', sa.Text(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        sa.Column('hit_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_hit_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_faqs_chatbot_id', 'faqs', ['chatbot_id'])

    op.create_table(
        'sessions',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('chatbot_id', sa.String(64), sa.ForeignKey('chatbots.id', ondelete='CASCADE'), nullable=False),
        sa.Column('token', sa.String(255), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('query_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_sessions_chatbot_id', 'sessions', ['chatbot_id'])
    op.create_index('ix_sessions_token', 'sessions', ['token'], unique=True)

    op.create_table(
        'query_events',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('chatbot_id', sa.String(64), sa.ForeignKey('chatbots.id', ondelete='CASCADE'), nullable=False),
        sa.Column('session_id', sa.String(64), sa.ForeignKey('sessions.id', ondelete='SET NULL'), nullable=True),
        sa.Column('query_text', sa.Text(), nullable=False),
        sa.Column('result_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('read_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('ignored', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_query_events_chatbot_id', 'query_events', ['chatbot_id'])
    op.create_index('ix_query_events_session_id', 'query_events', ['session_id'])
    op.create_index('ix_query_events_created_at', 'query_events', ['created_at'])

    op.create_table(
        'query_actions',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('event_id', sa.String(36), sa.ForeignKey('query_events.id', ondelete='CASCADE'), nullable=False),
        sa.Column('faq_id', sa.String(64), sa.ForeignKey('faqs.id', ondelete='CASCADE'), nullable=False),
        sa.Column('action', sa.String(20), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        # Upsert target for repeated actions on the same candidate
        sa.UniqueConstraint('event_id', 'faq_id', name='uq_query_actions_event_faq'),
    )
    op.create_index('ix_query_actions_event_id', 'query_actions', ['event_id'])
    op.create_index('ix_query_actions_faq_id', 'query_actions', ['faq_id'])


def downgrade() -> None:
    op.drop_table('query_actions')
    op.drop_table('query_events')
    op.drop_table('sessions')
    op.drop_table('faqs')
    op.drop_table('chatbots')
    op.drop_table('tenants')
    op.drop_table('plans')
