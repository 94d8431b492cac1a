"""Calibration schema: predictions, outcomes, weights, analysis and agent tables.

Revision ID: 001_calibration
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001_calibration'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Predictions (written by the signal generators before kickoff)
    op.create_table(
        'predictions',
        sa.Column('id', sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column('player_id', sa.String(50), nullable=False),
        sa.Column('player_name', sa.String(100), nullable=False),
        sa.Column('position', sa.String(5), nullable=False),
        sa.Column('team', sa.String(10), nullable=True),
        sa.Column('opponent', sa.String(10), nullable=True),
        sa.Column('is_home', sa.Boolean(), nullable=True),
        sa.Column('week', sa.Integer(), nullable=False),
        sa.Column('season', sa.Integer(), nullable=False),
        sa.Column('edge_score', sa.Numeric(5, 2), nullable=False),
        sa.Column('confidence', sa.Integer(), nullable=False),
        sa.Column('recommendation', sa.String(10), nullable=False),
        sa.Column('edge_signals', sa.JSON(), nullable=False),
        sa.Column('game_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('player_id', 'week', 'season', name='uq_prediction_player_week'),
    )
    op.create_index('idx_predictions_season_week', 'predictions', ['season', 'week'])

    # Outcomes (written by the results fetcher after games complete)
    op.create_table(
        'outcomes',
        sa.Column('id', sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column('player_id', sa.String(50), nullable=False),
        sa.Column('player_name', sa.String(100), nullable=False),
        sa.Column('position', sa.String(5), nullable=False),
        sa.Column('week', sa.Integer(), nullable=False),
        sa.Column('season', sa.Integer(), nullable=False),
        sa.Column('fantasy_points', sa.Numeric(5, 2), nullable=False),
        sa.Column('position_rank', sa.Integer(), nullable=True),
        sa.Column('stats', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('player_id', 'week', 'season', name='uq_outcome_player_week'),
    )
    op.create_index('idx_outcomes_season_week', 'outcomes', ['season', 'week'])

    # Per-edge accuracy cache for dashboards
    op.create_table(
        'edge_accuracy',
        sa.Column('id', sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column('edge_type', sa.String(50), nullable=False),
        sa.Column('season', sa.Integer(), nullable=False),
        sa.Column('total_predictions', sa.Integer(), server_default='0'),
        sa.Column('correct_predictions', sa.Integer(), server_default='0'),
        sa.Column('hit_rate', sa.Numeric(5, 2), nullable=True),
        sa.Column('high_conf_total', sa.Integer(), server_default='0'),
        sa.Column('high_conf_correct', sa.Integer(), server_default='0'),
        sa.Column('med_conf_total', sa.Integer(), server_default='0'),
        sa.Column('med_conf_correct', sa.Integer(), server_default='0'),
        sa.Column('low_conf_total', sa.Integer(), server_default='0'),
        sa.Column('low_conf_correct', sa.Integer(), server_default='0'),
        sa.Column('qb_hit_rate', sa.Numeric(5, 2), nullable=True),
        sa.Column('rb_hit_rate', sa.Numeric(5, 2), nullable=True),
        sa.Column('wr_hit_rate', sa.Numeric(5, 2), nullable=True),
        sa.Column('te_hit_rate', sa.Numeric(5, 2), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('edge_type', 'season', name='uq_edge_accuracy_type_season'),
    )

    # Learned weights, one row per edge type
    op.create_table(
        'edge_weights',
        sa.Column('id', sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column('edge_type', sa.String(50), nullable=False, unique=True),
        sa.Column('base_weight', sa.Numeric(4, 2), server_default='1.0'),
        sa.Column('current_weight', sa.Numeric(4, 2), server_default='1.0'),
        sa.Column('qb_weight', sa.Numeric(4, 2), server_default='1.0'),
        sa.Column('rb_weight', sa.Numeric(4, 2), server_default='1.0'),
        sa.Column('wr_weight', sa.Numeric(4, 2), server_default='1.0'),
        sa.Column('te_weight', sa.Numeric(4, 2), server_default='1.0'),
        sa.Column('confidence_adjustment', sa.Integer(), server_default='0'),
        sa.Column('total_predictions', sa.Integer(), server_default='0'),
        sa.Column('correct_predictions', sa.Integer(), server_default='0'),
        sa.Column('hit_rate', sa.Numeric(5, 2), nullable=True),
        sa.Column('qb_predictions', sa.Integer(), server_default='0'),
        sa.Column('qb_correct', sa.Integer(), server_default='0'),
        sa.Column('rb_predictions', sa.Integer(), server_default='0'),
        sa.Column('rb_correct', sa.Integer(), server_default='0'),
        sa.Column('wr_predictions', sa.Integer(), server_default='0'),
        sa.Column('wr_correct', sa.Integer(), server_default='0'),
        sa.Column('te_predictions', sa.Integer(), server_default='0'),
        sa.Column('te_correct', sa.Integer(), server_default='0'),
        sa.Column('last_updated', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # Append-only weight trail
    op.create_table(
        'weight_history',
        sa.Column('id', sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column('edge_type', sa.String(50), nullable=False),
        sa.Column('season', sa.Integer(), nullable=False),
        sa.Column('week', sa.Integer(), nullable=False),
        sa.Column('weight_before', sa.Numeric(4, 2), nullable=True),
        sa.Column('weight_after', sa.Numeric(4, 2), nullable=True),
        sa.Column('hit_rate_this_week', sa.Numeric(5, 2), nullable=True),
        sa.Column('sample_size', sa.Integer(), nullable=True),
        sa.Column('adjustment_reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('idx_weight_history_edge', 'weight_history', ['edge_type', 'season', 'week'])

    # One analysis per prediction
    op.create_table(
        'prediction_analysis',
        sa.Column('id', sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column('prediction_id', sa.BigInteger(), sa.ForeignKey('predictions.id'), nullable=False, unique=True),
        sa.Column('was_hit', sa.Boolean(), nullable=False),
        sa.Column('severity', sa.String(20), nullable=False),
        sa.Column('predicted_rank', sa.Integer(), nullable=False),
        sa.Column('actual_rank', sa.Integer(), nullable=False),
        sa.Column('rank_diff', sa.Integer(), nullable=False),
        sa.Column('edge_signals_used', sa.JSON(), nullable=True),
        sa.Column('strongest_signal', sa.String(50), nullable=True),
        sa.Column('weakest_signal', sa.String(50), nullable=True),
        sa.Column('contributing_factors', sa.JSON(), nullable=True),
        sa.Column('analyzed_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('analysis_version', sa.String(10), server_default='v1'),
    )
    op.create_index('idx_prediction_analysis_severity', 'prediction_analysis', ['severity'])
    op.create_index('idx_prediction_analysis_analyzed_at', 'prediction_analysis', ['analyzed_at'])

    # Weak cross-sections, upserted by (type, key)
    op.create_table(
        'detected_patterns',
        sa.Column('id', sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column('pattern_type', sa.String(30), nullable=False),
        sa.Column('pattern_key', sa.String(100), nullable=False),
        sa.Column('total_predictions', sa.Integer(), nullable=False),
        sa.Column('correct_predictions', sa.Integer(), nullable=False),
        sa.Column('hit_rate', sa.Numeric(5, 2), nullable=False),
        sa.Column('sample_predictions', sa.JSON(), nullable=True),
        sa.Column('pattern_description', sa.Text(), nullable=True),
        sa.Column('severity', sa.String(20), nullable=False),
        sa.Column('first_detected_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('last_updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('times_detected', sa.Integer(), server_default='1'),
        sa.Column('last_detected_season', sa.Integer(), nullable=True),
        sa.Column('last_detected_week', sa.Integer(), nullable=True),
        sa.Column('addressed', sa.Boolean(), server_default=sa.false()),
        sa.UniqueConstraint('pattern_type', 'pattern_key', name='uq_detected_pattern_type_key'),
    )
    op.create_index('idx_detected_patterns_severity', 'detected_patterns', ['severity'])

    # Proposals awaiting human review
    op.create_table(
        'improvement_proposals',
        sa.Column('id', sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column('pattern_id', sa.BigInteger(), sa.ForeignKey('detected_patterns.id'), nullable=True),
        sa.Column('prediction_ids', sa.JSON(), nullable=True),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('category', sa.String(30), nullable=False),
        sa.Column('priority', sa.String(10), nullable=False),
        sa.Column('evidence', sa.JSON(), nullable=False),
        sa.Column('affected_edge_types', sa.JSON(), nullable=True),
        sa.Column('proposed_code_changes', sa.JSON(), nullable=True),
        sa.Column('proposed_weight_changes', sa.JSON(), nullable=True),
        sa.Column('expected_improvement', sa.Text(), nullable=True),
        sa.Column('status', sa.String(20), server_default='pending'),
        sa.Column('github_issue_url', sa.String(300), nullable=True),
        sa.Column('github_issue_number', sa.Integer(), nullable=True),
        sa.Column('auto_applicable', sa.Boolean(), server_default=sa.false()),
        sa.Column('applied_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('applied_by', sa.String(50), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('idx_improvement_proposals_status', 'improvement_proposals', ['status'])

    # Changes that were actually applied, with rollback snapshots
    op.create_table(
        'applied_improvements',
        sa.Column('id', sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column('proposal_id', sa.BigInteger(), sa.ForeignKey('improvement_proposals.id'), nullable=True),
        sa.Column('change_type', sa.String(20), nullable=False),
        sa.Column('change_description', sa.Text(), nullable=False),
        sa.Column('change_details', sa.JSON(), nullable=False),
        sa.Column('state_before', sa.JSON(), nullable=False),
        sa.Column('state_after', sa.JSON(), nullable=False),
        sa.Column('predictions_before', sa.Integer(), server_default='0'),
        sa.Column('predictions_after', sa.Integer(), server_default='0'),
        sa.Column('accuracy_before', sa.Numeric(5, 2), nullable=True),
        sa.Column('accuracy_after', sa.Numeric(5, 2), nullable=True),
        sa.Column('improvement_detected', sa.Boolean(), nullable=True),
        sa.Column('improvement_percentage', sa.Numeric(6, 2), nullable=True),
        sa.Column('rolled_back', sa.Boolean(), server_default=sa.false()),
        sa.Column('rolled_back_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rollback_reason', sa.Text(), nullable=True),
        sa.Column('evaluation_due_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('evaluation_complete', sa.Boolean(), server_default=sa.false()),
        sa.Column('auto_rollback_triggered', sa.Boolean(), server_default=sa.false()),
        sa.Column('applied_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('idx_applied_improvements_proposal', 'applied_improvements', ['proposal_id'])
    op.create_index('idx_applied_improvements_evaluation', 'applied_improvements', ['evaluation_due_at'])

    # Agent audit log
    op.create_table(
        'agent_decisions',
        sa.Column('id', sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column('decision_type', sa.String(40), nullable=False),
        sa.Column('edge_type', sa.String(50), nullable=True),
        sa.Column('data_analyzed', sa.JSON(), nullable=False),
        sa.Column('sample_size', sa.Integer(), nullable=True),
        sa.Column('reasoning', sa.Text(), nullable=False),
        sa.Column('action_taken', sa.String(20), nullable=True),
        sa.Column('action_details', sa.JSON(), nullable=True),
        sa.Column('improvement_id', sa.BigInteger(), sa.ForeignKey('applied_improvements.id'), nullable=True),
        sa.Column('proposal_id', sa.BigInteger(), sa.ForeignKey('improvement_proposals.id'), nullable=True),
        sa.Column('agent_version', sa.String(10), server_default='v1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('idx_agent_decisions_type', 'agent_decisions', ['decision_type'])
    op.create_index('idx_agent_decisions_edge', 'agent_decisions', ['edge_type'])


def downgrade() -> None:
    op.drop_table('agent_decisions')
    op.drop_table('applied_improvements')
    op.drop_table('improvement_proposals')
    op.drop_table('detected_patterns')
    op.drop_table('prediction_analysis')
    op.drop_table('weight_history')
    op.drop_table('edge_weights')
    op.drop_table('edge_accuracy')
    op.drop_table('outcomes')
    op.drop_table('predictions')
