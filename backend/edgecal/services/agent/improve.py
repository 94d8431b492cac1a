"""
Self-improvement agent.

Reads open patterns, the worst misses and the current weights, asks the
recommendation service what to change, then:

- auto-applies weight nudges that stay inside the hard bounds
- files everything else as a proposal for human review
- optionally escalates urgent proposals to the issue tracker
- rolls back applied changes that made accuracy measurably worse
"""

import json
from collections.abc import Sequence
from datetime import datetime, timedelta

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from edgecal.models import (
    AgentDecision,
    AppliedImprovement,
    DetectedPattern,
    EdgeWeight,
    ImprovementProposal,
    PredictionAnalysis,
)
from edgecal.models.prediction import utcnow
from edgecal.schemas.agent import (
    EvaluationSweep,
    ImpactReport,
    ImprovementReport,
    Recommendation,
)
from edgecal.schemas.analysis import BadMiss
from edgecal.schemas.signals import KNOWN_EDGE_TYPES
from edgecal.services.agent.github import IssueTracker
from edgecal.services.agent.llm import AnthropicRecommendationService, RecommendationService
from edgecal.services.analysis import PatternDetector
from edgecal.services.learning import NEUTRAL_WEIGHT, WeightRepository, round_weight, within_bounds

logger = structlog.get_logger()

AGENT_VERSION = "v1"

EVALUATION_WINDOW = timedelta(days=7)
MIN_PREDICTIONS_FOR_ROLLBACK = 20
ROLLBACK_ACCURACY_DROP = 5.0

MAX_ISSUES_PER_RUN = 3
ESCALATION_PRIORITIES = ("critical", "high")
PRIORITY_ORDER = {"critical": 0, "high": 1, "medium": 2, "low": 3}

CONTEXT_MISSES = 10
CONTEXT_SIGNALS_PER_MISS = 5


def build_analysis_context(
    patterns: Sequence[DetectedPattern],
    misses: Sequence[BadMiss],
    weights: Sequence[EdgeWeight],
) -> str:
    """Markdown document handed to the recommendation service."""
    lines = ["# Fantasy Football Prediction System Analysis", "", "## Current Edge Weights"]
    if weights:
        for w in weights:
            lines.append(
                f"- {w.edge_type}: {w.current_weight:.2f}x "
                f"(hit rate: {w.hit_rate or 0}%, predictions: {w.total_predictions or 0})"
            )
    else:
        lines.append("No learned weights yet, every edge is at 1.00x.")

    lines += ["", "## Detected Patterns (Problem Areas)"]
    if not patterns:
        lines.append("No concerning patterns detected.")
    for p in patterns:
        lines += [
            "",
            f"### {p.pattern_type}: {p.pattern_key}",
            f"- Hit Rate: {p.hit_rate}% ({p.correct_predictions}/{p.total_predictions})",
            f"- Severity: {p.severity}",
            f"- Description: {p.pattern_description}",
        ]

    lines += ["", "## Bad Misses Analysis"]
    if not misses:
        lines.append("No bad misses to analyze.")
    for m in misses[:CONTEXT_MISSES]:
        lines += [
            "",
            f"### {m.player_name} (Week {m.week})",
            f"- Recommendation: {m.recommendation}",
            f"- Predicted Rank: ~{m.predicted_rank}",
            f"- Actual Rank: {m.actual_rank}",
            f"- Edge Score: {m.edge_score:.1f}",
            f"- Strongest Signal: {m.strongest_signal}",
            f"- Contributing Factors: {', '.join(m.contributing_factors) or 'none identified'}",
            "- Edge Signals Used:",
        ]
        for s in m.edge_signals_used[:CONTEXT_SIGNALS_PER_MISS]:
            magnitude = s.get("magnitude")
            magnitude_text = f"{magnitude:.1f}" if isinstance(magnitude, (int, float)) else "n/a"
            lines.append(
                f"  - {s.get('type')}: magnitude {magnitude_text}, confidence {s.get('confidence')}%"
            )

    lines += ["", "## Edge Types Available", ", ".join(sorted(KNOWN_EDGE_TYPES)), ""]
    return "\n".join(lines)


def issue_body(proposal: ImprovementProposal) -> str:
    evidence = (proposal.evidence or {}).get("evidence_points") or []
    parts = [
        "## AI Agent Improvement Proposal",
        "",
        f"**Category:** {proposal.category}",
        f"**Priority:** {proposal.priority}",
        "",
        "### Description",
        proposal.description,
        "",
        "### Evidence",
        "\n".join(f"- {e}" for e in evidence) or "No specific evidence provided",
        "",
        "### Proposed Changes",
    ]
    if proposal.proposed_code_changes:
        parts.append(f"```\n{json.dumps(proposal.proposed_code_changes, indent=2)}\n```")
    else:
        parts.append("No code changes specified")
    if proposal.proposed_weight_changes:
        parts += [
            "",
            "**Weight Changes:**",
            f"```json\n{json.dumps(proposal.proposed_weight_changes, indent=2)}\n```",
        ]
    parts += [
        "",
        "### Expected Improvement",
        proposal.expected_improvement or "Not estimated",
        "",
        "---",
        "*Generated automatically by the edge calibration improvement agent.*",
        f"*Proposal ID: {proposal.id}*",
    ]
    return "\n".join(parts)


class ImprovementAgent:
    """Turns recommendations into applied changes, proposals and rollbacks."""

    def __init__(
        self,
        session: AsyncSession,
        recommender: RecommendationService | None = None,
        issue_tracker: IssueTracker | None = None,
        create_issues: bool = False,
        repository: WeightRepository | None = None,
    ):
        self.session = session
        self.recommender = recommender
        self.issue_tracker = issue_tracker
        self.create_issues = create_issues
        self.repository = repository or WeightRepository(session)
        self.detector = PatternDetector(session)

    async def run(self, season: int) -> ImprovementReport:
        report = ImprovementReport(season=season)

        patterns = await self.detector.get_open_patterns()
        misses = await self.detector.get_bad_misses(season)
        weights = await self.repository.list_all()

        report.patterns_analyzed = len(patterns)
        report.bad_misses_analyzed = len(misses)

        if not patterns and not misses:
            logger.info("No patterns or bad misses to analyze", season=season)
            await self.record_decision(
                "no_action",
                data={"patterns": 0, "bad_misses": 0},
                reasoning="No open patterns or bad misses this cycle",
            )
            return report

        context = build_analysis_context(patterns, misses, weights)
        recommender = self.recommender or AnthropicRecommendationService()
        recommendations = await recommender.recommend(context)
        report.recommendations = recommendations

        if not recommendations:
            await self.record_decision(
                "no_action",
                data={"patterns": len(patterns), "bad_misses": len(misses)},
                reasoning="Recommendation service returned nothing usable",
            )

        for rec in recommendations:
            if rec.type == "weight_adjustment" and rec.auto_applicable:
                applied = await self.apply_weight_adjustment(rec, season)
                if applied is not None:
                    report.auto_applied += 1
                else:
                    report.refused += 1
            else:
                await self.create_proposal(rec, patterns, misses)
                report.proposals_created += 1

        if self.create_issues and self.issue_tracker is not None:
            report.issues_created = await self.escalate_proposals()

        await self.session.flush()
        logger.info(
            "Improvement agent finished",
            season=season,
            recommendations=len(recommendations),
            auto_applied=report.auto_applied,
            refused=report.refused,
            proposals=report.proposals_created,
            issues=report.issues_created,
        )
        return report

    async def record_decision(
        self,
        decision_type: str,
        data: dict,
        reasoning: str,
        edge_type: str | None = None,
        action_taken: str | None = None,
        action_details: dict | None = None,
        sample_size: int | None = None,
        improvement_id: int | None = None,
        proposal_id: int | None = None,
    ) -> AgentDecision:
        decision = AgentDecision(
            decision_type=decision_type,
            edge_type=edge_type,
            data_analyzed=data,
            sample_size=sample_size,
            reasoning=reasoning,
            action_taken=action_taken,
            action_details=action_details,
            improvement_id=improvement_id,
            proposal_id=proposal_id,
            agent_version=AGENT_VERSION,
        )
        self.session.add(decision)
        await self.session.flush()
        return decision

    async def apply_weight_adjustment(
        self, rec: Recommendation, season: int
    ) -> AppliedImprovement | None:
        """Apply a weight nudge, or refuse it when it breaks the hard bounds."""
        change = rec.proposed_change
        edge_type = change.edge_type
        new_value = change.new_value

        refusal = None
        if not edge_type or edge_type not in KNOWN_EDGE_TYPES:
            refusal = f"Unknown edge type: {edge_type!r}"
        elif new_value is None:
            refusal = "No proposed weight"
        elif not within_bounds(new_value):
            refusal = f"Weight {new_value} outside hard bounds"

        if refusal is not None:
            logger.warning("Refused weight adjustment", edge_type=edge_type, new_value=new_value, reason=refusal)
            await self.record_decision(
                "refused_out_of_bounds",
                edge_type=edge_type,
                data={"title": rec.title, "proposed": new_value},
                reasoning=refusal,
                action_taken="refused",
            )
            return None

        new_weight = round_weight(new_value)
        row = await self.repository.get(edge_type)
        old_weight = row.current_weight if row is not None else NEUTRAL_WEIGHT

        await self.repository.upsert(edge_type, current_weight=new_weight)
        await self.repository.append_history(
            edge_type=edge_type,
            season=season,
            week=0,
            weight_before=old_weight,
            weight_after=new_weight,
            reason=f"[AI Agent] {rec.title}: {change.reasoning}",
        )

        applied_at = utcnow()
        improvement = AppliedImprovement(
            change_type="weight",
            change_description=rec.title,
            change_details={
                "edge_type": edge_type,
                "season": season,
                "reason": change.reasoning,
                "evidence": rec.evidence,
            },
            state_before={"weight": old_weight},
            state_after={"weight": new_weight},
            applied_at=applied_at,
            evaluation_due_at=applied_at + EVALUATION_WINDOW,
        )
        self.session.add(improvement)
        await self.session.flush()

        await self.record_decision(
            "weight_adjustment",
            edge_type=edge_type,
            data={"title": rec.title, "evidence": rec.evidence},
            reasoning=change.reasoning or rec.description,
            action_taken="applied",
            action_details={"from": old_weight, "to": new_weight},
            improvement_id=improvement.id,
        )

        logger.info("Applied weight change", edge_type=edge_type, old_weight=old_weight, new_weight=new_weight)
        return improvement

    async def create_proposal(
        self,
        rec: Recommendation,
        patterns: Sequence[DetectedPattern],
        misses: Sequence[BadMiss],
    ) -> ImprovementProposal:
        change = rec.proposed_change
        related = next(
            (
                p
                for p in patterns
                if p.pattern_key == change.edge_type
                or any(p.pattern_key.lower() in e.lower() for e in rec.evidence)
            ),
            None,
        )

        proposal = ImprovementProposal(
            pattern_id=related.id if related is not None else None,
            prediction_ids=[m.prediction_id for m in misses[:5]],
            title=rec.title,
            description=rec.description,
            category=rec.type,
            priority=rec.priority,
            evidence={
                "reasoning": change.reasoning,
                "evidence_points": rec.evidence,
                "related_pattern": related.pattern_description if related is not None else None,
            },
            affected_edge_types=[change.edge_type] if change.edge_type else [],
            proposed_code_changes={"description": change.code_change} if change.code_change else None,
            proposed_weight_changes=(
                {"edge_type": change.edge_type, "from": change.current_value, "to": change.new_value}
                if change.edge_type
                else None
            ),
            expected_improvement=rec.expected_improvement,
            auto_applicable=rec.auto_applicable,
            status="pending",
        )
        self.session.add(proposal)
        await self.session.flush()

        await self.record_decision(
            "proposal_created",
            edge_type=change.edge_type,
            data={"title": rec.title, "type": rec.type, "priority": rec.priority},
            reasoning=change.reasoning or rec.description,
            action_taken="proposed",
            proposal_id=proposal.id,
        )
        return proposal

    async def escalate_proposals(self) -> int:
        """Open issues for the most urgent pending proposals not yet escalated."""
        result = await self.session.execute(
            select(ImprovementProposal)
            .where(ImprovementProposal.status == "pending")
            .where(ImprovementProposal.auto_applicable.is_(False))
            .where(ImprovementProposal.priority.in_(ESCALATION_PRIORITIES))
            .where(ImprovementProposal.github_issue_url.is_(None))
            .order_by(ImprovementProposal.id)
        )
        candidates = sorted(result.scalars().all(), key=lambda p: PRIORITY_ORDER[p.priority])

        created = 0
        for proposal in candidates[:MAX_ISSUES_PER_RUN]:
            reference = await self.issue_tracker.create_issue(
                title=f"[AI Agent] {proposal.title}",
                body=issue_body(proposal),
                labels=["ai-agent", proposal.priority, proposal.category],
            )
            if reference is None:
                continue
            proposal.github_issue_url = reference.url
            proposal.github_issue_number = reference.number
            created += 1

        await self.session.flush()
        return created

    async def _get_improvement(self, improvement_id: int) -> AppliedImprovement | None:
        result = await self.session.execute(
            select(AppliedImprovement).where(AppliedImprovement.id == improvement_id)
        )
        return result.scalar_one_or_none()

    async def rollback_improvement(self, improvement_id: int, reason: str) -> bool:
        """Restore the before-state of an applied change. Refused if already rolled back."""
        improvement = await self._get_improvement(improvement_id)
        if improvement is None or improvement.rolled_back:
            logger.info("Rollback refused", improvement_id=improvement_id)
            return False

        if improvement.change_type == "weight":
            details = improvement.change_details or {}
            edge_type = details["edge_type"]
            restored = improvement.state_before["weight"]
            season = details.get("season") or improvement.applied_at.year

            await self.repository.upsert(edge_type, current_weight=restored)
            await self.repository.append_history(
                edge_type=edge_type,
                season=season,
                week=0,
                weight_before=improvement.state_after["weight"],
                weight_after=restored,
                reason=f"[ROLLBACK] {reason}",
            )

        improvement.rolled_back = True
        improvement.rolled_back_at = utcnow()
        improvement.rollback_reason = reason
        await self.session.flush()

        logger.info("Rolled back improvement", improvement_id=improvement_id, reason=reason)
        return True

    async def track_improvement_impact(self, improvement_id: int) -> ImpactReport | None:
        """Compare the hit rate of analyses recorded before and after the change."""
        improvement = await self._get_improvement(improvement_id)
        if improvement is None:
            return None

        applied_at = improvement.applied_at
        before = await self._hit_counts(PredictionAnalysis.analyzed_at < applied_at)
        after = await self._hit_counts(PredictionAnalysis.analyzed_at >= applied_at)

        accuracy_before = round(before[1] / before[0] * 100, 2) if before[0] else 0.0
        accuracy_after = round(after[1] / after[0] * 100, 2) if after[0] else 0.0

        improvement.predictions_before = before[0]
        improvement.predictions_after = after[0]
        improvement.accuracy_before = accuracy_before
        improvement.accuracy_after = accuracy_after
        improvement.improvement_detected = accuracy_after > accuracy_before
        improvement.improvement_percentage = round(accuracy_after - accuracy_before, 2)
        await self.session.flush()

        return ImpactReport(
            improvement_id=improvement.id,
            predictions_before=before[0],
            predictions_after=after[0],
            accuracy_before=accuracy_before,
            accuracy_after=accuracy_after,
            improvement_detected=improvement.improvement_detected,
            improvement_percentage=improvement.improvement_percentage,
        )

    async def _hit_counts(self, condition) -> tuple[int, int]:
        result = await self.session.execute(select(PredictionAnalysis.was_hit).where(condition))
        hits = result.scalars().all()
        return len(hits), sum(1 for hit in hits if hit)

    async def evaluate_due_improvements(self, now: datetime | None = None) -> EvaluationSweep:
        """
        Evaluate applied changes whose 7-day window has closed.

        A change is rolled back automatically when at least 20 predictions were
        analysed after it and the hit rate fell by 5 points or more.
        """
        result = await self.session.execute(
            select(AppliedImprovement)
            .where(AppliedImprovement.evaluation_complete.is_(False))
            .where(AppliedImprovement.rolled_back.is_(False))
            .where(AppliedImprovement.evaluation_due_at <= (now or utcnow()))
            .order_by(AppliedImprovement.id)
        )
        sweep = EvaluationSweep()

        for improvement in result.scalars().all():
            impact = await self.track_improvement_impact(improvement.id)
            sweep.impacts.append(impact)
            sweep.evaluated += 1

            drop = impact.accuracy_before - impact.accuracy_after
            if impact.predictions_after >= MIN_PREDICTIONS_FOR_ROLLBACK and drop >= ROLLBACK_ACCURACY_DROP:
                reason = (
                    f"Auto-rollback: hit rate fell {drop:.1f} points "
                    f"({impact.accuracy_before:.1f}% -> {impact.accuracy_after:.1f}%)"
                )
                await self.rollback_improvement(improvement.id, reason)
                improvement.auto_rollback_triggered = True
                sweep.rolled_back += 1
                await self.record_decision(
                    "auto_rollback",
                    edge_type=(improvement.change_details or {}).get("edge_type"),
                    data=impact.model_dump(),
                    reasoning=reason,
                    action_taken="rolled_back",
                    sample_size=impact.predictions_after,
                    improvement_id=improvement.id,
                )

            improvement.evaluation_complete = True

        await self.session.flush()
        logger.info("Evaluated due improvements", evaluated=sweep.evaluated, rolled_back=sweep.rolled_back)
        return sweep
