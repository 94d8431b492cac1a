"""Manual calibration runs: ``python -m edgecal <command>``."""

import argparse
import asyncio
import json
import sys

from edgecal import pipeline
from edgecal.config import settings
from edgecal.logconfig import configure_logging
from edgecal.tasks.calibration import current_season_week


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="edgecal", description="Edge calibration pipeline")
    sub = parser.add_subparsers(dest="command", required=True)

    def season_week(p: argparse.ArgumentParser, week_required: bool = True) -> None:
        p.add_argument("--season", type=int, help="Season year (default: current)")
        p.add_argument(
            "--week",
            type=int,
            help="Week number (default: last completed)" if week_required else "Single week only",
        )

    season_week(sub.add_parser("evaluate", help="Grade predictions against outcomes"), week_required=False)
    season_week(sub.add_parser("learn", help="Update edge weights"))
    season_week(sub.add_parser("analyze", help="Analyse predictions and detect patterns"))
    season_week(sub.add_parser("cycle", help="Run all four stages in order"))

    improve = sub.add_parser("improve", help="Run the improvement agent")
    improve.add_argument("--season", type=int, help="Season year (default: current)")

    rollback = sub.add_parser("rollback", help="Roll back an applied improvement")
    rollback.add_argument("improvement_id", type=int)
    rollback.add_argument("--reason", required=True)

    sub.add_parser("evaluate-improvements", help="Impact-check due improvements")
    return parser


async def run(args: argparse.Namespace) -> dict:
    default_season, default_week = current_season_week()
    season = getattr(args, "season", None) or default_season
    week = getattr(args, "week", None)

    if args.command == "evaluate":
        return await pipeline.evaluate(season, week)
    if args.command == "learn":
        return await pipeline.learn(season, week or default_week)
    if args.command == "analyze":
        return await pipeline.analyze(season, week or default_week)
    if args.command == "cycle":
        return await pipeline.run_weekly_cycle(season, week or default_week)
    if args.command == "improve":
        return await pipeline.run_improvement_agent(season)
    if args.command == "rollback":
        return await pipeline.rollback(args.improvement_id, args.reason)
    return await pipeline.evaluate_improvements()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(settings.log_level)

    result = asyncio.run(run(args))
    json.dump(result, sys.stdout, indent=2)
    sys.stdout.write("\n")

    if args.command == "rollback" and not result["rolled_back"]:
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
