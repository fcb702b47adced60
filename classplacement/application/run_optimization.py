"""
Run the class placement optimizer on a roster JSON file.

Usage (from repo root):
  python -m classplacement.application.run_optimization roster.json --classes 4
  python -m classplacement.application.run_optimization roster.json --classes 4 --strategy academic --output result.json

Roster file: {"students": [...], "parentRequests": [...], "surveyPairs": [...],
              "placementConstraints": [...], "classes": [...]}
(same camelCase shape the portal posts to /optimize).
"""

import argparse
import json
import logging
from dataclasses import replace
from pathlib import Path
from typing import Optional, Sequence

from classplacement.api.schemas import OptimizeResponse
from classplacement.application.config import DEFAULT_SEARCH_CONFIG, DEFAULT_SEED, DEFAULT_STRATEGY, LOG_FORMAT
from classplacement.application.use_cases.optimize_classes import optimize_classes
from classplacement.domain.constraints import Strategy
from classplacement.domain.exceptions import InvalidInputError
from classplacement.domain.models import OptimizationReport
from classplacement.infrastructure.roster_loader import load_roster_document

logger = logging.getLogger(__name__)


def _print_report(report: OptimizationReport) -> None:
    print(f"\n--- {len(report.classes)} classes, {report.total_students} students ({report.strategy}) ---")
    for c in report.classes:
        scores = ", ".join(f"{name}={score:.1f}" for name, score in c.factor_scores.items())
        print(f"  {c.class_id:<12} size={c.size:<3} score={c.score:6.2f}  {scores}")
    print(f"  Balance score:      {report.balance_score:.2f}")
    print(f"  Overall score:      {report.overall_score:.2f}")
    if report.requests_fulfilled is not None:
        print(f"  Requests fulfilled: {report.requests_fulfilled:.1f}%")
    if report.search is not None:
        print(
            f"  Search: seed {report.search.seed_score:.2f} -> {report.overall_score:.2f}, "
            f"{report.search.moves_accepted}/{report.search.moves_evaluated} moves, {report.search.termination}"
        )
    if report.conflicts:
        print(f"\n  Conflicts ({len(report.conflicts)}):")
        for conflict in report.conflicts:
            print(f"    [{conflict.kind.value}] {conflict.reason}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Class placement: balanced class rosters from a roster JSON file")
    parser.add_argument(
        "roster",
        type=Path,
        help="Roster JSON (students, parentRequests, surveyPairs, placementConstraints, classes)",
    )
    parser.add_argument("--classes", type=int, required=True, help="Number of classes to form")
    parser.add_argument(
        "--strategy",
        default=DEFAULT_STRATEGY.value,
        choices=[s.value for s in Strategy],
        help="Weighting strategy",
    )
    parser.add_argument(
        "--factors",
        default=None,
        help="Comma-separated factors (default: all), e.g. gender,academicLevel",
    )
    parser.add_argument("--seed", type=int, default=DEFAULT_SEED, help="Random seed for the local search")
    parser.add_argument("--move-budget", type=int, default=None, help="Evaluated moves (default: students*classes*10)")
    parser.add_argument("--output", type=Path, default=None, help="Write the response JSON here")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format=LOG_FORMAT)

    if not args.roster.exists():
        print(f"ERROR: roster file not found: {args.roster}")
        return 1

    with open(args.roster, encoding="utf-8") as f:
        try:
            doc = json.load(f)
        except json.JSONDecodeError as e:
            print(f"ERROR: {args.roster} is not valid JSON: {e}")
            return 1

    factors = None
    if args.factors:
        factors = [name.strip() for name in args.factors.split(",") if name.strip()]

    search = replace(DEFAULT_SEARCH_CONFIG, seed=args.seed, move_budget=args.move_budget)

    try:
        roster = load_roster_document(doc)
        print(f"Students loaded: {len(roster.students)} from {args.roster}")
        report = optimize_classes(
            roster.students,
            args.classes,
            factors=factors,
            strategy=args.strategy,
            parent_requests=roster.parent_requests,
            survey_pairs=roster.survey_pairs,
            placement_constraints=roster.placement_constraints,
            search=search,
            class_slots=roster.class_slots,
        )
    except InvalidInputError as e:
        print(f"ERROR: {e}")
        return 2

    _print_report(report)

    if args.output is not None:
        payload = OptimizeResponse.from_report(report).model_dump(by_alias=True)
        args.output.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        print(f"\nResult written to: {args.output}")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
