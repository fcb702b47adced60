"""
API router. Calls application only. No business logic.
"""

import logging
from dataclasses import replace

from fastapi import APIRouter, HTTPException

from classplacement.api.schemas import EvaluateRequest, OptimizeRequest, OptimizeResponse, RosterRequest
from classplacement.application.config import DEFAULT_SEARCH_CONFIG
from classplacement.application.use_cases.evaluate_assignment import evaluate_assignment
from classplacement.application.use_cases.optimize_classes import optimize_classes
from classplacement.infrastructure.roster_loader import RosterDocument, load_roster_document

logger = logging.getLogger(__name__)

router = APIRouter()


def _roster(request: RosterRequest) -> RosterDocument:
    return load_roster_document(
        {
            "students": [s.model_dump(by_alias=True) for s in request.students],
            "parentRequests": [r.model_dump(by_alias=True) for r in request.parent_requests],
            "surveyPairs": [p.model_dump(by_alias=True) for p in request.survey_pairs],
            "placementConstraints": [c.model_dump(by_alias=True) for c in request.placement_constraints],
            "classes": [c.model_dump(by_alias=True) for c in request.classes] if request.classes else None,
        }
    )


@router.post("/optimize", response_model=OptimizeResponse)
def post_optimize(request: OptimizeRequest) -> OptimizeResponse:
    """
    POST /optimize
    Roster + preferences -> balanced class rosters with statistics and conflicts.
    """
    try:
        roster = _roster(request)
        search = DEFAULT_SEARCH_CONFIG
        if request.seed is not None:
            search = replace(search, seed=request.seed)
        if request.move_budget is not None:
            search = replace(search, move_budget=request.move_budget)
        if request.time_limit_seconds is not None:
            search = replace(search, time_limit_s=request.time_limit_seconds)
        report = optimize_classes(
            roster.students,
            request.class_count,
            factors=request.factors,
            strategy=request.strategy,
            parent_requests=roster.parent_requests,
            survey_pairs=roster.survey_pairs,
            placement_constraints=roster.placement_constraints,
            weights=request.weights,
            search=search,
            class_slots=roster.class_slots,
            target_size=request.target_size,
            initial_assignment=request.initial_assignment,
        )
        return OptimizeResponse.from_report(report, request.class_list_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("Optimization failed")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/evaluate", response_model=OptimizeResponse)
def post_evaluate(request: EvaluateRequest) -> OptimizeResponse:
    """
    POST /evaluate
    Scores a manually adjusted roster and lists the hard constraints it breaks.
    """
    try:
        roster = _roster(request)
        report = evaluate_assignment(
            roster.students,
            request.assignment,
            factors=request.factors,
            strategy=request.strategy,
            parent_requests=roster.parent_requests,
            survey_pairs=roster.survey_pairs,
            placement_constraints=roster.placement_constraints,
            weights=request.weights,
            class_slots=roster.class_slots,
            target_size=request.target_size,
        )
        return OptimizeResponse.from_report(report, request.class_list_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("Evaluation failed")
        raise HTTPException(status_code=500, detail=str(e))
