from fastapi import HTTPException, Request

from .errors import MatchingError
from .services.match_store import MatchStore
from .services.matching import MatchingContext
from .services.nudges import NudgeService


def get_match_store(request: Request) -> MatchStore:
    return request.app.state.match_store


def get_nudge_service(request: Request) -> NudgeService:
    return request.app.state.nudge_service


def get_matching_context(request: Request) -> MatchingContext:
    return request.app.state.matching_context


def http_error(exc: MatchingError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.detail)
