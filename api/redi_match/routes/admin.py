from fastapi import APIRouter, Depends, HTTPException, Query

from ..auth.deps import require_admin
from ..deps import get_match_store, get_matching_context, http_error
from ..errors import MatchingError
from ..schemas import (
    GenerateMatchesResponse,
    ManualMatchRequest,
    ManualMatchResponse,
    MatchRecord,
    ValidationReport,
    as_utc,
)
from ..services.match_store import MatchStore
from ..services.matching import MatchingContext, generate_matches_for_prompt
from ..services.validation import validate_match_mutuality

router = APIRouter(prefix="/admin", dependencies=[Depends(require_admin)])


@router.post("/prompts/{prompt_id}/generate-matches", response_model=GenerateMatchesResponse)
def generate_matches(prompt_id: str, ctx: MatchingContext = Depends(get_matching_context)) -> GenerateMatchesResponse:
    try:
        count = generate_matches_for_prompt(ctx, prompt_id)
    except MatchingError as exc:
        raise http_error(exc)
    return GenerateMatchesResponse(prompt_id=prompt_id, matched_user_count=count)


@router.get("/prompts/{prompt_id}/validate", response_model=ValidationReport)
def validate_prompt_matches(prompt_id: str, store: MatchStore = Depends(get_match_store)) -> ValidationReport:
    return validate_match_mutuality(store, prompt_id)


@router.post("/matches/manual", response_model=ManualMatchResponse, status_code=201)
def create_manual_match(payload: ManualMatchRequest, store: MatchStore = Depends(get_match_store)) -> ManualMatchResponse:
    user1 = payload.user1_netid.strip()
    user2 = payload.user2_netid.strip()
    prompt_id = payload.prompt_id.strip()
    if not user1 or not user2 or not prompt_id:
        raise HTTPException(status_code=400, detail="user1_netid, user2_netid and prompt_id are required")

    expires_at = as_utc(payload.expires_at) if payload.expires_at else None
    try:
        first, second = store.create_manual_pair(
            user1,
            user2,
            prompt_id,
            append=payload.append,
            expires_at=expires_at,
        )
    except MatchingError as exc:
        raise http_error(exc)
    return ManualMatchResponse(prompt_id=prompt_id, records=[first, second])


@router.get("/matches/recent", response_model=list[MatchRecord])
def recent_matches(
    limit: int = Query(10, ge=1, le=100),
    store: MatchStore = Depends(get_match_store),
) -> list[MatchRecord]:
    return store.list_recent_matches(limit=limit)
