from fastapi import APIRouter, Depends, HTTPException

from ..auth.deps import get_current_netid
from ..deps import get_match_store, http_error
from ..errors import MatchingError
from ..schemas import MatchHistoryResponse, MatchRecord, RevealMatchRequest
from ..services.match_store import MatchStore

router = APIRouter()


@router.get("/matches/history", response_model=MatchHistoryResponse)
def get_match_history(
    limit: int = 10,
    netid: str = Depends(get_current_netid),
    store: MatchStore = Depends(get_match_store),
) -> MatchHistoryResponse:
    limit = max(1, min(int(limit), 50))
    return MatchHistoryResponse(history=store.get_user_match_history(netid, limit=limit))


@router.get("/matches/{prompt_id}", response_model=MatchRecord)
def get_match(
    prompt_id: str,
    netid: str = Depends(get_current_netid),
    store: MatchStore = Depends(get_match_store),
) -> MatchRecord:
    record = store.get_match(netid, prompt_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Match not found")
    return record


@router.post("/matches/{prompt_id}/reveal", response_model=MatchRecord)
def reveal_match(
    prompt_id: str,
    body: RevealMatchRequest,
    netid: str = Depends(get_current_netid),
    store: MatchStore = Depends(get_match_store),
) -> MatchRecord:
    try:
        return store.reveal_match(netid, prompt_id, body.index)
    except MatchingError as exc:
        raise http_error(exc)
