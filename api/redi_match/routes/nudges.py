import logging

from fastapi import APIRouter, Depends, HTTPException

from ..auth.deps import get_current_netid
from ..deps import get_match_store, get_nudge_service, http_error
from ..errors import MatchingError
from ..schemas import CreateNudgeRequest, NudgeRecord, NudgeStatus
from ..services.match_store import MatchStore
from ..services.nudges import NudgeService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/nudges", response_model=NudgeRecord, status_code=201)
def create_nudge(
    body: CreateNudgeRequest,
    netid: str = Depends(get_current_netid),
    store: MatchStore = Depends(get_match_store),
    nudges: NudgeService = Depends(get_nudge_service),
) -> NudgeRecord:
    to_netid = body.to_netid.strip()
    prompt_id = body.prompt_id.strip()
    if not to_netid or not prompt_id:
        raise HTTPException(status_code=400, detail="Missing required fields: to_netid and prompt_id are required")
    if to_netid == netid:
        raise HTTPException(status_code=400, detail="Cannot nudge yourself")

    record = store.get_match(netid, prompt_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Match not found")
    if to_netid not in record.matches:
        logger.warning("[NUDGE] rejected %s -> %s on prompt %s: not matched", netid, to_netid, prompt_id)
        raise HTTPException(status_code=403, detail="Cannot nudge: users are not matched for this prompt")

    try:
        return nudges.create_nudge(netid, to_netid, prompt_id)
    except MatchingError as exc:
        raise http_error(exc)


@router.get("/nudges/status", response_model=NudgeStatus)
def get_nudge_status(
    to_netid: str,
    prompt_id: str,
    netid: str = Depends(get_current_netid),
    nudges: NudgeService = Depends(get_nudge_service),
) -> NudgeStatus:
    return nudges.get_nudge_status(netid, to_netid, prompt_id)
