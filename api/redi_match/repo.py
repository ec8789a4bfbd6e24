"""Read-side queries against tables owned by other parts of the app.

Profiles, preferences, block relations and prompt answers are maintained by
the profile, safety and prompt services; matching only reads them. Every
function takes an open session so callers decide the transaction scope.
"""

import logging
from datetime import datetime
from typing import Iterable

from pydantic import ValidationError
from sqlalchemy import or_, select, update

from .models import BlockRelation, Preferences, Profile, PromptAnswer, WeeklyMatch, WeeklyPrompt
from .schemas import PreferencesRecord, ProfileRecord

logger = logging.getLogger(__name__)


def fetch_prompt_roster(db, prompt_id: str) -> list[str]:
    rows = db.execute(
        select(PromptAnswer.netid)
        .where(PromptAnswer.prompt_id == prompt_id)
        .order_by(PromptAnswer.created_at, PromptAnswer.netid)
    ).scalars().all()
    roster: list[str] = []
    seen: set[str] = set()
    for netid in rows:
        netid = str(netid or "").strip()
        if not netid or netid in seen:
            continue
        seen.add(netid)
        roster.append(netid)
    return roster


def fetch_profiles(db, netids: Iterable[str]) -> dict[str, ProfileRecord]:
    netids = list(netids)
    if not netids:
        return {}
    out: dict[str, ProfileRecord] = {}
    for row in db.execute(select(Profile).where(Profile.netid.in_(netids))).scalars():
        try:
            out[row.netid] = ProfileRecord.model_validate(row)
        except ValidationError as exc:
            logger.warning("[POOL] rejecting malformed profile netid=%s errors=%s", row.netid, exc.errors())
    return out


def fetch_preferences(db, netids: Iterable[str]) -> dict[str, PreferencesRecord]:
    netids = list(netids)
    if not netids:
        return {}
    out: dict[str, PreferencesRecord] = {}
    for row in db.execute(select(Preferences).where(Preferences.netid.in_(netids))).scalars():
        try:
            out[row.netid] = PreferencesRecord.model_validate(row)
        except ValidationError as exc:
            logger.warning("[POOL] rejecting malformed preferences netid=%s errors=%s", row.netid, exc.errors())
    return out


def fetch_blocked_map(db, netids: Iterable[str]) -> dict[str, set[str]]:
    netids = list(netids)
    blocked: dict[str, set[str]] = {n: set() for n in netids}
    if not netids:
        return blocked
    rows = db.execute(
        select(BlockRelation.blocker_netid, BlockRelation.blocked_netid).where(
            or_(BlockRelation.blocker_netid.in_(netids), BlockRelation.blocked_netid.in_(netids))
        )
    ).all()
    for blocker, blocked_netid in rows:
        if blocker in blocked:
            blocked[blocker].add(blocked_netid)
        if blocked_netid in blocked:
            blocked[blocked_netid].add(blocker)
    return blocked


def fetch_previous_matches(db, netid: str, current_prompt_id: str, lookback: int) -> set[str]:
    rows = db.execute(
        select(WeeklyMatch.matches)
        .where(WeeklyMatch.netid == netid, WeeklyMatch.prompt_id != current_prompt_id)
        .order_by(WeeklyMatch.created_at.desc())
        .limit(lookback)
    ).scalars().all()
    previous: set[str] = set()
    for matches in rows:
        previous.update(m for m in (matches or []) if isinstance(m, str) and m.strip())
    return previous


def mark_prompt_completed(db, prompt_id: str, now: datetime) -> bool:
    result = db.execute(
        update(WeeklyPrompt)
        .where(WeeklyPrompt.prompt_id == prompt_id)
        .values(status="completed", active=False, matches_generated_at=now)
    )
    return bool(result.rowcount)
