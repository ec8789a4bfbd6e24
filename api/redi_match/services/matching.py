from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from .. import repo
from ..config import (
    HISTORY_LOOKBACK_PROMPTS,
    MATCH_CAPACITY,
    MATCH_RELAXED_RETRY,
    MATCH_TIMEZONE,
    POOL_FETCH_WORKERS,
    PROFILE_BATCH_SIZE,
)
from ..errors import AlreadyMatchedError, MatchingError
from .calendar import local_today, now_utc
from .candidate_pool import CandidatePool, build_candidate_pool
from .compatibility import is_mutually_compatible, score
from .match_store import MatchStore

logger = logging.getLogger(__name__)


@dataclass
class ScoredCandidate:
    netid: str
    score: int


@dataclass
class MatchingContext:
    session_factory: Any
    match_store: MatchStore
    capacity: int = MATCH_CAPACITY
    batch_size: int = PROFILE_BATCH_SIZE
    lookback: int = HISTORY_LOOKBACK_PROMPTS
    max_workers: int = POOL_FETCH_WORKERS
    relaxed_retry: bool = MATCH_RELAXED_RETRY
    timezone: str = MATCH_TIMEZONE
    scoring_cfg: dict[str, Any] | None = None


def canonical_pair(user_a: str, user_b: str) -> tuple[str, str]:
    return tuple(sorted((user_a, user_b)))


def _valid_entry(candidate: Any, owner: str) -> bool:
    return isinstance(candidate, str) and bool(candidate.strip()) and candidate != owner


def rank_candidates(
    netid: str,
    pool: CandidatePool,
    *,
    relaxed: bool = False,
    today: date | None = None,
    scoring_cfg: dict[str, Any] | None = None,
) -> list[ScoredCandidate]:
    user = pool.users.get(netid)
    if user is None or not user.eligible:
        return []

    blocked = pool.blocked.get(netid, set())
    previous = pool.previous_matches.get(netid, set())
    scored: list[ScoredCandidate] = []
    for other in pool.eligible:
        if other == netid or other in blocked or other in previous:
            continue
        candidate = pool.users[other]
        if not is_mutually_compatible(
            user.profile,
            user.preferences,
            candidate.profile,
            candidate.preferences,
            today=today,
            relaxed=relaxed,
        ):
            continue
        scored.append(ScoredCandidate(netid=other, score=score(user.profile, candidate.profile, today=today, cfg=scoring_cfg)))

    scored.sort(key=lambda c: (-c.score, c.netid))
    return scored


def shortlist_for_user(
    netid: str,
    pool: CandidatePool,
    *,
    relaxed: bool = False,
    today: date | None = None,
    scoring_cfg: dict[str, Any] | None = None,
) -> list[str]:
    ranked = rank_candidates(netid, pool, relaxed=relaxed, today=today, scoring_cfg=scoring_cfg)
    return [c.netid for c in ranked if _valid_entry(c.netid, netid)]


def select_mutual_pairs(
    order: list[str],
    shortlists: dict[str, list[str]],
    capacity: int = MATCH_CAPACITY,
) -> dict[str, list[str]]:
    """Keep only reciprocal listings, at most ``capacity`` per user.

    Users are walked in ``order`` and each shortlist in rank order. A pair is
    decided the first time it is seen: committed to both sides when both
    list each other and both have room, dropped otherwise.
    """
    final: dict[str, list[str]] = {netid: [] for netid in order}
    processed: set[tuple[str, str]] = set()
    mutual_pairs = 0
    one_sided = 0

    for user_a in order:
        for user_b in shortlists.get(user_a, []):
            if not _valid_entry(user_b, user_a):
                continue
            pair = canonical_pair(user_a, user_b)
            if pair in processed:
                continue
            if user_a not in shortlists.get(user_b, []):
                logger.debug("[MATCHING] non-mutual: %s -> %s but %s does not list %s", user_a, user_b, user_b, user_a)
                one_sided += 1
                continue
            processed.add(pair)
            a_final = final.setdefault(user_a, [])
            b_final = final.setdefault(user_b, [])
            if len(a_final) < capacity and len(b_final) < capacity:
                a_final.append(user_b)
                b_final.append(user_a)
                mutual_pairs += 1
                logger.debug("[MATCHING] mutual match: %s <-> %s", user_a, user_b)
            else:
                logger.debug(
                    "[MATCHING] mutual but over capacity: %s (%d) <-> %s (%d)",
                    user_a,
                    len(a_final),
                    user_b,
                    len(b_final),
                )

    logger.info("[MATCHING] phase 2 complete: mutual_pairs=%d one_sided_skipped=%d", mutual_pairs, one_sided)
    return final


def compute_shortlists(
    pool: CandidatePool,
    *,
    relaxed_retry: bool = False,
    today: date | None = None,
    scoring_cfg: dict[str, Any] | None = None,
) -> dict[str, list[str]]:
    shortlists: dict[str, list[str]] = {netid: [] for netid in pool.roster}
    for netid in pool.eligible:
        try:
            shortlists[netid] = shortlist_for_user(netid, pool, today=today, scoring_cfg=scoring_cfg)
        except Exception:
            logger.exception("[MATCHING] error finding matches for %s; skipping user", netid)
            shortlists[netid] = []
    logger.info("[MATCHING] phase 1 complete: processed=%d skipped=%d", len(pool.eligible), len(pool.skipped))

    if relaxed_retry:
        retried = 0
        found = 0
        for netid in pool.eligible:
            if shortlists[netid]:
                continue
            retried += 1
            try:
                relaxed = shortlist_for_user(netid, pool, relaxed=True, today=today, scoring_cfg=scoring_cfg)
            except Exception:
                logger.exception("[MATCHING] error finding relaxed matches for %s; skipping user", netid)
                continue
            if relaxed:
                shortlists[netid] = relaxed
                found += 1
        logger.info("[MATCHING] relaxed retry complete: retried=%d found=%d", retried, found)

    return shortlists


def write_match_records(
    store: MatchStore,
    prompt_id: str,
    final: dict[str, list[str]],
    *,
    now: datetime,
) -> set[str]:
    """Persist one record per matched user; returns the netids written.

    A user whose write fails is dropped from the lists of partners not yet
    written and retracted from partners already written, so every stored
    pair stays listed on both sides.
    """
    written: set[str] = set()
    failed: set[str] = set()
    for netid, matches in final.items():
        matches = [m for m in matches if m not in failed]
        if not matches:
            continue
        try:
            store.create_match(netid, prompt_id, matches, now=now)
            written.add(netid)
        except (MatchingError, SQLAlchemyError):
            logger.exception("[MATCHING] failed to write matches for %s on prompt %s", netid, prompt_id)
            failed.add(netid)

    for netid in sorted(failed):
        for partner in final.get(netid, []):
            if partner not in written:
                continue
            try:
                remaining = store.remove_match_entry(partner, prompt_id, netid)
            except (MatchingError, SQLAlchemyError):
                logger.exception("[MATCHING] could not retract %s from %s on prompt %s", netid, partner, prompt_id)
                continue
            logger.warning("[MATCHING] retracted %s from %s on prompt %s after failed write", netid, partner, prompt_id)
            if remaining is None:
                written.discard(partner)

    if failed:
        logger.warning("[MATCHING] write failures prompt=%s users=%s", prompt_id, ", ".join(sorted(failed)))
    return written


def generate_matches_for_prompt(ctx: MatchingContext, prompt_id: str, *, now: datetime | None = None) -> int:
    """Generate and persist this prompt's mutual matches; returns users written.

    Raises ``AlreadyMatchedError`` when any record already exists for the
    prompt. Failures scoped to a single user are logged and skip that user.
    """
    now = now or now_utc()
    if ctx.match_store.has_matches_for_prompt(prompt_id):
        raise AlreadyMatchedError(f"Matches already generated for prompt {prompt_id}")

    with ctx.session_factory() as db:
        roster = repo.fetch_prompt_roster(db, prompt_id)
    logger.info("[MATCHING] prompt=%s roster=%d", prompt_id, len(roster))
    if not roster:
        logger.warning("[MATCHING] no users to match for prompt %s", prompt_id)
        return 0

    pool = build_candidate_pool(
        ctx.session_factory,
        roster,
        prompt_id=prompt_id,
        batch_size=ctx.batch_size,
        lookback=ctx.lookback,
        max_workers=ctx.max_workers,
    )
    today = local_today(now, ctx.timezone)
    shortlists = compute_shortlists(pool, relaxed_retry=ctx.relaxed_retry, today=today, scoring_cfg=ctx.scoring_cfg)
    final = select_mutual_pairs(pool.roster, shortlists, capacity=ctx.capacity)

    counts = Counter(len(v) for v in final.values())
    logger.info(
        "[MATCHING] stats prompt=%s users=%d zero=%d one=%d two=%d three=%d",
        prompt_id,
        len(final),
        counts.get(0, 0),
        counts.get(1, 0),
        counts.get(2, 0),
        counts.get(3, 0),
    )

    written = write_match_records(ctx.match_store, prompt_id, final, now=now)

    try:
        with ctx.session_factory() as db:
            if repo.mark_prompt_completed(db, prompt_id, now):
                db.commit()
                logger.info("[MATCHING] prompt %s marked completed", prompt_id)
    except SQLAlchemyError:
        logger.warning("[MATCHING] could not update prompt %s status", prompt_id, exc_info=True)

    logger.info("[MATCHING] generation complete prompt=%s matched_users=%d", prompt_id, len(written))
    return len(written)
