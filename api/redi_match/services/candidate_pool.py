from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, TypeVar

from .. import repo
from ..config import HISTORY_LOOKBACK_PROMPTS, POOL_FETCH_WORKERS, PROFILE_BATCH_SIZE
from ..schemas import PreferencesRecord, ProfileRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class CandidateData:
    netid: str
    profile: ProfileRecord | None
    preferences: PreferencesRecord | None

    @property
    def eligible(self) -> bool:
        return self.profile is not None and self.preferences is not None


@dataclass
class CandidatePool:
    prompt_id: str
    roster: list[str]
    users: dict[str, CandidateData]
    previous_matches: dict[str, set[str]] = field(default_factory=dict)
    blocked: dict[str, set[str]] = field(default_factory=dict)

    @property
    def eligible(self) -> list[str]:
        return [n for n in self.roster if self.users.get(n) and self.users[n].eligible]

    @property
    def skipped(self) -> list[str]:
        return [n for n in self.roster if not (self.users.get(n) and self.users[n].eligible)]


def chunked(items: list[str], size: int) -> list[list[str]]:
    size = max(1, int(size))
    return [items[i : i + size] for i in range(0, len(items), size)]


def _run_batches(jobs: list[Callable[[], T]], max_workers: int) -> list[T]:
    if max_workers <= 1 or len(jobs) <= 1:
        return [job() for job in jobs]
    with ThreadPoolExecutor(max_workers=min(max_workers, len(jobs))) as executor:
        futures = [executor.submit(job) for job in jobs]
        return [f.result() for f in futures]


def build_candidate_pool(
    session_factory,
    roster: list[str],
    *,
    prompt_id: str,
    batch_size: int = PROFILE_BATCH_SIZE,
    lookback: int = HISTORY_LOOKBACK_PROMPTS,
    max_workers: int = POOL_FETCH_WORKERS,
) -> CandidatePool:
    """Load profile, preferences, block and history data for a prompt roster.

    Lookups are split into ``batch_size`` netid groups (the store caps
    id-list queries) and the groups run on a bounded worker pool. All
    results are merged before the pool is returned.
    """
    batches = chunked(roster, batch_size)

    def _load(fetch, batch):
        def _job():
            with session_factory() as db:
                return fetch(db, batch)

        return _job

    profiles: dict[str, ProfileRecord] = {}
    for part in _run_batches([_load(repo.fetch_profiles, b) for b in batches], max_workers):
        profiles.update(part)

    preferences: dict[str, PreferencesRecord] = {}
    for part in _run_batches([_load(repo.fetch_preferences, b) for b in batches], max_workers):
        preferences.update(part)

    blocked: dict[str, set[str]] = {}
    for part in _run_batches([_load(repo.fetch_blocked_map, b) for b in batches], max_workers):
        for netid, others in part.items():
            blocked.setdefault(netid, set()).update(others)

    def _history(batch):
        with session_factory() as db:
            return {n: repo.fetch_previous_matches(db, n, prompt_id, lookback) for n in batch}

    previous: dict[str, set[str]] = {}
    for part in _run_batches([(lambda b=b: _history(b)) for b in batches], max_workers):
        previous.update(part)

    users = {
        netid: CandidateData(netid=netid, profile=profiles.get(netid), preferences=preferences.get(netid))
        for netid in roster
    }
    pool = CandidatePool(
        prompt_id=prompt_id,
        roster=list(roster),
        users=users,
        previous_matches=previous,
        blocked=blocked,
    )
    for netid in pool.skipped:
        data = users[netid]
        logger.warning(
            "[POOL] skipping %s: missing %s",
            netid,
            "profile and preferences" if not data.profile and not data.preferences else ("profile" if not data.profile else "preferences"),
        )
    logger.info(
        "[POOL] prompt=%s roster=%d eligible=%d skipped=%d batches=%d",
        prompt_id,
        len(roster),
        len(pool.eligible),
        len(pool.skipped),
        len(batches),
    )
    return pool
