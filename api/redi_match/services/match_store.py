from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import exists, select
from sqlalchemy.exc import IntegrityError

from ..config import MATCH_CAPACITY, MATCH_TIMEZONE
from ..errors import AlreadyMatchedError, InvalidMatchError, MatchIndexOutOfRangeError, MatchNotFoundError
from ..models import Profile, WeeklyMatch
from ..schemas import MatchRecord, match_doc_id
from .calendar import next_friday_midnight, now_utc

logger = logging.getLogger(__name__)


def _to_record(row: WeeklyMatch) -> MatchRecord:
    return MatchRecord.model_validate(row)


class MatchStore:
    """Persists one match record per (user, prompt).

    Mutations of a single record (reveal, chat unlock, append) run as
    read-modify-write inside one transaction holding a row lock, so
    concurrent writers to different indices of the same record never lose
    each other's update.
    """

    def __init__(self, session_factory, *, timezone: str = MATCH_TIMEZONE, capacity: int = MATCH_CAPACITY):
        self._session_factory = session_factory
        self.timezone = timezone
        self.capacity = capacity

    def _locked(self, db, netid: str, prompt_id: str) -> WeeklyMatch | None:
        return db.execute(
            select(WeeklyMatch).where(WeeklyMatch.id == match_doc_id(netid, prompt_id)).with_for_update()
        ).scalar_one_or_none()

    def _upsert(
        self,
        db,
        netid: str,
        prompt_id: str,
        matched: list[str],
        *,
        append_if_exists: bool,
        now: datetime,
        expires_at: datetime | None = None,
    ) -> tuple[WeeklyMatch, list[str], bool]:
        """Stage a new record or an append in ``db``; returns (row, added, created)."""
        row = self._locked(db, netid, prompt_id)
        if row is not None:
            if not append_if_exists:
                logger.warning(
                    "[MATCH_STORE] matches already exist for %s on prompt %s: %s",
                    netid,
                    prompt_id,
                    ", ".join(row.matches or []),
                )
                raise AlreadyMatchedError(f"Matches already exist for {netid} on prompt {prompt_id}")
            return row, self._append(row, matched), False

        selected = list(matched[: self.capacity])
        row = WeeklyMatch(
            id=match_doc_id(netid, prompt_id),
            netid=netid,
            prompt_id=prompt_id,
            matches=selected,
            revealed=[False] * len(selected),
            chat_unlocked=None,
            created_at=now,
            expires_at=expires_at or next_friday_midnight(now, self.timezone),
        )
        db.add(row)
        return row, selected, True

    def _append(self, row: WeeklyMatch, matched: list[str]) -> list[str]:
        combined = list(row.matches or [])
        added: list[str] = []
        for candidate in matched:
            if candidate not in combined and len(combined) < self.capacity:
                combined.append(candidate)
                added.append(candidate)
        if added:
            row.matches = combined
            row.revealed = list(row.revealed or []) + [False] * len(added)
            if row.chat_unlocked is not None:
                row.chat_unlocked = list(row.chat_unlocked) + [False] * len(added)
        return added

    def create_match(
        self,
        netid: str,
        prompt_id: str,
        matched: list[str],
        *,
        append_if_exists: bool = False,
        now: datetime | None = None,
    ) -> MatchRecord:
        now = now or now_utc()
        with self._session_factory() as db:
            row, added, created = self._upsert(
                db, netid, prompt_id, matched, append_if_exists=append_if_exists, now=now
            )
            record = _to_record(row)
            if not created and not added:
                db.rollback()
                logger.info(
                    "[MATCH_STORE] no new matches added for %s on prompt %s (duplicates or at capacity)",
                    netid,
                    prompt_id,
                )
                return record
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                raise AlreadyMatchedError(f"Matches already exist for {netid} on prompt {prompt_id}")

        if created:
            logger.info("[MATCH_STORE] created matches for %s on prompt %s: %s", netid, prompt_id, ", ".join(added))
        else:
            logger.info(
                "[MATCH_STORE] appended %d match(es) for %s on prompt %s: %s (total=%d)",
                len(added),
                netid,
                prompt_id,
                ", ".join(added),
                len(record.matches),
            )
        return record

    def create_manual_pair(
        self,
        user_a: str,
        user_b: str,
        prompt_id: str,
        *,
        append: bool = False,
        expires_at: datetime | None = None,
        now: datetime | None = None,
    ) -> tuple[MatchRecord, MatchRecord]:
        """Match two users with each other in a single transaction.

        Without ``append`` either side already holding a record for the
        prompt is a conflict. With it the partner is appended on both sides,
        and a side with no room left is a conflict. Nothing is written
        unless both sides list each other.
        """
        if user_a == user_b:
            raise InvalidMatchError("Cannot match a user with themselves")
        now = now or now_utc()

        with self._session_factory() as db:
            for netid in (user_a, user_b):
                if db.get(Profile, netid) is None:
                    raise InvalidMatchError(f'User with netid "{netid}" not found')

            rows: dict[str, WeeklyMatch] = {}
            for netid, partner in sorted(((user_a, user_b), (user_b, user_a))):
                row, _, _ = self._upsert(
                    db,
                    netid,
                    prompt_id,
                    [partner],
                    append_if_exists=append,
                    now=now,
                    expires_at=expires_at,
                )
                if partner not in (row.matches or []):
                    raise AlreadyMatchedError(f"{netid} has no room for another match on prompt {prompt_id}")
                rows[netid] = row

            records = (_to_record(rows[user_a]), _to_record(rows[user_b]))
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                raise AlreadyMatchedError(f"Matches already exist for {user_a} or {user_b} on prompt {prompt_id}")

        logger.info("[MATCH_STORE] manual match %s <-> %s on prompt %s (append=%s)", user_a, user_b, prompt_id, append)
        return records

    def remove_match_entry(self, netid: str, prompt_id: str, matched_netid: str) -> MatchRecord | None:
        """Drop one partner and its flags; returns None once no record remains."""
        with self._session_factory() as db:
            row = self._locked(db, netid, prompt_id)
            if row is None:
                db.rollback()
                return None
            matches = list(row.matches or [])
            if matched_netid not in matches:
                record = _to_record(row)
                db.rollback()
                return record

            index = matches.index(matched_netid)
            del matches[index]
            if not matches:
                db.delete(row)
                db.commit()
                logger.info("[MATCH_STORE] removed last match %s from %s on prompt %s", matched_netid, netid, prompt_id)
                return None

            revealed = list(row.revealed or [])
            row.matches = matches
            row.revealed = revealed[:index] + revealed[index + 1 :]
            if row.chat_unlocked is not None:
                unlocked = list(row.chat_unlocked)
                row.chat_unlocked = unlocked[:index] + unlocked[index + 1 :]
            record = _to_record(row)
            db.commit()
            logger.info("[MATCH_STORE] removed %s from %s on prompt %s", matched_netid, netid, prompt_id)
            return record

    def get_match(self, netid: str, prompt_id: str) -> MatchRecord | None:
        with self._session_factory() as db:
            row = db.get(WeeklyMatch, match_doc_id(netid, prompt_id))
            return _to_record(row) if row else None

    def list_matches_for_prompt(self, prompt_id: str) -> list[MatchRecord]:
        with self._session_factory() as db:
            rows = db.execute(
                select(WeeklyMatch).where(WeeklyMatch.prompt_id == prompt_id).order_by(WeeklyMatch.netid)
            ).scalars().all()
            return [_to_record(r) for r in rows]

    def list_recent_matches(self, *, limit: int = 10) -> list[MatchRecord]:
        with self._session_factory() as db:
            rows = db.execute(
                select(WeeklyMatch).order_by(WeeklyMatch.created_at.desc(), WeeklyMatch.netid).limit(limit)
            ).scalars().all()
            return [_to_record(r) for r in rows]

    def has_matches_for_prompt(self, prompt_id: str) -> bool:
        with self._session_factory() as db:
            return bool(db.execute(select(exists().where(WeeklyMatch.prompt_id == prompt_id))).scalar())

    def get_user_match_history(self, netid: str, *, limit: int = 10, now: datetime | None = None) -> list[MatchRecord]:
        now = now or now_utc()
        with self._session_factory() as db:
            rows = db.execute(
                select(WeeklyMatch)
                .where(WeeklyMatch.netid == netid, WeeklyMatch.expires_at > now)
                .order_by(WeeklyMatch.expires_at.desc(), WeeklyMatch.created_at.desc())
                .limit(limit)
            ).scalars().all()
            return [_to_record(r) for r in rows]

    def reveal_match(self, netid: str, prompt_id: str, index: int) -> MatchRecord:
        if index < 0 or index > self.capacity - 1:
            raise MatchIndexOutOfRangeError(f"Match index must be between 0 and {self.capacity - 1}")

        with self._session_factory() as db:
            row = self._locked(db, netid, prompt_id)
            if row is None:
                raise MatchNotFoundError("Match not found")
            if index >= len(row.matches or []):
                raise MatchIndexOutOfRangeError("Match index out of bounds")

            if row.revealed[index]:
                record = _to_record(row)
                db.rollback()
                return record

            revealed = list(row.revealed)
            revealed[index] = True
            row.revealed = revealed
            record = _to_record(row)
            db.commit()
            logger.info("[MATCH_STORE] %s revealed index %d on prompt %s", netid, index, prompt_id)
            return record

    def set_chat_unlocked(self, netid: str, prompt_id: str, matched_netid: str) -> MatchRecord | None:
        with self._session_factory() as db:
            row = self._locked(db, netid, prompt_id)
            if row is None:
                db.rollback()
                return None
            matches = list(row.matches or [])
            if matched_netid not in matches:
                db.rollback()
                return None

            index = matches.index(matched_netid)
            unlocked = list(row.chat_unlocked) if row.chat_unlocked is not None else [False] * len(matches)
            if len(unlocked) < len(matches):
                unlocked.extend([False] * (len(matches) - len(unlocked)))
            if unlocked[index]:
                record = _to_record(row)
                db.rollback()
                return record

            unlocked[index] = True
            row.chat_unlocked = unlocked
            record = _to_record(row)
            db.commit()
            logger.info("[MATCH_STORE] chat unlocked for %s -> %s on prompt %s", netid, matched_netid, prompt_id)
            return record
