from __future__ import annotations

import logging

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..errors import AlreadyNudgedError
from ..models import Nudge
from ..schemas import NudgeRecord, NudgeStatus, nudge_doc_id
from .calendar import now_utc
from .conversations import ConversationStore
from .match_store import MatchStore
from .notifications import Notifier

logger = logging.getLogger(__name__)


class NudgeService:
    """Directional nudges per (from, to, prompt): none -> nudged -> mutual.

    The nudge row is committed before the reverse row is looked up. Of two
    opposite nudges racing each other, the one that commits last is
    guaranteed to see the other, so the pair always ends up mutual with chat
    unlocked on both match records and one conversation between them.
    """

    def __init__(
        self,
        session_factory,
        match_store: MatchStore,
        notifier: Notifier,
        conversations: ConversationStore | None = None,
    ):
        self._session_factory = session_factory
        self.match_store = match_store
        self.notifier = notifier
        self.conversations = conversations or ConversationStore(session_factory)

    def create_nudge(self, from_netid: str, to_netid: str, prompt_id: str) -> NudgeRecord:
        nudge_id = nudge_doc_id(from_netid, prompt_id, to_netid)
        created_at = now_utc()

        with self._session_factory() as db:
            if db.get(Nudge, nudge_id) is not None:
                raise AlreadyNudgedError()
            db.add(
                Nudge(
                    id=nudge_id,
                    from_netid=from_netid,
                    to_netid=to_netid,
                    prompt_id=prompt_id,
                    mutual=False,
                    created_at=created_at,
                )
            )
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                raise AlreadyNudgedError()
        logger.info("[NUDGE] %s -> %s on prompt %s", from_netid, to_netid, prompt_id)

        record = NudgeRecord(
            from_netid=from_netid,
            to_netid=to_netid,
            prompt_id=prompt_id,
            mutual=False,
            created_at=created_at,
        )
        if not self.complete_if_mutual(from_netid, to_netid, prompt_id):
            return record
        return record.model_copy(update={"mutual": True})

    def complete_if_mutual(self, from_netid: str, to_netid: str, prompt_id: str) -> bool:
        """Flip both directions to mutual once the reverse nudge exists.

        Safe to run more than once per pair. Chat unlock and the conversation
        are re-ensured every time; notifications go out only from the call
        that flipped a row.
        """
        nudge_id = nudge_doc_id(from_netid, prompt_id, to_netid)
        reverse_id = nudge_doc_id(to_netid, prompt_id, from_netid)

        with self._session_factory() as db:
            if db.get(Nudge, reverse_id) is None or db.get(Nudge, nudge_id) is None:
                return False
            flipped = 0
            # Fixed lock order keeps two concurrent completions from deadlocking.
            for doc_id in sorted((nudge_id, reverse_id)):
                result = db.execute(
                    update(Nudge).where(Nudge.id == doc_id, Nudge.mutual.is_(False)).values(mutual=True)
                )
                flipped += result.rowcount or 0
            db.commit()

        logger.info("[NUDGE] mutual nudge %s <-> %s on prompt %s (flipped=%d)", from_netid, to_netid, prompt_id, flipped)
        self.match_store.set_chat_unlocked(from_netid, prompt_id, to_netid)
        self.match_store.set_chat_unlocked(to_netid, prompt_id, from_netid)
        conversation_id = self._open_conversation(from_netid, to_netid, prompt_id)

        if flipped:
            self._notify(from_netid, to_netid, prompt_id, conversation_id)
            self._notify(to_netid, from_netid, prompt_id, conversation_id)
        return True

    def _open_conversation(self, netid: str, other_netid: str, prompt_id: str) -> str | None:
        try:
            return self.conversations.ensure_conversation(netid, other_netid, prompt_id)
        except SQLAlchemyError:
            logger.exception("[NUDGE] could not open conversation for %s <-> %s", netid, other_netid)
            return None

    def _notify(self, netid: str, match_netid: str, prompt_id: str, conversation_id: str | None) -> None:
        try:
            self.notifier.notify_mutual_nudge(netid, match_netid, prompt_id, conversation_id=conversation_id)
        except Exception:
            logger.exception("[NUDGE] notification dispatch failed for %s (match=%s)", netid, match_netid)

    def get_nudge_status(self, netid: str, other_netid: str, prompt_id: str) -> NudgeStatus:
        with self._session_factory() as db:
            sent = db.get(Nudge, nudge_doc_id(netid, prompt_id, other_netid))
            received = db.get(Nudge, nudge_doc_id(other_netid, prompt_id, netid))
            mutual = bool(sent is not None and received is not None and sent.mutual)
        return NudgeStatus(
            sent=sent is not None,
            received=received is not None,
            mutual=mutual,
            conversation_id=self.conversations.get_conversation_id(netid, other_netid) if mutual else None,
        )

    def check_mutual_nudge(self, netid: str, other_netid: str, prompt_id: str) -> bool:
        return self.get_nudge_status(netid, other_netid, prompt_id).mutual
