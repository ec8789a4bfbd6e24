import logging
import uuid
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from ..config import MATCH_TIMEZONE
from ..models import Conversation
from .calendar import get_week_start_date, now_utc

logger = logging.getLogger(__name__)


class ConversationStore:
    """One conversation per pair of users, opened by their first mutual nudge."""

    def __init__(self, session_factory, *, timezone: str = MATCH_TIMEZONE):
        self._session_factory = session_factory
        self.timezone = timezone

    def _find(self, db, a: str, b: str) -> str | None:
        return db.execute(
            select(Conversation.id).where(Conversation.participant_a == a, Conversation.participant_b == b)
        ).scalar_one_or_none()

    def get_conversation_id(self, netid_a: str, netid_b: str) -> str | None:
        a, b = sorted((netid_a, netid_b))
        with self._session_factory() as db:
            return self._find(db, a, b)

    def ensure_conversation(self, netid_a: str, netid_b: str, prompt_id: str, *, now: datetime | None = None) -> str:
        a, b = sorted((netid_a, netid_b))
        now = now or now_utc()
        with self._session_factory() as db:
            existing = self._find(db, a, b)
            if existing:
                return existing

            conversation_id = str(uuid.uuid4())
            db.add(
                Conversation(
                    id=conversation_id,
                    participant_a=a,
                    participant_b=b,
                    prompt_id=prompt_id,
                    week_start_date=get_week_start_date(now, self.timezone),
                    last_message=None,
                    created_at=now,
                    updated_at=now,
                )
            )
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                existing = self._find(db, a, b)
                if existing is None:
                    raise
                return existing

        logger.info("[CONVERSATION] opened %s for %s <-> %s on prompt %s", conversation_id, a, b, prompt_id)
        return conversation_id
