import logging
import uuid
from typing import Any, Protocol

from sqlalchemy.exc import SQLAlchemyError

from ..models import Notification, Profile
from .calendar import now_utc

logger = logging.getLogger(__name__)

MUTUAL_NUDGE = "mutual_nudge"
MUTUAL_NUDGE_TITLE = "You both nudged each other! 🎉"
MUTUAL_NUDGE_MESSAGE = "Start chatting now"


class Notifier(Protocol):
    def notify_mutual_nudge(
        self, netid: str, match_netid: str, prompt_id: str, *, conversation_id: str | None = None
    ) -> None: ...


class DatabaseNotifier:
    """Writes in-app notification rows; push delivery reads them elsewhere.

    Failures are logged and swallowed: a lost notification must never undo
    the nudge state that triggered it.
    """

    def __init__(self, session_factory):
        self._session_factory = session_factory

    def notify_mutual_nudge(
        self, netid: str, match_netid: str, prompt_id: str, *, conversation_id: str | None = None
    ) -> None:
        try:
            with self._session_factory() as db:
                partner = db.get(Profile, match_netid)
                payload: dict[str, Any] = {"promptId": prompt_id, "matchNetid": match_netid}
                if conversation_id:
                    payload["conversationId"] = conversation_id
                if partner is not None and partner.first_name:
                    payload["matchName"] = partner.first_name
                db.add(
                    Notification(
                        id=str(uuid.uuid4()),
                        netid=netid,
                        type=MUTUAL_NUDGE,
                        title=MUTUAL_NUDGE_TITLE,
                        message=MUTUAL_NUDGE_MESSAGE,
                        read=False,
                        payload=payload,
                        created_at=now_utc(),
                    )
                )
                db.commit()
        except SQLAlchemyError:
            logger.exception("[NOTIFY] failed to write mutual_nudge notification for %s (match=%s)", netid, match_netid)
