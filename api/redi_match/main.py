import logging
import time

from fastapi import FastAPI
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from .config import ADMIN_TOKEN, DATABASE_URL, JWT_SECRET
from .database import init_schema, make_engine, make_session_factory
from .routes import include_modular_routers
from .services.match_store import MatchStore
from .services.matching import MatchingContext
from .services.conversations import ConversationStore
from .services.notifications import DatabaseNotifier
from .services.nudges import NudgeService

logger = logging.getLogger(__name__)


def wait_for_db(session_factory, max_attempts: int = 20, delay_seconds: float = 1.5) -> None:
    last_err: Exception | None = None
    for _ in range(max_attempts):
        try:
            with session_factory() as db:
                db.execute(text("SELECT 1"))
                db.commit()
            return
        except OperationalError as exc:
            last_err = exc
            time.sleep(delay_seconds)
    if last_err:
        raise last_err


def create_app(
    database_url: str | None = None,
    *,
    jwt_secret: str | None = None,
    admin_token: str | None = None,
    **matching_overrides,
) -> FastAPI:
    """Build the API with its own engine and services on ``app.state``.

    Run with ``uvicorn redi_match.main:create_app --factory``.
    """
    engine = make_engine(database_url or DATABASE_URL)
    session_factory = make_session_factory(engine)
    match_store = MatchStore(session_factory)
    conversations = ConversationStore(session_factory)

    app = FastAPI(title="Redi Match API")
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.jwt_secret = jwt_secret if jwt_secret is not None else JWT_SECRET
    app.state.admin_token = admin_token if admin_token is not None else ADMIN_TOKEN
    app.state.match_store = match_store
    app.state.conversations = conversations
    app.state.nudge_service = NudgeService(
        session_factory, match_store, DatabaseNotifier(session_factory), conversations
    )
    app.state.matching_context = MatchingContext(
        session_factory=session_factory,
        match_store=match_store,
        **matching_overrides,
    )

    @app.on_event("startup")
    def on_startup() -> None:
        wait_for_db(session_factory)
        init_schema(engine)
        logger.info("[startup] schema ready on %s", engine.url.render_as_string(hide_password=True))

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    include_modular_routers(app)
    return app
