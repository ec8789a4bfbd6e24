from datetime import date, datetime, timedelta, timezone

import pytest

from redi_match.database import init_schema, make_engine, make_session_factory
from redi_match.models import BlockRelation, Preferences, Profile, PromptAnswer, WeeklyPrompt
from redi_match.services.match_store import MatchStore
from redi_match.services.matching import MatchingContext


def birthdate_for_age(age: int, today: date | None = None) -> date:
    # Far from the birthday so the computed age is stable for the whole day.
    today = today or date.today()
    return today - timedelta(days=365 * age + 120)


class Roster:
    def __init__(self, session_factory):
        self.session_factory = session_factory
        self._tick = 0

    def add_user(
        self,
        netid: str,
        *,
        gender: str = "female",
        seeking: list[str] | None = None,
        age: int = 21,
        year: int | None = None,
        school: str = "College of Engineering",
        majors: list[str] | None = None,
        interests: list[str] | None = None,
        clubs: list[str] | None = None,
        age_min: int = 18,
        age_max: int = 30,
        pref_years: list[str] | None = None,
        pref_schools: list[str] | None = None,
        pref_majors: list[str] | None = None,
        profile: bool = True,
        preferences: bool = True,
        prompt_id: str | None = None,
    ) -> str:
        with self.session_factory() as db:
            if profile:
                db.add(
                    Profile(
                        netid=netid,
                        first_name=netid.title(),
                        gender=gender,
                        birthdate=birthdate_for_age(age),
                        year=year if year is not None else date.today().year + 2,
                        school=school,
                        majors=majors if majors is not None else ["Computer Science"],
                        interests=interests or [],
                        clubs=clubs or [],
                    )
                )
            if preferences:
                db.add(
                    Preferences(
                        netid=netid,
                        age_min=age_min,
                        age_max=age_max,
                        genders=seeking if seeking is not None else [],
                        years=pref_years or [],
                        schools=pref_schools or [],
                        majors=pref_majors or [],
                    )
                )
            db.commit()
        if prompt_id:
            self.answer(netid, prompt_id)
        return netid

    def answer(self, netid: str, prompt_id: str) -> None:
        self._tick += 1
        with self.session_factory() as db:
            db.add(
                PromptAnswer(
                    netid=netid,
                    prompt_id=prompt_id,
                    answer="answer",
                    created_at=datetime(2026, 1, 1, tzinfo=timezone.utc) + timedelta(seconds=self._tick),
                )
            )
            db.commit()

    def block(self, blocker: str, blocked: str) -> None:
        with self.session_factory() as db:
            db.add(BlockRelation(blocker_netid=blocker, blocked_netid=blocked))
            db.commit()

    def add_prompt(self, prompt_id: str) -> None:
        with self.session_factory() as db:
            db.add(WeeklyPrompt(prompt_id=prompt_id, question="q", release_date=date.today(), status="active", active=True))
            db.commit()


@pytest.fixture
def engine():
    engine = make_engine("sqlite://")
    init_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def store(session_factory):
    return MatchStore(session_factory)


@pytest.fixture
def roster(session_factory):
    return Roster(session_factory)


@pytest.fixture
def ctx(session_factory, store):
    return MatchingContext(session_factory=session_factory, match_store=store, max_workers=1)
