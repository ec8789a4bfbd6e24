from sqlalchemy import func, select

from redi_match.models import Profile, PromptAnswer, WeeklyPrompt
from redi_match.services.matching import generate_matches_for_prompt
from redi_match.services.seeding import seed_dummy_data
from redi_match.services.validation import validate_match_mutuality


def test_seed_then_generate_produces_valid_matches(session_factory, ctx, store):
    with session_factory() as db:
        summary = seed_dummy_data(db, prompt_id="seed-week", n_users=25)

    assert summary["users"] == 25
    assert sum(summary["genders"].values()) == 25
    with session_factory() as db:
        assert db.scalar(select(func.count()).select_from(Profile)) == 25
        assert db.scalar(select(func.count()).select_from(PromptAnswer)) == 25
        assert db.get(WeeklyPrompt, "seed-week").status == "active"

    matched = generate_matches_for_prompt(ctx, "seed-week")

    assert matched > 0
    assert validate_match_mutuality(store, "seed-week").is_valid is True


def test_seed_is_deterministic_and_reset_clears_matches(session_factory, store):
    with session_factory() as db:
        first = seed_dummy_data(db, prompt_id="w1", n_users=10, seed=7)
    store.create_match("seed000", "w1", ["seed001"])

    with session_factory() as db:
        second = seed_dummy_data(db, prompt_id="w1", n_users=10, seed=7, reset=True)

    assert first == second
    assert store.has_matches_for_prompt("w1") is False
