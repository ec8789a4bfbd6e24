from datetime import datetime, timezone

import pytest
from sqlalchemy.exc import OperationalError

from redi_match.errors import AlreadyMatchedError
from redi_match.models import WeeklyMatch, WeeklyPrompt
from redi_match.services import matching
from redi_match.services.matching import (
    MatchingContext,
    generate_matches_for_prompt,
    select_mutual_pairs,
)
from redi_match.services.validation import check_records, validate_match_mutuality


def _matches(store, prompt_id: str) -> dict[str, list[str]]:
    return {r.netid: r.matches for r in store.list_matches_for_prompt(prompt_id)}


def test_select_mutual_pairs_drops_one_sided_listings():
    final = select_mutual_pairs(["a", "b", "c"], {"a": ["b", "c"], "b": [], "c": ["a"]})
    assert final == {"a": ["c"], "b": [], "c": ["a"]}


def test_select_mutual_pairs_respects_capacity_on_both_sides():
    shortlists = {
        "hub": ["a", "b", "c", "d"],
        "a": ["hub"],
        "b": ["hub"],
        "c": ["hub"],
        "d": ["hub"],
    }
    final = select_mutual_pairs(["hub", "a", "b", "c", "d"], shortlists, capacity=3)
    assert final["hub"] == ["a", "b", "c"]
    assert final["d"] == []
    for netid in ("a", "b", "c"):
        assert final[netid] == ["hub"]


def test_select_mutual_pairs_ignores_self_and_blank_entries():
    final = select_mutual_pairs(["a", "b"], {"a": ["a", "", "b"], "b": ["a", "b"]})
    assert final == {"a": ["b"], "b": ["a"]}


def test_two_compatible_users_are_matched_to_each_other(ctx, roster, store):
    roster.add_user("alice", gender="female", seeking=["male"], prompt_id="p1")
    roster.add_user("bob", gender="male", seeking=["female"], prompt_id="p1")

    assert generate_matches_for_prompt(ctx, "p1") == 2

    assert _matches(store, "p1") == {"alice": ["bob"], "bob": ["alice"]}
    record = store.get_match("alice", "p1")
    assert record.revealed == [False]
    assert record.chat_unlocked is None


def test_equal_scores_fill_capacity_in_netid_order(ctx, roster, store):
    for i in range(1, 6):
        roster.add_user(f"u{i}", prompt_id="p1")

    assert generate_matches_for_prompt(ctx, "p1") == 4

    assert _matches(store, "p1") == {
        "u1": ["u2", "u3", "u4"],
        "u2": ["u1", "u3", "u4"],
        "u3": ["u1", "u2", "u4"],
        "u4": ["u1", "u2", "u3"],
    }
    assert store.get_match("u5", "p1") is None


def test_large_roster_stays_mutual_and_within_capacity(ctx, roster, store):
    genders = ["female", "male", "non-binary"]
    for i in range(30):
        roster.add_user(
            f"n{i:02d}",
            gender=genders[i % 3],
            age=18 + i % 6,
            interests=["hiking", "film", "music", "chess"][: 1 + i % 4],
            prompt_id="p1",
        )

    generate_matches_for_prompt(ctx, "p1")

    records = store.list_matches_for_prompt("p1")
    assert records
    assert check_records(records) == []
    for record in records:
        assert 1 <= len(record.matches) <= 3
        assert record.netid not in record.matches
        assert len(set(record.matches)) == len(record.matches)


def test_higher_score_wins_over_netid_order(ctx, roster, store):
    roster.add_user("a", interests=["hiking", "film"], clubs=["band"], prompt_id="p1")
    roster.add_user("b", school="Law School", majors=["Law"], prompt_id="p1")
    roster.add_user("c", interests=["hiking", "film"], clubs=["band"], prompt_id="p1")
    ctx.capacity = 1

    generate_matches_for_prompt(ctx, "p1")

    assert _matches(store, "p1") == {"a": ["c"], "c": ["a"]}


def test_gender_preferences_must_hold_both_ways(ctx, roster, store):
    roster.add_user("alice", gender="female", seeking=["male"], prompt_id="p1")
    roster.add_user("bob", gender="male", seeking=["male"], prompt_id="p1")

    assert generate_matches_for_prompt(ctx, "p1") == 0
    assert store.list_matches_for_prompt("p1") == []


def test_blocked_pairs_are_never_matched(ctx, roster, store):
    for netid in ("a", "b", "c"):
        roster.add_user(netid, prompt_id="p1")
    roster.block("b", "a")

    generate_matches_for_prompt(ctx, "p1")

    matches = _matches(store, "p1")
    assert "b" not in matches["a"]
    assert "a" not in matches["b"]
    assert matches["c"] == ["a", "b"]


def test_previous_matches_are_not_repeated(ctx, roster, store):
    roster.add_user("a", prompt_id="p1")
    roster.add_user("b", prompt_id="p1")
    store.create_match("a", "p0", ["b"])
    store.create_match("b", "p0", ["a"])

    assert generate_matches_for_prompt(ctx, "p1") == 0


def test_users_without_profile_or_preferences_are_excluded(ctx, roster, store):
    roster.add_user("a", prompt_id="p1")
    roster.add_user("b", prompt_id="p1")
    roster.add_user("noprofile", profile=False, prompt_id="p1")
    roster.add_user("noprefs", preferences=False, prompt_id="p1")

    assert generate_matches_for_prompt(ctx, "p1") == 2
    assert _matches(store, "p1") == {"a": ["b"], "b": ["a"]}


def test_empty_roster_writes_nothing(ctx, store):
    assert generate_matches_for_prompt(ctx, "nobody") == 0
    assert store.list_matches_for_prompt("nobody") == []


def test_regenerating_a_prompt_is_rejected(ctx, roster, store):
    roster.add_user("a", prompt_id="p1")
    roster.add_user("b", prompt_id="p1")
    generate_matches_for_prompt(ctx, "p1")

    with pytest.raises(AlreadyMatchedError):
        generate_matches_for_prompt(ctx, "p1")
    assert _matches(store, "p1") == {"a": ["b"], "b": ["a"]}


def test_one_user_failing_does_not_abort_the_run(ctx, roster, store, monkeypatch):
    for netid in ("a", "b", "bad"):
        roster.add_user(netid, prompt_id="p1")
    real_fn = matching.shortlist_for_user

    def _flaky(netid, pool, **kwargs):
        if netid == "bad":
            raise RuntimeError("boom")
        return real_fn(netid, pool, **kwargs)

    monkeypatch.setattr(matching, "shortlist_for_user", _flaky)

    assert generate_matches_for_prompt(ctx, "p1") == 2
    assert _matches(store, "p1") == {"a": ["b"], "b": ["a"]}


def test_relaxed_retry_widens_empty_shortlists(session_factory, store, roster):
    roster.add_user("a", age=21, age_max=20, prompt_id="p1")
    roster.add_user("b", age=22, prompt_id="p1")

    strict = MatchingContext(session_factory=session_factory, match_store=store, max_workers=1)
    assert generate_matches_for_prompt(strict, "p1") == 0

    roster.answer("a", "p2")
    roster.answer("b", "p2")
    relaxed = MatchingContext(session_factory=session_factory, match_store=store, max_workers=1, relaxed_retry=True)
    assert generate_matches_for_prompt(relaxed, "p2") == 2
    assert _matches(store, "p2") == {"a": ["b"], "b": ["a"]}


def test_generation_marks_prompt_completed_and_sets_expiry(ctx, roster, store, session_factory):
    roster.add_prompt("p1")
    roster.add_user("a", prompt_id="p1")
    roster.add_user("b", prompt_id="p1")
    now = datetime(2026, 10, 21, 15, 0, tzinfo=timezone.utc)  # Wednesday

    generate_matches_for_prompt(ctx, "p1", now=now)

    record = store.get_match("a", "p1")
    assert record.created_at == now
    assert record.expires_at == datetime(2026, 10, 23, 4, 0, tzinfo=timezone.utc)
    with session_factory() as db:
        prompt = db.get(WeeklyPrompt, "p1")
        assert prompt.status == "completed"
        assert prompt.active is False
        assert prompt.matches_generated_at is not None


@pytest.mark.parametrize("failing", ["a", "d"])
def test_write_failure_is_retracted_from_partners(ctx, roster, store, session_factory, monkeypatch, failing):
    for netid in ("a", "b", "c", "d"):
        roster.add_user(netid, prompt_id="p1")
    real_fn = store.create_match

    def _failing(netid, prompt_id, matched, **kwargs):
        if netid == failing:
            raise OperationalError("INSERT INTO weekly_match", {}, Exception("disk I/O error"))
        return real_fn(netid, prompt_id, matched, **kwargs)

    monkeypatch.setattr(store, "create_match", _failing)

    assert generate_matches_for_prompt(ctx, "p1") == 3
    assert validate_match_mutuality(store, "p1").is_valid
    others = [n for n in ("a", "b", "c", "d") if n != failing]
    for netid in others:
        record = store.get_match(netid, "p1")
        assert sorted(record.matches) == [n for n in others if n != netid]
        assert len(record.revealed) == 2
    with session_factory() as db:
        assert db.get(WeeklyMatch, f"{failing}_p1") is None
