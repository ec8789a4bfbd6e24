from datetime import datetime, timezone

from redi_match.models import WeeklyMatch
from redi_match.services.validation import validate_match_mutuality


def _raw_record(session_factory, netid: str, prompt_id: str, matches: list, revealed: list | None = None) -> None:
    now = datetime(2026, 10, 21, tzinfo=timezone.utc)
    with session_factory() as db:
        db.add(
            WeeklyMatch(
                id=f"{netid}_{prompt_id}",
                netid=netid,
                prompt_id=prompt_id,
                matches=matches,
                revealed=revealed if revealed is not None else [False] * len(matches),
                created_at=now,
                expires_at=now,
            )
        )
        db.commit()


def test_prompt_without_records_is_valid(store):
    report = validate_match_mutuality(store, "p1")
    assert report.is_valid is True
    assert report.errors == []


def test_mutual_records_are_valid(store):
    store.create_match("a", "p1", ["b", "c"])
    store.create_match("b", "p1", ["a"])
    store.create_match("c", "p1", ["a"])

    assert validate_match_mutuality(store, "p1").is_valid is True


def test_one_sided_record_is_reported(store):
    store.create_match("a", "p1", ["b"])
    store.create_match("b", "p1", ["c"])
    store.create_match("c", "p1", ["b"])

    report = validate_match_mutuality(store, "p1")

    assert report.is_valid is False
    assert report.errors == ["a → b, but b ↛ a (NON-MUTUAL)"]


def test_partner_without_record_is_reported(store):
    store.create_match("a", "p1", ["ghost"])

    report = validate_match_mutuality(store, "p1")

    assert report.errors == ["a → ghost, but ghost has no match document"]


def test_blank_self_and_duplicate_entries_are_reported(session_factory, store):
    _raw_record(session_factory, "a", "p1", ["", "a", "b", "b"], revealed=[False])
    _raw_record(session_factory, "b", "p1", ["a", None])

    errors = validate_match_mutuality(store, "p1").errors

    assert 'a has invalid match values: [""]' in errors
    assert "a is matched with themselves" in errors
    assert 'a has duplicate matches: ["b"]' in errors
    assert "a has 4 matches but 1 revealed flags" in errors
    assert "b has invalid match values: [null]" in errors
    assert not any("NON-MUTUAL" in e for e in errors)


def test_other_prompts_are_ignored(store):
    store.create_match("a", "p0", ["b"])
    store.create_match("a", "p1", ["b"])
    store.create_match("b", "p1", ["a"])

    assert validate_match_mutuality(store, "p1").is_valid is True
    assert validate_match_mutuality(store, "p0").is_valid is False
