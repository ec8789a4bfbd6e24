from __future__ import annotations

from datetime import date
from typing import Any

from ..config import SCORING_WEIGHTS
from ..schemas import PreferencesRecord, ProfileRecord

RELAXED_AGE_SLACK = 2
RELAXED_AGE_FLOOR = 18
RELAXED_AGE_CEILING = 100


def calculate_age(birthdate: date, today: date | None = None) -> int:
    today = today or date.today()
    age = today.year - birthdate.year
    if (today.month, today.day) < (birthdate.month, birthdate.day):
        age -= 1
    return age


def year_label(graduation_year: int, today: date | None = None) -> str:
    years_until_grad = graduation_year - (today or date.today()).year
    if years_until_grad >= 4:
        return "Freshman"
    if years_until_grad == 3:
        return "Sophomore"
    if years_until_grad == 2:
        return "Junior"
    if years_until_grad in (0, 1):
        return "Senior"
    return "Graduate"


def _accepts(accepted: list[str], value: Any) -> bool:
    return not accepted or value in accepted


def is_compatible(
    candidate: ProfileRecord,
    viewer_prefs: PreferencesRecord,
    *,
    today: date | None = None,
    relaxed: bool = False,
) -> bool:
    if not _accepts(viewer_prefs.genders, candidate.gender):
        return False

    age = calculate_age(candidate.birthdate, today)
    low, high = viewer_prefs.age_range.min, viewer_prefs.age_range.max
    if relaxed:
        low = max(RELAXED_AGE_FLOOR, low - RELAXED_AGE_SLACK)
        high = min(RELAXED_AGE_CEILING, high + RELAXED_AGE_SLACK)
    if age < low or age > high:
        return False

    if relaxed:
        return True

    if not _accepts(viewer_prefs.years, year_label(candidate.year, today)):
        return False
    if not _accepts(viewer_prefs.schools, candidate.school):
        return False
    if viewer_prefs.majors and not any(m in viewer_prefs.majors for m in candidate.majors):
        return False
    return True


def is_mutually_compatible(
    a_profile: ProfileRecord,
    a_prefs: PreferencesRecord,
    b_profile: ProfileRecord,
    b_prefs: PreferencesRecord,
    *,
    today: date | None = None,
    relaxed: bool = False,
) -> bool:
    return is_compatible(b_profile, a_prefs, today=today, relaxed=relaxed) and is_compatible(
        a_profile, b_prefs, today=today, relaxed=relaxed
    )


def _overlap(a: list[str], b: list[str]) -> int:
    return len(set(a) & set(b))


def score_breakdown(
    a: ProfileRecord,
    b: ProfileRecord,
    *,
    today: date | None = None,
    cfg: dict[str, Any] | None = None,
) -> dict[str, int]:
    cfg = {**SCORING_WEIGHTS, **(cfg or {})}
    year_diff = abs(a.year - b.year)
    age_diff = abs(calculate_age(a.birthdate, today) - calculate_age(b.birthdate, today))
    return {
        "school": int(cfg["SAME_SCHOOL"]) if a.school == b.school else 0,
        "majors": min(int(cfg["MAJOR_CAP"]), _overlap(a.majors, b.majors) * int(cfg["MAJOR_EACH"])),
        "year": max(0, int(cfg["YEAR_MAX"]) - year_diff * int(cfg["YEAR_STEP"])),
        "age": max(0, int(cfg["AGE_MAX"]) - age_diff * int(cfg["AGE_STEP"])),
        "interests": min(int(cfg["INTEREST_CAP"]), _overlap(a.interests, b.interests) * int(cfg["INTEREST_EACH"])),
        "clubs": min(int(cfg["CLUB_CAP"]), _overlap(a.clubs, b.clubs) * int(cfg["CLUB_EACH"])),
    }


def score(
    a: ProfileRecord,
    b: ProfileRecord,
    *,
    today: date | None = None,
    cfg: dict[str, Any] | None = None,
) -> int:
    return sum(score_breakdown(a, b, today=today, cfg=cfg).values())
