import random
from collections import Counter
from datetime import date, datetime, timedelta, timezone
from typing import Any

from sqlalchemy import delete

from redi_match.models import BlockRelation, Nudge, Notification, Preferences, Profile, PromptAnswer, WeeklyMatch, WeeklyPrompt

SCHOOLS = [
    "College of Agriculture and Life Sciences",
    "College of Arts and Sciences",
    "College of Engineering",
    "College of Human Ecology",
    "Cornell SC Johnson College of Business",
    "School of Industrial and Labor Relations",
]
MAJORS = [
    "Computer Science",
    "Economics",
    "Biology",
    "Government",
    "Mechanical Engineering",
    "Psychology",
    "Hotel Administration",
    "Information Science",
]
INTERESTS = ["hiking", "music", "cooking", "film", "climbing", "reading", "gaming", "running", "art", "travel"]
CLUBS = ["Big Red Marching Band", "Cornell Outing Club", "Slope Media", "Cornell Daily Sun", "ACSU", "Hack4Impact"]
GENDER_OPTIONS = ["female", "male", "non-binary"]
SEEKING_PROFILES: dict[str, list[list[str]]] = {
    "female": [["male"], ["female"], ["male", "female"], []],
    "male": [["female"], ["male"], ["female", "male"], []],
    "non-binary": [["non-binary"], ["female", "male", "non-binary"], []],
}


def _birthdate_for_age(rng: random.Random, age: int, today: date) -> date:
    return today - timedelta(days=365 * age + rng.randint(10, 350))


def seed_dummy_data(
    db,
    *,
    prompt_id: str,
    n_users: int = 40,
    reset: bool = False,
    seed: int = 42,
    today: date | None = None,
) -> dict[str, Any]:
    rng = random.Random(seed)
    today = today or date.today()

    if reset:
        for model in (Notification, Nudge, WeeklyMatch, PromptAnswer, BlockRelation, Preferences, Profile):
            db.execute(delete(model))
        db.execute(delete(WeeklyPrompt).where(WeeklyPrompt.prompt_id == prompt_id))

    if db.get(WeeklyPrompt, prompt_id) is None:
        db.add(WeeklyPrompt(prompt_id=prompt_id, question="What is your ideal Saturday in Ithaca?", release_date=today, status="active", active=True))

    genders: Counter = Counter()
    now = datetime.now(timezone.utc)
    for idx in range(n_users):
        netid = f"seed{idx:03d}"
        gender = rng.choice(GENDER_OPTIONS)
        genders[gender] += 1
        age = rng.randint(18, 24)
        db.merge(
            Profile(
                netid=netid,
                first_name=f"Seed {idx}",
                gender=gender,
                birthdate=_birthdate_for_age(rng, age, today),
                year=today.year + rng.randint(0, 4),
                school=rng.choice(SCHOOLS),
                majors=rng.sample(MAJORS, k=rng.randint(1, 2)),
                interests=rng.sample(INTERESTS, k=rng.randint(2, 5)),
                clubs=rng.sample(CLUBS, k=rng.randint(0, 2)),
            )
        )
        db.merge(
            Preferences(
                netid=netid,
                age_min=18,
                age_max=rng.randint(22, 26),
                genders=rng.choice(SEEKING_PROFILES[gender]),
                years=[],
                schools=[],
                majors=[],
            )
        )
        db.merge(
            PromptAnswer(
                id=f"{netid}_{prompt_id}",
                netid=netid,
                prompt_id=prompt_id,
                answer="Farmers market then Cascadilla Gorge",
                created_at=now + timedelta(seconds=idx),
            )
        )
    db.commit()
    return {"prompt_id": prompt_id, "users": n_users, "genders": dict(genders)}
