import json
import os
from typing import Any

DATABASE_URL = os.getenv("DATABASE_URL", "postgresql+psycopg2://postgres:postgres@db:5432/redi")
ADMIN_TOKEN = os.getenv("ADMIN_TOKEN", "")
JWT_SECRET = os.getenv("JWT_SECRET", "")

MATCH_TIMEZONE = os.getenv("MATCH_TIMEZONE", "America/New_York")
MATCH_CAPACITY = int(os.getenv("MATCH_CAPACITY", "3"))
PROFILE_BATCH_SIZE = int(os.getenv("PROFILE_BATCH_SIZE", "10"))
HISTORY_LOOKBACK_PROMPTS = int(os.getenv("HISTORY_LOOKBACK_PROMPTS", "20"))
POOL_FETCH_WORKERS = int(os.getenv("POOL_FETCH_WORKERS", "4"))
MATCH_RELAXED_RETRY = os.getenv("MATCH_RELAXED_RETRY", "false").lower() == "true"

SCORING_WEIGHTS: dict[str, Any] = {
    "SAME_SCHOOL": int(os.getenv("SAME_SCHOOL_POINTS", "20")),
    "MAJOR_EACH": 5,
    "MAJOR_CAP": 15,
    "YEAR_MAX": 15,
    "YEAR_STEP": 3,
    "AGE_MAX": 15,
    "AGE_STEP": 2,
    "INTEREST_EACH": 4,
    "INTEREST_CAP": 20,
    "CLUB_EACH": 5,
    "CLUB_CAP": 15,
}

if os.getenv("SCORING_WEIGHTS_JSON"):
    try:
        SCORING_WEIGHTS.update(json.loads(os.getenv("SCORING_WEIGHTS_JSON", "{}")))
    except json.JSONDecodeError:
        pass
