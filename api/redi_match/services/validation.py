import json
import logging

from ..schemas import MatchRecord, ValidationReport
from .match_store import MatchStore

logger = logging.getLogger(__name__)


def _is_blank(value) -> bool:
    return not isinstance(value, str) or not value.strip()


def check_records(records: list[MatchRecord]) -> list[str]:
    errors: list[str] = []
    by_user: dict[str, list] = {}

    for record in records:
        matches = list(record.matches or [])
        invalid = [m for m in matches if _is_blank(m)]
        if invalid:
            errors.append(f"{record.netid} has invalid match values: {json.dumps(invalid)}")
        if record.netid in matches:
            errors.append(f"{record.netid} is matched with themselves")
        dupes = sorted({m for m in matches if not _is_blank(m) and matches.count(m) > 1})
        if dupes:
            errors.append(f"{record.netid} has duplicate matches: {json.dumps(dupes)}")
        if len(record.revealed) != len(matches):
            errors.append(f"{record.netid} has {len(matches)} matches but {len(record.revealed)} revealed flags")
        if record.chat_unlocked is not None and len(record.chat_unlocked) != len(matches):
            errors.append(f"{record.netid} has {len(matches)} matches but {len(record.chat_unlocked)} chat_unlocked flags")
        by_user[record.netid] = matches

    for user_a, a_matches in by_user.items():
        for user_b in a_matches:
            if _is_blank(user_b) or user_b == user_a:
                continue
            b_matches = by_user.get(user_b)
            if b_matches is None:
                errors.append(f"{user_a} → {user_b}, but {user_b} has no match document")
            elif user_a not in b_matches:
                errors.append(f"{user_a} → {user_b}, but {user_b} ↛ {user_a} (NON-MUTUAL)")
    return errors


def validate_match_mutuality(match_store: MatchStore, prompt_id: str) -> ValidationReport:
    records = match_store.list_matches_for_prompt(prompt_id)
    errors = check_records(records)
    if errors:
        logger.warning("[VALIDATE] prompt=%s records=%d errors=%d", prompt_id, len(records), len(errors))
        for error in errors:
            logger.warning("[VALIDATE]   %s", error)
    else:
        logger.info("[VALIDATE] prompt=%s records=%d all matches mutual and valid", prompt_id, len(records))
    return ValidationReport(is_valid=not errors, errors=errors)
