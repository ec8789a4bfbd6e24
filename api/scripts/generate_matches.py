import argparse
import json
import logging
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from redi_match.config import DATABASE_URL
from redi_match.database import make_engine, make_session_factory
from redi_match.errors import AlreadyMatchedError
from redi_match.services.match_store import MatchStore
from redi_match.services.matching import MatchingContext, generate_matches_for_prompt
from redi_match.services.validation import validate_match_mutuality


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate weekly matches for a prompt and validate mutuality")
    parser.add_argument("--prompt-id", type=str, required=True)
    parser.add_argument("--database-url", type=str, default=DATABASE_URL)
    parser.add_argument("--validate-only", action="store_true")
    parser.add_argument("--relaxed-retry", action="store_true")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format="%(levelname)s %(name)s %(message)s")

    session_factory = make_session_factory(make_engine(args.database_url))
    store = MatchStore(session_factory)

    if not args.validate_only:
        ctx = MatchingContext(session_factory=session_factory, match_store=store, relaxed_retry=args.relaxed_retry)
        try:
            count = generate_matches_for_prompt(ctx, args.prompt_id)
        except AlreadyMatchedError as exc:
            print(f"Refusing to regenerate: {exc.detail}", file=sys.stderr)
            sys.exit(2)
        print(f"Matched users: {count}")

    report = validate_match_mutuality(store, args.prompt_id)
    print(json.dumps(report.model_dump(), indent=2, ensure_ascii=False))
    if not report.is_valid:
        sys.exit(1)


if __name__ == "__main__":
    main()
