import argparse
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from redi_match.config import DATABASE_URL
from redi_match.database import init_schema, make_engine, make_session_factory
from redi_match.services.seeding import seed_dummy_data


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed dummy Redi users who answered a prompt")
    parser.add_argument("--prompt-id", type=str, required=True)
    parser.add_argument("--n-users", type=int, default=40)
    parser.add_argument("--reset", action="store_true")
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--database-url", type=str, default=DATABASE_URL)
    args = parser.parse_args()

    engine = make_engine(args.database_url)
    init_schema(engine)
    session_factory = make_session_factory(engine)
    with session_factory() as db:
        summary = seed_dummy_data(db, prompt_id=args.prompt_id, n_users=args.n_users, reset=args.reset, seed=args.seed)

    print("Seed completed")
    for k, v in summary.items():
        print(f"- {k}: {v}")


if __name__ == "__main__":
    main()
