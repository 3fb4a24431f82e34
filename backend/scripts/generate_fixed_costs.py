from __future__ import annotations

import argparse
import logging
from datetime import date

from app.db.session import SessionLocal
from app.services.fixed_costs import generate_fixed_cost_transactions


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create this period's PENDING fixed-cost expenses.")
    parser.add_argument(
        "--as-of",
        type=date.fromisoformat,
        default=None,
        help="Run as if today were this ISO date (default: today).",
    )
    return parser.parse_args()


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    args = _parse_args()
    today = args.as_of or date.today()
    with SessionLocal() as db:
        run = generate_fixed_cost_transactions(db, today=today)
        db.commit()
        print(
            f"Fixed costs for {today.isoformat()}: "
            f"{len(run.created)} created, {len(run.already_generated)} already generated, "
            f"{len(run.skipped)} skipped."
        )


if __name__ == "__main__":
    main()
