from __future__ import annotations

import argparse
import logging
import os
import sys

# Run from backend/ or inside the container (/app).
sys.path.append("/app")
sys.path.append(os.getcwd())

from app.db.session import SessionLocal
from app.services.ranking import RankingService


def main() -> None:
    p = argparse.ArgumentParser(description="Recompute the leaderboard best-score index from quiz_results.")
    p.add_argument("--verbose", action="store_true", help="Log at DEBUG level")
    args = p.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    with SessionLocal() as db:
        written = RankingService(db).rebuild_best_scores()
    print(f"best-score rows written: {written}")


if __name__ == "__main__":
    main()
