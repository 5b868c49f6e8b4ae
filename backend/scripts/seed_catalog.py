from __future__ import annotations

import argparse
import logging
import pathlib
import sys

from sqlalchemy import select

# Ensure imports work when running from any CWD and in Docker (/app)
_HERE = pathlib.Path(__file__).resolve()
_BACKEND_ROOT = _HERE.parents[1]
sys.path.insert(0, str(_BACKEND_ROOT))

from app.db.session import SessionLocal
from app.models.gamification import Badge
from app.services.achievements import ACHIEVEMENT_RULES, ensure_achievement


log = logging.getLogger("learnquest.seed")

BADGE_LADDER: tuple[tuple[str, int], ...] = (
    ("Bronze Learner", 100),
    ("Silver Learner", 500),
    ("Gold Learner", 1200),
    ("Platinum Learner", 2300),
    ("Diamond Learner", 3800),
)


def seed_badges(db) -> int:
    changed = 0
    for name, xp_required in BADGE_LADDER:
        badge = db.scalar(select(Badge).where(Badge.name == name))
        if badge is None:
            db.add(Badge(name=name, xp_required=xp_required))
            changed += 1
        elif badge.xp_required != xp_required:
            badge.xp_required = xp_required
            changed += 1
    db.flush()
    return changed


def seed_achievements(db) -> int:
    for rule in ACHIEVEMENT_RULES:
        ensure_achievement(db, rule)
    return len(ACHIEVEMENT_RULES)


def main() -> None:
    parser = argparse.ArgumentParser(description="Upsert the badge ladder and achievement catalog.")
    parser.add_argument("--dry-run", action="store_true", help="roll back instead of committing")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")

    db = SessionLocal()
    try:
        badges = seed_badges(db)
        achievements = seed_achievements(db)
        if args.dry_run:
            db.rollback()
        else:
            db.commit()
        log.info("badges changed=%s achievements upserted=%s dry_run=%s", badges, achievements, args.dry_run)
    finally:
        db.close()


if __name__ == "__main__":
    main()
