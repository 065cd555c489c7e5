"""
Initialise the database and seed the topics table from config/topics.yaml.
Safe to run multiple times — existing topics only get their active flag refreshed.

Usage:
    python scripts/setup_db.py
"""
import sys
from pathlib import Path

import yaml

# Allow imports from the project root
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from config.settings import DATA_DIR, DB_PATH, TOPICS_FILE
from feedwatch.database.db import get_db, init_db, upsert_topic


def seed_topics(yaml_path: Path) -> int:
    """Parse the topics YAML and upsert every entry. Returns count upserted."""
    data = yaml.safe_load(yaml_path.read_text(encoding="utf-8")) or {}
    topics = data.get("topics", [])
    count = 0
    with get_db() as conn:
        for topic in topics:
            name = str(topic["name"]).strip()
            if not name:
                continue
            upsert_topic(conn, name, bool(topic.get("active", True)))
            count += 1
    return count


def main() -> None:
    DATA_DIR.mkdir(parents=True, exist_ok=True)

    print(f"Database path: {DB_PATH}")

    print("Initialising schema…")
    init_db()
    print("  Schema ready.")

    if not TOPICS_FILE.exists():
        print(f"  [WARN] {TOPICS_FILE} not found — no topics seeded")
        return
    n = seed_topics(TOPICS_FILE)
    print(f"  {n} topics seeded.")

    print("Done.")


if __name__ == "__main__":
    main()
