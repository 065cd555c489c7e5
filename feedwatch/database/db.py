"""
SQLite helpers — connection, init, content/author/topic reads and writes.
All public functions accept an open sqlite3.Connection so callers control
the transaction boundary via the get_db() context manager.
"""
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Generator, Iterable

from config.settings import DB_PATH
from feedwatch.models import AuthorRecord, ContentRecord, Platform, Topic


# ── Connection ─────────────────────────────────────────────────────────────────

@contextmanager
def get_db() -> Generator[sqlite3.Connection, None, None]:
    """Yield an open connection; commit on clean exit, rollback on exception."""
    conn = sqlite3.connect(DB_PATH, detect_types=sqlite3.PARSE_DECLTYPES)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    conn.execute("PRAGMA journal_mode = WAL")
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


# ── Schema init ────────────────────────────────────────────────────────────────

def init_db() -> None:
    """Create tables and indexes from schema.sql. Safe to call repeatedly."""
    Path(DB_PATH).parent.mkdir(parents=True, exist_ok=True)
    schema_path = Path(__file__).parent / "schema.sql"
    sql = schema_path.read_text(encoding="utf-8")
    with get_db() as conn:
        conn.executescript(sql)


# ── Topics ─────────────────────────────────────────────────────────────────────

def upsert_topic(conn: sqlite3.Connection, name: str, active: bool = True) -> int:
    """Insert topic if it doesn't exist, refresh its active flag; return its id."""
    conn.execute(
        """INSERT INTO topics (name, active) VALUES (?, ?)
           ON CONFLICT(name) DO UPDATE SET active = excluded.active""",
        (name, int(active)),
    )
    row = conn.execute("SELECT id FROM topics WHERE name = ?", (name,)).fetchone()
    return row["id"]


def list_active_topics(conn: sqlite3.Connection) -> list[Topic]:
    rows = conn.execute(
        "SELECT id, name, active FROM topics WHERE active = 1 ORDER BY id"
    ).fetchall()
    return [_row_to_topic(r) for r in rows]


def get_topic(conn: sqlite3.Connection, topic_id: int) -> Topic | None:
    row = conn.execute(
        "SELECT id, name, active FROM topics WHERE id = ?", (topic_id,)
    ).fetchone()
    return _row_to_topic(row) if row else None


# ── Content ────────────────────────────────────────────────────────────────────

def content_exists(conn: sqlite3.Connection, platform: Platform, external_id: str) -> bool:
    row = conn.execute(
        "SELECT 1 FROM content_records WHERE platform = ? AND external_id = ? LIMIT 1",
        (Platform(platform).value, external_id),
    ).fetchone()
    return row is not None


def insert_content_batch(conn: sqlite3.Connection, records: Iterable[ContentRecord]) -> int:
    """
    INSERT OR IGNORE a page worth of ContentRecords in the caller's transaction.
    Returns the number of rows actually inserted (duplicates are not counted).
    """
    inserted = 0
    for record in records:
        cur = conn.execute(
            """INSERT OR IGNORE INTO content_records
                   (platform, external_id, author_external_id,
                    author_profile_image_url, author_display_name,
                    text_body, title, image_url, video_url,
                    like_count, comment_count, view_count,
                    published_at, canonical_url)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                record.platform.value,
                record.external_id,
                record.author_external_id,
                record.author_profile_image_url,
                record.author_display_name,
                record.text_body,
                record.title,
                record.image_url,
                record.video_url,
                record.like_count,
                record.comment_count,
                record.view_count,
                _iso(record.published_at),
                record.canonical_url,
            ),
        )
        if cur.rowcount != 1:
            continue
        inserted += 1
        conn.executemany(
            "INSERT OR IGNORE INTO content_topics (content_id, topic_id) VALUES (?, ?)",
            [(cur.lastrowid, topic_id) for topic_id in sorted(record.topic_refs)],
        )
    return inserted


def add_topic_ref(
    conn: sqlite3.Connection, platform: Platform, external_id: str, topic_id: int
) -> bool:
    """Add topic_id to an existing record's topic set. True if it was not there yet."""
    cur = conn.execute(
        """INSERT OR IGNORE INTO content_topics (content_id, topic_id)
           SELECT id, ? FROM content_records WHERE platform = ? AND external_id = ?""",
        (topic_id, Platform(platform).value, external_id),
    )
    return cur.rowcount == 1


def get_content_topics(conn: sqlite3.Connection, platform: Platform, external_id: str) -> set[int]:
    rows = conn.execute(
        """SELECT ct.topic_id FROM content_topics ct
           JOIN content_records cr ON cr.id = ct.content_id
           WHERE cr.platform = ? AND cr.external_id = ?""",
        (Platform(platform).value, external_id),
    ).fetchall()
    return {r["topic_id"] for r in rows}


def count_content(conn: sqlite3.Connection, platform: Platform | None = None) -> int:
    if platform is None:
        row = conn.execute("SELECT COUNT(*) AS cnt FROM content_records").fetchone()
    else:
        row = conn.execute(
            "SELECT COUNT(*) AS cnt FROM content_records WHERE platform = ?",
            (Platform(platform).value,),
        ).fetchone()
    return row["cnt"]


# ── Authors ────────────────────────────────────────────────────────────────────

def get_author(
    conn: sqlite3.Connection, platform: Platform, author_external_id: str
) -> AuthorRecord | None:
    row = conn.execute(
        "SELECT * FROM authors WHERE platform = ? AND author_external_id = ?",
        (Platform(platform).value, author_external_id),
    ).fetchone()
    return _row_to_author(row) if row else None


def insert_author(conn: sqlite3.Connection, author: AuthorRecord) -> AuthorRecord:
    """
    Insert-if-absent keyed on (platform, author_external_id), then return whatever is stored.
    A second writer for the same id gets the first writer's row back.
    """
    conn.execute(
        """INSERT OR IGNORE INTO authors
               (author_external_id, platform, username, profile_image_url,
                follower_count, post_count, profile_url)
           VALUES (?, ?, ?, ?, ?, ?, ?)""",
        (
            author.author_external_id,
            author.platform.value,
            author.username,
            author.profile_image_url,
            author.follower_count,
            author.post_count,
            author.profile_url,
        ),
    )
    return get_author(conn, author.platform, author.author_external_id)


# ── Helpers ────────────────────────────────────────────────────────────────────

def _iso(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _row_to_topic(row: sqlite3.Row) -> Topic:
    return Topic(id=row["id"], name=row["name"], active=bool(row["active"]))


def _row_to_author(row: sqlite3.Row) -> AuthorRecord:
    return AuthorRecord(
        author_external_id = row["author_external_id"],
        platform           = Platform(row["platform"]),
        username           = row["username"],
        profile_image_url  = row["profile_image_url"],
        follower_count     = row["follower_count"],
        post_count         = row["post_count"],
        profile_url        = row["profile_url"],
    )
