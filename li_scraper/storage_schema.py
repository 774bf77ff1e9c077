from __future__ import annotations

import sqlite3
from datetime import datetime, timezone

SCHEMA_VERSION = 1


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def initialize_sqlite(conn: sqlite3.Connection) -> None:
    """
    Configure the connection and bring the schema up to SCHEMA_VERSION.

    Safe to call on every startup.
    """
    _configure_connection(conn)
    _apply_migrations(conn)


def _configure_connection(conn: sqlite3.Connection) -> None:
    conn.execute("PRAGMA foreign_keys = ON")
    conn.execute("PRAGMA busy_timeout = 5000")

    # In-memory databases reject WAL.
    try:
        conn.execute("PRAGMA journal_mode = WAL")
        conn.execute("PRAGMA synchronous = NORMAL")
    except sqlite3.DatabaseError:
        pass


_MIGRATIONS: dict[int, str] = {
    1: """
CREATE TABLE IF NOT EXISTS scraped_profiles (
  id TEXT PRIMARY KEY,
  linkedin_url TEXT NOT NULL,
  full_name TEXT,
  headline TEXT,
  scrape_status TEXT NOT NULL DEFAULT 'pending'
    CHECK (scrape_status IN ('pending', 'scraping', 'completed', 'failed')),
  last_scraped_at TEXT,
  run_token TEXT,
  run_started_at TEXT,
  created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS scraped_posts (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  profile_id TEXT NOT NULL,
  linkedin_post_id TEXT NOT NULL,
  linkedin_url TEXT NOT NULL,
  content TEXT NOT NULL,
  posted_at TEXT,
  likes INTEGER NOT NULL DEFAULT 0,
  comments INTEGER NOT NULL DEFAULT 0,
  reposts INTEGER NOT NULL DEFAULT 0,
  has_images INTEGER NOT NULL DEFAULT 0,
  num_images INTEGER NOT NULL DEFAULT 0,
  scraped_at TEXT NOT NULL,
  FOREIGN KEY (profile_id) REFERENCES scraped_profiles(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_scraped_posts_profile_id
  ON scraped_posts(profile_id);

CREATE INDEX IF NOT EXISTS idx_scraped_posts_linkedin_post_id
  ON scraped_posts(profile_id, linkedin_post_id);

CREATE TABLE IF NOT EXISTS post_analysis (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  scraped_post_id INTEGER NOT NULL,
  hook TEXT NOT NULL,
  word_count INTEGER NOT NULL,
  has_list_format INTEGER NOT NULL,
  topic_category TEXT NOT NULL,
  companies_mentioned_json TEXT NOT NULL,
  cta TEXT NOT NULL,
  analyzed_at TEXT NOT NULL,
  FOREIGN KEY (scraped_post_id) REFERENCES scraped_posts(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_post_analysis_scraped_post_id
  ON post_analysis(scraped_post_id);
""".strip()
}


def _apply_migrations(conn: sqlite3.Connection) -> None:
    with conn:
        conn.execute(
            "CREATE TABLE IF NOT EXISTS schema_migrations (version INTEGER PRIMARY KEY, applied_at TEXT NOT NULL)"
        )

    rows = conn.execute("SELECT version FROM schema_migrations").fetchall()
    applied: set[int] = {int(r[0]) for r in rows}

    for version in range(1, SCHEMA_VERSION + 1):
        if version in applied:
            continue

        script = _MIGRATIONS.get(version)
        if not script:
            raise RuntimeError(f"Missing migration script for version={version}")

        with conn:
            conn.executescript(script)
            conn.execute(
                "INSERT INTO schema_migrations(version, applied_at) VALUES (?, ?)",
                (version, _utc_now_iso()),
            )
