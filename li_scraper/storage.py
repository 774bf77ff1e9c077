from __future__ import annotations

import json
import sqlite3
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from .errors import ProfileNotFoundError, ScrapeInProgressError, StorageError
from .post import CanonicalPost, PostAnalysis
from .storage_schema import initialize_sqlite

TERMINAL_STATUSES: frozenset[str] = frozenset({"completed", "failed"})


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _json_dumps(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


@dataclass(frozen=True)
class ProfileRecord:
    id: str
    linkedin_url: str
    full_name: str | None
    headline: str | None
    scrape_status: str
    last_scraped_at: str | None
    created_at: str


@dataclass(frozen=True)
class ProfileStatus:
    status: str
    last_scraped_at: str | None


@dataclass(frozen=True)
class StoredPost:
    id: int
    profile_id: str
    scraped_at: str
    post: CanonicalPost
    analysis: PostAnalysis | None


class SQLiteProfileStore:
    """
    Persistence for tracked profiles, their scraped posts and post analyses.

    Writes raise StorageError; callers decide whether a failure is fatal.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._conn.row_factory = sqlite3.Row

    @classmethod
    def open(cls, path: str | Path) -> "SQLiteProfileStore":
        db_path = str(path)
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        try:
            conn = sqlite3.connect(db_path)
        except sqlite3.DatabaseError as e:
            raise StorageError(f"Failed to open sqlite database: {db_path}: {e}") from e

        try:
            initialize_sqlite(conn)
        except Exception as e:
            conn.close()
            raise StorageError(f"Failed to initialize sqlite schema: {e}") from e

        return cls(conn)

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "SQLiteProfileStore":
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.close()

    # Profiles

    def create_profile(
        self,
        *,
        linkedin_url: str,
        full_name: str | None = None,
        headline: str | None = None,
        profile_id: str | None = None,
        created_at: str | None = None,
    ) -> ProfileRecord:
        url = (linkedin_url or "").strip()
        if not url:
            raise ValueError("linkedin_url must be non-empty")

        pid = (profile_id or uuid.uuid4().hex).strip()
        ts = (created_at or _utc_now_iso()).strip()

        try:
            with self._conn:
                self._conn.execute(
                    """
                    INSERT INTO scraped_profiles(
                      id, linkedin_url, full_name, headline, scrape_status, created_at
                    ) VALUES (?, ?, ?, ?, 'pending', ?)
                    """.strip(),
                    (pid, url, (full_name or "").strip() or None, (headline or "").strip() or None, ts),
                )
        except sqlite3.IntegrityError as e:
            raise StorageError(f"Profile already exists: {pid}") from e
        except sqlite3.DatabaseError as e:
            raise StorageError(f"Failed to create profile: {e}") from e

        record = self.get_profile(pid)
        if record is None:
            raise StorageError("Failed to read profile after insert")
        return record

    def get_profile(self, profile_id: str) -> ProfileRecord | None:
        row = self._conn.execute(
            """
            SELECT id, linkedin_url, full_name, headline, scrape_status, last_scraped_at, created_at
            FROM scraped_profiles
            WHERE id = ?
            """.strip(),
            ((profile_id or "").strip(),),
        ).fetchone()
        if row is None:
            return None

        return ProfileRecord(
            id=str(row["id"]),
            linkedin_url=str(row["linkedin_url"]),
            full_name=row["full_name"],
            headline=row["headline"],
            scrape_status=str(row["scrape_status"]),
            last_scraped_at=row["last_scraped_at"],
            created_at=str(row["created_at"]),
        )

    def get_profile_status(self, profile_id: str) -> ProfileStatus | None:
        row = self._conn.execute(
            "SELECT scrape_status, last_scraped_at FROM scraped_profiles WHERE id = ?",
            ((profile_id or "").strip(),),
        ).fetchone()
        if row is None:
            return None
        return ProfileStatus(status=str(row["scrape_status"]), last_scraped_at=row["last_scraped_at"])

    def claim_profile_run(
        self,
        profile_id: str,
        *,
        run_token: str,
        stale_after_seconds: float | None = None,
        now: datetime | None = None,
    ) -> None:
        """
        Mark the profile as scraping and take its run token.

        The update only applies when no other run holds the token, or when the
        holder started more than stale_after_seconds ago.
        """
        pid = (profile_id or "").strip()
        token = (run_token or "").strip()
        if not pid or not token:
            raise ValueError("profile_id and run_token must be non-empty")

        started = now or datetime.now(timezone.utc)
        stale_cutoff: str | None = None
        if stale_after_seconds is not None:
            stale_cutoff = (started - timedelta(seconds=float(stale_after_seconds))).isoformat()

        try:
            with self._conn:
                cur = self._conn.execute(
                    """
                    UPDATE scraped_profiles
                    SET scrape_status = 'scraping', run_token = ?, run_started_at = ?
                    WHERE id = ?
                      AND (
                        run_token IS NULL
                        OR (? IS NOT NULL AND run_started_at < ?)
                      )
                    """.strip(),
                    (token, started.isoformat(), pid, stale_cutoff, stale_cutoff),
                )
        except sqlite3.DatabaseError as e:
            raise StorageError(f"Failed to claim profile run: {e}") from e

        if cur.rowcount == 1:
            return
        if self.get_profile_status(pid) is None:
            raise ProfileNotFoundError(pid)
        raise ScrapeInProgressError(pid)

    def touch_profile_run(
        self,
        profile_id: str,
        *,
        run_token: str,
        now: datetime | None = None,
    ) -> bool:
        """
        Move the run's start marker forward so a live run is never taken as stale.

        Returns False when the token no longer belongs to this run.
        """
        ts = (now or datetime.now(timezone.utc)).isoformat()

        try:
            with self._conn:
                cur = self._conn.execute(
                    "UPDATE scraped_profiles SET run_started_at = ? WHERE id = ? AND run_token = ?",
                    (ts, (profile_id or "").strip(), (run_token or "").strip()),
                )
        except sqlite3.DatabaseError as e:
            raise StorageError(f"Failed to refresh profile run: {e}") from e

        return cur.rowcount == 1

    def finish_profile_run(
        self,
        profile_id: str,
        *,
        run_token: str,
        status: str,
        last_scraped_at: str | None = None,
    ) -> bool:
        """
        Write a terminal status and release the run token.

        Returns False when the token no longer belongs to this run.
        """
        st = (status or "").strip()
        if st not in TERMINAL_STATUSES:
            raise ValueError(f"status must be one of {sorted(TERMINAL_STATUSES)}")

        try:
            with self._conn:
                cur = self._conn.execute(
                    """
                    UPDATE scraped_profiles
                    SET scrape_status = ?,
                        last_scraped_at = COALESCE(?, last_scraped_at),
                        run_token = NULL,
                        run_started_at = NULL
                    WHERE id = ? AND run_token = ?
                    """.strip(),
                    (st, last_scraped_at, (profile_id or "").strip(), (run_token or "").strip()),
                )
        except sqlite3.DatabaseError as e:
            raise StorageError(f"Failed to update profile status: {e}") from e

        return cur.rowcount == 1

    # Posts

    def insert_post(
        self,
        profile_id: str,
        post: CanonicalPost,
        analysis: PostAnalysis | None = None,
        *,
        scraped_at: str | None = None,
        analyzed_at: str | None = None,
    ) -> int:
        """
        Store a post and, when given, its analysis in one transaction.

        Either both rows are written or neither is. Returns the post id.
        """
        ts = (scraped_at or _utc_now_iso()).strip()

        try:
            with self._conn:
                post_id = self._insert_post_row((profile_id or "").strip(), post, ts)
                if analysis is not None:
                    self._insert_analysis_row(post_id, analysis, (analyzed_at or ts).strip())
        except sqlite3.IntegrityError as e:
            raise StorageError(
                "Failed to insert post; ensure scraped_profiles contains profile_id first"
            ) from e
        except (sqlite3.Error, UnicodeError) as e:
            # Text that cannot be encoded as UTF-8 (lone surrogates) fails at bind time.
            raise StorageError(f"Failed to insert post: {e}") from e

        return post_id

    def _insert_post_row(self, profile_id: str, post: CanonicalPost, scraped_at: str) -> int:
        cur = self._conn.execute(
            """
            INSERT INTO scraped_posts(
              profile_id, linkedin_post_id, linkedin_url, content, posted_at,
              likes, comments, reposts, has_images, num_images, scraped_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """.strip(),
            (
                profile_id,
                post.external_id,
                post.url,
                post.content,
                post.posted_at,
                post.likes,
                post.comments,
                post.reposts,
                1 if post.has_images else 0,
                post.image_count,
                scraped_at,
            ),
        )
        if cur.lastrowid is None:
            raise sqlite3.DatabaseError("no row id after post insert")
        return int(cur.lastrowid)

    def _insert_analysis_row(self, post_id: int, analysis: PostAnalysis, analyzed_at: str) -> None:
        self._conn.execute(
            """
            INSERT INTO post_analysis(
              scraped_post_id, hook, word_count, has_list_format,
              topic_category, companies_mentioned_json, cta, analyzed_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """.strip(),
            (
                int(post_id),
                analysis.hook,
                analysis.word_count,
                1 if analysis.has_list_format else 0,
                analysis.topic_category,
                _json_dumps(list(analysis.mentioned_companies)),
                analysis.call_to_action,
                analyzed_at,
            ),
        )

    def has_external_id(self, profile_id: str, external_id: str) -> bool:
        ext = (external_id or "").strip()
        if not ext:
            return False

        row = self._conn.execute(
            "SELECT 1 FROM scraped_posts WHERE profile_id = ? AND linkedin_post_id = ? LIMIT 1",
            ((profile_id or "").strip(), ext),
        ).fetchone()
        return row is not None

    def post_count(self, profile_id: str) -> int:
        row = self._conn.execute(
            "SELECT COUNT(1) AS n FROM scraped_posts WHERE profile_id = ?",
            ((profile_id or "").strip(),),
        ).fetchone()
        return int(row["n"]) if row is not None else 0

    def posts_with_analysis(self, profile_id: str) -> list[StoredPost]:
        """Posts for a profile, newest first, each with its latest analysis (if any)."""
        rows = self._conn.execute(
            """
            SELECT
              p.id, p.profile_id, p.linkedin_post_id, p.linkedin_url, p.content, p.posted_at,
              p.likes, p.comments, p.reposts, p.has_images, p.num_images, p.scraped_at,
              a.id AS analysis_id, a.hook, a.word_count, a.has_list_format,
              a.topic_category, a.companies_mentioned_json, a.cta
            FROM scraped_posts p
            LEFT JOIN post_analysis a
              ON a.id = (
                SELECT MAX(a2.id) FROM post_analysis a2 WHERE a2.scraped_post_id = p.id
              )
            WHERE p.profile_id = ?
            ORDER BY p.posted_at DESC, p.id ASC
            """.strip(),
            ((profile_id or "").strip(),),
        ).fetchall()

        out: list[StoredPost] = []
        for r in rows:
            post = CanonicalPost(
                external_id=str(r["linkedin_post_id"]),
                url=str(r["linkedin_url"]),
                content=str(r["content"]),
                posted_at=r["posted_at"],
                likes=int(r["likes"]),
                comments=int(r["comments"]),
                reposts=int(r["reposts"]),
                has_images=bool(r["has_images"]),
                image_count=int(r["num_images"]),
            )

            analysis: PostAnalysis | None = None
            if r["analysis_id"] is not None:
                analysis = PostAnalysis(
                    hook=str(r["hook"]),
                    word_count=int(r["word_count"]),
                    has_list_format=bool(r["has_list_format"]),
                    topic_category=str(r["topic_category"]),  # type: ignore[arg-type]
                    mentioned_companies=tuple(_load_companies(r["companies_mentioned_json"])),
                    call_to_action=str(r["cta"]),
                )

            out.append(
                StoredPost(
                    id=int(r["id"]),
                    profile_id=str(r["profile_id"]),
                    scraped_at=str(r["scraped_at"]),
                    post=post,
                    analysis=analysis,
                )
            )
        return out


def _load_companies(raw: str | None) -> list[str]:
    try:
        value = json.loads(raw or "[]")
    except json.JSONDecodeError as e:
        raise StorageError(f"Stored companies_mentioned_json could not be parsed: {e}") from e
    if not isinstance(value, list):
        return []
    return [str(v) for v in value if isinstance(v, str)]
