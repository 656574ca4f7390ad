"""Persistent store for profiles, quiz attempts and the question catalog.

Rows are validated into typed records here, so the rest of the engine never
sees a loose sqlite3.Row. Every sqlite3 failure surfaces as PersistenceError.
"""
import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime

from uniportal.db import get_connection
from uniportal.errors import PersistenceError
from uniportal.models import Attempt, Chapter, Question, Subject, UserProgression

logger = logging.getLogger(__name__)


@contextmanager
def connect(db_path: str):
    try:
        conn = get_connection(db_path)
    except sqlite3.Error as e:
        raise PersistenceError(f"Could not open {db_path}: {e}") from e
    try:
        yield conn
    except sqlite3.Error as e:
        raise PersistenceError(str(e)) from e
    finally:
        conn.close()


# --- Profiles -----------------------------------------------------------


def get_or_create_user(db_path: str, username: str) -> int:
    username = username.strip()
    if not username:
        raise ValueError("username must not be empty")
    with connect(db_path) as conn:
        row = conn.execute("SELECT id FROM profiles WHERE username = ?", (username,)).fetchone()
        if row:
            return row["id"]
        cur = conn.execute(
            "INSERT INTO profiles (username, xp, created_at) VALUES (?, 0, ?)",
            (username, datetime.now().isoformat()),
        )
        conn.commit()
        logger.info("Created profile %r (id=%s)", username, cur.lastrowid)
        return cur.lastrowid


def get_username(db_path: str, user_id: int) -> str | None:
    with connect(db_path) as conn:
        row = conn.execute("SELECT username FROM profiles WHERE id = ?", (user_id,)).fetchone()
    return row["username"] if row else None


def fetch_total_xp(db_path: str, user_id: int) -> int:
    with connect(db_path) as conn:
        row = conn.execute("SELECT xp FROM profiles WHERE id = ?", (user_id,)).fetchone()
    if row is None:
        raise PersistenceError(f"No profile with id {user_id}")
    return row["xp"]


def fetch_progression(db_path: str, user_id: int) -> UserProgression:
    return UserProgression(user_id=user_id, total_xp=fetch_total_xp(db_path, user_id))


def _increment_xp(conn: sqlite3.Connection, user_id: int, delta: int) -> int:
    # Single UPDATE so concurrent awards never lose an increment
    cur = conn.execute("UPDATE profiles SET xp = xp + ? WHERE id = ?", (delta, user_id))
    if cur.rowcount == 0:
        raise PersistenceError(f"No profile with id {user_id}")
    return conn.execute("SELECT xp FROM profiles WHERE id = ?", (user_id,)).fetchone()["xp"]


def increment_xp(db_path: str, user_id: int, delta: int) -> int:
    """Add delta XP to a profile and return the new total."""
    if delta < 0:
        raise ValueError("XP can only be incremented")
    with connect(db_path) as conn:
        with conn:
            total = _increment_xp(conn, user_id, delta)
    return total


def get_top_rankings(db_path: str, limit: int = 5) -> list[dict]:
    with connect(db_path) as conn:
        rows = conn.execute(
            "SELECT id, username, xp FROM profiles ORDER BY xp DESC, username ASC LIMIT ?",
            (limit,),
        ).fetchall()
    return [dict(r) for r in rows]


# --- Attempts -------------------------------------------------------------


def _row_to_attempt(row: sqlite3.Row) -> Attempt:
    try:
        return Attempt(
            id=row["id"],
            subject_id=row["subject_id"],
            score=row["score"],
            total_questions=row["total_questions"],
            duration_seconds=row["time_seconds"],
            is_mastery=bool(row["is_mastery"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )
    except (TypeError, ValueError) as e:
        raise PersistenceError(f"Malformed attempt row {row['id']}: {e}") from e


def fetch_attempts(db_path: str, user_id: int) -> list[Attempt]:
    """All attempts for a user, newest first."""
    with connect(db_path) as conn:
        rows = conn.execute(
            "SELECT * FROM quiz_performances WHERE user_id = ? ORDER BY created_at DESC, id DESC",
            (user_id,),
        ).fetchall()
    return [_row_to_attempt(r) for r in rows]


def _insert_attempt(conn: sqlite3.Connection, user_id: int, attempt: Attempt) -> int:
    cur = conn.execute(
        """INSERT INTO quiz_performances
        (user_id, subject_id, score, total_questions, time_seconds, is_mastery, created_at)
        VALUES (?, ?, ?, ?, ?, ?, ?)""",
        (
            user_id, attempt.subject_id, attempt.score, attempt.total_questions,
            attempt.duration_seconds, int(attempt.is_mastery), attempt.created_at.isoformat(),
        ),
    )
    return cur.lastrowid


def append_attempt(db_path: str, user_id: int, attempt: Attempt) -> int:
    with connect(db_path) as conn:
        with conn:
            attempt_id = _insert_attempt(conn, user_id, attempt)
    return attempt_id


def record_attempt(db_path: str, user_id: int, attempt: Attempt, xp_delta: int) -> tuple[int, int]:
    """Append the attempt and award its XP in one transaction.

    Returns (attempt_id, new_total_xp). Either both writes land or neither does.
    """
    if xp_delta < 0:
        raise ValueError("XP can only be incremented")
    with connect(db_path) as conn:
        with conn:
            attempt_id = _insert_attempt(conn, user_id, attempt)
            total = _increment_xp(conn, user_id, xp_delta)
    logger.info(
        "Recorded attempt %s for user %s: %s/%s, +%s XP (total %s)",
        attempt_id, user_id, attempt.score, attempt.total_questions, xp_delta, total,
    )
    return attempt_id, total


def fetch_mastery_entries(db_path: str, subject_id: int) -> list[dict]:
    """Mastery attempts on a subject with the player's name, fastest first."""
    with connect(db_path) as conn:
        rows = conn.execute(
            """SELECT p.username, q.score, q.total_questions, q.time_seconds
            FROM quiz_performances q JOIN profiles p ON q.user_id = p.id
            WHERE q.subject_id = ? AND q.is_mastery = 1
            ORDER BY q.time_seconds ASC, q.id ASC""",
            (subject_id,),
        ).fetchall()
    return [dict(r) for r in rows]


# --- Catalog --------------------------------------------------------------


def _row_to_subject(row: sqlite3.Row) -> Subject:
    return Subject(
        id=row["id"], slug=row["slug"], title=row["title"],
        icon=row["icon"] or "", parent_slug=row["parent_slug"],
    )


def get_root_subjects(db_path: str) -> list[Subject]:
    with connect(db_path) as conn:
        rows = conn.execute(
            "SELECT * FROM subjects WHERE parent_slug IS NULL ORDER BY title"
        ).fetchall()
    return [_row_to_subject(r) for r in rows]


def get_modules(db_path: str, parent_slug: str) -> list[Subject]:
    with connect(db_path) as conn:
        rows = conn.execute(
            "SELECT * FROM subjects WHERE parent_slug = ? ORDER BY title", (parent_slug,)
        ).fetchall()
    return [_row_to_subject(r) for r in rows]


def get_subjects_by_id(db_path: str) -> dict[int, Subject]:
    with connect(db_path) as conn:
        rows = conn.execute("SELECT * FROM subjects").fetchall()
    return {r["id"]: _row_to_subject(r) for r in rows}


def get_chapters(db_path: str, subject_slug: str) -> list[Chapter]:
    with connect(db_path) as conn:
        rows = conn.execute(
            "SELECT id, subject_slug, title FROM chapters WHERE subject_slug = ? ORDER BY created_at, id",
            (subject_slug,),
        ).fetchall()
    return [Chapter(id=r["id"], subject_slug=r["subject_slug"], title=r["title"]) for r in rows]


def count_questions_by_chapter(db_path: str, chapter_ids: list[int]) -> dict[int, int]:
    if not chapter_ids:
        return {}
    placeholders = ",".join("?" * len(chapter_ids))
    with connect(db_path) as conn:
        rows = conn.execute(
            f"SELECT chapter_id, COUNT(*) AS n FROM questions WHERE chapter_id IN ({placeholders}) GROUP BY chapter_id",
            chapter_ids,
        ).fetchall()
    return {r["chapter_id"]: r["n"] for r in rows}


def _row_to_question(row: sqlite3.Row) -> Question:
    try:
        options = json.loads(row["options"])
        correct = json.loads(row["correct_indices"])
    except (TypeError, ValueError) as e:
        raise PersistenceError(f"Malformed question row {row['id']}: {e}") from e
    return Question(
        id=row["id"],
        chapter_id=row["chapter_id"],
        text=row["question_text"],
        options=tuple(options),
        correct_indices=frozenset(correct),
        explanation=row["explanation"] or "",
    )


def fetch_questions(db_path: str, chapter_ids: list[int], shuffle: bool = True) -> list[Question]:
    """Questions belonging to any of the given chapters."""
    if not chapter_ids:
        return []
    placeholders = ",".join("?" * len(chapter_ids))
    order = "RANDOM()" if shuffle else "id"
    with connect(db_path) as conn:
        rows = conn.execute(
            f"SELECT * FROM questions WHERE chapter_id IN ({placeholders}) ORDER BY {order}",
            chapter_ids,
        ).fetchall()
    return [_row_to_question(r) for r in rows]


def fetch_mastery_questions(db_path: str, subject_slug: str, shuffle: bool = True) -> list[Question]:
    """Every question from every chapter of every module under a subject."""
    with connect(db_path) as conn:
        rows = conn.execute(
            """SELECT c.id FROM chapters c
            JOIN subjects m ON c.subject_slug = m.slug
            WHERE m.parent_slug = ?""",
            (subject_slug,),
        ).fetchall()
    return fetch_questions(db_path, [r["id"] for r in rows], shuffle=shuffle)


def insert_question(
    db_path: str,
    chapter_id: int,
    text: str,
    options: list[str],
    correct_indices: list[int],
    explanation: str = "",
    source: str = "seeded",
) -> int:
    with connect(db_path) as conn:
        with conn:
            cur = conn.execute(
                """INSERT INTO questions
                (chapter_id, question_text, options, correct_indices, explanation, source)
                VALUES (?, ?, ?, ?, ?, ?)""",
                (chapter_id, text, json.dumps(list(options)),
                 json.dumps(sorted(correct_indices)), explanation, source),
            )
            question_id = cur.lastrowid
    return question_id
