"""Chapter completion and study-timer tracking for subject pages and the dashboard."""
import logging
from datetime import datetime

from uniportal.models import whole_percent
from uniportal.store import connect, get_chapters

logger = logging.getLogger(__name__)

# Timer runs this short are discarded rather than saved
MIN_STUDY_SECONDS = 10


def get_completed_chapters(db_path: str, user_id: int) -> set[int]:
    with connect(db_path) as conn:
        rows = conn.execute(
            "SELECT chapter_id FROM user_progress WHERE user_id = ?", (user_id,)
        ).fetchall()
    return {r["chapter_id"] for r in rows}


def mark_chapter_complete(db_path: str, user_id: int, chapter_id: int) -> None:
    with connect(db_path) as conn:
        conn.execute(
            "INSERT OR IGNORE INTO user_progress (user_id, chapter_id, completed_at) VALUES (?, ?, ?)",
            (user_id, chapter_id, datetime.now().isoformat()),
        )
        conn.commit()


def unmark_chapter(db_path: str, user_id: int, chapter_id: int) -> None:
    with connect(db_path) as conn:
        conn.execute(
            "DELETE FROM user_progress WHERE user_id = ? AND chapter_id = ?",
            (user_id, chapter_id),
        )
        conn.commit()


def toggle_chapter(db_path: str, user_id: int, chapter_id: int) -> bool:
    """Flip a chapter's completion. Returns the new state."""
    if chapter_id in get_completed_chapters(db_path, user_id):
        unmark_chapter(db_path, user_id, chapter_id)
        logger.debug("User %s unmarked chapter %s", user_id, chapter_id)
        return False
    mark_chapter_complete(db_path, user_id, chapter_id)
    logger.debug("User %s completed chapter %s", user_id, chapter_id)
    return True


def completion_percent(done: int, total: int) -> int:
    return whole_percent(done, total)


def get_module_progress(db_path: str, user_id: int, module_slug: str) -> dict:
    chapters = get_chapters(db_path, module_slug)
    completed = get_completed_chapters(db_path, user_id)
    done = sum(1 for c in chapters if c.id in completed)
    percent = completion_percent(done, len(chapters))
    return {
        "module": module_slug,
        "done": done,
        "total": len(chapters),
        "percent": percent,
        "mastered": percent == 100 and len(chapters) > 0,
    }


def get_overall_progress(db_path: str, user_id: int) -> dict:
    """Completed chapters across the whole catalog."""
    with connect(db_path) as conn:
        total = conn.execute("SELECT COUNT(*) FROM chapters").fetchone()[0]
        done = conn.execute(
            "SELECT COUNT(*) FROM user_progress WHERE user_id = ?", (user_id,)
        ).fetchone()[0]
    return {"done": done, "total": total, "percent": completion_percent(done, total)}


def record_study_session(db_path: str, user_id: int, seconds: int) -> bool:
    """Save a focus-timer run. Returns False when it was too short to keep."""
    if seconds <= MIN_STUDY_SECONDS:
        logger.debug("Discarding %ss study session for user %s", seconds, user_id)
        return False
    with connect(db_path) as conn:
        conn.execute(
            "INSERT INTO study_sessions (user_id, duration_seconds, created_at) VALUES (?, ?, ?)",
            (user_id, int(seconds), datetime.now().isoformat()),
        )
        conn.commit()
    return True


def get_total_focus_time(db_path: str, user_id: int) -> dict:
    """Total saved study time split into whole hours and leftover minutes."""
    with connect(db_path) as conn:
        total = conn.execute(
            "SELECT COALESCE(SUM(duration_seconds), 0) FROM study_sessions WHERE user_id = ?",
            (user_id,),
        ).fetchone()[0]
    return {"seconds": total, "hours": total // 3600, "minutes": (total % 3600) // 60}
