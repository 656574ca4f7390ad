"""Seed the database with subjects, modules, chapters and questions."""
import json
from datetime import datetime
from pathlib import Path

from uniportal.store import connect

CONTENT_DIR = Path(__file__).parent / "content"


def is_seeded(db_path: str) -> bool:
    """Check whether the database has already been seeded with subjects."""
    with connect(db_path) as conn:
        count = conn.execute("SELECT COUNT(*) FROM subjects").fetchone()[0]
    return count > 0


def load_catalog(path: Path = CONTENT_DIR / "catalog.json") -> dict:
    return json.loads(path.read_text(encoding="utf-8"))


def seed_catalog(db_path: str, catalog: dict | None = None) -> None:
    """Insert subjects, their modules, chapters and questions."""
    data = catalog if catalog is not None else load_catalog()
    with connect(db_path) as conn:
        _insert_catalog(conn, data)
        conn.commit()


def _insert_catalog(conn, data: dict) -> None:
    for subject in data["subjects"]:
        conn.execute(
            "INSERT OR IGNORE INTO subjects (slug, title, icon, parent_slug) VALUES (?, ?, ?, NULL)",
            (subject["slug"], subject["title"], subject.get("icon", "")),
        )
        for module in subject.get("modules", []):
            conn.execute(
                "INSERT OR IGNORE INTO subjects (slug, title, icon, parent_slug) VALUES (?, ?, ?, ?)",
                (module["slug"], module["title"], module.get("icon", ""), subject["slug"]),
            )
            for chapter in module.get("chapters", []):
                cur = conn.execute(
                    "INSERT INTO chapters (subject_slug, title, created_at) VALUES (?, ?, ?)",
                    (module["slug"], chapter["title"], datetime.now().isoformat()),
                )
                chapter_id = cur.lastrowid
                for q in chapter.get("questions", []):
                    conn.execute(
                        """INSERT INTO questions
                        (chapter_id, question_text, options, correct_indices, explanation, source)
                        VALUES (?, ?, ?, ?, ?, 'seeded')""",
                        (chapter_id, q["text"], json.dumps(q["options"]),
                         json.dumps(sorted(q["correct_indices"])), q.get("explanation", "")),
                    )


def seed_all(db_path: str) -> None:
    """Seed the catalog once."""
    if is_seeded(db_path):
        return
    seed_catalog(db_path)
