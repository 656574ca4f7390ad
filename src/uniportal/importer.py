"""Import quiz questions from JSON or YAML files."""
import json
import logging
from pathlib import Path

import yaml

from uniportal.store import connect, insert_question

logger = logging.getLogger(__name__)


def read_question_file(file_path: str) -> list[dict]:
    path = Path(file_path)
    suffix = path.suffix.lower()
    text = path.read_text(encoding="utf-8")
    if suffix == ".json":
        data = json.loads(text)
    elif suffix in (".yaml", ".yml"):
        data = yaml.safe_load(text)
    else:
        raise ValueError(f"Unsupported file type: {suffix or path.name}")
    if isinstance(data, dict):
        data = data.get("questions", [])
    if not isinstance(data, list):
        raise ValueError("Expected a list of questions")
    return data


def validate_question(entry: dict) -> list[str]:
    """Return a list of problems with a question entry; empty means valid."""
    problems = []
    if not str(entry.get("text", "")).strip():
        problems.append("missing text")
    options = entry.get("options")
    if not isinstance(options, list) or len(options) < 2:
        problems.append("needs at least two options")
        options = []
    correct = entry.get("correct_indices")
    if not isinstance(correct, list) or not correct:
        problems.append("needs at least one correct index")
    elif any(not isinstance(i, int) or not 0 <= i < len(options) for i in correct):
        problems.append("correct index out of range")
    if not isinstance(entry.get("chapter_id"), int):
        problems.append("missing chapter_id")
    return problems


def import_file(db_path: str, file_path: str, chapter_id: int | None = None) -> dict:
    """Import questions into the database. chapter_id overrides each entry's own."""
    entries = read_question_file(file_path)
    with connect(db_path) as conn:
        known = {r[0] for r in conn.execute("SELECT id FROM chapters").fetchall()}
    imported, skipped = 0, []
    for n, entry in enumerate(entries, 1):
        if chapter_id is not None:
            entry = {**entry, "chapter_id": chapter_id}
        problems = validate_question(entry)
        if not problems and entry["chapter_id"] not in known:
            problems.append(f"unknown chapter {entry['chapter_id']}")
        if problems:
            skipped.append((n, problems))
            logger.warning("Skipping question %d in %s: %s", n, file_path, ", ".join(problems))
            continue
        insert_question(
            db_path, entry["chapter_id"], entry["text"], entry["options"],
            entry["correct_indices"], entry.get("explanation", ""), source="imported",
        )
        imported += 1
    return {"filename": Path(file_path).name, "imported": imported, "skipped": skipped}
