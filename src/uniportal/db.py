"""Database initialization and connection management."""
import sqlite3
from pathlib import Path

from uniportal.config import DEFAULT_DB_PATH

SCHEMA = """
CREATE TABLE IF NOT EXISTS subjects (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    slug TEXT NOT NULL UNIQUE,
    title TEXT NOT NULL,
    icon TEXT DEFAULT '',
    parent_slug TEXT REFERENCES subjects(slug)
);

CREATE TABLE IF NOT EXISTS chapters (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    subject_slug TEXT NOT NULL REFERENCES subjects(slug),
    title TEXT NOT NULL,
    created_at TEXT
);

CREATE TABLE IF NOT EXISTS questions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    chapter_id INTEGER NOT NULL REFERENCES chapters(id),
    question_text TEXT NOT NULL,
    options TEXT NOT NULL,
    correct_indices TEXT NOT NULL,
    explanation TEXT DEFAULT '',
    source TEXT DEFAULT 'seeded'
);

CREATE TABLE IF NOT EXISTS profiles (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    username TEXT NOT NULL UNIQUE,
    xp INTEGER NOT NULL DEFAULT 0 CHECK (xp >= 0),
    created_at TEXT
);

CREATE TABLE IF NOT EXISTS quiz_performances (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL REFERENCES profiles(id),
    subject_id INTEGER REFERENCES subjects(id),
    score INTEGER NOT NULL CHECK (score >= 0),
    total_questions INTEGER NOT NULL CHECK (total_questions > 0),
    time_seconds INTEGER NOT NULL DEFAULT 0,
    is_mastery INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    CHECK (score <= total_questions)
);

CREATE TABLE IF NOT EXISTS user_progress (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL REFERENCES profiles(id),
    chapter_id INTEGER NOT NULL REFERENCES chapters(id),
    completed_at TEXT,
    UNIQUE(user_id, chapter_id)
);

CREATE TABLE IF NOT EXISTS study_sessions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL REFERENCES profiles(id),
    duration_seconds INTEGER NOT NULL CHECK (duration_seconds > 0),
    created_at TEXT
);
"""


def get_connection(db_path: str = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Return a SQLite connection with row factory and foreign keys enabled."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def init_db(db_path: str = DEFAULT_DB_PATH) -> None:
    """Initialize the database, creating all tables if they don't exist."""
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = get_connection(db_path)
    conn.executescript(SCHEMA)
    conn.commit()
    conn.close()
