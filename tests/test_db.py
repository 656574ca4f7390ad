"""Tests for database initialization and connection management."""
import sqlite3

import pytest

from uniportal.db import init_db, get_connection


def test_init_db_creates_tables(tmp_db):
    init_db(tmp_db)
    conn = get_connection(tmp_db)
    cursor = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name"
    )
    tables = {row[0] for row in cursor.fetchall()}
    expected = {
        "subjects", "chapters", "questions", "profiles",
        "quiz_performances", "user_progress", "study_sessions",
    }
    assert expected.issubset(tables)
    conn.close()


def test_init_db_is_idempotent(tmp_db):
    init_db(tmp_db)
    init_db(tmp_db)  # should not raise
    conn = get_connection(tmp_db)
    cursor = conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
    assert len(cursor.fetchall()) > 0
    conn.close()


def test_get_connection_returns_row_factory(tmp_db):
    init_db(tmp_db)
    conn = get_connection(tmp_db)
    conn.execute("INSERT INTO profiles (username, xp) VALUES ('ada', 10)")
    row = conn.execute("SELECT username, xp FROM profiles WHERE username='ada'").fetchone()
    assert row["username"] == "ada"
    assert row["xp"] == 10
    conn.close()


def test_xp_cannot_go_negative(tmp_db):
    init_db(tmp_db)
    conn = get_connection(tmp_db)
    with pytest.raises(sqlite3.IntegrityError):
        conn.execute("INSERT INTO profiles (username, xp) VALUES ('neg', -1)")
    conn.close()


def test_score_cannot_exceed_total(tmp_db):
    init_db(tmp_db)
    conn = get_connection(tmp_db)
    conn.execute("INSERT INTO profiles (username) VALUES ('ada')")
    with pytest.raises(sqlite3.IntegrityError):
        conn.execute(
            "INSERT INTO quiz_performances (user_id, score, total_questions, created_at) VALUES (1, 6, 5, 'x')"
        )
    conn.close()
