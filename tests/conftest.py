import pytest

from uniportal.db import init_db
from uniportal.seed import seed_all
from uniportal.models import Question


@pytest.fixture
def tmp_db(tmp_path):
    """Provide a temporary SQLite database path for tests."""
    db_path = str(tmp_path / "test_portal.db")
    return db_path


@pytest.fixture
def seeded_db(tmp_db):
    init_db(tmp_db)
    seed_all(tmp_db)
    return tmp_db


@pytest.fixture
def make_questions():
    """Build one four-option question per correct-answer set."""
    def _make(*correct_sets):
        return [
            Question(
                id=n, chapter_id=1, text=f"Question {n}?",
                options=("A", "B", "C", "D"), correct_indices=frozenset(correct),
            )
            for n, correct in enumerate(correct_sets, 1)
        ]
    return _make
