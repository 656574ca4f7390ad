"""Runtime settings, loaded from environment variables."""
import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_DB_PATH = str(Path.home() / ".uniportal" / "portal.db")


@dataclass(frozen=True)
class Settings:
    db_path: str = field(
        default_factory=lambda: os.environ.get("UNIPORTAL_DB_PATH", DEFAULT_DB_PATH)
    )
    log_level: str = field(
        default_factory=lambda: os.environ.get("UNIPORTAL_LOG_LEVEL", "WARNING")
    )

    # XP per correct answer; mastery exams multiply it
    xp_per_correct: int = field(
        default_factory=lambda: int(os.environ.get("UNIPORTAL_XP_PER_CORRECT", "15"))
    )
    mastery_multiplier: int = field(
        default_factory=lambda: int(os.environ.get("UNIPORTAL_MASTERY_MULTIPLIER", "2"))
    )

    # Subjects below this accuracy are flagged for review
    weak_threshold: float = field(
        default_factory=lambda: float(os.environ.get("UNIPORTAL_WEAK_THRESHOLD", "70"))
    )
    weak_top_n: int = field(
        default_factory=lambda: int(os.environ.get("UNIPORTAL_WEAK_TOP_N", "3"))
    )


def load_settings() -> Settings:
    return Settings()
