"""Data classes for the portal's progression model."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


def whole_percent(part: int, total: int) -> int:
    """part/total as a whole percent, halves rounded up; 0 when total is 0."""
    if total <= 0:
        return 0
    return (200 * part + total) // (2 * total)


@dataclass(frozen=True)
class RankTier:
    name: str
    min_xp: int
    color: str = "slate"


@dataclass(frozen=True)
class Subject:
    id: int
    slug: str
    title: str
    icon: str = ""
    parent_slug: Optional[str] = None


@dataclass(frozen=True)
class Chapter:
    id: int
    subject_slug: str
    title: str


@dataclass(frozen=True)
class Question:
    id: int
    chapter_id: int
    text: str
    options: tuple
    correct_indices: frozenset
    explanation: str = ""


@dataclass(frozen=True)
class Attempt:
    """One completed quiz session. Append-only once stored."""
    id: Optional[int]
    subject_id: Optional[int]
    score: int
    total_questions: int
    duration_seconds: int = 0
    is_mastery: bool = False
    created_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        if self.total_questions <= 0:
            raise ValueError(f"total_questions must be positive, got {self.total_questions}")
        if not 0 <= self.score <= self.total_questions:
            raise ValueError(
                f"score must be between 0 and {self.total_questions}, got {self.score}"
            )
        if self.duration_seconds < 0:
            raise ValueError(f"duration_seconds must be >= 0, got {self.duration_seconds}")

    @property
    def is_perfect(self) -> bool:
        return self.score == self.total_questions


@dataclass(frozen=True)
class QuestionOutcome:
    question_id: int
    selected: frozenset
    correct: frozenset
    is_correct: bool


@dataclass(frozen=True)
class UserProgression:
    user_id: int
    total_xp: int = 0

    def __post_init__(self):
        if self.total_xp < 0:
            raise ValueError(f"total_xp must be >= 0, got {self.total_xp}")

    def with_xp_added(self, delta: int) -> "UserProgression":
        if delta < 0:
            raise ValueError("XP awards are additive only")
        return UserProgression(user_id=self.user_id, total_xp=self.total_xp + delta)


@dataclass(frozen=True)
class SubjectWeakness:
    subject_id: int
    title: str
    icon: str
    accuracy_percent: float


@dataclass(frozen=True)
class RankStatus:
    current: RankTier
    next_tier: Optional[RankTier]
    progress: float
    total_xp: int

    @property
    def xp_to_next(self) -> int:
        if self.next_tier is None:
            return 0
        return self.next_tier.min_xp - self.total_xp


@dataclass(frozen=True)
class LevelInfo:
    level: int
    progress: float
    title: str


@dataclass(frozen=True)
class AttemptResult:
    score: int
    total_questions: int
    xp_awarded: int
    max_streak: int
    duration_seconds: int
    is_mastery: bool = False

    @property
    def accuracy_percent(self) -> int:
        return whole_percent(self.score, self.total_questions)

    @property
    def is_perfect(self) -> bool:
        return self.score == self.total_questions


@dataclass(frozen=True)
class MasterEntry:
    username: str
    score: int
    total_questions: int
    duration_seconds: int


@dataclass(frozen=True)
class Achievement:
    id: str
    title: str
    description: str
    unlocked: bool


@dataclass
class DashboardStats:
    total_quizzes: int = 0
    accuracy: int = 0
    perfect_scores: int = 0
    total_xp: int = 0
    level: int = 1
    level_progress: float = 0.0
    level_title: str = "Novice"
    rank: Optional[RankStatus] = None
    best_subject_id: Optional[int] = None
    recent: list = field(default_factory=list)
