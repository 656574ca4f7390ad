"""Quiz session state machine: selection, checking, streaks and XP."""
import enum
import logging
import time
from typing import Iterable, Optional, Sequence

from uniportal.config import Settings, load_settings
from uniportal.errors import (
    AttemptStateError, EmptyQuestionSetError, IncompleteAttemptError, PersistenceError,
)
from uniportal.models import Attempt, AttemptResult, Question, QuestionOutcome
from uniportal import store

logger = logging.getLogger(__name__)


class SessionState(enum.Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    FINISHED = "finished"
    ABANDONED = "abandoned"


def is_exact_match(selected: Iterable[int], correct: Iterable[int]) -> bool:
    """A multiple-answer question is right only if the two sets are equal."""
    return frozenset(selected) == frozenset(correct)


def calc_xp(score: int, is_mastery: bool, xp_per_correct: int = 15, mastery_multiplier: int = 2) -> int:
    return score * xp_per_correct * (mastery_multiplier if is_mastery else 1)


class QuizSession:
    """One quiz attempt driven by a single student.

    Questions move from unchecked to checked; a checked outcome never
    changes. finish() scores the attempt once every question is checked,
    and submit() writes the attempt plus its XP award to the store.
    """

    def __init__(
        self,
        questions: Sequence[Question],
        is_mastery: bool = False,
        subject_id: Optional[int] = None,
        settings: Optional[Settings] = None,
        clock=time.monotonic,
    ):
        if not questions:
            raise EmptyQuestionSetError("No questions available for this selection")
        self.questions = list(questions)
        self.is_mastery = is_mastery
        self.subject_id = subject_id
        self.settings = settings or load_settings()
        self._clock = clock
        self.state = SessionState.NOT_STARTED
        self.selections: dict[int, frozenset] = {}
        self.outcomes: dict[int, QuestionOutcome] = {}
        self.current_streak = 0
        self.max_streak = 0
        self.result: Optional[AttemptResult] = None
        self.attempt_id: Optional[int] = None
        self._started_at: Optional[float] = None
        self._elapsed = 0.0

    @property
    def total_questions(self) -> int:
        return len(self.questions)

    @property
    def score(self) -> int:
        return sum(1 for o in self.outcomes.values() if o.is_correct)

    @property
    def all_checked(self) -> bool:
        return len(self.outcomes) == len(self.questions)

    def is_checked(self, index: int) -> bool:
        return index in self.outcomes

    def elapsed_seconds(self) -> int:
        """Seconds spent answering; time spent reviewing a checked answer is excluded."""
        running = 0.0 if self._started_at is None else self._clock() - self._started_at
        return int(self._elapsed + running)

    def _pause(self) -> None:
        if self._started_at is not None:
            self._elapsed += self._clock() - self._started_at
            self._started_at = None

    def _resume(self) -> None:
        if self._started_at is None:
            self._started_at = self._clock()

    def start(self) -> None:
        if self.state is SessionState.IN_PROGRESS:
            return
        if self.state is not SessionState.NOT_STARTED:
            raise AttemptStateError(f"Cannot start a session that is {self.state.value}")
        self.state = SessionState.IN_PROGRESS
        self._started_at = self._clock()
        logger.debug("Quiz session started with %d questions (mastery=%s)", len(self.questions), self.is_mastery)

    def _require_open_question(self, index: int) -> None:
        if self.state is SessionState.NOT_STARTED:
            self.start()
        if self.state is not SessionState.IN_PROGRESS:
            raise AttemptStateError(f"Session is {self.state.value}")
        if not 0 <= index < len(self.questions):
            raise IndexError(f"Question index {index} out of range")
        if index in self.outcomes:
            raise AttemptStateError(f"Question {index + 1} has already been checked")
        self._resume()

    def record_selection(self, index: int, option_indices: Iterable[int]) -> None:
        self._require_open_question(index)
        self.selections[index] = frozenset(option_indices)

    def toggle_option(self, index: int, option: int) -> frozenset:
        self._require_open_question(index)
        current = self.selections.get(index, frozenset())
        updated = current - {option} if option in current else current | {option}
        self.selections[index] = updated
        return updated

    def check_answer(self, index: int) -> QuestionOutcome:
        self._require_open_question(index)
        question = self.questions[index]
        selected = self.selections.get(index, frozenset())
        outcome = QuestionOutcome(
            question_id=question.id,
            selected=selected,
            correct=frozenset(question.correct_indices),
            is_correct=is_exact_match(selected, question.correct_indices),
        )
        self.outcomes[index] = outcome
        self._pause()
        if outcome.is_correct:
            self.current_streak += 1
            self.max_streak = max(self.max_streak, self.current_streak)
        else:
            self.current_streak = 0
        return outcome

    def finish(self) -> AttemptResult:
        if self.state is SessionState.FINISHED:
            raise AttemptStateError("Session already finished")
        if self.state is SessionState.ABANDONED:
            raise AttemptStateError("Session was abandoned")
        if not self.all_checked:
            remaining = len(self.questions) - len(self.outcomes)
            raise IncompleteAttemptError(f"{remaining} question(s) not yet checked")
        self._pause()
        score = self.score
        self.result = AttemptResult(
            score=score,
            total_questions=len(self.questions),
            xp_awarded=calc_xp(
                score, self.is_mastery,
                self.settings.xp_per_correct, self.settings.mastery_multiplier,
            ),
            max_streak=self.max_streak,
            duration_seconds=int(self._elapsed),
            is_mastery=self.is_mastery,
        )
        self.state = SessionState.FINISHED
        return self.result

    def to_attempt(self) -> Attempt:
        if self.result is None:
            raise AttemptStateError("Session has not been finished")
        return Attempt(
            id=self.attempt_id,
            subject_id=self.subject_id,
            score=self.result.score,
            total_questions=self.result.total_questions,
            duration_seconds=self.result.duration_seconds,
            is_mastery=self.is_mastery,
        )

    def submit(self, db_path: str, user_id: Optional[int]) -> Optional[int]:
        """Persist the finished attempt and its XP award.

        Returns the user's new XP total, or None when there is no user to
        record against. On PersistenceError the result stays on
        self.result and submit() may be called again.
        """
        if self.result is None:
            raise AttemptStateError("Finish the session before submitting")
        if self.attempt_id is not None:
            raise AttemptStateError("Attempt already submitted")
        if user_id is None:
            logger.info("No signed-in user; attempt not recorded")
            return None
        try:
            attempt_id, total = store.record_attempt(
                db_path, user_id, self.to_attempt(), self.result.xp_awarded
            )
        except PersistenceError:
            logger.warning("Failed to record attempt for user %s; result kept for retry", user_id)
            raise
        self.attempt_id = attempt_id
        return total

    def abandon(self) -> None:
        if self.state is SessionState.FINISHED:
            raise AttemptStateError("Cannot abandon a finished session")
        self.state = SessionState.ABANDONED
        self.selections.clear()
        self.outcomes.clear()
        self.current_streak = 0
        self.max_streak = 0
        self._pause()
        logger.debug("Quiz session abandoned")
