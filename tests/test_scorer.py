# tests/test_scorer.py
import pytest

from uniportal.config import Settings
from uniportal.errors import (
    AttemptStateError, EmptyQuestionSetError, IncompleteAttemptError, PersistenceError,
)
from uniportal.scorer import QuizSession, SessionState, calc_xp, is_exact_match
from uniportal import store


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def answer_all(session, picks):
    for i, pick in enumerate(picks):
        session.record_selection(i, pick)
        session.check_answer(i)


def test_exact_match_required(make_questions):
    session = QuizSession(make_questions({1, 2}, {1, 2}, {1, 2}))
    session.record_selection(0, {1})
    assert session.check_answer(0).is_correct is False
    session.record_selection(1, {1, 2})
    assert session.check_answer(1).is_correct is True
    session.record_selection(2, {1, 2, 3})
    assert session.check_answer(2).is_correct is False


def test_is_exact_match():
    assert is_exact_match([2, 1], {1, 2})
    assert not is_exact_match([1], {1, 2})
    assert is_exact_match([], set())


def test_empty_correct_set_means_select_nothing(make_questions):
    session = QuizSession(make_questions(set(), set()))
    assert session.check_answer(0).is_correct is True
    session.record_selection(1, {0})
    assert session.check_answer(1).is_correct is False


def test_finish_scores_and_awards_xp(make_questions):
    questions = make_questions({0}, {1}, {2}, {3}, {0})
    session = QuizSession(questions)
    answer_all(session, [{0}, {1}, {2}, {0}, {1}])
    result = session.finish()
    assert result.score == 3
    assert result.total_questions == 5
    assert result.xp_awarded == 45


def test_mastery_doubles_xp(make_questions):
    questions = make_questions({0}, {1}, {2}, {3}, {0})
    session = QuizSession(questions, is_mastery=True)
    answer_all(session, [{0}, {1}, {2}, {0}, {1}])
    result = session.finish()
    assert result.score == 3
    assert result.xp_awarded == 90
    assert result.is_mastery


def test_xp_rates_come_from_settings(make_questions):
    settings = Settings(xp_per_correct=10, mastery_multiplier=3)
    session = QuizSession(make_questions({0}, {0}), is_mastery=True, settings=settings)
    answer_all(session, [{0}, {0}])
    assert session.finish().xp_awarded == 60


def test_calc_xp():
    assert calc_xp(3, False) == 45
    assert calc_xp(3, True) == 90
    assert calc_xp(0, True) == 0


def test_streak_tracking(make_questions):
    session = QuizSession(make_questions({0}, {0}, {0}, {0}))
    answer_all(session, [{0}, {0}, {1}, {0}])
    assert session.max_streak == 2
    assert session.current_streak == 1
    assert session.finish().max_streak == 2


def test_streak_resets_on_incorrect(make_questions):
    session = QuizSession(make_questions({0}, {0}, {0}))
    answer_all(session, [{0}, {0}, {2}])
    assert session.current_streak == 0
    assert session.max_streak == 2


def test_empty_question_set_rejected():
    with pytest.raises(EmptyQuestionSetError):
        QuizSession([])


def test_finish_before_all_checked(make_questions):
    session = QuizSession(make_questions({0}, {1}))
    session.record_selection(0, {0})
    session.check_answer(0)
    with pytest.raises(IncompleteAttemptError):
        session.finish()


def test_finish_only_once(make_questions):
    session = QuizSession(make_questions({0}))
    answer_all(session, [{0}])
    session.finish()
    with pytest.raises(AttemptStateError):
        session.finish()


def test_reselect_before_check_replaces(make_questions):
    session = QuizSession(make_questions({2}))
    session.record_selection(0, {1})
    session.record_selection(0, {2})
    assert session.check_answer(0).is_correct


def test_checked_question_is_locked(make_questions):
    session = QuizSession(make_questions({0}, {1}))
    session.record_selection(0, {1})
    session.check_answer(0)
    with pytest.raises(AttemptStateError):
        session.record_selection(0, {0})
    with pytest.raises(AttemptStateError):
        session.check_answer(0)
    assert session.outcomes[0].is_correct is False


def test_toggle_option(make_questions):
    session = QuizSession(make_questions({0, 2}))
    session.toggle_option(0, 0)
    session.toggle_option(0, 1)
    session.toggle_option(0, 2)
    assert session.toggle_option(0, 1) == frozenset({0, 2})
    assert session.check_answer(0).is_correct


def test_bad_index(make_questions):
    session = QuizSession(make_questions({0}))
    with pytest.raises(IndexError):
        session.record_selection(3, {0})


def test_state_transitions(make_questions):
    session = QuizSession(make_questions({0}))
    assert session.state is SessionState.NOT_STARTED
    session.record_selection(0, {0})
    assert session.state is SessionState.IN_PROGRESS
    session.check_answer(0)
    session.finish()
    assert session.state is SessionState.FINISHED


def test_duration_uses_clock(make_questions):
    clock = FakeClock()
    session = QuizSession(make_questions({0}), clock=clock)
    session.start()
    clock.now += 75
    answer_all(session, [{0}])
    assert session.finish().duration_seconds == 75


def test_clock_pauses_between_check_and_next_selection(make_questions):
    clock = FakeClock()
    session = QuizSession(make_questions({0}, {1}), clock=clock)
    session.record_selection(0, {0})
    clock.now += 20
    session.check_answer(0)
    clock.now += 300  # reviewing the explanation
    assert session.elapsed_seconds() == 20
    session.toggle_option(1, 1)
    clock.now += 15
    session.check_answer(1)
    clock.now += 100
    assert session.finish().duration_seconds == 35


def test_abandon_discards_progress(make_questions):
    session = QuizSession(make_questions({0}, {1}))
    answer_all(session, [{0}])
    session.abandon()
    assert session.state is SessionState.ABANDONED
    assert session.outcomes == {}
    with pytest.raises(AttemptStateError):
        session.record_selection(1, {1})
    with pytest.raises(AttemptStateError):
        session.finish()


def test_submit_records_attempt_and_xp(seeded_db, make_questions):
    user_id = store.get_or_create_user(seeded_db, "ada")
    session = QuizSession(make_questions({0}, {1}, {2}), subject_id=1)
    answer_all(session, [{0}, {1}, {3}])
    session.finish()
    total = session.submit(seeded_db, user_id)
    assert total == 30
    attempts = store.fetch_attempts(seeded_db, user_id)
    assert len(attempts) == 1
    assert attempts[0].score == 2
    assert attempts[0].total_questions == 3
    assert attempts[0].subject_id == 1
    assert session.attempt_id == attempts[0].id


def test_submit_twice_rejected(seeded_db, make_questions):
    user_id = store.get_or_create_user(seeded_db, "ada")
    session = QuizSession(make_questions({0}), subject_id=1)
    answer_all(session, [{0}])
    session.finish()
    session.submit(seeded_db, user_id)
    with pytest.raises(AttemptStateError):
        session.submit(seeded_db, user_id)
    assert store.fetch_total_xp(seeded_db, user_id) == 15


def test_submit_before_finish(seeded_db, make_questions):
    session = QuizSession(make_questions({0}))
    with pytest.raises(AttemptStateError):
        session.submit(seeded_db, 1)


def test_submit_without_user_records_nothing(seeded_db, make_questions):
    session = QuizSession(make_questions({0}), subject_id=1)
    answer_all(session, [{0}])
    session.finish()
    assert session.submit(seeded_db, None) is None
    assert session.attempt_id is None


def test_submit_failure_keeps_result_for_retry(seeded_db, make_questions, monkeypatch):
    user_id = store.get_or_create_user(seeded_db, "ada")
    session = QuizSession(make_questions({0}, {0}), subject_id=1)
    answer_all(session, [{0}, {0}])
    result = session.finish()

    def broken(*args, **kwargs):
        raise PersistenceError("database is locked")

    monkeypatch.setattr(store, "record_attempt", broken)
    with pytest.raises(PersistenceError):
        session.submit(seeded_db, user_id)
    assert session.result == result
    assert session.attempt_id is None

    monkeypatch.undo()
    assert session.submit(seeded_db, user_id) == 30
    assert len(store.fetch_attempts(seeded_db, user_id)) == 1
