"""Performance summaries over a user's attempt history."""
from collections import defaultdict
from typing import Mapping, Optional, Sequence

from uniportal.models import (
    Achievement, Attempt, DashboardStats, MasterEntry, Subject, SubjectWeakness,
    UserProgression, whole_percent,
)
from uniportal.ranks import compute_level, describe_rank

WEAK_THRESHOLD = 70.0
WEAK_TOP_N = 3
RECENT_COUNT = 5


def compute_accuracy(attempts: Sequence[Attempt]) -> int:
    """Overall accuracy as a whole percent; 0 when there is no history."""
    return whole_percent(
        sum(a.score for a in attempts), sum(a.total_questions for a in attempts)
    )


def compute_perfect_count(attempts: Sequence[Attempt]) -> int:
    return sum(1 for a in attempts if a.is_perfect)


def _subject_totals(attempts: Sequence[Attempt]) -> dict:
    totals = defaultdict(lambda: [0, 0])
    for a in attempts:
        if a.subject_id is None:
            continue
        totals[a.subject_id][0] += a.score
        totals[a.subject_id][1] += a.total_questions
    return totals


def compute_subject_accuracy(attempts: Sequence[Attempt]) -> dict[int, float]:
    return {
        subject_id: 100 * correct / total
        for subject_id, (correct, total) in _subject_totals(attempts).items()
        if total > 0
    }


def compute_weak_subjects(
    attempts: Sequence[Attempt],
    subjects: Mapping[int, Subject],
    top_n: int = WEAK_TOP_N,
    threshold: float = WEAK_THRESHOLD,
) -> list[SubjectWeakness]:
    """Subjects below threshold accuracy, worst first, at most top_n."""
    weak = []
    for subject_id, accuracy in compute_subject_accuracy(attempts).items():
        if accuracy >= threshold:
            continue
        subject = subjects.get(subject_id)
        weak.append(SubjectWeakness(
            subject_id=subject_id,
            title=subject.title if subject else f"Subject {subject_id}",
            icon=subject.icon if subject else "",
            accuracy_percent=round(accuracy, 1),
        ))
    weak.sort(key=lambda w: (w.accuracy_percent, w.subject_id))
    return weak[:top_n]


def get_best_subject(attempts: Sequence[Attempt]) -> Optional[int]:
    accuracy = compute_subject_accuracy(attempts)
    if not accuracy:
        return None
    return max(accuracy, key=lambda sid: (accuracy[sid], -sid))


def summarize_history(attempts: Sequence[Attempt], progression: UserProgression) -> DashboardStats:
    level = compute_level(progression.total_xp)
    recent = sorted(attempts, key=lambda a: a.created_at, reverse=True)[:RECENT_COUNT]
    return DashboardStats(
        total_quizzes=len(attempts),
        accuracy=compute_accuracy(attempts),
        perfect_scores=compute_perfect_count(attempts),
        total_xp=progression.total_xp,
        level=level.level,
        level_progress=level.progress,
        level_title=level.title,
        rank=describe_rank(progression),
        best_subject_id=get_best_subject(attempts),
        recent=recent,
    )


def compute_achievements(stats: DashboardStats) -> list[Achievement]:
    """Badges shown on the dashboard; Speed Demon looks only at recent quizzes."""
    return [
        Achievement("speed_demon", "Speed Demon", "Finish a quiz in under 2 minutes",
                    any(a.duration_seconds < 120 for a in stats.recent)),
        Achievement("the_brain", "The Brain", "95% overall accuracy",
                    stats.total_quizzes > 0 and stats.accuracy >= 95),
        Achievement("impeccable", "Impeccable", "5 perfect scores",
                    stats.perfect_scores >= 5),
        Achievement("ascendant", "Ascendant", "Reach level 15",
                    stats.level >= 15),
        Achievement("polymath", "Polymath", "Complete 10 quizzes",
                    stats.total_quizzes >= 10),
    ]


def compute_subject_masters(entries: Sequence[Mapping], limit: int = 5) -> list[MasterEntry]:
    """Fastest perfect mastery runs, one per user.

    entries must already be ordered fastest first.
    """
    masters: dict[str, MasterEntry] = {}
    for e in entries:
        username = e.get("username") or "Scholar"
        if not e.get("total_questions") or e["score"] != e["total_questions"]:
            continue
        if username in masters:
            continue
        masters[username] = MasterEntry(
            username=username,
            score=e["score"],
            total_questions=e["total_questions"],
            duration_seconds=e["time_seconds"],
        )
    return list(masters.values())[:limit]
