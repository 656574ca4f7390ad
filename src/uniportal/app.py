"""Interactive CLI application."""
import logging
import time
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.prompt import Prompt, IntPrompt, Confirm

from uniportal.config import Settings, load_settings
from uniportal.db import init_db
from uniportal.errors import EmptyQuestionSetError, PersistenceError, UniportalError
from uniportal.seed import seed_all, is_seeded
from uniportal.scorer import QuizSession
from uniportal import store
from uniportal.aggregator import (
    compute_achievements, compute_subject_masters, compute_weak_subjects, summarize_history,
)
from uniportal.progress import (
    MIN_STUDY_SECONDS, get_completed_chapters, get_module_progress, get_overall_progress,
    get_total_focus_time, record_study_session, toggle_chapter,
)
from uniportal.importer import import_file

logger = logging.getLogger(__name__)

console = Console()

EXIT_WORDS = ("q", "menu")


class SessionExitRequested(Exception):
    """The student asked to leave a quiz; progress is discarded."""


def session_prompt(prompt: str, **kwargs) -> str:
    answer = Prompt.ask(prompt, **kwargs)
    if answer.strip().lower() in EXIT_WORDS:
        raise SessionExitRequested()
    return answer


def parse_selection(text: str, option_count: int) -> frozenset:
    """Turn '1, 3' into zero-based option indices {0, 2}."""
    picked = set()
    for part in text.replace(",", " ").split():
        n = int(part)
        if not 1 <= n <= option_count:
            raise ValueError(f"Option {n} does not exist")
        picked.add(n - 1)
    return frozenset(picked)


def format_time(seconds: int) -> str:
    return f"{seconds // 60}:{seconds % 60:02d}"


def show_welcome(username: str):
    console.print(Panel(
        f"[bold]University Portal[/bold]\n[dim]Signed in as {username}[/dim]",
        title="Welcome", border_style="blue",
    ))


def show_menu():
    console.print("\n[bold]Commands:[/bold]")
    commands = [
        ("quiz", "Chapter quiz"),
        ("mastery", "Full mastery exam for a subject"),
        ("dashboard", "XP, rank and stats"),
        ("ranks", "Global leaderboard"),
        ("chapters", "Mark chapters complete"),
        ("focus", "Run a study timer"),
        ("import", "Add quiz questions from JSON/YAML"),
        ("quit", "Exit"),
    ]
    for cmd, desc in commands:
        console.print(f"  [cyan]{cmd:<14}[/cyan] {desc}")


def ask_answer(question, index: int, total: int) -> frozenset:
    console.print(f"[bold]Q{index + 1}/{total}.[/bold] {question.text}\n")
    for n, option in enumerate(question.options, 1):
        console.print(f"  [cyan]{n})[/cyan] {option}")
    if len(question.correct_indices) > 1:
        console.print("[dim]Select all that apply, e.g. 1,3[/dim]")
    while True:
        raw = session_prompt("\nYour answer", default="")
        try:
            return parse_selection(raw, len(question.options))
        except ValueError as e:
            console.print(f"[red]{e}[/red]")


def run_quiz_session(db_path: str, session: QuizSession, user_id: int | None) -> None:
    """Drive a session to completion, then record it."""
    total = session.total_questions
    console.print(f"\n[bold]{'Mastery Exam' if session.is_mastery else 'Quiz'}[/bold] — {total} questions\n")
    try:
        for i, q in enumerate(session.questions):
            if session.is_checked(i):
                continue
            session.record_selection(i, ask_answer(q, i, total))
            outcome = session.check_answer(i)
            if outcome.is_correct:
                console.print("[green]Correct![/green]")
                if session.current_streak >= 3:
                    console.print(f"[dark_orange]Streak: {session.current_streak}[/dark_orange]")
            else:
                answer = ", ".join(str(n + 1) for n in sorted(q.correct_indices)) or "none"
                console.print(f"[red]Incorrect.[/red] Answer: [green]{answer}[/green]")
            if q.explanation:
                console.print(f"[dim]{q.explanation}[/dim]")
            console.print()
    except SessionExitRequested:
        session.abandon()
        console.print("[yellow]Quiz abandoned. Progress discarded.[/yellow]")
        raise

    result = session.finish()
    show_result(result)
    save_result(db_path, session, user_id)


def save_result(db_path: str, session: QuizSession, user_id: int | None) -> None:
    while True:
        try:
            total_xp = session.submit(db_path, user_id)
        except PersistenceError as e:
            console.print(f"[red]Could not save result: {e}[/red]")
            if Confirm.ask("Retry saving?", default=True):
                continue
            return
        if total_xp is None:
            console.print("[yellow]Not signed in; result not recorded.[/yellow]")
        else:
            console.print(f"[dim]Total XP: {total_xp}[/dim]")
        return


def show_result(result) -> None:
    if result.is_perfect:
        console.print("[bold green]Perfect score![/bold green]")
    console.print(Panel(
        f"Score: [bold]{result.score}/{result.total_questions}[/bold] ({result.accuracy_percent}%)\n"
        f"Time: {format_time(result.duration_seconds)}\n"
        f"[green]+{result.xp_awarded} XP[/green]"
        + (f"\n[dark_orange]{result.max_streak} streak[/dark_orange]" if result.max_streak >= 3 else ""),
        title="Results", border_style="green",
    ))


def choose_subject(db_path: str):
    subjects = store.get_root_subjects(db_path)
    if not subjects:
        console.print("[yellow]No subjects available.[/yellow]")
        return None
    for n, s in enumerate(subjects, 1):
        console.print(f"  [cyan]{n}[/cyan]) {s.icon} {s.title}")
    pick = IntPrompt.ask("Select subject", choices=[str(n) for n in range(1, len(subjects) + 1)])
    return subjects[pick - 1]


def choose_module(db_path: str, subject):
    modules = store.get_modules(db_path, subject.slug)
    if not modules:
        console.print("[yellow]This subject has no modules yet.[/yellow]")
        return None
    for n, m in enumerate(modules, 1):
        console.print(f"  [cyan]{n}[/cyan]) {m.title}")
    pick = IntPrompt.ask("Select module", choices=[str(n) for n in range(1, len(modules) + 1)])
    return modules[pick - 1]


def cmd_quiz(db_path: str, user_id: int, settings: Settings):
    subject = choose_subject(db_path)
    if not subject:
        return
    module = choose_module(db_path, subject)
    if not module:
        return
    chapters = store.get_chapters(db_path, module.slug)
    counts = store.count_questions_by_chapter(db_path, [c.id for c in chapters])
    for n, c in enumerate(chapters, 1):
        console.print(f"  [cyan]{n}[/cyan]) {c.title} [dim]({counts.get(c.id, 0)} questions)[/dim]")
    raw = Prompt.ask("Chapters (e.g. 1,2)", default="1")
    try:
        picked = parse_selection(raw, len(chapters))
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        return
    questions = store.fetch_questions(db_path, [chapters[i].id for i in sorted(picked)])
    session = QuizSession(questions, is_mastery=False, subject_id=subject.id, settings=settings)
    run_quiz_session(db_path, session, user_id)


def cmd_mastery(db_path: str, user_id: int, settings: Settings):
    subject = choose_subject(db_path)
    if not subject:
        return
    masters = compute_subject_masters(store.fetch_mastery_entries(db_path, subject.id))
    if masters:
        table = Table(title=f"{subject.title} Masters")
        table.add_column("Student")
        table.add_column("Time", justify="right")
        for m in masters:
            table.add_row(m.username, format_time(m.duration_seconds))
        console.print(table)
    questions = store.fetch_mastery_questions(db_path, subject.slug)
    session = QuizSession(questions, is_mastery=True, subject_id=subject.id, settings=settings)
    run_quiz_session(db_path, session, user_id)


def cmd_dashboard(db_path: str, user_id: int, settings: Settings):
    attempts = store.fetch_attempts(db_path, user_id)
    progression = store.fetch_progression(db_path, user_id)
    stats = summarize_history(attempts, progression)
    rank = stats.rank

    bar_filled = int(rank.progress / 5)
    bar = f"[{rank.current.color}]{'█' * bar_filled}{'░' * (20 - bar_filled)}[/{rank.current.color}]"
    nxt = f"{rank.xp_to_next} XP to {rank.next_tier.name}" if rank.next_tier else "Max rank"
    console.print(Panel(
        f"[bold]{rank.current.name}[/bold] · Level {stats.level} {stats.level_title}\n"
        f"{stats.total_xp} XP {bar} {nxt}",
        title="Dashboard", border_style="blue",
    ))
    console.print(f"\n  Quizzes: [bold]{stats.total_quizzes}[/bold]  |  "
                  f"Accuracy: [bold]{stats.accuracy}%[/bold]  |  "
                  f"Perfect: [bold]{stats.perfect_scores}[/bold]")

    focus = get_total_focus_time(db_path, user_id)
    overall = get_overall_progress(db_path, user_id)
    console.print(f"  Focus: [bold]{focus['hours']}h {focus['minutes']}m[/bold]  |  "
                  f"Chapters: [bold]{overall['done']}/{overall['total']}[/bold] "
                  f"({overall['percent']}%)")

    subjects = store.get_subjects_by_id(db_path)
    if stats.best_subject_id in subjects:
        console.print(f"  Best subject: [green]{subjects[stats.best_subject_id].title}[/green]")

    weak = compute_weak_subjects(
        attempts, subjects, top_n=settings.weak_top_n, threshold=settings.weak_threshold,
    )
    if weak:
        table = Table(title="Needs Review")
        table.add_column("Subject", style="cyan")
        table.add_column("Accuracy", justify="right")
        for w in weak:
            table.add_row(f"{w.icon} {w.title}", f"[red]{w.accuracy_percent}%[/red]")
        console.print(table)

    if stats.recent:
        table = Table(title="Recent Quizzes")
        table.add_column("Subject")
        table.add_column("Score", justify="right")
        table.add_column("Time", justify="right")
        table.add_column("Mode")
        for a in stats.recent:
            title = subjects[a.subject_id].title if a.subject_id in subjects else "-"
            table.add_row(title, f"{a.score}/{a.total_questions}",
                          format_time(a.duration_seconds), "Mastery" if a.is_mastery else "Chapter")
        console.print(table)

    console.print("\n[bold]Achievements:[/bold]")
    for ach in compute_achievements(stats):
        mark = "[green]✓[/green]" if ach.unlocked else "[dim]·[/dim]"
        console.print(f"  {mark} {ach.title} [dim]{ach.description}[/dim]")


def cmd_ranks(db_path: str):
    table = Table(title="Global Rankings")
    table.add_column("#", justify="right")
    table.add_column("Student")
    table.add_column("XP", justify="right")
    for n, row in enumerate(store.get_top_rankings(db_path), 1):
        table.add_row(str(n), row["username"], str(row["xp"]))
    console.print(table)


def cmd_chapters(db_path: str, user_id: int):
    subject = choose_subject(db_path)
    if not subject:
        return
    module = choose_module(db_path, subject)
    if not module:
        return
    chapters = store.get_chapters(db_path, module.slug)
    if not chapters:
        console.print("[yellow]No chapters in this module.[/yellow]")
        return
    while True:
        done = get_completed_chapters(db_path, user_id)
        progress = get_module_progress(db_path, user_id, module.slug)
        label = "[green]MASTERED[/green]" if progress["mastered"] else f"{progress['percent']}%"
        console.print(f"\n[bold]{module.title}[/bold] {label}")
        for n, c in enumerate(chapters, 1):
            mark = "[green]✓[/green]" if c.id in done else " "
            console.print(f"  [cyan]{n}[/cyan]) {mark} {c.title}")
        raw = Prompt.ask("Toggle chapter (Enter to go back)", default="")
        if not raw.strip():
            return
        try:
            picked = parse_selection(raw, len(chapters))
        except ValueError as e:
            console.print(f"[red]{e}[/red]")
            continue
        for i in sorted(picked):
            toggle_chapter(db_path, user_id, chapters[i].id)


def cmd_focus(db_path: str, user_id: int, clock=time.monotonic):
    Prompt.ask("Press Enter to start the timer", default="")
    started = clock()
    Prompt.ask("Studying... press Enter to stop", default="")
    seconds = int(clock() - started)
    if record_study_session(db_path, user_id, seconds):
        console.print(f"[green]Saved {format_time(seconds)} of focus time.[/green]")
    else:
        console.print(f"[yellow]Sessions of {MIN_STUDY_SECONDS}s or less are not saved.[/yellow]")


def cmd_import(db_path: str):
    file_path = Prompt.ask("File path")
    if not Path(file_path).exists():
        console.print(f"[red]File not found: {file_path}[/red]")
        return
    result = import_file(db_path, file_path)
    console.print(f"[green]Imported {result['imported']} question(s) from {result['filename']}[/green]")
    for n, problems in result["skipped"]:
        console.print(f"  [yellow]Skipped #{n}: {', '.join(problems)}[/yellow]")


def main():
    settings = load_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.WARNING),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    db_path = settings.db_path
    init_db(db_path)
    first_run = not is_seeded(db_path)
    if first_run:
        console.print("[dim]Setting up for first use...[/dim]")
    seed_all(db_path)

    username = Prompt.ask("Username").strip() or "Scholar"
    user_id = store.get_or_create_user(db_path, username)
    show_welcome(username)

    while True:
        show_menu()
        choice = Prompt.ask("\n[bold]>[/bold]", default="dashboard").strip().lower()
        try:
            if choice == "quiz":
                cmd_quiz(db_path, user_id, settings)
            elif choice == "mastery":
                cmd_mastery(db_path, user_id, settings)
            elif choice == "dashboard":
                cmd_dashboard(db_path, user_id, settings)
            elif choice == "ranks":
                cmd_ranks(db_path)
            elif choice == "chapters":
                cmd_chapters(db_path, user_id)
            elif choice == "focus":
                cmd_focus(db_path, user_id)
            elif choice == "import":
                cmd_import(db_path)
            elif choice in ("quit", "exit"):
                console.print("[dim]Keep studying![/dim]")
                break
            else:
                console.print("[red]Unknown command. Try again.[/red]")
        except SessionExitRequested:
            pass
        except EmptyQuestionSetError:
            console.print("[yellow]No questions available for that selection.[/yellow]")
        except KeyboardInterrupt:
            console.print("\n[dim]Use 'quit' to exit.[/dim]")
        except (UniportalError, ValueError) as e:
            logger.debug("Command %r failed", choice, exc_info=True)
            console.print(f"[red]Error: {e}[/red]")


if __name__ == "__main__":
    main()
