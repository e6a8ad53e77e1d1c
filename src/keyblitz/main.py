"""CLI entrypoint for the keybinding trainer."""

from __future__ import annotations

import argparse
import logging
from collections.abc import Callable

from .config import Settings, load_settings, parse_log_level
from .content_loader import PackNotFoundError, list_packs
from .logging_setup import setup_logging
from .service import AnswerOutcome, Outcome, Presentation, TrainingService
from .srs import LEVEL_NAMES, level_name

logger = logging.getLogger(__name__)

InputFn = Callable[[str], str]
PrintFn = Callable[[str], None]
FLOW_EXIT_COMMANDS = {":quit", ":exit", ":q"}
STATS_COMMANDS = {":stats", ":s"}
MENU_QUIT_COMMANDS = {"q"}
LIST_COMMAND = "list"


class QuitApp(Exception):
    """Signal immediate app exit from nested flows."""


def _service(pack_id: str, settings: Settings) -> TrainingService:
    """Create a training service backed by the local progress database."""
    return TrainingService(pack_id, settings.db_path, tick_interval=settings.tick_interval)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="keyblitz", description="Timed keybinding practice with spaced repetition")
    parser.add_argument("pack", nargs="?", help="pack id to train, or 'list' to show available packs")
    parser.add_argument("--stats", action="store_true", help="show progress for the pack and exit")
    parser.add_argument("--reset", action="store_true", help="erase progress for the pack")
    parser.add_argument("--log-level", help="logging level (default from KEYBLITZ_LOG_LEVEL)")
    return parser


def run(argv: list[str] | None = None, input_fn: InputFn = input, print_fn: PrintFn = print) -> int:
    """Run the CLI application."""
    args = _build_parser().parse_args(argv)
    try:
        settings = load_settings()
        log_level = parse_log_level(args.log_level) if args.log_level else settings.log_level
    except ValueError as exc:
        print_fn(f"Configuration error: {exc}")
        return 2
    setup_logging(log_level, settings.log_path)

    try:
        if args.pack == LIST_COMMAND:
            _list_flow(print_fn)
            return 0

        pack_id = args.pack
        if pack_id is None:
            pack_id = _select_pack(input_fn, print_fn)
            if pack_id is None:
                return 0

        service = _service(pack_id, settings)
    except (PackNotFoundError, ValueError, RuntimeError) as exc:
        logger.error("Could not start: %s", exc)
        print_fn(f"Error: {exc}")
        return 1

    try:
        if args.reset:
            _reset_flow(service, input_fn, print_fn)
            return 0
        if args.stats:
            _pack_stats_flow(service, print_fn)
            return 0
        return play_session(service, input_fn, print_fn)
    finally:
        service.close()


def _list_flow(print_fn: PrintFn) -> None:
    """Print bundled packs."""
    summaries = list_packs()
    print_fn("\n=== Packs ===")
    id_width = max(len("Pack"), max(len(item.id) for item in summaries))
    header = f"{'Pack':<{id_width}} {'Commands':>8} {'Groups':>6} Name"
    print_fn(header)
    print_fn("-" * len(header))
    for item in summaries:
        print_fn(f"{item.id:<{id_width}} {item.command_count:>8} {item.group_count:>6} {item.name}")


def _select_pack(input_fn: InputFn, print_fn: PrintFn) -> str | None:
    """Let the player pick a pack interactively."""
    summaries = list_packs()
    while True:
        print_fn("\n=== Choose a pack ===")
        for idx, item in enumerate(summaries, start=1):
            print_fn(f"{idx}) {item.name} ({item.command_count} commands) - {item.description}")
        print_fn("q) Quit")
        choice = input_fn("Select pack: ").strip().lower()
        if choice in MENU_QUIT_COMMANDS:
            return None
        if choice.isdigit():
            index = int(choice) - 1
            if 0 <= index < len(summaries):
                return summaries[index].id
        for item in summaries:
            if item.id == choice:
                return item.id
        print_fn("Invalid pack selection.")


def _reset_flow(service: TrainingService, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Erase progress for the service's pack after confirmation."""
    print_fn(f"WARNING: This permanently deletes all progress for '{service.pack.name}'.")
    confirm = input_fn("Type YES to confirm reset: ").strip()
    if confirm != "YES":
        print_fn("Reset cancelled.")
        return
    service.reset_progress()
    print_fn(f"Progress for '{service.pack.name}' has been reset.")


def _pack_stats_flow(service: TrainingService, print_fn: PrintFn) -> None:
    """Print level distribution and lifetime stats for the pack."""
    stats = service.pack_stats()
    totals = stats.global_stats
    print_fn(f"\n=== {stats.pack_name} ===")
    print_fn(f"Commands: {stats.total_commands} ({stats.mastered_count} mastered, {stats.due_count} due now)")
    print_fn(f"Average level: {stats.average_level:.1f} | Progress: {stats.mastered_percent}% mastered")
    print_fn(f"Group: {stats.current_group + 1}/{stats.group_count}")

    name_width = max(len(name) for name in LEVEL_NAMES)
    print_fn(f"{'Level':<{name_width}} Count")
    print_fn("-" * (name_width + 6))
    for level, count in enumerate(stats.level_counts):
        print_fn(f"{level_name(level):<{name_width}} {count:>5}")

    print_fn(f"Answered: {totals.total_commands}")
    print_fn(f"Total score: {totals.total_score}")
    print_fn(f"Best combo: {totals.best_combo}")
    print_fn(f"Time played: {_format_duration(totals.total_time_seconds)}")


def _session_stats_flow(service: TrainingService, print_fn: PrintFn) -> None:
    """Print score, combo and accuracy for this run."""
    stats = service.session_stats()
    print_fn(
        f"Score {stats.total_score} | Combo {stats.current_combo} (best {stats.best_combo}) | "
        f"Accuracy {stats.accuracy:.1f}% ({stats.correct_count}/{stats.total_attempts})"
    )


def _format_duration(seconds: float) -> str:
    minutes, secs = divmod(int(seconds), 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}h {minutes:02d}m"
    return f"{minutes}m {secs:02d}s"


def play_session(service: TrainingService, input_fn: InputFn = input, print_fn: PrintFn = print) -> int:
    """Present commands until the player quits or nothing is due."""
    print_fn(f"\n=== {service.pack.name} ===")
    print_fn("Type the key sequence for each concept. :s shows stats, :q quits.")
    try:
        while True:
            presentation = service.next_command()
            if presentation is None:
                _nothing_due(service, print_fn)
                break
            outcome = _play_command(service, presentation, input_fn, print_fn)
            _report_outcome(outcome, presentation, print_fn)
    except QuitApp:
        service.abandon()
    print_fn("\nSession over.")
    _session_stats_flow(service, print_fn)
    return 0


def _play_command(
    service: TrainingService,
    presentation: Presentation,
    input_fn: InputFn,
    print_fn: PrintFn,
) -> AnswerOutcome:
    """Prompt for one command until a non-control answer arrives."""
    command = presentation.command
    print_fn(f"\n[{level_name(presentation.level)}] {command.concept}")
    print_fn(f"Target: {presentation.target_text}")
    print_fn(f"Time: {presentation.time_limit:.1f}s")
    while True:
        typed = input_fn("Keys: ").strip()
        lowered = typed.lower()
        if lowered in FLOW_EXIT_COMMANDS:
            raise QuitApp()
        if lowered in STATS_COMMANDS:
            _session_stats_flow(service, print_fn)
            continue
        return service.submit(typed)


def _report_outcome(outcome: AnswerOutcome, presentation: Presentation, print_fn: PrintFn) -> None:
    attempt = outcome.attempt
    if outcome.outcome is Outcome.CORRECT:
        print_fn(f"Correct! +{attempt.score} (combo {attempt.combo}, {outcome.time_remaining:.1f}s left)")
        if outcome.leveled_up:
            print_fn(f"Level up: {level_name(outcome.state.level)}")
        return
    if outcome.outcome is Outcome.TIMEOUT:
        print_fn(f"Time's up. Answer: {presentation.display_keys}")
    else:
        print_fn(f"Incorrect. Answer: {presentation.display_keys}")
    if outcome.state.level < outcome.previous_level:
        print_fn(f"Dropped to {level_name(outcome.state.level)}")


def _nothing_due(service: TrainingService, print_fn: PrintFn) -> None:
    wait = service.seconds_until_next_due()
    if wait is None:
        print_fn("No commands to train in this pack.")
        return
    print_fn(f"All caught up. Next review in {_format_duration(wait)}.")


def main_entry() -> None:
    """Console script entrypoint."""
    raise SystemExit(run())


if __name__ == "__main__":  # pragma: no cover
    main_entry()
