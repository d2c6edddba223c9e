"""Command line entry point for the referral network tools."""

import argparse
import sys

from rich.console import Console
from rich.markdown import Markdown
from rich.status import Status
from rich.table import Table

from kinetic_referrals.care_records.database import Database, EpisodeRepository, init_database
from kinetic_referrals.care_records.scripts.seed_database import seed_database
from kinetic_referrals.config import configure_logging, get_db_path
from kinetic_referrals.continuity import ContinuityWorkflow
from kinetic_referrals.eligibility import simulate_eligibility
from kinetic_referrals.signals import compute_signals_for_physio, recompute_all_signals

console = Console()


def cmd_init_db(args, db: Database) -> int:
    init_database(db.db_path)
    console.print(f"[bold blue]Database ready at[/bold blue] {db.db_path}")
    return 0


def cmd_seed(args, db: Database) -> int:
    counts = seed_database(db)
    table = Table(title="Seeded records")
    table.add_column("Record")
    table.add_column("Count", justify="right")
    for name, count in counts.items():
        table.add_row(name, str(count))
    console.print(table)
    return 0


def cmd_recompute(args, db: Database) -> int:
    repo = EpisodeRepository(db)

    if args.physio_id:
        if not repo.get_physio(args.physio_id):
            console.print(f"[bold red]Error:[/bold red] physio {args.physio_id} not found")
            return 1
        with Status("Computing signals...", console=console, spinner="dots"):
            computed = {args.physio_id: compute_signals_for_physio(repo, args.physio_id)}
        failed = {}
    else:
        with Status("Computing signals...", console=console, spinner="dots"):
            report = recompute_all_signals(repo)
        computed, failed = report.computed, report.failed

    table = Table(title="Computed signals")
    table.add_column("Physio")
    table.add_column("Signal")
    table.add_column("Value", justify="right")
    table.add_column("Confidence")
    table.add_column("Episodes", justify="right")
    for physio_id, signals in computed.items():
        for signal in signals:
            table.add_row(
                physio_id, signal.signal_type, str(signal.value),
                signal.confidence, str(signal.episode_count),
            )
    console.print(table)

    for physio_id, error in failed.items():
        console.print(f"[bold red]Failed:[/bold red] {physio_id}: {error}")
    return 1 if failed else 0


def cmd_eligibility(args, db: Database) -> int:
    result = simulate_eligibility(EpisodeRepository(db), args.physio_id)
    if not result.success:
        console.print(f"[bold red]Error:[/bold red] {result.error}")
        return 1

    eligibility = result.value
    console.print(
        f"[bold cyan]Eligible referral sets:[/bold cyan] "
        f"{eligibility.eligible_referral_sets}/{eligibility.total_referral_sets}"
    )
    for gap in eligibility.gaps:
        console.print(f"  [yellow]-[/yellow] {gap}")
    return 0


def cmd_summary(args, db: Database) -> int:
    result = ContinuityWorkflow(db).view_summary(args.summary_id, args.physio)
    if not result.success:
        console.print(f"[bold red]Error:[/bold red] {result.error}")
        return 1

    summary = result.value.summary
    lines = [
        f"# Continuity summary ({summary.status.value}, {result.value.access_level} access)",
        "## Condition",
        summary.condition_framing,
        "## Working hypothesis",
        summary.diagnosis_hypothesis,
        "## Interventions attempted",
        *[f"- {item}" for item in summary.interventions_attempted],
        "## Response profile",
        *[f"- Responded: {item}" for item in summary.response_profile.get("responded", [])],
        *[f"- Did not respond: {item}" for item in summary.response_profile.get("did_not_respond", [])],
        "## Current status",
        summary.current_status,
        "## Open considerations",
        *[f"- {item}" for item in summary.open_considerations],
    ]
    if summary.physio_annotations:
        lines += ["## Physio notes", summary.physio_annotations]
    console.print(Markdown("\n\n".join(lines)))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kinetic-referrals",
        description="Referral signals, eligibility and continuity summaries.",
    )
    parser.add_argument("--db", help="Database file (defaults to KINETIC_DB_PATH)")
    parser.add_argument("--log-level", help="Log level (defaults to KINETIC_LOG_LEVEL)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init-db", help="Create the database schema").set_defaults(func=cmd_init_db)
    subparsers.add_parser("seed", help="Load mock network data").set_defaults(func=cmd_seed)

    recompute = subparsers.add_parser("recompute", help="Recompute signals")
    recompute.add_argument("physio_id", nargs="?", help="Only this physio (default: all)")
    recompute.set_defaults(func=cmd_recompute)

    eligibility = subparsers.add_parser("eligibility", help="Simulate referral eligibility")
    eligibility.add_argument("physio_id")
    eligibility.set_defaults(func=cmd_eligibility)

    summary = subparsers.add_parser("summary", help="Show a continuity summary")
    summary.add_argument("summary_id")
    summary.add_argument("--physio", required=True, help="Physio viewing the summary")
    summary.set_defaults(func=cmd_summary)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    db = Database(args.db or get_db_path())

    try:
        return args.func(args, db)
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
