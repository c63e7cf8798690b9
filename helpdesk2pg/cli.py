"""
CLI: argument parsing, dry-run mode, and main migration pipeline.
"""

import argparse
from pathlib import Path

from rich.panel import Panel
from rich.prompt import Confirm
from rich.table import Table
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich import box

from helpdesk2pg import console, CONFIG_FILE, REPORT_FILE
from helpdesk2pg.config import MigrationSettings, init_config, load_config
from helpdesk2pg.database import open_database, print_connection_hints
from helpdesk2pg.errors import MigrationError, ConnectionFailure
from helpdesk2pg.fulltext import FULLTEXT_COLUMNS, FULLTEXT_TABLE, FulltextProvisioner
from helpdesk2pg.orchestrator import Migrator, MigrationReport
from helpdesk2pg.reporting import generate_html_report


def parse_args(argv=None):
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(
        description="Helpdesk database → PostgreSQL Migration Tool",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  python migrate.py --init                          Create config file template\n"
            "  python migrate.py --copy --dry-run                Preview the copy, no writes\n"
            "  python migrate.py --copy                          Copy all tables\n"
            "  python migrate.py --copy --fulltext add \\\n"
            "      mysql://otrs@db1/otrs postgresql://otrs@db2/otrs\n"
        ),
    )
    parser.add_argument("source", nargs="?", help="Source DSN (instead of --source-dsn)")
    parser.add_argument("destination", nargs="?", help="Destination DSN (instead of --dest-dsn)")

    parser.add_argument("--init", action="store_true", help="Create migration_config.json template and exit")
    parser.add_argument("--config", default=str(CONFIG_FILE), help="Path of the JSON config file")

    parser.add_argument("--copy", action="store_true", help="Copy the content of all tables")
    parser.add_argument(
        "--fulltext",
        choices=("add", "remove"),
        help="Install or remove the trigram fulltext search objects on the destination",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Read, count and report — no DELETE/INSERT or DDL on the destination",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Show per-table progress and details")
    parser.add_argument("-y", "--yes", action="store_true", help="Do not ask for confirmation")

    parser.add_argument("--source-dsn", help="Source DSN, e.g. mysql://host:3306/otrs")
    parser.add_argument("--source-user", help="Source database user")
    parser.add_argument("--source-password", help="Source database password")
    parser.add_argument("--dest-dsn", help="Destination DSN, e.g. postgresql://host:5432/otrs")
    parser.add_argument("--dest-user", help="Destination database user")
    parser.add_argument("--dest-password", help="Destination database password")

    parser.add_argument(
        "--lenient-encoding",
        action="store_true",
        help="Store attachments with undeterminable charsets as base64 instead of aborting",
    )
    parser.add_argument(
        "--keep-triggers",
        action="store_true",
        help="Leave foreign key triggers active on the destination during the copy",
    )
    parser.add_argument("--report", nargs="?", const=REPORT_FILE, help="Write an HTML report (default: %(const)s)")
    return parser.parse_args(argv)


def _overrides(args) -> dict:
    return {
        "source": {
            "dsn": args.source_dsn or args.source,
            "user": args.source_user,
            "password": args.source_password,
        },
        "destination": {
            "dsn": args.dest_dsn or args.destination,
            "user": args.dest_user,
            "password": args.dest_password,
        },
    }


def print_summary(report: MigrationReport, verbose: bool = False):
    """Per-table results as a table (verbose) or a one-line summary."""
    if verbose:
        table = Table(box=box.ROUNDED, show_lines=False, pad_edge=True)
        table.add_column("Table", style="cyan", min_width=20)
        table.add_column("Source", justify="right", style="yellow")
        table.add_column("Copied", justify="right", style="green")
        table.add_column("Base64", justify="right")
        table.add_column("Status", justify="center")

        for outcome in report.tables:
            result = outcome.result
            if result is None:
                table.add_row(outcome.table.name, "-", "-", "-", "[yellow]⚠ SKIPPED[/yellow]")
            else:
                table.add_row(
                    outcome.table.name,
                    f"{result.source_rows:,}",
                    f"{result.copied_rows:,}",
                    f"{result.encoded_rows:,}",
                    "[green]✓ OK[/green]",
                )
        console.print(table)

    color = "yellow" if report.skipped else "green"
    console.print(
        f"  [{color}]Tables:[/] {len(report.copied)}/{len(report.tables)} copied, "
        f"{report.total_rows:,} rows, {len(report.skipped)} skipped"
    )
    if report.sequences:
        console.print(f"  [green]Sequences:[/green] {len(report.sequences)} reset")


def main(argv=None):
    args = parse_args(argv)
    config_file = Path(args.config)

    # ── Handle --init flag ────────────────────────────────────
    if args.init:
        console.print(
            Panel(
                "[bold white]Helpdesk → PostgreSQL Migration Tool[/bold white]\n"
                "[dim]Configuration Setup[/dim]",
                border_style="bright_cyan",
                padding=(1, 4),
            )
        )
        init_config(config_file)
        return 0

    if not args.copy and not args.fulltext:
        console.print(
            "\n[red]✗ Nothing to do.[/red] Pass [cyan]--copy[/cyan] and/or "
            "[cyan]--fulltext add|remove[/cyan] (see --help).\n"
        )
        return 1

    source_cfg, dest_cfg = load_config(config_file, _overrides(args))
    settings = MigrationSettings(
        dry_run=args.dry_run,
        verbose=args.verbose,
        strict_encoding=not args.lenient_encoding,
        disable_triggers=not args.keep_triggers,
        console=console,
    )

    # ── Banner ────────────────────────────────────────────────
    subtitle = "🔍 DRY RUN — nothing will be written" if args.dry_run else "Table-by-table copy with content repair"
    console.print(
        Panel(
            "[bold white]Helpdesk → PostgreSQL Migration Tool[/bold white]\n"
            f"[dim]{subtitle}[/dim]",
            border_style="bright_magenta" if args.dry_run else "bright_cyan",
            padding=(1, 4),
        )
    )

    # ── Connect ───────────────────────────────────────────────
    source = destination = None
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            task = progress.add_task("[cyan]Connecting to both databases...", total=1)
            source = open_database(source_cfg, "source", schema=settings.schema)
            destination = open_database(dest_cfg, "destination", schema=settings.schema)
            progress.update(task, completed=1)
    except ConnectionFailure as e:
        print_connection_hints(source_cfg if e.label == "source" else dest_cfg, e.cause)
        if source is not None:
            source.close()
        return 1

    console.print("  [green]✓[/green] Connected to source and destination\n")

    try:
        console.print(
            Panel(
                f"[bold]Source:[/bold]  {source_cfg.safe_uri}\n"
                f"[bold]Target:[/bold]  {dest_cfg.safe_uri}",
                title="Migration Summary",
                border_style="yellow",
            )
        )

        if not args.dry_run and not args.yes:
            warning = "All rows in the destination tables will be replaced. " if args.copy else ""
            if not Confirm.ask(f"\n  {warning}Proceed?", default=False):
                console.print("[dim]Migration cancelled.[/dim]")
                return 0
        console.print("")

        return _run(args, settings, source, destination, source_cfg, dest_cfg)
    finally:
        source.close()
        destination.close()


def _run(args, settings, source, destination, source_cfg, dest_cfg) -> int:
    steps = (args.fulltext == "remove") + bool(args.copy) * 2 + (args.fulltext == "add")
    step = 0

    def header(text: str):
        nonlocal step
        step += 1
        console.print(f"[bold yellow][{step}/{steps}][/bold yellow] {text}")

    provisioner = FulltextProvisioner(destination, settings)
    migrator = Migrator(source, destination, settings)
    report = MigrationReport(dry_run=settings.dry_run)

    try:
        if args.fulltext == "remove":
            header("Removing fulltext search objects...")
            provisioner.remove()
            if settings.dry_run and args.copy:
                # the columns are still there; compare tables as if they were dropped
                settings.ignored_columns[FULLTEXT_TABLE] = set(FULLTEXT_COLUMNS)
                console.print(
                    f"  [yellow]⚠ Dry run: {FULLTEXT_TABLE}.{', '.join(FULLTEXT_COLUMNS)} "
                    "ignored in the column check[/yellow]"
                )
            console.print("  [green]✓[/green] Fulltext search objects removed\n")

        if args.copy:
            header("Copying tables...")
            plan = migrator.plan()
            console.print(
                f"  [dim]{len(plan.copyable)} tables to copy, {len(plan.skipped)} present on one side only[/dim]"
            )
            migrator.run_copy(plan, report)
            console.print("")

            header("Resetting sequences...")
            migrator.resync_sequences(report)
            console.print(f"  [green]✓[/green] {len(report.sequences)} sequences reset\n")

        if args.fulltext == "add":
            header("Installing fulltext search objects...")
            provisioner.add()
            console.print("  [green]✓[/green] Fulltext search objects installed\n")

    except (MigrationError, source.driver_error, destination.driver_error) as e:
        console.print(f"\n[red]✗ {e}[/red]\n")
        console.print(
            Panel(
                "[bold red]✗ Migration aborted[/bold red]\n"
                "Tables copied before the failure keep their new content; "
                "fix the cause and run the tool again.",
                border_style="red",
                padding=(1, 2),
            )
        )
        return 1

    if args.copy:
        print_summary(report, verbose=settings.verbose)
        if args.report:
            html_path = generate_html_report(report, source_cfg, dest_cfg, args.report)
            console.print(f"  [green]✓[/green] Detailed report generated: [cyan]{html_path}[/cyan]")

    done = "Dry run finished — nothing was written." if settings.dry_run else "Migration completed successfully!"
    console.print(
        Panel(
            f"[bold green]✓ {done}[/bold green]",
            border_style="green",
            padding=(1, 2),
        )
    )
    return 0
