"""
Migration orchestration: table planning, delete-then-load per table, and
sequence resynchronization on the destination.
"""

from helpdesk2pg.config import MigrationSettings
from helpdesk2pg.database import Database
from helpdesk2pg.errors import TriggerSuspensionFailure
from helpdesk2pg.models import MigrationPlan, PlannedTable, SequenceRef
from helpdesk2pg.schema import list_user_tables, list_user_sequences
from helpdesk2pg.transfer import TableTransfer, TransferResult


def plan_tables(source: Database, destination: Database) -> MigrationPlan:
    """Case-insensitive union of both table lists, source order first."""
    planned = {}
    for name in list_user_tables(source):
        planned.setdefault(name.lower(), PlannedTable(name, source_name=name))
    for name in list_user_tables(destination):
        entry = planned.get(name.lower())
        if entry is None:
            planned[name.lower()] = PlannedTable(name, destination_name=name)
        elif entry.destination_name is None:
            entry.destination_name = name
    return MigrationPlan(list(planned.values()))


class TableOutcome:
    def __init__(self, table: PlannedTable, status: str, result: TransferResult = None):
        self.table = table
        self.status = status
        self.result = result


class SequenceOutcome:
    def __init__(self, ref: SequenceRef, next_value: int):
        self.ref = ref
        self.next_value = next_value


class MigrationReport:
    def __init__(self, dry_run: bool = False):
        self.dry_run = dry_run
        self.tables: list[TableOutcome] = []
        self.sequences: list[SequenceOutcome] = []

    @property
    def copied(self) -> list[TableOutcome]:
        return [t for t in self.tables if t.status == "copied"]

    @property
    def skipped(self) -> list[TableOutcome]:
        return [t for t in self.tables if t.status == "skipped"]

    @property
    def total_rows(self) -> int:
        return sum(t.result.copied_rows for t in self.copied)


class Migrator:
    def __init__(self, source: Database, destination: Database, settings: MigrationSettings):
        self.source = source
        self.destination = destination
        self.settings = settings
        self.console = settings.console
        self.transfer = TableTransfer(source, destination, settings)

    def plan(self) -> MigrationPlan:
        return plan_tables(self.source, self.destination)

    def run_copy(self, plan: MigrationPlan, report: MigrationReport = None) -> MigrationReport:
        """Replace the content of every table present on both sides.

        Each destination table is emptied with its own committed DELETE, then
        refilled by the transfer engine in one transaction. The first fatal
        error stops the run; tables already copied stay copied.
        """
        report = report or MigrationReport(dry_run=self.settings.dry_run)
        dry_run = self.settings.dry_run
        suspend = self.settings.disable_triggers and not dry_run

        if suspend:
            self._suspend_triggers()
        try:
            for position, planned in enumerate(plan.tables, start=1):
                prefix = f"  [dim]({position}/{len(plan.tables)})[/dim]"
                if not planned.copyable:
                    side = "destination" if planned.in_source else "source"
                    self.console.print(
                        f"{prefix} [yellow]⚠ {planned.name}: not present in {side}, skipped[/yellow]"
                    )
                    report.tables.append(TableOutcome(planned, "skipped"))
                    continue

                descriptors = self.transfer.check_columns(planned.source_name, planned.destination_name)
                if dry_run:
                    if self.settings.verbose:
                        self.console.print(f"{prefix} [dim]would delete all rows of {planned.destination_name}[/dim]")
                else:
                    self.destination.delete_all(planned.destination_name)

                result = self.transfer.copy(planned.source_name, planned.destination_name, descriptors)
                note = f", {result.encoded_rows:,} base64-encoded" if result.encoded_rows else ""
                verb = "would copy" if dry_run else "copied"
                self.console.print(
                    f"{prefix} [green]✓[/green] [cyan]{planned.name}[/cyan] "
                    f"{verb} {result.copied_rows:,} rows{note}"
                )
                report.tables.append(TableOutcome(planned, "copied", result))
        finally:
            if suspend:
                self.destination.rollback()
                self.destination.enable_triggers()
                self.destination.commit()

        return report

    def _suspend_triggers(self):
        try:
            self.destination.disable_triggers()
            self.destination.commit()
        except self.destination.driver_error as e:
            self.destination.rollback()
            self.console.print(
                "\n  [yellow]Troubleshooting:[/yellow]\n"
                "    • Suspending triggers needs a superuser on the destination\n"
                "    • Or run with [cyan]--keep-triggers[/cyan] if foreign keys allow the load order"
            )
            raise TriggerSuspensionFailure(self.destination.label, e) from e

    def resync_sequences(self, report: MigrationReport = None) -> MigrationReport:
        """Point each ``<table>_id_seq`` / ``<table>_id_s`` sequence past ``max(id)``.

        An empty table restarts its sequence at 1.
        """
        report = report or MigrationReport(dry_run=self.settings.dry_run)
        tables = {name.lower(): name for name in list_user_tables(self.destination)}

        for sequence in list_user_sequences(self.destination):
            ref = SequenceRef.from_sequence(sequence)
            if ref is None or ref.table.lower() not in tables:
                self.console.print(f"  [yellow]⚠ Sequence {sequence}: no backing table found, skipped[/yellow]")
                continue
            ref.table = tables[ref.table.lower()]

            max_id = self.destination.max_id(ref.table)
            next_value = (max_id or 0) + 1
            if not self.settings.dry_run:
                self.destination.set_sequence_next(sequence, next_value)
            if self.settings.verbose:
                self.console.print(f"  [dim]{sequence} → {next_value}[/dim]")
            report.sequences.append(SequenceOutcome(ref, next_value))

        if not self.settings.dry_run:
            self.destination.commit()
        return report

    def migrate(self) -> MigrationReport:
        report = MigrationReport(dry_run=self.settings.dry_run)
        self.run_copy(self.plan(), report)
        self.resync_sequences(report)
        return report
