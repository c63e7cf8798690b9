"""
Row transfer: copy one table from the source to the destination inside a
single destination transaction, then verify the row count.
"""

from rich.progress import (
    Progress, SpinnerColumn, TextColumn,
    BarColumn, TaskProgressColumn, TimeElapsedColumn,
)

from helpdesk2pg.config import MigrationSettings
from helpdesk2pg.content import ContentNormalizer, BASE64
from helpdesk2pg.database import Database
from helpdesk2pg.errors import SchemaMismatch, RowCountMismatch, EncodingUnrecoverable
from helpdesk2pg.models import Row, TableDescriptor, column_index, chunk_ranges, is_int32_type
from helpdesk2pg.schema import describe_table


class TransferResult:
    def __init__(self, table: str, source_rows: int, copied_rows: int, chunks: int,
                 encoded_rows: int = 0, dry_run: bool = False):
        self.table = table
        self.source_rows = source_rows
        self.copied_rows = copied_rows
        self.chunks = chunks
        self.encoded_rows = encoded_rows
        self.dry_run = dry_run


class TableTransfer:
    def __init__(self, source: Database, destination: Database, settings: MigrationSettings):
        self.source = source
        self.destination = destination
        self.settings = settings
        self.console = settings.console
        self.normalizer = ContentNormalizer(settings)

    def plan_chunks(self, source_table: str, table: TableDescriptor) -> list:
        """Id ranges to fetch; ``[None]`` means one pass over the whole table."""
        id_column = table.column("id")
        if id_column is None or not is_int32_type(id_column.declared_type):
            return [None]
        low, high = self.source.id_bounds(source_table)
        return chunk_ranges(low, high, self.settings.chunk_size)

    def _is_attachment_table(self, table: TableDescriptor) -> bool:
        if table.name.lower() != self.settings.attachment_table.lower():
            return False
        missing = [c for c in self.settings.attachment_columns.as_tuple() if c not in table]
        if missing:
            self.console.print(
                f"  [yellow]⚠ {table.name} lacks column(s) {', '.join(missing)}; "
                "attachment content is copied unchanged[/yellow]"
            )
            return False
        return True

    def _bind(self, row: Row, columns: list[str], binary_columns: set[str], table: str) -> tuple:
        """Positional insert values with binary columns wrapped for the driver."""
        values = []
        for name, value in zip(columns, row.values()):
            if isinstance(value, (bytearray, memoryview)):
                value = bytes(value)
            if name in binary_columns:
                if isinstance(value, str):
                    value = value.encode("utf-8")
                if value is not None:
                    value = self.destination.binary(value)
            elif isinstance(value, bytes):
                try:
                    value = value.decode("utf-8")
                except UnicodeDecodeError as e:
                    raise EncodingUnrecoverable(
                        f"column '{name}' holds bytes that are not valid UTF-8 ({e.reason})",
                        table=table,
                    ) from e
            values.append(value)
        return tuple(values)

    def check_columns(self, source_table: str, destination_table: str) -> tuple[TableDescriptor, TableDescriptor]:
        """Describe both sides; raise SchemaMismatch if the column name sets differ."""
        source_desc = describe_table(self.source, source_table)
        dest_desc = describe_table(self.destination, destination_table)
        ignored = self.settings.ignored_columns.get(destination_table.lower())
        if ignored:
            dest_desc = TableDescriptor(dest_desc.name, [c for c in dest_desc.columns if c.name not in ignored])
        if source_desc.column_set != dest_desc.column_set:
            raise SchemaMismatch(destination_table, source_desc.column_names, dest_desc.column_names)
        return source_desc, dest_desc

    def copy(self, source_table: str, destination_table: str = None, descriptors: tuple = None) -> TransferResult:
        """Copy every row of ``source_table`` into ``destination_table``.

        The destination is expected to be empty. Raises SchemaMismatch before
        touching the destination when the column sets differ, and
        RowCountMismatch when the copy does not reproduce the source count.
        Any other failure rolls the table transaction back and propagates.
        ``descriptors`` reuses the result of an earlier ``check_columns``.
        """
        destination_table = destination_table or source_table
        dry_run = self.settings.dry_run

        source_desc, dest_desc = descriptors or self.check_columns(source_table, destination_table)

        columns = dest_desc.column_names
        binary_columns = dest_desc.binary_columns
        index = column_index(columns)
        attachment = self.settings.attachment_columns if self._is_attachment_table(dest_desc) else None

        expected = self.source.count_rows(source_table)
        chunks = self.plan_chunks(source_table, source_desc)

        copied = 0
        encoded = 0
        if not dry_run:
            self.destination.begin()
        try:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                TaskProgressColumn(),
                TimeElapsedColumn(),
                console=self.console,
                disable=not self.settings.verbose,
                transient=True,
            ) as progress:
                task = progress.add_task(f"[cyan]{destination_table}", total=expected or None)
                for chunk in chunks:
                    batch = []
                    for values in self.source.fetch_rows(source_table, columns, chunk):
                        row = Row(values, index, attachment)
                        if attachment is not None and self.normalizer.normalize(row, destination_table) == BASE64:
                            encoded += 1
                        batch.append(self._bind(row, columns, binary_columns, destination_table))
                    if batch and not dry_run:
                        self.destination.insert_rows(destination_table, columns, batch)
                    copied += len(batch)
                    progress.update(task, advance=len(batch))
            if not dry_run:
                self.destination.commit()
        except Exception:
            if not dry_run:
                self.destination.rollback()
            raise

        if copied != expected:
            raise RowCountMismatch(destination_table, expected, copied)
        if not dry_run:
            actual = self.destination.count_rows(destination_table)
            if actual != expected:
                raise RowCountMismatch(destination_table, expected, actual, where="destination holds")

        return TransferResult(
            destination_table, expected, copied, len(chunks),
            encoded_rows=encoded, dry_run=dry_run,
        )
