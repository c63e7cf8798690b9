"""
Error taxonomy for a migration run.

Every fatal condition is a ``MigrationError``; the CLI catches it once,
prints it and exits non-zero. Nothing is retried.
"""


class MigrationError(RuntimeError):
    """Base class for conditions that abort a migration run."""


class ConnectionFailure(MigrationError):
    """A database is unreachable or rejected the credentials."""

    def __init__(self, label: str, cause: Exception):
        self.label = label
        self.cause = cause
        super().__init__(f"Cannot connect to {label} database: {cause}")


class SchemaMismatch(MigrationError):
    """Source and destination disagree on the column set of a table."""

    def __init__(self, table: str, source_columns, destination_columns):
        self.table = table
        self.source_columns = list(source_columns)
        self.destination_columns = list(destination_columns)
        super().__init__(
            f"Column mismatch in table '{table}':\n"
            f"  source:      {', '.join(self.source_columns)}\n"
            f"  destination: {', '.join(self.destination_columns)}"
        )


class RowCountMismatch(MigrationError):
    """Rows copied for a table differ from the source row count."""

    def __init__(self, table: str, expected: int, actual: int, where: str = "copied"):
        self.table = table
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Row count mismatch in table '{table}': source has {expected} rows, "
            f"{where} {actual}"
        )


class EncodingUnrecoverable(MigrationError):
    """A payload's character encoding cannot be determined or repaired."""

    def __init__(self, reason: str, table: str = None):
        self.reason = reason
        self.table = table
        where = f" in table '{table}'" if table else ""
        super().__init__(f"Unrecoverable encoding{where}: {reason}")


class AdministrativeStatementFailure(MigrationError):
    """A fulltext provisioning statement failed."""

    def __init__(self, statement: str, cause: Exception):
        self.statement = statement
        self.cause = cause
        first_line = statement.strip().splitlines()[0]
        super().__init__(f"Statement failed: {first_line} … ({cause})")


class TriggerSuspensionFailure(MigrationError):
    """The destination refused to switch off triggers for the copy."""

    def __init__(self, label: str, cause: Exception):
        self.label = label
        self.cause = cause
        super().__init__(
            f"Cannot suspend triggers on {label} database: {cause}. "
            "This needs superuser rights; rerun with --keep-triggers to copy with triggers active"
        )
