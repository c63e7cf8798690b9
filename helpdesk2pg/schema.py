"""
Schema inspection: user tables, sequences and column metadata from either engine.
"""

from helpdesk2pg.database import Database
from helpdesk2pg.models import ColumnDescriptor, TableDescriptor


def list_user_tables(db: Database) -> list[str]:
    """Base tables of the connected database (the ``public`` schema on PostgreSQL)."""
    return db.list_tables()


def list_user_sequences(db: Database) -> list[str]:
    """Sequence names; empty on engines without native sequences."""
    return db.list_sequences()


def describe_columns(db: Database, table: str) -> tuple[list[str], dict[str, ColumnDescriptor]]:
    """Ordered lower-cased column names plus name → ColumnDescriptor."""
    columns = [ColumnDescriptor(name, declared_type) for name, declared_type in db.describe_columns(table)]
    return [c.name for c in columns], {c.name: c for c in columns}


def describe_table(db: Database, table: str) -> TableDescriptor:
    names, columns = describe_columns(db, table)
    return TableDescriptor(table, [columns[name] for name in names])
