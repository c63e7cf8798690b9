import io
import typing as t

import pytest
from rich.console import Console

from helpdesk2pg.config import MigrationSettings
from helpdesk2pg.database import Database


class FakeDriverError(Exception):
    pass


class Wrapped:
    """What FakeDatabase.binary() hands back, so tests can see the hint."""

    def __init__(self, value: bytes):
        self.value = value


class FakeDatabase(Database):
    """In-memory engine with the adapter surface of ``Database``.

    Mutations are logged in ``statements`` and fetches in ``fetches``;
    ``begin``/``commit``/``rollback`` snapshot and restore table rows.
    """

    driver_error = FakeDriverError

    def __init__(self, engine: str = "postgresql", label: str = "fake"):
        super().__init__(config=None, label=label)
        self.engine = engine
        self.tables: dict[str, dict] = {}
        self.sequences: dict[str, int] = {}
        self.statements: list[tuple] = []
        self.fetches: list[tuple] = []
        self.binary_bound = 0
        self.fail_on_insert: t.Optional[str] = None
        self.fail_on_statement: t.Optional[str] = None
        self._snapshot = None
        self.commits = 0
        self.rollbacks = 0

    # ── setup helpers ─────────────────────────────────────────

    def add_table(self, name: str, columns: list[tuple[str, str]], rows: list[tuple] = ()):
        self.tables[name] = {"columns": list(columns), "rows": [tuple(r) for r in rows]}
        return self

    def rows(self, name: str) -> list[tuple]:
        return list(self.tables[name]["rows"])

    def mutations(self, kind: str) -> list[tuple]:
        return [s for s in self.statements if s[0] == kind]

    def _positions(self, table: str, columns: list[str]) -> list[int]:
        names = [c.lower() for c, _ in self.tables[table]["columns"]]
        return [names.index(c.lower()) for c in columns]

    # ── adapter surface ───────────────────────────────────────

    def connect(self):
        return self

    def close(self):
        pass

    def list_tables(self) -> list[str]:
        return list(self.tables)

    def list_sequences(self) -> list[str]:
        return list(self.sequences)

    def describe_columns(self, table: str) -> list[tuple[str, str]]:
        return list(self.tables[table]["columns"])

    def count_rows(self, table: str) -> int:
        return len(self.tables[table]["rows"])

    def _ids(self, table: str) -> list:
        pos = self._positions(table, ["id"])[0]
        return [r[pos] for r in self.tables[table]["rows"]]

    def id_bounds(self, table: str) -> tuple:
        ids = self._ids(table)
        return (min(ids), max(ids)) if ids else (None, None)

    def max_id(self, table: str):
        ids = self._ids(table)
        return max(ids) if ids else None

    def fetch_rows(self, table: str, columns: list[str], chunk=None):
        self.fetches.append((table, None if chunk is None else (chunk.low, chunk.high)))
        positions = self._positions(table, columns)
        id_pos = self._positions(table, ["id"])[0] if chunk is not None else None
        for row in list(self.tables[table]["rows"]):
            if chunk is not None and not (chunk.low <= row[id_pos] <= chunk.high):
                continue
            yield tuple(row[p] for p in positions)

    def insert_rows(self, table: str, columns: list[str], rows: list[tuple]):
        if self.fail_on_insert == table:
            raise FakeDriverError(f"insert into {table} failed")
        positions = self._positions(table, columns)
        width = len(self.tables[table]["columns"])
        for row in rows:
            stored = [None] * width
            for pos, value in zip(positions, row):
                if isinstance(value, Wrapped):
                    self.binary_bound += 1
                    value = value.value
                stored[pos] = value
            self.tables[table]["rows"].append(tuple(stored))
        self.statements.append(("INSERT", table, len(rows)))

    def delete_all(self, table: str):
        self.tables[table]["rows"] = []
        self.statements.append(("DELETE", table))
        self.commit()

    def set_sequence_next(self, sequence: str, value: int):
        self.sequences[sequence] = value
        self.statements.append(("SETVAL", sequence, value))

    def execute(self, sql: str, params=None):
        if self.fail_on_statement and self.fail_on_statement in sql:
            raise FakeDriverError(f"statement failed: {self.fail_on_statement}")
        self.statements.append(("EXECUTE", sql))

    def binary(self, value):
        return Wrapped(value)

    def disable_triggers(self):
        self.statements.append(("TRIGGERS", "off"))

    def enable_triggers(self):
        self.statements.append(("TRIGGERS", "on"))

    def begin(self):
        self._snapshot = {name: list(tbl["rows"]) for name, tbl in self.tables.items()}

    def commit(self):
        self._snapshot = None
        self.commits += 1

    def rollback(self):
        if self._snapshot is not None:
            for name, rows in self._snapshot.items():
                self.tables[name]["rows"] = rows
        self._snapshot = None
        self.rollbacks += 1


@pytest.fixture
def quiet_console() -> Console:
    return Console(file=io.StringIO(), width=120)


@pytest.fixture
def settings(quiet_console: Console) -> MigrationSettings:
    return MigrationSettings(console=quiet_console)


@pytest.fixture
def dry_settings(quiet_console: Console) -> MigrationSettings:
    return MigrationSettings(dry_run=True, console=quiet_console)


@pytest.fixture
def source() -> FakeDatabase:
    return FakeDatabase(engine="mysql", label="source")


@pytest.fixture
def destination() -> FakeDatabase:
    return FakeDatabase(engine="postgresql", label="destination")


USER_COLUMNS_MYSQL = [("id", "int(11)"), ("name", "varchar(200)"), ("email", "varchar(150)")]
USER_COLUMNS_PG = [("id", "integer"), ("name", "character varying"), ("email", "character varying")]

ATTACHMENT_COLUMNS_MYSQL = [
    ("id", "bigint(20)"),
    ("article_id", "bigint(20)"),
    ("filename", "varchar(250)"),
    ("content_type", "varchar(450)"),
    ("content_encoding", "varchar(20)"),
    ("content", "longblob"),
]
ATTACHMENT_COLUMNS_PG = [
    ("id", "bigint"),
    ("article_id", "bigint"),
    ("filename", "character varying"),
    ("content_type", "character varying"),
    ("content_encoding", "character varying"),
    ("content", "text"),
]
