"""
Table, column and row structures shared by the inspector and the copy engine.
"""

import re


BINARY_TYPES = {
    "bytea", "blob", "tinyblob", "mediumblob", "longblob", "binary", "varbinary",
}

INT32_TYPE = re.compile(r"^(int|integer|int4|serial)(\(\d+\))?( unsigned)?$")

SEQUENCE_SUFFIXES = ("_id_seq", "_id_s")


def base_type(declared_type: str) -> str:
    """``varchar(255)`` → ``varchar``; ``int(11) unsigned`` → ``int``."""
    return declared_type.split("(")[0].split()[0].lower().strip() if declared_type else ""


def is_binary_type(declared_type: str) -> bool:
    return base_type(declared_type) in BINARY_TYPES


def is_int32_type(declared_type: str) -> bool:
    return bool(INT32_TYPE.match((declared_type or "").lower().strip()))


class ColumnDescriptor:
    def __init__(self, name: str, declared_type: str):
        self.name = name.lower()
        self.declared_type = declared_type
        self.is_binary = is_binary_type(declared_type)

    def __repr__(self):
        return f"ColumnDescriptor({self.name!r}, {self.declared_type!r})"


class TableDescriptor:
    def __init__(self, name: str, columns: list[ColumnDescriptor]):
        self.name = name
        self.columns = list(columns)
        self._by_name = {c.name: c for c in self.columns}

    @property
    def column_names(self) -> list[str]:
        return [c.name for c in self.columns]

    @property
    def column_set(self) -> set[str]:
        return set(self._by_name)

    @property
    def binary_columns(self) -> set[str]:
        return {c.name for c in self.columns if c.is_binary}

    def column(self, name: str) -> ColumnDescriptor:
        return self._by_name.get(name.lower())

    def __contains__(self, name: str) -> bool:
        return name.lower() in self._by_name


class Row:
    """One fetched row, addressed by column name.

    ``index`` maps column name → position and is computed once per table;
    ``attachment`` names the content columns for the attachment accessors.
    """

    __slots__ = ("_values", "_index", "_attachment")

    def __init__(self, values, index: dict[str, int], attachment=None):
        self._values = list(values)
        self._index = index
        self._attachment = attachment

    def __getitem__(self, column: str):
        return self._values[self._index[column]]

    def __setitem__(self, column: str, value):
        self._values[self._index[column]] = value

    def values(self) -> tuple:
        return tuple(self._values)

    @property
    def content(self):
        return self[self._attachment.content]

    @content.setter
    def content(self, value):
        self[self._attachment.content] = value

    @property
    def content_type(self):
        return self[self._attachment.content_type]

    @content_type.setter
    def content_type(self, value):
        self[self._attachment.content_type] = value

    @property
    def content_encoding(self):
        return self[self._attachment.content_encoding]

    @content_encoding.setter
    def content_encoding(self, value):
        self[self._attachment.content_encoding] = value

    @property
    def filename(self):
        return self[self._attachment.filename]


def column_index(column_names: list[str]) -> dict[str, int]:
    return {name: pos for pos, name in enumerate(column_names)}


class ChunkRange:
    """Inclusive primary key bounds of one fetch."""

    def __init__(self, low: int, high: int):
        self.low = low
        self.high = high

    def __eq__(self, other):
        return isinstance(other, ChunkRange) and (self.low, self.high) == (other.low, other.high)

    def __repr__(self):
        return f"ChunkRange({self.low}, {self.high})"


def chunk_ranges(low: int, high: int, step: int) -> list[ChunkRange]:
    """Cover ``[low, high]`` with consecutive ranges of ``step`` keys."""
    if low is None or high is None:
        return []
    return [ChunkRange(start, start + step - 1) for start in range(low, high + 1, step)]


class PlannedTable:
    """A table name and its spelling on each side (None when absent)."""

    def __init__(self, name: str, source_name: str = None, destination_name: str = None):
        self.name = name
        self.source_name = source_name
        self.destination_name = destination_name

    @property
    def in_source(self) -> bool:
        return self.source_name is not None

    @property
    def in_destination(self) -> bool:
        return self.destination_name is not None

    @property
    def copyable(self) -> bool:
        return self.in_source and self.in_destination


class MigrationPlan:
    def __init__(self, tables: list[PlannedTable]):
        self.tables = list(tables)

    @property
    def copyable(self) -> list[PlannedTable]:
        return [t for t in self.tables if t.copyable]

    @property
    def skipped(self) -> list[PlannedTable]:
        return [t for t in self.tables if not t.copyable]


class SequenceRef:
    def __init__(self, sequence: str, table: str):
        self.sequence = sequence
        self.table = table

    @classmethod
    def from_sequence(cls, sequence: str):
        """Derive the backing table from the sequence name, or None."""
        lowered = sequence.lower()
        for suffix in SEQUENCE_SUFFIXES:
            if lowered.endswith(suffix) and len(lowered) > len(suffix):
                return cls(sequence, sequence[: -len(suffix)])
        return None
